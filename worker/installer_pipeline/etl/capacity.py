"""Rough installed-capacity estimates for an installer.

The figures are estimates, not measurements. Anything under
``LOW_CONFIDENCE_THRESHOLD`` should be labelled as low confidence wherever it
is displayed.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from installer_pipeline.models import CapacityEstimate, Installer, PortfolioProject

logger = logging.getLogger(__name__)

DEFAULT_YEARS_IN_BUSINESS = 5
MIN_ESTIMATED_PROJECTS = 10
PROJECTS_PER_YEAR = 5
REVIEWS_PER_PROJECT = 2
RESIDENTIAL_SYSTEM_KW = 8.0
COMMERCIAL_SYSTEM_KW = 50.0


@dataclass(frozen=True)
class ConfidenceLevels:
    """Heuristic confidence placeholders; they carry no statistical meaning."""

    portfolio: float = 0.8
    heuristic: float = 0.4
    floor: float = 0.3


DEFAULT_LEVELS = ConfidenceLevels()


def _looks_commercial(installer: Installer) -> bool:
    if installer.city and "commercial" in installer.city.lower():
        return True
    return any("commercial" in slug.lower() for slug in installer.specialties)


def estimate_capacity(
    installer: Installer,
    portfolio: Optional[Iterable[PortfolioProject]] = None,
    *,
    levels: ConfidenceLevels = DEFAULT_LEVELS,
) -> CapacityEstimate:
    projects_list = list(portfolio or [])
    sized = [project.system_size_kw for project in projects_list if project.system_size_kw]

    if sized:
        total_kw = float(sum(sized))
        projects = len(sized)
        confidence = levels.portfolio
    else:
        years = installer.years_in_business or DEFAULT_YEARS_IN_BUSINESS
        reviews = installer.total_reviews or 0
        projects = max(MIN_ESTIMATED_PROJECTS, reviews // REVIEWS_PER_PROJECT + years * PROJECTS_PER_YEAR)
        average = COMMERCIAL_SYSTEM_KW if _looks_commercial(installer) else RESIDENTIAL_SYSTEM_KW
        total_kw = projects * average

        has_evidence = bool(projects_list) or installer.total_reviews is not None or installer.years_in_business is not None
        confidence = levels.heuristic if has_evidence else levels.floor

    average_size = total_kw / projects if projects else 0.0
    estimate = CapacityEstimate(
        total_kw=round(total_kw, 2),
        projects=projects,
        average_system_size_kw=round(average_size, 2),
        confidence=round(confidence, 2),
    )
    logger.debug("Estimated capacity for %s: %s", installer.name, estimate)
    return estimate
