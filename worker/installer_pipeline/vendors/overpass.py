"""Client utilities for the OpenStreetMap Overpass API."""

import logging
from typing import List, Optional

import requests

from installer_pipeline.core.config import DEFAULT_USER_AGENT, MAX_RADIUS_METERS, SERVICE_DISCOVERY
from installer_pipeline.core.errors import ConfigurationError, UpstreamServiceError
from installer_pipeline.core.rate_limiter import RateLimiter
from installer_pipeline.etl.transform import parse_elements
from installer_pipeline.models import InstallerCandidate

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://overpass-api.de/api/interpreter"

# Each clause is matched independently and the results are unioned.
_SOLAR_CLAUSES = (
    '["name"~"solar",i]',
    '["craft"~"solar",i]',
    '["shop"~"electrical|electronics",i]["name"~"solar",i]',
    '["office"~"company|it",i]["name"~"solar",i]',
    '["brand"~"solar",i]',
    '["office"="energy_supplier"]["name"~"solar",i]',
)


class OverpassError(UpstreamServiceError):
    """Raised when the Overpass API fails or returns a non-successful response."""


def validate_radius(radius_meters: float) -> None:
    if radius_meters is None or radius_meters <= 0:
        raise ConfigurationError("Radius must be a positive number of meters.")
    if radius_meters > MAX_RADIUS_METERS:
        raise ConfigurationError(f"Radius too large. Maximum {MAX_RADIUS_METERS // 1000}km for fair use.")


def build_query(lat: float, lon: float, radius_meters: float, *, timeout: int = 25) -> str:
    validate_radius(radius_meters)
    around = f"(around:{int(radius_meters)},{lat},{lon})"
    clauses = "\n".join(f"  nwr{around}{clause};" for clause in _SOLAR_CLAUSES)
    return f"[out:json][timeout:{timeout}];\n(\n{clauses}\n);\nout center tags;"


def discover_installers(
    lat: float,
    lon: float,
    radius_meters: float,
    *,
    limiter: Optional[RateLimiter] = None,
    timeout: float = 25,
    url: str = _BASE_URL,
    user_agent: str = DEFAULT_USER_AGENT,
    default_phone_region: Optional[str] = "US",
) -> List[InstallerCandidate]:
    """Query Overpass for solar businesses around a point.

    Radius validation happens before the rate limiter or network are touched.
    """
    query = build_query(lat, lon, radius_meters, timeout=int(timeout))

    if limiter is not None:
        limiter.acquire(SERVICE_DISCOVERY)

    try:
        response = _SESSION.post(
            url,
            data={"data": query},
            headers={"User-Agent": user_agent},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.error("Overpass request failed: %s", exc)
        raise OverpassError(f"Failed to discover installers: {exc}") from exc

    if not 200 <= response.status_code < 300:
        logger.error("Overpass returned status=%s", response.status_code)
        raise OverpassError(f"Overpass API error: {response.status_code} {response.reason}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise OverpassError("Overpass API returned an invalid JSON payload") from exc

    candidates = parse_elements(payload, default_phone_region=default_phone_region)
    logger.info(
        "Overpass returned %d elements, %d candidates after dedup",
        len(payload.get("elements") or []),
        len(candidates),
    )
    return candidates
