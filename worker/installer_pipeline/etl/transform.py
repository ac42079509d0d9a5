"""Utilities for transforming Overpass API elements into installer candidates."""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

import phonenumbers

from installer_pipeline.models import InstallerCandidate

logger = logging.getLogger(__name__)

COORDINATE_TOLERANCE = 0.001
_YEAR_REGEX = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")


@dataclass(frozen=True)
class OsmTags:
    """The subset of OSM tags the pipeline understands, with fallbacks applied."""

    name: Optional[str]
    address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    postal: Optional[str]
    phone: Optional[str]
    website: Optional[str]
    start_year: Optional[int]

    @classmethod
    def from_tags(cls, tags: Dict[str, str], display_name: Optional[str] = None) -> "OsmTags":
        return cls(
            name=resolve_name(tags, display_name),
            address=build_address(tags),
            city=_first(tags, "addr:city"),
            state=_first(tags, "addr:state"),
            postal=_first(tags, "addr:postcode"),
            phone=_first(tags, "phone", "contact:phone"),
            website=_first(tags, "website", "contact:website", "url"),
            start_year=parse_start_year(tags.get("start_date")),
        )


def _first(tags: Dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = (tags.get(key) or "").strip()
        if value:
            return value
    return None


def resolve_name(tags: Dict[str, str], display_name: Optional[str] = None) -> Optional[str]:
    name = _first(tags, "name", "brand", "operator")
    if name:
        return name
    if display_name:
        head = display_name.split(",", 1)[0].strip()
        return head or None
    return None


def build_address(tags: Dict[str, str]) -> Optional[str]:
    parts = [tags.get("addr:housenumber"), tags.get("addr:street")]
    joined = " ".join(part.strip() for part in parts if part and part.strip())
    return joined or None


def parse_start_year(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    match = _YEAR_REGEX.search(raw)
    return int(match.group(1)) if match else None


def years_since(start_year: Optional[int], today: Optional[date] = None) -> Optional[int]:
    if start_year is None:
        return None
    today = today or date.today()
    if start_year > today.year:
        return None
    return today.year - start_year


def normalize_phone(raw: Optional[str], default_region: Optional[str] = "US") -> Optional[str]:
    """E.164 when the number parses, else the raw string so nothing is lost."""

    if not raw:
        return None
    candidate = raw.split(";")[0].strip()
    if not candidate:
        return None
    try:
        parsed = phonenumbers.parse(candidate, default_region)
    except phonenumbers.NumberParseException:
        logger.debug("Unable to parse phone %r", candidate)
        return candidate
    if not phonenumbers.is_possible_number(parsed):
        return candidate
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def element_coordinates(element: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    lat = element.get("lat")
    lon = element.get("lon")
    if lat is None or lon is None:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None
    try:
        return float(lat), float(lon)
    except (TypeError, ValueError):
        return None


def to_candidate(
    element: Dict[str, Any],
    *,
    default_phone_region: Optional[str] = "US",
    today: Optional[date] = None,
) -> Optional[InstallerCandidate]:
    tags = element.get("tags") or {}
    osm = OsmTags.from_tags(tags, element.get("display_name"))
    if not osm.name:
        return None

    coords = element_coordinates(element)
    if coords is None:
        return None

    external_id = None
    if element.get("type") and element.get("id") is not None:
        external_id = f"{element['type']}/{element['id']}"

    return InstallerCandidate(
        external_id=external_id,
        name=osm.name,
        latitude=coords[0],
        longitude=coords[1],
        address=osm.address,
        city=osm.city,
        state=osm.state,
        postal=osm.postal,
        phone=normalize_phone(osm.phone, default_phone_region),
        website=osm.website,
        years_in_business=years_since(osm.start_year, today),
        raw_tags=dict(tags),
    )


def is_same_place(a: InstallerCandidate, b: InstallerCandidate, tolerance: float = COORDINATE_TOLERANCE) -> bool:
    return (
        a.name.casefold() == b.name.casefold()
        and abs(a.latitude - b.latitude) < tolerance
        and abs(a.longitude - b.longitude) < tolerance
    )


def dedupe_candidates(candidates: Iterable[InstallerCandidate]) -> List[InstallerCandidate]:
    """Drop later candidates sharing a name and rough location with an earlier one."""

    unique: List[InstallerCandidate] = []
    for candidate in candidates:
        if any(is_same_place(kept, candidate) for kept in unique):
            logger.debug("Dropping duplicate candidate %s", candidate.name)
            continue
        unique.append(candidate)
    return unique


def parse_elements(
    payload: Dict[str, Any],
    *,
    default_phone_region: Optional[str] = "US",
) -> List[InstallerCandidate]:
    elements = payload.get("elements") or []
    candidates = []
    for element in elements:
        candidate = to_candidate(element, default_phone_region=default_phone_region)
        if candidate is None:
            logger.debug("Skipping element without name or coordinates: %s", element.get("id"))
            continue
        candidates.append(candidate)
    return dedupe_candidates(candidates)
