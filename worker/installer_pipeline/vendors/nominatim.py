"""Forward geocoding through OpenStreetMap's Nominatim search API."""

import logging
from typing import Optional, Tuple

import requests

from installer_pipeline.core.config import DEFAULT_USER_AGENT, SERVICE_GEOCODING
from installer_pipeline.core.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://nominatim.openstreetmap.org/search"


def geocode(
    address: str,
    *,
    limiter: Optional[RateLimiter] = None,
    timeout: float = 10,
    url: str = _BASE_URL,
    user_agent: str = DEFAULT_USER_AGENT,
) -> Optional[Tuple[float, float]]:
    """Resolve a free-form address to ``(lat, lon)``; ``None`` when it can't be resolved."""

    query = (address or "").strip()
    if not query:
        return None

    if limiter is not None:
        limiter.acquire(SERVICE_GEOCODING)

    params = {"format": "json", "q": query, "limit": 1}
    try:
        response = _SESSION.get(url, params=params, headers={"User-Agent": user_agent}, timeout=timeout)
        response.raise_for_status()
        results = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Geocoding failed for %r: %s", query, exc)
        return None

    if not results:
        logger.info("No geocoding result for %r", query)
        return None

    first = results[0]
    try:
        return float(first["lat"]), float(first["lon"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Geocoding result for %r has no usable coordinates", query)
        return None
