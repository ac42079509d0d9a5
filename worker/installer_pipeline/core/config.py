"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

from dotenv import load_dotenv

from installer_pipeline.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

MAX_RADIUS_METERS = 50000
DEFAULT_USER_AGENT = "SolarProvidersOnline/1.0 (+https://solarprovidersonline.com; educational research)"

SERVICE_DISCOVERY = "discovery"
SERVICE_WEBSITE = "website"
SERVICE_GEOCODING = "geocoding"


@dataclass(frozen=True)
class Settings:
    database_url: str
    worker_port: int = 9000
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    discovery_radius_meters: int = 25000
    discovery_timeout: float = 25.0
    crawl_timeout: float = 15.0
    robots_timeout: float = 5.0
    geocode_timeout: float = 10.0
    discovery_interval_ms: int = 2000
    website_interval_ms: int = 2000
    geocode_interval_ms: int = 1000
    run_timeout_seconds: float = 0.0
    default_phone_region: str = "US"
    user_agent: str = DEFAULT_USER_AGENT

    def rate_limits(self) -> Dict[str, float]:
        """Minimum spacing per external service, in seconds."""
        return {
            SERVICE_DISCOVERY: self.discovery_interval_ms / 1000.0,
            SERVICE_WEBSITE: self.website_interval_ms / 1000.0,
            SERVICE_GEOCODING: self.geocode_interval_ms / 1000.0,
        }


def _get_number(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be numeric, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    radius = _get_number("DISCOVERY_RADIUS_METERS", "25000", int)
    if radius <= 0 or radius > MAX_RADIUS_METERS:
        raise ConfigurationError(
            f"DISCOVERY_RADIUS_METERS must be between 1 and {MAX_RADIUS_METERS}, got {radius}"
        )

    default_phone_region = (os.getenv("DEFAULT_PHONE_REGION") or "US").strip().upper()

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")

    return Settings(
        database_url=database_url,
        worker_port=_get_number("WORKER_PORT", "9000", int),
        overpass_url=os.getenv("OVERPASS_URL") or Settings.overpass_url,
        nominatim_url=os.getenv("NOMINATIM_URL") or Settings.nominatim_url,
        discovery_radius_meters=radius,
        discovery_timeout=_get_number("DISCOVERY_TIMEOUT", "25"),
        crawl_timeout=_get_number("CRAWL_TIMEOUT", "15"),
        robots_timeout=_get_number("ROBOTS_TIMEOUT", "5"),
        geocode_timeout=_get_number("GEOCODE_TIMEOUT", "10"),
        discovery_interval_ms=_get_number("DISCOVERY_INTERVAL_MS", "2000", int),
        website_interval_ms=_get_number("WEBSITE_INTERVAL_MS", "2000", int),
        geocode_interval_ms=_get_number("GEOCODE_INTERVAL_MS", "1000", int),
        run_timeout_seconds=_get_number("RUN_TIMEOUT_SECONDS", "0"),
        default_phone_region=default_phone_region,
        user_agent=os.getenv("CRAWLER_USER_AGENT") or DEFAULT_USER_AGENT,
    )
