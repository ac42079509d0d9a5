"""CLI job that discovers solar installers around a point and enriches them."""

import argparse
import json
import logging
import sys
import time
from typing import Callable, List, Optional

from installer_pipeline.core.config import Settings, get_settings
from installer_pipeline.core.db import InstallerStore, PostgresInstallerStore
from installer_pipeline.core.errors import ConfigurationError, UpstreamServiceError
from installer_pipeline.core.rate_limiter import RateLimiter, get_rate_limiter
from installer_pipeline.core.site_enricher import WebsiteCrawler, enrich_website
from installer_pipeline.etl.capacity import estimate_capacity
from installer_pipeline.etl.reconcile import reconcile_candidate, record_reconcile_failure
from installer_pipeline.etl.specialties import SPECIALTIES
from installer_pipeline.models import (
    SOURCE_ESTIMATE,
    SOURCE_GEOCODE,
    SOURCE_OVERPASS,
    SOURCE_SITE,
    STATUS_ERROR,
    STATUS_OK,
    CandidateError,
    DiscoveryRunResult,
    EnrichmentResult,
    Installer,
    InstallerCandidate,
    ProcessedInstaller,
    ScanLogEntry,
)
from installer_pipeline.vendors import nominatim, overpass

logger = logging.getLogger(__name__)


def _log(store: InstallerStore, source: str, status: str, message: str, installer_id: Optional[str] = None) -> None:
    try:
        store.append_scan_log(ScanLogEntry(source=source, status=status, message=message, installer_id=installer_id))
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to write scan log (%s/%s): %s", source, status, exc)


def resolve_search_point(
    store: InstallerStore,
    *,
    lat: Optional[float],
    lon: Optional[float],
    location: Optional[str],
    settings: Settings,
    limiter: RateLimiter,
):
    if lat is not None and lon is not None:
        return float(lat), float(lon)

    if not location or not location.strip():
        raise ConfigurationError("Latitude and longitude, or a location to geocode, are required")

    coords = nominatim.geocode(
        location,
        limiter=limiter,
        timeout=settings.geocode_timeout,
        url=settings.nominatim_url,
        user_agent=settings.user_agent,
    )
    if coords is None:
        message = f"Could not resolve location: {location}"
        _log(store, SOURCE_GEOCODE, STATUS_ERROR, message)
        raise ConfigurationError(message)

    _log(store, SOURCE_GEOCODE, STATUS_OK, f"Resolved {location} to {coords[0]}, {coords[1]}")
    return coords


def apply_enrichment(store: InstallerStore, installer: Installer, result: EnrichmentResult) -> None:
    """Replace the installer's specialty set with a successful scan's findings."""

    store.replace_specialties(installer.id, result.specialties, result.scanned_at)
    installer.specialties = list(result.specialties)
    installer.last_enriched_at = result.scanned_at


def enrich_one(
    store: InstallerStore,
    installer: Installer,
    crawler: WebsiteCrawler,
) -> EnrichmentResult:
    """Crawl, classify and persist one installer; failures come back in the result."""

    _log(store, SOURCE_SITE, STATUS_OK, f"Website enrichment started for {installer.website}", installer.id)
    result = enrich_website(installer.website, crawler, location=installer.city)

    if not result.success:
        _log(store, SOURCE_SITE, STATUS_ERROR, f"Enrichment failed: {result.error}", installer.id)
        return result

    apply_enrichment(store, installer, result)
    _log(
        store,
        SOURCE_SITE,
        STATUS_OK,
        f"Enrichment completed. Found {len(result.specialties)} specialties: {', '.join(result.specialties)}",
        installer.id,
    )
    return result


def _process_installer(
    store: InstallerStore,
    item: ProcessedInstaller,
    *,
    crawler: Optional[WebsiteCrawler],
    errors: List[CandidateError],
) -> None:
    installer = item.installer

    if crawler is not None and installer.website:
        try:
            item.enrichment = enrich_one(store, installer, crawler)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Enrichment crashed for %s", installer.name)
            _log(store, SOURCE_SITE, STATUS_ERROR, f"Enrichment failed: {exc}", installer.id)
            item.enrichment = EnrichmentResult(success=False, error=str(exc))
        if not item.enrichment.success:
            errors.append(CandidateError(
                stage="crawl",
                message=item.enrichment.error or "Enrichment failed",
                installer_id=installer.id,
                candidate_name=installer.name,
            ))

    try:
        portfolio = item.enrichment.portfolio if item.enrichment is not None else None
        item.capacity = estimate_capacity(installer, portfolio)
        _log(
            store,
            SOURCE_ESTIMATE,
            STATUS_OK,
            f"Estimated {item.capacity.total_kw} kW over {item.capacity.projects} projects "
            f"(confidence {item.capacity.confidence})",
            installer.id,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Capacity estimate failed for %s", installer.name)
        _log(store, SOURCE_ESTIMATE, STATUS_ERROR, f"Estimate failed: {exc}", installer.id)
        errors.append(CandidateError(
            stage="estimate", message=str(exc), installer_id=installer.id, candidate_name=installer.name
        ))


def run_discovery(
    store: InstallerStore,
    *,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    location: Optional[str] = None,
    radius_meters: Optional[int] = None,
    enrich: bool = True,
    settings: Optional[Settings] = None,
    limiter: Optional[RateLimiter] = None,
    crawler: Optional[WebsiteCrawler] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DiscoveryRunResult:
    """Discover, reconcile and enrich installers around a point or a location.

    Raises ``ConfigurationError`` before any network call for bad parameters
    and ``UpstreamServiceError`` when discovery itself fails. Everything that
    goes wrong for a single installer is collected in ``result.errors``.

    Without explicit settings or limiter the process-wide limiter is used, so
    concurrent runs share one request budget per service.
    """
    if limiter is None:
        limiter = get_rate_limiter() if settings is None else RateLimiter(settings.rate_limits())
    settings = settings or get_settings()
    radius = radius_meters if radius_meters is not None else settings.discovery_radius_meters
    overpass.validate_radius(radius)

    started = clock()

    search_lat, search_lon = resolve_search_point(
        store, lat=lat, lon=lon, location=location, settings=settings, limiter=limiter
    )
    result = DiscoveryRunResult(latitude=search_lat, longitude=search_lon, radius_meters=int(radius))

    logger.info("Discovering installers near %s, %s within %sm", search_lat, search_lon, radius)
    _log(store, SOURCE_OVERPASS, STATUS_OK, f"Discovery started for {search_lat}, {search_lon} radius {radius}m")

    try:
        candidates: List[InstallerCandidate] = overpass.discover_installers(
            search_lat,
            search_lon,
            radius,
            limiter=limiter,
            timeout=settings.discovery_timeout,
            url=settings.overpass_url,
            user_agent=settings.user_agent,
            default_phone_region=settings.default_phone_region,
        )
    except UpstreamServiceError as exc:
        _log(store, SOURCE_OVERPASS, STATUS_ERROR, f"Discovery failed: {exc}")
        raise

    result.discovered = len(candidates)
    logger.info("Found %d candidates", len(candidates))

    owns_crawler = enrich and crawler is None
    if owns_crawler:
        crawler = WebsiteCrawler(settings=settings, limiter=limiter)
    active_crawler = crawler if enrich else None

    try:
        for index, candidate in enumerate(candidates):
            if settings.run_timeout_seconds and clock() - started >= settings.run_timeout_seconds:
                skipped = len(candidates) - index
                message = f"Run deadline of {settings.run_timeout_seconds}s reached; {skipped} candidates skipped"
                logger.warning(message)
                _log(store, SOURCE_OVERPASS, STATUS_ERROR, message)
                result.errors.append(CandidateError(stage="deadline", message=message))
                result.cancelled = True
                break

            try:
                outcome = reconcile_candidate(store, candidate)
            except Exception as exc:  # noqa: BLE001
                result.errors.append(record_reconcile_failure(store, candidate, exc))
                continue

            item = ProcessedInstaller(installer=outcome.installer, created=outcome.created)
            _process_installer(store, item, crawler=active_crawler, errors=result.errors)
            result.installers.append(item)
    finally:
        if owns_crawler and crawler is not None:
            crawler.close()

    logger.info(
        "Completed run: discovered=%d processed=%d errors=%d",
        result.discovered,
        result.processed,
        len(result.errors),
    )
    return result


def enrich_installer(
    store: InstallerStore,
    installer: Installer,
    *,
    settings: Optional[Settings] = None,
    limiter: Optional[RateLimiter] = None,
    crawler: Optional[WebsiteCrawler] = None,
) -> EnrichmentResult:
    """Re-scan one stored installer's website outside of a discovery run."""
    if not installer.website:
        raise ValueError("No website URL available for this installer")

    if crawler is not None:
        return enrich_one(store, installer, crawler)
    with WebsiteCrawler(settings=settings or get_settings(), limiter=limiter or get_rate_limiter()) as owned:
        return enrich_one(store, installer, owned)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover and enrich solar installers around a point")
    parser.add_argument("--lat", dest="lat", type=float, help="Search latitude")
    parser.add_argument("--lon", dest="lon", type=float, help="Search longitude")
    parser.add_argument("--location", dest="location", help="Address or place name to geocode")
    parser.add_argument(
        "--radius",
        dest="radius_meters",
        type=int,
        default=get_settings().discovery_radius_meters,
        help="Search radius in meters (max 50000)",
    )
    parser.add_argument("--no-enrich", dest="enrich", action="store_false", help="Skip website crawling")
    parser.add_argument(
        "--seed-specialties",
        dest="seed_specialties",
        action="store_true",
        help="Upsert the specialty vocabulary before running",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    store = PostgresInstallerStore()
    if args.seed_specialties:
        store.seed_specialties(SPECIALTIES)

    try:
        result = run_discovery(
            store,
            lat=args.lat,
            lon=args.lon,
            location=args.location,
            radius_meters=args.radius_meters,
            enrich=args.enrich,
            limiter=get_rate_limiter(),
        )
    except (ConfigurationError, UpstreamServiceError) as exc:
        logger.error("Discovery run failed: %s", exc)
        return 1

    json.dump(result.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
