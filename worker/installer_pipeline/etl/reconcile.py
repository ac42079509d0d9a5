"""Match discovered candidates against stored installers and create or update them."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from installer_pipeline.core.db import InstallerStore
from installer_pipeline.etl.reference_links import generate_all_links
from installer_pipeline.etl.transform import COORDINATE_TOLERANCE
from installer_pipeline.models import (
    SOURCE_OVERPASS,
    STATUS_ERROR,
    STATUS_OK,
    CandidateError,
    Installer,
    InstallerCandidate,
    ScanLogEntry,
    utcnow,
)

logger = logging.getLogger(__name__)

# Optional fields that keep their stored value when the candidate lacks one.
_CARRY_FORWARD_FIELDS = (
    "external_id",
    "address",
    "city",
    "state",
    "postal",
    "phone",
    "website",
    "years_in_business",
)


@dataclass
class ReconcileOutcome:
    installer: Installer
    created: bool


def find_existing(store: InstallerStore, candidate: InstallerCandidate) -> Optional[Installer]:
    if candidate.external_id:
        existing = store.find_by_external_id(candidate.external_id)
        if existing:
            return existing
    return store.find_by_name_near(candidate.name, candidate.latitude, candidate.longitude, COORDINATE_TOLERANCE)


def merge_candidate(existing: Installer, candidate: InstallerCandidate, now: datetime) -> Installer:
    """Refresh ``existing`` from ``candidate`` without blanking stored values."""

    existing.name = candidate.name
    existing.latitude = candidate.latitude
    existing.longitude = candidate.longitude
    for attr in _CARRY_FORWARD_FIELDS:
        value = getattr(candidate, attr)
        if value is not None and value != "":
            setattr(existing, attr, value)
    existing.last_discovered_at = now
    return existing


def installer_from_candidate(candidate: InstallerCandidate, now: datetime) -> Installer:
    return Installer(
        external_id=candidate.external_id,
        name=candidate.name,
        latitude=candidate.latitude,
        longitude=candidate.longitude,
        address=candidate.address,
        city=candidate.city,
        state=candidate.state,
        postal=candidate.postal,
        phone=candidate.phone,
        website=candidate.website,
        years_in_business=candidate.years_in_business,
        last_discovered_at=now,
    )


def reconcile_candidate(
    store: InstallerStore,
    candidate: InstallerCandidate,
    *,
    now: Optional[datetime] = None,
) -> ReconcileOutcome:
    now = now or utcnow()
    existing = find_existing(store, candidate)

    if existing:
        installer = store.update_installer(merge_candidate(existing, candidate, now))
        installer.external_links = store.list_external_links(installer.id)
        created = False
    else:
        installer = store.create_installer(installer_from_candidate(candidate, now))
        links = generate_all_links(
            installer.name,
            city=installer.city,
            state=installer.state,
            phone=installer.phone,
            website=installer.website,
        )
        if links:
            store.add_external_links(installer.id, links)
        installer.external_links = links
        created = True

    action = "Created" if created else "Updated"
    store.append_scan_log(ScanLogEntry(
        source=SOURCE_OVERPASS,
        status=STATUS_OK,
        message=f"{action} installer: {installer.name}",
        installer_id=installer.id,
    ))
    logger.info("%s installer %s (%s)", action, installer.id, installer.name)
    return ReconcileOutcome(installer=installer, created=created)


def record_reconcile_failure(store: InstallerStore, candidate: InstallerCandidate, exc: Exception) -> CandidateError:
    message = f"Error processing {candidate.name}: {exc}"
    logger.error(message)
    try:
        store.append_scan_log(ScanLogEntry(source=SOURCE_OVERPASS, status=STATUS_ERROR, message=message))
    except Exception as log_exc:  # noqa: BLE001
        logger.error("Failed to write scan log for %s: %s", candidate.name, log_exc)
    return CandidateError(stage="reconcile", message=str(exc), candidate_name=candidate.name)
