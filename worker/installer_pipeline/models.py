"""Core data models shared by the installer discovery pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SOURCE_OVERPASS = "OVERPASS"
SOURCE_GEOCODE = "GEOCODE"
SOURCE_SITE = "SITE"
SOURCE_ESTIMATE = "ESTIMATE"

STATUS_OK = "OK"
STATUS_ERROR = "ERROR"

LOW_CONFIDENCE_THRESHOLD = 0.5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(slots=True)
class InstallerCandidate:
    """Normalized snapshot of a business returned by the Overpass API."""

    name: str
    latitude: float
    longitude: float
    external_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    years_in_business: Optional[int] = None
    source: str = "overpass"
    raw_tags: Optional[Dict[str, str]] = field(default=None, repr=False)


@dataclass(slots=True)
class ExternalLink:
    kind: str
    url: str
    label: str
    description: str = ""


@dataclass(slots=True)
class Specialty:
    slug: str
    label: str


@dataclass(slots=True)
class Installer:
    """Persisted installer record as seen by the pipeline."""

    name: str
    latitude: float
    longitude: float
    id: Optional[str] = None
    external_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    total_reviews: Optional[int] = None
    years_in_business: Optional[int] = None
    last_discovered_at: Optional[datetime] = None
    last_enriched_at: Optional[datetime] = None
    specialties: List[str] = field(default_factory=list)
    external_links: List[ExternalLink] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "externalId": self.external_id,
            "name": self.name,
            "lat": self.latitude,
            "lon": self.longitude,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal": self.postal,
            "phone": self.phone,
            "website": self.website,
            "totalReviews": self.total_reviews,
            "yearsInBusiness": self.years_in_business,
            "lastDiscoveredAt": _isoformat(self.last_discovered_at),
            "lastEnrichedAt": _isoformat(self.last_enriched_at),
            "specialties": sorted(self.specialties),
            "externalLinks": [asdict(link) for link in self.external_links],
        }


@dataclass(slots=True)
class PortfolioProject:
    title: str = ""
    description: str = ""
    system_size_kw: Optional[float] = None
    location: Optional[str] = None


@dataclass(slots=True)
class EnrichmentResult:
    """Outcome of one website scan. Applied as a full replace of the specialty set."""

    specialties: List[str] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None
    denied: bool = False
    portfolio: List[PortfolioProject] = field(default_factory=list)
    scanned_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specialties": list(self.specialties),
            "success": self.success,
            "error": self.error,
            "denied": self.denied,
            "portfolio": [asdict(project) for project in self.portfolio],
            "scannedAt": _isoformat(self.scanned_at),
        }


@dataclass(slots=True)
class CapacityEstimate:
    total_kw: float
    projects: int
    average_system_size_kw: float
    confidence: float

    @property
    def low_confidence(self) -> bool:
        return self.confidence < LOW_CONFIDENCE_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalKw": self.total_kw,
            "projects": self.projects,
            "averageSystemSize": self.average_system_size_kw,
            "confidence": self.confidence,
            "lowConfidence": self.low_confidence,
        }


@dataclass(slots=True)
class ScanLogEntry:
    """Append-only audit row written by every pipeline stage."""

    source: str
    status: str
    message: str
    installer_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class CandidateError:
    """A per-candidate failure; recorded, never raised past the batch loop."""

    stage: str
    message: str
    installer_id: Optional[str] = None
    candidate_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "installerId": self.installer_id,
            "candidateName": self.candidate_name,
        }


@dataclass(slots=True)
class ProcessedInstaller:
    installer: Installer
    created: bool
    enrichment: Optional[EnrichmentResult] = None
    capacity: Optional[CapacityEstimate] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.installer.to_dict()
        payload["created"] = self.created
        payload["enrichment"] = self.enrichment.to_dict() if self.enrichment else None
        payload["estimatedCapacity"] = self.capacity.to_dict() if self.capacity else None
        return payload


@dataclass(slots=True)
class DiscoveryRunResult:
    latitude: float
    longitude: float
    radius_meters: int
    discovered: int = 0
    installers: List[ProcessedInstaller] = field(default_factory=list)
    errors: List[CandidateError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return len(self.installers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "discovered": self.discovered,
            "processed": self.processed,
            "searchParams": {
                "lat": self.latitude,
                "lon": self.longitude,
                "radius": self.radius_meters,
            },
            "installers": [item.to_dict() for item in self.installers],
            "errors": [error.to_dict() for error in self.errors],
            "cancelled": self.cancelled,
        }
