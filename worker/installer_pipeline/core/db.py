"""Database helpers for the worker."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

import psycopg2
from psycopg2 import extras, pool

from installer_pipeline.core.config import get_settings
from installer_pipeline.models import ExternalLink, Installer, ScanLogEntry, Specialty

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


class InstallerStore(Protocol):
    """Record store the pipeline reads and writes, one record at a time."""

    def find_by_external_id(self, external_id: str) -> Optional[Installer]: ...

    def find_by_name_near(self, name: str, lat: float, lon: float, tolerance: float) -> Optional[Installer]: ...

    def get_installer(self, installer_id: str) -> Optional[Installer]: ...

    def create_installer(self, installer: Installer) -> Installer: ...

    def update_installer(self, installer: Installer) -> Installer: ...

    def add_external_links(self, installer_id: str, links: Iterable[ExternalLink]) -> None: ...

    def list_external_links(self, installer_id: str) -> List[ExternalLink]: ...

    def replace_specialties(self, installer_id: str, slugs: Iterable[str], enriched_at: datetime) -> None: ...

    def append_scan_log(self, entry: ScanLogEntry) -> None: ...


_INSTALLER_COLUMNS = """
    id, external_id, name, lat, lon, address, city, state, postal, phone, website,
    total_reviews, years_in_business, last_discovered_at, last_enriched_at,
    COALESCE(
        (SELECT array_agg(s.specialty_slug ORDER BY s.specialty_slug)
         FROM installer_specialties s WHERE s.installer_id = installers.id),
        ARRAY[]::TEXT[]
    ) AS specialties
"""

_FIND_BY_EXTERNAL_ID = f"SELECT {_INSTALLER_COLUMNS} FROM installers WHERE external_id = %(external_id)s LIMIT 1;"

_FIND_BY_ID = f"SELECT {_INSTALLER_COLUMNS} FROM installers WHERE id = %(id)s;"

_FIND_BY_NAME_NEAR = f"""
SELECT {_INSTALLER_COLUMNS} FROM installers
WHERE LOWER(name) = LOWER(%(name)s)
  AND lat BETWEEN %(lat)s - %(tolerance)s AND %(lat)s + %(tolerance)s
  AND lon BETWEEN %(lon)s - %(tolerance)s AND %(lon)s + %(tolerance)s
ORDER BY created_at
LIMIT 1;
"""

_INSERT_INSTALLER = """
INSERT INTO installers (
    id, external_id, name, lat, lon, address, city, state, postal, phone, website,
    total_reviews, years_in_business, last_discovered_at, last_enriched_at, updated_at
) VALUES (
    %(id)s, %(external_id)s, %(name)s, %(lat)s, %(lon)s, %(address)s, %(city)s, %(state)s,
    %(postal)s, %(phone)s, %(website)s, %(total_reviews)s, %(years_in_business)s,
    %(last_discovered_at)s, %(last_enriched_at)s, NOW()
);
"""

_UPDATE_INSTALLER = """
UPDATE installers SET
    external_id = %(external_id)s,
    name = %(name)s,
    lat = %(lat)s,
    lon = %(lon)s,
    address = %(address)s,
    city = %(city)s,
    state = %(state)s,
    postal = %(postal)s,
    phone = %(phone)s,
    website = %(website)s,
    total_reviews = %(total_reviews)s,
    years_in_business = %(years_in_business)s,
    last_discovered_at = %(last_discovered_at)s,
    updated_at = NOW()
WHERE id = %(id)s;
"""

_INSERT_LINK = """
INSERT INTO external_links (installer_id, kind, url, label, description)
VALUES (%s, %s, %s, %s, %s)
ON CONFLICT (installer_id, url) DO NOTHING;
"""

_SELECT_LINKS = """
SELECT kind, url, label, description
FROM external_links
WHERE installer_id = %(installer_id)s
ORDER BY id;
"""

_INSERT_SCAN_LOG = """
INSERT INTO scan_logs (installer_id, source, status, message, created_at)
VALUES (%(installer_id)s, %(source)s, %(status)s, %(message)s, %(created_at)s);
"""

_UPSERT_SPECIALTY = """
INSERT INTO specialties (slug, label) VALUES (%s, %s)
ON CONFLICT (slug) DO UPDATE SET label = EXCLUDED.label;
"""


def _prepare_params(installer: Installer) -> Dict[str, Any]:
    return {
        "id": installer.id,
        "external_id": installer.external_id,
        "name": installer.name,
        "lat": installer.latitude,
        "lon": installer.longitude,
        "address": installer.address,
        "city": installer.city,
        "state": installer.state,
        "postal": installer.postal,
        "phone": installer.phone,
        "website": installer.website,
        "total_reviews": installer.total_reviews,
        "years_in_business": installer.years_in_business,
        "last_discovered_at": installer.last_discovered_at,
        "last_enriched_at": installer.last_enriched_at,
    }


def _row_to_installer(row: Dict[str, Any]) -> Installer:
    return Installer(
        id=row["id"],
        external_id=row.get("external_id"),
        name=row["name"],
        latitude=row["lat"],
        longitude=row["lon"],
        address=row.get("address"),
        city=row.get("city"),
        state=row.get("state"),
        postal=row.get("postal"),
        phone=row.get("phone"),
        website=row.get("website"),
        total_reviews=row.get("total_reviews"),
        years_in_business=row.get("years_in_business"),
        last_discovered_at=row.get("last_discovered_at"),
        last_enriched_at=row.get("last_enriched_at"),
        specialties=list(row.get("specialties") or []),
    )


class PostgresInstallerStore:
    """``InstallerStore`` backed by the pooled PostgreSQL connection."""

    def _fetch_one(self, sql: str, params: Dict[str, Any]) -> Optional[Installer]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
        return _row_to_installer(row) if row else None

    def find_by_external_id(self, external_id: str) -> Optional[Installer]:
        if not external_id:
            return None
        return self._fetch_one(_FIND_BY_EXTERNAL_ID, {"external_id": external_id})

    def find_by_name_near(self, name: str, lat: float, lon: float, tolerance: float) -> Optional[Installer]:
        return self._fetch_one(_FIND_BY_NAME_NEAR, {"name": name, "lat": lat, "lon": lon, "tolerance": tolerance})

    def get_installer(self, installer_id: str) -> Optional[Installer]:
        return self._fetch_one(_FIND_BY_ID, {"id": installer_id})

    def create_installer(self, installer: Installer) -> Installer:
        if not installer.name:
            raise ValueError("name is required to create an installer")
        installer.id = installer.id or str(uuid.uuid4())
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_INSTALLER, _prepare_params(installer))
            conn.commit()
        logger.debug("Created installer %s (%s)", installer.id, installer.name)
        return installer

    def update_installer(self, installer: Installer) -> Installer:
        if not installer.id:
            raise ValueError("id is required to update an installer")
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPDATE_INSTALLER, _prepare_params(installer))
            conn.commit()
        logger.debug("Updated installer %s (%s)", installer.id, installer.name)
        return installer

    def add_external_links(self, installer_id: str, links: Iterable[ExternalLink]) -> None:
        rows = [(installer_id, link.kind, link.url, link.label, link.description) for link in links]
        if not rows:
            return
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.executemany(_INSERT_LINK, rows)
            conn.commit()

    def list_external_links(self, installer_id: str) -> List[ExternalLink]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_SELECT_LINKS, {"installer_id": installer_id})
                rows = cur.fetchall()
        return [
            ExternalLink(
                kind=row["kind"],
                url=row["url"],
                label=row["label"] or "",
                description=row["description"] or "",
            )
            for row in rows
        ]

    def replace_specialties(self, installer_id: str, slugs: Iterable[str], enriched_at: datetime) -> None:
        """Swap the full specialty set and stamp the enrichment time in one transaction."""
        slug_list: List[str] = sorted(set(slugs))
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM installer_specialties WHERE installer_id = %s;", (installer_id,))
                    if slug_list:
                        cur.execute(
                            "INSERT INTO installer_specialties (installer_id, specialty_slug) "
                            "SELECT %s, slug FROM specialties WHERE slug = ANY(%s);",
                            (installer_id, slug_list),
                        )
                    cur.execute(
                        "UPDATE installers SET last_enriched_at = %s, updated_at = NOW() WHERE id = %s;",
                        (enriched_at, installer_id),
                    )
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise

    def append_scan_log(self, entry: ScanLogEntry) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    _INSERT_SCAN_LOG,
                    {
                        "installer_id": entry.installer_id,
                        "source": entry.source,
                        "status": entry.status,
                        "message": entry.message,
                        "created_at": entry.created_at,
                    },
                )
            conn.commit()

    def seed_specialties(self, specialties: Iterable[Specialty]) -> int:
        rows = [(specialty.slug, specialty.label) for specialty in specialties]
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.executemany(_UPSERT_SPECIALTY, rows)
            conn.commit()
        logger.info("Seeded %d specialties", len(rows))
        return len(rows)
