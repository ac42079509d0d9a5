import sys
from pathlib import Path

import pytest

# Ensure `installer_pipeline` is importable when running pytest from the repo or worker directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from installer_pipeline.core.config import Settings  # noqa: E402


class FakeStore:
    """In-memory stand-in for PostgresInstallerStore."""

    def __init__(self):
        self.installers = {}
        self.links = {}
        self.logs = []
        self.replaced = []
        self._next_id = 1

    def find_by_external_id(self, external_id):
        for installer in self.installers.values():
            if external_id and installer.external_id == external_id:
                return installer
        return None

    def find_by_name_near(self, name, lat, lon, tolerance):
        for installer in self.installers.values():
            if (
                installer.name.lower() == name.lower()
                and abs(installer.latitude - lat) <= tolerance
                and abs(installer.longitude - lon) <= tolerance
            ):
                return installer
        return None

    def get_installer(self, installer_id):
        return self.installers.get(installer_id)

    def create_installer(self, installer):
        installer.id = f"inst-{self._next_id}"
        self._next_id += 1
        self.installers[installer.id] = installer
        return installer

    def update_installer(self, installer):
        self.installers[installer.id] = installer
        return installer

    def add_external_links(self, installer_id, links):
        self.links.setdefault(installer_id, []).extend(links)

    def list_external_links(self, installer_id):
        return list(self.links.get(installer_id, []))

    def replace_specialties(self, installer_id, slugs, enriched_at):
        self.replaced.append((installer_id, list(slugs)))
        installer = self.installers[installer_id]
        installer.specialties = list(slugs)
        installer.last_enriched_at = enriched_at

    def append_scan_log(self, entry):
        self.logs.append(entry)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def settings():
    return Settings(
        database_url="postgres://",
        discovery_interval_ms=0,
        website_interval_ms=0,
        geocode_interval_ms=0,
    )
