from installer_pipeline.etl import reconcile
from installer_pipeline.models import STATUS_ERROR, STATUS_OK, InstallerCandidate


def _candidate(**overrides):
    data = dict(
        name="Sunny Solar",
        latitude=30.0,
        longitude=-97.0,
        external_id="node/1",
        city="Austin",
        state="TX",
        phone="+15125550100",
        website="https://sunny.example",
    )
    data.update(overrides)
    return InstallerCandidate(**data)


def test_create_generates_links_once(store):
    outcome = reconcile.reconcile_candidate(store, _candidate())

    assert outcome.created is True
    installer = outcome.installer
    assert installer.id == "inst-1"
    assert installer.last_discovered_at is not None
    assert store.links[installer.id]
    assert installer.external_links == store.links[installer.id]
    assert store.logs[-1].status == STATUS_OK
    assert store.logs[-1].installer_id == installer.id

    link_count = len(store.links[installer.id])
    second = reconcile.reconcile_candidate(store, _candidate(address="1 Main St"))

    assert second.created is False
    assert second.installer.address == "1 Main St"
    assert len(store.links[installer.id]) == link_count


def test_match_by_name_and_location_without_external_id(store):
    reconcile.reconcile_candidate(store, _candidate(external_id=None))

    outcome = reconcile.reconcile_candidate(
        store, _candidate(external_id="way/9", name="SUNNY SOLAR", latitude=30.0008, longitude=-97.0005)
    )

    assert outcome.created is False
    assert len(store.installers) == 1
    assert outcome.installer.external_id == "way/9"
    assert outcome.installer.name == "SUNNY SOLAR"


def test_distant_same_name_creates_new_installer(store):
    reconcile.reconcile_candidate(store, _candidate(external_id=None))
    outcome = reconcile.reconcile_candidate(store, _candidate(external_id=None, latitude=30.01))

    assert outcome.created is True
    assert len(store.installers) == 2


def test_update_carries_forward_missing_fields(store):
    reconcile.reconcile_candidate(store, _candidate())

    outcome = reconcile.reconcile_candidate(store, _candidate(phone=None, website="", latitude=30.0001))

    assert outcome.installer.phone == "+15125550100"
    assert outcome.installer.website == "https://sunny.example"
    assert outcome.installer.latitude == 30.0001


def test_running_twice_is_idempotent(store):
    candidates = [_candidate(), _candidate(external_id="node/2", name="Other Solar", latitude=31.0)]

    for candidate in candidates:
        reconcile.reconcile_candidate(store, candidate)
    count_after_first = len(store.installers)
    outcomes = [reconcile.reconcile_candidate(store, candidate) for candidate in candidates]

    assert len(store.installers) == count_after_first == 2
    assert all(outcome.created is False for outcome in outcomes)


def test_update_returns_stored_links(store):
    created = reconcile.reconcile_candidate(store, _candidate()).installer
    stored = list(store.links[created.id])
    # A freshly loaded row carries no links until they are read back.
    store.installers[created.id].external_links = []

    updated = reconcile.reconcile_candidate(store, _candidate(address="1 Main St")).installer

    assert updated.external_links == stored
    assert updated.to_dict()["externalLinks"]


def test_record_reconcile_failure_logs_and_describes_error(store):
    error = reconcile.record_reconcile_failure(
        store, _candidate(name="Broken Solar"), RuntimeError("constraint violation")
    )

    assert error.stage == "reconcile"
    assert error.candidate_name == "Broken Solar"
    assert error.message == "constraint violation"
    assert store.logs[-1].status == STATUS_ERROR
    assert "Broken Solar" in store.logs[-1].message
