import pytest

from installer_pipeline.core.errors import ConfigurationError, UpstreamServiceError
from installer_pipeline.jobs import run_discovery_server
from installer_pipeline.core.rate_limiter import RateLimiter
from installer_pipeline.models import DiscoveryRunResult, EnrichmentResult, Installer


@pytest.fixture
def client(monkeypatch, store):
    monkeypatch.setattr(run_discovery_server, "_store", store)
    return run_discovery_server.app.test_client()


@pytest.fixture
def recorded(monkeypatch):
    calls = {}

    def fake_run(store, **kwargs):
        calls.update(kwargs)
        return DiscoveryRunResult(latitude=kwargs["lat"] or 0.0, longitude=kwargs["lon"] or 0.0, radius_meters=25000)

    monkeypatch.setattr(run_discovery_server, "run_discovery", fake_run)
    return calls


def test_health_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_discover_passes_params(client, recorded):
    response = client.post(
        "/discover", json={"lat": "30.1", "lon": -97.2, "radiusMeters": 10000, "enrich": "false"}
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["processed"] == 0
    assert recorded["lat"] == 30.1
    assert recorded["radius_meters"] == 10000
    assert recorded["enrich"] is False


def test_discover_rejects_non_numeric(client, recorded):
    assert client.post("/discover", json={"lat": "north", "lon": 1}).status_code == 400
    assert recorded == {}


def test_discover_maps_errors_to_status(client, monkeypatch):
    def config_error(store, **kwargs):
        raise ConfigurationError("Radius too large. Maximum 50km for fair use.")

    monkeypatch.setattr(run_discovery_server, "run_discovery", config_error)
    response = client.post("/discover", json={"lat": 1, "lon": 1, "radiusMeters": 90000})
    assert response.status_code == 400
    assert "Radius too large" in response.get_json()["error"]

    def upstream_error(store, **kwargs):
        raise UpstreamServiceError("Overpass API error: 504")

    monkeypatch.setattr(run_discovery_server, "run_discovery", upstream_error)
    response = client.post("/discover", json={"lat": 1, "lon": 1})
    assert response.status_code == 502


def test_enrich_unknown_installer(client):
    assert client.post("/enrich/missing").status_code == 404


def test_enrich_requires_website(client, store):
    store.create_installer(Installer(name="No Site", latitude=1.0, longitude=1.0))
    assert client.post("/enrich/inst-1").status_code == 400


def test_enrich_returns_specialties(client, store, monkeypatch):
    store.create_installer(Installer(name="Site", latitude=1.0, longitude=1.0, website="site.example"))
    monkeypatch.setattr(
        run_discovery_server,
        "enrich_installer",
        lambda store, installer, **kwargs: EnrichmentResult(specialties=["ev_charger"], success=True),
    )

    response = client.post("/enrich/inst-1")

    assert response.status_code == 200
    body = response.get_json()
    assert body["enrichment"]["specialties"] == ["ev_charger"]
    assert body["installer"]["name"] == "Site"


def test_requests_share_one_rate_limiter(client, store, recorded, monkeypatch):
    shared = RateLimiter({"website": 2.0})
    monkeypatch.setattr(run_discovery_server, "get_rate_limiter", lambda: shared)
    enrich_calls = []

    def fake_enrich(store, installer, **kwargs):
        enrich_calls.append(kwargs)
        return EnrichmentResult(success=True)

    monkeypatch.setattr(run_discovery_server, "enrich_installer", fake_enrich)
    store.create_installer(Installer(name="Site", latitude=1.0, longitude=1.0, website="site.example"))

    client.post("/discover", json={"lat": 1, "lon": 1})
    client.post("/enrich/inst-1")

    assert recorded["limiter"] is shared
    assert enrich_calls[0]["limiter"] is shared
