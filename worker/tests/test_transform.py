from datetime import date

from installer_pipeline.etl import transform
from installer_pipeline.models import InstallerCandidate


def test_osm_tags_fallbacks():
    tags = {
        "brand": "SunBrand Solar",
        "addr:housenumber": "12",
        "addr:street": "Main St",
        "addr:city": "Austin",
        "addr:state": "TX",
        "addr:postcode": "78701",
        "contact:phone": "512-555-0100",
        "contact:website": "sunbrand.example",
        "start_date": "2015-04",
    }

    osm = transform.OsmTags.from_tags(tags)

    assert osm.name == "SunBrand Solar"
    assert osm.address == "12 Main St"
    assert osm.city == "Austin"
    assert osm.postal == "78701"
    assert osm.phone == "512-555-0100"
    assert osm.website == "sunbrand.example"
    assert osm.start_year == 2015


def test_resolve_name_from_display_name():
    assert transform.resolve_name({}, "Bright Solar, 5 Elm St, Denver") == "Bright Solar"
    assert transform.resolve_name({}, None) is None


def test_normalize_phone():
    assert transform.normalize_phone("(512) 555-0100", "US") == "+15125550100"
    assert transform.normalize_phone("+44 20 7946 0958; +44 20 7946 0000", "US") == "+442079460958"
    assert transform.normalize_phone("call us", "US") == "call us"
    assert transform.normalize_phone(None) is None


def test_to_candidate_uses_center_for_ways():
    element = {
        "type": "way",
        "id": 42,
        "center": {"lat": 30.1, "lon": -97.2},
        "tags": {"name": "Solar Works", "website": "https://solarworks.example", "start_date": "2010"},
    }

    candidate = transform.to_candidate(element, today=date(2024, 6, 1))

    assert candidate.external_id == "way/42"
    assert (candidate.latitude, candidate.longitude) == (30.1, -97.2)
    assert candidate.website == "https://solarworks.example"
    assert candidate.years_in_business == 14
    assert candidate.raw_tags == element["tags"]


def test_to_candidate_drops_missing_name_or_coordinates():
    assert transform.to_candidate({"type": "node", "id": 1, "lat": 1, "lon": 2, "tags": {}}) is None
    assert transform.to_candidate({"type": "node", "id": 1, "tags": {"name": "Solar"}}) is None


def test_dedupe_keeps_first_occurrence():
    first = InstallerCandidate(name="Sunny Solar", latitude=10.0, longitude=20.0, external_id="node/1")
    near_dup = InstallerCandidate(name="SUNNY SOLAR", latitude=10.0005, longitude=20.0004, external_id="node/2")
    far = InstallerCandidate(name="Sunny Solar", latitude=10.01, longitude=20.0)

    result = transform.dedupe_candidates([first, near_dup, far])

    assert result == [first, far]


def test_parse_elements_filters_and_dedupes():
    payload = {
        "elements": [
            {"type": "node", "id": 1, "lat": 10.0, "lon": 20.0, "tags": {"name": "Sunny Solar"}},
            {"type": "node", "id": 2, "lat": 10.0002, "lon": 20.0002, "tags": {"name": "sunny solar"}},
            {"type": "node", "id": 3, "lat": 11.0, "lon": 21.0, "tags": {"craft": "solar"}},
        ]
    }

    candidates = transform.parse_elements(payload)

    assert [candidate.external_id for candidate in candidates] == ["node/1"]
    assert transform.parse_elements({}) == []
