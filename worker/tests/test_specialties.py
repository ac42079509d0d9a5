from installer_pipeline.etl import specialties


def test_powerwall_maps_to_battery_backup():
    assert "battery_backup" in specialties.classify("we install tesla powerwall systems")


def test_plain_page_has_no_specialties():
    assert specialties.classify("plain static page with no content") == frozenset()
    assert specialties.classify("") == frozenset()


def test_classify_is_deterministic_and_case_insensitive():
    text = "Commercial solar, EV Charging and standing seam METAL ROOF work"
    first = specialties.classify(text)
    second = specialties.classify(text)

    assert first == second
    assert {"commercial_pv", "ev_charger", "metal_roof"} <= first


def test_vocabulary_matches_keyword_table():
    slugs = {specialty.slug for specialty in specialties.SPECIALTIES}
    assert slugs == set(specialties.SPECIALTY_KEYWORDS)
    assert len(slugs) == 16
    assert "powerwall" in specialties.keywords_for("battery_backup")
    assert specialties.keywords_for("unknown") == ()
