from installer_pipeline.etl import reference_links


def test_generate_all_links_for_located_installer():
    links = reference_links.generate_all_links(
        "Sun & Co", city="Austin", state="tx", phone="+1 512-555-0100", website="sunco.example"
    )
    kinds = [link.kind for link in links]
    urls = [link.url for link in links]

    assert kinds[:4] == ["GOOGLE", "YELP", "BBB", "FACEBOOK"]
    assert "NABCEP" in kinds
    assert "Sun%20%26%20Co" in urls[0]
    assert reference_links.LICENSING_BOARDS["TX"][0] in urls
    assert reference_links.SEIA_URL in urls
    assert "https://www.txsolar.org/members" in urls
    assert "https://sunco.example" in urls
    assert "tel:+1 512-555-0100" in urls
    assert len(urls) == len(set(urls))


def test_name_only_installer_gets_minimal_links():
    links = reference_links.generate_all_links("Solar Guys")

    assert [link.url for link in links] == [reference_links.NABCEP_URL, reference_links.SEIA_URL]


def test_phone_link_requires_us_length():
    assert reference_links.create_phone_link("12345") is None
    assert reference_links.create_phone_link("(512) 555-0100").url == "tel:(512) 555-0100"
    assert reference_links.create_website_link("http://a.example").url == "http://a.example"
    assert reference_links.create_website_link("  ") is None
