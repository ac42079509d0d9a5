"""Outbound review, licensing and directory links for a new installer.

Pure string templating; nothing here touches the network.
"""

import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

from installer_pipeline.models import ExternalLink

LICENSING_BOARDS: Dict[str, Tuple[str, str]] = {
    "CA": ("https://www.cslb.ca.gov/OnlineServices/CheckLicenseII/CheckLicense.aspx",
           "California Contractors State License Board"),
    "TX": ("https://www.tdlr.texas.gov/LicenseSearch/", "Texas Department of Licensing and Regulation"),
    "FL": ("https://www.myfloridalicense.com/LicenseDetail.asp",
           "Florida Department of Business and Professional Regulation"),
    "NY": ("https://www.dos.ny.gov/licensing/licensesearch/license_search.html",
           "New York State Department of State"),
    "AZ": ("https://www.azroc.gov/SearchContractor", "Arizona Registrar of Contractors"),
    "NV": ("https://www.nscb.nv.gov/License-Search/", "Nevada State Contractors Board"),
    "CO": ("https://apps.colorado.gov/dora/licensing/lookup/LicenseLookup.aspx",
           "Colorado Department of Regulatory Agencies"),
    "MA": ("https://www.mass.gov/service-details/check-a-license", "Massachusetts Division of Professional Licensure"),
}

STATE_ASSOCIATIONS: Dict[str, Tuple[str, str]] = {
    "CA": ("https://www.calssa.org/directory", "California Solar & Storage Association"),
    "TX": ("https://www.txsolar.org/members", "Texas Solar Power Association"),
    "FL": ("https://www.flasolar.org/members", "Florida Solar Energy Industries Association"),
    "NY": ("https://www.nyseia.org/members", "New York Solar Energy Industries Association"),
    "AZ": ("https://arizonasolar.org/members/", "Arizona Solar Energy Industries Association"),
}

NABCEP_URL = "https://www.nabcep.org/certification/certified-installers/"
SEIA_URL = "https://www.seia.org/solar-business-directory"


def _q(value: str) -> str:
    return quote(value, safe="")


def generate_review_links(name: str, city: Optional[str], state: Optional[str]) -> List[ExternalLink]:
    links: List[ExternalLink] = []
    located = bool(name and city and state)

    if located:
        links.append(ExternalLink(
            "GOOGLE",
            f"https://www.google.com/maps/search/?api=1&query={_q(f'{name} {city} {state} solar installer')}",
            "Google Reviews",
            "Find this installer on Google Maps and read customer reviews",
        ))
        links.append(ExternalLink(
            "YELP",
            f"https://www.yelp.com/search?find_desc={_q(name + ' solar')}&find_loc={_q(f'{city}, {state}')}",
            "Yelp Reviews",
            "Search for this installer on Yelp and read customer experiences",
        ))
        links.append(ExternalLink(
            "BBB",
            f"https://www.bbb.org/search?find_text={_q(name)}&find_loc={_q(f'{city}, {state}')}",
            "BBB Profile",
            "Check Better Business Bureau rating and complaint history",
        ))

    if name and city:
        links.append(ExternalLink(
            "FACEBOOK",
            f"https://www.facebook.com/search/pages/?q={_q(f'{name} {city} solar')}",
            "Facebook Reviews",
            "Find this installer on Facebook and read customer reviews",
        ))

    if name:
        links.append(ExternalLink(
            "NABCEP",
            NABCEP_URL,
            "NABCEP Certification",
            "Check if this installer has NABCEP certified professionals",
        ))

    if located:
        links.append(ExternalLink(
            "OTHER",
            f"https://www.angi.com/search?searchTerm={_q(name + ' solar installer')}&location={_q(f'{city}, {state}')}",
            "Angi Reviews",
            "Search for this installer on Angi (formerly Angie's List)",
        ))
        links.append(ExternalLink(
            "OTHER",
            f"https://www.homeadvisor.com/c.Solar-Energy-Contractors.{_q(f'{city} {state}')}.html"
            f"?searchTerm={_q(name + ' solar')}",
            "HomeAdvisor",
            "Find this installer on HomeAdvisor and read customer reviews",
        ))

    return links


def generate_licensing_links(state: Optional[str]) -> List[ExternalLink]:
    if not state:
        return []
    board = LICENSING_BOARDS.get(state.strip().upper())
    if not board:
        return []
    url, board_name = board
    return [ExternalLink("OTHER", url, "License Verification", f"Verify contractor license with {board_name}")]


def generate_industry_links(state: Optional[str]) -> List[ExternalLink]:
    links = [ExternalLink(
        "OTHER",
        SEIA_URL,
        "SEIA Directory",
        "Check if this installer is a member of the Solar Energy Industries Association",
    )]
    association = STATE_ASSOCIATIONS.get(state.strip().upper()) if state else None
    if association:
        url, association_name = association
        links.append(ExternalLink("OTHER", url, association_name, f"Check membership in {association_name}"))
    return links


def create_website_link(website: Optional[str]) -> Optional[ExternalLink]:
    if not website or not website.strip():
        return None
    url = website.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return ExternalLink("OTHER", url, "Official Website", "Visit the installer's official website")


def create_phone_link(phone: Optional[str]) -> Optional[ExternalLink]:
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    # US numbers only: 10 digits, or 11 with the leading country code.
    if len(digits) not in (10, 11):
        return None
    return ExternalLink("OTHER", f"tel:{phone.strip()}", "Call Now", "Call this installer directly")


def generate_all_links(
    name: str,
    city: Optional[str] = None,
    state: Optional[str] = None,
    phone: Optional[str] = None,
    website: Optional[str] = None,
) -> List[ExternalLink]:
    """Every outbound link for an installer, de-duplicated by URL in generation order."""

    links = (
        generate_review_links(name, city, state)
        + generate_licensing_links(state)
        + generate_industry_links(state)
    )
    for extra in (create_website_link(website), create_phone_link(phone)):
        if extra:
            links.append(extra)

    unique: List[ExternalLink] = []
    seen = set()
    for link in links:
        if link.url not in seen:
            seen.add(link.url)
            unique.append(link)
    return unique
