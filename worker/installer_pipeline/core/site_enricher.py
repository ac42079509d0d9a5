"""Polite homepage crawling used to detect installer specialties."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import List, Optional
from urllib import robotparser
from urllib.parse import urlparse, urlunparse

import requests
from bs4 import BeautifulSoup

from installer_pipeline.core.config import SERVICE_WEBSITE, Settings, get_settings
from installer_pipeline.core.rate_limiter import RateLimiter
from installer_pipeline.etl.specialties import classify
from installer_pipeline.models import EnrichmentResult, PortfolioProject

logger = logging.getLogger(__name__)

ROBOTS_DENIED_ERROR = "Robots.txt disallows crawling"
NOT_HTML_ERROR = "Not an HTML page"
MISSING_URL_ERROR = "No website URL provided"

_WHITESPACE_REGEX = re.compile(r"\s+")
SYSTEM_SIZE_REGEX = re.compile(r"(\d+(?:\.\d+)?)\s*kW", re.IGNORECASE)

PORTFOLIO_HEADING_REGEX = re.compile(r"portfolio|projects|case studies", re.IGNORECASE)
PORTFOLIO_SECTION_SELECTOR = ".portfolio, .projects, .case-studies"
PORTFOLIO_ITEM_SELECTOR = ".project, .portfolio-item, .case-study, article, .card"


@dataclass
class CrawlResult:
    url: Optional[str]
    text: Optional[str] = None
    error: Optional[str] = None
    denied: bool = False
    portfolio: List[PortfolioProject] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.text is not None and self.error is None


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Normalise raw website strings into absolute URLs, defaulting to https."""

    if not raw_url:
        return None

    url = raw_url.strip()
    if not url:
        return None

    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"

    parsed = urlparse(url)
    if not parsed.netloc:
        return None

    return urlunparse(parsed._replace(path=parsed.path or "/", fragment=""))


def robots_agent(user_agent: Optional[str]) -> str:
    """Product token of a User-Agent header, the name robots.txt groups are matched against."""

    token = (user_agent or "").strip().split("/", 1)[0].strip()
    return token.split()[0] if token else "*"


def _clean(text: str) -> str:
    return _WHITESPACE_REGEX.sub(" ", text).strip()


def _visible_text(soup: BeautifulSoup) -> str:
    for node in soup(["script", "style"]):
        node.decompose()
    return _clean(soup.get_text(" ")).lower()


def extract_text(html: str) -> str:
    """Visible page text: scripts and styles dropped, whitespace collapsed, lowercased."""

    return _visible_text(BeautifulSoup(html or "", "html.parser"))


def _portfolio_sections(soup: BeautifulSoup) -> list:
    sections = []
    for heading in soup.find_all(["h2", "h3"]):
        if PORTFOLIO_HEADING_REGEX.search(heading.get_text(" ")):
            sibling = heading.find_next_sibling()
            if sibling is not None:
                sections.append(sibling)
    sections.extend(soup.select(PORTFOLIO_SECTION_SELECTOR))
    return sections


def extract_portfolio(soup: BeautifulSoup, location: Optional[str] = None) -> List[PortfolioProject]:
    """Project cards under a portfolio heading or section; each needs a title and a description."""

    projects: List[PortfolioProject] = []
    seen = set()
    for section in _portfolio_sections(soup):
        for item in section.select(PORTFOLIO_ITEM_SELECTOR):
            if id(item) in seen:
                continue
            seen.add(id(item))

            title_node = item.select_one("h3, h4, .title")
            description_node = item.select_one("p, .description")
            title = _clean(title_node.get_text(" ")) if title_node else ""
            description = _clean(description_node.get_text(" ")) if description_node else ""
            if not title or not description:
                continue

            match = SYSTEM_SIZE_REGEX.search(item.get_text(" "))
            projects.append(
                PortfolioProject(
                    title=title,
                    description=description,
                    system_size_kw=float(match.group(1)) if match else None,
                    location=location,
                )
            )
    return projects


class WebsiteCrawler:
    """Fetch one homepage per installer, honouring robots.txt and the rate limiter."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.limiter = limiter or RateLimiter(self.settings.rate_limits())
        self.robots_agent = robots_agent(self.settings.user_agent)
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.settings.user_agent)
        self.session.headers.setdefault("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")
        self.session.headers.setdefault("Accept-Language", "en-US,en;q=0.5")

    def is_allowed_by_robots(self, url: str) -> bool:
        """A missing or unreadable robots.txt allows crawling."""

        parsed = urlparse(url)
        robots_url = urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))
        try:
            response = self.session.get(robots_url, timeout=self.settings.robots_timeout)
        except requests.RequestException as exc:
            logger.debug("Unable to read robots.txt from %s: %s", robots_url, exc)
            return True

        if response.status_code != 200:
            logger.debug("No robots.txt at %s (status=%s)", robots_url, response.status_code)
            return True

        parser_obj = robotparser.RobotFileParser()
        parser_obj.set_url(robots_url)
        parser_obj.parse(response.text.splitlines())
        allowed = parser_obj.can_fetch(self.robots_agent, url)
        if not allowed:
            logger.info("Robots.txt disallows %s", url)
        return allowed

    def fetch_html(self, url: str) -> CrawlResult:
        self.limiter.acquire(SERVICE_WEBSITE)
        try:
            response = self.session.get(url, timeout=self.settings.crawl_timeout, allow_redirects=True)
        except requests.RequestException as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
            return CrawlResult(url=url, error=str(exc) or exc.__class__.__name__)

        if not 200 <= response.status_code < 300:
            return CrawlResult(url=url, error=f"HTTP {response.status_code}: {response.reason}")

        content_type = response.headers.get("Content-Type", "").lower()
        if "text/html" not in content_type:
            logger.debug("Skipping non-HTML content at %s (content-type=%s)", url, content_type)
            return CrawlResult(url=url, error=NOT_HTML_ERROR)

        soup = BeautifulSoup(response.text or "", "html.parser")
        portfolio = extract_portfolio(soup)
        return CrawlResult(url=response.url or url, text=_visible_text(soup), portfolio=portfolio)

    def crawl(self, website: Optional[str]) -> CrawlResult:
        url = sanitize_website(website)
        if not url:
            return CrawlResult(url=None, error=MISSING_URL_ERROR)

        if not self.is_allowed_by_robots(url):
            return CrawlResult(url=url, error=ROBOTS_DENIED_ERROR, denied=True)

        return self.fetch_html(url)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "WebsiteCrawler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.close()


def enrich_website(
    website: Optional[str],
    crawler: WebsiteCrawler,
    *,
    location: Optional[str] = None,
) -> EnrichmentResult:
    """Crawl ``website``, classify its text and keep any portfolio it lists. Never raises on crawl failures."""

    crawled = crawler.crawl(website)
    if not crawled.success:
        return EnrichmentResult(success=False, error=crawled.error, denied=crawled.denied)

    specialties = sorted(classify(crawled.text or ""))
    portfolio = [replace(project, location=project.location or location) for project in crawled.portfolio]
    logger.info(
        "Found %d specialties and %d portfolio projects on %s: %s",
        len(specialties),
        len(portfolio),
        crawled.url,
        ", ".join(specialties),
    )
    return EnrichmentResult(specialties=specialties, success=True, portfolio=portfolio)
