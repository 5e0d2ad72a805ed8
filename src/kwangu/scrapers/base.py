"""
Base class for site adapters.

A site adapter knows one source site: which listing URLs to try for a page
number, which CSS selectors find listing cards, and how to pull fields out of
a card. Everything else (paging, static/rendered fallback, selector fallback,
candidate validation, outcome reporting) lives here.
"""
from __future__ import annotations

import logging
from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from kwangu.scrapers import extract
from kwangu.scrapers.http import fetch_html
from kwangu.scrapers.render import fetch_rendered_html
from kwangu.schemas import ListingCandidate

logger = logging.getLogger(__name__)

StaticFetch = Callable[[str], Awaitable[str]]
RenderedFetch = Callable[..., Awaitable[str]]

RAW_HTML_LIMIT = 4000


class OutcomeStatus(Enum):
    OK = "ok"            # cards found and at least one listing accepted
    SKIPPED = "skipped"  # page loaded but nothing usable on it
    FAILED = "failed"    # page could not be fetched at all


@dataclass
class PageOutcome:
    url: str
    page: int
    status: OutcomeStatus
    listings: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SiteReport:
    source: str
    listings: List[ListingCandidate] = field(default_factory=list)
    outcomes: List[PageOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    @property
    def broken(self) -> bool:
        """Every URL we tried failed to load: the site is down or blocking us."""
        return bool(self.outcomes) and self.failed == len(self.outcomes)

    def summary(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "listings": len(self.listings),
            "ok": sum(1 for o in self.outcomes if o.status is OutcomeStatus.OK),
            "skipped": sum(1 for o in self.outcomes if o.status is OutcomeStatus.SKIPPED),
            "failed": self.failed,
        }


@dataclass(frozen=True)
class UrlTemplate:
    """A listing index URL with `{page}` placeholder and what it lists."""
    pattern: str
    listing_type: Optional[str] = None
    property_type: Optional[str] = None

    def format(self, base_url: str, page: int) -> str:
        return base_url.rstrip("/") + self.pattern.format(page=page)


class ScrapeSource(ABC):
    """Common fetch-and-parse contract for one source site."""

    key: str = ""
    base_url: str = ""
    url_templates: Sequence[UrlTemplate] = ()
    card_selectors: Sequence[str] = ()
    title_selectors: Sequence[str] = ("h2", "h3", "h4", ".title", '[class*="title"]')
    price_selectors: Sequence[str] = ('[class*="price"]', ".price", ".amount", '[class*="amount"]')
    location_selectors: Sequence[str] = ('[class*="location"]', '[class*="address"]', '[class*="region"]')
    description_selectors: Sequence[str] = ('[class*="description"]', '[class*="desc"]')
    agent_selectors: Sequence[str] = ('[class*="agent"]', '[class*="agency"]', '[class*="seller"]')
    source_id_attrs: Sequence[str] = ("data-ad-id", "data-listing-id", "data-id")

    # rendered fallback options
    render_wait_selector: Optional[str] = "a"
    render_wait_for_network: bool = False

    # keep only the first accepted image per card
    single_image: bool = False

    def __init__(
        self,
        fetch_static: Optional[StaticFetch] = None,
        fetch_rendered: Optional[RenderedFetch] = None,
    ):
        self.fetch_static = fetch_static or fetch_html
        self.fetch_rendered = fetch_rendered or fetch_rendered_html
        self.logger = logging.getLogger(f"{__name__}.{self.key}")

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def scrape(self, pages: int = 1, since: Optional[str] = None) -> List[ListingCandidate]:
        report = await self.scrape_report(pages=pages, since=since)
        return report.listings

    async def scrape_report(self, pages: int = 1, since: Optional[str] = None) -> SiteReport:
        # `since` is accepted for interface parity; no source supports date filters yet
        report = SiteReport(source=self.key)
        for page in range(1, pages + 1):
            page_listings = await self._scrape_page(page, report)
            report.listings.extend(page_listings)
            if not page_listings:
                self.logger.info("%s: page %d yielded nothing, stopping", self.key, page)
                break
        return report

    # ------------------------------------------------------------------
    # fetching
    # ------------------------------------------------------------------
    async def fetch_page(self, url: str) -> str:
        """Static GET first; any failure falls back to a rendered fetch."""
        try:
            return await self.fetch_static(url)
        except Exception as e:
            self.logger.debug("Static fetch failed for %s (%s); rendering", url, e)
        return await self.fetch_rendered(
            url,
            wait_selector=self.render_wait_selector,
            wait_for_network=self.render_wait_for_network,
        )

    async def _scrape_page(self, page: int, report: SiteReport) -> List[ListingCandidate]:
        for template in self.url_templates:
            url = template.format(self.base_url, page)
            try:
                html = await self.fetch_page(url)
            except Exception as e:
                self.logger.warning("%s failed to scrape %s: %s", self.key, url, e)
                report.outcomes.append(
                    PageOutcome(url=url, page=page, status=OutcomeStatus.FAILED, error=str(e))
                )
                continue

            cards, selector = self.select_cards(BeautifulSoup(html, "lxml"))
            if not cards:
                report.outcomes.append(
                    PageOutcome(url=url, page=page, status=OutcomeStatus.SKIPPED,
                                reason="no card selector matched")
                )
                continue

            self.logger.info("%s: found %d cards with selector %s", self.key, len(cards), selector)
            listings = self.parse_cards(cards, template)
            report.outcomes.append(
                PageOutcome(
                    url=url,
                    page=page,
                    status=OutcomeStatus.OK if listings else OutcomeStatus.SKIPPED,
                    listings=len(listings),
                    reason=None if listings else "cards had no url/title",
                )
            )
            # cards found: don't try the remaining templates for this page
            return listings
        return []

    # ------------------------------------------------------------------
    # parsing
    # ------------------------------------------------------------------
    def select_cards(self, soup: BeautifulSoup) -> tuple[List[Tag], Optional[str]]:
        """First selector with at least one match wins."""
        for selector in self.card_selectors:
            cards = soup.select(selector)
            if cards:
                return cards, selector
        return [], None

    def parse_page(self, html: str, template: Optional[UrlTemplate] = None) -> List[ListingCandidate]:
        cards, _ = self.select_cards(BeautifulSoup(html, "lxml"))
        return self.parse_cards(cards, template)

    def parse_cards(self, cards: List[Tag], template: Optional[UrlTemplate]) -> List[ListingCandidate]:
        listings: List[ListingCandidate] = []
        for card in cards:
            candidate = self.parse_card(card, template)
            if candidate is not None:
                listings.append(candidate)
        return listings

    def parse_card(self, card: Tag, template: Optional[UrlTemplate] = None) -> Optional[ListingCandidate]:
        """Build a candidate from one card; None if it has no url or no title."""
        fields = self.extract_fields(card)
        if template is not None:
            fields["listing_type"] = fields.get("listing_type") or template.listing_type
            fields["property_type"] = fields.get("property_type") or template.property_type

        if not fields.get("url") or not fields.get("title"):
            self.logger.debug("%s card rejected - missing url or title", self.key)
            return None

        self.logger.debug("%s parsed card: %s | %s | %s",
                          self.key, fields["url"], fields["title"], fields.get("price"))
        return ListingCandidate(source=self.key, **fields)

    def extract_fields(self, card: Tag) -> Dict[str, Any]:
        text = extract.card_text(card)
        link = card.find("a", href=True)
        url = extract.absolute_url(self.base_url, link["href"] if link else None)

        price_text = extract.first_text(card, self.price_selectors)
        address = extract.first_text(card, self.location_selectors)
        description = extract.first_text(card, self.description_selectors)
        agent_name = extract.first_text(card, self.agent_selectors)

        return {
            "source_id": self.extract_source_id(card),
            "url": url,
            "title": extract.first_text(card, self.title_selectors),
            "price": price_text,
            "bedrooms": extract.extract_bedrooms(text),
            "bathrooms": extract.extract_bathrooms(text),
            "area": extract.extract_area_sqft(text),
            "address": address,
            "city": extract.guess_city(address, text),
            "images": self.extract_images(card),
            "raw": {
                "price_text": price_text,
                "description": description,
                "agent_name": agent_name,
                "html": str(card)[:RAW_HTML_LIMIT],
            },
        }

    def extract_source_id(self, card: Tag) -> Optional[str]:
        for attr in self.source_id_attrs:
            value = card.get(attr)
            if value:
                return str(value).strip()
        return None

    def extract_images(self, card: Tag) -> List[str]:
        images: List[str] = []
        for img in card.find_all("img"):
            src = extract.image_src(img)
            if src and self.is_property_image(src, img.get("alt") or ""):
                images.append(extract.absolute_url(self.base_url, src) or src)
                if self.single_image:
                    break
        return extract.unique(images)

    def is_property_image(self, src: str, alt: str) -> bool:
        return extract.looks_like_property_image(src, alt)
