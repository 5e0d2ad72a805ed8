"""
Crawl all configured sites and stage what they list into external_listings.

Usage:
    python -m kwangu.pipelines.crawl
    SCRAPE_PAGES=3 DRY_RUN=1 kwangu-crawl
"""
from __future__ import annotations

import asyncio
import functools
import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from kwangu.config import settings
from kwangu.db.base import SessionLocal, check_connection, session_scope
from kwangu.db.repository import ExternalListingRepository
from kwangu.logging_setup import setup_logging
from kwangu.pipelines.queue import RateLimitedQueue
from kwangu.schemas import ListingCandidate
from kwangu.scrapers.base import ScrapeSource
from kwangu.scrapers.registry import build_scrapers
from kwangu.scrapers.render import BrowserPool, fetch_rendered_html

logger = logging.getLogger(__name__)

DRY_RUN_SAMPLE = 5


@dataclass
class CrawlSummary:
    discovered: int = 0
    unique: int = 0
    saved: int = 0
    created: int = 0
    failed: int = 0
    dry_run: bool = False
    sites: Dict[str, dict] = field(default_factory=dict)
    sample: List[ListingCandidate] = field(default_factory=list)


def save_listing(listing: ListingCandidate, session_factory=SessionLocal,
                 reimport_on_rescrape: bool = False) -> bool:
    """Upsert one staged listing in its own transaction. Returns True if it was new."""
    with session_scope(session_factory) as session:
        repo = ExternalListingRepository(session, reimport_on_rescrape=reimport_on_rescrape)
        _, created = repo.upsert_by_url(listing)
    return created


async def run_scrapers(
    scrapers: Sequence[ScrapeSource],
    pages: int,
    since: Optional[str],
    summary: CrawlSummary,
) -> List[ListingCandidate]:
    """Run adapters one after another; a failing adapter never stops the others."""
    found: List[ListingCandidate] = []
    for scraper in scrapers:
        try:
            report = await scraper.scrape_report(pages=pages, since=since)
        except Exception as e:
            logger.exception("Scraper %s failed: %s", scraper.key, e)
            summary.sites[scraper.key] = {"source": scraper.key, "listings": 0, "error": str(e)}
            continue

        summary.sites[scraper.key] = report.summary()
        if report.broken:
            logger.error("%s: every URL failed to load (%d attempts)", scraper.key, report.failed)
        elif not report.listings:
            logger.warning("%s: pages loaded but yielded no listings", scraper.key)
        logger.info("Fetched %d listings from %s.", len(report.listings), scraper.key)
        found.extend(report.listings)
    return found


def _log_sample(listings: List[ListingCandidate]) -> None:
    logger.info("Dry-run mode. Total listings found: %d", len(listings))
    for i, listing in enumerate(listings[:DRY_RUN_SAMPLE], start=1):
        logger.info(
            "%d. %s: %s | price=%s | beds=%s baths=%s | %s",
            i, listing.source.upper(), listing.title, listing.price,
            listing.bedrooms, listing.bathrooms, listing.url,
        )


async def crawl(
    sites: Optional[Sequence[str]] = None,
    pages: Optional[int] = None,
    since: Optional[str] = None,
    dry_run: Optional[bool] = None,
    session_factory=SessionLocal,
    scrapers: Optional[Sequence[ScrapeSource]] = None,
    queue: Optional[RateLimitedQueue] = None,
) -> CrawlSummary:
    pages = settings.SCRAPE_PAGES if pages is None else pages
    since = settings.SCRAPE_SINCE if since is None else since
    dry_run = settings.DRY_RUN if dry_run is None else dry_run
    summary = CrawlSummary(dry_run=dry_run)

    if not dry_run:
        # unreachable store is the one error that ends the run
        check_connection(session_factory)

    pool: Optional[BrowserPool] = None
    if scrapers is None:
        fetch_rendered = fetch_rendered_html
        if settings.BROWSER_POOL_SIZE > 0:
            pool = BrowserPool(size=settings.BROWSER_POOL_SIZE)
            fetch_rendered = functools.partial(fetch_rendered_html, pool=pool)
        scrapers = build_scrapers(sites or settings.scrape_sites, fetch_rendered=fetch_rendered)

    try:
        listings = await run_scrapers(scrapers, pages, since, summary)
    finally:
        if pool is not None:
            await pool.close()

    summary.discovered = len(listings)
    by_url = {listing.url: listing for listing in listings}
    unique = list(by_url.values())
    summary.unique = len(unique)

    if dry_run:
        summary.sample = unique[:DRY_RUN_SAMPLE]
        _log_sample(unique)
        return summary

    queue = queue or RateLimitedQueue(
        concurrency=settings.QUEUE_CONCURRENCY,
        interval=settings.QUEUE_INTERVAL,
        interval_cap=settings.QUEUE_INTERVAL_CAP,
    )

    async def _save(listing: ListingCandidate) -> Optional[bool]:
        try:
            return await asyncio.to_thread(
                save_listing, listing, session_factory, settings.REIMPORT_ON_RESCRAPE
            )
        except Exception as e:
            logger.error("Failed saving listing %s: %s", listing.url, e)
            return None

    logger.info("Saving %d listings to external_listings...", len(unique))
    results = await queue.map(_save, unique)
    summary.saved = sum(1 for r in results if r is not None)
    summary.created = sum(1 for r in results if r)
    summary.failed = sum(1 for r in results if r is None)
    logger.info("Done. saved=%d (new=%d) failed=%d", summary.saved, summary.created, summary.failed)
    return summary


def main() -> int:
    setup_logging()
    try:
        asyncio.run(crawl())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except SQLAlchemyError as e:
        logger.error("Destination store unavailable: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
