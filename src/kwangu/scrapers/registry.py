"""Registry of implemented site adapters. Add new sources here."""

import logging
from typing import Dict, Iterable, List, Optional, Type

from kwangu.scrapers.base import ScrapeSource
from kwangu.scrapers.sites.buyrentkenya import BuyRentKenyaScraper
from kwangu.scrapers.sites.jiji import JijiScraper
from kwangu.scrapers.sites.property24 import Property24Scraper

logger = logging.getLogger(__name__)

SCRAPER_REGISTRY: Dict[str, Type[ScrapeSource]] = {
    "buyrentkenya": BuyRentKenyaScraper,
    "property24": Property24Scraper,
    "jiji": JijiScraper,
}

SITE_NAMES = {
    "buyrentkenya": "BuyRentKenya",
    "property24": "Property24 Kenya",
    "jiji": "Jiji.co.ke",
}


def get_scraper_class(key: str) -> Type[ScrapeSource]:
    if key not in SCRAPER_REGISTRY:
        valid = ", ".join(sorted(SCRAPER_REGISTRY))
        raise ValueError(f"Unknown site: '{key}'. Valid sites: {valid}")
    return SCRAPER_REGISTRY[key]


def build_scrapers(keys: Iterable[str], **kwargs) -> List[ScrapeSource]:
    """Instantiate adapters in the given order; unknown keys are logged and skipped."""
    scrapers: List[ScrapeSource] = []
    for key in keys:
        try:
            cls = get_scraper_class(key)
        except ValueError as e:
            logger.warning("%s", e)
            continue
        scrapers.append(cls(**kwargs))
    return scrapers


def list_sites(enabled: Optional[Iterable[str]] = None) -> List[dict]:
    enabled = set(enabled) if enabled is not None else set(SCRAPER_REGISTRY)
    return [
        {
            "id": key,
            "name": SITE_NAMES.get(key, key),
            "status": "active" if key in enabled else "disabled",
        }
        for key in SCRAPER_REGISTRY
    ]
