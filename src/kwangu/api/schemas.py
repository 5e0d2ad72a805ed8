# src/kwangu/api/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_PAGES = 10

def _camel(name: str) -> str:
    head, *tail = name.split("_")
    return head + "".join(part.title() for part in tail)


class CamelModel(BaseModel):
    # the dashboard reads camelCase keys
    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True, from_attributes=True)


# ------------------------------------------------------------
# /scraping/status
# ------------------------------------------------------------
class SourceStat(CamelModel):
    source: str
    count: int
    last_scraped: Optional[datetime] = None


class ScrapingStatus(CamelModel):
    total_listings: int
    imported_listings: int
    pending_listings: int
    failed_listings: int
    stats: List[SourceStat] = Field(default_factory=list)
    active_scrapers: List[str] = Field(default_factory=list)  # running crawl job ids
    is_scraping: bool = False


# ------------------------------------------------------------
# /scraping/listings
# ------------------------------------------------------------
class StagedListingOut(CamelModel):
    id: int
    source: str
    source_id: Optional[str] = None
    url: str
    title: Optional[str] = None
    price: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    normalized: bool
    imported: bool
    status: str
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class StagedListingPage(BaseModel):
    listings: List[StagedListingOut]
    pagination: Pagination


# ------------------------------------------------------------
# /scraping/config
# ------------------------------------------------------------
class ScrapingConfig(CamelModel):
    available_sites: List[Dict[str, Any]]
    default_pages: int
    max_pages: int


# ------------------------------------------------------------
# Jobs: /scraping/start, /scraping/stop, /scraping/import, /scraping/logs
# ------------------------------------------------------------
class StartRequest(CamelModel):
    sites: Optional[List[str]] = None
    pages: Optional[int] = Field(default=None, ge=1, le=MAX_PAGES)
    dry_run: bool = False


class StopRequest(CamelModel):
    process_id: Optional[str] = None


class ImportRequest(CamelModel):
    batch_size: int = Field(default=100, ge=1, le=1000)


class JobStarted(CamelModel):
    process_id: str
    message: str
    config: Dict[str, Any]


class StopResult(CamelModel):
    message: str
    stopped: List[str]


class JobLog(BaseModel):
    timestamp: datetime
    message: str
    type: str


class JobOut(CamelModel):
    process_id: str
    kind: str
    status: str
    is_complete: bool
    start_time: datetime
    end_time: Optional[datetime] = None
    config: Dict[str, Any]
    result: Optional[Dict[str, Any]] = None
    logs: List[JobLog] = Field(default_factory=list)
