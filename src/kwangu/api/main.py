# src/kwangu/api/main.py
"""
Monitoring and job-trigger API over the staging table.

Run:
    uvicorn kwangu.api.main:app --reload
"""
import logging
import math
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kwangu.config import settings
from kwangu.db.repository import ExternalListingRepository
from kwangu.scrapers.registry import SCRAPER_REGISTRY, list_sites

from . import schemas
from .db import get_db, get_session_factory
from .jobs import JobConflict, jobs, run_crawl_job, run_import_job

logger = logging.getLogger(__name__)

MAX_PAGES = schemas.MAX_PAGES

app = FastAPI(title="Kwangu Listings Pipeline API", version="1.0")


def _job_out(job) -> schemas.JobOut:
    return schemas.JobOut(
        process_id=job.id,
        kind=job.kind,
        status=job.status,
        is_complete=job.is_complete,
        start_time=job.started_at,
        end_time=job.finished_at,
        config=job.config,
        result=job.result,
        logs=[schemas.JobLog(**entry) for entry in job.logs],
    )


# ------------------------------------------------------------
# Health check
# ------------------------------------------------------------
@app.get("/health")
def health_check():
    return {"status": "ok"}


# ------------------------------------------------------------
# Staging statistics
# ------------------------------------------------------------
@app.get("/scraping/status", response_model=schemas.ScrapingStatus, response_model_by_alias=True)
def scraping_status(db: Session = Depends(get_db)):
    try:
        stats = ExternalListingRepository(db).stats()
    except SQLAlchemyError as e:
        logger.exception("Error reading staging stats.")
        raise HTTPException(status_code=500, detail=f"Failed to read status: {e}")

    running = [j.id for j in jobs.active("crawl")]
    return schemas.ScrapingStatus(
        total_listings=stats["total"],
        imported_listings=stats["imported"],
        pending_listings=stats["pending"],
        failed_listings=stats["failed"],
        stats=[schemas.SourceStat(**s) for s in stats["sources"]],
        active_scrapers=running,
        is_scraping=bool(running),
    )


# ------------------------------------------------------------
# Recent staged listings
# ------------------------------------------------------------
@app.get("/scraping/listings", response_model=schemas.StagedListingPage, response_model_by_alias=True)
def scraping_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    source: Optional[str] = None,
    imported: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    try:
        rows, total = ExternalListingRepository(db).page(page, limit, source=source, imported=imported)
    except SQLAlchemyError as e:
        logger.exception("Error fetching staged listings.")
        raise HTTPException(status_code=500, detail=f"Failed to fetch listings: {e}")

    return schemas.StagedListingPage(
        listings=[schemas.StagedListingOut.model_validate(r) for r in rows],
        pagination=schemas.Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0
        ),
    )


# ------------------------------------------------------------
# Crawl configuration
# ------------------------------------------------------------
@app.get("/scraping/config", response_model=schemas.ScrapingConfig, response_model_by_alias=True)
def scraping_config():
    return schemas.ScrapingConfig(
        available_sites=list_sites(settings.scrape_sites),
        default_pages=settings.SCRAPE_PAGES,
        max_pages=MAX_PAGES,
    )


# ------------------------------------------------------------
# Crawl jobs
# ------------------------------------------------------------
@app.post("/scraping/start", response_model=schemas.JobStarted, response_model_by_alias=True,
          status_code=202)
def start_scraping(
    background: BackgroundTasks,
    req: Optional[schemas.StartRequest] = None,
    session_factory=Depends(get_session_factory),
):
    req = req or schemas.StartRequest()
    sites = req.sites or settings.scrape_sites
    unknown = [s for s in sites if s not in SCRAPER_REGISTRY]
    if unknown:
        valid = ", ".join(sorted(SCRAPER_REGISTRY))
        raise HTTPException(status_code=400, detail=f"Unknown site(s): {', '.join(unknown)}. Valid sites: {valid}")

    config = {
        "sites": sites,
        "pages": req.pages or settings.SCRAPE_PAGES,
        "dry_run": req.dry_run,
    }
    try:
        job = jobs.start("crawl", config, exclusive=True)
    except JobConflict:
        raise HTTPException(status_code=400, detail="Scraping already in progress")

    background.add_task(run_crawl_job, job, session_factory)
    logger.info("Crawl job %s queued: %s", job.id, config)
    return schemas.JobStarted(process_id=job.id, message="Scraping started", config=config)


@app.post("/scraping/stop", response_model=schemas.StopResult, response_model_by_alias=True)
async def stop_scraping(req: Optional[schemas.StopRequest] = None):
    # async so task.cancel() runs on the loop that owns the crawl task
    process_id = req.process_id if req else None
    try:
        stopped = jobs.stop(process_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Process not found")

    message = "Scraping stopped" if process_id else "All scraping processes stopped"
    return schemas.StopResult(message=message, stopped=stopped)


@app.get("/scraping/logs/{process_id}", response_model=schemas.JobOut, response_model_by_alias=True)
def scraping_logs(process_id: str):
    job = jobs.get(process_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Process not found")
    return _job_out(job)


# ------------------------------------------------------------
# Import job
# ------------------------------------------------------------
@app.post("/scraping/import", response_model=schemas.JobStarted, response_model_by_alias=True,
          status_code=202)
def start_import(
    background: BackgroundTasks,
    req: Optional[schemas.ImportRequest] = None,
    session_factory=Depends(get_session_factory),
):
    req = req or schemas.ImportRequest()
    config = {"batch_size": req.batch_size}
    job = jobs.start("import", config)
    background.add_task(run_import_job, job, session_factory)
    logger.info("Import job %s queued: batch_size=%d", job.id, req.batch_size)
    return schemas.JobStarted(process_id=job.id, message="Import process started", config=config)
