# src/kwangu/api/jobs.py
"""
In-process record of crawl and import jobs started over the API.

Jobs run as FastAPI background tasks inside the API process. The registry
keeps their state and a short log so /scraping/status and /scraping/logs can
report on them. Nothing here survives a restart.
"""
import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from kwangu.db.models import utcnow
from kwangu.pipelines.crawl import crawl
from kwangu.pipelines.normalize import import_batch

logger = logging.getLogger(__name__)

MAX_FINISHED_JOBS = 50


class JobStatus:
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class JobConflict(Exception):
    """A job of the same kind is already running."""


@dataclass
class Job:
    id: str
    kind: str  # "crawl" | "import"
    config: Dict[str, Any]
    status: str = JobStatus.RUNNING
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    cancel_requested: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        return self.status != JobStatus.RUNNING

    def log(self, message: str, type_: str = "info") -> None:
        self.logs.append({"timestamp": utcnow(), "message": message, "type": type_})

    def finish(self, status: str, message: str, type_: str) -> None:
        if self.is_complete:
            return
        self.status = status
        self.finished_at = utcnow()
        self.log(message, type_)


class JobRegistry:
    def __init__(self, max_finished: int = MAX_FINISHED_JOBS):
        self.max_finished = max_finished
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def start(self, kind: str, config: Dict[str, Any], exclusive: bool = False) -> Job:
        with self._lock:
            if exclusive and any(j.kind == kind and not j.is_complete for j in self._jobs.values()):
                raise JobConflict(f"A {kind} job is already running")
            self._prune()
            job = Job(id=uuid.uuid4().hex[:12], kind=kind, config=config)
            self._jobs[job.id] = job
        job.log(f"{kind.capitalize()} queued with {config}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def active(self, kind: Optional[str] = None) -> List[Job]:
        with self._lock:
            return [
                j for j in self._jobs.values()
                if not j.is_complete and (kind is None or j.kind == kind)
            ]

    def stop(self, job_id: Optional[str] = None) -> List[str]:
        """
        Cancel one running crawl, or every running crawl when no id is given.
        Raises KeyError for an unknown id. Returns the ids that were stopped.
        """
        if job_id is not None:
            job = self.get(job_id)
            if job is None:
                raise KeyError(job_id)
            targets = [job] if not job.is_complete and job.kind == "crawl" else []
        else:
            targets = self.active("crawl")

        for job in targets:
            job.cancel_requested = True
            if job.task is not None and not job.task.done():
                job.task.cancel()
            else:
                # background task has not picked it up yet
                job.finish(JobStatus.STOPPED, "Crawl stopped before it started", "error")
        return [j.id for j in targets]

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _prune(self) -> None:
        finished = sorted(
            (j for j in self._jobs.values() if j.is_complete), key=lambda j: j.started_at
        )
        for job in finished[: max(0, len(finished) - self.max_finished + 1)]:
            del self._jobs[job.id]


jobs = JobRegistry()


async def run_crawl_job(job: Job, session_factory) -> None:
    if job.cancel_requested:
        return
    job.log("Crawl started")
    task = asyncio.create_task(crawl(
        sites=job.config["sites"],
        pages=job.config["pages"],
        dry_run=job.config["dry_run"],
        session_factory=session_factory,
    ))
    job.task = task
    try:
        summary = await task
    except asyncio.CancelledError:
        if not job.cancel_requested:
            raise
        logger.info("Crawl job %s stopped", job.id)
        job.finish(JobStatus.STOPPED, "Crawl stopped", "error")
        return
    except Exception as e:
        logger.exception("Crawl job %s failed", job.id)
        job.finish(JobStatus.FAILED, f"Crawl failed: {e}", "error")
        return

    job.result = {
        "discovered": summary.discovered,
        "unique": summary.unique,
        "saved": summary.saved,
        "created": summary.created,
        "failed": summary.failed,
        "dry_run": summary.dry_run,
        "sites": summary.sites,
    }
    job.finish(
        JobStatus.COMPLETED,
        f"Crawl completed: saved={summary.saved} (new={summary.created}) failed={summary.failed}",
        "success",
    )


def run_import_job(job: Job, session_factory) -> None:
    job.log("Import started")
    try:
        summary = import_batch(job.config["batch_size"], session_factory=session_factory)
    except Exception as e:
        logger.exception("Import job %s failed", job.id)
        job.finish(JobStatus.FAILED, f"Import failed: {e}", "error")
        return

    job.result = {"imported": summary.imported, "total": summary.total, "failed": summary.failed}
    job.finish(
        JobStatus.COMPLETED,
        f"Imported {summary.imported}/{summary.total} listings",
        "success",
    )
