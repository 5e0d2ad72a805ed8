import asyncio

import pytest

from kwangu.api import jobs as jobs_module
from kwangu.api.jobs import JobConflict, JobRegistry, JobStatus, run_crawl_job, run_import_job

CRAWL_CONFIG = {"sites": ["jiji"], "pages": 1, "dry_run": True}


def test_exclusive_start_conflicts():
    registry = JobRegistry()
    registry.start("crawl", CRAWL_CONFIG, exclusive=True)

    with pytest.raises(JobConflict):
        registry.start("crawl", CRAWL_CONFIG, exclusive=True)
    # imports are not exclusive with crawls
    registry.start("import", {"batch_size": 10})


def test_stop_cancels_running_crawl(monkeypatch, session_factory):
    registry = JobRegistry()

    async def slow_crawl(**kwargs):
        await asyncio.sleep(30)

    monkeypatch.setattr(jobs_module, "crawl", slow_crawl)

    async def go():
        job = registry.start("crawl", CRAWL_CONFIG, exclusive=True)
        runner = asyncio.create_task(run_crawl_job(job, session_factory))
        while job.task is None:
            await asyncio.sleep(0)
        stopped = registry.stop()
        await runner
        return job, stopped

    job, stopped = asyncio.run(go())

    assert stopped == [job.id]
    assert job.status == JobStatus.STOPPED
    assert job.finished_at is not None
    assert registry.active() == []


def test_failed_crawl_is_recorded(monkeypatch, session_factory):
    registry = JobRegistry()

    async def broken_crawl(**kwargs):
        raise RuntimeError("database is down")

    monkeypatch.setattr(jobs_module, "crawl", broken_crawl)
    job = registry.start("crawl", CRAWL_CONFIG)

    asyncio.run(run_crawl_job(job, session_factory))

    assert job.status == JobStatus.FAILED
    assert "database is down" in job.logs[-1]["message"]


def test_failed_import_is_recorded(monkeypatch, session_factory):
    registry = JobRegistry()

    def broken_import(limit, session_factory=None):
        raise RuntimeError("database is down")

    monkeypatch.setattr(jobs_module, "import_batch", broken_import)
    job = registry.start("import", {"batch_size": 5})

    run_import_job(job, session_factory)

    assert job.status == JobStatus.FAILED
    assert job.is_complete


def test_finished_jobs_are_pruned():
    registry = JobRegistry(max_finished=3)
    for _ in range(5):
        job = registry.start("import", {"batch_size": 1})
        job.finish(JobStatus.COMPLETED, "done", "success")

    latest = registry.start("import", {"batch_size": 1})

    assert registry.get(latest.id) is latest
    assert len(registry._jobs) == 3
