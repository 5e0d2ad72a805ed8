"""
Pytest configuration and fixtures for the kwangu tests.
"""

import os
import tempfile
from pathlib import Path

# point settings at a throwaway SQLite file before any kwangu module is imported
_TMP = tempfile.mkdtemp(prefix="kwangu-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/default.db"
os.environ["DRY_RUN"] = "false"
os.environ["BROWSER_POOL_SIZE"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from kwangu.api.db import get_db, get_session_factory
from kwangu.api.jobs import jobs
from kwangu.api.main import app
from kwangu.db.base import Base
from kwangu.db import models  # noqa: F401
from kwangu.schemas import ListingCandidate

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads in the crawl can share it."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'kwangu.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    """Create a test client with database override."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    jobs.clear()
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    jobs.clear()


@pytest.fixture
def load_fixture():
    def _load(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")
    return _load


@pytest.fixture
def make_candidate():
    def _make(url: str = "https://jiji.co.ke/ad/1.html", **overrides) -> ListingCandidate:
        data = {
            "source": "jiji",
            "url": url,
            "title": "2 bedroom apartment in Kilimani",
            "price": "KSh 80,000",
            "bedrooms": 2,
            "bathrooms": 1,
            "address": "Kilimani, Nairobi",
            "city": "Nairobi",
            "images": ["https://pictures-kenya.jijistatic.com/1_1.webp"],
            "raw": {"price_text": "KSh 80,000"},
        }
        data.update(overrides)
        return ListingCandidate(**data)
    return _make
