# src/kwangu/api/db.py
from typing import Generator

from sqlalchemy.orm import Session

from kwangu.db.base import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a SQLAlchemy Session and ensures it is closed.
    Usage:
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory handed to background jobs, which outlive the request session."""
    return SessionLocal
