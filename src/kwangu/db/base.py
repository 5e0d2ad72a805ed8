from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from ..config import settings


# Base class for all ORM models
class Base(DeclarativeBase):
    pass


# Create the SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=False,            # set to True for raw SQL debugging
    future=True,           # enforce SQLAlchemy 2.x style
    pool_pre_ping=True     # recycle dead connections automatically
)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False
)


@contextmanager
def session_scope(session_factory=SessionLocal):
    """Provide a transactional scope around a series of operations."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection(session_factory=SessionLocal) -> None:
    """Raise if the destination store is unreachable (bad URL, credentials, host down)."""
    with session_scope(session_factory) as session:
        session.execute(text("SELECT 1"))
