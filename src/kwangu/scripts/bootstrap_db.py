"""
Create DB tables from SQLAlchemy models. Safe to re-run (idempotent).
Run as module: python -m kwangu.scripts.bootstrap_db
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from kwangu.db.base import Base, engine
from kwangu.db import models  # noqa: F401  (registers tables on Base.metadata)
from kwangu.logging_setup import setup_logging


def main() -> int:
    setup_logging()
    logger = logging.getLogger("kwangu")

    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        logger.error("Error creating tables: %s", e)
        return 1
    logger.info("Tables created (or already existed): %s", ", ".join(sorted(Base.metadata.tables)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
