"""
Normalize staged listings into marketplace properties.

Usage:
    python -m kwangu.pipelines.normalize
    IMPORT_BATCH=500 kwangu-import
"""
from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from kwangu.config import settings
from kwangu.db.base import SessionLocal
from kwangu.db.models import ExternalListing
from kwangu.db.repository import ExternalListingRepository, PropertyRepository
from kwangu.logging_setup import setup_logging
from kwangu.schemas import AgentInfo, PropertyIn

logger = logging.getLogger(__name__)

_NOT_NUMERIC = re.compile(r"[^0-9.]")


@dataclass
class ImportSummary:
    imported: int = 0
    total: int = 0
    failed: int = 0


def parse_price(value: Any) -> int:
    """
    "KSh 1,200,000" -> 1200000. Anything without digits -> 0.
    Several dots are read as thousands separators ("1.200.000").
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(round(value))

    cleaned = _NOT_NUMERIC.sub("", str(value))
    if cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")
    cleaned = cleaned.strip(".")
    if not cleaned:
        return 0
    try:
        return int(round(float(cleaned)))
    except ValueError:
        return 0


def _raw(staged: ExternalListing, key: str) -> Optional[str]:
    raw = staged.raw or {}
    value = raw.get(key)
    return str(value) if value else None


def normalize(staged: ExternalListing, home_country: Optional[str] = None) -> PropertyIn:
    price = parse_price(staged.price)
    area = staged.area or 0
    return PropertyIn(
        title=staged.title or "Property",
        price=price,
        description=_raw(staged, "description") or staged.address or "",
        price_per_sqft=round(price / area, 2) if area > 0 else 0,
        bedrooms=staged.bedrooms or 0,
        bathrooms=staged.bathrooms or 0,
        area=area,
        address=staged.address or "",
        city=staged.city,
        state=home_country or settings.HOME_COUNTRY,
        zip_code=None,
        latitude=staged.latitude or 0.0,
        longitude=staged.longitude or 0.0,
        images=list(staged.images or []),
        listing_type=staged.listing_type or "For Sale",
        property_type=staged.property_type,
        days_on_market=0,
        agent=AgentInfo(
            name=_raw(staged, "agent_name") or "Unknown",
            phone=_raw(staged, "agent_phone") or "",
            email=_raw(staged, "agent_email") or "",
        ),
    )


def import_batch(limit: Optional[int] = None, session_factory=SessionLocal) -> ImportSummary:
    """Import up to `limit` pending staged listings, newest first."""
    limit = settings.IMPORT_BATCH if limit is None else limit
    summary = ImportSummary()

    session = session_factory()
    try:
        staging = ExternalListingRepository(session)
        properties = PropertyRepository(session)

        staged = staging.pending(limit)
        summary.total = len(staged)
        for ex in staged:
            ex_id, url = ex.id, ex.url
            try:
                properties.upsert_from_staged(ex_id, normalize(ex))
                staging.mark_imported(ex)
                session.commit()
                summary.imported += 1
            except Exception as e:
                session.rollback()
                summary.failed += 1
                logger.error("Failed to import listing %s: %s", url, e)
                _record_failure(session, staging, ex_id, str(e))
    finally:
        session.close()

    logger.info("Imported %d/%d listings", summary.imported, summary.total)
    return summary


def _record_failure(session, staging: ExternalListingRepository, ex_id: int, error: str) -> None:
    try:
        ex = session.get(ExternalListing, ex_id)
        if ex is not None:
            staging.mark_failed(ex, error)
            session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning("Could not record failure for listing id=%s: %s", ex_id, e)


def main() -> int:
    setup_logging()
    try:
        import_batch(settings.IMPORT_BATCH)
    except SQLAlchemyError as e:
        logger.error("Destination store unavailable: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
