from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from kwangu.db.models import ExternalListing, Property, StagingStatus, utcnow
from kwangu.schemas import ListingCandidate, PropertyIn


def _scraped_fields(dto: ListingCandidate) -> Dict[str, Any]:
    """Every column a scrape owns. Missing values are written as None, not skipped."""
    return {
        "source": dto.source,
        "source_id": dto.source_id,
        "title": dto.title,
        "price": dto.price,
        "bedrooms": dto.bedrooms,
        "bathrooms": dto.bathrooms,
        "area": dto.area,
        "address": dto.address,
        "city": dto.city,
        "latitude": dto.latitude,
        "longitude": dto.longitude,
        "images": list(dto.images),
        "listing_type": dto.listing_type,
        "property_type": dto.property_type,
        "raw": dict(dto.raw),
    }


class ExternalListingRepository:
    def __init__(self, session: Session, reimport_on_rescrape: bool = False):
        self.session = session
        self.reimport_on_rescrape = reimport_on_rescrape

    def get_by_url(self, url: str) -> ExternalListing | None:
        return self.session.scalar(select(ExternalListing).where(ExternalListing.url == url))

    def upsert_by_url(self, dto: ListingCandidate) -> Tuple[ExternalListing, bool]:
        """
        Create or update the staged listing keyed by URL.
        A re-scrape overwrites every scraped field, so a value the site dropped becomes NULL.
        Returns (row, created). Note: commit is the caller's responsibility.
        """
        obj = self.get_by_url(dto.url)

        if obj is None:
            obj = ExternalListing(
                url=dto.url,
                **_scraped_fields(dto),
                normalized=False,
                imported=False,
                status=StagingStatus.PENDING,
            )
            self.session.add(obj)
            self.session.flush()
            return obj, True

        for name, value in _scraped_fields(dto).items():
            setattr(obj, name, value)

        if self.reimport_on_rescrape and obj.imported:
            obj.imported = False
            obj.normalized = False
            obj.status = StagingStatus.PENDING

        self.session.flush()
        return obj, False

    def pending(self, limit: int) -> List[ExternalListing]:
        stmt = (
            select(ExternalListing)
            .where(ExternalListing.imported.is_(False))
            .order_by(ExternalListing.created_at.desc(), ExternalListing.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def mark_imported(self, obj: ExternalListing) -> None:
        obj.imported = True
        obj.normalized = True
        obj.status = StagingStatus.NORMALIZED
        obj.last_attempted_at = utcnow()
        obj.last_error = None

    def mark_failed(self, obj: ExternalListing, error: str) -> None:
        obj.status = StagingStatus.FAILED
        obj.last_attempted_at = utcnow()
        obj.last_error = error[:2000]

    def stats(self) -> Dict[str, Any]:
        total = self.session.scalar(select(func.count(ExternalListing.id))) or 0
        imported = self.session.scalar(
            select(func.count(ExternalListing.id)).where(ExternalListing.imported.is_(True))
        ) or 0
        failed = self.session.scalar(
            select(func.count(ExternalListing.id)).where(ExternalListing.status == StagingStatus.FAILED)
        ) or 0
        rows = self.session.execute(
            select(
                ExternalListing.source,
                func.count(ExternalListing.id),
                func.max(ExternalListing.created_at),
            )
            .group_by(ExternalListing.source)
            .order_by(ExternalListing.source)
        ).all()
        return {
            "total": total,
            "imported": imported,
            "pending": total - imported,
            "failed": failed,
            "sources": [
                {"source": source, "count": count, "last_scraped": last}
                for source, count, last in rows
            ],
        }

    def page(
        self,
        page: int,
        limit: int,
        source: Optional[str] = None,
        imported: Optional[bool] = None,
    ) -> Tuple[List[ExternalListing], int]:
        stmt = select(ExternalListing)
        count_stmt = select(func.count(ExternalListing.id))
        if source:
            stmt = stmt.where(ExternalListing.source == source)
            count_stmt = count_stmt.where(ExternalListing.source == source)
        if imported is not None:
            stmt = stmt.where(ExternalListing.imported.is_(imported))
            count_stmt = count_stmt.where(ExternalListing.imported.is_(imported))

        stmt = (
            stmt.order_by(ExternalListing.created_at.desc(), ExternalListing.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = self.session.scalar(count_stmt) or 0
        return list(self.session.scalars(stmt).all()), total


class PropertyRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_external_listing(self, external_listing_id: int) -> Property | None:
        return self.session.scalar(
            select(Property).where(Property.external_listing_id == external_listing_id)
        )

    def upsert_from_staged(self, external_listing_id: int, dto: PropertyIn) -> Property:
        """
        Create or update the property linked to a staged listing (1:1).
        Note: commit is the caller's responsibility.
        """
        data = dto.model_dump()
        obj = self.get_by_external_listing(external_listing_id)
        if obj is None:
            obj = Property(external_listing_id=external_listing_id, **data)
            self.session.add(obj)
        else:
            for key, value in data.items():
                setattr(obj, key, value)

        # Ensure obj.id is populated
        self.session.flush()
        return obj
