# src/kwangu/db/models.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON, BigInteger, Boolean, DateTime, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# use a relative import so the package works when run with --app-dir src
from .base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StagingStatus:
    PENDING = "pending"
    NORMALIZED = "normalized"
    FAILED = "failed"


class ExternalListing(Base):
    """Raw listing captured from a source site; `url` is the natural key."""

    __tablename__ = "external_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(1024), unique=True, index=True, nullable=False)

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # free text until normalized
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    area: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    images: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    listing_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    normalized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    imported: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=StagingStatus.PENDING, nullable=False)
    last_attempted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    property: Mapped[Optional["Property"]] = relationship(
        "Property",
        back_populates="external_listing",
        uselist=False,
        lazy="selectin",
    )


class Property(Base):
    """Marketplace listing. Rows created by the CRUD API have no external listing."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    external_listing_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("external_listings.id", ondelete="SET NULL"), unique=True, nullable=True
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    price_per_sqft: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    area: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    address: Mapped[str] = mapped_column(Text, default="", nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[str] = mapped_column(String(120), nullable=False)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    images: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    listing_type: Mapped[str] = mapped_column(Text, default="For Sale", nullable=False)
    property_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    days_on_market: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    agent: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    features: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    schools: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    similar_properties: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    price_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    external_listing: Mapped[Optional["ExternalListing"]] = relationship(
        "ExternalListing", back_populates="property", lazy="selectin"
    )
