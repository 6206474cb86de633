"""Fulfillment store model: location point and service-area polygon."""

import uuid
from datetime import datetime
from typing import Any

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Store(Base):
    """A dark store.

    ``service_area`` holds GeoJSON polygon rings (``[[[lng, lat], ...], ...]``,
    outer ring first). The ``area_*`` bounding box is derived from it on every
    write and is what the database indexes for serviceability prefiltering.
    """

    __tablename__ = "grocery_stores"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    # Store location (GeoJSON Point, [longitude, latitude])
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)

    service_area: Mapped[list[Any]] = mapped_column(JSONType, nullable=False)
    area_min_lng: Mapped[float] = mapped_column(Float, nullable=False)
    area_min_lat: Mapped[float] = mapped_column(Float, nullable=False)
    area_max_lng: Mapped[float] = mapped_column(Float, nullable=False)
    area_max_lat: Mapped[float] = mapped_column(Float, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "longitude >= -180 AND longitude <= 180 AND latitude >= -90 AND latitude <= 90",
            name="location_in_range",
        ),
        Index(
            "ix_grocery_stores_service_bbox",
            "is_active",
            "area_min_lng",
            "area_max_lng",
            "area_min_lat",
            "area_max_lat",
        ),
        Index("ix_grocery_stores_location", "is_active", "longitude", "latitude"),
    )

    @property
    def location(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}

    @property
    def service_area_geojson(self) -> dict[str, Any]:
        return {"type": "Polygon", "coordinates": self.service_area}

    def __repr__(self):
        return f"<Store {self.name} active={self.is_active}>"
