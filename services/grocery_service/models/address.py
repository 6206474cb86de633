"""Customer delivery addresses."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.grocery_service.models.enums import AddressTag, enum_values
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column


class Address(Base):
    """A saved delivery address.

    At most one row per ``user_id`` may have ``is_default`` set; the partial
    unique index enforces it in the database as well.
    """

    __tablename__ = "grocery_addresses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    tag: Mapped[AddressTag] = mapped_column(
        SAEnum(
            AddressTag,
            values_callable=enum_values,
            name="grocery_address_tag_enum",
        ),
        default=AddressTag.HOME,
        server_default="home",
    )
    house_details: Mapped[str] = mapped_column(String(100), nullable=False)
    apartment_name: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    street: Mapped[str] = mapped_column(String(120), nullable=False)
    landmark: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[str] = mapped_column(String(50), nullable=False)
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    pincode: Mapped[str] = mapped_column(String(6), nullable=False, index=True)

    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)

    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )
    delivery_instructions: Mapped[Optional[str]] = mapped_column(
        String(200), nullable=True
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
            name="coordinates_in_range",
        ),
        Index("ix_grocery_addresses_user_default", "user_id", "is_default"),
        Index(
            "uq_grocery_addresses_one_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    @property
    def coordinates(self) -> list[float]:
        return [self.longitude, self.latitude]

    def snapshot(self) -> dict:
        """Copy-by-value view embedded in orders."""
        return {
            "address_id": str(self.id),
            "tag": self.tag.value if self.tag else None,
            "house_details": self.house_details,
            "apartment_name": self.apartment_name,
            "street": self.street,
            "landmark": self.landmark,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "coordinates": [self.longitude, self.latitude],
            "delivery_instructions": self.delivery_instructions,
        }

    def __repr__(self):
        return f"<Address {self.id} user={self.user_id} default={self.is_default}>"
