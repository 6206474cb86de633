"""Per-store stock and price records plus their audit trail."""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.grocery_service.models.enums import InventoryMovementType, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# INVENTORY MODELS
# ============================================================================


class InventoryRecord(Base):
    """Stock level and selling price of one product in one store."""

    __tablename__ = "grocery_inventory"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grocery_stores.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grocery_products.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    stock: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    selling_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=0, server_default="0", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_grocery_inventory_store_product"),
        CheckConstraint("stock >= 0", name="stock_non_negative"),
        CheckConstraint("selling_price > 0", name="price_positive"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="discount_in_range",
        ),
    )

    # Relationships
    product = relationship("Product")
    movements = relationship(
        "InventoryMovement",
        back_populates="inventory_record",
        cascade="all, delete-orphan",
    )

    @property
    def final_price(self) -> Decimal:
        """Selling price after discount, rounded to paise."""
        factor = (Decimal("100") - Decimal(self.discount_percentage)) / Decimal("100")
        return (Decimal(self.selling_price) * factor).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    def __repr__(self):
        return f"<InventoryRecord store={self.store_id} product={self.product_id} stock={self.stock}>"


class InventoryMovement(Base):
    """Audit trail for stock changes."""

    __tablename__ = "grocery_inventory_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    inventory_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grocery_inventory.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    movement_type: Mapped[InventoryMovementType] = mapped_column(
        SAEnum(
            InventoryMovementType,
            values_callable=enum_values,
            name="grocery_inventory_movement_type_enum",
        ),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False
    )  # Positive = add, negative = subtract
    stock_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_type: Mapped[Optional[str]] = mapped_column(
        String(30), nullable=True
    )  # order, manual, upsert
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    # Relationships
    inventory_record = relationship("InventoryRecord", back_populates="movements")

    def __repr__(self):
        return f"<InventoryMovement {self.movement_type} qty={self.quantity}>"
