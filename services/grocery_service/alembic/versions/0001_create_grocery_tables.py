"""create grocery tables

Revision ID: 0001_grocery
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_grocery"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

ADDRESS_TAG = sa.Enum("home", "work", "other", name="grocery_address_tag_enum")
MOVEMENT_TYPE = sa.Enum(
    "restock", "sale", "adjustment", "return",
    name="grocery_inventory_movement_type_enum",
)
ORDER_STATUS = sa.Enum(
    "PLACED", "PACKING", "OUT_FOR_DELIVERY", "DELIVERED", "CANCELLED",
    name="grocery_order_status_enum",
)
PAYMENT_STATUS = sa.Enum(
    "PENDING", "PAID", "FAILED", "REFUNDED", name="grocery_payment_status_enum"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema - stores, products, addresses, inventory, carts, orders."""

    op.create_table(
        "grocery_stores",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("service_area", JSON, nullable=False),
        sa.Column("area_min_lng", sa.Float(), nullable=False),
        sa.Column("area_min_lat", sa.Float(), nullable=False),
        sa.Column("area_max_lng", sa.Float(), nullable=False),
        sa.Column("area_max_lat", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180 AND latitude >= -90 AND latitude <= 90",
            name="ck_grocery_stores_location_in_range",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_stores"),
    )
    op.create_index(
        "ix_grocery_stores_service_bbox",
        "grocery_stores",
        ["is_active", "area_min_lng", "area_max_lng", "area_min_lat", "area_max_lat"],
    )
    op.create_index(
        "ix_grocery_stores_location",
        "grocery_stores",
        ["is_active", "longitude", "latitude"],
    )

    op.create_table(
        "grocery_products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("brand", sa.String(length=120), nullable=True),
        sa.Column("uom", sa.String(length=40), nullable=True),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_products"),
    )
    op.create_index("ix_grocery_products_name", "grocery_products", ["name"])

    op.create_table(
        "grocery_addresses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("tag", ADDRESS_TAG, server_default="home", nullable=True),
        sa.Column("house_details", sa.String(length=100), nullable=False),
        sa.Column("apartment_name", sa.String(length=80), nullable=True),
        sa.Column("street", sa.String(length=120), nullable=False),
        sa.Column("landmark", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=50), nullable=False),
        sa.Column("state", sa.String(length=50), nullable=False),
        sa.Column("pincode", sa.String(length=6), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default="false", nullable=True),
        sa.Column("delivery_instructions", sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180 AND latitude >= -90 AND latitude <= 90",
            name="ck_grocery_addresses_coordinates_in_range",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_addresses"),
    )
    op.create_index("ix_grocery_addresses_user_id", "grocery_addresses", ["user_id"])
    op.create_index("ix_grocery_addresses_pincode", "grocery_addresses", ["pincode"])
    op.create_index(
        "ix_grocery_addresses_user_default", "grocery_addresses", ["user_id", "is_default"]
    )
    # At most one default address per user
    op.create_index(
        "uq_grocery_addresses_one_default",
        "grocery_addresses",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default"),
    )

    op.create_table(
        "grocery_inventory",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("store_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("stock", sa.Integer(), server_default="0", nullable=False),
        sa.Column("selling_price", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "discount_percentage", sa.Numeric(5, 2), server_default="0", nullable=False
        ),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_grocery_inventory_stock_non_negative"),
        sa.CheckConstraint("selling_price > 0", name="ck_grocery_inventory_price_positive"),
        sa.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_grocery_inventory_discount_in_range",
        ),
        sa.ForeignKeyConstraint(
            ["store_id"],
            ["grocery_stores.id"],
            name="fk_grocery_inventory_store_id_grocery_stores",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["grocery_products.id"],
            name="fk_grocery_inventory_product_id_grocery_products",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_inventory"),
        sa.UniqueConstraint(
            "store_id", "product_id", name="uq_grocery_inventory_store_product"
        ),
    )
    op.create_index("ix_grocery_inventory_store_id", "grocery_inventory", ["store_id"])
    op.create_index(
        "ix_grocery_inventory_product_id", "grocery_inventory", ["product_id"]
    )

    op.create_table(
        "grocery_inventory_movements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("inventory_id", sa.Uuid(), nullable=False),
        sa.Column("movement_type", MOVEMENT_TYPE, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("stock_after", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(length=30), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["inventory_id"],
            ["grocery_inventory.id"],
            name="fk_grocery_inventory_movements_inventory_id_grocery_inventory",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_inventory_movements"),
    )
    op.create_index(
        "ix_grocery_inventory_movements_inventory_id",
        "grocery_inventory_movements",
        ["inventory_id"],
    )

    op.create_table(
        "grocery_carts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("store_id", sa.Uuid(), nullable=False),
        sa.Column("total_price_estimate", sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["store_id"],
            ["grocery_stores.id"],
            name="fk_grocery_carts_store_id_grocery_stores",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_carts"),
        sa.UniqueConstraint("user_id", name="uq_grocery_carts_user_id"),
    )

    op.create_table(
        "grocery_cart_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("cart_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_grocery_cart_items_positive_quantity"),
        sa.ForeignKeyConstraint(
            ["cart_id"],
            ["grocery_carts.id"],
            name="fk_grocery_cart_items_cart_id_grocery_carts",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["grocery_products.id"],
            name="fk_grocery_cart_items_product_id_grocery_products",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_cart_items"),
        sa.UniqueConstraint(
            "cart_id", "product_id", name="uq_grocery_cart_items_product"
        ),
    )

    op.create_table(
        "grocery_orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_number", sa.String(length=20), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("store_id", sa.Uuid(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("order_status", ORDER_STATUS, server_default="PLACED", nullable=True),
        sa.Column(
            "payment_status", PAYMENT_STATUS, server_default="PENDING", nullable=True
        ),
        sa.Column("delivery_address", JSON, nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_amount > 0", name="ck_grocery_orders_total_positive"),
        sa.ForeignKeyConstraint(
            ["store_id"],
            ["grocery_stores.id"],
            name="fk_grocery_orders_store_id_grocery_stores",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_orders"),
    )
    op.create_index(
        "ix_grocery_orders_order_number", "grocery_orders", ["order_number"], unique=True
    )
    op.create_index("ix_grocery_orders_user_id", "grocery_orders", ["user_id"])
    op.create_index("ix_grocery_orders_store_id", "grocery_orders", ["store_id"])
    op.create_index("ix_grocery_orders_order_status", "grocery_orders", ["order_status"])
    op.create_index(
        "ix_grocery_orders_user_created", "grocery_orders", ["user_id", "created_at"]
    )

    op.create_table(
        "grocery_order_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("image", sa.String(length=500), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_at_purchase", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_item_price", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint(
            "quantity > 0", name="ck_grocery_order_items_positive_quantity"
        ),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["grocery_orders.id"],
            name="fk_grocery_order_items_order_id_grocery_orders",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_grocery_order_items"),
    )


def downgrade() -> None:
    """Downgrade schema - drop grocery tables and enum types."""
    op.drop_table("grocery_order_items")
    op.drop_table("grocery_orders")
    op.drop_table("grocery_cart_items")
    op.drop_table("grocery_carts")
    op.drop_table("grocery_inventory_movements")
    op.drop_table("grocery_inventory")
    op.drop_table("grocery_addresses")
    op.drop_table("grocery_products")
    op.drop_table("grocery_stores")

    bind = op.get_bind()
    for enum_type in (PAYMENT_STATUS, ORDER_STATUS, MOVEMENT_TYPE, ADDRESS_TAG):
        enum_type.drop(bind, checkfirst=True)
