"""Address registry: per-user delivery addresses with a single default.

Every user with at least one address has exactly one default. The partial
unique index ``uq_grocery_addresses_one_default`` guards the "at most one"
half in the database; the operations below keep the "at least one" half.
"""

import uuid
from typing import Any, Optional

from libs.common.errors import Forbidden, NotFound, ValidationError
from libs.common.logging import get_logger
from services.grocery_service.models import Address
from services.grocery_service.services.geo_index import validate_coordinates
from services.grocery_service.services.serviceability import ensure_serviceable
from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "tag",
        "house_details",
        "apartment_name",
        "street",
        "landmark",
        "city",
        "state",
        "pincode",
        "is_verified",
        "delivery_instructions",
    }
)
REQUIRED_FIELDS = frozenset(
    {"house_details", "street", "city", "state", "pincode", "coordinates"}
)
NON_NULLABLE_FIELDS = REQUIRED_FIELDS | {"tag", "is_verified"}
# Only changed through set_default_address / delete promotion
PROTECTED_FIELDS = frozenset({"id", "user_id", "is_default"})


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_owned_address(
    db: AsyncSession, address_id: uuid.UUID, *, user_id: str
) -> Address:
    """404 when the address does not exist, 403 when someone else owns it."""
    address = await db.get(Address, address_id, populate_existing=True)
    if not address:
        raise NotFound("Address not found")
    if address.user_id != user_id:
        raise Forbidden("You do not own this address")
    return address


async def list_addresses(db: AsyncSession, *, user_id: str) -> list[Address]:
    """Default first, then newest first."""
    result = await db.execute(
        select(Address)
        .where(Address.user_id == user_id)
        .order_by(
            Address.is_default.desc(), Address.created_at.desc(), Address.id.desc()
        )
    )
    return list(result.scalars().all())


async def get_default_address(db: AsyncSession, *, user_id: str) -> Optional[Address]:
    result = await db.execute(
        select(Address).where(Address.user_id == user_id, Address.is_default.is_(True))
    )
    return result.scalar_one_or_none()


async def _has_default(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(
        select(
            exists().where(Address.user_id == user_id, Address.is_default.is_(True))
        )
    )
    return bool(result.scalar())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_address(
    db: AsyncSession, *, user_id: str, fields: dict[str, Any]
) -> Address:
    """Create an address after the serviceability check.

    The user's first address becomes the default. If a concurrent create
    claimed the default first, the insert is retried as a non-default.
    """
    missing = sorted(name for name in REQUIRED_FIELDS if fields.get(name) is None)
    if missing:
        raise ValidationError(f"Missing required address fields: {', '.join(missing)}")

    lng, lat = validate_coordinates(fields["coordinates"])
    await ensure_serviceable(db, [lng, lat])

    values = {name: fields[name] for name in EDITABLE_FIELDS if name in fields}
    is_default = not await _has_default(db, user_id)

    address = Address(
        user_id=user_id,
        longitude=lng,
        latitude=lat,
        is_default=is_default,
        **values,
    )
    db.add(address)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if not is_default:
            raise
        logger.info("Default address for user %s claimed concurrently", user_id)
        address = Address(
            user_id=user_id,
            longitude=lng,
            latitude=lat,
            is_default=False,
            **values,
        )
        db.add(address)
        await db.commit()

    await db.refresh(address)
    logger.info(
        "Created address %s for user %s (default=%s)",
        address.id,
        user_id,
        address.is_default,
    )
    return address


async def update_address(
    db: AsyncSession,
    address_id: uuid.UUID,
    *,
    user_id: str,
    patch: dict[str, Any],
) -> Address:
    """Apply a partial edit.

    ``user_id`` and ``is_default`` in the patch are ignored. New coordinates
    must still be serviceable.
    """
    address = await get_owned_address(db, address_id, user_id=user_id)

    changes = {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}
    nulled = sorted(
        k for k in NON_NULLABLE_FIELDS if k in changes and changes[k] is None
    )
    if nulled:
        raise ValidationError(f"Fields cannot be empty: {', '.join(nulled)}")

    if "coordinates" in changes:
        lng, lat = validate_coordinates(changes.pop("coordinates"))
        await ensure_serviceable(db, [lng, lat])
        address.longitude, address.latitude = lng, lat

    for name, value in changes.items():
        if name in EDITABLE_FIELDS:
            setattr(address, name, value)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(address)

    logger.info("Updated address %s for user %s", address.id, user_id)
    return address


async def delete_address(
    db: AsyncSession, address_id: uuid.UUID, *, user_id: str
) -> Optional[Address]:
    """Delete an address; promote the newest remaining one if it was the default.

    Delete and promotion commit together. Returns the promoted address, if any.
    """
    address = await get_owned_address(db, address_id, user_id=user_id)
    was_default = address.is_default
    promoted: Optional[Address] = None

    try:
        await db.delete(address)
        # The delete must reach the database before the promotion update
        await db.flush()

        if was_default:
            result = await db.execute(
                select(Address)
                .where(Address.user_id == user_id)
                .order_by(Address.created_at.desc(), Address.id.desc())
                .limit(1)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            promoted = result.scalar_one_or_none()
            if promoted:
                promoted.is_default = True

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deleted address %s for user %s", address_id, user_id)
    if promoted:
        logger.info("Promoted address %s to default for user %s", promoted.id, user_id)
    return promoted


async def set_default_address(
    db: AsyncSession, address_id: uuid.UUID, *, user_id: str
) -> Address:
    """Make ``address_id`` the user's only default in one transaction.

    The user's rows are locked first so concurrent calls serialise; the
    clear runs before the set so the unique index never sees two defaults.
    """
    address = await get_owned_address(db, address_id, user_id=user_id)

    try:
        await db.execute(
            select(Address.id).where(Address.user_id == user_id).with_for_update()
        )
        await db.execute(
            update(Address)
            .where(
                Address.user_id == user_id,
                Address.is_default.is_(True),
                Address.id != address.id,
            )
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            update(Address)
            .where(Address.id == address.id)
            .values(is_default=True)
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(address)
    logger.info("Set address %s as default for user %s", address.id, user_id)
    return address
