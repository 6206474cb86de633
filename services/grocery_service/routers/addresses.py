"""Address endpoints for the signed-in user."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.responses import Envelope, success_response
from libs.db.session import get_async_db
from services.grocery_service.schemas import (
    AddressCreate,
    AddressDeleteResponse,
    AddressResponse,
    AddressUpdate,
)
from services.grocery_service.services import address_registry
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/address", tags=["addresses"])


@router.post(
    "",
    response_model=Envelope[AddressResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_address(
    payload: AddressCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Save an address. Rejected unless an active store delivers there."""
    address = await address_registry.create_address(
        db, user_id=current_user.user_id, fields=payload.model_dump()
    )
    return success_response(
        "Address created successfully", AddressResponse.model_validate(address)
    )


@router.get("", response_model=Envelope[list[AddressResponse]])
async def list_my_addresses(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    addresses = await address_registry.list_addresses(
        db, user_id=current_user.user_id
    )
    return success_response(
        "Addresses fetched successfully",
        [AddressResponse.model_validate(address) for address in addresses],
    )


@router.get("/{address_id}", response_model=Envelope[AddressResponse])
async def get_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    address = await address_registry.get_owned_address(
        db, address_id, user_id=current_user.user_id
    )
    return success_response(
        "Address fetched successfully", AddressResponse.model_validate(address)
    )


@router.patch("/{address_id}", response_model=Envelope[AddressResponse])
async def update_address(
    address_id: uuid.UUID,
    payload: AddressUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    address = await address_registry.update_address(
        db,
        address_id,
        user_id=current_user.user_id,
        patch=payload.model_dump(exclude_unset=True),
    )
    return success_response(
        "Address updated successfully", AddressResponse.model_validate(address)
    )


@router.delete("/{address_id}", response_model=Envelope[AddressDeleteResponse])
async def delete_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    promoted = await address_registry.delete_address(
        db, address_id, user_id=current_user.user_id
    )
    return success_response(
        "Address deleted successfully",
        AddressDeleteResponse(
            deleted_id=address_id,
            promoted_default_id=promoted.id if promoted else None,
        ),
    )


@router.patch("/{address_id}/set-default", response_model=Envelope[AddressResponse])
async def set_default_address(
    address_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    address = await address_registry.set_default_address(
        db, address_id, user_id=current_user.user_id
    )
    return success_response(
        "Default address updated successfully",
        AddressResponse.model_validate(address),
    )
