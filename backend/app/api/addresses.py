"""
Addresses API Endpoints
Nested under /api/users/{user_id}/addresses (Supabase Auth id); a user
manages only their own addresses.

Author: TM3
Date: 2025-10-17
"""
from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_user
from app.core.context import AppContext, get_context
from app.domain.address import AddressCreate, AddressUpdate
from app.domain.user import Principal

router = APIRouter()


@router.get("")
def get_addresses(
    user_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    addresses = context.addresses.get_addresses_by_user(user_id, principal)

    return {
        "success": True,
        "data": [address.to_dict() for address in addresses],
        "count": len(addresses)
    }


@router.get("/{address_id}")
def get_address(
    user_id: str,
    address_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    address = context.addresses.get_address_by_id(address_id, user_id, principal)

    return {
        "success": True,
        "data": address.to_dict()
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_address(
    user_id: str,
    payload: AddressCreate,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    address = context.addresses.create_address(user_id, principal, payload)

    return {
        "success": True,
        "message": "Dirección creada correctamente",
        "data": address.to_dict()
    }


@router.put("/{address_id}")
def update_address(
    user_id: str,
    address_id: str,
    payload: AddressUpdate,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    address = context.addresses.update_address(address_id, user_id, principal, payload)

    return {
        "success": True,
        "message": "Dirección actualizada correctamente",
        "data": address.to_dict()
    }


@router.delete("/{address_id}")
def delete_address(
    user_id: str,
    address_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    """
    Delete an address

    Orders that used it keep a copy of its fields (address snapshot).
    """
    result = context.addresses.delete_address(address_id, user_id, principal)

    return {
        "success": True,
        "message": result['message'],
        "data": {"detachedOrders": result['detachedOrders']}
    }
