"""
Orders API Endpoints
Order placement, queries and status changes

Author: TM3
Date: 2025-10-17
"""
from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_user, require_admin
from app.core.context import AppContext, get_context
from app.domain.order import OrderCreate, OrderStatusUpdate
from app.domain.user import Principal

router = APIRouter()


@router.get("")
def get_orders(
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    """All orders, newest first (admin only)"""
    orders = context.orders.get_all_orders()

    return {
        "success": True,
        "data": [order.to_dict() for order in orders],
        "count": len(orders)
    }


# Declared before /{order_id} so "user" is never parsed as an order id
@router.get("/user/{user_id}")
def get_orders_by_user(
    user_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    """Orders of a user (by Supabase Auth id); self or admin"""
    orders = context.orders.get_orders_by_user(user_id, principal)

    return {
        "success": True,
        "data": [order.to_dict() for order in orders],
        "count": len(orders)
    }


@router.get("/{order_id}")
def get_order(
    order_id: int,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    order = context.orders.get_order_by_id(order_id, principal)

    return {
        "success": True,
        "data": order.to_dict()
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    """
    Place an order for the current user

    Body:
        {"addressId": "...", "items": [{"variantId": "...", "quantity": 2}]}
    """
    order = context.orders.create_order(principal, payload)

    return {
        "success": True,
        "message": "Orden creada correctamente",
        "data": order.to_dict()
    }


@router.put("/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    """Change an order's status (admin only); entering cancelled restores stock"""
    new_status = context.orders.update_order_status(order_id, payload.status)

    return {
        "success": True,
        "message": "Estado de la orden actualizado correctamente",
        "data": {"status": new_status.value}
    }


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    new_status = context.orders.cancel_order(order_id, principal)

    return {
        "success": True,
        "message": "Orden cancelada correctamente",
        "data": {"status": new_status.value}
    }
