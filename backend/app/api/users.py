"""
Users API Endpoints
Profiles, roles and account deletion

Path ids:
- /{user_id} is the internal users.id
- /{user_id}/role and /delete-account/{user_id} take the Supabase Auth id

Author: TM3
Date: 2025-10-17
"""
from fastapi import APIRouter, Depends

from app.core.auth import get_current_user, require_admin
from app.core.context import AppContext, get_context
from app.domain.user import Principal, RoleUpdate, UserUpdate

router = APIRouter()


@router.get("")
def get_users(
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    users = context.users.get_all_users()

    return {
        "success": True,
        "data": [user.to_dict() for user in users],
        "count": len(users)
    }


@router.get("/profile")
def get_profile(
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    user = context.users.get_profile(principal)

    return {
        "success": True,
        "data": user.to_dict()
    }


@router.delete("/delete-account/{user_id}")
def delete_own_account(
    user_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    """
    Delete one's own account

    Orders are kept (anonymized). If removing the Supabase Auth credential
    fails after the local data is gone the response carries partial=true.
    """
    result = context.users.delete_own_account(user_id, principal)

    response = {
        "success": True,
        "message": result.message
    }
    if result.partial:
        response["partial"] = True
    return response


@router.get("/{user_id}")
def get_user(
    user_id: str,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    user = context.users.get_user_by_id(user_id)

    return {
        "success": True,
        "data": user.to_dict()
    }


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    principal: Principal = Depends(get_current_user),
    context: AppContext = Depends(get_context)
):
    """Update one's own profile (fullName, phone, email)"""
    user = context.users.update_user(user_id, principal, payload)

    return {
        "success": True,
        "message": "Usuario actualizado correctamente",
        "data": user.to_dict()
    }


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    """Delete a user with its orders, addresses and role (admin only)"""
    message = context.users.delete_user(user_id)

    return {
        "success": True,
        "message": message
    }


@router.put("/{user_id}/role")
def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    role = context.users.update_user_role(user_id, payload.role)

    return {
        "success": True,
        "message": "Rol actualizado correctamente",
        "data": {"role": role}
    }
