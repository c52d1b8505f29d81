"""
Authentication API endpoints for the GymShop API
- Session verification for the storefront
"""
from fastapi import APIRouter, Depends

from app.core.auth import get_current_user
from app.domain.user import Principal

router = APIRouter()


@router.get("/verify")
def verify_session(principal: Principal = Depends(get_current_user)):
    """
    Resolve the bearer token to the current user

    Returns id (Supabase Auth id), email, fullName, phone and role.
    """
    return {
        "success": True,
        "data": {
            "user": principal.to_dict()
        }
    }
