"""
User Domain Models

A storefront user has two identities: the Supabase Auth id (`user_id`) that
appears in bearer tokens and URL paths, and the internal `users.id` that
addresses and orders reference.

Author: TM3
Date: 2025-10-17
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from app.domain.base import CamelModel

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
VALID_ROLES = (ROLE_CUSTOMER, ROLE_ADMIN)


class User(CamelModel):
    """
    User domain model

    Fields:
        id: Internal users.id
        user_id: Supabase Auth id
        email: Contact email
        full_name: Display name
        phone: Contact phone
        role: customer or admin (from user_roles, defaults to customer)
    """

    id: str = Field(..., description="Internal user ID")
    user_id: str = Field(..., description="Supabase Auth ID")
    email: Optional[str] = Field(None, description="User email")
    full_name: Optional[str] = Field(None, description="Full name")
    phone: Optional[str] = Field(None, description="Phone")
    role: str = Field(ROLE_CUSTOMER, description="customer | admin")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class UserUpdate(CamelModel):
    """Profile fields a user may change on themself"""
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class RoleUpdate(CamelModel):
    role: Optional[str] = None


class Principal(CamelModel):
    """
    The authenticated caller, resolved once per request at the auth boundary

    Fields:
        auth_id: Supabase Auth id from the token
        user_id: Internal users.id (None if the profile row is missing)
        role: customer or admin
    """
    auth_id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = ROLE_CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.auth_id,
            "userId": self.user_id,
            "email": self.email,
            "fullName": self.full_name,
            "phone": self.phone,
            "role": self.role,
        }
