"""
Authentication dependencies for the GymShop API
Validates Supabase bearer tokens and provides the request Principal
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.context import AppContext, get_context
from app.core.errors import ForbiddenError, UnauthorizedError
from app.domain.user import ROLE_ADMIN, ROLE_CUSTOMER, Principal

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

# Role hierarchy: admin > customer
ROLE_HIERARCHY = {
    ROLE_ADMIN: 2,
    ROLE_CUSTOMER: 1,
}


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: AppContext = Depends(get_context)
) -> Principal:
    """
    Dependency that verifies the bearer token and resolves the caller.

    The token is checked against Supabase Auth (or decoded locally when a JWT
    secret is configured); profile and role come from the users and
    user_roles tables. A caller without a profile row is still authenticated,
    as a customer with no internal user id.

    Usage:
        @router.get("/protected")
        def protected_route(principal: Principal = Depends(get_current_user)):
            return {"message": f"Hola {principal.email}"}
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Token no proporcionado")

    identity_user = context.identity.verify_token(credentials.credentials)
    if identity_user is None:
        raise UnauthorizedError("Token inválido o expirado")

    user = context.repositories.users.find_by_auth_id(identity_user.id)
    if user is None:
        logger.warning(f"Authenticated {identity_user.id} has no profile row")
        return Principal(auth_id=identity_user.id, email=identity_user.email)

    return Principal(
        auth_id=identity_user.id,
        user_id=user.id,
        email=identity_user.email or user.email,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role
    )


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/{id}")
        def delete_product(id: str, principal: Principal = Depends(require_role("admin"))):
            ...
    """
    def role_checker(principal: Principal = Depends(get_current_user)) -> Principal:
        user_level = ROLE_HIERARCHY.get(principal.role, 0)
        required_level = ROLE_HIERARCHY.get(required_role, 0)

        if user_level < required_level:
            raise ForbiddenError("No tienes permisos para acceder a este recurso")

        return principal

    return role_checker


require_admin = require_role(ROLE_ADMIN)
