"""
Supabase Auth access

IdentityProvider wraps the two Supabase clients the API needs:
- the anon client, used to verify bearer tokens (auth.get_user)
- the service-role client, used to delete credentials (auth.admin.delete_user)

When SUPABASE_JWT_SECRET is configured, tokens are decoded locally with
python-jose (HS256, the algorithm Supabase signs access tokens with) and
Supabase Auth is not called on every request.
"""
import logging
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from supabase import AuthError, Client, create_client

from app.core.config import Settings
from app.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class IdentityError(Exception):
    """The identity provider refused or failed an operation"""


class IdentityUser(BaseModel):
    """Who a verified token belongs to"""
    id: str
    email: Optional[str] = None


class IdentityProvider:
    """
    Usage:
        identity = IdentityProvider.from_settings(settings)
        user = identity.verify_token(token)   # IdentityUser or None
        identity.delete_user(user.id)
    """

    def __init__(
        self,
        client: Optional[Client],
        admin_client: Optional[Client] = None,
        jwt_secret: Optional[str] = None
    ):
        self.client = client
        self.admin_client = admin_client
        self.jwt_secret = jwt_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityProvider":
        client = None
        admin_client = None

        if settings.SUPABASE_URL and settings.SUPABASE_ANON_KEY:
            client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
            admin_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)

        if client is None and not settings.SUPABASE_JWT_SECRET:
            logger.warning("Neither Supabase credentials nor SUPABASE_JWT_SECRET configured; every token will be rejected")

        return cls(client, admin_client, settings.SUPABASE_JWT_SECRET)

    def decode_token(self, token: str) -> Optional[IdentityUser]:
        """
        Decode a Supabase access token locally.

        Supabase payload:
        {
            "sub": "<auth user id>",
            "email": "user@example.com",
            "role": "authenticated",
            "aud": "authenticated",
            "exp": 1234567890
        }
        """
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"verify_aud": False}
            )
        except ExpiredSignatureError:
            raise UnauthorizedError("Token expirado")
        except JWTError as e:
            logger.debug(f"Invalid token: {e}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        return IdentityUser(id=user_id, email=payload.get("email"))

    def verify_token(self, token: str) -> Optional[IdentityUser]:
        """
        Resolve a bearer token to the Supabase Auth user.

        Returns:
            IdentityUser, or None when the token is invalid
        """
        if self.jwt_secret:
            return self.decode_token(token)

        if self.client is None:
            return None

        try:
            response = self.client.auth.get_user(token)
        except AuthError as e:
            logger.debug(f"Supabase rejected token: {e}")
            return None

        user = response.user if response else None
        if user is None:
            return None
        return IdentityUser(id=str(user.id), email=user.email)

    def delete_user(self, auth_id: str):
        """
        Remove the credential from Supabase Auth.

        Raises:
            IdentityError: when the service-role client is missing or Supabase fails
        """
        if self.admin_client is None:
            raise IdentityError("SUPABASE_SERVICE_ROLE_KEY not configured")

        try:
            self.admin_client.auth.admin.delete_user(auth_id)
        except AuthError as e:
            raise IdentityError(str(e)) from e
