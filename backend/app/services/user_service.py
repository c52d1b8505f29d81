"""
User Service
Profiles, roles and account deletion

Two deletion paths exist:
- delete_user (admin): removes the user and everything hanging from it
- delete_own_account (self): anonymizes the profile, keeps order history,
  then removes the Supabase Auth credential. The local and external steps
  are not atomic, so a failure in the external one is reported as a partial
  success instead of an error.

Author: TM3
Date: 2025-10-17
"""
import logging
from typing import List

from pydantic import BaseModel

from app.core.database import Database
from app.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from app.core.identity import IdentityError, IdentityProvider
from app.domain.order import OrderStatus
from app.domain.user import VALID_ROLES, Principal, User, UserUpdate
from app.repositories.address_repository import AddressRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.user_repository import UserRepository
from app.repositories.variant_repository import VariantRepository
from app.services.order_service import restore_stock

logger = logging.getLogger(__name__)

ANONYMIZED_NAME = "Usuario eliminado"
ANONYMIZED_EMAIL_DOMAIN = "deleted.gymshop.invalid"


class AccountDeletionResult(BaseModel):
    message: str
    partial: bool = False


class UserService:
    """Service for user profiles and accounts"""

    def __init__(
        self,
        db: Database,
        users: UserRepository,
        addresses: AddressRepository,
        orders: OrderRepository,
        variants: VariantRepository,
        identity: IdentityProvider
    ):
        self.db = db
        self.users = users
        self.addresses = addresses
        self.orders = orders
        self.variants = variants
        self.identity = identity

    def get_all_users(self) -> List[User]:
        return self.users.find_all()

    def get_user_by_id(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFoundError('Usuario no encontrado')
        return user

    def get_profile(self, principal: Principal) -> User:
        user = self.users.find_by_auth_id(principal.auth_id)
        if not user:
            raise NotFoundError('Usuario no encontrado')
        return user

    def update_user(self, user_id: str, principal: Principal, payload: UserUpdate) -> User:
        """Update one's own profile; blank fields are ignored"""
        user = self.get_user_by_id(user_id)

        if user.user_id != principal.auth_id:
            raise ForbiddenError('No tienes permisos para actualizar este usuario')

        fields = {name: value for name, value in payload.model_dump().items() if value}
        return self.users.update(user_id, fields)

    def update_user_role(self, auth_id: str, role: str) -> str:
        if role not in VALID_ROLES:
            raise InvalidInputError('Rol inválido')

        if not self.users.find_by_auth_id(auth_id):
            raise NotFoundError('Usuario no encontrado')

        updated = self.users.update_role(auth_id, role)
        logger.info(f"Role of {auth_id} set to {updated}")
        return updated

    def delete_user(self, user_id: str) -> str:
        """
        Admin deletion: orders (with items), addresses, role and the user
        record go together in one transaction. Stock held by orders that
        were not cancelled goes back to the variants first.
        """
        user = self.get_user_by_id(user_id)

        with self.db.transaction() as conn:
            for listed in self.orders.find_by_user_id(user.id, conn=conn):
                order = self.orders.find_by_id_for_update(listed.id, conn=conn)
                if order and order.status != OrderStatus.CANCELLED:
                    restore_stock(self.variants, order, conn)

            orders = self.orders.delete_by_user_id(user.id, conn=conn)
            addresses = self.addresses.delete_by_user_id(user.id, conn=conn)
            self.users.delete_role(user.user_id, conn=conn)
            self.users.delete(user.id, conn=conn)

        logger.info(f"User {user.id} deleted with {orders} orders and {addresses} addresses")
        return 'Usuario eliminado correctamente'

    def delete_own_account(self, auth_id: str, principal: Principal) -> AccountDeletionResult:
        """
        Self-service account deletion

        Steps:
        1. In one transaction: freeze every address onto the orders using it,
           delete the addresses and the role, anonymize the profile
        2. Delete the Supabase Auth credential; if only this step fails the
           result is a partial success
        """
        if auth_id != principal.auth_id:
            raise ForbiddenError('Solo puedes eliminar tu propia cuenta')

        user = self.users.find_by_auth_id(auth_id)
        if not user:
            raise NotFoundError('Usuario no encontrado')

        with self.db.transaction() as conn:
            for address in self.addresses.find_by_user_id(user.id, conn=conn):
                self.addresses.snapshot_to_orders(address.id, address.to_snapshot(), conn=conn)
            self.addresses.delete_by_user_id(user.id, conn=conn)
            self.users.delete_role(user.user_id, conn=conn)
            self.users.anonymize(
                user.id,
                full_name=ANONYMIZED_NAME,
                email=f"deleted-{user.id}@{ANONYMIZED_EMAIL_DOMAIN}",
                conn=conn
            )

        try:
            self.identity.delete_user(user.user_id)
        except IdentityError as e:
            logger.warning(f"User {user.id} anonymized but auth credential {user.user_id} not deleted: {e}")
            return AccountDeletionResult(
                message='Tus datos fueron eliminados, pero no se pudo eliminar la credencial de acceso',
                partial=True
            )

        logger.info(f"Account {user.user_id} deleted by its owner")
        return AccountDeletionResult(message='Cuenta eliminada correctamente')
