"""
Address Service
Users manage only their own addresses; deleting one that orders still
reference freezes its fields onto those orders first.

Author: TM3
Date: 2025-10-17
"""
import logging
from typing import List

from app.core.database import Database
from app.core.errors import ForbiddenError, InvalidRelationError, NotFoundError
from app.domain.address import Address, AddressCreate, AddressUpdate
from app.domain.user import Principal, User
from app.repositories.address_repository import AddressRepository
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# Request field -> addresses column
FIELD_COLUMNS = {
    'street': 'address_line1',
    'address_line2': 'address_line2',
    'city': 'city',
    'state': 'state',
    'postal_code': 'postal_code',
    'country': 'country',
}


class AddressService:
    """Service for a user's shipping addresses"""

    def __init__(self, db: Database, addresses: AddressRepository, users: UserRepository):
        self.db = db
        self.addresses = addresses
        self.users = users

    def _resolve_owner(self, auth_id: str, principal: Principal, forbidden_message: str) -> User:
        if auth_id != principal.auth_id:
            raise ForbiddenError(forbidden_message)

        user = self.users.find_by_auth_id(auth_id)
        if not user:
            raise NotFoundError('Usuario no encontrado')
        return user

    def _get_owned_address(self, address_id: str, user: User, conn=None) -> Address:
        address = self.addresses.find_by_id(address_id, conn=conn)

        if not address:
            raise NotFoundError('Dirección no encontrada')

        if address.user_id != user.id:
            raise InvalidRelationError('La dirección no pertenece a este usuario')

        return address

    def get_addresses_by_user(self, auth_id: str, principal: Principal) -> List[Address]:
        user = self._resolve_owner(auth_id, principal, 'No tienes permisos para ver estas direcciones')
        return self.addresses.find_by_user_id(user.id)

    def get_address_by_id(self, address_id: str, auth_id: str, principal: Principal) -> Address:
        user = self._resolve_owner(auth_id, principal, 'No tienes permisos para ver esta dirección')
        return self._get_owned_address(address_id, user)

    def create_address(self, auth_id: str, principal: Principal, payload: AddressCreate) -> Address:
        user = self._resolve_owner(
            auth_id, principal, 'No tienes permisos para crear direcciones para este usuario'
        )

        fields = {
            'address_line1': payload.street,
            'address_line2': payload.address_line2 or None,
            'city': payload.city,
            'state': payload.state,
            'postal_code': payload.postal_code,
            'country': payload.country,
        }
        address = self.addresses.create(user.id, fields)
        logger.info(f"Address {address.id} created for user {user.id}")
        return address

    def update_address(self, address_id: str, auth_id: str, principal: Principal, payload: AddressUpdate) -> Address:
        """Partial update: only the fields present (and non-blank) are written"""
        user = self._resolve_owner(auth_id, principal, 'No tienes permisos para actualizar esta dirección')
        self._get_owned_address(address_id, user)

        fields = {}
        for name, value in payload.model_dump(exclude_unset=True).items():
            column = FIELD_COLUMNS.get(name)
            if column is None:
                continue
            if name == 'address_line2':
                fields[column] = value or None
            elif value:
                fields[column] = value

        return self.addresses.update(address_id, fields)

    def delete_address(self, address_id: str, auth_id: str, principal: Principal) -> dict:
        """
        Delete an address

        Orders that reference it receive a snapshot of its fields and lose the
        reference before the row is removed, all in one transaction.
        """
        user = self._resolve_owner(auth_id, principal, 'No tienes permisos para eliminar esta dirección')

        with self.db.transaction() as conn:
            address = self._get_owned_address(address_id, user, conn=conn)

            detached = self.addresses.snapshot_to_orders(address.id, address.to_snapshot(), conn=conn)
            if detached:
                logger.info(f"Address {address.id} copied onto {detached} orders before deletion")

            self.addresses.delete(address.id, conn=conn)

        return {'message': 'Dirección eliminada correctamente', 'detachedOrders': detached}
