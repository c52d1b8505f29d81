"""
Order Service
Order placement and the stock lifecycle tied to it

Rules:
- stock never goes negative: the decrement is a conditional UPDATE, so two
  concurrent orders for the last units cannot both succeed
- order, items and stock decrements commit together or not at all
- item prices are frozen at creation; totals are derived from the items
- only the transition into "cancelled" touches stock, and only once

Author: TM3
Date: 2025-10-17
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from app.core.database import Database
from app.core.errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidInputError,
    InvalidRelationError,
    NotFoundError,
)
from app.domain.order import DELIVERY_DAYS, Order, OrderCreate, OrderItemCreate, OrderStatus
from app.domain.user import Principal
from app.repositories.address_repository import AddressRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.user_repository import UserRepository
from app.repositories.variant_repository import VariantRepository

logger = logging.getLogger(__name__)

FREE_SHIPPING = Decimal('0')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """
    Service for placing and managing orders

    Handles:
    - Address ownership and stock validation
    - Order creation with frozen item prices
    - Stock decrement on creation and restoration on cancellation
    - Per-user and admin order queries
    """

    def __init__(
        self,
        db: Database,
        orders: OrderRepository,
        variants: VariantRepository,
        addresses: AddressRepository,
        users: UserRepository,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db = db
        self.orders = orders
        self.variants = variants
        self.addresses = addresses
        self.users = users
        self.clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_orders(self) -> List[Order]:
        """All orders, newest first (admin only)"""
        return self.orders.find_all()

    def get_orders_by_user(self, auth_id: str, principal: Principal) -> List[Order]:
        """
        Orders of the user identified by `auth_id`

        Only that same user or an admin may list them.
        """
        if not principal.is_admin and auth_id != principal.auth_id:
            raise ForbiddenError('No tienes permisos para ver estas órdenes')

        user = self.users.find_by_auth_id(auth_id)
        if not user:
            raise NotFoundError('Usuario no encontrado')

        return self.orders.find_by_user_id(user.id)

    def get_order_by_id(self, order_id: int, principal: Principal) -> Order:
        order = self.orders.find_by_id(order_id)

        if not order:
            raise NotFoundError('Orden no encontrada')

        if not principal.is_admin and order.user_id != principal.user_id:
            raise ForbiddenError('No tienes permisos para ver esta orden')

        return order

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(self, principal: Principal, payload: OrderCreate) -> Order:
        """
        Place an order

        Steps:
        1. Resolve the caller's internal user
        2. Check the address exists and belongs to that user
        3. Validate quantities and stock for every item
        4. In one transaction: create the order (pending, free shipping,
           delivery in 7 days), create the items with frozen prices and
           decrement stock conditionally
        5. Return the fully joined order

        Raises:
            NotFoundError: user, address or variant missing
            InvalidRelationError: address belongs to someone else
            InvalidInputError: no items or non-positive quantity
            InsufficientStockError: not enough stock (nothing is written)
        """
        if not principal.user_id:
            raise NotFoundError('Usuario no encontrado')

        address = self.addresses.find_by_id(payload.address_id)
        if not address:
            raise NotFoundError('Dirección no encontrada')

        if address.user_id != principal.user_id:
            raise InvalidRelationError('La dirección no pertenece a este usuario')

        validated_items = self._validate_order_items(payload.items)
        # Variant rows are always locked in id order so two orders sharing
        # variants cannot deadlock
        validated_items.sort(key=lambda item: item['variant_id'])
        delivery_date = self.clock() + timedelta(days=DELIVERY_DAYS)

        with self.db.transaction() as conn:
            order_id = self.orders.create(
                user_id=principal.user_id,
                address_id=address.id,
                delivery_date=delivery_date,
                shipping_cost=FREE_SHIPPING,
                status=OrderStatus.PENDING,
                conn=conn
            )
            self.orders.create_items(order_id, validated_items, conn=conn)

            for item in validated_items:
                remaining = self.variants.decrement_stock(item['variant_id'], item['quantity'], conn=conn)
                if remaining is None:
                    # Stock changed since validation (another order or a repeated variant)
                    current = self.variants.find_by_id(item['variant_id'], conn=conn)
                    raise InsufficientStockError(item['variant_id'], current.stock if current else 0)

        logger.info(f"Order {order_id} created for user {principal.user_id} with {len(validated_items)} items")
        return self.orders.find_by_id(order_id)

    def _validate_order_items(self, items: List[OrderItemCreate]) -> List[dict]:
        """Check every requested item and freeze the variant's current price"""
        if not items:
            raise InvalidInputError('La orden debe tener al menos un item')

        validated = []

        for item in items:
            if item.quantity <= 0:
                raise InvalidInputError('La cantidad debe ser mayor a 0')

            variant = self.variants.find_by_id(item.variant_id)

            if not variant:
                raise NotFoundError(f'Variante {item.variant_id} no encontrada')

            if variant.stock < item.quantity:
                raise InsufficientStockError(variant.id, variant.stock)

            validated.append({
                'variant_id': variant.id,
                'quantity': item.quantity,
                'price': variant.price
            })

        return validated

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def update_order_status(self, order_id: int, status: Optional[str]) -> OrderStatus:
        """
        Move an order to `status`

        Entering "cancelled" from any other status puts every item's quantity
        back into stock. The order row stays locked for the whole change, so
        concurrent cancellations restore stock once.
        """
        new_status = OrderStatus.parse(status)
        if new_status is None:
            raise InvalidInputError('Estado de orden inválido')

        with self.db.transaction() as conn:
            order = self.orders.find_by_id_for_update(order_id, conn=conn)

            if not order:
                raise NotFoundError('Orden no encontrada')

            if new_status == OrderStatus.CANCELLED and order.status != OrderStatus.CANCELLED:
                restore_stock(self.variants, order, conn)

            self.orders.update_status(order_id, new_status, conn=conn)

        logger.info(f"Order {order_id}: {order.status.value} -> {new_status.value}")
        return new_status

    def cancel_order(self, order_id: int, principal: Principal) -> OrderStatus:
        """Cancel an order on behalf of its owner (or an admin)"""
        self.get_order_by_id(order_id, principal)
        return self.update_order_status(order_id, OrderStatus.CANCELLED.value)


def restore_stock(variants: VariantRepository, order: Order, conn):
    """
    Put every item's quantity back into its variant, in variant id order.

    The caller must hold the order row lock (find_by_id_for_update) on `conn`.
    """
    for item in sorted(order.items, key=lambda item: item.variant_id or ''):
        if not item.variant_id:
            logger.warning(f"Order {order.id}: item {item.id} has no variant, stock not restored")
            continue

        restored = variants.increment_stock(item.variant_id, item.quantity, conn=conn)
        if restored is None:
            logger.warning(
                f"Order {order.id}: variant {item.variant_id} no longer exists, "
                f"{item.quantity} units not restored"
            )
