"""
Order Repository - Data Access Layer for Orders

Handles orders and order_items and returns Order domain models with their
address and items (each item joined to its current variant and product).

Author: TM3
Date: 2025-10-17
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from psycopg2.extras import execute_values

from app.core.database import Database
from app.domain.address import AddressSnapshot
from app.domain.order import Order, OrderItem, OrderItemProduct, OrderItemVariant, OrderStatus

ORDER_COLUMNS = """
    o.id, o.user_id, o.address_id, o.address_snapshot, o.status,
    o.delivery_date, o.shipping_cost, o.created_at, o.updated_at,
    a.address_line1, a.address_line2, a.city, a.state, a.postal_code, a.country
"""


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_address(row: dict) -> Optional[AddressSnapshot]:
        if row.get('address_id') and row.get('address_line1') is not None:
            return AddressSnapshot(
                street=row['address_line1'],
                address_line2=row.get('address_line2'),
                city=row['city'],
                state=row['state'],
                postal_code=row['postal_code'],
                country=row['country']
            )
        if row.get('address_snapshot'):
            return AddressSnapshot(**row['address_snapshot'])
        return None

    @staticmethod
    def _map_row_to_item(row: dict) -> OrderItem:
        variant = None
        if row.get('v_id'):
            product = None
            if row.get('p_id'):
                product = OrderItemProduct(
                    id=str(row['p_id']),
                    name=row['p_name'],
                    slug=row.get('p_slug'),
                    images=row.get('p_images') or []
                )
            variant = OrderItemVariant(
                id=str(row['v_id']),
                price=row['v_price'],
                color=row.get('v_color'),
                color_name=row.get('v_color_name'),
                size=row.get('v_size'),
                flavor=row.get('v_flavor'),
                weight=row.get('v_weight'),
                product=product
            )

        return OrderItem(
            id=row['id'],
            order_id=row['order_id'],
            variant_id=str(row['variant_id']) if row.get('variant_id') else None,
            quantity=row['quantity'],
            price=row['price'],
            variant=variant
        )

    def _map_row_to_order(self, row: dict, items: List[OrderItem]) -> Order:
        return Order(
            id=row['id'],
            user_id=str(row['user_id']),
            address_id=str(row['address_id']) if row.get('address_id') else None,
            address=self._map_row_to_address(row),
            status=row['status'],
            delivery_date=row.get('delivery_date'),
            shipping_cost=row.get('shipping_cost') or Decimal('0'),
            items=items,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def _fetch(
        self,
        where_clause: str,
        params: list,
        for_update: bool = False,
        conn=None
    ) -> List[Order]:
        """Orders matching the clause plus all their items in one extra query"""
        lock = "FOR UPDATE OF o" if for_update else ""

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders o
                    LEFT JOIN addresses a ON a.id = o.address_id
                    WHERE {where_clause}
                    ORDER BY o.created_at DESC, o.id DESC
                    {lock}
                """, params)
                rows = cursor.fetchall()

                if not rows:
                    return []

                cursor.execute("""
                    SELECT
                        oi.id, oi.order_id, oi.variant_id, oi.quantity, oi.price,
                        v.id AS v_id, v.price AS v_price, v.color AS v_color,
                        v.color_name AS v_color_name, v.size AS v_size,
                        v.flavor AS v_flavor, v.weight AS v_weight,
                        p.id AS p_id, p.name AS p_name, p.slug AS p_slug, p.images AS p_images
                    FROM order_items oi
                    LEFT JOIN variants v ON v.id = oi.variant_id
                    LEFT JOIN products p ON p.id = v.product_id
                    WHERE oi.order_id = ANY(%s)
                    ORDER BY oi.id
                """, ([row['id'] for row in rows],))
                item_rows = cursor.fetchall()

        items_by_order: Dict[int, List[OrderItem]] = {}
        for item_row in item_rows:
            item = self._map_row_to_item(item_row)
            items_by_order.setdefault(item.order_id, []).append(item)

        return [self._map_row_to_order(row, items_by_order.get(row['id'], [])) for row in rows]

    def find_all(self, conn=None) -> List[Order]:
        """All orders, newest first (admin)"""
        return self._fetch("1=1", [], conn=conn)

    def find_by_user_id(self, user_id: str, conn=None) -> List[Order]:
        return self._fetch("o.user_id = %s", [user_id], conn=conn)

    def find_by_id(self, order_id: int, conn=None) -> Optional[Order]:
        orders = self._fetch("o.id = %s", [order_id], conn=conn)
        return orders[0] if orders else None

    def find_by_id_for_update(self, order_id: int, conn) -> Optional[Order]:
        """
        Same as find_by_id but locks the order row until the caller's
        transaction ends. Requires a transaction connection.
        """
        orders = self._fetch("o.id = %s", [order_id], for_update=True, conn=conn)
        return orders[0] if orders else None

    def create(
        self,
        user_id: str,
        address_id: str,
        delivery_date: datetime,
        shipping_cost: Decimal = Decimal('0'),
        status: OrderStatus = OrderStatus.PENDING,
        conn=None
    ) -> int:
        """
        Insert an order row

        Returns:
            New order id
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    INSERT INTO orders (user_id, address_id, status, delivery_date, shipping_cost)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                """, (user_id, address_id, status.value, delivery_date, shipping_cost))
                return cursor.fetchone()['id']

    def create_items(self, order_id: int, items: List[dict], conn=None) -> int:
        """
        Insert order items

        Args:
            order_id: Parent order
            items: dicts with variant_id, quantity, price

        Returns:
            Number of rows inserted
        """
        if not items:
            return 0

        values = [(order_id, item['variant_id'], item['quantity'], item['price']) for item in items]

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                execute_values(cursor, """
                    INSERT INTO order_items (order_id, variant_id, quantity, price)
                    VALUES %s
                """, values)
                return len(values)

    def update_status(self, order_id: int, status: OrderStatus, conn=None) -> bool:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    UPDATE orders SET status = %s, updated_at = NOW()
                    WHERE id = %s
                """, (status.value, order_id))
                return cursor.rowcount > 0

    def delete_by_user_id(self, user_id: str, conn=None) -> int:
        """
        Delete every order of a user together with its items

        Returns:
            Number of orders deleted
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    DELETE FROM order_items
                    WHERE order_id IN (SELECT id FROM orders WHERE user_id = %s)
                """, (user_id,))
                cursor.execute("DELETE FROM orders WHERE user_id = %s", (user_id,))
                return cursor.rowcount
