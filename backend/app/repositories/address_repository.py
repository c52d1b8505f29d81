"""
Address Repository - Data Access Layer for Addresses

Addresses belong to a user (users.id). Orders reference them, so deleting
one first freezes its fields onto those orders.

Author: TM3
Date: 2025-10-17
"""
from typing import List, Optional

from psycopg2.extras import Json

from app.core.database import Database
from app.domain.address import Address, AddressSnapshot
from app.repositories.sql import build_set_clause, is_uuid

ADDRESS_COLUMNS = """
    id, user_id, address_line1, address_line2, city, state,
    postal_code, country, created_at, updated_at
"""

UPDATABLE_COLUMNS = ("address_line1", "address_line2", "city", "state", "postal_code", "country")


class AddressRepository:
    """Repository for Address data access"""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_address(row: dict) -> Address:
        return Address(
            id=str(row['id']),
            user_id=str(row['user_id']),
            street=row['address_line1'],
            address_line2=row.get('address_line2'),
            city=row['city'],
            state=row['state'],
            postal_code=row['postal_code'],
            country=row['country'],
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_user_id(self, user_id: str, conn=None) -> List[Address]:
        """All addresses of an internal user, newest first"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {ADDRESS_COLUMNS}
                    FROM addresses
                    WHERE user_id = %s
                    ORDER BY created_at DESC
                """, (user_id,))
                rows = cursor.fetchall()

        return [self._map_row_to_address(row) for row in rows]

    def find_by_id(self, address_id: str, conn=None) -> Optional[Address]:
        if not is_uuid(address_id):
            return None

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {ADDRESS_COLUMNS}
                    FROM addresses
                    WHERE id = %s
                """, (address_id,))
                row = cursor.fetchone()

        return self._map_row_to_address(row) if row else None

    def create(self, user_id: str, fields: dict, conn=None) -> Address:
        """
        Insert an address

        Args:
            user_id: Internal owner id
            fields: address_line1, address_line2, city, state, postal_code, country
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO addresses (
                        user_id, address_line1, address_line2, city, state, postal_code, country
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING {ADDRESS_COLUMNS}
                """, (
                    user_id,
                    fields['address_line1'],
                    fields.get('address_line2'),
                    fields['city'],
                    fields['state'],
                    fields['postal_code'],
                    fields['country']
                ))
                row = cursor.fetchone()

        return self._map_row_to_address(row)

    def update(self, address_id: str, fields: dict, conn=None) -> Optional[Address]:
        if not fields:
            return self.find_by_id(address_id, conn=conn)

        set_clause, params = build_set_clause(fields, UPDATABLE_COLUMNS)

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    UPDATE addresses SET {set_clause}
                    WHERE id = %s
                    RETURNING {ADDRESS_COLUMNS}
                """, params + [address_id])
                row = cursor.fetchone()

        return self._map_row_to_address(row) if row else None

    def snapshot_to_orders(self, address_id: str, snapshot: AddressSnapshot, conn=None) -> int:
        """
        Copy the address fields onto every order that references it and clear
        the reference.

        Returns:
            Number of orders updated
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    UPDATE orders
                    SET address_snapshot = %s, address_id = NULL, updated_at = NOW()
                    WHERE address_id = %s
                """, (Json(snapshot.model_dump()), address_id))
                return cursor.rowcount

    def delete(self, address_id: str, conn=None) -> bool:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM addresses WHERE id = %s", (address_id,))
                return cursor.rowcount > 0

    def delete_by_user_id(self, user_id: str, conn=None) -> int:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM addresses WHERE user_id = %s", (user_id,))
                return cursor.rowcount
