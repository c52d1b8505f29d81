"""
Variant Repository - Data Access Layer for Product Variants

Besides plain CRUD this repository owns the two stock mutations used by the
order lifecycle. Both are single UPDATE statements, so concurrent orders can
never read the same stock and both write it back.

Author: TM3
Date: 2025-10-17
"""
from typing import List, Optional

from app.core.database import Database
from app.domain.product import Variant
from app.repositories.sql import build_set_clause, is_uuid

VARIANT_COLUMNS = """
    id, product_id, price, stock, color, color_name, size, flavor, weight,
    created_at, updated_at
"""

UPDATABLE_COLUMNS = ("price", "stock", "color", "color_name", "size", "flavor", "weight")


class VariantRepository:
    """Repository for Variant data access"""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_variant(row: dict) -> Variant:
        return Variant(
            id=str(row['id']),
            product_id=str(row['product_id']),
            price=row['price'],
            stock=row['stock'],
            color=row.get('color'),
            color_name=row.get('color_name'),
            size=row.get('size'),
            flavor=row.get('flavor'),
            weight=row.get('weight'),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_product_id(self, product_id: str, conn=None) -> List[Variant]:
        if not is_uuid(product_id):
            return []

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {VARIANT_COLUMNS}
                    FROM variants
                    WHERE product_id = %s
                    ORDER BY created_at DESC
                """, (product_id,))
                rows = cursor.fetchall()

        return [self._map_row_to_variant(row) for row in rows]

    def find_by_id(self, variant_id: str, conn=None) -> Optional[Variant]:
        if not is_uuid(variant_id):
            return None

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {VARIANT_COLUMNS}
                    FROM variants
                    WHERE id = %s
                """, (variant_id,))
                row = cursor.fetchone()

        return self._map_row_to_variant(row) if row else None

    def create(self, product_id: str, fields: dict, conn=None) -> Variant:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    INSERT INTO variants (
                        product_id, price, stock, color, color_name, size, flavor, weight
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {VARIANT_COLUMNS}
                """, (
                    product_id,
                    fields['price'],
                    fields['stock'],
                    fields.get('color'),
                    fields.get('color_name'),
                    fields.get('size'),
                    fields.get('flavor'),
                    fields.get('weight')
                ))
                row = cursor.fetchone()

        return self._map_row_to_variant(row)

    def update(self, variant_id: str, fields: dict, conn=None) -> Optional[Variant]:
        if not fields:
            return self.find_by_id(variant_id, conn=conn)

        set_clause, params = build_set_clause(fields, UPDATABLE_COLUMNS)

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    UPDATE variants SET {set_clause}
                    WHERE id = %s
                    RETURNING {VARIANT_COLUMNS}
                """, params + [variant_id])
                row = cursor.fetchone()

        return self._map_row_to_variant(row) if row else None

    def delete(self, variant_id: str, conn=None) -> bool:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM variants WHERE id = %s", (variant_id,))
                return cursor.rowcount > 0

    def decrement_stock(self, variant_id: str, quantity: int, conn=None) -> Optional[int]:
        """
        Take `quantity` units only if that many are available.

        Returns:
            The new stock, or None when the variant is missing or short
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    UPDATE variants
                    SET stock = stock - %s, updated_at = NOW()
                    WHERE id = %s AND stock >= %s
                    RETURNING stock
                """, (quantity, variant_id, quantity))
                row = cursor.fetchone()

        return row['stock'] if row else None

    def increment_stock(self, variant_id: str, quantity: int, conn=None) -> Optional[int]:
        """
        Put `quantity` units back.

        Returns:
            The new stock, or None when the variant no longer exists
        """
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    UPDATE variants
                    SET stock = stock + %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING stock
                """, (quantity, variant_id))
                row = cursor.fetchone()

        return row['stock'] if row else None
