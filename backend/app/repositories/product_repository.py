"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and returns Product domain models
with their category and variants attached.

Author: TM3
Date: 2025-10-17
"""
from typing import Dict, List, Optional

from app.core.database import Database
from app.domain.product import Category, Product
from app.repositories.sql import build_set_clause, is_uuid
from app.repositories.variant_repository import VARIANT_COLUMNS, VariantRepository

PRODUCT_COLUMNS = """
    p.id, p.name, p.slug, p.description, p.features, p.brand,
    p.category_id, p.images, p.highlighted, p.created_at, p.updated_at,
    c.name AS category_name, c.slug AS category_slug
"""

UPDATABLE_COLUMNS = (
    "name", "slug", "description", "features", "brand",
    "category_id", "images", "highlighted"
)


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        category = None
        if row.get('category_id') and row.get('category_name'):
            category = Category(
                id=str(row['category_id']),
                name=row['category_name'],
                slug=row.get('category_slug')
            )

        return Product(
            id=str(row['id']),
            name=row['name'],
            slug=row['slug'],
            description=row.get('description'),
            features=row.get('features') or [],
            brand=row.get('brand'),
            category_id=str(row['category_id']) if row.get('category_id') else None,
            images=row.get('images') or [],
            highlighted=bool(row.get('highlighted')),
            category=category,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def _fetch(
        self,
        where_clause: str = "1=1",
        params: Optional[list] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        conn=None
    ) -> List[Product]:
        """
        Run a product query and attach variants with a single extra query
        (no N+1).
        """
        params = list(params or [])
        paging = ""
        if limit is not None:
            paging = "LIMIT %s OFFSET %s"
            params.extend([limit, offset])

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    SELECT {PRODUCT_COLUMNS}
                    FROM products p
                    LEFT JOIN categories c ON c.id = p.category_id
                    WHERE {where_clause}
                    ORDER BY p.created_at DESC
                    {paging}
                """, params)
                rows = cursor.fetchall()

                products = [self._map_row_to_product(row) for row in rows]
                if not products:
                    return []

                cursor.execute(f"""
                    SELECT {VARIANT_COLUMNS}
                    FROM variants
                    WHERE product_id = ANY(%s)
                    ORDER BY created_at DESC
                """, ([product.id for product in products],))
                variant_rows = cursor.fetchall()

        variants_by_product: Dict[str, list] = {}
        for row in variant_rows:
            variant = VariantRepository._map_row_to_variant(row)
            variants_by_product.setdefault(variant.product_id, []).append(variant)

        for product in products:
            product.variants = variants_by_product.get(product.id, [])

        return products

    def find_all(self, limit: Optional[int] = None, offset: int = 0, conn=None) -> List[Product]:
        """Products newest first, optionally paginated"""
        return self._fetch(limit=limit, offset=offset, conn=conn)

    def count(self, conn=None) -> int:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT COUNT(*) AS total FROM products")
                return cursor.fetchone()['total']

    def find_by_id(self, product_id: str, conn=None) -> Optional[Product]:
        if not is_uuid(product_id):
            return None
        products = self._fetch("p.id = %s", [product_id], conn=conn)
        return products[0] if products else None

    def find_by_slug(self, slug: str, conn=None) -> Optional[Product]:
        products = self._fetch("p.slug = %s", [slug], conn=conn)
        return products[0] if products else None

    def search(self, term: str, conn=None) -> List[Product]:
        """Case-insensitive match on name or brand"""
        pattern = f"%{term}%"
        return self._fetch("(p.name ILIKE %s OR p.brand ILIKE %s)", [pattern, pattern], conn=conn)

    def filter(self, category_id: Optional[str] = None, brand: Optional[str] = None, conn=None) -> List[Product]:
        conditions = []
        params = []

        if category_id:
            if not is_uuid(category_id):
                return []
            conditions.append("p.category_id = %s")
            params.append(category_id)

        if brand:
            conditions.append("p.brand = %s")
            params.append(brand)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        return self._fetch(where_clause, params, conn=conn)

    def find_featured(self, conn=None) -> List[Product]:
        return self._fetch("p.highlighted = TRUE", conn=conn)

    def find_categories(self, conn=None) -> List[Category]:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT id, name, slug FROM categories ORDER BY name")
                rows = cursor.fetchall()

        return [Category(id=str(row['id']), name=row['name'], slug=row.get('slug')) for row in rows]

    def create(self, fields: dict, conn=None) -> Product:
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    INSERT INTO products (
                        name, slug, description, features, brand,
                        category_id, images, highlighted
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (
                    fields['name'],
                    fields['slug'],
                    fields.get('description'),
                    fields.get('features') or [],
                    fields.get('brand'),
                    fields.get('category_id'),
                    fields.get('images') or [],
                    fields.get('highlighted', False)
                ))
                product_id = cursor.fetchone()['id']

            return self.find_by_id(str(product_id), conn=conn)

    def update(self, product_id: str, fields: dict, conn=None) -> Optional[Product]:
        if not fields:
            return self.find_by_id(product_id, conn=conn)

        set_clause, params = build_set_clause(fields, UPDATABLE_COLUMNS)

        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute(f"""
                    UPDATE products SET {set_clause}
                    WHERE id = %s
                    RETURNING id
                """, params + [product_id])
                row = cursor.fetchone()

            if not row:
                return None
            return self.find_by_id(product_id, conn=conn)

    def delete(self, product_id: str, conn=None) -> bool:
        """Delete a product and all of its variants together"""
        with self.db.connection(conn) as conn:
            with conn.cursor() as cursor:
                cursor.execute("DELETE FROM variants WHERE product_id = %s", (product_id,))
                cursor.execute("DELETE FROM products WHERE id = %s", (product_id,))
                return cursor.rowcount > 0
