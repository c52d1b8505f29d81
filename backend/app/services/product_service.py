"""
Product Service
Storefront catalog queries and admin product management

Author: TM3
Date: 2025-10-17
"""
import logging
import math
from typing import List, Optional, Tuple

from app.core.database import Database
from app.core.errors import InvalidInputError, NotFoundError
from app.domain.product import Category, Product, ProductCreate, ProductUpdate
from app.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
MIN_SEARCH_LENGTH = 2


class ProductService:
    """
    Service for the product catalog

    Public reads return products with their category and variants attached.
    Writes are reserved for admins (enforced at the router).
    """

    def __init__(self, db: Database, products: ProductRepository):
        self.db = db
        self.products = products

    def get_all_products(self, page: Optional[int] = None, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[List[Product], dict]:
        """
        One page of products, newest first

        Returns:
            (products, pagination) where pagination is
            {page, limit, total, totalPages}
        """
        if limit < 1:
            raise InvalidInputError('El límite debe ser mayor a 0')

        page = page if page and page > 0 else 1
        offset = (page - 1) * limit

        products = self.products.find_all(limit=limit, offset=offset)
        total = self.products.count()

        pagination = {
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': math.ceil(total / limit)
        }
        return products, pagination

    def get_product_by_slug(self, slug: str) -> Product:
        product = self.products.find_by_slug(slug)
        if not product:
            raise NotFoundError('Producto no encontrado')
        return product

    def get_product_by_id(self, product_id: str) -> Product:
        product = self.products.find_by_id(product_id)
        if not product:
            raise NotFoundError('Producto no encontrado')
        return product

    def search_products(self, term: Optional[str]) -> List[Product]:
        term = (term or '').strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise InvalidInputError('El término de búsqueda debe tener al menos 2 caracteres')
        return self.products.search(term)

    def filter_products(self, category_id: Optional[str] = None, brand: Optional[str] = None) -> List[Product]:
        return self.products.filter(category_id=category_id, brand=brand)

    def get_featured_products(self) -> List[Product]:
        return self.products.find_featured()

    def get_categories(self) -> List[Category]:
        return self.products.find_categories()

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def _check_category(self, category_id: Optional[str]):
        if category_id and category_id not in {category.id for category in self.products.find_categories()}:
            raise InvalidInputError('Categoría no encontrada')

    def create_product(self, payload: ProductCreate) -> Product:
        if self.products.find_by_slug(payload.slug):
            raise InvalidInputError(f"Ya existe un producto con el slug '{payload.slug}'")

        self._check_category(payload.category_id)

        product = self.products.create(payload.model_dump())
        logger.info(f"Product {product.id} ({product.slug}) created")
        return product

    def update_product(self, product_id: str, payload: ProductUpdate) -> Product:
        """Partial update: fields left out of the request keep their value"""
        self.get_product_by_id(product_id)

        fields = payload.model_dump(exclude_unset=True, exclude_none=True)

        if 'slug' in fields:
            existing = self.products.find_by_slug(fields['slug'])
            if existing and existing.id != product_id:
                raise InvalidInputError(f"Ya existe un producto con el slug '{fields['slug']}'")

        self._check_category(fields.get('category_id'))

        return self.products.update(product_id, fields)

    def delete_product(self, product_id: str) -> str:
        """Delete a product together with all of its variants"""
        product = self.get_product_by_id(product_id)

        with self.db.transaction() as conn:
            self.products.delete(product.id, conn=conn)

        logger.info(f"Product {product.id} deleted with {len(product.variants)} variants")
        return 'Producto eliminado correctamente'
