"""
Variant Service
Variants are always addressed through their product
(/api/products/{productId}/variants/{id}).

Author: TM3
Date: 2025-10-17
"""
import logging
from typing import List

from app.core.errors import InvalidInputError, InvalidRelationError, NotFoundError
from app.domain.product import Variant, VariantCreate, VariantUpdate
from app.repositories.product_repository import ProductRepository
from app.repositories.variant_repository import VariantRepository

logger = logging.getLogger(__name__)


def _check_price_and_stock(fields: dict):
    if 'price' in fields and fields['price'] < 0:
        raise InvalidInputError('El precio no puede ser negativo')
    if 'stock' in fields and fields['stock'] < 0:
        raise InvalidInputError('El stock no puede ser negativo')


class VariantService:
    """Service for product variants (admin writes, public reads)"""

    def __init__(self, variants: VariantRepository, products: ProductRepository):
        self.variants = variants
        self.products = products

    def _require_product(self, product_id: str):
        if not self.products.find_by_id(product_id):
            raise NotFoundError('Producto no encontrado')

    def get_variants_by_product(self, product_id: str) -> List[Variant]:
        self._require_product(product_id)
        return self.variants.find_by_product_id(product_id)

    def get_variant_by_id(self, variant_id: str, product_id: str) -> Variant:
        variant = self.variants.find_by_id(variant_id)

        if not variant:
            raise NotFoundError('Variante no encontrada')

        if variant.product_id != product_id:
            raise InvalidRelationError('La variante no pertenece a este producto')

        return variant

    def create_variant(self, product_id: str, payload: VariantCreate) -> Variant:
        self._require_product(product_id)

        fields = payload.model_dump()
        _check_price_and_stock(fields)

        variant = self.variants.create(product_id, fields)
        logger.info(f"Variant {variant.id} created for product {product_id}")
        return variant

    def update_variant(self, variant_id: str, product_id: str, payload: VariantUpdate) -> Variant:
        """Partial update; price and stock keep the same non-negative rule"""
        self.get_variant_by_id(variant_id, product_id)

        fields = payload.model_dump(exclude_unset=True, exclude_none=True)
        _check_price_and_stock(fields)

        return self.variants.update(variant_id, fields)

    def delete_variant(self, variant_id: str, product_id: str) -> str:
        self.get_variant_by_id(variant_id, product_id)
        self.variants.delete(variant_id)
        logger.info(f"Variant {variant_id} of product {product_id} deleted")
        return 'Variante eliminada correctamente'
