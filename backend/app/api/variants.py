"""
Variants API Endpoints
Nested under /api/products/{product_id}/variants

Author: TM3
Date: 2025-10-17
"""
from fastapi import APIRouter, Depends, status

from app.core.auth import require_admin
from app.core.context import AppContext, get_context
from app.domain.product import VariantCreate, VariantUpdate
from app.domain.user import Principal

router = APIRouter()


@router.get("")
def get_variants(product_id: str, context: AppContext = Depends(get_context)):
    variants = context.variants.get_variants_by_product(product_id)

    return {
        "success": True,
        "data": [variant.to_dict() for variant in variants],
        "count": len(variants)
    }


@router.get("/{variant_id}")
def get_variant(product_id: str, variant_id: str, context: AppContext = Depends(get_context)):
    variant = context.variants.get_variant_by_id(variant_id, product_id)

    return {
        "success": True,
        "data": variant.to_dict()
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_variant(
    product_id: str,
    payload: VariantCreate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    variant = context.variants.create_variant(product_id, payload)

    return {
        "success": True,
        "message": "Variante creada correctamente",
        "data": variant.to_dict()
    }


@router.put("/{variant_id}")
def update_variant(
    product_id: str,
    variant_id: str,
    payload: VariantUpdate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    variant = context.variants.update_variant(variant_id, product_id, payload)

    return {
        "success": True,
        "message": "Variante actualizada correctamente",
        "data": variant.to_dict()
    }


@router.delete("/{variant_id}")
def delete_variant(
    product_id: str,
    variant_id: str,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    message = context.variants.delete_variant(variant_id, product_id)

    return {
        "success": True,
        "message": message
    }
