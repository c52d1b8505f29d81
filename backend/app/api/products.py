"""
Products API Endpoints
Public catalog queries and admin product management

Author: TM3
Date: 2025-10-17
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import require_admin
from app.core.context import AppContext, get_context
from app.domain.product import ProductCreate, ProductUpdate
from app.domain.user import Principal

router = APIRouter()


@router.get("")
def get_products(
    page: Optional[int] = Query(None, ge=1, description="Page number (1-based)"),
    limit: int = Query(12, ge=1, le=100, description="Products per page"),
    context: AppContext = Depends(get_context)
):
    """
    Get products, newest first, with category and variants

    Returns pagination {page, limit, total, totalPages}
    """
    products, pagination = context.products.get_all_products(page, limit)

    return {
        "success": True,
        "data": [product.to_dict() for product in products],
        "pagination": pagination
    }


@router.get("/search")
def search_products(
    q: Optional[str] = Query(None, description="Search term (min 2 characters)"),
    context: AppContext = Depends(get_context)
):
    """Search products by name or brand"""
    products = context.products.search_products(q)

    return {
        "success": True,
        "data": [product.to_dict() for product in products],
        "count": len(products)
    }


@router.get("/filter")
def filter_products(
    category: Optional[str] = Query(None, description="Category ID"),
    brand: Optional[str] = Query(None, description="Brand name"),
    context: AppContext = Depends(get_context)
):
    products = context.products.filter_products(category_id=category, brand=brand)

    return {
        "success": True,
        "data": [product.to_dict() for product in products],
        "count": len(products)
    }


@router.get("/featured")
def get_featured_products(context: AppContext = Depends(get_context)):
    """Highlighted products for the home page"""
    products = context.products.get_featured_products()

    return {
        "success": True,
        "data": [product.to_dict() for product in products]
    }


@router.get("/categories")
def get_categories(context: AppContext = Depends(get_context)):
    categories = context.products.get_categories()

    return {
        "success": True,
        "data": [category.to_dict() for category in categories]
    }


@router.get("/slug/{slug}")
def get_product_by_slug(slug: str, context: AppContext = Depends(get_context)):
    product = context.products.get_product_by_slug(slug)

    return {
        "success": True,
        "data": product.to_dict()
    }


@router.get("/{product_id}")
def get_product(product_id: str, context: AppContext = Depends(get_context)):
    product = context.products.get_product_by_id(product_id)

    return {
        "success": True,
        "data": product.to_dict()
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    product = context.products.create_product(payload)

    return {
        "success": True,
        "message": "Producto creado correctamente",
        "data": product.to_dict()
    }


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    """Partial update; omitted fields keep their value"""
    product = context.products.update_product(product_id, payload)

    return {
        "success": True,
        "message": "Producto actualizado correctamente",
        "data": product.to_dict()
    }


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    principal: Principal = Depends(require_admin),
    context: AppContext = Depends(get_context)
):
    """Delete a product and all of its variants"""
    message = context.products.delete_product(product_id)

    return {
        "success": True,
        "message": message
    }
