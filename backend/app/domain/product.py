"""
Product Domain Models

Represents the storefront catalog: categories, products and the purchasable
variants (color/size/flavor/weight combinations) that carry price and stock.

Author: TM3
Date: 2025-10-17
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from app.domain.base import CamelModel


class Category(CamelModel):
    id: str
    name: str
    slug: Optional[str] = None


class Variant(CamelModel):
    """
    Variant domain model - a purchasable SKU of a product

    Fields:
        id: Variant ID
        product_id: Owning product
        price: Current selling price
        stock: Units available, never negative
        color / color_name / size / flavor / weight: Optional attributes
    """

    id: str = Field(..., description="Variant ID")
    product_id: str = Field(..., description="Owning product ID")
    price: Decimal = Field(..., description="Unit price", ge=0)
    stock: int = Field(..., description="Units in stock", ge=0)
    color: Optional[str] = None
    color_name: Optional[str] = None
    size: Optional[str] = None
    flavor: Optional[str] = None
    weight: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0


class Product(CamelModel):
    """
    Product domain model

    `highlighted` products are the ones shown as featured on the home page.
    Category and variants are filled in when the repository joins them.
    """

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    slug: str = Field(..., description="URL slug")
    description: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    category_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    highlighted: bool = False
    category: Optional[Category] = None
    variants: List[Variant] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_stock(self) -> int:
        return sum(variant.stock for variant in self.variants)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["totalStock"] = self.total_stock
        return data


class ProductCreate(CamelModel):
    name: str
    slug: str
    description: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    category_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    highlighted: bool = False


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    features: Optional[List[str]] = None
    brand: Optional[str] = None
    category_id: Optional[str] = None
    images: Optional[List[str]] = None
    highlighted: Optional[bool] = None


class VariantCreate(CamelModel):
    price: Decimal
    stock: int
    color: Optional[str] = None
    color_name: Optional[str] = None
    size: Optional[str] = None
    flavor: Optional[str] = None
    weight: Optional[str] = None


class VariantUpdate(CamelModel):
    price: Optional[Decimal] = None
    stock: Optional[int] = None
    color: Optional[str] = None
    color_name: Optional[str] = None
    size: Optional[str] = None
    flavor: Optional[str] = None
    weight: Optional[str] = None
