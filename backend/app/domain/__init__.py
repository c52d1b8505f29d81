"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.

Author: TM3
Date: 2025-10-17
"""
from app.domain.user import User, Principal
from app.domain.address import Address, AddressSnapshot
from app.domain.product import Product, Variant, Category
from app.domain.order import Order, OrderItem, OrderStatus

__all__ = [
    'User',
    'Principal',
    'Address',
    'AddressSnapshot',
    'Product',
    'Variant',
    'Category',
    'Order',
    'OrderItem',
    'OrderStatus',
]
