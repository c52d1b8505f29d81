"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.

Every repository receives the process-wide Database at construction and
every method takes an optional `conn` so services can group calls into a
single transaction.

Author: TM3
Date: 2025-10-17
"""
from app.repositories.user_repository import UserRepository
from app.repositories.address_repository import AddressRepository
from app.repositories.variant_repository import VariantRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.order_repository import OrderRepository

__all__ = [
    'UserRepository',
    'AddressRepository',
    'VariantRepository',
    'ProductRepository',
    'OrderRepository'
]
