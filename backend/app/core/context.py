"""
Application context

Everything with a process lifetime (settings, the connection pool, the
Supabase clients, repositories and services) is built once in the FastAPI
lifespan and stored on `app.state.context`. Routers reach it through the
`get_context` dependency.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.core.config import Settings
from app.core.database import Database
from app.core.identity import IdentityProvider
from app.repositories.address_repository import AddressRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.product_repository import ProductRepository
from app.repositories.user_repository import UserRepository
from app.repositories.variant_repository import VariantRepository
from app.services.address_service import AddressService
from app.services.order_service import OrderService
from app.services.product_service import ProductService
from app.services.user_service import UserService
from app.services.variant_service import VariantService

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    users: UserRepository
    addresses: AddressRepository
    products: ProductRepository
    variants: VariantRepository
    orders: OrderRepository

    @classmethod
    def build(cls, db: Database) -> "Repositories":
        return cls(
            users=UserRepository(db),
            addresses=AddressRepository(db),
            products=ProductRepository(db),
            variants=VariantRepository(db),
            orders=OrderRepository(db),
        )


class AppContext:
    """Services wired to one database and one identity provider"""

    def __init__(
        self,
        settings: Settings,
        db: Database,
        identity: IdentityProvider,
        repositories: Optional[Repositories] = None
    ):
        self.settings = settings
        self.db = db
        self.identity = identity
        self.repositories = repositories or Repositories.build(db)

        repos = self.repositories
        self.products = ProductService(db, repos.products)
        self.variants = VariantService(repos.variants, repos.products)
        self.addresses = AddressService(db, repos.addresses, repos.users)
        self.orders = OrderService(db, repos.orders, repos.variants, repos.addresses, repos.users)
        self.users = UserService(db, repos.users, repos.addresses, repos.orders, repos.variants, identity)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        db = Database(settings.DATABASE_URL, settings.DB_POOL_MIN, settings.DB_POOL_MAX)
        identity = IdentityProvider.from_settings(settings)
        logger.info(f"Application context ready (environment: {settings.ENVIRONMENT})")
        return cls(settings, db, identity)

    def close(self):
        self.db.close()


def get_context(request: Request) -> AppContext:
    return request.app.state.context
