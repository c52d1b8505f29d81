"""
Pytest fixtures and configuration for GymShop Backend tests

Service and API tests run against in-memory fakes that expose the same
methods as the psycopg2 repositories. FakeDatabase.transaction() keeps an
undo log so a failing unit of work leaves the store as it was, the way a
Postgres rollback would.

Author: TM3
Date: 2025-10-17
"""
import itertools
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.context import AppContext, Repositories
from app.core.identity import IdentityError, IdentityUser
from app.domain.address import Address, AddressSnapshot
from app.domain.order import Order, OrderItem, OrderItemProduct, OrderItemVariant, OrderStatus
from app.domain.product import Category, Product, Variant
from app.domain.user import ROLE_ADMIN, ROLE_CUSTOMER, Principal, User
from app.main import create_app

_MISSING = object()


def _now():
    return datetime.now(timezone.utc)


# =============================================================================
# Store and database
# =============================================================================

class FakeTransaction:
    """What FakeDatabase hands out as a connection"""

    def __init__(self):
        self.undo = []
        self.release = []


class InMemoryStore:
    """Tables as dicts, guarded by one lock"""

    TABLES = ("users", "roles", "addresses", "categories", "products", "variants", "orders", "order_items")

    def __init__(self):
        self.tables = {name: {} for name in self.TABLES}
        self.lock = threading.RLock()
        self._order_ids = itertools.count(1)
        self._item_ids = itertools.count(1)
        self._order_locks = {}

    def get(self, table, key):
        with self.lock:
            return self.tables[table].get(key)

    def rows(self, table):
        with self.lock:
            return list(self.tables[table].values())

    def put(self, table, key, row, conn=None):
        with self.lock:
            previous = self.tables[table].get(key, _MISSING)
            self.tables[table][key] = row
        self.remember(conn, lambda: self._restore(table, key, previous))

    def remove(self, table, key, conn=None):
        with self.lock:
            previous = self.tables[table].pop(key, _MISSING)
        if previous is not _MISSING:
            self.remember(conn, lambda: self._restore(table, key, previous))
        return previous is not _MISSING

    def remember(self, conn, undo):
        if isinstance(conn, FakeTransaction):
            conn.undo.append(undo)

    def _restore(self, table, key, previous):
        with self.lock:
            if previous is _MISSING:
                self.tables[table].pop(key, None)
            else:
                self.tables[table][key] = previous

    def next_order_id(self):
        return next(self._order_ids)

    def next_item_id(self):
        return next(self._item_ids)

    def order_lock(self, order_id):
        with self.lock:
            return self._order_locks.setdefault(order_id, threading.Lock())


class FakeDatabase:
    def __init__(self):
        self.transactions = 0
        self.closed = False

    @contextmanager
    def connection(self, conn=None):
        if conn is not None:
            yield conn
            return

        with self.transaction() as owned:
            yield owned

    @contextmanager
    def transaction(self):
        self.transactions += 1
        tx = FakeTransaction()
        try:
            yield tx
        except Exception:
            for undo in reversed(tx.undo):
                undo()
            raise
        finally:
            for release in tx.release:
                release()

    def ping(self):
        return 0.42

    def close(self):
        self.closed = True


# =============================================================================
# Repositories
# =============================================================================

class FakeUserRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _with_role(self, user: User) -> User:
        role = self.store.get("roles", user.user_id) or ROLE_CUSTOMER
        return user.model_copy(update={"role": role})

    def find_all(self, conn=None):
        return [self._with_role(user) for user in self.store.rows("users")]

    def find_by_id(self, user_id, conn=None):
        user = self.store.get("users", user_id)
        return self._with_role(user) if user else None

    def find_by_auth_id(self, auth_id, conn=None):
        for user in self.store.rows("users"):
            if user.user_id == auth_id:
                return self._with_role(user)
        return None

    def update(self, user_id, fields, conn=None):
        user = self.store.get("users", user_id)
        if not user:
            return None
        self.store.put("users", user_id, user.model_copy(update={**fields, "updated_at": _now()}), conn)
        return self.find_by_id(user_id)

    def update_role(self, auth_id, role, conn=None):
        self.store.put("roles", auth_id, role, conn)
        return role

    def anonymize(self, user_id, full_name, email, conn=None):
        user = self.store.get("users", user_id)
        if not user:
            return False
        anonymized = user.model_copy(update={"full_name": full_name, "email": email, "phone": None})
        self.store.put("users", user_id, anonymized, conn)
        return True

    def delete_role(self, auth_id, conn=None):
        return 1 if self.store.remove("roles", auth_id, conn) else 0

    def delete(self, user_id, conn=None):
        return self.store.remove("users", user_id, conn)


class FakeAddressRepository:
    COLUMN_FIELDS = {"address_line1": "street"}

    def __init__(self, store: InMemoryStore):
        self.store = store

    def find_by_user_id(self, user_id, conn=None):
        return [address for address in self.store.rows("addresses") if address.user_id == user_id]

    def find_by_id(self, address_id, conn=None):
        return self.store.get("addresses", address_id)

    def create(self, user_id, fields, conn=None):
        address = Address(
            id=str(uuid.uuid4()),
            user_id=user_id,
            street=fields["address_line1"],
            address_line2=fields.get("address_line2"),
            city=fields["city"],
            state=fields["state"],
            postal_code=fields["postal_code"],
            country=fields["country"],
            created_at=_now(),
        )
        self.store.put("addresses", address.id, address, conn)
        return address

    def update(self, address_id, fields, conn=None):
        address = self.store.get("addresses", address_id)
        if not address:
            return None
        changes = {self.COLUMN_FIELDS.get(column, column): value for column, value in fields.items()}
        self.store.put("addresses", address_id, address.model_copy(update=changes), conn)
        return self.store.get("addresses", address_id)

    def snapshot_to_orders(self, address_id, snapshot, conn=None):
        detached = 0
        for row in self.store.rows("orders"):
            if row["address_id"] == address_id:
                updated = {**row, "address_id": None, "address_snapshot": snapshot.model_dump()}
                self.store.put("orders", row["id"], updated, conn)
                detached += 1
        return detached

    def delete(self, address_id, conn=None):
        return self.store.remove("addresses", address_id, conn)

    def delete_by_user_id(self, user_id, conn=None):
        addresses = self.find_by_user_id(user_id)
        for address in addresses:
            self.store.remove("addresses", address.id, conn)
        return len(addresses)


class FakeVariantRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store
        # Called inside decrement_stock before the stock is read; tests use it
        # to line up concurrent orders
        self.before_decrement = None

    def find_by_product_id(self, product_id, conn=None):
        return [variant for variant in self.store.rows("variants") if variant.product_id == product_id]

    def find_by_id(self, variant_id, conn=None):
        return self.store.get("variants", variant_id)

    def create(self, product_id, fields, conn=None):
        variant = Variant(id=str(uuid.uuid4()), product_id=product_id, created_at=_now(), **fields)
        self.store.put("variants", variant.id, variant, conn)
        return variant

    def update(self, variant_id, fields, conn=None):
        variant = self.store.get("variants", variant_id)
        if not variant:
            return None
        self.store.put("variants", variant_id, variant.model_copy(update=fields), conn)
        return self.store.get("variants", variant_id)

    def delete(self, variant_id, conn=None):
        return self.store.remove("variants", variant_id, conn)

    def _adjust(self, variant_id, delta):
        with self.store.lock:
            variant = self.store.tables["variants"].get(variant_id)
            if variant is None or variant.stock + delta < 0:
                return None
            self.store.tables["variants"][variant_id] = variant.model_copy(update={"stock": variant.stock + delta})
            return variant.stock + delta

    def decrement_stock(self, variant_id, quantity, conn=None):
        if self.before_decrement:
            self.before_decrement()
        remaining = self._adjust(variant_id, -quantity)
        if remaining is not None:
            self.store.remember(conn, lambda: self._adjust(variant_id, quantity))
        return remaining

    def increment_stock(self, variant_id, quantity, conn=None):
        restored = self._adjust(variant_id, quantity)
        if restored is not None:
            self.store.remember(conn, lambda: self._adjust(variant_id, -quantity))
        return restored


class FakeProductRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _attach(self, product: Product) -> Product:
        variants = [variant for variant in self.store.rows("variants") if variant.product_id == product.id]
        category = self.store.get("categories", product.category_id) if product.category_id else None
        return product.model_copy(update={"variants": variants, "category": category})

    def _all(self):
        products = sorted(self.store.rows("products"), key=lambda product: product.created_at, reverse=True)
        return [self._attach(product) for product in products]

    def find_all(self, limit=None, offset=0, conn=None):
        products = self._all()
        if limit is None:
            return products[offset:]
        return products[offset:offset + limit]

    def count(self, conn=None):
        return len(self.store.rows("products"))

    def find_by_id(self, product_id, conn=None):
        product = self.store.get("products", product_id)
        return self._attach(product) if product else None

    def find_by_slug(self, slug, conn=None):
        for product in self._all():
            if product.slug == slug:
                return product
        return None

    def search(self, term, conn=None):
        term = term.lower()
        return [
            product for product in self._all()
            if term in product.name.lower() or term in (product.brand or "").lower()
        ]

    def filter(self, category_id=None, brand=None, conn=None):
        return [
            product for product in self._all()
            if (not category_id or product.category_id == category_id)
            and (not brand or product.brand == brand)
        ]

    def find_featured(self, conn=None):
        return [product for product in self._all() if product.highlighted]

    def find_categories(self, conn=None):
        return sorted(self.store.rows("categories"), key=lambda category: category.name)

    def create(self, fields, conn=None):
        product = Product(id=str(uuid.uuid4()), created_at=_now(), **fields)
        self.store.put("products", product.id, product, conn)
        return self.find_by_id(product.id)

    def update(self, product_id, fields, conn=None):
        product = self.store.get("products", product_id)
        if not product:
            return None
        self.store.put("products", product_id, product.model_copy(update=fields), conn)
        return self.find_by_id(product_id)

    def delete(self, product_id, conn=None):
        for variant in self.store.rows("variants"):
            if variant.product_id == product_id:
                self.store.remove("variants", variant.id, conn)
        return self.store.remove("products", product_id, conn)


class FakeOrderRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _build(self, row: dict) -> Order:
        address = None
        live = self.store.get("addresses", row["address_id"]) if row["address_id"] else None
        if live:
            address = live.to_snapshot()
        elif row.get("address_snapshot"):
            address = AddressSnapshot(**row["address_snapshot"])

        items = []
        for item in sorted(self.store.rows("order_items"), key=lambda item: item["id"]):
            if item["order_id"] != row["id"]:
                continue
            variant = self.store.get("variants", item["variant_id"]) if item["variant_id"] else None
            joined = None
            if variant:
                product = self.store.get("products", variant.product_id)
                joined = OrderItemVariant(
                    id=variant.id,
                    price=variant.price,
                    size=variant.size,
                    flavor=variant.flavor,
                    product=OrderItemProduct(id=product.id, name=product.name, slug=product.slug) if product else None,
                )
            items.append(OrderItem(variant=joined, **item))

        return Order(
            id=row["id"],
            user_id=row["user_id"],
            address_id=row["address_id"],
            address=address,
            status=row["status"],
            delivery_date=row["delivery_date"],
            shipping_cost=row["shipping_cost"],
            items=items,
            created_at=row["created_at"],
        )

    def find_all(self, conn=None):
        rows = sorted(self.store.rows("orders"), key=lambda row: row["id"], reverse=True)
        return [self._build(row) for row in rows]

    def find_by_user_id(self, user_id, conn=None):
        return [order for order in self.find_all() if order.user_id == user_id]

    def find_by_id(self, order_id, conn=None):
        row = self.store.get("orders", order_id)
        return self._build(row) if row else None

    def find_by_id_for_update(self, order_id, conn):
        lock = self.store.order_lock(order_id)
        lock.acquire()
        conn.release.append(lock.release)
        return self.find_by_id(order_id)

    def create(self, user_id, address_id, delivery_date, shipping_cost=Decimal("0"),
               status=OrderStatus.PENDING, conn=None):
        order_id = self.store.next_order_id()
        self.store.put("orders", order_id, {
            "id": order_id,
            "user_id": user_id,
            "address_id": address_id,
            "address_snapshot": None,
            "status": status.value,
            "delivery_date": delivery_date,
            "shipping_cost": shipping_cost,
            "created_at": _now(),
        }, conn)
        return order_id

    def create_items(self, order_id, items, conn=None):
        for item in items:
            item_id = self.store.next_item_id()
            self.store.put("order_items", item_id, {
                "id": item_id,
                "order_id": order_id,
                "variant_id": item["variant_id"],
                "quantity": item["quantity"],
                "price": item["price"],
            }, conn)
        return len(items)

    def update_status(self, order_id, status, conn=None):
        row = self.store.get("orders", order_id)
        if not row:
            return False
        self.store.put("orders", order_id, {**row, "status": status.value}, conn)
        return True

    def delete_by_user_id(self, user_id, conn=None):
        order_ids = [row["id"] for row in self.store.rows("orders") if row["user_id"] == user_id]
        for item in self.store.rows("order_items"):
            if item["order_id"] in order_ids:
                self.store.remove("order_items", item["id"], conn)
        for order_id in order_ids:
            self.store.remove("orders", order_id, conn)
        return len(order_ids)


class FakeIdentity:
    """Stands in for IdentityProvider: token -> IdentityUser"""

    def __init__(self):
        self.tokens = {}
        self.deleted = []
        self.fail_delete = False

    def verify_token(self, token):
        return self.tokens.get(token)

    def delete_user(self, auth_id):
        if self.fail_delete:
            raise IdentityError("User not allowed")
        self.deleted.append(auth_id)


# =============================================================================
# Fixtures
# =============================================================================

CUSTOMER_TOKEN = "customer-token"
ADMIN_TOKEN = "admin-token"
OTHER_TOKEN = "other-token"


@pytest.fixture
def settings():
    return Settings(_env_file=None, ENVIRONMENT="test", DATABASE_URL="")


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def repositories(store):
    return Repositories(
        users=FakeUserRepository(store),
        addresses=FakeAddressRepository(store),
        products=FakeProductRepository(store),
        variants=FakeVariantRepository(store),
        orders=FakeOrderRepository(store),
    )


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def context(settings, db, identity, repositories):
    return AppContext(settings, db, identity, repositories=repositories)


@pytest.fixture
def seed(store, identity):
    """
    A small shop:
    - customer (auth-customer / user-1) with one address
    - another customer (auth-other / user-2)
    - admin (auth-admin / user-admin)
    - one product with a variant: stock 5, price 10000
    """
    users = [
        User(id="user-1", user_id="auth-customer", email="ana@example.com", full_name="Ana", phone="+56911111111"),
        User(id="user-2", user_id="auth-other", email="beto@example.com", full_name="Beto"),
        User(id="user-admin", user_id="auth-admin", email="admin@example.com", full_name="Admin"),
    ]
    for user in users:
        store.put("users", user.id, user)
    store.put("roles", "auth-admin", ROLE_ADMIN)

    identity.tokens[CUSTOMER_TOKEN] = IdentityUser(id="auth-customer", email="ana@example.com")
    identity.tokens[OTHER_TOKEN] = IdentityUser(id="auth-other", email="beto@example.com")
    identity.tokens[ADMIN_TOKEN] = IdentityUser(id="auth-admin", email="admin@example.com")

    address = Address(
        id="address-1",
        user_id="user-1",
        street="Av. Providencia 1234",
        address_line2="Depto 56",
        city="Santiago",
        state="RM",
        postal_code="7500000",
        country="Chile",
    )
    store.put("addresses", address.id, address)

    category = Category(id="cat-1", name="Proteínas", slug="proteinas")
    store.put("categories", category.id, category)

    product = Product(
        id="product-1",
        name="Whey Protein",
        slug="whey-protein",
        brand="Optimum",
        category_id="cat-1",
        highlighted=True,
        created_at=_now(),
    )
    store.put("products", product.id, product)

    variant = Variant(id="variant-1", product_id="product-1", price=Decimal("10000"), stock=5, flavor="Chocolate")
    store.put("variants", variant.id, variant)

    return {"address": address, "product": product, "variant": variant}


@pytest.fixture
def customer():
    return Principal(auth_id="auth-customer", user_id="user-1", email="ana@example.com", role=ROLE_CUSTOMER)


@pytest.fixture
def other_customer():
    return Principal(auth_id="auth-other", user_id="user-2", email="beto@example.com", role=ROLE_CUSTOMER)


@pytest.fixture
def admin():
    return Principal(auth_id="auth-admin", user_id="user-admin", email="admin@example.com", role=ROLE_ADMIN)


@pytest.fixture
def client(settings, context):
    app = create_app(settings, context)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def headers():
    """Authorization headers by caller"""
    return {
        "customer": {"Authorization": f"Bearer {CUSTOMER_TOKEN}"},
        "other": {"Authorization": f"Bearer {OTHER_TOKEN}"},
        "admin": {"Authorization": f"Bearer {ADMIN_TOKEN}"},
    }
