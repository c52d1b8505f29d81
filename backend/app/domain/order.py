"""
Order Domain Models

Represents order-related entities in the GymShop system.
These are the single source of truth for order data structure.

Item prices are frozen when the order is created; totals are always derived
from the items and never stored.

Author: TM3
Date: 2025-10-17
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from app.domain.address import AddressSnapshot
from app.domain.base import CamelModel

DELIVERY_DAYS = 7


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value) -> Optional["OrderStatus"]:
        try:
            return cls(value)
        except ValueError:
            return None


class OrderItemProduct(CamelModel):
    id: str
    name: str
    slug: Optional[str] = None
    images: List[str] = Field(default_factory=list)


class OrderItemVariant(CamelModel):
    """Live variant data joined onto an order item (may differ from the frozen price)"""
    id: str
    price: Decimal
    color: Optional[str] = None
    color_name: Optional[str] = None
    size: Optional[str] = None
    flavor: Optional[str] = None
    weight: Optional[str] = None
    product: Optional[OrderItemProduct] = None


class OrderItem(CamelModel):
    """
    Order Item domain model - a line in an order

    Fields:
        id: Order item ID
        order_id: Parent order ID
        variant_id: Ordered variant (None once the variant is deleted)
        quantity: Units ordered
        price: Unit price frozen at order creation
        variant: Current variant/product data (from JOIN)
    """

    id: int = Field(..., description="Order item ID")
    order_id: int = Field(..., description="Parent order ID")
    variant_id: Optional[str] = Field(None, description="Variant ID")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    price: Decimal = Field(..., description="Unit price at order time", ge=0)
    variant: Optional[OrderItemVariant] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["subtotal"] = float(self.subtotal)
        return data


class Order(CamelModel):
    """
    Order domain model - a customer order

    `address` is the live address when `address_id` is set, otherwise the
    snapshot taken when that address was deleted.
    """

    id: int = Field(..., description="Order ID")
    user_id: str = Field(..., description="Internal user ID")
    address_id: Optional[str] = Field(None, description="Referenced address")
    address: Optional[AddressSnapshot] = None
    status: OrderStatus = OrderStatus.PENDING
    delivery_date: Optional[datetime] = None
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)
    items: List[OrderItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def subtotal(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    @property
    def total_amount(self) -> Decimal:
        return self.subtotal + self.shipping_cost

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    def to_dict(self) -> dict:
        """Convert to dictionary with derived totals"""
        data = super().to_dict()
        data["status"] = self.status.value
        data["items"] = [item.to_dict() for item in self.items]
        data["subtotal"] = float(self.subtotal)
        data["totalAmount"] = float(self.total_amount)
        data["totalQuantity"] = self.total_quantity
        return data


class OrderItemCreate(CamelModel):
    variant_id: str
    quantity: int


class OrderCreate(CamelModel):
    address_id: str
    items: List[OrderItemCreate] = Field(default_factory=list)


class OrderStatusUpdate(CamelModel):
    status: Optional[str] = None
