"""
Address Domain Models

Author: TM3
Date: 2025-10-17
"""
from datetime import datetime
from typing import Optional

from pydantic import Field

from app.domain.base import CamelModel


class AddressSnapshot(CamelModel):
    """
    Frozen copy of an address, stored on orders whose address was deleted.

    Also the shape every order exposes as its `address`, whether it comes
    from the live row or from the snapshot.
    """
    street: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class Address(CamelModel):
    """
    Address domain model

    `street` is stored as address_line1.
    """

    id: str = Field(..., description="Address ID")
    user_id: str = Field(..., description="Internal owner user ID")
    street: str = Field(..., description="Street line")
    address_line2: Optional[str] = Field(None, description="Second address line")
    city: str
    state: str
    postal_code: str
    country: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_snapshot(self) -> AddressSnapshot:
        return AddressSnapshot(
            street=self.street,
            address_line2=self.address_line2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country,
        )


class AddressCreate(CamelModel):
    street: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class AddressUpdate(CamelModel):
    street: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
