# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal["Pending", "Processing", "Shipped", "Delivered", "Cancelled"]
PaymentMethod = Literal["Cash on Delivery", "COD"]


class ShippingAddress(SQLModel):
    """
    Delivery address captured at checkout.
    `country` falls back to the configured default when omitted.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str
    phone: str
    address: str
    city: str
    postal_code: str
    country: str | None = None

    @field_validator("full_name", "phone", "address", "city", "postal_code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class OrderItemCreate(SQLModel):
    """
    One cart line sent at checkout.

    Price, name, image and colour are NOT taken from the client; the
    server snapshots them from the catalog.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(ge=1)
    size: str
    variant_sku: str | None = None

    @field_validator("size")
    @classmethod
    def strip_size(cls, v: str) -> str:
        return v.strip()


class OrderCreate(SQLModel):
    """
    Checkout payload.

    Backend derives:
      - user_id from token
      - status = 'Pending'
      - items_price / shipping_price / total_price from the catalog
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderItemCreate] = []
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = "Cash on Delivery"
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class ColorSnapshot(SQLModel):
    name: str | None
    hex: str | None
    code: str | None


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    unit_price: float
    quantity: int
    size: str
    image: str | None
    variant_sku: str | None
    color: ColorSnapshot | None
    size_sku: str | None
    line_total: float


class ShippingAddressRead(SQLModel):
    full_name: str
    phone: str
    address: str
    city: str
    postal_code: str
    country: str


class OrderRead(SQLModel):
    """
    Order without items.
    """

    id: uuid.UUID
    user_id: uuid.UUID
    shipping_address: ShippingAddressRead
    payment_method: str
    items_price: float
    shipping_price: float
    total_price: float
    status: OrderStatus
    is_paid: bool
    paid_at: datetime | None
    is_delivered: bool
    delivered_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderPage(SQLModel):
    items: list[OrderRead]
    total: int
    page: int
    pages: int


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    reason: str | None = None


class OrderCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = None
