# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

STATUS_PENDING = "Pending"
STATUS_PROCESSING = "Processing"
STATUS_SHIPPED = "Shipped"
STATUS_DELIVERED = "Delivered"
STATUS_CANCELLED = "Cancelled"


class Order(SQLModel, table=True):
    """
    Customer order.

    Items are immutable snapshots (see OrderItem); after creation only the
    status fields and the paid/delivered flags change.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # ----- Shipping address -----
    shipping_full_name: str
    shipping_phone: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str

    # "Cash on Delivery" | "COD"
    payment_method: str = Field(default="Cash on Delivery")

    # ----- Pricing -----
    items_price: float = Field(default=0.0, ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)

    # Pending | Processing | Shipped | Delivered | Cancelled
    status: str = Field(
        default=STATUS_PENDING,
        index=True,
        description="Order status lifecycle",
    )

    is_paid: bool = Field(default=False, index=True)
    paid_at: datetime | None = None

    is_delivered: bool = Field(default=False, index=True)
    delivered_at: datetime | None = None

    notes: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    Name, price, image and variant details are copied from the catalog at
    checkout so later catalog edits never rewrite order history.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(index=True)

    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(gt=0, description="Quantity ordered (>=1)")
    size: str
    image: str | None = None

    # Variant snapshot (None for legacy products)
    variant_sku: str | None = None
    color_name: str | None = None
    color_hex: str | None = None
    color_code: str | None = None
    size_sku: str | None = None

    # Ordering within the order
    position: int = Field(default=0, ge=0)
