# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import SQLModel, Field

# Lifecycle states shared by products and variants.
# Inactive rows are soft-deleted: hidden from the storefront but kept so
# historical orders can still resolve their SKUs.
LIFECYCLE_ACTIVE = "active"
LIFECYCLE_INACTIVE = "inactive"


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    Two shapes share this table:
      - variant products: colours/sizes/stock live in product_variants
        and variant_sizes; `base_price` is the default price.
      - legacy products: a single `price`, `image`, `sizes` list and a flat
        `stock` counter (kept for products created before variants).
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name of the product",
    )

    description: str = Field(default="")

    category_id: uuid.UUID = Field(
        foreign_key="categories.id",
        index=True,
    )

    base_price: float | None = Field(
        default=None,
        ge=0,
        description="Default price; variants may override it",
    )

    # ----- Legacy flat fields -----
    price: float | None = Field(default=None, ge=0)
    image: str = Field(default="")
    sizes: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    stock: int = Field(default=0, ge=0)

    # ----- Ratings (maintained by the rating aggregator) -----
    rating: float = Field(default=0.0, ge=0, le=5)
    num_reviews: int = Field(default=0, ge=0)

    lifecycle: str = Field(
        default=LIFECYCLE_ACTIVE,
        index=True,
        description="active | inactive",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_active(self) -> bool:
        return self.lifecycle == LIFECYCLE_ACTIVE

    @property
    def effective_base_price(self) -> float:
        if self.base_price is not None:
            return self.base_price
        return self.price or 0.0


class ProductVariant(SQLModel, table=True):
    """
    One colour of a product, e.g. "Navy" of "Classic Cotton T-Shirt".
    """

    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "sku", name="uq_product_variant_sku"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    sku: str = Field(index=True)

    color_name: str
    color_hex: str = Field(description="#RRGGBB")
    color_code: str = Field(index=True)

    images: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    price_override: float | None = Field(
        default=None,
        ge=0,
        description="None => use the product base price",
    )

    lifecycle: str = Field(default=LIFECYCLE_ACTIVE, index=True)

    # Ordering within the product
    position: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_active(self) -> bool:
        return self.lifecycle == LIFECYCLE_ACTIVE


class VariantSize(SQLModel, table=True):
    """
    Stock record for one size of one variant.
    `stock` never goes below zero (enforced by the ledger and the DB).
    """

    __tablename__ = "variant_sizes"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_variant_sizes_stock_non_negative"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    variant_id: uuid.UUID = Field(
        foreign_key="product_variants.id",
        index=True,
    )

    size: str
    stock: int = Field(default=0, ge=0)
    sku: str = Field(index=True)
    low_stock_threshold: int = Field(default=5, ge=0)

    position: int = Field(default=0, ge=0)

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.stock <= self.low_stock_threshold
