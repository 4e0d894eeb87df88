# app/schemas/product.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.schemas.variant import Lifecycle, VariantCreate, VariantRead

ProductSort = Literal["newest", "price-asc", "price-desc", "name-asc", "name-desc", "rating-desc"]


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - With `variants`: colours/sizes/stock are defined per variant and the
      legacy `sizes` / `stock` fields are informational only.
    - Without: a legacy product sold from one flat stock counter.
    - At least one of base_price / price is required; the other is copied.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    description: str = ""
    category_id: uuid.UUID
    base_price: float | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)
    image: str | None = None
    sizes: list[str] = []
    stock: int = Field(default=0, ge=0)
    lifecycle: Lifecycle = "active"
    variants: list[VariantCreate] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("sizes")
    @classmethod
    def normalize_sizes(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s and s.strip()]


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    Variants are edited through the variant endpoints.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    category_id: uuid.UUID | None = None
    base_price: float | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)
    image: str | None = None
    sizes: list[str] | None = None
    stock: int | None = Field(default=None, ge=0)
    lifecycle: Lifecycle | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ProductRead(SQLModel):
    """
    Product representation for clients.

    `display_price` is what listings show: the lowest active variant price
    for variant products, else the single legacy price.
    """

    id: uuid.UUID
    name: str
    description: str
    category_id: uuid.UUID
    base_price: float | None
    price: float | None
    display_price: float
    has_variable_pricing: bool
    image: str
    sizes: list[str]
    stock: int
    total_stock: int
    rating: float
    num_reviews: int
    lifecycle: Lifecycle
    has_variants: bool
    variants: list[VariantRead]
    created_at: datetime
    updated_at: datetime


class ProductPage(SQLModel):
    items: list[ProductRead]
    total: int
    page: int
    pages: int
