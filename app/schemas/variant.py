# app/schemas/variant.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

Lifecycle = Literal["active", "inactive"]
StockDirection = Literal["increment", "decrement"]


class ColorInput(SQLModel):
    """
    Colour of a variant. Presence + hex format are checked by the variant
    store so service callers get a ValidationError, not a 422.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    hex: str | None = None
    code: str | None = None

    @field_validator("name", "hex", "code")
    @classmethod
    def strip(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class ColorRead(SQLModel):
    name: str
    hex: str
    code: str


class SizeStockInput(SQLModel):
    """
    One size entry of a variant payload.

    - sku: keep an existing size SKU when editing; generated when omitted.
    - low_stock_threshold: defaults to the configured threshold (5).
    """

    model_config = ConfigDict(extra="forbid")

    size: str = Field(min_length=1, max_length=20)
    stock: int = Field(default=0, ge=0)
    sku: str | None = None
    low_stock_threshold: int | None = Field(default=None, ge=0)

    @field_validator("size")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("size cannot be empty")
        return v


class VariantCreate(SQLModel):
    """
    Payload for adding a colour variant to a product.
    """

    model_config = ConfigDict(extra="forbid")

    color: ColorInput | None = None
    images: list[str] = []
    price_override: float | None = Field(default=None, ge=0)
    sizes: list[SizeStockInput] = []


class VariantUpdate(SQLModel):
    """
    Partial update of a variant. Only fields present in the payload change;
    `price_override: null` explicitly resets to the product base price.
    """

    model_config = ConfigDict(extra="forbid")

    color: ColorInput | None = None
    images: list[str] | None = None
    price_override: float | None = Field(default=None, ge=0)
    sizes: list[SizeStockInput] | None = None
    lifecycle: Lifecycle | None = None


class SizeRead(SQLModel):
    size: str
    stock: int
    sku: str
    low_stock_threshold: int
    available: bool
    low_stock: bool


class VariantRead(SQLModel):
    """
    Full variant view including resolved price and per-size availability.
    """

    sku: str
    color: ColorRead
    images: list[str]
    price_override: float | None
    price: float
    lifecycle: Lifecycle
    is_available: bool
    total_stock: int
    sizes: list[SizeRead]
    created_at: datetime


class AvailabilityRead(SQLModel):
    """
    Result of a single (variant, size) availability check.
    """

    available: bool
    stock: int
    low_stock: bool = False


class SizeAvailability(SQLModel):
    size: str
    available: bool
    stock: int | None = None
    sku: str | None = None
    low_stock: bool = False


class ColorAvailability(SQLModel):
    sku: str
    name: str
    hex: str
    code: str
    image: str
    all_images: list[str]
    price: float
    is_available: bool
    sizes: list[SizeAvailability]


class AvailabilityMatrix(SQLModel):
    """
    Colour x size grid for a product page.

    Legacy products fill `price` + `sizes`; variant products fill
    `base_price`, `has_variable_pricing` + `colors` (active variants only).
    """

    product_id: str
    product_name: str
    has_variants: bool
    price: float | None = None
    base_price: float | None = None
    has_variable_pricing: bool = False
    sizes: list[SizeAvailability] = []
    colors: list[ColorAvailability] = []


class SizeStockSet(SQLModel):
    model_config = ConfigDict(extra="forbid")

    size: str
    stock: int = Field(ge=0)


class VariantStockUpdate(SQLModel):
    """
    Admin payload to set absolute stock levels for several sizes.
    """

    model_config = ConfigDict(extra="forbid")

    updates: list[SizeStockSet] = Field(min_length=1)


class StockAdjustment(SQLModel):
    """
    Admin payload for a relative stock mutation (restock / write-off).
    `variant_sku` is omitted for legacy products.
    """

    model_config = ConfigDict(extra="forbid")

    variant_sku: str | None = None
    size: str | None = None
    quantity: int = Field(gt=0)
    direction: StockDirection


class StockLevelRead(SQLModel):
    product_id: str
    variant_sku: str | None
    size: str | None
    stock: int
