# app/services/catalog.py
"""
Read-side view of a product: legacy or variant-based.

A product row alone does not say how it is sold. `load_catalog_item`
returns one of two shapes, both implementing `PricedSizedItem`:

  - LegacyProduct: one price, a list of size labels, one stock counter.
  - VariantProduct: colour variants, each with per-size stock records.

Price lookup, availability checks and the availability matrix all go
through this interface, so checkout and product pages never branch on
nullable legacy fields themselves.
"""
from dataclasses import dataclass, field
from typing import ClassVar, Protocol

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import NotFoundError, ValidationError
from app.models.product import Product, ProductVariant, VariantSize
from app.repositories.product_repo import ProductRepository
from app.schemas.variant import (
    AvailabilityMatrix,
    AvailabilityRead,
    ColorAvailability,
    ColorRead,
    SizeAvailability,
    SizeRead,
    VariantRead,
)


class PricedSizedItem(Protocol):
    product: Product
    has_variants: bool

    @property
    def total_stock(self) -> int: ...

    @property
    def display_price(self) -> float: ...

    @property
    def has_variable_pricing(self) -> bool: ...

    def price_for(self, variant_sku: str | None) -> float: ...

    def check_availability(self, variant_sku: str | None, size: str) -> AvailabilityRead: ...

    def availability_matrix(self) -> AvailabilityMatrix: ...


@dataclass
class VariantView:
    """A variant together with its ordered size records."""

    variant: ProductVariant
    sizes: list[VariantSize] = field(default_factory=list)

    @property
    def total_stock(self) -> int:
        return sum(s.stock for s in self.sizes)

    def find_size(self, size: str) -> VariantSize | None:
        return next((s for s in self.sizes if s.size == size), None)

    def to_read(self, price: float) -> VariantRead:
        v = self.variant
        return VariantRead(
            sku=v.sku,
            color=ColorRead(name=v.color_name, hex=v.color_hex, code=v.color_code),
            images=list(v.images),
            price_override=v.price_override,
            price=price,
            lifecycle=v.lifecycle,
            is_available=self.total_stock > 0,
            total_stock=self.total_stock,
            sizes=[
                SizeRead(
                    size=s.size,
                    stock=s.stock,
                    sku=s.sku,
                    low_stock_threshold=s.low_stock_threshold,
                    available=s.stock > 0,
                    low_stock=s.is_low_stock,
                )
                for s in self.sizes
            ],
            created_at=v.created_at,
        )


@dataclass
class LegacyProduct:
    product: Product
    low_stock_threshold: int = field(
        default_factory=lambda: get_settings().DEFAULT_LOW_STOCK_THRESHOLD
    )
    has_variants: ClassVar[bool] = False

    @property
    def total_stock(self) -> int:
        return self.product.stock

    @property
    def display_price(self) -> float:
        if self.product.price is not None:
            return self.product.price
        return self.product.effective_base_price

    @property
    def has_variable_pricing(self) -> bool:
        return False

    def price_for(self, variant_sku: str | None = None) -> float:
        return self.display_price

    def sells_size(self, size: str) -> bool:
        # Products without a size list are sold in any (free) size
        return not self.product.sizes or size in self.product.sizes

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.product.stock <= self.low_stock_threshold

    def check_availability(self, variant_sku: str | None, size: str) -> AvailabilityRead:
        if variant_sku:
            raise ValidationError("Product does not have variants", sku=variant_sku)
        if not self.sells_size(size):
            raise NotFoundError("Size not found", size=size)
        stock = self.product.stock
        return AvailabilityRead(
            available=stock > 0,
            stock=stock,
            low_stock=self.is_low_stock,
        )

    def availability_matrix(self) -> AvailabilityMatrix:
        return AvailabilityMatrix(
            product_id=str(self.product.id),
            product_name=self.product.name,
            has_variants=False,
            price=self.display_price,
            sizes=[
                SizeAvailability(
                    size=size,
                    stock=self.product.stock,
                    available=self.product.stock > 0,
                    low_stock=self.is_low_stock,
                )
                for size in self.product.sizes
            ],
        )


@dataclass
class VariantProduct:
    product: Product
    variants: list[VariantView]
    has_variants: ClassVar[bool] = True

    @property
    def active_variants(self) -> list[VariantView]:
        return [vv for vv in self.variants if vv.variant.is_active]

    @property
    def total_stock(self) -> int:
        return sum(vv.total_stock for vv in self.active_variants)

    def _variant_price(self, variant: ProductVariant) -> float:
        if variant.price_override is not None:
            return variant.price_override
        return self.product.effective_base_price

    @property
    def display_price(self) -> float:
        prices = [self._variant_price(vv.variant) for vv in self.active_variants]
        return min(prices) if prices else self.product.effective_base_price

    @property
    def has_variable_pricing(self) -> bool:
        return len({self._variant_price(vv.variant) for vv in self.active_variants}) > 1

    def find_variant(self, sku: str | None, include_inactive: bool = False) -> VariantView | None:
        for vv in self.variants:
            if vv.variant.sku == sku and (include_inactive or vv.variant.is_active):
                return vv
        return None

    def require_variant(self, sku: str | None, include_inactive: bool = False) -> VariantView:
        vv = self.find_variant(sku, include_inactive=include_inactive)
        if vv is None:
            raise NotFoundError("Variant not found", sku=sku)
        return vv

    def require_size(self, sku: str | None, size: str, include_inactive: bool = False) -> tuple[VariantView, VariantSize]:
        vv = self.require_variant(sku, include_inactive=include_inactive)
        size_record = vv.find_size(size)
        if size_record is None:
            raise NotFoundError("Size not found", sku=sku, size=size)
        return vv, size_record

    def price_for(self, variant_sku: str | None) -> float:
        return self._variant_price(self.require_variant(variant_sku).variant)

    def check_availability(self, variant_sku: str | None, size: str) -> AvailabilityRead:
        _, size_record = self.require_size(variant_sku, size)
        return AvailabilityRead(
            available=size_record.stock > 0,
            stock=size_record.stock,
            low_stock=size_record.is_low_stock,
        )

    def availability_matrix(self) -> AvailabilityMatrix:
        colors = []
        for vv in self.active_variants:
            v = vv.variant
            colors.append(
                ColorAvailability(
                    sku=v.sku,
                    name=v.color_name,
                    hex=v.color_hex,
                    code=v.color_code,
                    image=v.images[0] if v.images else "",
                    all_images=list(v.images),
                    price=self._variant_price(v),
                    is_available=vv.total_stock > 0,
                    sizes=[
                        SizeAvailability(
                            size=s.size,
                            stock=s.stock,
                            sku=s.sku,
                            available=s.stock > 0,
                            low_stock=s.is_low_stock,
                        )
                        for s in vv.sizes
                    ],
                )
            )
        return AvailabilityMatrix(
            product_id=str(self.product.id),
            product_name=self.product.name,
            has_variants=True,
            base_price=self.product.effective_base_price,
            has_variable_pricing=self.has_variable_pricing,
            colors=colors,
        )

    def variant_read(self, sku: str, include_inactive: bool = True) -> VariantRead:
        vv = self.require_variant(sku, include_inactive=include_inactive)
        return vv.to_read(self._variant_price(vv.variant))


def load_catalog_item(
    session: Session,
    repo: ProductRepository,
    product: Product,
) -> LegacyProduct | VariantProduct:
    """
    Build the catalog view of `product`.

    Any variant row (active or not) makes it a VariantProduct; inactive
    variants are kept so past orders can still restock them.
    """
    variants = repo.list_variants(session, product.id)
    if not variants:
        return LegacyProduct(product)

    sizes = repo.list_sizes_for_variants(session, [v.id for v in variants])
    return VariantProduct(
        product=product,
        variants=[VariantView(v, sizes.get(v.id, [])) for v in variants],
    )
