# app/services/variant_service.py
import logging
import re
import uuid

from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.product import (
    LIFECYCLE_INACTIVE,
    Product,
    ProductVariant,
    VariantSize,
)
from app.repositories.product_repo import ProductRepository
from app.schemas.variant import (
    AvailabilityMatrix,
    AvailabilityRead,
    ColorInput,
    SizeStockInput,
    VariantCreate,
    VariantRead,
    VariantStockUpdate,
    VariantUpdate,
)
from app.services.catalog import VariantProduct, load_catalog_item
from app.services.sku import generate_sku, unique_sku

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class VariantService:
    """
    Variant store + availability engine.

    Responsibilities:
      - add / edit / soft-delete colour variants of a product
      - SKU generation with per-product uniqueness checks
      - single (variant, size) availability checks for checkout
      - the colour x size availability matrix for product pages
      - absolute stock edits from the admin console
    """

    def __init__(self, repo: ProductRepository, settings: Settings | None = None):
        self.repo = repo
        self.settings = settings or get_settings()

    # ----- Helpers -----

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def _get_variant(
        self,
        session: Session,
        product: Product,
        sku: str,
    ) -> ProductVariant:
        variant = self.repo.get_variant_by_sku(session, product.id, sku)
        if not variant:
            raise NotFoundError("Variant not found", sku=sku)
        return variant

    def _validate_hex(self, hex_value: str) -> None:
        if not HEX_COLOR_RE.match(hex_value):
            raise ValidationError(
                "Color hex must look like #RRGGBB",
                hex=hex_value,
            )

    def _validate_color(self, color: ColorInput | None) -> ColorInput:
        if color is None or not (color.name and color.hex and color.code):
            raise ValidationError("Color information is required (name, hex, code)")
        self._validate_hex(color.hex)
        return color

    def _validate_images(self, images: list[str], required: bool) -> list[str]:
        images = [img.strip() for img in images if img and img.strip()]
        if required and not images:
            raise ValidationError("At least one image is required")
        if len(images) > self.settings.MAX_VARIANT_IMAGES:
            raise ValidationError(
                f"Maximum {self.settings.MAX_VARIANT_IMAGES} images allowed per variant"
            )
        return images

    def _validate_sizes(self, sizes: list[SizeStockInput]) -> None:
        if not sizes:
            raise ValidationError("At least one size is required")
        labels = [s.size for s in sizes]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ValidationError("Duplicate sizes in variant", sizes=duplicates)

    def _build_sizes(
        self,
        product: Product,
        color_code: str,
        sizes: list[SizeStockInput],
        taken: set[str],
        current: dict[str, str] | None = None,
    ) -> list[VariantSize]:
        """
        Turn size payloads into VariantSize rows.

        SKU per size: the payload's sku, else the sku the same size label had
        on this variant before (`current`), else a generated one. SKUs
        already used elsewhere on the product get a random suffix.
        """
        current = current or {}
        records: list[VariantSize] = []
        for entry in sizes:
            candidate = (
                entry.sku
                or current.get(entry.size)
                or generate_sku(product.name, color_code, entry.size)
            )
            sku = unique_sku(candidate, taken)
            taken.add(sku)
            threshold = entry.low_stock_threshold
            records.append(
                VariantSize(
                    size=entry.size,
                    stock=entry.stock,
                    sku=sku,
                    low_stock_threshold=(
                        threshold
                        if threshold is not None
                        else self.settings.DEFAULT_LOW_STOCK_THRESHOLD
                    ),
                )
            )
        return records

    def _variant_product(self, session: Session, product: Product) -> VariantProduct:
        item = load_catalog_item(session, self.repo, product)
        if not isinstance(item, VariantProduct):
            raise NotFoundError("Product does not have variants")
        return item

    # ----- Variant store -----

    def prepare_variant(
        self,
        product: Product,
        payload: VariantCreate,
        existing_skus: set[str],
        taken: set[str],
        position: int,
    ) -> tuple[ProductVariant, list[VariantSize]]:
        """
        Validate a variant payload and build (unsaved) rows for it.

        Rules:
          - colour name, hex (#RRGGBB) and code are required
          - 1..MAX_VARIANT_IMAGES images
          - at least one size, no duplicate size labels
          - the generated variant SKU must not be in `existing_skus`
            (active or inactive variants) => ConflictError

        `taken` (size SKUs already used on the product) is updated in place.
        """
        color = self._validate_color(payload.color)
        images = self._validate_images(payload.images, required=True)
        self._validate_sizes(payload.sizes)

        variant_sku = generate_sku(product.name, color.code)
        if variant_sku in existing_skus:
            raise ConflictError("Variant with this color already exists", sku=variant_sku)

        sizes = self._build_sizes(product, color.code, payload.sizes, taken)
        variant = ProductVariant(
            product_id=product.id,
            sku=variant_sku,
            color_name=color.name,
            color_hex=color.hex,
            color_code=color.code,
            images=images,
            price_override=payload.price_override,
            position=position,
        )
        return variant, sizes

    def add_variant(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: VariantCreate,
    ) -> VariantRead:
        """
        Append a colour variant to a product (see `prepare_variant` for rules).
        """
        product = self._get_product(session, product_id)
        existing = self.repo.list_variants(session, product.id)

        variant, sizes = self.prepare_variant(
            product,
            payload,
            existing_skus={v.sku for v in existing},
            taken=self.repo.list_size_skus(session, product.id),
            position=len(existing),
        )
        self.repo.add_variant(session, variant, sizes)
        logger.info("Added variant %s to product %s", variant.sku, product.id)

        return self.get_variant(session, product.id, variant.sku, include_inactive=True)

    def update_variant(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
        payload: VariantUpdate,
    ) -> VariantRead:
        """
        Partial update of colour / images / price override / sizes / lifecycle.

        The variant SKU itself never changes, so order snapshots stay valid.
        A new `sizes` list replaces the old one (stock values included).
        """
        product = self._get_product(session, product_id)
        variant = self._get_variant(session, product, sku)
        fields = payload.model_fields_set

        new_sizes: list[VariantSize] | None = None
        if "sizes" in fields and payload.sizes is not None:
            self._validate_sizes(payload.sizes)
            old_sizes = self.repo.list_sizes(session, variant.id)
            current = {s.size: s.sku for s in old_sizes}
            taken = self.repo.list_size_skus(session, product.id) - set(current.values())
            color_code = (payload.color.code if payload.color and payload.color.code else None) or variant.color_code
            new_sizes = self._build_sizes(product, color_code, payload.sizes, taken, current)

        if payload.color is not None:
            if payload.color.name:
                variant.color_name = payload.color.name
            if payload.color.hex:
                self._validate_hex(payload.color.hex)
                variant.color_hex = payload.color.hex
            if payload.color.code:
                variant.color_code = payload.color.code

        if "images" in fields and payload.images is not None:
            variant.images = self._validate_images(payload.images, required=False)

        if "price_override" in fields:
            variant.price_override = payload.price_override

        if payload.lifecycle is not None:
            variant.lifecycle = payload.lifecycle

        self.repo.update_variant(session, variant, commit=False)
        if new_sizes is not None:
            self.repo.replace_sizes(session, variant.id, new_sizes, commit=False)
        session.commit()

        return self.get_variant(session, product.id, sku, include_inactive=True)

    def deactivate_variant(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
    ) -> VariantRead:
        """
        Soft delete: the variant disappears from the storefront but its
        stock records stay, so cancelled orders can still restock it.
        """
        product = self._get_product(session, product_id)
        variant = self._get_variant(session, product, sku)
        variant.lifecycle = LIFECYCLE_INACTIVE
        self.repo.update_variant(session, variant)
        logger.info("Deactivated variant %s of product %s", sku, product.id)
        return self.get_variant(session, product.id, sku, include_inactive=True)

    def get_variant(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
        include_inactive: bool = False,
    ) -> VariantRead:
        """
        Public callers only see active variants of active products;
        admin paths pass include_inactive=True.
        """
        product = self._get_product(session, product_id)
        if not include_inactive and not product.is_active:
            raise NotFoundError("Product not found")
        return self._variant_product(session, product).variant_read(sku, include_inactive)

    def set_variant_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
        payload: VariantStockUpdate,
    ) -> VariantRead:
        """
        Set absolute stock for several sizes of one variant.

        All sizes are resolved first; an unknown size aborts the whole
        update with NotFoundError before anything is written.
        """
        product = self._get_product(session, product_id)
        variant = self._get_variant(session, product, sku)
        sizes = {s.size: s for s in self.repo.list_sizes(session, variant.id)}

        missing = [u.size for u in payload.updates if u.size not in sizes]
        if missing:
            raise NotFoundError("Size not found", sku=sku, sizes=missing)

        for update in payload.updates:
            self.repo.set_size_stock(session, sizes[update.size], update.stock, commit=False)
        session.commit()

        return self.get_variant(session, product.id, sku, include_inactive=True)

    # ----- Availability engine -----

    def check_availability(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str | None,
        size: str,
    ) -> AvailabilityRead:
        """
        Availability of one (variant, size) pair.

        Raises:
            NotFoundError: product inactive or missing, or variant / size absent.
            ValidationError: a variant SKU was given for a legacy product.
        """
        product = self._get_product(session, product_id)
        if not product.is_active:
            raise NotFoundError("Product not found")
        item = load_catalog_item(session, self.repo, product)
        return item.check_availability(sku, size)

    def get_availability_matrix(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> AvailabilityMatrix:
        """
        Full colour x size availability snapshot (active variants only).
        """
        product = self._get_product(session, product_id)
        if not product.is_active:
            raise NotFoundError("Product is not available")
        return load_catalog_item(session, self.repo, product).availability_matrix()
