# app/services/product_service.py
import logging
import math
import uuid

from sqlmodel import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.storage_utils import delete_public_url, store_image, validate_image
from app.models.product import Product
from app.repositories.category_repo import CategoryRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ProductCreate, ProductPage, ProductRead, ProductUpdate
from app.schemas.variant import VariantRead, VariantUpdate
from app.services.catalog import LegacyProduct, VariantProduct, load_catalog_item
from app.services.variant_service import VariantService

logger = logging.getLogger(__name__)


class ProductService:
    """
    Business logic for Product.

    Responsibilities:
      - legacy and variant product creation (variants validated up front,
        product + variants written in one transaction)
      - listing with filters, sorting and pagination
      - image upload orchestration with Supabase Storage
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(
        self,
        repo: ProductRepository,
        category_repo: CategoryRepository,
        variant_service: VariantService | None = None,
    ):
        self.repo = repo
        self.category_repo = category_repo
        self.variant_service = variant_service or VariantService(repo)

    # ----- Helpers -----

    def _get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def _ensure_category(self, session: Session, category_id: uuid.UUID) -> None:
        if not self.category_repo.get_by_id(session, category_id):
            raise NotFoundError("Category not found", category_id=str(category_id))

    def _to_read(
        self,
        item: LegacyProduct | VariantProduct,
        include_inactive: bool = False,
    ) -> ProductRead:
        """
        Public reads show active variants only; admin reads show all of them.
        """
        p = item.product
        variants: list[VariantRead] = []
        total_stock = item.total_stock
        if isinstance(item, VariantProduct):
            views = item.variants if include_inactive else item.active_variants
            variants = [item.variant_read(vv.variant.sku) for vv in views]
            total_stock = sum(vv.total_stock for vv in views)
        return ProductRead(
            id=p.id,
            name=p.name,
            description=p.description,
            category_id=p.category_id,
            base_price=p.base_price,
            price=p.price,
            display_price=item.display_price,
            has_variable_pricing=item.has_variable_pricing,
            image=p.image,
            sizes=list(p.sizes),
            stock=p.stock,
            total_stock=total_stock,
            rating=p.rating,
            num_reviews=p.num_reviews,
            lifecycle=p.lifecycle,
            has_variants=item.has_variants,
            variants=variants,
            created_at=p.created_at,
            updated_at=p.updated_at,
        )

    def _read(
        self,
        session: Session,
        product: Product,
        include_inactive: bool = False,
    ) -> ProductRead:
        return self._to_read(load_catalog_item(session, self.repo, product), include_inactive)

    # ----- Products -----

    def list_products(
        self,
        session: Session,
        page: int = 1,
        limit: int = 12,
        sort: str = "newest",
        category_id: uuid.UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        include_inactive: bool = False,
    ) -> ProductPage:
        filters = dict(
            only_active=not include_inactive,
            category_id=category_id,
            search=search.strip() if search else None,
            min_price=min_price,
            max_price=max_price,
        )
        total = self.repo.count_products(session, **filters)
        products = self.repo.list_products(
            session,
            skip=(page - 1) * limit,
            limit=limit,
            sort=sort,
            **filters,
        )
        return ProductPage(
            items=[self._read(session, p, include_inactive) for p in products],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    def get_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> ProductRead:
        product = self._get_product(session, product_id)
        if not product.is_active and not include_inactive:
            raise NotFoundError("Product not found")
        return self._read(session, product, include_inactive)

    def create_product(self, session: Session, payload: ProductCreate) -> ProductRead:
        """
        Create a product, optionally with its colour variants.

        Every variant is validated (and its SKUs generated) before anything
        is written, so a bad variant leaves no half-created product behind.
        """
        if payload.base_price is None and payload.price is None:
            raise ValidationError("Price is required")
        self._ensure_category(session, payload.category_id)

        base_price = payload.base_price if payload.base_price is not None else payload.price
        product = Product(
            name=payload.name,
            description=payload.description,
            category_id=payload.category_id,
            base_price=base_price,
            price=payload.price if payload.price is not None else base_price,
            image=payload.image or "",
            sizes=payload.sizes,
            stock=0 if payload.variants else payload.stock,
            lifecycle=payload.lifecycle,
        )

        prepared = []
        existing_skus: set[str] = set()
        taken: set[str] = set()
        for position, variant_payload in enumerate(payload.variants):
            variant, sizes = self.variant_service.prepare_variant(
                product, variant_payload, existing_skus, taken, position
            )
            existing_skus.add(variant.sku)
            prepared.append((variant, sizes))

        if prepared and not product.image:
            first_variant = prepared[0][0]
            product.image = first_variant.images[0]
        if prepared and not product.sizes:
            product.sizes = list(dict.fromkeys(s.size for _, sizes in prepared for s in sizes))

        self.repo.create(session, product, commit=False)
        for variant, sizes in prepared:
            self.repo.add_variant(session, variant, sizes, commit=False)
        session.commit()
        session.refresh(product)

        logger.info(
            "Created product %s (%s) with %d variants",
            product.id,
            product.name,
            len(prepared),
        )
        return self._read(session, product, include_inactive=True)

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> ProductRead:
        """
        Partial update of a product.
        """
        product = self._get_product(session, product_id)

        if payload.category_id is not None:
            self._ensure_category(session, payload.category_id)
            product.category_id = payload.category_id

        if payload.name is not None:
            product.name = payload.name

        if payload.description is not None:
            product.description = payload.description

        if payload.base_price is not None:
            product.base_price = payload.base_price

        if payload.price is not None:
            product.price = payload.price

        if payload.image is not None:
            product.image = payload.image

        if payload.sizes is not None:
            product.sizes = [s.strip() for s in payload.sizes if s.strip()]

        if payload.stock is not None:
            product.stock = payload.stock

        if payload.lifecycle is not None:
            product.lifecycle = payload.lifecycle

        product = self.repo.update(session, product)
        return self._read(session, product, include_inactive=True)

    def delete_product(self, session: Session, product_id: uuid.UUID) -> None:
        """
        Delete a product with its variants, sizes and reviews.
        Past orders keep their snapshots.
        """
        product = self._get_product(session, product_id)
        self.repo.delete(session, product)
        logger.info("Deleted product %s", product_id)

    # ----- Images -----

    def set_product_image(
        self,
        session: Session,
        product_id: uuid.UUID,
        content_type: str | None,
        file_bytes: bytes,
    ) -> ProductRead:
        """
        Upload or replace the main (legacy) image of a product.
        """
        product = self._get_product(session, product_id)
        new_url = store_image(f"products/{product.id}", content_type, file_bytes)

        if product.image:
            delete_public_url(product.image)

        product.image = new_url
        product = self.repo.update(session, product)
        return self._read(session, product, include_inactive=True)

    def add_variant_images(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
        files: list[tuple[str | None, bytes]],
    ) -> VariantRead:
        """
        Upload images and append their URLs to a variant.

        Args:
            files: list of (content_type, file_bytes)
        """
        product = self._get_product(session, product_id)
        current = self.variant_service.get_variant(session, product.id, sku, include_inactive=True)

        limit = self.variant_service.settings.MAX_VARIANT_IMAGES
        if len(current.images) + len(files) > limit:
            raise ValidationError(f"Maximum {limit} images allowed per variant")

        for content_type, file_bytes in files:
            validate_image(content_type, file_bytes)

        urls = [
            store_image(f"products/{product.id}/variants/{sku}", content_type, file_bytes)
            for content_type, file_bytes in files
        ]
        return self.variant_service.update_variant(
            session,
            product.id,
            sku,
            VariantUpdate(images=current.images + urls),
        )
