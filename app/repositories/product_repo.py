# app/repositories/product_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, update
from sqlmodel import Session, col, select

from app.models.product import (
    LIFECYCLE_ACTIVE,
    Product,
    ProductVariant,
    VariantSize,
)
from app.models.review import Review

SORT_OPTIONS = {
    "price-asc": (Product.base_price, False),
    "price-desc": (Product.base_price, True),
    "name-asc": (Product.name, False),
    "name-desc": (Product.name, True),
    "rating-desc": (Product.rating, True),
    "newest": (Product.created_at, True),
}


class ProductRepository:
    """
    Data access layer for Product, ProductVariant & VariantSize.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Stock mutations are single conditional UPDATE statements so two
      concurrent checkouts can never both take the last unit.
    - Methods with `commit=False` only flush; the caller owns the transaction.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def _filtered(
        self,
        stmt,
        *,
        only_active: bool = True,
        category_id: uuid.UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
    ):
        if only_active:
            stmt = stmt.where(Product.lifecycle == LIFECYCLE_ACTIVE)
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if search:
            stmt = stmt.where(func.lower(Product.name).contains(search.lower()))
        if min_price is not None:
            stmt = stmt.where(Product.base_price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.base_price <= max_price)
        return stmt

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        sort: str = "newest",
        **filters,
    ) -> list[Product]:
        column, descending = SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"])
        stmt = self._filtered(select(Product), **filters)
        stmt = stmt.order_by(column.desc() if descending else column.asc())
        stmt = stmt.offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count_products(self, session: Session, **filters) -> int:
        stmt = self._filtered(select(func.count()).select_from(Product), **filters)
        return int(session.exec(stmt).one() or 0)

    def list_by_category(self, session: Session, category_id: uuid.UUID) -> list[Product]:
        stmt = select(Product).where(Product.category_id == category_id)
        return list(session.exec(stmt).all())

    def create(self, session: Session, product: Product, commit: bool = True) -> Product:
        session.add(product)
        if commit:
            session.commit()
            session.refresh(product)
        else:
            session.flush()
        return product

    def update(self, session: Session, product: Product, commit: bool = True) -> Product:
        product.updated_at = datetime.now(timezone.utc)
        session.add(product)
        if commit:
            session.commit()
            session.refresh(product)
        else:
            session.flush()
        return product

    def delete(self, session: Session, product: Product, commit: bool = True) -> None:
        """
        Delete a product together with its variants, sizes and reviews.
        """
        variant_ids = select(ProductVariant.id).where(
            ProductVariant.product_id == product.id
        )
        session.execute(delete(VariantSize).where(col(VariantSize.variant_id).in_(variant_ids)))
        session.execute(delete(ProductVariant).where(ProductVariant.product_id == product.id))
        session.execute(delete(Review).where(Review.product_id == product.id))
        session.delete(product)
        if commit:
            session.commit()
        else:
            session.flush()

    # ----- Variants -----

    def list_variants(
        self,
        session: Session,
        product_id: uuid.UUID,
        only_active: bool = False,
    ) -> list[ProductVariant]:
        stmt = select(ProductVariant).where(ProductVariant.product_id == product_id)
        if only_active:
            stmt = stmt.where(ProductVariant.lifecycle == LIFECYCLE_ACTIVE)
        stmt = stmt.order_by(ProductVariant.position)
        return list(session.exec(stmt).all())

    def get_variant_by_sku(
        self,
        session: Session,
        product_id: uuid.UUID,
        sku: str,
    ) -> ProductVariant | None:
        stmt = select(ProductVariant).where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == sku,
        )
        return session.exec(stmt).first()

    def add_variant(
        self,
        session: Session,
        variant: ProductVariant,
        sizes: list[VariantSize],
        commit: bool = True,
    ) -> ProductVariant:
        session.add(variant)
        session.flush()  # Assign PK before sizes reference it
        for position, size in enumerate(sizes):
            size.variant_id = variant.id
            size.position = position
            session.add(size)
        if commit:
            session.commit()
            session.refresh(variant)
        else:
            session.flush()
        return variant

    def update_variant(
        self,
        session: Session,
        variant: ProductVariant,
        commit: bool = True,
    ) -> ProductVariant:
        session.add(variant)
        if commit:
            session.commit()
            session.refresh(variant)
        else:
            session.flush()
        return variant

    # ----- Sizes -----

    def list_sizes(self, session: Session, variant_id: uuid.UUID) -> list[VariantSize]:
        stmt = (
            select(VariantSize)
            .where(VariantSize.variant_id == variant_id)
            .order_by(VariantSize.position)
        )
        return list(session.exec(stmt).all())

    def list_sizes_for_variants(
        self,
        session: Session,
        variant_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, list[VariantSize]]:
        """
        Load the sizes of several variants in one query, grouped by variant.
        """
        grouped: dict[uuid.UUID, list[VariantSize]] = {vid: [] for vid in variant_ids}
        if not variant_ids:
            return grouped
        stmt = (
            select(VariantSize)
            .where(col(VariantSize.variant_id).in_(variant_ids))
            .order_by(VariantSize.position)
        )
        for size in session.exec(stmt).all():
            grouped[size.variant_id].append(size)
        return grouped

    def list_size_skus(self, session: Session, product_id: uuid.UUID) -> set[str]:
        stmt = (
            select(VariantSize.sku)
            .join(ProductVariant, ProductVariant.id == VariantSize.variant_id)
            .where(ProductVariant.product_id == product_id)
        )
        return set(session.exec(stmt).all())

    def get_size(
        self,
        session: Session,
        variant_id: uuid.UUID,
        size: str,
    ) -> VariantSize | None:
        stmt = select(VariantSize).where(
            VariantSize.variant_id == variant_id,
            VariantSize.size == size,
        )
        return session.exec(stmt).first()

    def replace_sizes(
        self,
        session: Session,
        variant_id: uuid.UUID,
        sizes: list[VariantSize],
        commit: bool = True,
    ) -> list[VariantSize]:
        session.execute(delete(VariantSize).where(VariantSize.variant_id == variant_id))
        for position, size in enumerate(sizes):
            size.variant_id = variant_id
            size.position = position
            session.add(size)
        if commit:
            session.commit()
        else:
            session.flush()
        return sizes

    def set_size_stock(
        self,
        session: Session,
        size: VariantSize,
        stock: int,
        commit: bool = True,
    ) -> VariantSize:
        size.stock = stock
        session.add(size)
        if commit:
            session.commit()
            session.refresh(size)
        else:
            session.flush()
        return size

    # ----- Atomic stock mutations -----

    def decrement_size_stock(
        self,
        session: Session,
        size_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        stock -= quantity, only if stock >= quantity.

        Returns:
            True if the row was updated, False if stock was insufficient.
        """
        stmt = (
            update(VariantSize)
            .where(VariantSize.id == size_id, VariantSize.stock >= quantity)
            .values(stock=VariantSize.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def increment_size_stock(
        self,
        session: Session,
        size_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        stmt = (
            update(VariantSize)
            .where(VariantSize.id == size_id)
            .values(stock=VariantSize.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def decrement_legacy_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def increment_legacy_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def set_rating(
        self,
        session: Session,
        product_id: uuid.UUID,
        rating: float,
        num_reviews: int,
    ) -> None:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(rating=rating, num_reviews=num_reviews)
            .execution_options(synchronize_session=False)
        )
        session.execute(stmt)
        session.commit()
