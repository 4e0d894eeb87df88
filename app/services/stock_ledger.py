# app/services/stock_ledger.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import InsufficientStockError, NotFoundError, ValidationError
from app.repositories.product_repo import ProductRepository
from app.schemas.variant import StockLevelRead
from app.services.catalog import VariantProduct, load_catalog_item

logger = logging.getLogger(__name__)

INCREMENT = "increment"
DECREMENT = "decrement"


class StockLedger:
    """
    Applies stock mutations to exactly one (variant SKU, size) record, or to
    the flat counter of a legacy product.

    Every mutation is one conditional UPDATE in the database:
      - decrement: `stock = stock - q WHERE stock >= q`; zero rows updated
        means insufficient stock and nothing changed.
      - increment: `stock = stock + q`; no upper bound.

    With `commit=False` the caller owns the transaction (order placement
    decrements every line and commits or rolls back once).
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    def update_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        variant_sku: str | None,
        size: str | None,
        quantity: int,
        direction: str,
        commit: bool = True,
    ) -> StockLevelRead:
        """
        Raises:
            ValidationError: bad quantity / direction, or a variant SKU
                given for a legacy product.
            NotFoundError: product, variant or size does not exist.
            InsufficientStockError: a decrement would make stock negative.
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1", quantity=quantity)
        if direction not in (INCREMENT, DECREMENT):
            raise ValidationError("Direction must be 'increment' or 'decrement'")

        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found")

        item = load_catalog_item(session, self.repo, product)

        if isinstance(item, VariantProduct):
            if size is None:
                raise ValidationError("Size is required for products with variants")
            # Inactive variants still accept restocks from old orders
            _, record = item.require_size(variant_sku, size, include_inactive=True)
            if direction == DECREMENT:
                applied = self.repo.decrement_size_stock(session, record.id, quantity)
            else:
                applied = self.repo.increment_size_stock(session, record.id, quantity)
            target = record
        else:
            if variant_sku:
                raise ValidationError("Product does not have variants", sku=variant_sku)
            if direction == DECREMENT:
                applied = self.repo.decrement_legacy_stock(session, product.id, quantity)
            else:
                applied = self.repo.increment_legacy_stock(session, product.id, quantity)
            target = product

        session.refresh(target)

        if not applied:
            if direction == DECREMENT:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}"
                    f"{f' ({size})' if size else ''}. Only {target.stock} available",
                    available=target.stock,
                    requested=quantity,
                )
            raise NotFoundError("Stock record not found")

        if commit:
            session.commit()
            session.refresh(target)

        logger.info(
            "Stock %s %s x%d for product %s (%s/%s) -> %d",
            direction,
            "applied" if commit else "staged",
            quantity,
            product.id,
            variant_sku,
            size,
            target.stock,
        )

        return StockLevelRead(
            product_id=str(product.id),
            variant_sku=variant_sku if isinstance(item, VariantProduct) else None,
            size=size,
            stock=target.stock,
        )
