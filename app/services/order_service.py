# app/services/order_service.py
import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    StoreError,
    TransitionError,
    ValidationError,
)
from app.core.events import EventBus, OrderPlaced, OrderStatusChanged, event_bus
from app.models.order import (
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
    Order,
    OrderItem,
)
from app.models.product import Product
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    ColorSnapshot,
    OrderCreate,
    OrderItemCreate,
    OrderItemRead,
    OrderPage,
    OrderRead,
    OrderWithItemsRead,
    ShippingAddressRead,
)
from app.services.catalog import LegacyProduct, VariantProduct, load_catalog_item
from app.services.stock_ledger import DECREMENT, INCREMENT, StockLedger

logger = logging.getLogger(__name__)

# Strictly one step forward; Cancelled only before shipping
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    STATUS_PENDING: {STATUS_PROCESSING, STATUS_CANCELLED},
    STATUS_PROCESSING: {STATUS_SHIPPED, STATUS_CANCELLED},
    STATUS_SHIPPED: {STATUS_DELIVERED},
    STATUS_DELIVERED: set(),
    STATUS_CANCELLED: set(),
}

CANCELLABLE_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)


@dataclass
class _CheckedLine:
    """One order line after the check phase: what to snapshot and what to decrement."""

    request: OrderItemCreate
    product: Product
    unit_price: float
    image: str | None
    variant_sku: str | None = None
    size_sku: str | None = None
    color: ColorSnapshot | None = None


class OrderService:
    """
    Order lifecycle coordinator.

    Responsibilities:
      - Place orders: validate every line against the catalog, snapshot
        name/price/colour/SKUs, and decrement stock all-or-nothing
      - Enforce the status machine (admin)
      - Cancel orders and put their stock back
      - Publish OrderPlaced / OrderStatusChanged for the email subscriber
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        ledger: StockLedger | None = None,
        bus: EventBus | None = None,
        settings: Settings | None = None,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.ledger = ledger or StockLedger(product_repo)
        self.bus = bus if bus is not None else event_bus
        self.settings = settings or get_settings()

    # -------- Placement --------

    def create_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Place an order for `user`.

        Steps:
          1. Check phase: every line must reference an active product and,
             for variant products, an active (variant, size) pair with enough
             stock for the summed quantity of all lines hitting it.
          2. Insert Order + OrderItems (snapshots) without committing.
          3. Decrement stock per line with conditional updates.
          4. Commit once. Any failure in 2-3 rolls everything back.
          5. Publish OrderPlaced.

        Raises:
            ValidationError: no items, or variant_sku missing / misplaced.
            NotFoundError: unknown product, variant or size.
            InsufficientStockError: not enough stock (nothing is changed).
        """
        if not payload.items:
            raise ValidationError("No order items provided")

        lines = self._check_lines(session, payload.items)

        items_price = round(sum(line.unit_price * line.request.quantity for line in lines), 2)
        shipping_price = round(self.settings.SHIPPING_FLAT_FEE, 2)
        address = payload.shipping_address

        order = Order(
            user_id=user.id,
            shipping_full_name=address.full_name,
            shipping_phone=address.phone,
            shipping_address=address.address,
            shipping_city=address.city,
            shipping_postal_code=address.postal_code,
            shipping_country=address.country or self.settings.DEFAULT_COUNTRY,
            payment_method=payload.payment_method,
            items_price=items_price,
            shipping_price=shipping_price,
            total_price=round(items_price + shipping_price, 2),
            status=STATUS_PENDING,
            notes=payload.notes,
        )

        try:
            order = self.order_repo.create_order(session, order)
            self.order_repo.create_items(
                session,
                [self._snapshot(order.id, position, line) for position, line in enumerate(lines)],
            )
            for line in lines:
                self.ledger.update_stock(
                    session,
                    line.product.id,
                    line.variant_sku,
                    line.request.size if line.variant_sku else None,
                    line.request.quantity,
                    DECREMENT,
                    commit=False,
                )
            session.commit()
        except StoreError as exc:
            session.rollback()
            logger.warning("Order for user %s rolled back: %s", user.id, exc)
            raise
        except Exception:
            session.rollback()
            logger.exception("Order for user %s failed", user.id)
            raise

        logger.info(
            "Order %s placed by %s: %d lines, total %.2f",
            order.id,
            user.id,
            len(lines),
            order.total_price,
        )
        self.bus.publish(session, OrderPlaced(order_id=order.id, user_id=user.id))

        return self._build_order_with_items_dto(session, order)

    def _check_lines(
        self,
        session: Session,
        requests: list[OrderItemCreate],
    ) -> list[_CheckedLine]:
        catalog: dict[uuid.UUID, LegacyProduct | VariantProduct] = {}
        demand: dict[tuple, int] = defaultdict(int)
        lines: list[_CheckedLine] = []

        for req in requests:
            item = catalog.get(req.product_id)
            if item is None:
                product = self.product_repo.get_by_id(session, req.product_id)
                if not product or not product.is_active:
                    raise NotFoundError(
                        f"Product not found: {req.product_id}",
                        product_id=str(req.product_id),
                    )
                item = load_catalog_item(session, self.product_repo, product)
                catalog[req.product_id] = item
            product = item.product

            if isinstance(item, VariantProduct):
                if not req.variant_sku:
                    raise ValidationError(
                        f"Please select a color for {product.name}",
                        product_id=str(product.id),
                    )
                vv, record = item.require_size(req.variant_sku, req.size)
                key = (product.id, vv.variant.sku, req.size)
                available = record.stock
                line = _CheckedLine(
                    request=req,
                    product=product,
                    unit_price=item.price_for(vv.variant.sku),
                    image=vv.variant.images[0] if vv.variant.images else product.image or None,
                    variant_sku=vv.variant.sku,
                    size_sku=record.sku,
                    color=ColorSnapshot(
                        name=vv.variant.color_name,
                        hex=vv.variant.color_hex,
                        code=vv.variant.color_code,
                    ),
                )
            else:
                if req.variant_sku:
                    raise ValidationError(
                        f"{product.name} does not have variants",
                        product_id=str(product.id),
                    )
                if not item.sells_size(req.size):
                    raise NotFoundError("Size not found", product_id=str(product.id), size=req.size)
                key = (product.id, None, None)
                available = product.stock
                line = _CheckedLine(
                    request=req,
                    product=product,
                    unit_price=item.price_for(None),
                    image=product.image or None,
                )

            demand[key] += req.quantity
            if demand[key] > available:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name} ({req.size}). "
                    f"Available: {available}, Requested: {demand[key]}",
                    product_id=str(product.id),
                    available=available,
                    requested=demand[key],
                )
            lines.append(line)

        return lines

    def _snapshot(self, order_id: uuid.UUID, position: int, line: _CheckedLine) -> OrderItem:
        color = line.color
        return OrderItem(
            order_id=order_id,
            product_id=line.product.id,
            name=line.product.name,
            unit_price=line.unit_price,
            quantity=line.request.quantity,
            size=line.request.size,
            image=line.image,
            variant_sku=line.variant_sku,
            color_name=color.name if color else None,
            color_hex=color.hex if color else None,
            color_code=color.code if color else None,
            size_sku=line.size_sku,
            position=position,
        )

    # -------- Reads --------

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: User,
    ) -> OrderWithItemsRead:
        """
        Owner or admin only; anyone else gets AuthorizationError.
        """
        order = self._get_order(session, order_id)
        if order.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not authorized to view this order")
        return self._build_order_with_items_dto(session, order)

    def list_my_orders(
        self,
        session: Session,
        user: User,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_for_user(session, user.id, skip, limit)
        return [self._build_order_dto(o) for o in orders]

    def list_orders(
        self,
        session: Session,
        page: int = 1,
        limit: int = 20,
        status: str | None = None,
        is_paid: bool | None = None,
        is_delivered: bool | None = None,
    ) -> OrderPage:
        """
        Admin listing, newest first, with optional filters.
        """
        filters = {"status": status, "is_paid": is_paid, "is_delivered": is_delivered}
        total = self.order_repo.count(session, **filters)
        orders = self.order_repo.list_all(session, (page - 1) * limit, limit, **filters)
        return OrderPage(
            items=[self._build_order_dto(o) for o in orders],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    # -------- Lifecycle --------

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        reason: str | None = None,
    ) -> OrderWithItemsRead:
        """
        Admin-only status update:

          Pending    -> Processing, Cancelled
          Processing -> Shipped, Cancelled
          Shipped    -> Delivered
          Delivered  -> (terminal)
          Cancelled  -> (terminal)

        Setting the current status again is a no-op. Moving to Cancelled
        goes through the cancellation path so stock is restored.
        """
        order = self._get_order(session, order_id)
        current = order.status

        if current == new_status:
            return self._build_order_with_items_dto(session, order)

        if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
            raise TransitionError(
                f"Invalid status transition: {current} -> {new_status}",
                current=current,
                requested=new_status,
            )

        if new_status == STATUS_CANCELLED:
            return self._cancel(session, order, reason or "Cancelled by store")

        order.status = new_status
        if new_status == STATUS_DELIVERED:
            order.is_delivered = True
            order.delivered_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        logger.info("Order %s: %s -> %s", order.id, current, new_status)

        self.bus.publish(
            session,
            OrderStatusChanged(
                order_id=order.id,
                user_id=order.user_id,
                previous_status=current,
                new_status=new_status,
                reason=reason,
            ),
        )
        return self._build_order_with_items_dto(session, order)

    def cancel_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: User,
        reason: str | None = None,
    ) -> OrderWithItemsRead:
        """
        Cancel on behalf of the owner or an admin.

        Raises:
            AuthorizationError: actor is neither owner nor admin.
            TransitionError: order already Shipped / Delivered / Cancelled.
        """
        order = self._get_order(session, order_id)
        if order.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not authorized to cancel this order")
        if order.status not in CANCELLABLE_STATUSES:
            raise TransitionError(
                "Cannot cancel order at this stage",
                current=order.status,
            )
        return self._cancel(session, order, reason)

    def _cancel(self, session: Session, order: Order, reason: str | None) -> OrderWithItemsRead:
        previous = order.status
        items = self.order_repo.list_items_for_order(session, order.id)

        # Best-effort restock: a product deleted since ordering must not block cancelling
        for it in items:
            try:
                self.ledger.update_stock(
                    session,
                    it.product_id,
                    it.variant_sku,
                    it.size if it.variant_sku else None,
                    it.quantity,
                    INCREMENT,
                    commit=False,
                )
            except StoreError as exc:
                logger.warning(
                    "Could not restore stock for order %s item %s (%s/%s): %s",
                    order.id,
                    it.product_id,
                    it.variant_sku,
                    it.size,
                    exc,
                )

        order.status = STATUS_CANCELLED
        self.order_repo.update_order(session, order, commit=False)
        session.commit()
        session.refresh(order)
        logger.info("Order %s cancelled (was %s)", order.id, previous)

        self.bus.publish(
            session,
            OrderStatusChanged(
                order_id=order.id,
                user_id=order.user_id,
                previous_status=previous,
                new_status=STATUS_CANCELLED,
                reason=reason,
            ),
        )
        return self._build_order_with_items_dto(session, order)

    def mark_paid(self, session: Session, order_id: uuid.UUID) -> OrderWithItemsRead:
        """
        Admin-only. Paying twice keeps the first paid_at.
        """
        order = self._get_order(session, order_id)
        if not order.is_paid:
            order.is_paid = True
            order.paid_at = datetime.now(timezone.utc)
            self.order_repo.update_order(session, order)
            logger.info("Order %s marked as paid", order.id)
        return self._build_order_with_items_dto(session, order)

    def delete_order(self, session: Session, order_id: uuid.UUID) -> None:
        """
        Admin-only hard delete. Stock is not touched.
        """
        order = self._get_order(session, order_id)
        self.order_repo.delete_order(session, order)
        logger.info("Order %s deleted", order_id)

    # -------- Helper DTO builders --------

    def _build_order_dto(self, order: Order) -> OrderRead:
        return OrderRead(**self._order_fields(order))

    def _build_order_with_items_dto(self, session: Session, order: Order) -> OrderWithItemsRead:
        items = self.order_repo.list_items_for_order(session, order.id)
        return OrderWithItemsRead(
            **self._order_fields(order),
            items=[self._build_item_dto(it) for it in items],
        )

    def _order_fields(self, order: Order) -> dict:
        return dict(
            id=order.id,
            user_id=order.user_id,
            shipping_address=ShippingAddressRead(
                full_name=order.shipping_full_name,
                phone=order.shipping_phone,
                address=order.shipping_address,
                city=order.shipping_city,
                postal_code=order.shipping_postal_code,
                country=order.shipping_country,
            ),
            payment_method=order.payment_method,
            items_price=order.items_price,
            shipping_price=order.shipping_price,
            total_price=order.total_price,
            status=order.status,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            is_delivered=order.is_delivered,
            delivered_at=order.delivered_at,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def _build_item_dto(self, it: OrderItem) -> OrderItemRead:
        color = None
        if it.variant_sku:
            color = ColorSnapshot(name=it.color_name, hex=it.color_hex, code=it.color_code)
        return OrderItemRead(
            id=it.id,
            product_id=it.product_id,
            name=it.name,
            unit_price=it.unit_price,
            quantity=it.quantity,
            size=it.size,
            image=it.image,
            variant_sku=it.variant_sku,
            color=color,
            size_sku=it.size_sku,
            line_total=round(it.unit_price * it.quantity, 2),
        )
