# app/services/subscribers.py
"""
Event subscribers wired onto the application bus at startup.

  ReviewSaved / ReviewRemoved -> RatingAggregator.on_review_changed
  OrderPlaced                 -> OrderNotifier.on_order_placed
  OrderStatusChanged          -> OrderNotifier.on_status_changed
"""
import logging
import uuid
from typing import Any, Callable

from sqlmodel import Session

from app.core.events import (
    EventBus,
    OrderPlaced,
    OrderStatusChanged,
    ReviewRemoved,
    ReviewSaved,
)
from app.core.notifications import NotificationResult, notify
from app.models.order import STATUS_CANCELLED, STATUS_DELIVERED, STATUS_SHIPPED, Order, OrderItem
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.review_repo import ReviewRepository
from app.repositories.user_repo import UserRepository
from app.services.rating_service import RatingAggregator

logger = logging.getLogger(__name__)

# new status -> (subject, template)
STATUS_EMAILS: dict[str, tuple[str, str]] = {
    STATUS_SHIPPED: ("Your Order Has Been Shipped!", "order_shipped"),
    STATUS_DELIVERED: ("Your Order Has Been Delivered!", "order_delivered"),
    STATUS_CANCELLED: ("Order Cancellation Confirmation", "order_cancelled"),
}


class OrderNotifier:
    """
    Sends order emails to customers who have not opted out
    (User.email_order_updates). Delivery problems are logged by `notify`
    and never reach the order operation.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        user_repo: UserRepository,
        notify_fn: Callable[..., NotificationResult] = notify,
    ):
        self.order_repo = order_repo
        self.user_repo = user_repo
        self.notify = notify_fn

    def _recipient(self, session: Session, order: Order) -> User | None:
        user = self.user_repo.get_by_id(session, order.user_id)
        if user is None:
            logger.warning("Order %s has no user row; email skipped", order.id)
            return None
        if not user.email_order_updates:
            logger.info("User %s opted out of order emails", user.id)
            return None
        return user

    def _template_data(
        self,
        user: User,
        order: Order,
        items: list[OrderItem],
        reason: str | None = None,
    ) -> dict[str, Any]:
        return {
            "customer_name": user.name,
            "order_id": str(order.id),
            "payment_method": order.payment_method,
            "items": [
                {
                    "name": it.name,
                    "size": it.size,
                    "color": it.color_name,
                    "quantity": it.quantity,
                    "line_total": it.unit_price * it.quantity,
                }
                for it in items
            ],
            "total_price": order.total_price,
            "shipping": {
                "full_name": order.shipping_full_name,
                "address": order.shipping_address,
                "city": order.shipping_city,
                "postal_code": order.shipping_postal_code,
                "country": order.shipping_country,
            },
            "reason": reason,
        }

    def _send(
        self,
        session: Session,
        order_id: uuid.UUID,
        subject: str,
        template: str,
        reason: str | None = None,
    ) -> NotificationResult | None:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            return None
        user = self._recipient(session, order)
        if user is None:
            return None
        items = self.order_repo.list_items_for_order(session, order.id)
        return self.notify(
            user.email,
            subject,
            template,
            self._template_data(user, order, items, reason),
        )

    def on_order_placed(self, session: Session, event: OrderPlaced) -> None:
        self._send(
            session,
            event.order_id,
            f"Order Confirmation #{event.order_id}",
            "order_confirmation",
        )

    def on_status_changed(self, session: Session, event: OrderStatusChanged) -> None:
        email = STATUS_EMAILS.get(event.new_status)
        if email is None:
            return
        subject, template = email
        self._send(session, event.order_id, subject, template, event.reason)


_product_repo = ProductRepository()
_order_repo = OrderRepository()
_user_repo = UserRepository()

rating_aggregator = RatingAggregator(ReviewRepository(), _product_repo)
order_notifier = OrderNotifier(_order_repo, _user_repo)


def register_default_subscribers(
    bus: EventBus,
    notifier: OrderNotifier | None = None,
) -> None:
    """
    Attach the rating aggregator and order emails to `bus`.
    Safe to call more than once with the same notifier.
    """
    notifier = notifier or order_notifier
    bus.subscribe(ReviewSaved, rating_aggregator.on_review_changed)
    bus.subscribe(ReviewRemoved, rating_aggregator.on_review_changed)
    bus.subscribe(OrderPlaced, notifier.on_order_placed)
    bus.subscribe(OrderStatusChanged, notifier.on_status_changed)
