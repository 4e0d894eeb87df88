# app/core/events.py
"""
In-process domain events.

Write paths publish an event after their commit; subscribers (rating
recompute, order emails) react independently. A failing subscriber is
logged and skipped: it never fails the operation that published the event.
"""
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlmodel import Session

logger = logging.getLogger(__name__)

Handler = Callable[[Session, Any], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReviewSaved:
    review_id: uuid.UUID
    product_id: uuid.UUID
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ReviewRemoved:
    review_id: uuid.UUID
    product_id: uuid.UUID
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class OrderPlaced:
    order_id: uuid.UUID
    user_id: uuid.UUID
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: uuid.UUID
    user_id: uuid.UUID
    previous_status: str
    new_status: str
    reason: str | None = None
    occurred_at: datetime = field(default_factory=_now)


class EventBus:
    """
    Minimal synchronous publish/subscribe dispatcher keyed by event type.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers[event_type]
        if handler not in handlers:
            handlers.append(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        return list(self._handlers.get(event_type, []))

    def publish(self, session: Session, event: Any) -> None:
        for handler in self.handlers_for(type(event)):
            try:
                handler(session, event)
            except Exception:
                # The triggering write is already committed
                logger.exception(
                    "Event handler %r failed for %s",
                    handler,
                    type(event).__name__,
                )
                session.rollback()


# Application-wide bus; subscribers are registered in app.main
event_bus = EventBus()
