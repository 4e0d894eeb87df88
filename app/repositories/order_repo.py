# app/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func
from sqlmodel import Session, col, select

from app.models.order import Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits in the create helpers; order creation is a multi-step
        transaction. The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def _filtered(
        self,
        stmt,
        *,
        status: str | None = None,
        is_paid: bool | None = None,
        is_delivered: bool | None = None,
    ):
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if is_paid is not None:
            stmt = stmt.where(Order.is_paid == is_paid)
        if is_delivered is not None:
            stmt = stmt.where(Order.is_delivered == is_delivered)
        return stmt

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        **filters,
    ) -> list[Order]:
        stmt = self._filtered(select(Order), **filters)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count(self, session: Session, **filters) -> int:
        stmt = self._filtered(select(func.count()).select_from(Order), **filters)
        return int(session.exec(stmt).one() or 0)

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        return order

    def update_order(self, session: Session, order: Order, commit: bool = True) -> Order:
        order.updated_at = datetime.now(timezone.utc)
        session.add(order)
        if commit:
            session.commit()
            session.refresh(order)
        else:
            session.flush()
        return order

    def delete_order(self, session: Session, order: Order) -> None:
        session.execute(delete(OrderItem).where(OrderItem.order_id == order.id))
        session.delete(order)
        session.commit()

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.position)
        )
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        return items

    def has_purchased(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        statuses: tuple[str, ...],
    ) -> bool:
        """
        True if the user has an order in one of `statuses` containing the product.
        """
        stmt = (
            select(Order.id)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .where(
                Order.user_id == user_id,
                OrderItem.product_id == product_id,
                col(Order.status).in_(statuses),
            )
            .limit(1)
        )
        return session.exec(stmt).first() is not None
