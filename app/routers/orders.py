# app/routers/orders.py
import uuid

from fastapi import APIRouter, Body, Depends, Query, status
from sqlmodel import Session

from app.core.auth import require_admin, require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderPage,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
product_repo = ProductRepository()
service = OrderService(order_repo, product_repo)


# -------- User-facing endpoints --------


@router.post(
    "",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Place an order.

    Prices, names and images are read from the catalog, never from the
    request. Either every line is reserved or nothing is.
    """
    return service.create_order(session, current_user, payload)


@router.get("/me", response_model=list[OrderRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
):
    """
    List the authenticated user's orders (without items), newest first.
    """
    return service.list_my_orders(session, current_user, skip, limit)


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get one order with items (owner or admin).
    """
    return service.get_order(session, order_id, current_user)


@router.post("/{order_id}/cancel", response_model=OrderWithItemsRead)
def cancel_order(
    order_id: uuid.UUID,
    payload: OrderCancel | None = Body(default=None),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Cancel a Pending / Processing order (owner or admin). Stock is restored.
    """
    reason = payload.reason if payload else None
    return service.cancel_order(session, order_id, current_user, reason)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=OrderPage,
    dependencies=[Depends(require_admin)],
)
def list_orders(
    session: Session = Depends(get_session),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: OrderStatus | None = None,
    is_paid: bool | None = None,
    is_delivered: bool | None = None,
):
    return service.list_orders(
        session,
        page=page,
        limit=limit,
        status=status,
        is_paid=is_paid,
        is_delivered=is_delivered,
    )


@router.patch(
    "/{order_id}/status",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order status (admin only).

      Pending    -> Processing, Cancelled

      Processing -> Shipped, Cancelled

      Shipped    -> Delivered

      Delivered / Cancelled -> (no change)
    """
    return service.update_status(session, order_id, payload.status, payload.reason)


@router.patch(
    "/{order_id}/pay",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def mark_order_paid(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.mark_paid(session, order_id)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    service.delete_order(session, order_id)
    return None
