# app/routers/reviews.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.review_repo import ReviewRepository
from app.repositories.user_repo import UserRepository
from app.schemas.review import (
    CanReviewRead,
    ProductReviews,
    ReviewCreate,
    ReviewRead,
    ReviewSort,
    ReviewUpdate,
)
from app.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])

service = ReviewService(
    ReviewRepository(),
    ProductRepository(),
    OrderRepository(),
    UserRepository(),
)


@router.get("/product/{product_id}", response_model=ProductReviews)
def list_product_reviews(
    product_id: uuid.UUID,
    sort: ReviewSort = "newest",
    session: Session = Depends(get_session),
):
    """
    Public: reviews of a product with average and star distribution.
    """
    return service.list_product_reviews(session, product_id, sort)


@router.get("/me", response_model=list[ReviewRead])
def list_my_reviews(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.list_my_reviews(session, current_user)


@router.get("/can-review/{product_id}", response_model=CanReviewRead)
def can_review(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.can_review(session, current_user, product_id)


@router.post(
    "",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    payload: ReviewCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    One review per product and user. `verified_purchase` is set when the
    user has a shipped or delivered order containing the product.
    """
    return service.create_review(session, current_user, payload)


@router.patch("/{review_id}", response_model=ReviewRead)
def update_review(
    review_id: uuid.UUID,
    payload: ReviewUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Author only.
    """
    return service.update_review(session, current_user, review_id, payload)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Author or admin.
    """
    service.delete_review(session, current_user, review_id)
    return None
