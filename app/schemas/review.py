# app/schemas/review.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

ReviewSort = Literal["newest", "oldest", "rating-desc", "rating-asc"]


class ReviewCreate(SQLModel):
    """
    Review payload. Range checks (rating 1..5, comment <= 500 chars)
    happen in ReviewService so they surface as ValidationError.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    rating: int
    comment: str

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v: str) -> str:
        return v.strip()


class ReviewUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    rating: int | None = None
    comment: str | None = None

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip()


class ReviewRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str | None
    rating: int
    comment: str
    verified_purchase: bool
    created_at: datetime
    updated_at: datetime


class RatingBucket(SQLModel):
    rating: int
    count: int


class ProductReviews(SQLModel):
    """
    Reviews of one product plus the aggregate shown above them.
    `rating_distribution` always has five buckets, 5 stars first.
    """

    product_id: uuid.UUID
    average_rating: float
    count: int
    rating_distribution: list[RatingBucket]
    reviews: list[ReviewRead]


class CanReviewRead(SQLModel):
    can_review: bool
    reason: str | None = None
    has_purchased: bool = False
