# app/repositories/review_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.review import Review


class ReviewRepository:
    """
    Data access layer for Review.
    """

    def get_by_id(self, session: Session, review_id: uuid.UUID) -> Review | None:
        return session.get(Review, review_id)

    def get_for_user_and_product(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> Review | None:
        stmt = select(Review).where(
            Review.user_id == user_id,
            Review.product_id == product_id,
        )
        return session.exec(stmt).first()

    def list_for_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        sort: str = "newest",
    ) -> list[Review]:
        order_by = {
            "newest": Review.created_at.desc(),
            "oldest": Review.created_at.asc(),
            "rating-desc": Review.rating.desc(),
            "rating-asc": Review.rating.asc(),
        }.get(sort, Review.created_at.desc())
        stmt = select(Review).where(Review.product_id == product_id).order_by(order_by)
        return list(session.exec(stmt).all())

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.user_id == user_id)
            .order_by(Review.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def rating_stats(self, session: Session, product_id: uuid.UUID) -> tuple[float | None, int]:
        """
        Return (average rating, review count) for a product.
        Average is None when there are no reviews.
        """
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.product_id == product_id
        )
        average, count = session.exec(stmt).one()
        return (float(average) if average is not None else None), int(count or 0)

    def rating_distribution(self, session: Session, product_id: uuid.UUID) -> dict[int, int]:
        stmt = (
            select(Review.rating, func.count(Review.id))
            .where(Review.product_id == product_id)
            .group_by(Review.rating)
        )
        return {int(rating): int(count) for rating, count in session.exec(stmt).all()}

    def create(self, session: Session, review: Review) -> Review:
        session.add(review)
        session.commit()
        session.refresh(review)
        return review

    def update(self, session: Session, review: Review) -> Review:
        review.updated_at = datetime.now(timezone.utc)
        session.add(review)
        session.commit()
        session.refresh(review)
        return review

    def delete(self, session: Session, review: Review) -> None:
        session.delete(review)
        session.commit()
