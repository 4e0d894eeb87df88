# app/services/review_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.events import EventBus, ReviewRemoved, ReviewSaved, event_bus
from app.models.order import STATUS_DELIVERED, STATUS_SHIPPED
from app.models.review import Review
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.review_repo import ReviewRepository
from app.repositories.user_repo import UserRepository
from app.schemas.review import (
    CanReviewRead,
    ProductReviews,
    RatingBucket,
    ReviewCreate,
    ReviewRead,
    ReviewUpdate,
)
from app.services.rating_service import round_rating

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500
# An order counts as a purchase once it has left the warehouse
PURCHASE_STATUSES = (STATUS_SHIPPED, STATUS_DELIVERED)


class ReviewService:
    """
    Business logic for product reviews.

    Rules:
      - one review per (product, user)
      - rating 1..5, comment 1..500 characters
      - only the author may edit; author or admin may delete
      - verified_purchase is set once, at creation

    Product rating aggregates are NOT updated here; every write publishes
    ReviewSaved / ReviewRemoved and the rating aggregator reacts.
    """

    def __init__(
        self,
        review_repo: ReviewRepository,
        product_repo: ProductRepository,
        order_repo: OrderRepository,
        user_repo: UserRepository,
        bus: EventBus | None = None,
    ):
        self.review_repo = review_repo
        self.product_repo = product_repo
        self.order_repo = order_repo
        self.user_repo = user_repo
        self.bus = bus if bus is not None else event_bus

    # ----- Helpers -----

    def _validate_rating(self, rating: int) -> None:
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", rating=rating)

    def _validate_comment(self, comment: str) -> None:
        if not comment:
            raise ValidationError("Comment is required")
        if len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters"
            )

    def _get_review(self, session: Session, review_id: uuid.UUID) -> Review:
        review = self.review_repo.get_by_id(session, review_id)
        if not review:
            raise NotFoundError("Review not found")
        return review

    def _to_reads(self, session: Session, reviews: list[Review]) -> list[ReviewRead]:
        users = self.user_repo.get_many(session, list({r.user_id for r in reviews}))
        return [
            ReviewRead(
                id=r.id,
                product_id=r.product_id,
                user_id=r.user_id,
                user_name=users[r.user_id].name if r.user_id in users else None,
                rating=r.rating,
                comment=r.comment,
                verified_purchase=r.verified_purchase,
                created_at=r.created_at,
                updated_at=r.updated_at,
            )
            for r in reviews
        ]

    def _has_purchased(self, session: Session, user: User, product_id: uuid.UUID) -> bool:
        return self.order_repo.has_purchased(session, user.id, product_id, PURCHASE_STATUSES)

    # ----- Writes -----

    def create_review(
        self,
        session: Session,
        user: User,
        payload: ReviewCreate,
    ) -> ReviewRead:
        """
        Raises:
            ValidationError: rating / comment out of range.
            NotFoundError: product does not exist.
            ConflictError: user already reviewed this product.
        """
        self._validate_rating(payload.rating)
        self._validate_comment(payload.comment)

        product = self.product_repo.get_by_id(session, payload.product_id)
        if not product:
            raise NotFoundError("Product not found")

        if self.review_repo.get_for_user_and_product(session, user.id, product.id):
            raise ConflictError("You have already reviewed this product")

        review = Review(
            product_id=product.id,
            user_id=user.id,
            rating=payload.rating,
            comment=payload.comment,
            verified_purchase=self._has_purchased(session, user, product.id),
        )
        try:
            review = self.review_repo.create(session, review)
        except IntegrityError:
            # Lost a race against a concurrent submit by the same user
            session.rollback()
            raise ConflictError("You have already reviewed this product")

        logger.info("Review %s created for product %s by %s", review.id, product.id, user.id)
        self.bus.publish(session, ReviewSaved(review_id=review.id, product_id=product.id))
        return self._to_reads(session, [review])[0]

    def update_review(
        self,
        session: Session,
        user: User,
        review_id: uuid.UUID,
        payload: ReviewUpdate,
    ) -> ReviewRead:
        review = self._get_review(session, review_id)
        if review.user_id != user.id:
            raise AuthorizationError("Not authorized to update this review")

        if payload.rating is not None:
            self._validate_rating(payload.rating)
            review.rating = payload.rating
        if payload.comment is not None:
            self._validate_comment(payload.comment)
            review.comment = payload.comment

        review = self.review_repo.update(session, review)
        self.bus.publish(session, ReviewSaved(review_id=review.id, product_id=review.product_id))
        return self._to_reads(session, [review])[0]

    def delete_review(self, session: Session, user: User, review_id: uuid.UUID) -> None:
        review = self._get_review(session, review_id)
        if review.user_id != user.id and not user.is_admin:
            raise AuthorizationError("Not authorized to delete this review")

        product_id = review.product_id
        self.review_repo.delete(session, review)
        logger.info("Review %s deleted by %s", review_id, user.id)
        self.bus.publish(session, ReviewRemoved(review_id=review_id, product_id=product_id))

    # ----- Reads -----

    def list_product_reviews(
        self,
        session: Session,
        product_id: uuid.UUID,
        sort: str = "newest",
    ) -> ProductReviews:
        if not self.product_repo.get_by_id(session, product_id):
            raise NotFoundError("Product not found")

        reviews = self.review_repo.list_for_product(session, product_id, sort)
        average, count = self.review_repo.rating_stats(session, product_id)
        distribution = self.review_repo.rating_distribution(session, product_id)

        return ProductReviews(
            product_id=product_id,
            average_rating=round_rating(average) if count else 0.0,
            count=count,
            rating_distribution=[
                RatingBucket(rating=star, count=distribution.get(star, 0))
                for star in range(5, 0, -1)
            ],
            reviews=self._to_reads(session, reviews),
        )

    def list_my_reviews(self, session: Session, user: User) -> list[ReviewRead]:
        return self._to_reads(session, self.review_repo.list_for_user(session, user.id))

    def can_review(self, session: Session, user: User, product_id: uuid.UUID) -> CanReviewRead:
        if not self.product_repo.get_by_id(session, product_id):
            raise NotFoundError("Product not found")

        purchased = self._has_purchased(session, user, product_id)
        if self.review_repo.get_for_user_and_product(session, user.id, product_id):
            return CanReviewRead(
                can_review=False,
                reason="You have already reviewed this product",
                has_purchased=purchased,
            )
        return CanReviewRead(can_review=True, has_purchased=purchased)
