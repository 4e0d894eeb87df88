# app/services/rating_service.py
import logging
import math
import uuid

from sqlmodel import Session

from app.core.events import ReviewRemoved, ReviewSaved
from app.repositories.product_repo import ProductRepository
from app.repositories.review_repo import ReviewRepository

logger = logging.getLogger(__name__)


def round_rating(value: float) -> float:
    """Round half-up to one decimal (4.25 -> 4.3)."""
    return math.floor(value * 10 + 0.5) / 10


class RatingAggregator:
    """
    Keeps Product.rating / Product.num_reviews in line with the reviews table.

    Always recomputes from the full current review set, so it is idempotent
    and concurrent runs for the same product converge (last write wins).
    Runs only as a ReviewSaved / ReviewRemoved subscriber.
    """

    def __init__(self, review_repo: ReviewRepository, product_repo: ProductRepository):
        self.review_repo = review_repo
        self.product_repo = product_repo

    def recompute(self, session: Session, product_id: uuid.UUID) -> tuple[float, int]:
        average, count = self.review_repo.rating_stats(session, product_id)
        rating = round_rating(average) if count else 0.0
        self.product_repo.set_rating(session, product_id, rating, count)
        logger.debug("Product %s rating -> %.1f (%d reviews)", product_id, rating, count)
        return rating, count

    def on_review_changed(self, session: Session, event: ReviewSaved | ReviewRemoved) -> None:
        self.recompute(session, event.product_id)
