# app/services/category_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.storage_utils import delete_public_url, store_image
from app.models.category import Category
from app.repositories.category_repo import CategoryRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.category import CategoryCreate, CategoryDeleted, CategoryUpdate

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Business logic for Category.

    Rules:
      - names are unique (case-insensitive)
      - deleting a category deletes its products (with their variants
        and reviews) in the same transaction
    """

    def __init__(self, repo: CategoryRepository, product_repo: ProductRepository):
        self.repo = repo
        self.product_repo = product_repo

    def _get_category(self, session: Session, category_id: uuid.UUID) -> Category:
        category = self.repo.get_by_id(session, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique_name(
        self,
        session: Session,
        name: str,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        if not name:
            raise ValidationError("Category name is required")
        existing = self.repo.get_by_name(session, name)
        if existing and existing.id != exclude_id:
            raise ConflictError("Category already exists", name=name)

    def list_categories(self, session: Session) -> list[Category]:
        return self.repo.list(session)

    def get_category(self, session: Session, category_id: uuid.UUID) -> Category:
        return self._get_category(session, category_id)

    def create_category(self, session: Session, payload: CategoryCreate) -> Category:
        self._ensure_unique_name(session, payload.name)
        category = self.repo.create(
            session,
            Category(name=payload.name, image_url=payload.image_url),
        )
        logger.info("Created category %s (%s)", category.id, category.name)
        return category

    def update_category(
        self,
        session: Session,
        category_id: uuid.UUID,
        payload: CategoryUpdate,
    ) -> Category:
        category = self._get_category(session, category_id)

        if payload.name is not None and payload.name != category.name:
            self._ensure_unique_name(session, payload.name, exclude_id=category.id)
            category.name = payload.name

        if payload.image_url is not None:
            category.image_url = payload.image_url or None

        return self.repo.update(session, category)

    def set_image(
        self,
        session: Session,
        category_id: uuid.UUID,
        content_type: str | None,
        file_bytes: bytes,
    ) -> Category:
        """
        Upload or replace the category image.
        The previous file is removed from Storage on a best-effort basis.
        """
        category = self._get_category(session, category_id)
        new_url = store_image(f"categories/{category.id}", content_type, file_bytes)

        if category.image_url:
            delete_public_url(category.image_url)

        category.image_url = new_url
        return self.repo.update(session, category)

    def delete_category(self, session: Session, category_id: uuid.UUID) -> CategoryDeleted:
        category = self._get_category(session, category_id)
        products = self.product_repo.list_by_category(session, category.id)

        for product in products:
            self.product_repo.delete(session, product, commit=False)
        self.repo.delete(session, category)

        logger.info(
            "Deleted category %s with %d products",
            category_id,
            len(products),
        )
        return CategoryDeleted(id=category_id, deleted_products=len(products))
