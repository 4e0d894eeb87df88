# app/repositories/category_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.category import Category


class CategoryRepository:
    """
    Data access layer for Category.
    """

    def get_by_id(self, session: Session, category_id: uuid.UUID) -> Category | None:
        return session.get(Category, category_id)

    def get_by_name(self, session: Session, name: str) -> Category | None:
        """Case-insensitive lookup by name."""
        stmt = select(Category).where(func.lower(Category.name) == name.lower())
        return session.exec(stmt).first()

    def list(self, session: Session) -> list[Category]:
        stmt = select(Category).order_by(Category.name)
        return list(session.exec(stmt).all())

    def create(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.commit()
        session.refresh(category)
        return category

    def update(self, session: Session, category: Category) -> Category:
        session.add(category)
        session.commit()
        session.refresh(category)
        return category

    def delete(self, session: Session, category: Category) -> None:
        session.delete(category)
        session.commit()
