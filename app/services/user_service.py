# app/services/user_service.py
import logging
import math
import uuid

from sqlmodel import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserPage, UserRead, UserRoleUpdate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - profile edits (name, order email preference)
      - admin listing and role changes
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    # ----- Self profile -----

    def get_me(self, current_user: User) -> User:
        """Return the current authenticated user."""
        return current_user

    def update_me(
        self,
        session: Session,
        current_user: User,
        payload: UserUpdate,
    ) -> User:
        """
        Partial update for profile edits.
        """
        if payload.name is not None:
            current_user.name = payload.name

        if payload.email_order_updates is not None:
            current_user.email_order_updates = payload.email_order_updates

        return self.repo.update(session, current_user)

    # ----- Admin operations -----

    def list_users(
        self,
        session: Session,
        page: int = 1,
        limit: int = 50,
        role: str | None = None,
    ) -> UserPage:
        """List users with pagination (admin only)."""
        total = self.repo.count(session, role=role)
        users = self.repo.list(session, skip=(page - 1) * limit, limit=limit, role=role)
        return UserPage(
            items=[UserRead.model_validate(u) for u in users],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        """
        Raises:
            NotFoundError: if not found.
        """
        user = self.repo.get_by_id(session, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_role(
        self,
        session: Session,
        actor: User,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Change a user's role (admin only). Admins cannot change their own role.
        """
        user = self.get_user(session, user_id)
        if user.id == actor.id and payload.role != user.role:
            raise ValidationError("You cannot change your own role")
        user.role = payload.role
        user = self.repo.update(session, user)
        logger.info("User %s role set to %s by %s", user.id, user.role, actor.id)
        return user
