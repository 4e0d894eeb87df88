# app/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(SQLModel, table=True):
    """
    Persistent user profile.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "user" | "admin"
      - "guest" is represented by the absence of a row / missing token.

    This table is *not* responsible for password hashes. Supabase Auth
    stores the password in its own schema.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str = Field(
        max_length=50,
        description="Customer display name; first part of email by default",
    )

    role: str = Field(
        default=ROLE_USER,
        index=True,
        description="Application role: user | admin",
    )

    email_order_updates: bool = Field(
        default=True,
        description="Whether the customer receives order status emails",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
