# app/models/contact.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class ContactMessage(SQLModel, table=True):
    """
    Message submitted through the public contact form.
    """

    __tablename__ = "contact_messages"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=100)
    email: str = Field(max_length=255)
    phone: str | None = None
    subject: str = Field(max_length=200)
    message: str

    # new | read | replied
    status: str = Field(default="new", index=True)
    is_read: bool = False

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
