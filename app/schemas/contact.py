# app/schemas/contact.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

ContactStatus = Literal["new", "read", "replied"]


class ContactCreate(SQLModel):
    """
    Public contact form payload.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=30)
    subject: str = Field(max_length=200)
    message: str = Field(max_length=5000)

    @field_validator("name", "subject", "message")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class ContactRead(SQLModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str | None
    subject: str
    message: str
    status: ContactStatus
    is_read: bool
    created_at: datetime


class ContactStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: ContactStatus


class ContactReply(SQLModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(max_length=5000)

    @field_validator("message")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reply cannot be empty")
        return v
