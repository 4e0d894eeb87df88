# app/services/contact_service.py
import logging
import uuid
from typing import Callable

from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.errors import DeliveryError, NotFoundError
from app.core.notifications import NotificationResult, notify
from app.models.contact import ContactMessage
from app.repositories.contact_repo import ContactRepository
from app.schemas.contact import ContactCreate, ContactReply, ContactStatusUpdate

logger = logging.getLogger(__name__)

STATUS_NEW = "new"
STATUS_READ = "read"
STATUS_REPLIED = "replied"


class ContactService:
    """
    Contact form inbox.

    Responsibilities:
      - store public submissions and forward them to the store inbox
        (forwarding failure does not lose the message)
      - admin triage: list / read / status / delete
      - admin replies by email; here a failed send IS an error
    """

    def __init__(
        self,
        repo: ContactRepository,
        notify_fn: Callable[..., NotificationResult] = notify,
        settings: Settings | None = None,
    ):
        self.repo = repo
        self.notify = notify_fn
        self.settings = settings or get_settings()

    def _get_message(self, session: Session, message_id: uuid.UUID) -> ContactMessage:
        message = self.repo.get_by_id(session, message_id)
        if not message:
            raise NotFoundError("Message not found")
        return message

    def submit(self, session: Session, payload: ContactCreate) -> ContactMessage:
        message = self.repo.create(
            session,
            ContactMessage(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                subject=payload.subject,
                message=payload.message,
            ),
        )

        inbox = self.settings.CONTACT_INBOX_EMAIL or self.settings.SMTP_FROM_EMAIL
        if inbox:
            result = self.notify(
                inbox,
                f"New Contact Form: {message.subject}",
                "contact_message",
                {
                    "name": message.name,
                    "email": message.email,
                    "phone": message.phone,
                    "subject": message.subject,
                    "message": message.message,
                },
                reply_to=message.email,
            )
            if not result.success:
                logger.warning("Contact message %s not forwarded: %s", message.id, result.error)

        return message

    def list_messages(self, session: Session, status: str | None = None) -> list[ContactMessage]:
        return self.repo.list(session, status=status)

    def get_message(self, session: Session, message_id: uuid.UUID) -> ContactMessage:
        """
        Opening a new message marks it as read.
        """
        message = self._get_message(session, message_id)
        if not message.is_read:
            message.is_read = True
            if message.status == STATUS_NEW:
                message.status = STATUS_READ
            message = self.repo.update(session, message)
        return message

    def update_status(
        self,
        session: Session,
        message_id: uuid.UUID,
        payload: ContactStatusUpdate,
    ) -> ContactMessage:
        message = self._get_message(session, message_id)
        message.status = payload.status
        message.is_read = payload.status != STATUS_NEW
        return self.repo.update(session, message)

    def delete_message(self, session: Session, message_id: uuid.UUID) -> None:
        message = self._get_message(session, message_id)
        self.repo.delete(session, message)

    def reply(
        self,
        session: Session,
        message_id: uuid.UUID,
        payload: ContactReply,
    ) -> ContactMessage:
        """
        Raises:
            DeliveryError: the reply email could not be sent.
        """
        message = self._get_message(session, message_id)
        result = self.notify(
            message.email,
            f"Re: {message.subject}",
            "contact_reply",
            {
                "name": message.name,
                "subject": f"Re: {message.subject}",
                "message": payload.message,
                "original_message": message.message,
            },
        )
        if not result.success:
            raise DeliveryError("Failed to send reply email", reason=result.error)

        message.status = STATUS_REPLIED
        message.is_read = True
        return self.repo.update(session, message)
