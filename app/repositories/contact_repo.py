# app/repositories/contact_repo.py
import uuid

from sqlmodel import Session, select

from app.models.contact import ContactMessage


class ContactRepository:
    """
    Data access layer for contact form messages.
    """

    def get_by_id(self, session: Session, message_id: uuid.UUID) -> ContactMessage | None:
        return session.get(ContactMessage, message_id)

    def list(self, session: Session, status: str | None = None) -> list[ContactMessage]:
        stmt = select(ContactMessage)
        if status is not None:
            stmt = stmt.where(ContactMessage.status == status)
        stmt = stmt.order_by(ContactMessage.created_at.desc())
        return list(session.exec(stmt).all())

    def create(self, session: Session, message: ContactMessage) -> ContactMessage:
        session.add(message)
        session.commit()
        session.refresh(message)
        return message

    def update(self, session: Session, message: ContactMessage) -> ContactMessage:
        session.add(message)
        session.commit()
        session.refresh(message)
        return message

    def delete(self, session: Session, message: ContactMessage) -> None:
        session.delete(message)
        session.commit()
