# app/routers/contact.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.contact_repo import ContactRepository
from app.schemas.contact import (
    ContactCreate,
    ContactRead,
    ContactReply,
    ContactStatus,
    ContactStatusUpdate,
)
from app.services.contact_service import ContactService

router = APIRouter(prefix="/contact", tags=["Contact"])

service = ContactService(ContactRepository())


@router.post(
    "",
    response_model=ContactRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_contact_form(
    payload: ContactCreate,
    session: Session = Depends(get_session),
):
    """
    Public contact form. The message is stored even if forwarding by
    email fails.
    """
    return service.submit(session, payload)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[ContactRead],
    dependencies=[Depends(require_admin)],
)
def list_messages(
    status: ContactStatus | None = None,
    session: Session = Depends(get_session),
):
    return service.list_messages(session, status)


@router.get(
    "/{message_id}",
    response_model=ContactRead,
    dependencies=[Depends(require_admin)],
)
def get_message(
    message_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_message(session, message_id)


@router.patch(
    "/{message_id}/status",
    response_model=ContactRead,
    dependencies=[Depends(require_admin)],
)
def update_message_status(
    message_id: uuid.UUID,
    payload: ContactStatusUpdate,
    session: Session = Depends(get_session),
):
    return service.update_status(session, message_id, payload)


@router.post(
    "/{message_id}/reply",
    response_model=ContactRead,
    dependencies=[Depends(require_admin)],
)
def reply_to_message(
    message_id: uuid.UUID,
    payload: ContactReply,
    session: Session = Depends(get_session),
):
    """
    Email a reply to the sender; 502 if the email cannot be sent.
    """
    return service.reply(session, message_id, payload)


@router.delete(
    "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_message(
    message_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    service.delete_message(session, message_id)
    return None
