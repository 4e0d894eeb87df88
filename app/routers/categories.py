# app/routers/categories.py
import uuid

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.category_repo import CategoryRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.category import (
    CategoryCreate,
    CategoryDeleted,
    CategoryRead,
    CategoryUpdate,
)
from app.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])

service = CategoryService(CategoryRepository(), ProductRepository())


# -------- Public endpoints --------


@router.get("", response_model=list[CategoryRead])
def list_categories(session: Session = Depends(get_session)):
    return service.list_categories(session)


@router.get("/{category_id}", response_model=CategoryRead)
def get_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_category(session, category_id)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_category(
    payload: CategoryCreate,
    session: Session = Depends(get_session),
):
    return service.create_category(session, payload)


@router.patch(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_admin)],
)
def update_category(
    category_id: uuid.UUID,
    payload: CategoryUpdate,
    session: Session = Depends(get_session),
):
    return service.update_category(session, category_id, payload)


@router.post(
    "/{category_id}/image",
    response_model=CategoryRead,
    dependencies=[Depends(require_admin)],
    summary="Upload or replace a category image",
)
def upload_category_image(
    category_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    return service.set_image(
        session=session,
        category_id=category_id,
        content_type=file.content_type,
        file_bytes=file.file.read(),
    )


@router.delete(
    "/{category_id}",
    response_model=CategoryDeleted,
    dependencies=[Depends(require_admin)],
)
def delete_category(
    category_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a category and every product in it (admin only).
    """
    return service.delete_category(session, category_id)
