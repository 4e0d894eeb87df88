# app/routers/products.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.category_repo import CategoryRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    ProductCreate,
    ProductPage,
    ProductRead,
    ProductSort,
    ProductUpdate,
)
from app.schemas.variant import (
    AvailabilityMatrix,
    AvailabilityRead,
    StockAdjustment,
    StockLevelRead,
    VariantCreate,
    VariantRead,
    VariantStockUpdate,
    VariantUpdate,
)
from app.services.product_service import ProductService
from app.services.stock_ledger import StockLedger
from app.services.variant_service import VariantService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
variant_service = VariantService(repo)
service = ProductService(repo, CategoryRepository(), variant_service)
ledger = StockLedger(repo)


def _read_uploads(files: list[UploadFile]) -> list[tuple[str | None, bytes]]:
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files uploaded",
        )
    return [(f.content_type, f.file.read()) for f in files]


# -------- Public endpoints --------


@router.get("", response_model=ProductPage)
def list_products(
    session: Session = Depends(get_session),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=100),
    sort: ProductSort = "newest",
    category_id: uuid.UUID | None = None,
    search: str | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
):
    """
    List active products.

    - Public endpoint.
    - Filters: category, name search, price range.
    """
    return service.list_products(
        session,
        page=page,
        limit=limit,
        sort=sort,
        category_id=category_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
    )


@router.get(
    "/admin/all",
    response_model=ProductPage,
    dependencies=[Depends(require_admin)],
)
def list_all_products(
    session: Session = Depends(get_session),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    sort: ProductSort = "newest",
    category_id: uuid.UUID | None = None,
    search: str | None = None,
):
    """
    List products including inactive ones (admin only).
    """
    return service.list_products(
        session,
        page=page,
        limit=limit,
        sort=sort,
        category_id=category_id,
        search=search,
        include_inactive=True,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_product(session, product_id)


@router.get("/{product_id}/availability", response_model=AvailabilityMatrix)
def get_availability_matrix(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Colour x size availability grid for the product page (public).
    """
    return variant_service.get_availability_matrix(session, product_id)


@router.get("/{product_id}/availability/check", response_model=AvailabilityRead)
def check_availability(
    product_id: uuid.UUID,
    size: str,
    variant_sku: str | None = None,
    session: Session = Depends(get_session),
):
    """
    Availability of one (colour, size) pair, e.g. before add-to-cart.
    """
    return variant_service.check_availability(session, product_id, variant_sku, size)


@router.get("/{product_id}/variants/{sku}", response_model=VariantRead)
def get_variant(
    product_id: uuid.UUID,
    sku: str,
    session: Session = Depends(get_session),
):
    return variant_service.get_variant(session, product_id, sku)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
):
    """
    Create a product, with or without colour variants (admin only).
    """
    return service.create_product(session, payload)


@router.patch(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    return service.update_product(session, product_id, payload)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete a product with its variants and reviews (admin only).
    """
    service.delete_product(session, product_id)
    return None


@router.post(
    "/{product_id}/image",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
    summary="Upload or replace the main image of a product",
)
def upload_product_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """
    - Accepts JPEG, PNG, WEBP.
    - Replaces any previous image.
    """
    return service.set_product_image(
        session=session,
        product_id=product_id,
        content_type=file.content_type,
        file_bytes=file.file.read(),
    )


@router.post(
    "/{product_id}/stock",
    response_model=StockLevelRead,
    dependencies=[Depends(require_admin)],
    summary="Increment or decrement stock of one size",
)
def adjust_stock(
    product_id: uuid.UUID,
    payload: StockAdjustment,
    session: Session = Depends(get_session),
):
    return ledger.update_stock(
        session,
        product_id,
        payload.variant_sku,
        payload.size,
        payload.quantity,
        payload.direction,
    )


# -------- Variants (admin) --------


@router.post(
    "/{product_id}/variants",
    response_model=VariantRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def add_variant(
    product_id: uuid.UUID,
    payload: VariantCreate,
    session: Session = Depends(get_session),
):
    return variant_service.add_variant(session, product_id, payload)


@router.patch(
    "/{product_id}/variants/{sku}",
    response_model=VariantRead,
    dependencies=[Depends(require_admin)],
)
def update_variant(
    product_id: uuid.UUID,
    sku: str,
    payload: VariantUpdate,
    session: Session = Depends(get_session),
):
    return variant_service.update_variant(session, product_id, sku, payload)


@router.delete(
    "/{product_id}/variants/{sku}",
    response_model=VariantRead,
    dependencies=[Depends(require_admin)],
)
def deactivate_variant(
    product_id: uuid.UUID,
    sku: str,
    session: Session = Depends(get_session),
):
    """
    Soft delete: the variant is hidden but its stock records are kept.
    """
    return variant_service.deactivate_variant(session, product_id, sku)


@router.put(
    "/{product_id}/variants/{sku}/stock",
    response_model=VariantRead,
    dependencies=[Depends(require_admin)],
)
def set_variant_stock(
    product_id: uuid.UUID,
    sku: str,
    payload: VariantStockUpdate,
    session: Session = Depends(get_session),
):
    """
    Set absolute stock for several sizes; unknown sizes reject the whole update.
    """
    return variant_service.set_variant_stock(session, product_id, sku, payload)


@router.post(
    "/{product_id}/variants/{sku}/images",
    response_model=VariantRead,
    dependencies=[Depends(require_admin)],
    summary="Upload images for a colour variant",
)
def upload_variant_images(
    product_id: uuid.UUID,
    sku: str,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
):
    return service.add_variant_images(
        session=session,
        product_id=product_id,
        sku=sku,
        files=_read_uploads(files),
    )
