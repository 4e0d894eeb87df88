# app/core/storage_utils.py
import uuid

from app.core.config import get_settings
from app.core.errors import ValidationError
from app.core.supabase_client import supabase_admin

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def _bucket():
    return supabase_admin().storage.from_(get_settings().STORAGE_BUCKET)


def validate_image(content_type: str | None, file_bytes: bytes) -> str:
    """
    Check type + size of an uploaded image and return its file extension.

    Raises:
        ValidationError: unsupported content type or file too large.
    """
    if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
        raise ValidationError("Unsupported image type. Allowed: JPEG, PNG, WEBP.")

    if len(file_bytes) > MAX_IMAGE_BYTES:
        raise ValidationError("Image too large (max 5MB).")

    return ALLOWED_IMAGE_CONTENT_TYPES[content_type]


def upload_to_storage(path: str, file_bytes: bytes) -> str:
    """
    Upload raw bytes to Supabase Storage and return a public URL.

    If a file already exists at this path, it will be overwritten
    thanks to the 'upsert' option.

    Args:
        path: Full object path inside the bucket.
              Example: "products/<uuid>/variants/NAVY/<uuid>.png"
        file_bytes: File content in bytes.
    """
    bucket = _bucket()
    bucket.upload(path, file_bytes, {"upsert": "true"})
    return bucket.get_public_url(path)


def store_image(prefix: str, content_type: str | None, file_bytes: bytes) -> str:
    """
    Validate and upload one image under `prefix` with a random filename.

    Returns:
        Public URL of the stored image (the only thing the catalog keeps).
    """
    ext = validate_image(content_type, file_bytes)
    return upload_to_storage(f"{prefix}/{generate_filename(ext)}", file_bytes)


def extract_path_from_public_url(url: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/assets/categories/c.png
        -> 'categories/c.png'
    """
    marker = f"/storage/v1/object/public/{get_settings().STORAGE_BUCKET}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker) :]


def delete_public_url(url: str) -> None:
    """
    Delete a file by its public URL.
    No-op if the URL does not belong to this bucket.
    """
    path = extract_path_from_public_url(url)
    if path:
        _bucket().remove([path])


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4, e.g. "<uuid4>.png".
    """
    return f"{uuid.uuid4()}.{ext}"
