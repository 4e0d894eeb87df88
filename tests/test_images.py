import pytest

from app.core import storage_utils
from app.core.errors import ValidationError
from app.core.storage_utils import extract_path_from_public_url, validate_image

PUBLIC = "https://proj.supabase.co/storage/v1/object/public/assets/"


@pytest.fixture
def uploads(monkeypatch):
    stored = []

    def fake_upload(path, file_bytes):
        stored.append(path)
        return PUBLIC + path

    monkeypatch.setattr(storage_utils, "upload_to_storage", fake_upload)
    return stored


def test_validate_image():
    assert validate_image("image/png", b"x") == "png"
    with pytest.raises(ValidationError):
        validate_image("image/gif", b"x")
    with pytest.raises(ValidationError):
        validate_image("image/jpeg", b"x" * (storage_utils.MAX_IMAGE_BYTES + 1))


def test_extract_path_only_for_own_bucket():
    assert extract_path_from_public_url(PUBLIC + "categories/c.png") == "categories/c.png"
    assert extract_path_from_public_url("https://cdn.example.com/a.png") is None


def test_variant_images_are_appended(session, product_service, make_variant_product, uploads):
    product = make_variant_product()

    variant = product_service.add_variant_images(
        session, product.id, "CLASSICCOTTONTSHI-NAVY", [("image/jpeg", b"a"), ("image/webp", b"b")]
    )

    assert len(variant.images) == 3
    assert variant.images[0] == "https://cdn.example.com/navy-front.jpg"
    assert all(path.startswith(f"products/{product.id}/variants/CLASSICCOTTONTSHI-NAVY/") for path in uploads)


def test_image_limit_checked_before_upload(session, product_service, make_variant_product, uploads):
    product = make_variant_product()

    with pytest.raises(ValidationError):
        product_service.add_variant_images(
            session, product.id, "CLASSICCOTTONTSHI-NAVY", [("image/png", b"x")] * 5
        )

    assert uploads == []


def test_one_bad_file_uploads_nothing(session, product_service, make_variant_product, uploads):
    product = make_variant_product()

    with pytest.raises(ValidationError):
        product_service.add_variant_images(
            session, product.id, "CLASSICCOTTONTSHI-NAVY", [("image/png", b"x"), ("text/plain", b"y")]
        )

    assert uploads == []
