import pytest

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.schemas.product import ProductUpdate
from app.schemas.variant import (
    ColorInput,
    SizeStockInput,
    SizeStockSet,
    VariantCreate,
    VariantStockUpdate,
    VariantUpdate,
)

from conftest import size_stock, variant_payload

NAVY = "CLASSICCOTTONTSHI-NAVY"


class TestAddVariant:
    def test_create_product_with_variant_generates_skus(self, make_variant_product):
        product = make_variant_product()

        assert product.has_variants is True
        [variant] = product.variants
        assert variant.sku == NAVY
        assert [s.sku for s in variant.sizes] == [f"{NAVY}-S", f"{NAVY}-M", f"{NAVY}-L"]
        assert variant.price == 25.0
        assert product.total_stock == 35
        assert product.image == "https://cdn.example.com/navy-front.jpg"

    def test_add_second_color(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        variant = variant_service.add_variant(
            session, product.id, variant_payload("WHITE", {"M": 4}, price_override=30.0)
        )

        assert variant.sku == "CLASSICCOTTONTSHI-WHITE"
        assert variant.price == 30.0

    def test_duplicate_color_is_conflict(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        with pytest.raises(ConflictError):
            variant_service.add_variant(session, product.id, variant_payload("NAVY", {"M": 1}))

    def test_conflict_includes_inactive_variants(self, session, variant_service, make_variant_product):
        product = make_variant_product()
        variant_service.deactivate_variant(session, product.id, NAVY)

        with pytest.raises(ConflictError):
            variant_service.add_variant(session, product.id, variant_payload("NAVY", {"M": 1}))

    @pytest.mark.parametrize(
        "payload",
        [
            VariantCreate(images=["a.jpg"], sizes=[SizeStockInput(size="M", stock=1)]),
            VariantCreate(
                color=ColorInput(name="Red", hex="red", code="RED"),
                images=["a.jpg"],
                sizes=[SizeStockInput(size="M", stock=1)],
            ),
            VariantCreate(
                color=ColorInput(name="Red", hex="#FF0000", code="RED"),
                images=[],
                sizes=[SizeStockInput(size="M", stock=1)],
            ),
            VariantCreate(
                color=ColorInput(name="Red", hex="#FF0000", code="RED"),
                images=[f"{n}.jpg" for n in range(6)],
                sizes=[SizeStockInput(size="M", stock=1)],
            ),
            VariantCreate(
                color=ColorInput(name="Red", hex="#FF0000", code="RED"),
                images=["a.jpg"],
                sizes=[],
            ),
            VariantCreate(
                color=ColorInput(name="Red", hex="#FF0000", code="RED"),
                images=["a.jpg"],
                sizes=[SizeStockInput(size="M", stock=1), SizeStockInput(size="M", stock=2)],
            ),
        ],
        ids=["no-color", "bad-hex", "no-images", "too-many-images", "no-sizes", "duplicate-size"],
    )
    def test_invalid_payloads(self, session, variant_service, make_variant_product, payload):
        product = make_variant_product()

        with pytest.raises(ValidationError):
            variant_service.add_variant(session, product.id, payload)

    def test_bad_variant_leaves_no_product_behind(self, session, product_service, category):
        from app.schemas.product import ProductCreate

        with pytest.raises(ValidationError):
            product_service.create_product(
                session,
                ProductCreate(
                    name="Linen Shirt",
                    category_id=category.id,
                    base_price=40.0,
                    variants=[variant_payload("NAVY", {"M": 1}), VariantCreate(images=["x.jpg"])],
                ),
            )

        assert product_service.list_products(session).total == 0


class TestUpdateVariant:
    def test_partial_update_keeps_other_fields(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        updated = variant_service.update_variant(
            session, product.id, NAVY, VariantUpdate(price_override=19.99)
        )

        assert updated.price == 19.99
        assert updated.color.name == "Navy Blue"
        assert len(updated.sizes) == 3

    def test_price_override_can_be_reset(self, session, variant_service, make_variant_product):
        product = make_variant_product()
        variant_service.update_variant(session, product.id, NAVY, VariantUpdate(price_override=19.99))

        updated = variant_service.update_variant(
            session, product.id, NAVY, VariantUpdate(price_override=None)
        )

        assert updated.price_override is None
        assert updated.price == 25.0

    def test_replacing_sizes_keeps_existing_skus(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        updated = variant_service.update_variant(
            session,
            product.id,
            NAVY,
            VariantUpdate(sizes=[SizeStockInput(size="M", stock=7), SizeStockInput(size="XL", stock=2)]),
        )

        assert {s.size: s.sku for s in updated.sizes} == {"M": f"{NAVY}-M", "XL": f"{NAVY}-XL"}
        assert size_stock(session, product.id, NAVY, "M") == 7

    def test_image_bound_is_rechecked(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        with pytest.raises(ValidationError):
            variant_service.update_variant(
                session, product.id, NAVY, VariantUpdate(images=[f"{n}.jpg" for n in range(6)])
            )

    def test_unknown_variant(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        with pytest.raises(NotFoundError):
            variant_service.update_variant(session, product.id, "NOPE", VariantUpdate(price_override=1.0))


class TestAvailability:
    def test_matrix_flags_low_stock(self, session, variant_service, make_variant_product):
        product = make_variant_product(variants={"NAVY": {"S": 0, "M": 3, "L": 6}})

        matrix = variant_service.get_availability_matrix(session, product.id)

        [color] = matrix.colors
        sizes = {s.size: s for s in color.sizes}
        assert (sizes["S"].available, sizes["S"].low_stock) == (False, False)
        assert (sizes["M"].available, sizes["M"].low_stock) == (True, True)
        assert (sizes["L"].available, sizes["L"].low_stock) == (True, False)
        assert color.is_available is True
        assert matrix.has_variants is True

    def test_matrix_hides_inactive_variants(self, session, variant_service, make_variant_product):
        product = make_variant_product(variants={"NAVY": {"M": 3}, "WHITE": {"M": 3}})
        variant_service.deactivate_variant(session, product.id, NAVY)

        matrix = variant_service.get_availability_matrix(session, product.id)

        assert [c.code for c in matrix.colors] == ["WHITE"]

    def test_deactivate_keeps_stock_records(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        variant = variant_service.deactivate_variant(session, product.id, NAVY)

        assert variant.lifecycle == "inactive"
        assert size_stock(session, product.id, NAVY, "M") == 20

    def test_check_availability(self, session, variant_service, make_variant_product):
        product = make_variant_product(variants={"NAVY": {"S": 0, "M": 3}})

        assert variant_service.check_availability(session, product.id, NAVY, "M").available is True
        assert variant_service.check_availability(session, product.id, NAVY, "S").available is False

    @pytest.mark.parametrize("sku,size", [("NOPE", "M"), (NAVY, "XXL")])
    def test_check_availability_not_found(self, session, variant_service, make_variant_product, sku, size):
        product = make_variant_product()

        with pytest.raises(NotFoundError):
            variant_service.check_availability(session, product.id, sku, size)

    def test_legacy_product_matrix(self, session, variant_service, make_legacy_product):
        product = make_legacy_product(stock=2, sizes=["One Size"])

        matrix = variant_service.get_availability_matrix(session, product.id)

        assert matrix.has_variants is False
        assert matrix.price == 12.5
        assert [(s.size, s.available) for s in matrix.sizes] == [("One Size", True)]

    def test_legacy_matrix_reports_stock_and_low_stock(self, session, variant_service, make_legacy_product):
        product = make_legacy_product(stock=3, sizes=["S", "M"])

        matrix = variant_service.get_availability_matrix(session, product.id)

        assert [(s.size, s.stock, s.low_stock) for s in matrix.sizes] == [("S", 3, True), ("M", 3, True)]

    def test_legacy_check_availability(self, session, variant_service, make_legacy_product):
        product = make_legacy_product(stock=10, sizes=["S", "M"])

        result = variant_service.check_availability(session, product.id, None, "S")

        assert (result.available, result.stock, result.low_stock) == (True, 10, False)

    def test_legacy_unsold_size_is_not_found(self, session, variant_service, make_legacy_product):
        product = make_legacy_product(stock=10, sizes=["S", "M"])

        with pytest.raises(NotFoundError):
            variant_service.check_availability(session, product.id, None, "XXL")

    def test_legacy_rejects_variant_sku(self, session, variant_service, make_legacy_product):
        product = make_legacy_product(stock=10, sizes=["S", "M"])

        with pytest.raises(ValidationError):
            variant_service.check_availability(session, product.id, "BOGUS-SKU", "S")

    def test_inactive_product_is_not_checkable(
        self, session, variant_service, product_service, make_variant_product
    ):
        product = make_variant_product()
        product_service.update_product(session, product.id, ProductUpdate(lifecycle="inactive"))

        with pytest.raises(NotFoundError):
            variant_service.check_availability(session, product.id, NAVY, "M")
        with pytest.raises(NotFoundError):
            variant_service.get_variant(session, product.id, NAVY)

        assert variant_service.get_variant(session, product.id, NAVY, include_inactive=True).sku == NAVY

    def test_public_get_variant_hides_inactive_variant(self, session, variant_service, make_variant_product):
        product = make_variant_product()
        variant_service.deactivate_variant(session, product.id, NAVY)

        with pytest.raises(NotFoundError):
            variant_service.get_variant(session, product.id, NAVY)

    def test_product_read_hides_inactive_variants(
        self, session, variant_service, product_service, make_variant_product
    ):
        product = make_variant_product(variants={"NAVY": {"M": 3}, "WHITE": {"M": 4}})
        variant_service.deactivate_variant(session, product.id, NAVY)

        public = product_service.get_product(session, product.id)
        admin = product_service.get_product(session, product.id, include_inactive=True)

        assert [v.color.code for v in public.variants] == ["WHITE"]
        assert public.total_stock == 4
        assert [v.lifecycle for v in admin.variants] == ["inactive", "active"]
        assert admin.total_stock == 7


class TestSetVariantStock:
    def test_sets_absolute_values(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        variant_service.set_variant_stock(
            session,
            product.id,
            NAVY,
            VariantStockUpdate(updates=[SizeStockSet(size="S", stock=0), SizeStockSet(size="M", stock=99)]),
        )

        assert size_stock(session, product.id, NAVY, "S") == 0
        assert size_stock(session, product.id, NAVY, "M") == 99

    def test_unknown_size_changes_nothing(self, session, variant_service, make_variant_product):
        product = make_variant_product()

        with pytest.raises(NotFoundError):
            variant_service.set_variant_stock(
                session,
                product.id,
                NAVY,
                VariantStockUpdate(updates=[SizeStockSet(size="M", stock=1), SizeStockSet(size="XXL", stock=1)]),
            )

        assert size_stock(session, product.id, NAVY, "M") == 20
