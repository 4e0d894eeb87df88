import uuid

import pytest

from app.core.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    TransitionError,
    ValidationError,
)
from app.repositories.order_repo import OrderRepository
from app.repositories.user_repo import UserRepository
from app.schemas.order import OrderCreate, OrderItemCreate, ShippingAddress

from conftest import size_stock, variant_payload

NAVY = "CLASSICCOTTONTSHI-NAVY"
WHITE = "CLASSICCOTTONTSHI-WHITE"


def shipping(**overrides) -> ShippingAddress:
    fields = dict(
        full_name="Ayesha Khan",
        phone="+92 300 1234567",
        address="12 Mall Road",
        city="Lahore",
        postal_code="54000",
    )
    fields.update(overrides)
    return ShippingAddress(**fields)


def order_payload(*items: OrderItemCreate, **extra) -> OrderCreate:
    return OrderCreate(items=list(items), shipping_address=shipping(), **extra)


def line(product, size="M", quantity=1, sku=NAVY) -> OrderItemCreate:
    return OrderItemCreate(product_id=product.id, size=size, quantity=quantity, variant_sku=sku)


class TestCreateOrder:
    def test_end_to_end_place_and_cancel(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()

        order = order_service.create_order(session, customer, order_payload(line(product, quantity=5)))

        assert order.status == "Pending"
        assert size_stock(session, product.id, NAVY, "M") == 15

        cancelled = order_service.cancel_order(session, order.id, customer)

        assert cancelled.status == "Cancelled"
        assert size_stock(session, product.id, NAVY, "M") == 20

    def test_snapshot_and_totals(self, session, order_service, variant_service, make_variant_product, customer):
        product = make_variant_product()
        variant_service.add_variant(
            session, product.id, variant_payload("WHITE", {"M": 5}, price_override=30.0)
        )

        order = order_service.create_order(
            session,
            customer,
            order_payload(line(product, quantity=2), line(product, sku=WHITE), notes="  gift wrap "),
        )

        first, second = order.items
        assert (first.name, first.unit_price, first.size_sku) == ("Classic Cotton T-Shirt", 25.0, f"{NAVY}-M")
        assert first.color.code == "NAVY"
        assert first.image == "https://cdn.example.com/navy-front.jpg"
        assert (second.unit_price, second.line_total) == (30.0, 30.0)
        assert order.items_price == 80.0
        assert order.total_price == 80.0
        assert order.shipping_address.country == "Pakistan"
        assert order.payment_method == "Cash on Delivery"
        assert order.notes == "gift wrap"

    def test_legacy_product_line(self, session, order_service, product_repo, make_legacy_product, customer):
        product = make_legacy_product(stock=4)

        order = order_service.create_order(
            session,
            customer,
            order_payload(OrderItemCreate(product_id=product.id, size="One Size", quantity=3)),
        )

        assert order.items[0].variant_sku is None
        assert order.items[0].color is None
        assert order.total_price == 37.5
        assert product_repo.get_by_id(session, product.id).stock == 1

    def test_insufficient_stock_places_nothing(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()

        with pytest.raises(InsufficientStockError):
            order_service.create_order(
                session,
                customer,
                order_payload(line(product, quantity=2), line(product, size="L", quantity=6)),
            )

        assert size_stock(session, product.id, NAVY, "M") == 20
        assert size_stock(session, product.id, NAVY, "L") == 5
        assert OrderRepository().list_for_user(session, customer.id) == []

    def test_quantities_for_the_same_size_are_summed(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()

        with pytest.raises(InsufficientStockError) as exc_info:
            order_service.create_order(
                session,
                customer,
                order_payload(line(product, size="L", quantity=3), line(product, size="L", quantity=3)),
            )

        assert exc_info.value.context["requested"] == 6
        assert size_stock(session, product.id, NAVY, "L") == 5

    def test_failed_decrement_rolls_back_the_order(
        self, session, order_service, ledger, make_variant_product, customer, monkeypatch
    ):
        product = make_variant_product()
        real_update = ledger.update_stock
        calls = {"n": 0}

        def flaky_update(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise InsufficientStockError("Sold out while checking out", available=0, requested=1)
            return real_update(*args, **kwargs)

        monkeypatch.setattr(ledger, "update_stock", flaky_update)

        with pytest.raises(InsufficientStockError):
            order_service.create_order(
                session,
                customer,
                order_payload(line(product, quantity=4), line(product, size="S", quantity=1)),
            )

        assert size_stock(session, product.id, NAVY, "M") == 20
        assert OrderRepository().list_for_user(session, customer.id) == []

    def test_no_items(self, session, order_service, customer):
        with pytest.raises(ValidationError):
            order_service.create_order(session, customer, order_payload())

    def test_variant_product_needs_a_color(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()

        with pytest.raises(ValidationError):
            order_service.create_order(session, customer, order_payload(line(product, sku=None)))

    def test_unknown_product(self, session, order_service, customer):
        missing = OrderItemCreate(product_id=uuid.uuid4(), size="M", quantity=1)

        with pytest.raises(NotFoundError):
            order_service.create_order(session, customer, order_payload(missing))

    def test_inactive_variant_cannot_be_ordered(
        self, session, order_service, variant_service, make_variant_product, customer
    ):
        product = make_variant_product()
        variant_service.deactivate_variant(session, product.id, NAVY)

        with pytest.raises(NotFoundError):
            order_service.create_order(session, customer, order_payload(line(product)))

    def test_confirmation_email(self, session, order_service, make_variant_product, customer, notifier):
        product = make_variant_product()

        order = order_service.create_order(session, customer, order_payload(line(product, quantity=2)))

        [call] = notifier.calls
        assert call["to"] == customer.email
        assert call["template"] == "order_confirmation"
        assert call["data"]["order_id"] == str(order.id)
        assert call["data"]["items"][0]["quantity"] == 2

    def test_opted_out_users_get_no_email(self, session, order_service, make_variant_product, make_user, notifier):
        product = make_variant_product()
        quiet = make_user("Bilal", email_order_updates=False)

        order_service.create_order(session, quiet, order_payload(line(product)))

        assert notifier.calls == []


class TestStatusTransitions:
    @pytest.fixture
    def order(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()
        return order_service.create_order(session, customer, order_payload(line(product, quantity=5)))

    def test_happy_path_to_delivered(self, session, order_service, order, notifier):
        for status in ("Processing", "Shipped", "Delivered"):
            result = order_service.update_status(session, order.id, status)

        assert result.status == "Delivered"
        assert result.is_delivered is True
        assert result.delivered_at is not None
        assert notifier.templates() == ["order_confirmation", "order_shipped", "order_delivered"]

    @pytest.mark.parametrize("target", ["Shipped", "Delivered", "Pending"])
    def test_skipping_or_going_back_is_rejected(self, session, order_service, order, target):
        if target == "Pending":
            order_service.update_status(session, order.id, "Processing")

        with pytest.raises(TransitionError):
            order_service.update_status(session, order.id, target)

    def test_same_status_is_a_no_op(self, session, order_service, order, notifier):
        result = order_service.update_status(session, order.id, "Pending")

        assert result.status == "Pending"
        assert notifier.templates() == ["order_confirmation"]

    def test_admin_cancel_via_status_restores_stock(self, session, order_service, order):
        product_id = order.items[0].product_id
        order_service.update_status(session, order.id, "Processing")

        result = order_service.update_status(session, order.id, "Cancelled")

        assert result.status == "Cancelled"
        assert size_stock(session, product_id, NAVY, "M") == 20

    @pytest.mark.parametrize("path", [["Processing", "Shipped"], ["Processing", "Shipped", "Delivered"]])
    def test_cannot_cancel_after_shipping(self, session, order_service, order, customer, path):
        for status in path:
            order_service.update_status(session, order.id, status)

        with pytest.raises(TransitionError):
            order_service.cancel_order(session, order.id, customer)

    def test_cannot_cancel_twice(self, session, order_service, order, customer):
        order_service.cancel_order(session, order.id, customer)

        with pytest.raises(TransitionError):
            order_service.cancel_order(session, order.id, customer)

    def test_cancel_from_processing_restores_stock(self, session, order_service, order, customer):
        order_service.update_status(session, order.id, "Processing")

        order_service.cancel_order(session, order.id, customer, reason="Changed my mind")

        assert size_stock(session, order.items[0].product_id, NAVY, "M") == 20

    def test_cancellation_email_carries_reason(self, session, order_service, order, customer, notifier):
        order_service.cancel_order(session, order.id, customer, reason="Ordered wrong size")

        call = notifier.calls[-1]
        assert call["template"] == "order_cancelled"
        assert call["data"]["reason"] == "Ordered wrong size"

    def test_cancel_survives_deleted_product(self, session, order_service, product_service, order, customer):
        product_service.delete_product(session, order.items[0].product_id)

        result = order_service.cancel_order(session, order.id, customer)

        assert result.status == "Cancelled"

    def test_mark_paid(self, session, order_service, order):
        paid = order_service.mark_paid(session, order.id)

        assert paid.is_paid is True
        assert paid.paid_at is not None
        assert paid.status == "Pending"


class TestOrderAccess:
    @pytest.fixture
    def order(self, session, order_service, make_variant_product, customer):
        product = make_variant_product()
        return order_service.create_order(session, customer, order_payload(line(product)))

    def test_owner_and_admin_can_read(self, session, order_service, order, customer, admin):
        assert order_service.get_order(session, order.id, customer).id == order.id
        assert order_service.get_order(session, order.id, admin).id == order.id

    def test_stranger_cannot_read_or_cancel(self, session, order_service, order, make_user):
        stranger = make_user("Stranger")

        with pytest.raises(AuthorizationError):
            order_service.get_order(session, order.id, stranger)
        with pytest.raises(AuthorizationError):
            order_service.cancel_order(session, order.id, stranger)

    def test_admin_can_cancel(self, session, order_service, order, admin):
        assert order_service.cancel_order(session, order.id, admin).status == "Cancelled"

    def test_listing(self, session, order_service, order, customer, make_user):
        other = make_user("Other")

        assert [o.id for o in order_service.list_my_orders(session, customer)] == [order.id]
        assert order_service.list_my_orders(session, other) == []

        page = order_service.list_orders(session, status="Pending")
        assert (page.total, page.pages) == (1, 1)
        assert order_service.list_orders(session, is_paid=True).total == 0

    def test_delete(self, session, order_service, order):
        order_service.delete_order(session, order.id)

        with pytest.raises(NotFoundError):
            order_service.mark_paid(session, order.id)

    def test_opt_out_applies_to_status_emails(self, session, order_service, order, customer, notifier):
        notifier.calls.clear()
        order_service.update_status(session, order.id, "Processing")
        customer.email_order_updates = False
        UserRepository().update(session, customer)

        order_service.update_status(session, order.id, "Shipped")

        assert notifier.calls == []
