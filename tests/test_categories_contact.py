import pytest

from app.core.config import Settings
from app.core.errors import ConflictError, DeliveryError, NotFoundError, ValidationError
from app.repositories.category_repo import CategoryRepository
from app.repositories.contact_repo import ContactRepository
from app.schemas.category import CategoryCreate, CategoryUpdate
from app.schemas.contact import ContactCreate, ContactReply, ContactStatusUpdate
from app.schemas.review import ReviewCreate
from app.services.category_service import CategoryService
from app.services.contact_service import ContactService

from conftest import RecordingNotifier


@pytest.fixture
def category_service(product_repo):
    return CategoryService(CategoryRepository(), product_repo)


class TestCategories:
    def test_names_are_unique_ignoring_case(self, session, category_service):
        category_service.create_category(session, CategoryCreate(name="Hoodies"))

        with pytest.raises(ConflictError):
            category_service.create_category(session, CategoryCreate(name="  hoodies "))

    def test_blank_name_rejected(self, session, category_service):
        with pytest.raises(ValidationError):
            category_service.create_category(session, CategoryCreate(name="   "))

    def test_rename_to_existing_name_is_conflict(self, session, category_service):
        category_service.create_category(session, CategoryCreate(name="Hoodies"))
        jeans = category_service.create_category(session, CategoryCreate(name="Jeans"))

        with pytest.raises(ConflictError):
            category_service.update_category(session, jeans.id, CategoryUpdate(name="HOODIES"))

        renamed = category_service.update_category(session, jeans.id, CategoryUpdate(name="Denim"))
        assert renamed.name == "Denim"

    def test_delete_cascades_products_and_reviews(
        self, session, category_service, category, make_variant_product, make_legacy_product,
        review_service, customer,
    ):
        shirt = make_variant_product()
        make_legacy_product()
        review_service.create_review(
            session, customer, ReviewCreate(product_id=shirt.id, rating=5, comment="Great")
        )

        result = category_service.delete_category(session, category.id)

        assert result.deleted_products == 2
        assert session.get(type(category), category.id) is None
        assert review_service.list_my_reviews(session, customer) == []
        with pytest.raises(NotFoundError):
            category_service.get_category(session, category.id)


def contact_form(**overrides) -> ContactCreate:
    fields = {
        "name": "Bilal",
        "email": "bilal@example.com",
        "subject": "Sizing question",
        "message": "Does the navy tee run small?",
    }
    fields.update(overrides)
    return ContactCreate(**fields)


def settings_with_inbox(inbox: str | None) -> Settings:
    return Settings(CONTACT_INBOX_EMAIL=inbox)


class TestContact:
    def test_submit_forwards_to_inbox(self, session):
        notifier = RecordingNotifier()
        service = ContactService(
            ContactRepository(), notify_fn=notifier, settings=settings_with_inbox("inbox@example.com")
        )

        message = service.submit(session, contact_form())

        assert message.status == "new"
        assert notifier.calls[0]["to"] == "inbox@example.com"
        assert notifier.calls[0]["reply_to"] == "bilal@example.com"
        assert notifier.templates() == ["contact_message"]

    def test_forwarding_failure_keeps_message(self, session):
        notifier = RecordingNotifier(success=False)
        service = ContactService(
            ContactRepository(), notify_fn=notifier, settings=settings_with_inbox("inbox@example.com")
        )

        message = service.submit(session, contact_form())

        assert [m.id for m in service.list_messages(session)] == [message.id]

    def test_opening_marks_read(self, session):
        service = ContactService(ContactRepository(), notify_fn=RecordingNotifier(), settings=settings_with_inbox(None))
        message = service.submit(session, contact_form())

        opened = service.get_message(session, message.id)

        assert opened.is_read is True
        assert opened.status == "read"
        assert service.list_messages(session, status="new") == []

    def test_reply_sets_replied(self, session):
        notifier = RecordingNotifier()
        service = ContactService(ContactRepository(), notify_fn=notifier, settings=settings_with_inbox(None))
        message = service.submit(session, contact_form())

        replied = service.reply(session, message.id, ContactReply(message="It runs true to size."))

        assert replied.status == "replied"
        assert notifier.calls[-1]["to"] == "bilal@example.com"
        assert notifier.calls[-1]["subject"] == "Re: Sizing question"

    def test_reply_failure_is_delivery_error(self, session):
        service = ContactService(
            ContactRepository(), notify_fn=RecordingNotifier(success=False), settings=settings_with_inbox(None)
        )
        message = service.submit(session, contact_form())

        with pytest.raises(DeliveryError) as exc_info:
            service.reply(session, message.id, ContactReply(message="Hello"))

        assert exc_info.value.context == {"reason": "SMTP down"}
        assert service.get_message(session, message.id).status != "replied"

    def test_status_and_delete(self, session):
        service = ContactService(ContactRepository(), notify_fn=RecordingNotifier(), settings=settings_with_inbox(None))
        message = service.submit(session, contact_form())

        updated = service.update_status(session, message.id, ContactStatusUpdate(status="new"))
        assert updated.is_read is False

        service.delete_message(session, message.id)
        with pytest.raises(NotFoundError):
            service.get_message(session, message.id)

    def test_form_rejects_bad_email(self):
        with pytest.raises(ValueError):
            contact_form(email="not-an-email")
