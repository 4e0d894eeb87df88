"""
Shared fixtures for the store backend test suite.

Environment is pinned before any `app.*` import: settings are cached and
the engine is built at import time, so the whole suite runs on an
in-memory SQLite database with email disabled.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
for _smtp_var in ("SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD", "SMTP_FROM_EMAIL"):
    os.environ.pop(_smtp_var, None)

from typing import Any  # noqa: E402

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.core.events import EventBus  # noqa: E402
from app.core.notifications import NotificationResult  # noqa: E402
from app.database import build_engine  # noqa: E402
from app.models.category import Category  # noqa: E402
from app.models.contact import ContactMessage  # noqa: E402, F401
from app.models.order import Order, OrderItem  # noqa: E402, F401
from app.models.product import Product, ProductVariant, VariantSize  # noqa: E402, F401
from app.models.review import Review  # noqa: E402, F401
from app.models.user import ROLE_ADMIN, ROLE_USER, User  # noqa: E402
from app.repositories.category_repo import CategoryRepository  # noqa: E402
from app.repositories.order_repo import OrderRepository  # noqa: E402
from app.repositories.product_repo import ProductRepository  # noqa: E402
from app.repositories.review_repo import ReviewRepository  # noqa: E402
from app.repositories.user_repo import UserRepository  # noqa: E402
from app.schemas.product import ProductCreate  # noqa: E402
from app.schemas.variant import ColorInput, SizeStockInput, VariantCreate  # noqa: E402
from app.services.order_service import OrderService  # noqa: E402
from app.services.product_service import ProductService  # noqa: E402
from app.services.review_service import ReviewService  # noqa: E402
from app.services.stock_ledger import StockLedger  # noqa: E402
from app.services.subscribers import OrderNotifier, register_default_subscribers  # noqa: E402
from app.services.variant_service import VariantService  # noqa: E402


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


# ============================================================================
# Events & notifications
# ============================================================================


class RecordingNotifier:
    """Stands in for `notify`: records every call and reports success."""

    def __init__(self, success: bool = True):
        self.calls: list[dict[str, Any]] = []
        self.success = success

    def __call__(self, recipient_email, subject, template_name, template_data, reply_to=None):
        self.calls.append(
            {
                "to": recipient_email,
                "subject": subject,
                "template": template_name,
                "data": template_data,
                "reply_to": reply_to,
            }
        )
        if self.success:
            return NotificationResult(success=True)
        return NotificationResult(success=False, error="SMTP down")

    def templates(self) -> list[str]:
        return [c["template"] for c in self.calls]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def bus(notifier):
    bus = EventBus()
    register_default_subscribers(
        bus,
        notifier=OrderNotifier(OrderRepository(), UserRepository(), notify_fn=notifier),
    )
    return bus


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def product_repo():
    return ProductRepository()


@pytest.fixture
def variant_service(product_repo):
    return VariantService(product_repo)


@pytest.fixture
def product_service(product_repo, variant_service):
    return ProductService(product_repo, CategoryRepository(), variant_service)


@pytest.fixture
def ledger(product_repo):
    return StockLedger(product_repo)


@pytest.fixture
def order_service(product_repo, ledger, bus):
    return OrderService(OrderRepository(), product_repo, ledger, bus=bus)


@pytest.fixture
def review_service(product_repo, bus):
    return ReviewService(
        ReviewRepository(),
        product_repo,
        OrderRepository(),
        UserRepository(),
        bus=bus,
    )


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(name: str = "Customer", role: str = ROLE_USER, **fields) -> User:
        counter["n"] += 1
        user = User(
            email=fields.pop("email", f"user{counter['n']}@example.com"),
            name=name,
            role=role,
            **fields,
        )
        return UserRepository().create(session, user)

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("Ayesha")


@pytest.fixture
def admin(make_user):
    return make_user("Store Admin", role=ROLE_ADMIN)


@pytest.fixture
def category(session):
    return CategoryRepository().create(session, Category(name="T-Shirts"))


def variant_payload(code: str, stock: dict[str, int], **extra) -> VariantCreate:
    names = {"NAVY": ("Navy Blue", "#1F2A44"), "WHITE": ("White", "#FFFFFF"), "BLACK": ("Black", "#000000")}
    name, hex_value = names.get(code, (code.title(), "#123456"))
    return VariantCreate(
        color=ColorInput(name=name, hex=hex_value, code=code),
        images=[f"https://cdn.example.com/{code.lower()}-front.jpg"],
        sizes=[SizeStockInput(size=size, stock=qty) for size, qty in stock.items()],
        **extra,
    )


@pytest.fixture
def make_variant_product(session, product_service, category):
    def _make(
        name: str = "Classic Cotton T-Shirt",
        base_price: float = 25.0,
        variants: dict[str, dict[str, int]] | None = None,
    ):
        variants = variants if variants is not None else {"NAVY": {"S": 10, "M": 20, "L": 5}}
        return product_service.create_product(
            session,
            ProductCreate(
                name=name,
                description="Soft combed cotton",
                category_id=category.id,
                base_price=base_price,
                variants=[variant_payload(code, stock) for code, stock in variants.items()],
            ),
        )

    return _make


@pytest.fixture
def make_legacy_product(session, product_service, category):
    def _make(name: str = "Canvas Tote", price: float = 12.5, stock: int = 10, sizes=None):
        return product_service.create_product(
            session,
            ProductCreate(
                name=name,
                category_id=category.id,
                price=price,
                stock=stock,
                sizes=sizes or [],
            ),
        )

    return _make


def size_stock(session, product_id, sku: str, size: str) -> int:
    """Current stock of one (variant, size) record, read from the database."""
    variant = ProductRepository().get_variant_by_sku(session, product_id, sku)
    record = ProductRepository().get_size(session, variant.id, size)
    session.refresh(record)
    return record.stock


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(session):
    from fastapi.testclient import TestClient

    from app.database import get_session
    from app.main import app

    def _session_override():
        yield session

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from jose import jwt

    def _headers(user: User) -> dict[str, str]:
        token = jwt.encode(
            {"sub": str(user.id), "email": user.email, "aud": "authenticated"},
            "test-jwt-secret",
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
