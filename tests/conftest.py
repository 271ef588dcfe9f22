# tests/conftest.py
import json
import os

# baza testowa ustawiona zanim storefront wczyta settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_ENV", "test")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api import deps
from storefront.data.database import Base, get_db
from storefront.data.models import CategoryModel, ProductModel, UserModel
from storefront.main import app
from storefront.services.live_hub import LiveHub
from storefront.services.marker_service import MarkerService
from storefront.services.notification_service import NotificationService
from storefront.utils.errors import BadRequestError, PaymentGatewayError
from storefront.utils.security import create_access_token, hash_password

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

PASSWORD = "secret123"
SHIPPING = {
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


# =====================================================
# FAKES
# =====================================================
class FakeGateway:
    """Bramka w pamieci: intenty tworzone jako requires_payment_method, status ustawia test."""

    currency = "usd"

    def __init__(self):
        self.intents = {}
        self.refunds = []
        self.fail = False

    def create_intent(self, amount, metadata):
        if self.fail:
            raise PaymentGatewayError("Payment gateway error")
        intent_id = f"pi_test_{len(self.intents) + 1}"
        self.intents[intent_id] = {
            "id": intent_id,
            "status": "requires_payment_method",
            "client_secret": f"{intent_id}_secret",
            "amount": int(amount * 100),
            "currency": self.currency,
            "metadata": {k: str(v) for k, v in metadata.items()},
        }
        return dict(self.intents[intent_id])

    def set_status(self, intent_id, status):
        self.intents[intent_id]["status"] = status

    def retrieve_intent(self, intent_id):
        if intent_id not in self.intents:
            raise BadRequestError("Invalid payment intent")
        return dict(self.intents[intent_id])

    def refund(self, intent_id, amount, reason=None):
        if self.fail:
            raise PaymentGatewayError("Payment gateway error")
        refund = {"id": f"re_test_{len(self.refunds) + 1}", "status": "succeeded", "amount": int(amount * 100)}
        self.refunds.append((intent_id, amount, reason))
        return refund

    def construct_event(self, payload, signature):
        if not signature:
            raise BadRequestError("Missing Stripe-Signature header")
        if signature != "valid":
            raise BadRequestError("Invalid signature")
        return json.loads(payload)


class FakeNotifier(NotificationService):
    """Zamiast .delay() zapisuje zlecone taski."""

    def __init__(self):
        self.sent = []
        self.available = True

    def _dispatch(self, task, *args):
        if not self.available:
            return False
        self.sent.append((task.name.rsplit(".", 1)[-1], args))
        return True

    def names(self):
        return [name for name, _ in self.sent]


class FakeMarkers(MarkerService):
    def __init__(self):
        self.keys = {}

    def mark(self, key, ttl):
        if key in self.keys:
            return False
        self.keys[key] = ttl
        return True

    def clear(self, key):
        return self.keys.pop(key, None) is not None


class RecordingHub(LiveHub):
    def __init__(self, **kwargs):
        super().__init__(session_factory=TestingSessionLocal, **kwargs)
        self.published = []

    def publish(self, event, data):
        self.published.append((event, data))
        return True

    def events(self):
        return [event for event, _ in self.published]


# =====================================================
# DANE TESTOWE
# =====================================================
class Factory:
    def __init__(self, db):
        self.db = db
        self._categories = {}

    def user(self, email="jan@example.com", name="Jan Kowalski", role="customer", is_active=True):
        user = UserModel(
            name=name,
            email=email,
            password_hash=hash_password(PASSWORD),
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def admin(self, email="admin@example.com"):
        return self.user(email=email, name="Admin", role="admin")

    def category(self, name="electronics"):
        if name not in self._categories:
            category = CategoryModel(name=name, description=f"{name} items")
            self.db.add(category)
            self.db.commit()
            self._categories[name] = category
        return self._categories[name]

    def product(self, name="Laptop", price="100.00", stock=10, category="electronics", brand=None, is_active=True):
        product = ProductModel(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            category_id=self.category(category).id,
            brand=brand,
            stock=stock,
            images=[],
            is_active=is_active,
        )
        self.db.add(product)
        self.db.commit()
        return product


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


# =====================================================
# FIXTURES
# =====================================================
@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Sesja testu; po wywolaniach API trzeba zrobic db.expire_all() przed asercjami."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def markers():
    return FakeMarkers()


@pytest.fixture
def hub():
    return RecordingHub()


@pytest.fixture
def client(gateway, notifier, hub):
    """TestClient bez lifespan: tabele sa z fixture, hub nie startuje petli."""

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    app.dependency_overrides[deps.get_live_hub] = lambda: hub

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def customer(make):
    return make.user()


@pytest.fixture
def admin(make):
    return make.admin()


@pytest.fixture
def file_sessions(tmp_path):
    """Dwie sesje na osobnych polaczeniach do wspolnego pliku SQLite, jak dwa rownolegle requesty."""
    file_engine = create_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)
    sessions = (factory(), factory())
    try:
        yield sessions
    finally:
        for session in sessions:
            session.close()
        file_engine.dispose()
