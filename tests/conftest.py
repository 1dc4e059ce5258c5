import base64
import json
import os
from itertools import count

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TOKEN_ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode()
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "rzp_webhook_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_123"
os.environ["YOUTUBE_CLIENT_ID"] = "yt-client"
os.environ["YOUTUBE_CLIENT_SECRET"] = "yt-secret"
os.environ["YOUTUBE_REDIRECT_URI"] = "http://testserver/api/youtube/callback"
os.environ["BREVO_API_KEY"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

import cutflow.models  # noqa: E402,F401
from cutflow.database import engine  # noqa: E402
from cutflow.main import app  # noqa: E402
from cutflow.models.user import User, UserRole  # noqa: E402
from cutflow.services import order_service  # noqa: E402
from cutflow.services.errors import PaymentError  # noqa: E402
from cutflow.services.payment_service import PaymentGateway, get_payment_gateway  # noqa: E402
from cutflow.utils.token import create_access_token  # noqa: E402

_ids = count(1)


class FakePublisher:
    def __init__(self):
        self.messages = []

    def publish(self, room, event, payload):
        self.messages.append((room, event, payload))
        return 1

    def events_for(self, room):
        return [event for r, event, _ in self.messages if r == room]


class FakeGateway(PaymentGateway):
    """Stands in for Razorpay / Stripe network calls."""

    def __init__(self):
        super().__init__(razorpay_client=object())
        self.razorpay_orders = []
        self.razorpay_payments = {}
        self.stripe_intents = []

    def create_razorpay_order(self, amount, receipt, notes=None):
        order = {
            "id": f"order_test_{len(self.razorpay_orders) + 1}",
            "amount": self.to_minor_units(amount, "INR"),
            "currency": "INR",
            "receipt": receipt,
        }
        self.razorpay_orders.append(order)
        return order

    def fetch_razorpay_payment(self, payment_id):
        return self.razorpay_payments.get(payment_id, {"id": payment_id, "status": "failed"})

    def create_stripe_intent(self, amount, currency, metadata):
        intent = {
            "id": f"pi_test_{len(self.stripe_intents) + 1}",
            "client_secret": "pi_secret",
            "amount": self.to_minor_units(amount, currency),
            "currency": currency,
        }
        self.stripe_intents.append(intent)
        return {"id": intent["id"], "client_secret": intent["client_secret"]}

    def construct_stripe_event(self, payload, sig_header):
        if sig_header != "valid-stripe-signature":
            raise PaymentError("Invalid Stripe signature")
        return json.loads(payload)


@pytest.fixture(autouse=True)
def db():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def make_user(session):
    def _make(role=UserRole.CREATOR, **kwargs):
        n = next(_ids)
        kwargs.setdefault("name", f"{role.value.title()} {n}")
        kwargs.setdefault("email", f"{role.value.lower()}{n}@example.com")
        user = User(role=role, **kwargs)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def creator(make_user):
    return make_user(UserRole.CREATOR)


@pytest.fixture
def editor(make_user):
    return make_user(UserRole.EDITOR, wallet_balance=5000.0)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


def auth_headers(user):
    token = create_access_token({"user_id": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def make_order(session):
    def _make(creator, amount=20000.0, **kwargs):
        return order_service.create_order(
            session, creator, title=kwargs.pop("title", "Travel vlog edit"), amount=amount, **kwargs
        )

    return _make


@pytest.fixture
def assigned_order(session, creator, editor, make_order):
    """An order with ``editor`` approved and the deposit locked from the wallet."""
    order = make_order(creator)
    application = order_service.apply_to_order(session, order, editor)
    order_service.approve_application(session, order, application, creator)
    session.refresh(order)
    return order
