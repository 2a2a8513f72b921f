import os
# Configure the app for tests BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["ADMIN_API_KEY"] = "admin-test-key"
os.environ["FRONTEND_URL"] = "http://localhost:3000"
os.environ["MAX_FREE_MESSAGES_PER_DAY"] = "5"
os.environ["LOG_DIR"] = ""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.auth_dependency import get_db
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.models.subscription import Subscription
from app.db.models.user import User
from app.llm.openai_provider import get_llm_provider
from app.llm.provider import LLMProvider, LLMResponse
from app.services.billing_events import SubscriptionSnapshot
from app.services.stripe_service import StripeGateway, get_stripe_gateway

WEBHOOK_SECRET = "whsec_test_secret"

# Setup in-memory SQLite database for testing
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeStripeGateway(StripeGateway):
    """
    StripeGateway with the Stripe API replaced by in-memory state.

    Webhook verification is the real implementation, so tests sign payloads
    with WEBHOOK_SECRET exactly as Stripe does.
    """

    def __init__(self):
        super().__init__(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, api_version=None)
        self.subscriptions: Dict[str, SubscriptionSnapshot] = {}
        self.customers: Dict[str, Dict[str, Optional[str]]] = {}
        self.checkout_sessions: List[Dict[str, str]] = []
        self.portal_sessions: List[Dict[str, str]] = []

    def add_customer(self, customer_id: str, email: Optional[str] = None, user_id: Optional[str] = None):
        self.customers[customer_id] = {"email": email, "user_id": user_id}

    def add_subscription(self, snapshot: SubscriptionSnapshot):
        self.subscriptions[snapshot.subscription_id] = snapshot

    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        return self.subscriptions[subscription_id]

    def list_subscriptions(self, customer_id: str, status: Optional[str] = None, limit: int = 10):
        # Newest first, like Stripe
        matches = [
            sub for sub in reversed(list(self.subscriptions.values()))
            if sub.customer_id == customer_id and (status is None or sub.status == status)
        ]
        return matches[:limit]

    def get_customer_user_id(self, customer_id: str) -> Optional[str]:
        return self.customers.get(customer_id, {}).get("user_id")

    def get_customer_email(self, customer_id: str) -> Optional[str]:
        return self.customers.get(customer_id, {}).get("email")

    def find_customer_by_email(self, email: str) -> Optional[str]:
        for customer_id, customer in self.customers.items():
            if customer["email"] == email:
                return customer_id
        return None

    def create_customer(self, email: str, user_id: str) -> str:
        customer_id = f"cus_{len(self.customers) + 1:04d}"
        self.add_customer(customer_id, email=email, user_id=user_id)
        return customer_id

    def update_customer_user_id(self, customer_id: str, user_id: str) -> None:
        self.customers[customer_id]["user_id"] = user_id

    def create_checkout_session(self, customer_id, price_id, user_id, success_url, cancel_url):
        session = {
            "id": f"cs_test_{len(self.checkout_sessions) + 1}",
            "url": "https://checkout.stripe.com/c/pay/test",
            "customer_id": customer_id,
            "price_id": price_id,
            "user_id": user_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        self.checkout_sessions.append(session)
        return {"id": session["id"], "url": session["url"]}

    def create_portal_session(self, customer_id: str, return_url: str):
        session = {
            "id": f"bps_test_{len(self.portal_sessions) + 1}",
            "url": "https://billing.stripe.com/p/session/test",
            "customer_id": customer_id,
            "return_url": return_url,
        }
        self.portal_sessions.append(session)
        return {"id": session["id"], "url": session["url"]}

    def list_products(self):
        return [{
            "id": "prod_pro",
            "name": "MatchGenius Pro",
            "description": "Unlimited messages",
            "default_price": {"id": "price_pro", "unit_amount": 999, "currency": "usd", "interval": "month"},
        }]


class FakeLLMProvider(LLMProvider):
    def __init__(self):
        self.calls = []

    def chat(self, messages, model, temperature=0.7, max_tokens=None, **kwargs):
        self.calls.append(messages)
        return LLMResponse(content="  Hey! Fellow sourdough fan here.  ", model=model)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: Dict, event_id: str = "evt_test_1") -> Dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


def subscription_object(
    subscription_id: str = "sub_123",
    customer_id: str = "cus_123",
    status: Optional[str] = "active",
    price_id: Optional[str] = "price_pro",
    period_end: Optional[int] = 1893456000,
    user_id: Optional[int] = None,
) -> Dict:
    """A Stripe subscription object as found in webhook payloads."""
    obj = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "current_period_end": period_end,
        "items": {"object": "list", "data": []},
        "metadata": {"userId": str(user_id)} if user_id is not None else {},
    }
    if price_id:
        obj["items"]["data"].append({"id": "si_1", "price": {"id": price_id}})
    return obj


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    """Provide a database session for tests."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeStripeGateway()


@pytest.fixture
def llm_provider():
    return FakeLLMProvider()


@pytest.fixture
def client(gateway, llm_provider):
    """TestClient with the database, Stripe and LLM dependencies overridden."""
    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    app.dependency_overrides[get_llm_provider] = lambda: llm_provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory creating users in the test database."""
    def _make_user(email: str = "test@example.com", role: str = "user") -> User:
        user = User(
            full_name="Test User",
            email=email,
            password_hash=hash_password("testpass123"),
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(test_user):
    token = create_access_token({"sub": test_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fetch_subscription():
    """Read a user's subscription row through a fresh session."""
    def _fetch(user_id: int) -> Optional[Subscription]:
        session = TestSessionLocal()
        try:
            sub = session.query(Subscription).filter(Subscription.user_id == user_id).first()
            if sub:
                session.expunge(sub)
            return sub
        finally:
            session.close()

    return _fetch


@pytest.fixture
def post_webhook(client):
    """Send a correctly signed webhook to the endpoint."""
    def _post(event: Dict, signature: Optional[str] = None):
        payload = json.dumps(event)
        headers = {
            "Content-Type": "application/json",
            "Stripe-Signature": signature or sign_payload(payload),
        }
        return client.post("/api/stripe/webhook", content=payload, headers=headers)

    return _post
