"""
Tests for checkout, portal and manual subscription sync.
"""
from datetime import datetime, timezone

from app.core.security import create_access_token
from app.services.billing_events import SubscriptionSnapshot
from app.services.subscription_service import upsert_subscription


def snapshot(subscription_id, status, customer_id="cus_123", price_id="price_pro"):
    return SubscriptionSnapshot(
        subscription_id=subscription_id,
        customer_id=customer_id,
        price_id=price_id,
        status=status,
        current_period_end=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


def test_checkout_creates_customer_only_row(client, gateway, test_user, auth_headers, fetch_subscription):
    response = client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["sessionId"] == "cs_test_1"

    session = gateway.checkout_sessions[0]
    assert session["user_id"] == str(test_user.id)
    assert session["success_url"] == "http://localhost:3000/account?success=true"
    assert session["cancel_url"] == "http://localhost:3000/pricing?canceled=true"

    sub = fetch_subscription(test_user.id)
    assert sub.stripe_customer_id == session["customer_id"]
    assert sub.stripe_subscription_id is None
    assert sub.status is None


def test_checkout_reuses_existing_customer(client, gateway, test_user, auth_headers):
    gateway.add_customer("cus_existing", email=test_user.email)

    client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=auth_headers)

    assert gateway.checkout_sessions[0]["customer_id"] == "cus_existing"
    assert gateway.customers["cus_existing"]["user_id"] == str(test_user.id)


def test_checkout_ignores_unknown_origin(client, gateway, auth_headers):
    headers = dict(auth_headers, Origin="https://evil.example.com")

    client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=headers)

    assert gateway.checkout_sessions[0]["success_url"].startswith("http://localhost:3000/")


def test_checkout_requires_price(client, auth_headers):
    response = client.post("/api/stripe/checkout", json={"priceId": ""}, headers=auth_headers)

    assert response.status_code == 422


def test_portal_without_customer_returns_404(client, auth_headers):
    response = client.post("/api/stripe/portal", headers=auth_headers)

    assert response.status_code == 404


def test_portal_returns_url(client, db, gateway, test_user, auth_headers):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")

    response = client.post("/api/stripe/portal", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["url"] == "https://billing.stripe.com/p/session/test"
    assert gateway.portal_sessions[0]["return_url"] == "http://localhost:3000/account"


def test_products_are_listed(client):
    response = client.get("/api/stripe/products")

    assert response.status_code == 200
    assert response.json()[0]["default_price"]["id"] == "price_pro"


def test_update_subscription_activates_latest(client, db, gateway, test_user, auth_headers):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")
    gateway.add_subscription(snapshot("sub_123", "active"))

    response = client.post(
        "/api/stripe/update-subscription",
        json={"stripeCustomerId": "cus_123"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["stripeSubscriptionId"] == "sub_123"
    assert response.json()["status"] == "active"


def test_update_subscription_rejects_foreign_customer(client, db, gateway, test_user, auth_headers):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")
    gateway.add_subscription(snapshot("sub_other", "active", customer_id="cus_other"))

    response = client.post(
        "/api/stripe/update-subscription",
        json={"stripeCustomerId": "cus_other"},
        headers=auth_headers,
    )

    assert response.status_code == 403


def test_update_subscription_without_active_returns_404(client, db, test_user, auth_headers):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")

    response = client.post(
        "/api/stripe/update-subscription",
        json={"stripeCustomerId": "cus_123"},
        headers=auth_headers,
    )

    assert response.status_code == 404


def test_sync_applies_newest_subscription_last(client, db, gateway, test_user, auth_headers, fetch_subscription):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")
    gateway.add_subscription(snapshot("sub_old", "canceled"))
    gateway.add_subscription(snapshot("sub_new", "active"))

    response = client.post("/api/stripe/sync-subscription", json={}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Subscription synced successfully"
    sub = fetch_subscription(test_user.id)
    assert sub.stripe_subscription_id == "sub_new"
    assert sub.status == "active"


def test_sync_without_customer_returns_404(client, auth_headers):
    response = client.post("/api/stripe/sync-subscription", json={}, headers=auth_headers)

    assert response.status_code == 404


def test_sync_other_user_requires_admin(client, make_user, auth_headers):
    other = make_user(email="other@example.com")

    response = client.post("/api/stripe/sync-subscription", json={"userId": other.id}, headers=auth_headers)

    assert response.status_code == 403


def test_admin_can_sync_other_user(client, db, gateway, make_user, fetch_subscription):
    admin = make_user(email="admin@example.com", role="admin")
    other = make_user(email="other@example.com")
    upsert_subscription(db, user_id=other.id, stripe_customer_id="cus_123")
    gateway.add_subscription(snapshot("sub_123", "trialing"))
    headers = {"Authorization": f"Bearer {create_access_token({'sub': admin.email})}"}

    response = client.post(
        "/api/stripe/sync-subscription",
        json={"userId": other.id, "stripeSubscriptionId": "sub_123"},
        headers=headers,
    )

    assert response.status_code == 200
    assert fetch_subscription(other.id).status == "trialing"


def test_admin_key_sync_by_email(client, gateway, test_user, fetch_subscription):
    gateway.add_customer("cus_123", email=test_user.email)
    gateway.add_subscription(snapshot("sub_123", "active"))

    response = client.get(
        "/api/stripe/sync-subscription",
        params={"email": test_user.email, "api_key": "admin-test-key"},
    )

    assert response.status_code == 200
    assert response.json()["subscriptionCount"] == 1
    assert fetch_subscription(test_user.id).stripe_subscription_id == "sub_123"


def test_admin_key_sync_by_subscription_id(client, gateway, test_user, fetch_subscription):
    gateway.add_customer("cus_123", email=test_user.email)
    gateway.add_subscription(snapshot("sub_123", "active"))

    response = client.get(
        "/api/stripe/sync-subscription",
        params={"subscription_id": "sub_123", "api_key": "admin-test-key"},
    )

    assert response.status_code == 200
    assert response.json()["userId"] == test_user.id
    assert fetch_subscription(test_user.id).status == "active"


def test_admin_key_sync_rejects_bad_key(client, test_user):
    response = client.get(
        "/api/stripe/sync-subscription",
        params={"email": test_user.email, "api_key": "wrong"},
    )

    assert response.status_code == 401


def test_sync_rejects_subscription_of_another_customer(client, gateway, test_user, auth_headers, fetch_subscription):
    gateway.add_customer("cus_victim", email="victim@example.com", user_id="999")
    gateway.add_subscription(snapshot("sub_victim", "active", customer_id="cus_victim"))

    response = client.post(
        "/api/stripe/sync-subscription",
        json={"stripeSubscriptionId": "sub_victim"},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert fetch_subscription(test_user.id) is None


def test_sync_rejects_foreign_subscription_for_existing_customer(
    client, db, gateway, test_user, auth_headers, fetch_subscription
):
    upsert_subscription(db, user_id=test_user.id, stripe_customer_id="cus_123")
    gateway.add_subscription(snapshot("sub_victim", "active", customer_id="cus_victim"))

    response = client.post(
        "/api/stripe/sync-subscription",
        json={"stripeSubscriptionId": "sub_victim"},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert fetch_subscription(test_user.id).stripe_subscription_id is None


def test_sync_by_id_accepts_customer_tagged_with_caller(client, gateway, test_user, auth_headers, fetch_subscription):
    gateway.add_customer("cus_123", email=test_user.email, user_id=str(test_user.id))
    gateway.add_subscription(snapshot("sub_123", "active"))

    response = client.post(
        "/api/stripe/sync-subscription",
        json={"stripeSubscriptionId": "sub_123"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    sub = fetch_subscription(test_user.id)
    assert (sub.stripe_customer_id, sub.stripe_subscription_id) == ("cus_123", "sub_123")


def test_admin_sync_by_id_skips_ownership_check(client, gateway, make_user, fetch_subscription):
    admin = make_user(email="admin@example.com", role="admin")
    other = make_user(email="other@example.com")
    gateway.add_subscription(snapshot("sub_123", "active"))
    headers = {"Authorization": f"Bearer {create_access_token({'sub': admin.email})}"}

    response = client.post(
        "/api/stripe/sync-subscription",
        json={"userId": other.id, "stripeSubscriptionId": "sub_123"},
        headers=headers,
    )

    assert response.status_code == 200
    assert fetch_subscription(other.id).stripe_customer_id == "cus_123"


def test_update_subscription_rejects_customer_without_row(client, gateway, test_user, auth_headers, fetch_subscription):
    gateway.add_customer("cus_victim", email="victim@example.com", user_id="999")
    gateway.add_subscription(snapshot("sub_victim", "active", customer_id="cus_victim"))

    response = client.post(
        "/api/stripe/update-subscription",
        json={"stripeCustomerId": "cus_victim"},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert fetch_subscription(test_user.id) is None


def test_update_subscription_accepts_customer_tagged_with_caller(client, gateway, test_user, auth_headers):
    gateway.add_customer("cus_123", email=test_user.email, user_id=str(test_user.id))
    gateway.add_subscription(snapshot("sub_123", "active"))

    response = client.post(
        "/api/stripe/update-subscription",
        json={"stripeCustomerId": "cus_123"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["stripeCustomerId"] == "cus_123"
