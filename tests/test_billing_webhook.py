"""
Integration tests for the Stripe webhook endpoint.
"""
import json

from app.services import webhook_service

from conftest import sign_payload, stripe_event, subscription_object


def test_probe_returns_plain_text(client):
    response = client.get("/api/stripe/webhook")

    assert response.status_code == 200
    assert response.text == "Stripe webhook endpoint is working"


def test_valid_event_updates_subscription(client, post_webhook, test_user, fetch_subscription):
    event = stripe_event("customer.subscription.created", subscription_object(user_id=test_user.id))

    response = post_webhook(event)

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": True}
    sub = fetch_subscription(test_user.id)
    assert sub.stripe_subscription_id == "sub_123"
    assert sub.status == "active"


def test_invalid_signature_is_rejected_without_changes(client, post_webhook, test_user, fetch_subscription):
    event = stripe_event("customer.subscription.created", subscription_object(user_id=test_user.id))
    payload = json.dumps(event)

    response = post_webhook(event, signature=sign_payload(payload, secret="whsec_wrong"))

    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook Error:")
    assert fetch_subscription(test_user.id) is None


def test_missing_signature_is_rejected(client, test_user):
    payload = json.dumps(stripe_event("customer.subscription.created", subscription_object()))

    response = client.post(
        "/api/stripe/webhook",
        content=payload,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_body_must_match_signed_bytes(client, test_user, fetch_subscription):
    event = stripe_event("customer.subscription.created", subscription_object(user_id=test_user.id))
    signed = json.dumps(event)
    # Same JSON, different bytes
    sent = json.dumps(event, indent=2)

    response = client.post(
        "/api/stripe/webhook",
        content=sent,
        headers={"Content-Type": "application/json", "Stripe-Signature": sign_payload(signed)},
    )

    assert response.status_code == 400
    assert fetch_subscription(test_user.id) is None


def test_irrelevant_event_is_acknowledged(client, post_webhook):
    response = post_webhook(stripe_event("customer.created", {"id": "cus_123", "object": "customer"}))

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": False}


def test_unassociated_event_returns_400(client, post_webhook, test_user):
    event = stripe_event("customer.subscription.created", subscription_object(customer_id="cus_unknown"))

    response = post_webhook(event)

    assert response.status_code == 400
    assert "error" in response.json()


def test_storage_failure_returns_500(client, post_webhook, test_user, fetch_subscription, monkeypatch):
    def broken_upsert(*args, **kwargs):
        raise RuntimeError("database is unavailable")

    monkeypatch.setattr(webhook_service, "upsert_subscription", broken_upsert)
    event = stripe_event("customer.subscription.created", subscription_object(user_id=test_user.id))

    response = post_webhook(event)

    assert response.status_code == 500
    assert fetch_subscription(test_user.id) is None


def test_redelivered_event_converges(client, post_webhook, test_user, fetch_subscription):
    event = stripe_event("customer.subscription.updated", subscription_object(status="trialing", user_id=test_user.id))

    assert post_webhook(event).status_code == 200
    first = fetch_subscription(test_user.id)
    assert post_webhook(event).status_code == 200
    second = fetch_subscription(test_user.id)

    assert first.id == second.id
    assert (first.status, first.stripe_price_id) == (second.status, second.stripe_price_id) == ("trialing", "price_pro")


def test_signed_non_object_payload_is_rejected(client):
    payload = "[]"

    response = client.post(
        "/api/stripe/webhook",
        content=payload,
        headers={"Content-Type": "application/json", "Stripe-Signature": sign_payload(payload)},
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("Webhook Error: Invalid webhook payload")


def test_non_string_event_type_is_acknowledged(client, post_webhook):
    response = post_webhook({"id": "evt_odd", "type": 123, "data": {"object": {"metadata": "not-a-dict"}}})

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": False}
