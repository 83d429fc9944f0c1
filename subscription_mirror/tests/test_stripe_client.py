"""Tests for the Stripe provider client."""
from __future__ import annotations

import json

import pytest
import stripe

from subscription_mirror.app.subscriptions import (
    InvalidWebhookError,
    ProviderNotConfiguredError,
    UpstreamProviderError,
)
from subscription_mirror.app.subscriptions.stripe_client import StripeSubscriptionClient, to_plain
from subscription_mirror.config import load_subscription_config

from subscription_mirror.tests.support import sign_stripe_payload, subscription_payload

SECRET = "whsec_unit"


def _event_body(event_type: str = "customer.subscription.updated") -> bytes:
    body = {
        "id": "evt_signed",
        "object": "event",
        "type": event_type,
        "data": {"object": subscription_payload("sub_signed")},
    }
    return json.dumps(body).encode("utf-8")


def test_client_requires_secret_key():
    with pytest.raises(ProviderNotConfiguredError):
        StripeSubscriptionClient(None)


def test_client_from_config_uses_configured_key(monkeypatch):
    captured = {}

    def fake_retrieve(subscription_id, **options):
        captured.update(options)
        return subscription_payload(subscription_id)

    monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)
    config = load_subscription_config(
        env={"STRIPE_SECRET_KEY": "sk_test_config", "STRIPE_API_VERSION": "2024-06-20"}
    )

    StripeSubscriptionClient.from_config(config).fetch_subscription("sub_1")

    assert captured == {"api_key": "sk_test_config", "stripe_version": "2024-06-20"}


def test_verify_and_parse_event_accepts_valid_signature():
    client = StripeSubscriptionClient("sk_test")
    payload = _event_body()

    event = client.verify_and_parse_event(payload, sign_stripe_payload(payload, SECRET), SECRET)

    assert event.id == "evt_signed"
    assert event.type == "customer.subscription.updated"
    assert event.data_object["id"] == "sub_signed"
    assert event.data_object["items"]["data"][0]["price"]["id"] == "price_123"


def test_verify_and_parse_event_rejects_bad_signature():
    client = StripeSubscriptionClient("sk_test")
    payload = _event_body()

    with pytest.raises(InvalidWebhookError):
        client.verify_and_parse_event(payload, sign_stripe_payload(payload, "whsec_other"), SECRET)


def test_verify_and_parse_event_rejects_malformed_payload():
    client = StripeSubscriptionClient("sk_test")
    payload = b"{not json"

    with pytest.raises(InvalidWebhookError):
        client.verify_and_parse_event(payload, sign_stripe_payload(payload, SECRET), SECRET)


def test_fetch_subscription_builds_snapshot(monkeypatch):
    calls = []

    def fake_retrieve(subscription_id, **options):
        calls.append((subscription_id, options))
        return subscription_payload(subscription_id, status="trialing", trial_end=1_900_000_000)

    monkeypatch.setattr(stripe.Subscription, "retrieve", fake_retrieve)
    client = StripeSubscriptionClient("sk_test")

    snapshot = client.fetch_subscription("sub_42")

    assert calls == [("sub_42", {"api_key": "sk_test"})]
    assert snapshot.id == "sub_42"
    assert snapshot.status == "trialing"
    assert snapshot.trial_end == 1_900_000_000
    assert snapshot.price_id == "price_123"


def test_update_subscription_sends_only_the_cancel_flag(monkeypatch):
    calls = []

    def fake_modify(subscription_id, **params):
        calls.append((subscription_id, params))
        return subscription_payload(subscription_id, cancel_at_period_end=params["cancel_at_period_end"])

    monkeypatch.setattr(stripe.Subscription, "modify", fake_modify)
    client = StripeSubscriptionClient("sk_test")

    snapshot = client.update_subscription("sub_7", cancel_at_period_end=True)

    assert calls == [("sub_7", {"cancel_at_period_end": True, "api_key": "sk_test"})]
    assert snapshot.cancel_at_period_end is True


def test_stripe_errors_become_upstream_errors(monkeypatch):
    def failing(*args, **kwargs):
        raise stripe.APIConnectionError("network unreachable")

    monkeypatch.setattr(stripe.Subscription, "retrieve", failing)
    monkeypatch.setattr(stripe.Subscription, "modify", failing)
    client = StripeSubscriptionClient("sk_test")

    with pytest.raises(UpstreamProviderError):
        client.fetch_subscription("sub_down")
    with pytest.raises(UpstreamProviderError) as excinfo:
        client.update_subscription("sub_down", cancel_at_period_end=False)

    assert excinfo.value.payload["provider_subscription_id"] == "sub_down"


def test_to_plain_flattens_nested_structures():
    class FakeStripeObject:
        def to_dict(self):
            return {"id": "price_1", "nested": [{"a": 1}]}

    assert to_plain({"items": {"data": [FakeStripeObject()]}}) == {
        "items": {"data": [{"id": "price_1", "nested": [{"a": 1}]}]}
    }
