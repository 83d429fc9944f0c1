"""Fakes and payload builders shared by the subscription tests."""
from __future__ import annotations

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from subscription_mirror.app.subscriptions import (
    InvalidWebhookError,
    ProviderEvent,
    ProviderSubscriptionSnapshot,
    SubscriptionProviderClient,
    SubscriptionRecord,
    SubscriptionStatus,
    UpstreamProviderError,
)
from subscription_mirror.app.subscriptions.repository import InMemorySubscriptionRepository

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "whsec_test"
VALID_SIGNATURE = "t=1,v1=valid"


def epoch(value: datetime) -> int:
    return int(value.timestamp())


def subscription_payload(subscription_id: str = "sub_123", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": subscription_id,
        "object": "subscription",
        "customer": "cus_123",
        "status": "active",
        "items": {"object": "list", "data": [{"price": {"id": "price_123"}}]},
        "current_period_start": None,
        "current_period_end": None,
        "cancel_at_period_end": False,
        "cancel_at": None,
        "canceled_at": None,
        "trial_start": None,
        "trial_end": None,
        "metadata": {"userId": "user-1"},
    }
    payload.update(overrides)
    return payload


def make_event(event_type: str, data_object: Dict[str, Any], event_id: str = "evt_1") -> ProviderEvent:
    return ProviderEvent(id=event_id, type=event_type, data_object=data_object)


def raw_event(event_type: str, data_object: Dict[str, Any], event_id: str = "evt_1") -> bytes:
    body = {"id": event_id, "object": "event", "type": event_type, "data": {"object": data_object}}
    return json.dumps(body).encode("utf-8")


def make_record(**overrides: Any) -> SubscriptionRecord:
    values: Dict[str, Any] = {
        "id": "local-1",
        "user_id": "user-1",
        "provider": "stripe",
        "provider_subscription_id": "sub_123",
        "provider_customer_id": "cus_123",
        "status": SubscriptionStatus.ACTIVE,
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return SubscriptionRecord(**values)


class FakeProviderClient(SubscriptionProviderClient):
    def __init__(self) -> None:
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.update_overrides: Dict[str, Any] = {}
        self.fetch_calls: List[str] = []
        self.update_calls: List[Tuple[str, bool]] = []
        self.verified: List[bytes] = []
        self.fail_with: Optional[Exception] = None

    def verify_and_parse_event(
        self, raw_payload: bytes, signature_header: str, secret: str
    ) -> ProviderEvent:
        if signature_header != VALID_SIGNATURE or secret != WEBHOOK_SECRET:
            raise InvalidWebhookError(message="Invalid Stripe signature")
        self.verified.append(raw_payload)
        body = json.loads(raw_payload)
        return ProviderEvent(id=body.get("id"), type=body["type"], data_object=body["data"]["object"])

    def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionSnapshot:
        self.fetch_calls.append(provider_subscription_id)
        if self.fail_with is not None:
            raise self.fail_with
        payload = self.subscriptions.get(provider_subscription_id)
        if payload is None:
            raise UpstreamProviderError(message="No such subscription")
        return ProviderSubscriptionSnapshot.from_payload(payload)

    def update_subscription(
        self, provider_subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscriptionSnapshot:
        self.update_calls.append((provider_subscription_id, cancel_at_period_end))
        if self.fail_with is not None:
            raise self.fail_with
        payload = dict(self.subscriptions.get(provider_subscription_id) or subscription_payload(provider_subscription_id))
        payload["cancel_at_period_end"] = cancel_at_period_end
        payload.update(self.update_overrides)
        self.subscriptions[provider_subscription_id] = payload
        return ProviderSubscriptionSnapshot.from_payload(payload)


class RecordingSubscriptionRepository(InMemorySubscriptionRepository):
    """In-memory repository that counts writes."""

    def __init__(self) -> None:
        super().__init__()
        self.upsert_count = 0

    def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
        self.upsert_count += 1
        return super().upsert(record)


def sign_stripe_payload(payload: bytes, secret: str) -> str:
    """Build a ``Stripe-Signature`` header the real SDK accepts."""

    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
