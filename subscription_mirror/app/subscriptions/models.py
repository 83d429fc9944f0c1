"""Domain models for the subscription mirror."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionStatus(str, Enum):
    """Canonical subscription states stored locally."""

    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


class SubscriptionProvider(str, Enum):
    """Billing providers whose subscriptions can be mirrored."""

    STRIPE = "stripe"


class ProviderEventType(str, Enum):
    """Provider event categories the reconciler reacts to."""

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class WebhookOutcome(str, Enum):
    """What happened to an inbound provider event."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    IGNORED = "ignored"


class SubscriptionRecord(BaseModel):
    """Local mirror of one provider subscription."""

    id: str
    user_id: str
    provider: str = SubscriptionProvider.STRIPE.value
    provider_subscription_id: str
    provider_customer_id: Optional[str] = None
    provider_price_id: Optional[str] = None
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ProviderSubscriptionSnapshot(BaseModel):
    """The provider's full current view of a subscription.

    Timestamps stay in the provider's encoding (integer seconds since the
    epoch); conversion to absolute instants happens on ingestion.
    """

    id: str
    customer_id: Optional[str] = None
    status: str = ""
    price_id: Optional[str] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    cancel_at: Optional[int] = None
    canceled_at: Optional[int] = None
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ProviderSubscriptionSnapshot":
        """Build a snapshot from a provider subscription object."""

        subscription_id = payload.get("id")
        if not subscription_id:
            raise ValueError("subscription payload is missing an id")

        first_item = _first_item(payload.get("items"))
        price = first_item.get("price") if first_item else None
        price_id = _object_id(price)

        period_start = payload.get("current_period_start")
        period_end = payload.get("current_period_end")
        if period_start is None and first_item:
            period_start = first_item.get("current_period_start")
        if period_end is None and first_item:
            period_end = first_item.get("current_period_end")

        metadata = payload.get("metadata")
        return cls(
            id=str(subscription_id),
            customer_id=_object_id(payload.get("customer")),
            status=str(payload.get("status") or ""),
            price_id=price_id,
            current_period_start=_optional_int(period_start),
            current_period_end=_optional_int(period_end),
            cancel_at_period_end=bool(payload.get("cancel_at_period_end") or False),
            cancel_at=_optional_int(payload.get("cancel_at")),
            canceled_at=_optional_int(payload.get("canceled_at")),
            trial_start=_optional_int(payload.get("trial_start")),
            trial_end=_optional_int(payload.get("trial_end")),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )


class CheckoutSessionSnapshot(BaseModel):
    """Subset of a completed checkout session needed for reconciliation."""

    id: Optional[str] = None
    mode: Optional[str] = None
    subscription_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CheckoutSessionSnapshot":
        subscription = payload.get("subscription")
        return cls(
            id=payload.get("id"),
            mode=payload.get("mode"),
            # Only a plain id string is usable; expanded or missing values are not.
            subscription_id=subscription if isinstance(subscription, str) and subscription else None,
        )

    @property
    def is_subscription_checkout(self) -> bool:
        return self.mode == "subscription" and self.subscription_id is not None


class ProviderEvent(BaseModel):
    """A verified inbound provider event."""

    id: Optional[str] = None
    type: str
    data_object: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WebhookResult(BaseModel):
    """Outcome of handling one provider event."""

    event_type: str
    outcome: WebhookOutcome
    subscription: Optional[SubscriptionRecord] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubscriptionStatusView(BaseModel):
    """A user's current subscription standing."""

    has_active_subscription: bool
    subscription: Optional[SubscriptionRecord] = None
    is_in_trial: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)


def _first_item(items: object) -> Optional[Mapping[str, Any]]:
    if isinstance(items, Mapping):
        items = items.get("data")
    if isinstance(items, (list, tuple)) and items:
        first = items[0]
        if isinstance(first, Mapping):
            return first
    return None


def _object_id(value: object) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        identifier = value.get("id")
        return str(identifier) if identifier else None
    return None


def _optional_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    return int(value)


__all__ = [
    "CheckoutSessionSnapshot",
    "ProviderEvent",
    "ProviderEventType",
    "ProviderSubscriptionSnapshot",
    "SubscriptionProvider",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "SubscriptionStatusView",
    "WebhookOutcome",
    "WebhookResult",
]
