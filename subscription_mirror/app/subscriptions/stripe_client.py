"""Stripe implementation of the subscription provider client.

All Stripe calls pass the API key explicitly so no module-level SDK state is
touched. Retry and timeout policy is left to the SDK defaults.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import stripe

from ...config import SubscriptionConfig
from .exceptions import InvalidWebhookError, ProviderNotConfiguredError, UpstreamProviderError
from .models import ProviderEvent, ProviderSubscriptionSnapshot

logger = logging.getLogger(__name__)


def to_plain(value: Any) -> Any:
    """Recursively convert Stripe objects into builtin dicts and lists."""

    if hasattr(value, "to_dict") and not isinstance(value, dict):
        value = value.to_dict()
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


class StripeSubscriptionClient:
    """Client for the Stripe subscription and webhook APIs."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_version: Optional[str] = None,
    ) -> None:
        if not api_key:
            raise ProviderNotConfiguredError()
        self._api_key = api_key
        self._api_version = api_version

    @classmethod
    def from_config(cls, config: SubscriptionConfig) -> "StripeSubscriptionClient":
        return cls(config.stripe_secret_key, api_version=config.stripe_api_version)

    def _request_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"api_key": self._api_key}
        if self._api_version:
            options["stripe_version"] = self._api_version
        return options

    def verify_and_parse_event(
        self, raw_payload: bytes, signature_header: str, secret: str
    ) -> ProviderEvent:
        """Check the webhook signature and return the typed event."""

        try:
            event = stripe.Webhook.construct_event(raw_payload, signature_header, secret)
        except stripe.SignatureVerificationError as exc:
            raise InvalidWebhookError(message="Invalid Stripe signature") from exc
        except ValueError as exc:
            raise InvalidWebhookError(message="Invalid webhook payload") from exc

        body = to_plain(event)
        data = body.get("data") or {}
        event_type = body.get("type")
        if not event_type:
            raise InvalidWebhookError(message="Webhook event is missing a type")
        return ProviderEvent(
            id=body.get("id"),
            type=str(event_type),
            data_object=data.get("object") or {},
        )

    def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionSnapshot:
        try:
            subscription = stripe.Subscription.retrieve(
                provider_subscription_id, **self._request_options()
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe retrieve failed for %s: %s", provider_subscription_id, exc)
            raise UpstreamProviderError(
                message=f"Failed to retrieve subscription: {exc}",
                detail={"provider_subscription_id": provider_subscription_id},
            ) from exc
        return ProviderSubscriptionSnapshot.from_payload(to_plain(subscription))

    def update_subscription(
        self, provider_subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscriptionSnapshot:
        try:
            subscription = stripe.Subscription.modify(
                provider_subscription_id,
                cancel_at_period_end=cancel_at_period_end,
                **self._request_options(),
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe update failed for %s: %s", provider_subscription_id, exc)
            raise UpstreamProviderError(
                message=f"Failed to update subscription: {exc}",
                detail={"provider_subscription_id": provider_subscription_id},
            ) from exc
        return ProviderSubscriptionSnapshot.from_payload(to_plain(subscription))


__all__ = ["StripeSubscriptionClient", "to_plain"]
