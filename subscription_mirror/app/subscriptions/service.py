"""Caller-facing subscription operations."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .commands import SubscriptionCommandService
from .exceptions import (
    InvalidWebhookError,
    SubscriptionNotFoundError,
    SubscriptionValidationError,
    WebhookNotConfiguredError,
)
from .lifecycle import SubscriptionLifecycleService, is_in_trial
from .models import SubscriptionProvider, SubscriptionRecord, SubscriptionStatusView, WebhookResult
from .protocols import SubscriptionProviderClient, SubscriptionRepository
from .reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Coordinates webhook reconciliation, queries and commands."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        provider_client: SubscriptionProviderClient,
        *,
        webhook_secret: Optional[str] = None,
        provider: str = SubscriptionProvider.STRIPE.value,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        clock = clock or (lambda: datetime.now(timezone.utc))
        self._repository = repository
        self._provider_client = provider_client
        self._webhook_secret = webhook_secret
        self.reconciler = SubscriptionReconciler(
            repository, provider_client, provider=provider, clock=clock, id_factory=id_factory
        )
        self.lifecycle = SubscriptionLifecycleService(repository, clock=clock)
        self.commands = SubscriptionCommandService(
            repository, provider_client, provider=provider, clock=clock
        )

    def get_status(self, user_id: str) -> SubscriptionStatusView:
        _require(user_id, "user_id")
        subscription = self.lifecycle.get_active_subscription(user_id)
        if subscription is None:
            return SubscriptionStatusView(has_active_subscription=False)
        return SubscriptionStatusView(
            has_active_subscription=True,
            subscription=subscription,
            is_in_trial=is_in_trial(subscription, self.lifecycle.now()),
        )

    def get_history(self, user_id: str) -> List[SubscriptionRecord]:
        _require(user_id, "user_id")
        return self.lifecycle.list_subscriptions(user_id)

    def cancel(self, subscription_id: str, requesting_user_id: str) -> SubscriptionRecord:
        """Cancel a subscription on behalf of the user who owns it."""

        _require(subscription_id, "subscription_id")
        _require(requesting_user_id, "requesting_user_id")
        record = self._repository.find_by_id(subscription_id)
        if record is None or record.user_id != requesting_user_id:
            raise SubscriptionNotFoundError(
                message="Subscription not found or does not belong to user"
            )
        return self.commands.cancel(subscription_id)

    def cancel_as_admin(self, subscription_id: str) -> SubscriptionRecord:
        _require(subscription_id, "subscription_id")
        return self.commands.cancel(subscription_id)

    def reactivate(self, subscription_id: str) -> SubscriptionRecord:
        _require(subscription_id, "subscription_id")
        return self.commands.reactivate(subscription_id)

    def handle_event(self, raw_payload: bytes, signature_header: Optional[str]) -> WebhookResult:
        """Verify an inbound provider event and reconcile it."""

        if not signature_header:
            raise InvalidWebhookError(message="Missing Stripe signature")
        if not raw_payload:
            raise InvalidWebhookError(message="Invalid webhook payload")
        if not self._webhook_secret:
            raise WebhookNotConfiguredError()

        event = self._provider_client.verify_and_parse_event(
            raw_payload, signature_header, self._webhook_secret
        )
        logger.info("Handling provider webhook: %s", event.type)
        return self.reconciler.handle_event(event)


def _require(value: Optional[str], name: str) -> None:
    if not value:
        raise SubscriptionValidationError(message=f"{name} is required")


__all__ = ["SubscriptionService"]
