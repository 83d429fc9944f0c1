"""Cancel and reactivate flows that round-trip through the provider."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .exceptions import SubscriptionNotFoundError, SubscriptionValidationError, UnsupportedProviderError
from .models import ProviderSubscriptionSnapshot, SubscriptionProvider, SubscriptionRecord, SubscriptionStatus
from .protocols import SubscriptionProviderClient, SubscriptionRepository
from .reconciler import from_provider_timestamp
from .status import map_provider_status

logger = logging.getLogger(__name__)


class SubscriptionCommandService:
    """Issues provider-side mutations and mirrors the response locally.

    The local record is only written after the provider call succeeds; any
    provider failure propagates to the caller untouched.
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        provider_client: SubscriptionProviderClient,
        *,
        provider: str = SubscriptionProvider.STRIPE.value,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._provider_client = provider_client
        self._provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def cancel(self, subscription_id: str) -> SubscriptionRecord:
        """Schedule cancellation at the end of the current period."""

        record = self._load(subscription_id, action="cancelled")
        response = self._provider_client.update_subscription(
            record.provider_subscription_id, cancel_at_period_end=True
        )

        changes = self._common_changes(record, response)
        changes["cancel_at_period_end"] = True
        if response.canceled_at is not None:
            changes["canceled_at"] = from_provider_timestamp(response.canceled_at)

        saved = self._repository.upsert(record.model_copy(update=changes))
        logger.info("Cancelled subscription %s status=%s", saved.id, saved.status.value)
        return saved

    def reactivate(self, subscription_id: str) -> SubscriptionRecord:
        """Clear a scheduled cancellation."""

        record = self._load(subscription_id, action="reactivated")
        response = self._provider_client.update_subscription(
            record.provider_subscription_id, cancel_at_period_end=False
        )

        changes = self._common_changes(record, response)
        changes["cancel_at_period_end"] = False
        if changes["status"] != SubscriptionStatus.CANCELED and record.canceled_at is not None:
            changes["canceled_at"] = None

        saved = self._repository.upsert(record.model_copy(update=changes))
        logger.info("Reactivated subscription %s status=%s", saved.id, saved.status.value)
        return saved

    def _load(self, subscription_id: str, *, action: str) -> SubscriptionRecord:
        if not subscription_id:
            raise SubscriptionValidationError(message="subscription_id is required")

        record = self._repository.find_by_id(subscription_id)
        if record is None:
            raise SubscriptionNotFoundError()

        if record.provider != self._provider:
            raise UnsupportedProviderError(
                message=f"Only {self._provider} subscriptions can be {action}",
                detail={"provider": record.provider},
            )
        return record

    def _common_changes(
        self, record: SubscriptionRecord, response: ProviderSubscriptionSnapshot
    ) -> Dict[str, Any]:
        # Trial and period fields only move when the provider reports a value.
        return {
            "status": map_provider_status(response.status),
            "trial_start": from_provider_timestamp(response.trial_start) or record.trial_start,
            "trial_end": from_provider_timestamp(response.trial_end) or record.trial_end,
            "current_period_end": from_provider_timestamp(response.cancel_at) or record.current_period_end,
            "updated_at": self._clock(),
        }


__all__ = ["SubscriptionCommandService"]
