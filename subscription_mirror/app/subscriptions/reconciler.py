"""Folds provider subscription snapshots into local records."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from .exceptions import InvalidWebhookError
from .identity import metadata_user_id, resolve_user_id
from .models import (
    CheckoutSessionSnapshot,
    ProviderEvent,
    ProviderEventType,
    ProviderSubscriptionSnapshot,
    SubscriptionProvider,
    SubscriptionRecord,
    WebhookOutcome,
    WebhookResult,
)
from .protocols import SubscriptionProviderClient, SubscriptionRepository
from .status import map_provider_status

logger = logging.getLogger(__name__)

_SUBSCRIPTION_EVENTS = frozenset(
    {
        ProviderEventType.SUBSCRIPTION_CREATED.value,
        ProviderEventType.SUBSCRIPTION_UPDATED.value,
        ProviderEventType.SUBSCRIPTION_DELETED.value,
    }
)


def from_provider_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Convert provider epoch seconds into an aware UTC datetime."""

    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class SubscriptionReconciler:
    """Idempotent upsert of provider snapshots into the record store.

    Every call overwrites the provider-derived fields from the snapshot it is
    given. There is no ordering guard: a redelivered older snapshot replaces a
    newer one that was applied before it.
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        provider_client: SubscriptionProviderClient,
        *,
        provider: str = SubscriptionProvider.STRIPE.value,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._repository = repository
        self._provider_client = provider_client
        self._provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_factory = id_factory or (lambda: str(uuid4()))

    def handle_event(self, event: ProviderEvent) -> WebhookResult:
        """Dispatch a verified provider event by category."""

        if event.type in _SUBSCRIPTION_EVENTS:
            try:
                snapshot = ProviderSubscriptionSnapshot.from_payload(event.data_object)
            except ValueError as exc:
                raise InvalidWebhookError(message=f"Malformed subscription payload: {exc}") from exc
        elif event.type == ProviderEventType.CHECKOUT_SESSION_COMPLETED.value:
            session = CheckoutSessionSnapshot.from_payload(event.data_object)
            if not session.is_subscription_checkout:
                logger.debug("Ignoring checkout session %s with mode=%s", session.id, session.mode)
                return WebhookResult(event_type=event.type, outcome=WebhookOutcome.IGNORED)
            snapshot = self._provider_client.fetch_subscription(session.subscription_id)
        else:
            logger.debug("Ignoring provider event type: %s", event.type)
            return WebhookResult(event_type=event.type, outcome=WebhookOutcome.IGNORED)

        record = self.upsert(snapshot)
        outcome = WebhookOutcome.APPLIED if record is not None else WebhookOutcome.SKIPPED
        logger.info(
            "Handled provider event %s type=%s subscription=%s outcome=%s",
            event.id,
            event.type,
            snapshot.id,
            outcome.value,
        )
        return WebhookResult(event_type=event.type, outcome=outcome, subscription=record)

    def upsert(self, snapshot: ProviderSubscriptionSnapshot) -> Optional[SubscriptionRecord]:
        """Create or update the record for ``snapshot``.

        Returns ``None`` when the snapshot has no resolvable owner and no
        record exists yet.
        """

        existing = self._repository.find_by_provider_id(self._provider, snapshot.id)
        user_id = resolve_user_id(snapshot, existing, self._repository, provider=self._provider)

        if existing is None and not user_id:
            logger.warning(
                "Skipping provider subscription %s: unable to resolve user id",
                snapshot.id,
            )
            return None

        now = self._clock()
        if existing is None:
            base = SubscriptionRecord(
                id=self._id_factory(),
                user_id=user_id,
                provider=self._provider,
                provider_subscription_id=snapshot.id,
                status=map_provider_status(snapshot.status),
                cancel_at_period_end=snapshot.cancel_at_period_end,
                metadata=dict(snapshot.metadata),
                created_at=now,
                updated_at=now,
            )
            logger.info("Creating subscription record for %s user=%s", snapshot.id, user_id)
        else:
            base = existing
            claimed = metadata_user_id(snapshot)
            if claimed and claimed != existing.user_id:
                logger.warning(
                    "Provider subscription %s claims user %s but is owned by %s; keeping owner",
                    snapshot.id,
                    claimed,
                    existing.user_id,
                )

        changes = self._provider_fields(snapshot)
        if existing is None or any(getattr(existing, name) != value for name, value in changes.items()):
            changes["updated_at"] = now
        return self._repository.upsert(base.model_copy(update=changes))

    def _provider_fields(self, snapshot: ProviderSubscriptionSnapshot) -> Dict[str, Any]:
        return {
            "provider_customer_id": snapshot.customer_id,
            "provider_price_id": snapshot.price_id,
            "status": map_provider_status(snapshot.status),
            "current_period_start": from_provider_timestamp(snapshot.current_period_start),
            "current_period_end": from_provider_timestamp(snapshot.current_period_end),
            "cancel_at_period_end": snapshot.cancel_at_period_end,
            "canceled_at": from_provider_timestamp(snapshot.canceled_at),
            "trial_start": from_provider_timestamp(snapshot.trial_start),
            "trial_end": from_provider_timestamp(snapshot.trial_end),
            "metadata": dict(snapshot.metadata),
        }


__all__ = ["SubscriptionReconciler", "from_provider_timestamp"]
