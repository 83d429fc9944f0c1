"""Collaborator interfaces consumed by the subscription core."""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .models import ProviderEvent, ProviderSubscriptionSnapshot, SubscriptionRecord


class SubscriptionRepository(Protocol):
    """Keyed store of mirrored subscription records."""

    def find_by_id(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        ...

    def find_by_provider_id(
        self, provider: str, provider_subscription_id: str
    ) -> Optional[SubscriptionRecord]:
        ...

    def find_most_recent_by_customer_id(
        self, provider: str, provider_customer_id: str
    ) -> Optional[SubscriptionRecord]:
        ...

    def find_active_by_user(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Return the most recently created ``active`` record for ``user_id``."""

    def list_by_user(self, user_id: str) -> Sequence[SubscriptionRecord]:
        """Return every record for ``user_id``, newest first."""

    def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
        """Insert or update keyed by ``(provider, provider_subscription_id)``.

        Implementations keep the stored ``id``, ``user_id`` and ``created_at``
        when the key already exists.
        """


class SubscriptionProviderClient(Protocol):
    """External billing provider integration."""

    def verify_and_parse_event(
        self, raw_payload: bytes, signature_header: str, secret: str
    ) -> ProviderEvent:
        ...

    def fetch_subscription(self, provider_subscription_id: str) -> ProviderSubscriptionSnapshot:
        ...

    def update_subscription(
        self, provider_subscription_id: str, *, cancel_at_period_end: bool
    ) -> ProviderSubscriptionSnapshot:
        ...


__all__ = ["SubscriptionProviderClient", "SubscriptionRepository"]
