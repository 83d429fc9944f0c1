"""Resolution of the local user that owns a provider subscription."""
from __future__ import annotations

from typing import Optional

from .models import ProviderSubscriptionSnapshot, SubscriptionRecord
from .protocols import SubscriptionRepository

USER_ID_METADATA_KEYS = ("userId", "user_id")


def metadata_user_id(snapshot: ProviderSubscriptionSnapshot) -> Optional[str]:
    """Return the user id carried in the snapshot metadata, if any."""

    for key in USER_ID_METADATA_KEYS:
        value = snapshot.metadata.get(key)
        if value:
            return str(value)
    return None


def resolve_user_id(
    snapshot: ProviderSubscriptionSnapshot,
    existing: Optional[SubscriptionRecord],
    repository: SubscriptionRepository,
    *,
    provider: str,
) -> Optional[str]:
    """Determine which local user owns ``snapshot``.

    Checked in order: explicit metadata, the record already stored for this
    subscription, then the newest record sharing the provider customer id.
    Returns ``None`` when no owner can be found.
    """

    from_metadata = metadata_user_id(snapshot)
    if from_metadata:
        return from_metadata

    if existing is not None and existing.user_id:
        return existing.user_id

    if snapshot.customer_id:
        sibling = repository.find_most_recent_by_customer_id(provider, snapshot.customer_id)
        if sibling is not None and sibling.user_id:
            return sibling.user_id

    return None


__all__ = ["USER_ID_METADATA_KEYS", "metadata_user_id", "resolve_user_id"]
