"""Translation of provider status strings into canonical statuses."""
from __future__ import annotations

from typing import Dict

from .models import SubscriptionStatus

_STATUS_MAP: Dict[str, SubscriptionStatus] = {status.value: status for status in SubscriptionStatus}

_ACCESS_GRANTING = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


def map_provider_status(provider_status: object) -> SubscriptionStatus:
    """Return the canonical status for ``provider_status``.

    Unknown values map to ``incomplete`` so a record never carries an unset
    status.
    """

    if not isinstance(provider_status, str):
        return SubscriptionStatus.INCOMPLETE
    return _STATUS_MAP.get(provider_status, SubscriptionStatus.INCOMPLETE)


def grants_access(status: SubscriptionStatus) -> bool:
    """Return ``True`` for statuses that entitle the user to paid features."""

    return status in _ACCESS_GRANTING


__all__ = ["grants_access", "map_provider_status"]
