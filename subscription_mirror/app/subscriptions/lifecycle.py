"""Derived subscription state and read-side queries."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .models import SubscriptionRecord, SubscriptionStatus
from .protocols import SubscriptionRepository

logger = logging.getLogger(__name__)


def is_in_trial(record: SubscriptionRecord, now: datetime) -> bool:
    """Return ``True`` while a trialing record has not reached its trial end."""

    if record.trial_end is None:
        return False
    return record.status == SubscriptionStatus.TRIALING and now < record.trial_end


def has_expired(record: SubscriptionRecord, now: datetime) -> bool:
    """Return ``True`` once the current billing period has ended."""

    if record.current_period_end is None:
        return False
    return now > record.current_period_end


class SubscriptionLifecycleService:
    """Answers "does this user have a subscription" questions."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    def get_active_subscription(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Return the newest active record, demoting it if its period has ended."""

        record = self._repository.find_active_by_user(user_id)
        if record is None:
            return None

        now = self._clock()
        if has_expired(record, now):
            demoted = record.model_copy(
                update={"status": SubscriptionStatus.CANCELED, "updated_at": now}
            )
            self._repository.upsert(demoted)
            logger.info(
                "Demoted expired subscription %s for user %s (period ended %s)",
                record.id,
                user_id,
                record.current_period_end.isoformat(),
            )
            return None
        return record

    def has_active_subscription(self, user_id: str) -> bool:
        return self.get_active_subscription(user_id) is not None

    def list_subscriptions(self, user_id: str) -> List[SubscriptionRecord]:
        return list(self._repository.list_by_user(user_id))


__all__ = ["SubscriptionLifecycleService", "has_expired", "is_in_trial"]
