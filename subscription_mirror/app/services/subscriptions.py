"""Application wiring for the subscription service."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from ...config import SubscriptionConfig, load_subscription_config
from ..subscriptions import SubscriptionService
from ..subscriptions.repository import PostgresSubscriptionRepository
from ..subscriptions.stripe_client import StripeSubscriptionClient

logger = logging.getLogger("subscriptions")

_config: Optional[SubscriptionConfig] = None


def build_subscription_service(config: SubscriptionConfig) -> SubscriptionService:
    """Assemble the service from explicit configuration."""

    provider_client = StripeSubscriptionClient.from_config(config)
    if not config.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; webhook deliveries will be rejected")
    return SubscriptionService(
        repository=PostgresSubscriptionRepository(),
        provider_client=provider_client,
        webhook_secret=config.stripe_webhook_secret,
    )


def configure_subscription_service(config: SubscriptionConfig) -> None:
    """Use ``config`` for every service built from now on."""

    global _config

    _config = config
    get_subscription_service.cache_clear()


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionService:
    return build_subscription_service(_config or load_subscription_config())


__all__ = [
    "build_subscription_service",
    "configure_subscription_service",
    "get_subscription_service",
]
