"""Configuration for the subscription mirror."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class SubscriptionConfig:
    """Settings for the provider integration and the demo application."""

    stripe_secret_key: Optional[str]
    stripe_webhook_secret: Optional[str]
    stripe_api_version: Optional[str]
    database_url: str
    jwt_secret: Optional[str]
    jwt_algorithm: str
    admin_role: str


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def load_subscription_config(env: Optional[Mapping[str, str]] = None) -> SubscriptionConfig:
    """Load :class:`SubscriptionConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    return SubscriptionConfig(
        stripe_secret_key=_optional(env_mapping.get("STRIPE_SECRET_KEY")),
        stripe_webhook_secret=_optional(env_mapping.get("STRIPE_WEBHOOK_SECRET")),
        stripe_api_version=_optional(env_mapping.get("STRIPE_API_VERSION")),
        database_url=env_mapping.get(
            "DATABASE_URL", "postgresql://localhost:5432/subscriptions"
        ),
        jwt_secret=_optional(env_mapping.get("JWT_SECRET")),
        jwt_algorithm=(env_mapping.get("JWT_ALGORITHM") or "HS256").strip(),
        admin_role=(env_mapping.get("ADMIN_ROLE") or "admin").strip(),
    )


__all__ = ["SubscriptionConfig", "load_subscription_config"]
