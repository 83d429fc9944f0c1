"""Local mirror of provider-owned subscription state."""

from .commands import SubscriptionCommandService
from .exceptions import (
    InvalidWebhookError,
    ProviderNotConfiguredError,
    SubscriptionError,
    SubscriptionNotFoundError,
    SubscriptionValidationError,
    UnsupportedProviderError,
    UpstreamProviderError,
    WebhookNotConfiguredError,
)
from .identity import resolve_user_id
from .lifecycle import SubscriptionLifecycleService, has_expired, is_in_trial
from .models import (
    CheckoutSessionSnapshot,
    ProviderEvent,
    ProviderEventType,
    ProviderSubscriptionSnapshot,
    SubscriptionProvider,
    SubscriptionRecord,
    SubscriptionStatus,
    SubscriptionStatusView,
    WebhookOutcome,
    WebhookResult,
)
from .protocols import SubscriptionProviderClient, SubscriptionRepository
from .reconciler import SubscriptionReconciler
from .service import SubscriptionService
from .status import grants_access, map_provider_status

__all__ = [
    "CheckoutSessionSnapshot",
    "InvalidWebhookError",
    "ProviderEvent",
    "ProviderEventType",
    "ProviderNotConfiguredError",
    "ProviderSubscriptionSnapshot",
    "SubscriptionCommandService",
    "SubscriptionError",
    "SubscriptionLifecycleService",
    "SubscriptionNotFoundError",
    "SubscriptionProvider",
    "SubscriptionProviderClient",
    "SubscriptionReconciler",
    "SubscriptionRecord",
    "SubscriptionRepository",
    "SubscriptionService",
    "SubscriptionStatus",
    "SubscriptionStatusView",
    "SubscriptionValidationError",
    "UnsupportedProviderError",
    "UpstreamProviderError",
    "WebhookNotConfiguredError",
    "WebhookOutcome",
    "WebhookResult",
    "grants_access",
    "has_expired",
    "is_in_trial",
    "map_provider_status",
    "resolve_user_id",
]
