"""Errors raised by the subscription mirror."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class SubscriptionError(Exception):
    """Base error carrying an API-friendly code and status."""

    code: str
    message: str
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


@dataclass
class SubscriptionValidationError(SubscriptionError):
    """A command was issued without the identifiers it needs."""

    code: str = "invalid_request"
    message: str = "Invalid subscription request"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class InvalidWebhookError(SubscriptionError):
    """An inbound event was unsigned, wrongly signed, or malformed."""

    code: str = "invalid_webhook"
    message: str = "Invalid webhook payload"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class WebhookNotConfiguredError(SubscriptionError):
    code: str = "webhook_not_configured"
    message: str = "Webhook is not configured"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class SubscriptionNotFoundError(SubscriptionError):
    """The subscription does not exist or is not owned by the caller."""

    code: str = "subscription_not_found"
    message: str = "Subscription not found"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass
class UnsupportedProviderError(SubscriptionError):
    """A command targeted a subscription held by an unsupported provider."""

    code: str = "unsupported_provider"
    message: str = "Subscription provider does not support this operation"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class UpstreamProviderError(SubscriptionError):
    """The billing provider rejected or failed an outbound call."""

    code: str = "provider_error"
    message: str = "Billing provider request failed"
    status_code: int = status.HTTP_502_BAD_GATEWAY


@dataclass
class ProviderNotConfiguredError(SubscriptionError):
    code: str = "provider_not_configured"
    message: str = "STRIPE_SECRET_KEY must be configured"
    status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE


__all__ = [
    "InvalidWebhookError",
    "ProviderNotConfiguredError",
    "SubscriptionError",
    "SubscriptionNotFoundError",
    "SubscriptionValidationError",
    "UnsupportedProviderError",
    "UpstreamProviderError",
    "WebhookNotConfiguredError",
]
