"""API schemas for subscription endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..subscriptions import SubscriptionRecord, SubscriptionStatus, SubscriptionStatusView, WebhookOutcome
from ..subscriptions.lifecycle import is_in_trial


class SubscriptionSummary(BaseModel):
    id: str
    provider: str
    status: SubscriptionStatus
    current_period_end: Optional[datetime] = Field(alias="currentPeriodEnd", default=None)
    cancel_at_period_end: bool = Field(alias="cancelAtPeriodEnd")
    canceled_at: Optional[datetime] = Field(alias="canceledAt", default=None)
    is_in_trial: Optional[bool] = Field(alias="isInTrial", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: SubscriptionRecord, *, now: datetime) -> "SubscriptionSummary":
        return cls(
            id=record.id,
            provider=record.provider,
            status=record.status,
            current_period_end=record.current_period_end,
            cancel_at_period_end=record.cancel_at_period_end,
            canceled_at=record.canceled_at,
            is_in_trial=is_in_trial(record, now),
        )


class SubscriptionStatusResponse(BaseModel):
    has_active_subscription: bool = Field(alias="hasActiveSubscription")
    subscription: Optional[SubscriptionSummary] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_view(cls, view: SubscriptionStatusView) -> "SubscriptionStatusResponse":
        summary = None
        if view.subscription is not None:
            record = view.subscription
            summary = SubscriptionSummary(
                id=record.id,
                provider=record.provider,
                status=record.status,
                current_period_end=record.current_period_end,
                cancel_at_period_end=record.cancel_at_period_end,
                canceled_at=record.canceled_at,
                is_in_trial=view.is_in_trial,
            )
        return cls(has_active_subscription=view.has_active_subscription, subscription=summary)


class SubscriptionHistoryResponse(BaseModel):
    subscriptions: List[SubscriptionSummary]

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionChange(BaseModel):
    id: str
    status: SubscriptionStatus
    cancel_at_period_end: bool = Field(alias="cancelAtPeriodEnd")
    canceled_at: Optional[datetime] = Field(alias="canceledAt", default=None)

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionUpdateResponse(BaseModel):
    success: Literal[True] = True
    subscription: SubscriptionChange

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: SubscriptionRecord) -> "SubscriptionUpdateResponse":
        return cls(
            subscription=SubscriptionChange(
                id=record.id,
                status=record.status,
                cancel_at_period_end=record.cancel_at_period_end,
                canceled_at=record.canceled_at,
            )
        )


class WebhookAckResponse(BaseModel):
    received: bool = True
    outcome: WebhookOutcome

    model_config = ConfigDict(populate_by_name=True)
