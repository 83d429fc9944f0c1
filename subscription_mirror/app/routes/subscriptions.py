"""API routes exposing subscription state and commands."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from ... import app_context
from ..schemas.subscriptions import (
    SubscriptionHistoryResponse,
    SubscriptionStatusResponse,
    SubscriptionSummary,
    SubscriptionUpdateResponse,
    WebhookAckResponse,
)
from ..services.subscriptions import get_subscription_service
from ..subscriptions import SubscriptionError

logger = logging.getLogger(__name__)


def _get_current_user(authorization: Optional[str] = Header(None)) -> Any:
    return app_context.get_current_user(authorization=authorization)


def _get_current_admin(authorization: Optional[str] = Header(None)) -> Any:
    return app_context.get_current_admin(authorization=authorization)


router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])
admin_router = APIRouter(prefix="/api/admin/subscriptions", tags=["admin-subscriptions"])


@router.get("/status", response_model=SubscriptionStatusResponse)
def get_subscription_status(*, current_user=Depends(_get_current_user)) -> SubscriptionStatusResponse:
    try:
        service = get_subscription_service()
        view = service.get_status(str(current_user.id))
    except SubscriptionError as exc:
        raise exc.to_http_exception() from exc
    return SubscriptionStatusResponse.from_view(view)


@router.get("/history", response_model=SubscriptionHistoryResponse)
def get_subscription_history(*, current_user=Depends(_get_current_user)) -> SubscriptionHistoryResponse:
    try:
        service = get_subscription_service()
        records = service.get_history(str(current_user.id))
    except SubscriptionError as exc:
        raise exc.to_http_exception() from exc
    now = service.lifecycle.now()
    return SubscriptionHistoryResponse(
        subscriptions=[SubscriptionSummary.from_record(record, now=now) for record in records]
    )


@router.post("/{subscription_id}/cancel", response_model=SubscriptionUpdateResponse)
def cancel_subscription(
    subscription_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> SubscriptionUpdateResponse:
    try:
        service = get_subscription_service()
        updated = service.cancel(subscription_id, str(current_user.id))
    except SubscriptionError as exc:
        raise exc.to_http_exception() from exc
    return SubscriptionUpdateResponse.from_record(updated)


@router.post("/webhook/stripe", response_model=WebhookAckResponse)
async def receive_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
) -> WebhookAckResponse:
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe signature")

    raw_body = await request.body()
    if not raw_body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    try:
        service = get_subscription_service()
        result = await run_in_threadpool(service.handle_event, raw_body, stripe_signature)
    except SubscriptionError as exc:
        logger.warning("Rejected Stripe webhook: %s", exc.message)
        raise exc.to_http_exception() from exc
    return WebhookAckResponse(outcome=result.outcome)


@admin_router.patch("/{subscription_id}/cancel", response_model=SubscriptionUpdateResponse)
def admin_cancel_subscription(
    subscription_id: str,
    *,
    current_admin=Depends(_get_current_admin),
) -> SubscriptionUpdateResponse:
    try:
        service = get_subscription_service()
        updated = service.cancel_as_admin(subscription_id)
    except SubscriptionError as exc:
        raise exc.to_http_exception() from exc
    return SubscriptionUpdateResponse.from_record(updated)


@admin_router.patch("/{subscription_id}/reactivate", response_model=SubscriptionUpdateResponse)
def admin_reactivate_subscription(
    subscription_id: str,
    *,
    current_admin=Depends(_get_current_admin),
) -> SubscriptionUpdateResponse:
    try:
        service = get_subscription_service()
        updated = service.reactivate(subscription_id)
    except SubscriptionError as exc:
        raise exc.to_http_exception() from exc
    return SubscriptionUpdateResponse.from_record(updated)
