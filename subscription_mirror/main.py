"""FastAPI application exposing the subscription mirror."""
from __future__ import annotations

import logging
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel

from . import app_context
from .app.routes.subscriptions import admin_router, router as subscriptions_router
from .app.services.subscriptions import configure_subscription_service
from .config import SubscriptionConfig, load_subscription_config

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    id: str
    role: Optional[str] = None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_user_from_token(token: str, config: SubscriptionConfig) -> Optional[AuthenticatedUser]:
    if not config.jwt_secret:
        logger.warning("JWT_SECRET is not configured; rejecting bearer token")
        return None
    try:
        payload = jwt.decode(token, config.jwt_secret, algorithms=[config.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return AuthenticatedUser(id=str(subject), role=payload.get("role"))


def create_app(config: Optional[SubscriptionConfig] = None) -> FastAPI:
    config = config or load_subscription_config()

    def get_conn():
        return psycopg2.connect(config.database_url)

    def get_current_user(authorization: Optional[str] = None) -> AuthenticatedUser:
        token = _bearer_token(authorization)
        user = resolve_user_from_token(token, config) if token else None
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return user

    def get_current_admin(authorization: Optional[str] = None) -> AuthenticatedUser:
        user = get_current_user(authorization)
        if user.role != config.admin_role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
        return user

    app_context.configure(
        get_conn=get_conn,
        get_current_user=get_current_user,
        get_current_admin=get_current_admin,
    )
    configure_subscription_service(config)

    app = FastAPI(title="Subscription Mirror API")
    app.include_router(subscriptions_router)
    app.include_router(admin_router)
    return app


load_dotenv()

app = create_app()
