"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Any, Callable, Optional

_get_conn: Optional[Callable[[], Any]] = None
_get_current_user: Optional[Callable[..., Any]] = None
_get_current_admin: Optional[Callable[..., Any]] = None


def configure(
    *,
    get_conn: Callable[[], Any],
    get_current_user: Callable[..., Any],
    get_current_admin: Callable[..., Any],
) -> None:
    """Register host-provided dependencies required by the routers and repository."""

    global _get_conn
    global _get_current_user
    global _get_current_admin

    _get_conn = get_conn
    _get_current_user = get_current_user
    _get_current_admin = get_current_admin


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise RuntimeError(f"Application context has not been configured yet: {name}")
    return value


def get_conn() -> Any:
    conn_factory = _require(_get_conn, "get_conn")
    return conn_factory()


def get_current_user(*args: Any, **kwargs: Any) -> Any:
    dependency = _require(_get_current_user, "get_current_user")
    return dependency(*args, **kwargs)


def get_current_admin(*args: Any, **kwargs: Any) -> Any:
    dependency = _require(_get_current_admin, "get_current_admin")
    return dependency(*args, **kwargs)
