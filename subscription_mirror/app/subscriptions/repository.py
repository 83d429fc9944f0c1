"""Persistence for mirrored subscription records."""
from __future__ import annotations

import itertools
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .models import SubscriptionRecord, SubscriptionStatus


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _row_to_record(row: dict) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        provider=row["provider"],
        provider_subscription_id=row["provider_subscription_id"],
        provider_customer_id=row.get("provider_customer_id"),
        provider_price_id=row.get("provider_price_id"),
        status=SubscriptionStatus(row["status"]),
        current_period_start=_as_utc(row.get("current_period_start")),
        current_period_end=_as_utc(row.get("current_period_end")),
        cancel_at_period_end=bool(row.get("cancel_at_period_end")),
        canceled_at=_as_utc(row.get("canceled_at")),
        trial_start=_as_utc(row.get("trial_start")),
        trial_end=_as_utc(row.get("trial_end")),
        metadata=row.get("metadata") or {},
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


class PostgresSubscriptionRepository:
    """Repository backed by the PostgreSQL ``subscription`` table.

    Requires a unique index on ``(provider, provider_subscription_id)``.
    """

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, _):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()

    def _fetch_one(self, query: str, params: tuple) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            return _row_to_record(row) if row else None

    def find_by_id(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        return self._fetch_one(
            """
            SELECT *
            FROM subscription
            WHERE id::text = %s
            LIMIT 1
            """,
            (subscription_id,),
        )

    def find_by_provider_id(
        self, provider: str, provider_subscription_id: str
    ) -> Optional[SubscriptionRecord]:
        return self._fetch_one(
            """
            SELECT *
            FROM subscription
            WHERE provider = %s AND provider_subscription_id = %s
            LIMIT 1
            """,
            (provider, provider_subscription_id),
        )

    def find_most_recent_by_customer_id(
        self, provider: str, provider_customer_id: str
    ) -> Optional[SubscriptionRecord]:
        return self._fetch_one(
            """
            SELECT *
            FROM subscription
            WHERE provider = %s AND provider_customer_id = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (provider, provider_customer_id),
        )

    def find_active_by_user(self, user_id: str) -> Optional[SubscriptionRecord]:
        return self._fetch_one(
            """
            SELECT *
            FROM subscription
            WHERE user_id::text = %s AND status = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (user_id, SubscriptionStatus.ACTIVE.value),
        )

    def list_by_user(self, user_id: str) -> List[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM subscription
                WHERE user_id::text = %s
                ORDER BY created_at DESC
                """,
                (user_id,),
            )
            rows = cursor.fetchall() or []
            return [_row_to_record(row) for row in rows]

    def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO subscription (
                    id,
                    user_id,
                    provider,
                    provider_subscription_id,
                    provider_customer_id,
                    provider_price_id,
                    status,
                    current_period_start,
                    current_period_end,
                    cancel_at_period_end,
                    canceled_at,
                    trial_start,
                    trial_end,
                    metadata,
                    created_at,
                    updated_at
                )
                VALUES (%(id)s, %(user_id)s, %(provider)s, %(provider_subscription_id)s,
                        %(provider_customer_id)s, %(provider_price_id)s, %(status)s,
                        %(current_period_start)s, %(current_period_end)s,
                        %(cancel_at_period_end)s, %(canceled_at)s, %(trial_start)s,
                        %(trial_end)s, %(metadata)s, %(created_at)s, %(updated_at)s)
                ON CONFLICT (provider, provider_subscription_id) DO UPDATE SET
                    provider_customer_id = EXCLUDED.provider_customer_id,
                    provider_price_id = EXCLUDED.provider_price_id,
                    status = EXCLUDED.status,
                    current_period_start = EXCLUDED.current_period_start,
                    current_period_end = EXCLUDED.current_period_end,
                    cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                    canceled_at = EXCLUDED.canceled_at,
                    trial_start = EXCLUDED.trial_start,
                    trial_end = EXCLUDED.trial_end,
                    metadata = EXCLUDED.metadata,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                {
                    "id": record.id,
                    "user_id": record.user_id,
                    "provider": record.provider,
                    "provider_subscription_id": record.provider_subscription_id,
                    "provider_customer_id": record.provider_customer_id,
                    "provider_price_id": record.provider_price_id,
                    "status": record.status.value,
                    "current_period_start": record.current_period_start,
                    "current_period_end": record.current_period_end,
                    "cancel_at_period_end": record.cancel_at_period_end,
                    "canceled_at": record.canceled_at,
                    "trial_start": record.trial_start,
                    "trial_end": record.trial_end,
                    "metadata": psycopg2.extras.Json(record.metadata),
                    "created_at": record.created_at,
                    "updated_at": record.updated_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist subscription")
            return _row_to_record(row)


class InMemorySubscriptionRepository:
    """Thread-safe in-memory store suitable for tests and local development."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: Dict[Tuple[str, str], SubscriptionRecord] = {}
        self._sequence: Dict[Tuple[str, str], int] = {}
        self._counter = itertools.count()

    def _newest_first(self, records: Iterable[Tuple[Tuple[str, str], SubscriptionRecord]]) -> List[SubscriptionRecord]:
        ordered = sorted(
            records,
            key=lambda item: (item[1].created_at, self._sequence[item[0]]),
            reverse=True,
        )
        return [record for _, record in ordered]

    def find_by_id(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            for record in self._records.values():
                if record.id == subscription_id:
                    return record
        return None

    def find_by_provider_id(
        self, provider: str, provider_subscription_id: str
    ) -> Optional[SubscriptionRecord]:
        with self._lock:
            return self._records.get((provider, provider_subscription_id))

    def find_most_recent_by_customer_id(
        self, provider: str, provider_customer_id: str
    ) -> Optional[SubscriptionRecord]:
        with self._lock:
            matching = self._newest_first(
                (key, record)
                for key, record in self._records.items()
                if record.provider == provider and record.provider_customer_id == provider_customer_id
            )
        return matching[0] if matching else None

    def find_active_by_user(self, user_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            matching = self._newest_first(
                (key, record)
                for key, record in self._records.items()
                if record.user_id == user_id and record.status == SubscriptionStatus.ACTIVE
            )
        return matching[0] if matching else None

    def list_by_user(self, user_id: str) -> List[SubscriptionRecord]:
        with self._lock:
            return self._newest_first(
                (key, record) for key, record in self._records.items() if record.user_id == user_id
            )

    def upsert(self, record: SubscriptionRecord) -> SubscriptionRecord:
        key = (record.provider, record.provider_subscription_id)
        with self._lock:
            current = self._records.get(key)
            if current is not None:
                record = record.model_copy(
                    update={
                        "id": current.id,
                        "user_id": current.user_id,
                        "created_at": current.created_at,
                    }
                )
            else:
                self._sequence[key] = next(self._counter)
            self._records[key] = record
            return record

    def all(self) -> List[SubscriptionRecord]:
        with self._lock:
            return list(self._records.values())


__all__ = ["InMemorySubscriptionRepository", "PostgresSubscriptionRepository", "managed_connection"]
