"""Durable entity store backed by a Supabase (PostgREST) table.

Expected table layout::

    create table entities (
        key text primary key,
        payload jsonb not null,
        expires_at timestamptz
    );
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from ..errors import StorageUnavailable
from ..models.domain import utc_now
from .store import Clock, EntryNotFound

logger = logging.getLogger(__name__)


class SupabaseEntityStore:
    def __init__(self, client: Any, *, table: str = "entities", clock: Clock = utc_now) -> None:
        self._client = client
        self._table = table
        self._clock = clock

    def _query(self):
        return self._client.table(self._table)

    def put(self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None) -> None:
        expires_at = (
            (self._clock() + timedelta(seconds=ttl_seconds)).isoformat()
            if ttl_seconds is not None
            else None
        )
        row = {"key": key, "payload": value, "expires_at": expires_at}
        try:
            self._query().upsert(row).execute()
        except Exception as exc:
            logger.error(f"Failed to write entity '{key}' to Supabase: {exc}")
            raise StorageUnavailable(f"Failed to persist entity: {exc}") from exc

    def get(self, key: str) -> dict[str, Any]:
        try:
            response = self._query().select("payload,expires_at").eq("key", key).limit(1).execute()
        except Exception as exc:
            logger.error(f"Failed to read entity '{key}' from Supabase: {exc}")
            raise StorageUnavailable(f"Failed to read entity: {exc}") from exc

        rows = response.data or []
        if not rows:
            raise EntryNotFound(key)
        row = rows[0]
        expires_at = row.get("expires_at")
        if expires_at and self._clock() >= datetime.fromisoformat(expires_at):
            raise EntryNotFound(key)
        return row["payload"]

    def delete(self, key: str) -> bool:
        try:
            response = self._query().delete().eq("key", key).execute()
        except Exception as exc:
            raise StorageUnavailable(f"Failed to delete entity: {exc}") from exc
        return bool(response.data)

    def purge_expired(self) -> int:
        try:
            response = self._query().delete().lt("expires_at", self._clock().isoformat()).execute()
        except Exception as exc:
            raise StorageUnavailable(f"Failed to purge expired entities: {exc}") from exc
        removed = len(response.data or [])
        if removed:
            logger.info(f"Purged {removed} expired entities from Supabase")
        return removed

    def close(self) -> None:
        """The Supabase client holds no resources that need explicit release."""
