"""TTL-keyed entity storage.

Entities are create-once JSON documents. Expiry is evaluated at read time: an
entry whose ``expires_at`` has been reached is indistinguishable from a key
that was never written.
"""

from __future__ import annotations

import copy
import logging
import threading
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from ..models.domain import utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class EntryNotFound(LookupError):
    """Raised for absent and expired keys alike."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(key)


class EntityStore(Protocol):
    """Contract shared by the in-memory and Supabase-backed stores."""

    def put(self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None) -> None:
        ...

    def get(self, key: str) -> dict[str, Any]:
        ...

    def delete(self, key: str) -> bool:
        ...

    def purge_expired(self) -> int:
        ...

    def close(self) -> None:
        ...


@dataclass(slots=True)
class _Entry:
    value: dict[str, Any]
    expires_at: Optional[datetime]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class _Shard:
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: dict[str, _Entry] = {}


class InMemoryEntityStore:
    """Lock-striped in-memory store.

    Keys are hashed onto independent shards so requests touching disjoint
    keys rarely contend. When a shard grows past its share of
    ``max_entries`` it first drops expired entries, then the entries closest
    to expiry.
    """

    def __init__(
        self,
        *,
        shards: int = 16,
        max_entries: Optional[int] = None,
        clock: Clock = utc_now,
    ) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._shards = [_Shard() for _ in range(shards)]
        self._clock = clock
        self._per_shard_limit = (
            max(1, max_entries // shards) if max_entries is not None else None
        )

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[zlib.crc32(key.encode("utf-8")) % len(self._shards)]

    def put(self, key: str, value: dict[str, Any], ttl_seconds: Optional[float] = None) -> None:
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        shard = self._shard_for(key)
        with shard.lock:
            shard.entries[key] = _Entry(copy.deepcopy(value), expires_at)
            if self._per_shard_limit is not None and len(shard.entries) > self._per_shard_limit:
                self._shrink(shard, now)

    def get(self, key: str) -> dict[str, Any]:
        shard = self._shard_for(key)
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                raise EntryNotFound(key)
            if entry.is_expired(self._clock()):
                del shard.entries[key]
                raise EntryNotFound(key)
            return copy.deepcopy(entry.value)

    def delete(self, key: str) -> bool:
        shard = self._shard_for(key)
        with shard.lock:
            return shard.entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += self._drop_expired(shard, now)
        if removed:
            logger.debug(f"Purged {removed} expired entries")
        return removed

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def close(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    @staticmethod
    def _drop_expired(shard: _Shard, now: datetime) -> int:
        expired = [key for key, entry in shard.entries.items() if entry.is_expired(now)]
        for key in expired:
            del shard.entries[key]
        return len(expired)

    def _shrink(self, shard: _Shard, now: datetime) -> None:
        self._drop_expired(shard, now)
        overflow = len(shard.entries) - (self._per_shard_limit or 0)
        if overflow <= 0:
            return
        # Entries without a TTL are never evicted to make room.
        evictable = sorted(
            (entry.expires_at, key)
            for key, entry in shard.entries.items()
            if entry.expires_at is not None
        )
        for _, key in evictable[:overflow]:
            del shard.entries[key]
        evicted = min(overflow, len(evictable))
        logger.warning(f"Entity store shard over capacity, evicted {evicted} entries")
