"""
sales_services.display_cache -- Two-phase cache of document display state.

Responsibility:
    Keeps what list screens show for recently touched documents (state,
    invoice number of a delivery) so they do not re-query after every
    action.  Writes are two-phase: the orchestrator stages ``PENDING``
    entries before the store commits, then confirms them on success or
    rolls them back to the previous values on failure.

Architecture position:
    Services layer.  In-memory only; injected into the orchestrator.

Invariants enforced:
    - A rollback restores exactly the entries that existed before the
      stage, removing keys that did not exist.
    - Expired entries are never returned (TTL from the injected clock).
    - Size is bounded; the oldest key is evicted when a new key arrives at
      capacity.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from threading import Lock
from typing import Any

from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.logging_config import get_logger

logger = get_logger("services.display_cache")

DEFAULT_TTL = timedelta(minutes=5)
DEFAULT_MAX_SIZE = 1000

CacheKey = tuple[str, str]


class EntryStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    status: EntryStatus
    expires_at: datetime


@dataclass(frozen=True)
class StagedWrite:
    """Handle returned by ``stage_many``; needed to confirm or roll back."""
    keys: tuple[CacheKey, ...]
    previous: Mapping[CacheKey, CacheEntry | None]


def cache_key(entity_type: str, entity_id: str) -> CacheKey:
    return (entity_type, str(entity_id))


class DisplayCache:
    """
    Bounded TTL cache with pending/confirmed entries.

    Usage:
        staged = cache.stage_many({cache_key("delivery", "7"): {"invoice": "FC-1"}})
        try:
            persist()
        except Exception:
            cache.rollback(staged)
            raise
        cache.confirm(staged)
    """

    def __init__(
        self,
        clock: Clock | None = None,
        ttl: timedelta = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._clock = clock or SystemClock()
        self._ttl = ttl
        self._max_size = max_size
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: CacheKey) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock.now() > entry.expires_at:
                del self._entries[key]
                return None
            return entry

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        now = self._clock.now()
        with self._lock:
            expired = sum(1 for e in self._entries.values() if now > e.expires_at)
            pending = sum(
                1 for e in self._entries.values() if e.status is EntryStatus.PENDING
            )
            return {
                "total": len(self._entries),
                "valid": len(self._entries) - expired,
                "expired": expired,
                "pending": pending,
                "max_size": self._max_size,
            }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _store(self, key: CacheKey, entry: CacheEntry) -> None:
        if key not in self._entries and len(self._entries) >= self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = entry

    def put_confirmed(self, key: CacheKey, value: Any) -> None:
        with self._lock:
            self._store(
                key,
                CacheEntry(value, EntryStatus.CONFIRMED, self._clock.now() + self._ttl),
            )

    def stage_many(self, values: Mapping[CacheKey, Any]) -> StagedWrite:
        """Write ``PENDING`` entries, remembering what they replace."""
        with self._lock:
            expires_at = self._clock.now() + self._ttl
            previous = {key: self._entries.get(key) for key in values}
            for key, value in values.items():
                self._store(key, CacheEntry(value, EntryStatus.PENDING, expires_at))
        logger.debug("display_cache_staged", extra={"keys": [list(k) for k in values]})
        return StagedWrite(keys=tuple(values), previous=previous)

    def confirm(self, staged: StagedWrite, values: Mapping[CacheKey, Any] | None = None) -> None:
        """Mark staged entries confirmed, optionally with their final values."""
        with self._lock:
            for key in staged.keys:
                entry = self._entries.get(key)
                if entry is None:
                    continue
                value = values[key] if values and key in values else entry.value
                self._entries[key] = replace(
                    entry, value=value, status=EntryStatus.CONFIRMED
                )
        logger.debug("display_cache_confirmed", extra={"count": len(staged.keys)})

    def rollback(self, staged: StagedWrite) -> None:
        """Restore the entries that existed before ``stage_many``."""
        with self._lock:
            for key in staged.keys:
                before = staged.previous.get(key)
                if before is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = before
        logger.info("display_cache_rolled_back", extra={"count": len(staged.keys)})

    def invalidate(self, entity_type: str, entity_id: str | None = None) -> int:
        """Drop one entry, or every entry of ``entity_type`` when no id is given."""
        with self._lock:
            if entity_id is not None:
                return 1 if self._entries.pop(cache_key(entity_type, entity_id), None) else 0
            doomed = [key for key in self._entries if key[0] == entity_type]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def cleanup(self) -> int:
        """Remove expired entries; returns how many were removed."""
        now = self._clock.now()
        with self._lock:
            doomed = [k for k, e in self._entries.items() if now > e.expires_at]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
