"""
ActivityAuditEmitter -- bounded, user-visible activity log.

Responsibility:
    Builds an immutable ``ActivityLogEntry`` for every user-visible action
    (document created, state changed, invoice consolidated, stamping result)
    and hands it to an ``ActivitySink``.  Two sinks ship with the kernel:

    - ``BoundedActivityLog``: in-memory, newest first, evicts the oldest
      entry past its capacity.
    - ``SqlActivityLogSink``: persisted rows in ``activity_log``, deleting
      the oldest rows past its capacity in the same transaction.

Architecture position:
    Kernel > Services.  Called by the sales-cycle orchestrator after each
    successful operation.

Invariants enforced:
    - Entries are never mutated after creation.
    - A sink never holds more than ``capacity`` entries (default 100).
    - A sink failure is logged and never alters the calling operation.
"""

from collections import deque
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from threading import Lock
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.domain.documents import ActivityLogEntry
from sales_kernel.domain.parties import Actor
from sales_kernel.logging_config import get_logger
from sales_kernel.models.activity_log import ActivityLogModel
from sales_kernel.ports import ActivitySink

logger = get_logger("services.activity_log")

DEFAULT_CAPACITY = 100


def _json_safe(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class BoundedActivityLog:
    """In-memory sink keeping the ``capacity`` newest entries, newest first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._entries: deque[ActivityLogEntry] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, entry: ActivityLogEntry) -> None:
        with self._lock:
            # appendleft on a full deque drops the oldest entry from the right
            self._entries.appendleft(entry)

    def entries(self) -> list[ActivityLogEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class SqlActivityLogSink:
    """
    Persisted sink.  Uses its own session so an entry survives independently
    of the caller's transaction outcome.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        capacity: int = DEFAULT_CAPACITY,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._session_factory = session_factory
        self._capacity = capacity

    def record(self, entry: ActivityLogEntry) -> None:
        session = self._session_factory()
        try:
            session.add(
                ActivityLogModel(
                    occurred_at=entry.timestamp,
                    actor=entry.actor,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    label=entry.label,
                    details=_json_safe(entry.details),
                )
            )
            session.flush()
            stale_ids = session.scalars(
                select(ActivityLogModel.id)
                .order_by(ActivityLogModel.occurred_at.desc(), ActivityLogModel.id.desc())
                .offset(self._capacity)
            ).all()
            if stale_ids:
                session.execute(
                    delete(ActivityLogModel).where(ActivityLogModel.id.in_(stale_ids))
                )
                logger.debug(
                    "activity_log_evicted",
                    extra={"evicted": len(stale_ids)},
                )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def entries(self, limit: int | None = None) -> list[ActivityLogEntry]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(ActivityLogModel)
                .order_by(ActivityLogModel.occurred_at.desc(), ActivityLogModel.id.desc())
                .limit(limit or self._capacity)
            ).all()
            return [row.to_dto() for row in rows]
        finally:
            session.close()


class ActivityAuditEmitter:
    """
    Builds activity entries stamped by the injected clock.

    Usage:
        emitter = ActivityAuditEmitter(BoundedActivityLog(), clock)
        emitter.record(actor, "invoice_consolidated", "invoice", "42", "FC-000042")
    """

    def __init__(self, sink: ActivitySink, clock: Clock | None = None):
        self._sink = sink
        self._clock = clock or SystemClock()

    @property
    def sink(self) -> ActivitySink:
        return self._sink

    def record(
        self,
        actor: Actor | str,
        action: str,
        entity_type: str,
        entity_id: str,
        label: str,
        details: Mapping[str, Any] | None = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            timestamp=self._clock.now(),
            actor=actor.label if isinstance(actor, Actor) else actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            label=label,
            details=_json_safe(dict(details or {})),
        )
        try:
            self._sink.record(entry)
        except Exception:
            logger.warning(
                "activity_sink_failed",
                extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
                exc_info=True,
            )
        return entry
