"""
Tests for the activity log (sales_kernel.services.activity_log).

Covers:
- BoundedActivityLog keeps the newest ``capacity`` entries, newest first
- ActivityAuditEmitter stamps entries with the injected clock
- A failing sink never breaks the caller
- SqlActivityLogSink evicts rows beyond capacity
"""

from datetime import date
from decimal import Decimal

import pytest

from sales_kernel.db.engine import get_session_factory
from sales_kernel.domain.clock import DeterministicClock
from sales_kernel.domain.documents import InvoiceState
from sales_kernel.domain.parties import Actor, ActorRole
from sales_kernel.services.activity_log import (
    ActivityAuditEmitter,
    BoundedActivityLog,
    SqlActivityLogSink,
)


class _BrokenSink:
    def record(self, entry):
        raise RuntimeError("disk full")


class TestBoundedActivityLog:

    def test_newest_first(self, deterministic_clock):
        log = BoundedActivityLog(capacity=10)
        emitter = ActivityAuditEmitter(log, deterministic_clock)

        emitter.record("u-1", "quotation_created", "quotation", "1", "COT-1")
        deterministic_clock.advance(1)
        emitter.record("u-1", "quotation_sent", "quotation", "1", "COT-1")

        assert [e.action for e in log.entries()] == ["quotation_sent", "quotation_created"]

    def test_capacity_evicts_oldest(self, deterministic_clock):
        log = BoundedActivityLog(capacity=3)
        emitter = ActivityAuditEmitter(log, deterministic_clock)

        for i in range(5):
            emitter.record("u-1", f"action_{i}", "order", str(i), f"PED-{i}")

        assert len(log) == 3
        assert [e.action for e in log.entries()] == ["action_4", "action_3", "action_2"]

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedActivityLog(capacity=0)


class TestActivityAuditEmitter:

    def test_entry_fields(self, deterministic_clock):
        log = BoundedActivityLog()
        emitter = ActivityAuditEmitter(log, deterministic_clock)
        actor = Actor(id="u-9", role=ActorRole.BILLING, name="Billing Desk")

        entry = emitter.record(
            actor, "invoice_issued", "invoice", "42", "FC-000042",
            {"to_state": InvoiceState.ISSUED, "total": Decimal("595.00")},
        )

        assert entry.timestamp == deterministic_clock.now()
        assert entry.actor == "Billing Desk"
        assert entry.label == "FC-000042"
        assert entry.details == {"to_state": "issued", "total": "595.00"}
        assert log.entries() == [entry]

    def test_actor_without_name_uses_id(self, deterministic_clock):
        emitter = ActivityAuditEmitter(BoundedActivityLog(), deterministic_clock)
        entry = emitter.record(Actor(id="u-7"), "order_created", "order", "1", "PED-1")
        assert entry.actor == "u-7"

    def test_details_made_json_safe(self, deterministic_clock):
        emitter = ActivityAuditEmitter(BoundedActivityLog(), deterministic_clock)
        entry = emitter.record(
            "u-1", "delivery_created", "delivery", "3", "REM-3",
            {"date": date(2024, 3, 1), "ids": ("1", "2")},
        )
        assert entry.details == {"date": "2024-03-01", "ids": ["1", "2"]}

    def test_sink_failure_swallowed(self, deterministic_clock, captured_logs):
        emitter = ActivityAuditEmitter(_BrokenSink(), deterministic_clock)

        entry = emitter.record("u-1", "order_created", "order", "1", "PED-1")

        assert entry.action == "order_created"
        messages = [r["message"] for r in captured_logs()]
        assert "activity_sink_failed" in messages


class TestSqlActivityLogSink:

    def test_round_trip_newest_first(self, engine):
        sink = SqlActivityLogSink(get_session_factory(), capacity=10)
        emitter = ActivityAuditEmitter(sink, DeterministicClock())

        emitter.record("u-1", "order_created", "order", "1", "PED-1", {"lines": 2})
        emitter.record("u-1", "order_sent", "order", "1", "PED-1")

        entries = sink.entries()
        assert [e.action for e in entries] == ["order_sent", "order_created"]
        assert entries[1].details == {"lines": 2}

    def test_evicts_beyond_capacity(self, engine):
        clock = DeterministicClock()
        sink = SqlActivityLogSink(get_session_factory(), capacity=2)
        emitter = ActivityAuditEmitter(sink, clock)

        for i in range(4):
            clock.advance(1)
            emitter.record("u-1", f"action_{i}", "order", str(i), f"PED-{i}")

        assert [e.action for e in sink.entries(limit=10)] == ["action_3", "action_2"]
