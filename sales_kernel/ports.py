"""
Collaborator ports (``sales_kernel.ports``).

Responsibility:
    Structural interfaces for everything the engine does not own: the
    persistence store, the tax-authority stamping service and the activity
    log sink.  Engines and the orchestrator depend on these protocols only;
    ``sales_services`` ships the concrete SQLAlchemy, timed-stamping and
    bounded-log implementations.

Contract:
    - Reads always return a fresh copy from the store (never a cached one).
    - ``persist_*`` methods ignore the ``id`` of the value passed in and
      return the stored value with its assigned id.
    - ``persist_consolidated_invoice`` re-checks the ``invoice_id`` guard of
      every delivery under lock and stamps them in the same transaction that
      inserts the invoice.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from sales_kernel.domain.documents import (
    ActivityLogEntry,
    CreditNote,
    Delivery,
    EntityType,
    Invoice,
    InvoiceDraft,
    Order,
    Quotation,
)
from sales_kernel.domain.parties import EntityKind, Party, PartyKind, Product, Site


@dataclass(frozen=True)
class StampingReceipt:
    """Outcome reported by the tax-authority stamping service."""
    accepted: bool
    reference: str | None = None
    message: str | None = None
    stamped_at: datetime | None = None


class SalesRepository(Protocol):
    """Persistence collaborator for reference data and sales documents."""

    def load_parties(self, kind: PartyKind) -> list[Party]:
        ...

    def load_sites(self) -> list[Site]:
        ...

    def load_catalog(self, kind: EntityKind) -> list[Party] | list[Site] | list[Product]:
        """Reference entities of any kind (products included)."""
        ...

    def get_quotation(self, quotation_id: str) -> Quotation | None:
        ...

    def get_order(self, order_id: str) -> Order | None:
        ...

    def get_delivery(self, delivery_id: str) -> Delivery | None:
        ...

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        ...

    def get_credit_note(self, credit_note_id: str) -> CreditNote | None:
        ...

    def list_deliveries_for_order(self, order_id: str) -> list[Delivery]:
        ...

    def list_credit_notes_for_invoice(self, invoice_id: str) -> list[CreditNote]:
        ...

    def document_number_exists(self, entity_type: EntityType, number: str) -> bool:
        ...

    def next_sequence_value(self, sequence_name: str) -> int:
        ...

    def persist_quotation(self, quotation: Quotation) -> Quotation:
        ...

    def persist_order(self, order: Order) -> Order:
        ...

    def persist_delivery(self, delivery: Delivery) -> Delivery:
        ...

    def persist_consolidated_invoice(self, draft: InvoiceDraft, number: str) -> Invoice:
        ...

    def persist_credit_note(self, credit_note: CreditNote) -> CreditNote:
        ...

    def update_state(
        self,
        entity_type: EntityType,
        entity_id: str,
        new_state: Enum,
        expected_state: Enum | None = None,
        **changes: Any,
    ) -> Any:
        ...


class StampingGateway(Protocol):
    """Tax-authority stamping collaborator."""

    def stamp_invoice(self, invoice: Invoice) -> StampingReceipt:
        ...


class ActivitySink(Protocol):
    """Receives activity-log entries."""

    def record(self, entry: ActivityLogEntry) -> None:
        ...
