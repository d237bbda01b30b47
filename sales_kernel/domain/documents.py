"""
Sales document value objects (``sales_kernel.domain.documents``).

Responsibility
--------------
Frozen dataclasses for the nouns of the sales cycle: quotations, orders,
deliveries (remissions), invoices and credit notes, their items, the
computed line amounts and document totals, the consolidated invoice draft
and activity-log entries.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Shared by
the engines (calculator, resolver, consolidation), the sales-cycle module
and the persistence adapter.

Invariants enforced
-------------------
* All models are ``frozen=True``; item collections are tuples owned by
  their parent document.
* All monetary and quantity fields use ``Decimal`` -- NEVER ``float``.
* Documents reference each other by id only.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sales_kernel.domain.amounts import ZERO


class EntityType(Enum):
    """Document kinds handled by the state machine."""
    QUOTATION = "quotation"
    ORDER = "order"
    DELIVERY = "delivery"
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"


class QuotationState(Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class OrderState(Enum):
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    IN_PROCESS = "in_process"
    PARTIALLY_DELIVERED = "partially_delivered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryState(Enum):
    DRAFT = "draft"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class InvoiceState(Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    VOID = "void"


class CreditNoteState(Enum):
    RECORDED = "recorded"


class ShipmentStatus(Enum):
    """Whether a delivery ships everything that remained on its order."""
    TOTAL = "total"
    PARTIAL = "partial"


STATE_ENUMS: dict[EntityType, type[Enum]] = {
    EntityType.QUOTATION: QuotationState,
    EntityType.ORDER: OrderState,
    EntityType.DELIVERY: DeliveryState,
    EntityType.INVOICE: InvoiceState,
    EntityType.CREDIT_NOTE: CreditNoteState,
}


# ---------------------------------------------------------------------------
# Items and amounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentItem:
    """One product line of a quotation, order, invoice or credit note.

    ``product_id`` may be missing on legacy rows; ``product_code`` is then
    the secondary key used to recover it from the catalog.
    """
    product_id: str | None
    quantity: Decimal
    unit_price: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    product_code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class DeliveryItem(DocumentItem):
    """A delivery line with shipment, invoicing and return quantities."""
    quantity_shipped: Decimal | None = None
    quantity_invoiced: Decimal = ZERO
    quantity_returned: Decimal = ZERO

    @property
    def shipped(self) -> Decimal:
        return self.quantity if self.quantity_shipped is None else self.quantity_shipped

    @property
    def billable_quantity(self) -> Decimal:
        return self.shipped - self.quantity_returned


@dataclass(frozen=True)
class LineAmounts:
    """Derived amounts of one line, each rounded to 2 decimals."""
    gross_amount: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class PricedItem:
    """An item together with its computed amounts."""
    item: DocumentItem
    amounts: LineAmounts

    @property
    def product_id(self) -> str | None:
        return self.item.product_id

    @property
    def quantity(self) -> Decimal:
        return self.item.quantity


@dataclass(frozen=True)
class DocumentTotals:
    """Document-level totals.  ``payable_amount = tax_base + tax_amount``."""
    line_extension_amount: Decimal
    discount_amount: Decimal
    tax_base: Decimal
    tax_amount: Decimal
    payable_amount: Decimal


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Quotation:
    id: str
    number: str
    client_id: str
    vendor_id: str | None
    items: tuple[DocumentItem, ...] = field(default_factory=tuple)
    state: QuotationState = QuotationState.DRAFT
    issue_date: date | None = None
    expiry_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Order:
    id: str
    number: str
    client_id: str
    vendor_id: str | None
    items: tuple[DocumentItem, ...] = field(default_factory=tuple)
    state: OrderState = OrderState.DRAFT
    quotation_id: str | None = None
    site_id: str | None = None
    issue_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Delivery:
    """A remission.  ``invoice_id`` is the single-use consolidation guard."""
    id: str
    number: str
    client_id: str
    items: tuple[DeliveryItem, ...] = field(default_factory=tuple)
    state: DeliveryState = DeliveryState.DRAFT
    order_id: str | None = None
    vendor_id: str | None = None
    site_id: str | None = None
    invoice_id: str | None = None
    shipment_status: ShipmentStatus = ShipmentStatus.TOTAL
    issue_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Invoice:
    id: str
    number: str
    client_id: str
    vendor_id: str | None
    site_code: str
    delivery_ids: tuple[str, ...]
    lines: tuple[PricedItem, ...]
    totals: DocumentTotals
    issue_date: date
    due_date: date
    notes: str | None = None
    state: InvoiceState = InvoiceState.DRAFT
    currency: str = "COP"
    stamping_reference: str | None = None
    stamped_at: datetime | None = None
    void_reason: str | None = None


@dataclass(frozen=True)
class CreditNote:
    id: str
    number: str
    invoice_id: str
    client_id: str
    reason: str
    lines: tuple[PricedItem, ...]
    totals: DocumentTotals
    issue_date: date
    state: CreditNoteState = CreditNoteState.RECORDED


# ---------------------------------------------------------------------------
# Consolidation output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConsolidationWarning:
    """A recoverable, item-level issue found while consolidating."""
    code: str
    message: str
    delivery_number: str | None = None
    product_id: str | None = None


@dataclass(frozen=True)
class InvoiceDraft:
    """A consolidated invoice ready to be persisted atomically."""
    client_id: str
    vendor_id: str | None
    site_code: str
    delivery_ids: tuple[str, ...]
    delivery_numbers: tuple[str, ...]
    lines: tuple[PricedItem, ...]
    totals: DocumentTotals
    issue_date: date
    due_date: date
    notes: str
    currency: str = "COP"
    warnings: tuple[ConsolidationWarning, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivityLogEntry:
    """Immutable audit record of a user-visible action."""
    timestamp: datetime
    actor: str
    action: str
    entity_type: str
    entity_id: str
    label: str
    details: dict[str, Any] = field(default_factory=dict)
