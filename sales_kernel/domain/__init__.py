"""
Pure domain layer.

Immutable value objects and pure helpers with NO dependencies on the ORM,
the database or I/O.
"""

from sales_kernel.domain.amounts import round_money, to_decimal
from sales_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from sales_kernel.domain.documents import (
    ActivityLogEntry,
    ConsolidationWarning,
    CreditNote,
    CreditNoteState,
    Delivery,
    DeliveryItem,
    DeliveryState,
    DocumentItem,
    DocumentTotals,
    EntityType,
    Invoice,
    InvoiceDraft,
    InvoiceState,
    LineAmounts,
    Order,
    OrderState,
    PricedItem,
    Quotation,
    QuotationState,
    ShipmentStatus,
)
from sales_kernel.domain.parties import (
    Actor,
    ActorRole,
    EntityKind,
    Party,
    PartyKind,
    Product,
    Site,
)
from sales_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "round_money",
    "to_decimal",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ActivityLogEntry",
    "ConsolidationWarning",
    "CreditNote",
    "CreditNoteState",
    "Delivery",
    "DeliveryItem",
    "DeliveryState",
    "DocumentItem",
    "DocumentTotals",
    "EntityType",
    "Invoice",
    "InvoiceDraft",
    "InvoiceState",
    "LineAmounts",
    "Order",
    "OrderState",
    "PricedItem",
    "Quotation",
    "QuotationState",
    "ShipmentStatus",
    "Actor",
    "ActorRole",
    "EntityKind",
    "Party",
    "PartyKind",
    "Product",
    "Site",
    "Guard",
    "Transition",
    "Workflow",
]
