"""
Sales-Cycle Module.

Handles quotations, orders, deliveries (remissions), consolidated invoices
and credit notes.

Pricing, identifier resolution and consolidation come from shared engines.
``SalesCycleService`` lives in ``sales_modules.sales_cycle.service`` and is
imported from there; the repository imports this package's ORM.
"""

from sales_modules.sales_cycle.models import (
    ConsolidationResult,
    CreditNoteLineRequest,
    LineSelection,
    QuotationApproval,
)
from sales_modules.sales_cycle.workflows import (
    CREDIT_NOTE_WORKFLOW,
    DELIVERY_WORKFLOW,
    INVOICE_WORKFLOW,
    ORDER_WORKFLOW,
    QUOTATION_WORKFLOW,
    WORKFLOWS,
)

__all__ = [
    "ConsolidationResult",
    "CreditNoteLineRequest",
    "LineSelection",
    "QuotationApproval",
    "CREDIT_NOTE_WORKFLOW",
    "DELIVERY_WORKFLOW",
    "INVOICE_WORKFLOW",
    "ORDER_WORKFLOW",
    "QUOTATION_WORKFLOW",
    "WORKFLOWS",
]
