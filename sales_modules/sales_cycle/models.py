"""
Sales-Cycle Request and Result Models (``sales_modules.sales_cycle.models``).

Responsibility
--------------
Frozen dataclasses for what callers hand to ``SalesCycleService`` (delivery
line selections, credit-note return lines) and what it hands back from a
consolidation.  The documents themselves live in
``sales_kernel.domain.documents``.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Quantities and prices are ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sales_kernel.domain.documents import ConsolidationWarning, Invoice, Order, Quotation
from sales_kernel.logging_config import get_logger

logger = get_logger("modules.sales_cycle.models")


@dataclass(frozen=True)
class LineSelection:
    """An order line picked for a delivery.

    ``quantity=None`` ships everything that remains on the order line.
    """
    product_id: str
    quantity: Decimal | None = None


@dataclass(frozen=True)
class CreditNoteLineRequest:
    """A returned product.  Pricing defaults to the invoice line."""
    product_id: str
    quantity: Decimal
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ConsolidationResult:
    """The persisted invoice plus the item-level warnings found on the way."""
    invoice: Invoice
    warnings: tuple[ConsolidationWarning, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


@dataclass(frozen=True)
class QuotationApproval:
    """An approved quotation and the order spawned from it, if any."""
    quotation: Quotation
    order: Order | None = None
