"""
Consolidation Engine - merge several deliveries of one client into one invoice.

Algorithm (``ConsolidationEngine.consolidate``):

    1. De-duplicate the delivery ids and load every delivery fresh.  A
       delivery that already carries an ``invoice_id`` is rejected.
    2. Resolve each delivery's client; more than one distinct client is a
       ``MixedClientError``.
    3. An inactive client is an ``InactiveClientError``.
    4. The first delivery's vendor is resolved; when it cannot be resolved
       or is inactive it is omitted with a warning.
    5. Each item is keyed by product id, recovered through the product code
       when the id is missing or unknown.  Items that stay unresolved, or
       whose billable quantity is not positive, are dropped with a warning.
    6. A missing or zero unit price falls back to the originating order
       line; discount and tax percent are inherited from that line when the
       delivery line has none.  No positive price is a ``MissingPriceError``.
    7. Items with the same product are merged by summing quantities and
       recomputing the line from the merged quantity.
    8. Totals come from the Financial Calculator over the merged lines.
    9. The due date is the issue date plus the client's credit term, or the
       configured default when the client has none.

The engine is pure with respect to deliveries: it never mutates them.
Persisting the draft and stamping the deliveries with the new invoice id
is the repository's job, in one transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sales_engines.calculator import priced, totals_of
from sales_engines.resolver import (
    IdentifierResolver,
    MatchStrategy,
    ResolutionHints,
    match_canonical_code,
    match_normalized_code,
    match_surrogate_id,
    resolve_in,
)
from sales_kernel.domain.amounts import ZERO
from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.domain.documents import (
    ConsolidationWarning,
    Delivery,
    DeliveryItem,
    DocumentItem,
    InvoiceDraft,
    Order,
)
from sales_kernel.domain.parties import EntityKind, Party, Product
from sales_kernel.exceptions import (
    AlreadyConsolidatedError,
    EmptyConsolidationError,
    InactiveClientError,
    MissingPriceError,
    MixedClientError,
    NotFoundError,
)
from sales_kernel.logging_config import get_logger
from sales_kernel.ports import SalesRepository

logger = get_logger("engines.consolidation")

_BY_ID = ((MatchStrategy.SURROGATE_ID, match_surrogate_id),)
_BY_CODE = (
    (MatchStrategy.CANONICAL_CODE, match_canonical_code),
    (MatchStrategy.NORMALIZED_CODE, match_normalized_code),
)

WARN_VENDOR_OMITTED = "vendor_omitted"
WARN_PRODUCT_UNRESOLVED = "product_unresolved"
WARN_NOTHING_TO_BILL = "nothing_to_bill"
WARN_PRICING_CONFLICT = "pricing_conflict"


@dataclass
class _MergedLine:
    product: Product
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    tax_percent: Decimal
    description: str | None

    def to_item(self) -> DocumentItem:
        return DocumentItem(
            product_id=self.product.id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            tax_percent=self.tax_percent,
            product_code=self.product.code,
            description=self.description or self.product.display_name,
        )


def consolidation_notes(delivery_numbers: Sequence[str], max_length: int) -> str:
    """Human-readable invoice notes listing the consolidated deliveries."""
    count = len(delivery_numbers)
    noun = "delivery" if count == 1 else "deliveries"
    notes = f"Consolidated invoice of {count} {noun}: {', '.join(delivery_numbers)}"
    if len(notes) > max_length:
        notes = notes[: max_length - 3] + "..."
    return notes


class ConsolidationEngine:
    """
    Builds an ``InvoiceDraft`` from a set of deliveries.

    Reads go through the repository and resolver every call; the engine
    keeps no state between consolidations.
    """

    def __init__(
        self,
        repository: SalesRepository,
        resolver: IdentifierResolver,
        clock: Clock | None = None,
        default_credit_term_days: int = 30,
        default_site_code: str = "001",
        notes_max_length: int = 150,
        currency: str = "COP",
    ):
        self._repository = repository
        self._resolver = resolver
        self._clock = clock or SystemClock()
        self._default_credit_term_days = default_credit_term_days
        self._default_site_code = default_site_code
        self._notes_max_length = notes_max_length
        self._currency = currency

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def consolidate(
        self,
        delivery_ids: Sequence[str],
        issue_date: date | None = None,
    ) -> InvoiceDraft:
        ids = list(dict.fromkeys(str(d).strip() for d in delivery_ids if str(d).strip()))
        if not ids:
            raise EmptyConsolidationError("no deliveries selected")

        deliveries = [self._load_delivery(delivery_id) for delivery_id in ids]
        numbers = tuple(d.number for d in deliveries)
        logger.info(
            "consolidation_started",
            extra={"delivery_ids": ids, "delivery_numbers": list(numbers)},
        )

        for delivery in deliveries:
            if delivery.invoice_id:
                raise AlreadyConsolidatedError(delivery.number, delivery.invoice_id)

        client = self._single_client(deliveries)
        if not client.active:
            raise InactiveClientError(client.id, client.code)

        warnings: list[ConsolidationWarning] = []
        vendor_id = self._vendor_id(deliveries[0], warnings)

        products = list(self._repository.load_catalog(EntityKind.PRODUCT))
        orders: dict[str, Order | None] = {}
        merged: dict[str, _MergedLine] = {}

        for delivery in deliveries:
            for item in delivery.items:
                self._merge_item(delivery, item, products, orders, merged, warnings)

        if not merged:
            raise EmptyConsolidationError("no billable lines after filtering")

        lines = tuple(priced(line.to_item()) for line in merged.values())
        totals = totals_of(lines)

        issued_on = issue_date or self._clock.today()
        term = client.credit_term_days
        if term is None or term <= 0:
            term = self._default_credit_term_days

        draft = InvoiceDraft(
            client_id=client.id,
            vendor_id=vendor_id,
            site_code=self._site_code(deliveries[0]),
            delivery_ids=tuple(d.id for d in deliveries),
            delivery_numbers=numbers,
            lines=lines,
            totals=totals,
            issue_date=issued_on,
            due_date=issued_on + timedelta(days=term),
            notes=consolidation_notes(numbers, self._notes_max_length),
            currency=self._currency,
            warnings=tuple(warnings),
        )

        logger.info(
            "consolidation_completed",
            extra={
                "client_id": client.id,
                "delivery_count": len(deliveries),
                "line_count": len(lines),
                "payable_amount": totals.payable_amount,
                "warning_count": len(warnings),
            },
        )
        return draft

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _load_delivery(self, delivery_id: str) -> Delivery:
        delivery = self._repository.get_delivery(delivery_id)
        if delivery is None:
            raise NotFoundError("delivery", delivery_id)
        return delivery

    def _single_client(self, deliveries: list[Delivery]) -> Party:
        clients: dict[str, Party] = {}
        for delivery in deliveries:
            party = self._resolver.require_code(EntityKind.CLIENT, delivery.client_id)
            clients.setdefault(party.id, party)
        if len(clients) > 1:
            raise MixedClientError(
                [p.code for p in clients.values()],
                [d.number for d in deliveries],
            )
        return next(iter(clients.values()))

    def _vendor_id(
        self, delivery: Delivery, warnings: list[ConsolidationWarning]
    ) -> str | None:
        if not delivery.vendor_id:
            return None
        result = self._resolver.resolve_code(EntityKind.VENDOR, delivery.vendor_id)
        if result.entity is not None and result.entity.active:
            return result.entity.id
        reason = "inactive" if result.entity is not None else "not found"
        warnings.append(
            ConsolidationWarning(
                code=WARN_VENDOR_OMITTED,
                message=f"Vendor {delivery.vendor_id} {reason}; omitted from invoice",
                delivery_number=delivery.number,
            )
        )
        logger.warning(
            "consolidation_vendor_omitted",
            extra={"vendor_id": delivery.vendor_id, "reason": reason},
        )
        return None

    def _site_code(self, delivery: Delivery) -> str:
        if not delivery.site_id:
            return self._default_site_code
        return self._resolver.site_code(delivery.site_id)

    def _resolve_product(self, item: DeliveryItem, products: list[Product]) -> Product | None:
        if item.product_id:
            found = resolve_in(products, item.product_id, strategies=_BY_ID).entity
            if found is not None:
                return found
        if item.product_code:
            hints = ResolutionHints(canonical_code=item.product_code)
            return resolve_in(
                products,
                item.product_code,
                hints,
                width=self._resolver.code_width,
                strategies=_BY_CODE,
            ).entity
        return None

    def _order_line(
        self,
        delivery: Delivery,
        product_id: str,
        orders: dict[str, Order | None],
    ) -> DocumentItem | None:
        if not delivery.order_id:
            return None
        if delivery.order_id not in orders:
            orders[delivery.order_id] = self._repository.get_order(delivery.order_id)
        order = orders[delivery.order_id]
        if order is None:
            return None
        for line in order.items:
            if line.product_id == product_id:
                return line
        return None

    def _merge_item(
        self,
        delivery: Delivery,
        item: DeliveryItem,
        products: list[Product],
        orders: dict[str, Order | None],
        merged: dict[str, _MergedLine],
        warnings: list[ConsolidationWarning],
    ) -> None:
        product = self._resolve_product(item, products)
        if product is None:
            warnings.append(
                ConsolidationWarning(
                    code=WARN_PRODUCT_UNRESOLVED,
                    message=(
                        f"Item {item.product_id or item.product_code or '?'} on delivery "
                        f"{delivery.number} has no resolvable product; skipped"
                    ),
                    delivery_number=delivery.number,
                    product_id=item.product_id,
                )
            )
            logger.warning(
                "consolidation_item_dropped",
                extra={
                    "delivery_number": delivery.number,
                    "product_id": item.product_id,
                    "product_code": item.product_code,
                },
            )
            return

        quantity = item.billable_quantity
        if quantity <= ZERO:
            warnings.append(
                ConsolidationWarning(
                    code=WARN_NOTHING_TO_BILL,
                    message=(
                        f"Product {product.code} on delivery {delivery.number} "
                        f"has no billable quantity; skipped"
                    ),
                    delivery_number=delivery.number,
                    product_id=product.id,
                )
            )
            return

        order_line = self._order_line(delivery, product.id, orders)
        unit_price = item.unit_price
        discount = item.discount_percent
        tax = item.tax_percent
        if order_line is not None:
            if unit_price is None or unit_price <= ZERO:
                unit_price = order_line.unit_price
            if not discount:
                discount = order_line.discount_percent
            if not tax:
                tax = order_line.tax_percent
        if unit_price is None or unit_price <= ZERO:
            raise MissingPriceError(product.id, delivery.number)

        existing = merged.get(product.id)
        if existing is None:
            merged[product.id] = _MergedLine(
                product=product,
                quantity=quantity,
                unit_price=unit_price,
                discount_percent=discount,
                tax_percent=tax,
                description=item.description,
            )
            return

        existing.quantity += quantity
        if (unit_price, discount, tax) != (
            existing.unit_price,
            existing.discount_percent,
            existing.tax_percent,
        ):
            warnings.append(
                ConsolidationWarning(
                    code=WARN_PRICING_CONFLICT,
                    message=(
                        f"Product {product.code} on delivery {delivery.number} is priced "
                        f"differently; first occurrence pricing kept"
                    ),
                    delivery_number=delivery.number,
                    product_id=product.id,
                )
            )
            logger.warning(
                "consolidation_pricing_conflict",
                extra={
                    "delivery_number": delivery.number,
                    "product_id": product.id,
                    "kept_unit_price": existing.unit_price,
                    "ignored_unit_price": unit_price,
                },
            )
