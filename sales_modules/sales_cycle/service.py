"""
Sales-Cycle Module Service - Orchestrates the quotation-to-credit-note flow.

Thin glue layer that:
1. Calls IdentifierResolver to turn whatever identifier a caller holds into
   one client, salesperson, site or product
2. Calls the Financial Calculator to price every line
3. Calls ConsolidationEngine to merge deliveries into one invoice
4. Calls WorkflowExecutor for every state change
5. Records an activity-log entry after each successful operation

All computation lives in engines.  All persistence goes through the
repository.  This service owns the transaction boundary: it commits on
success and rolls back on any exception before re-raising it.

Usage:
    service = SalesCycleService(session, clock=clock, stamping_gateway=gateway)
    result = service.consolidate_deliveries_into_invoice(["7", "9"], actor)
    service.stamp_invoice(result.invoice.id, actor)
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from sales_config import SalesConfig, get_active_config
from sales_engines.calculator import priced, totals_of, validate_item
from sales_engines.consolidation import ConsolidationEngine
from sales_engines.resolver import IdentifierResolver
from sales_kernel.domain.amounts import ZERO
from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.domain.documents import (
    CreditNote,
    Delivery,
    DeliveryItem,
    DeliveryState,
    DocumentItem,
    EntityType,
    Invoice,
    InvoiceState,
    Order,
    OrderState,
    Quotation,
    QuotationState,
    ShipmentStatus,
)
from sales_kernel.domain.parties import Actor, EntityKind, PartyKind
from sales_kernel.exceptions import (
    ClientMismatchError,
    CreditNoteAgainstVoidInvoiceError,
    DuplicateDocumentNumberError,
    EmptyDocumentError,
    ExternalServiceError,
    IllegalTransitionError,
    InactiveClientError,
    InactivePartyError,
    InvalidLineError,
    NotFoundError,
    OrderLineNotFoundError,
    ProductNotOnInvoiceError,
    ReturnQuantityExceededError,
    ShipmentExceedsOrderError,
    UnauthorizedTransitionError,
)
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.ports import ActivitySink, SalesRepository, StampingGateway
from sales_kernel.services.activity_log import ActivityAuditEmitter, BoundedActivityLog
from sales_modules.sales_cycle.models import (
    ConsolidationResult,
    CreditNoteLineRequest,
    LineSelection,
    QuotationApproval,
)
from sales_modules.sales_cycle.workflows import INVOICE_WORKFLOW
from sales_services.display_cache import DisplayCache, cache_key
from sales_services.repository import SqlSalesRepository
from sales_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.sales_cycle.service")

_DELIVERABLE_ORDER_STATES = (
    OrderState.CONFIRMED,
    OrderState.IN_PROCESS,
    OrderState.PARTIALLY_DELIVERED,
)


def _quantities_by_product(items: Sequence[DocumentItem]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for item in items:
        if item.product_id is None:
            continue
        totals[item.product_id] = totals.get(item.product_id, ZERO) + item.quantity
    return totals


class SalesCycleService:
    """
    Orchestrates the sales cycle through engines, workflows and the repository.

    Engine composition:
    - IdentifierResolver: party, site and product lookups
    - ConsolidationEngine: deliveries -> invoice draft
    - WorkflowExecutor: whitelisted state transitions on fresh reads
    - ActivityAuditEmitter: bounded, user-visible activity log

    Transaction boundary: this service commits on success, rolls back on
    failure.  The repository only flushes.
    """

    def __init__(
        self,
        session: Session,
        config: SalesConfig | None = None,
        clock: Clock | None = None,
        repository: SalesRepository | None = None,
        stamping_gateway: StampingGateway | None = None,
        activity_sink: ActivitySink | None = None,
        display_cache: DisplayCache | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._repository = repository or SqlSalesRepository(session)
        self._stamping = stamping_gateway

        self._resolver = IdentifierResolver(
            self._repository, code_width=self._config.site_code_width
        )
        self._consolidation = ConsolidationEngine(
            self._repository,
            self._resolver,
            clock=self._clock,
            default_credit_term_days=self._config.default_credit_term_days,
            default_site_code=self._config.default_site_code,
            notes_max_length=self._config.invoice_notes_max_length,
            currency=self._config.currency,
        )
        self._workflow = WorkflowExecutor(self._repository, clock=self._clock)
        self._audit = ActivityAuditEmitter(
            activity_sink or BoundedActivityLog(self._config.activity_log_capacity),
            self._clock,
        )
        self._cache = display_cache or DisplayCache(self._clock)

    @property
    def activity_log(self) -> ActivitySink:
        return self._audit.sink

    @property
    def display_cache(self) -> DisplayCache:
        return self._cache

    @property
    def resolver(self) -> IdentifierResolver:
        return self._resolver

    # =========================================================================
    # Plumbing
    # =========================================================================

    @contextmanager
    def _unit_of_work(self, operation: str, actor: Actor) -> Iterator[None]:
        with LogContext.bind(actor_id=actor.id):
            logger.info(f"{operation}_started")
            try:
                yield
                self._session.commit()
            except Exception:
                self._session.rollback()
                logger.warning(f"{operation}_rolled_back", exc_info=True)
                raise
            logger.info(f"{operation}_committed")

    def _number(self, entity_type: EntityType, explicit: str | None = None) -> str:
        if explicit:
            number = explicit.strip()
        else:
            value = self._repository.next_sequence_value(entity_type.value)
            number = self._config.numbering_for(entity_type.value).render(
                value, self._clock.today().year
            )
        if self._repository.document_number_exists(entity_type, number):
            raise DuplicateDocumentNumberError(entity_type.value, number)
        return number

    def _party_code(self, kind: EntityKind, candidate: object) -> str:
        return self._resolver.require(kind, candidate).code

    def _stored_party_code(self, kind: EntityKind, code: object) -> str:
        return self._resolver.require_code(kind, code).code

    def _record(
        self,
        actor: Actor,
        action: str,
        entity_type: EntityType,
        document: Any,
        **details: Any,
    ) -> None:
        self._audit.record(
            actor,
            action,
            entity_type.value,
            document.id,
            document.number,
            details,
        )
        state = getattr(document, "state", None)
        self._cache.put_confirmed(
            cache_key(entity_type.value, document.id),
            {"number": document.number, "state": state.value if state else None},
        )

    def _validated_items(
        self, entity_type: EntityType, items: Sequence[DocumentItem]
    ) -> tuple[DocumentItem, ...]:
        if not items:
            raise EmptyDocumentError(entity_type.value)
        for item in items:
            validate_item(item)
        return tuple(items)

    def _transition(
        self,
        operation: str,
        entity_type: EntityType,
        entity_id: str,
        target: Enum | str,
        actor: Actor,
        context: Any = None,
        **changes: Any,
    ) -> Any:
        with self._unit_of_work(operation, actor):
            before = self._workflow.validate(entity_type, entity_id, target, actor, context)
            updated = self._workflow.execute(
                entity_type, entity_id, target, actor, context, **changes
            )
        self._record(
            actor,
            operation,
            entity_type,
            updated,
            from_state=before.from_state.value,
            to_state=updated.state.value,
        )
        return updated

    # =========================================================================
    # Quotations
    # =========================================================================

    def create_quotation(
        self,
        client_id: str,
        items: Sequence[DocumentItem],
        actor: Actor,
        vendor_id: str | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
        number: str | None = None,
    ) -> Quotation:
        """Create a DRAFT quotation; client and salesperson stored by legacy code."""
        with self._unit_of_work("create_quotation", actor):
            lines = self._validated_items(EntityType.QUOTATION, items)
            quotation = self._repository.persist_quotation(
                Quotation(
                    id="",
                    number=self._number(EntityType.QUOTATION, number),
                    client_id=self._party_code(EntityKind.CLIENT, client_id),
                    vendor_id=(
                        self._party_code(EntityKind.VENDOR, vendor_id) if vendor_id else None
                    ),
                    items=lines,
                    state=QuotationState.DRAFT,
                    issue_date=self._clock.today(),
                    expiry_date=expiry_date,
                    notes=notes,
                )
            )
        self._record(actor, "quotation_created", EntityType.QUOTATION, quotation,
                     item_count=len(quotation.items))
        return quotation

    def send_quotation(self, quotation_id: str, actor: Actor) -> Quotation:
        return self._transition(
            "send_quotation", EntityType.QUOTATION, quotation_id, QuotationState.SENT, actor
        )

    def approve_quotation(
        self,
        quotation_id: str,
        actor: Actor,
        product_ids: Sequence[str] | None = None,
        site_id: str | None = None,
    ) -> QuotationApproval:
        """
        Approve a SENT quotation.

        With ``product_ids`` an order is spawned in SENT, numbered
        ``<order prefix>-<quotation number>`` and seeded with those lines.
        An empty selection is an ``EmptyDocumentError``.
        """
        with self._unit_of_work("approve_quotation", actor):
            quotation = self._workflow.execute(
                EntityType.QUOTATION, quotation_id, QuotationState.APPROVED, actor
            )
            order = None
            if product_ids is not None:
                order = self._spawn_order(quotation, product_ids, site_id)

        self._record(actor, "approve_quotation", EntityType.QUOTATION, quotation,
                     spawned_order=order.number if order else None)
        if order is not None:
            self._record(actor, "order_created", EntityType.ORDER, order,
                         quotation_number=quotation.number)
        return QuotationApproval(quotation=quotation, order=order)

    def _spawn_order(
        self, quotation: Quotation, product_ids: Sequence[str], site_id: str | None
    ) -> Order:
        prefix = self._config.numbering_for(EntityType.ORDER.value).prefix
        number = f"{prefix}-{quotation.number}" if prefix else quotation.number
        wanted = {str(p).strip() for p in product_ids}
        items = tuple(item for item in quotation.items if item.product_id in wanted)
        if not items:
            raise EmptyDocumentError(EntityType.ORDER.value, number)
        if self._repository.document_number_exists(EntityType.ORDER, number):
            raise DuplicateDocumentNumberError(EntityType.ORDER.value, number)
        return self._repository.persist_order(
            Order(
                id="",
                number=number,
                client_id=self._stored_party_code(EntityKind.CLIENT, quotation.client_id),
                vendor_id=(
                    self._stored_party_code(EntityKind.VENDOR, quotation.vendor_id)
                    if quotation.vendor_id
                    else None
                ),
                items=items,
                state=OrderState.SENT,
                quotation_id=quotation.id,
                site_id=self._resolver.require(EntityKind.SITE, site_id).id if site_id else None,
                issue_date=self._clock.today(),
                notes=f"From quotation {quotation.number}",
            )
        )

    def reject_quotation(self, quotation_id: str, actor: Actor) -> Quotation:
        return self._transition(
            "reject_quotation", EntityType.QUOTATION, quotation_id, QuotationState.REJECTED, actor
        )

    def reopen_quotation(self, quotation_id: str, actor: Actor) -> Quotation:
        """Explicitly move a REJECTED or EXPIRED quotation back to DRAFT."""
        return self._transition(
            "reopen_quotation", EntityType.QUOTATION, quotation_id, QuotationState.DRAFT, actor
        )

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(
        self,
        client_id: str,
        items: Sequence[DocumentItem],
        actor: Actor,
        vendor_id: str | None = None,
        site_id: str | None = None,
        notes: str | None = None,
        number: str | None = None,
    ) -> Order:
        """Create a DRAFT order directly, without a quotation."""
        with self._unit_of_work("create_order", actor):
            lines = self._validated_items(EntityType.ORDER, items)
            order = self._repository.persist_order(
                Order(
                    id="",
                    number=self._number(EntityType.ORDER, number),
                    client_id=self._party_code(EntityKind.CLIENT, client_id),
                    vendor_id=(
                        self._party_code(EntityKind.VENDOR, vendor_id) if vendor_id else None
                    ),
                    items=lines,
                    state=OrderState.DRAFT,
                    site_id=(
                        self._resolver.require(EntityKind.SITE, site_id).id if site_id else None
                    ),
                    issue_date=self._clock.today(),
                    notes=notes,
                )
            )
        self._record(actor, "order_created", EntityType.ORDER, order,
                     item_count=len(order.items))
        return order

    def send_order(self, order_id: str, actor: Actor) -> Order:
        return self._transition("send_order", EntityType.ORDER, order_id, OrderState.SENT, actor)

    def confirm_order(self, order_id: str, actor: Actor) -> Order:
        return self._transition(
            "confirm_order", EntityType.ORDER, order_id, OrderState.CONFIRMED, actor
        )

    def start_order_processing(self, order_id: str, actor: Actor) -> Order:
        return self._transition(
            "start_order_processing", EntityType.ORDER, order_id, OrderState.IN_PROCESS, actor
        )

    def cancel_order(self, order_id: str, actor: Actor) -> Order:
        return self._transition(
            "cancel_order", EntityType.ORDER, order_id, OrderState.CANCELLED, actor
        )

    # =========================================================================
    # Deliveries
    # =========================================================================

    def create_delivery(
        self,
        order_id: str,
        actor: Actor,
        selections: Sequence[LineSelection] | None = None,
        site_id: str | None = None,
        number: str | None = None,
    ) -> Delivery:
        """
        Create a DRAFT delivery from a subset of order lines.

        Each selection ships its quantity, or everything that remains on the
        order line when no quantity is given.  Afterwards the order moves to
        PARTIALLY_DELIVERED or DELIVERED.
        """
        with self._unit_of_work("create_delivery", actor):
            order = self._repository.get_order(order_id)
            if order is None:
                raise NotFoundError(EntityType.ORDER.value, order_id)
            if order.state not in _DELIVERABLE_ORDER_STATES:
                raise IllegalTransitionError(
                    EntityType.ORDER.value,
                    order.state.value,
                    OrderState.PARTIALLY_DELIVERED.value,
                    order.number,
                )

            ordered = _quantities_by_product(order.items)
            shipped: dict[str, Decimal] = {}
            for previous in self._repository.list_deliveries_for_order(order.id):
                for item in previous.items:
                    if item.product_id is not None:
                        shipped[item.product_id] = shipped.get(item.product_id, ZERO) + item.shipped
            remaining = {pid: qty - shipped.get(pid, ZERO) for pid, qty in ordered.items()}

            requested = self._requested_quantities(order, selections, remaining)
            items = self._delivery_items(order, requested)

            left_after = {pid: remaining[pid] - requested.get(pid, ZERO) for pid in remaining}
            fully_delivered = all(qty <= ZERO for qty in left_after.values())
            target = OrderState.DELIVERED if fully_delivered else OrderState.PARTIALLY_DELIVERED
            if target is not order.state:
                self._workflow.validate(EntityType.ORDER, order.id, target, actor)

            resolved_site = site_id or order.site_id
            delivery = self._repository.persist_delivery(
                Delivery(
                    id="",
                    number=self._number(EntityType.DELIVERY, number),
                    client_id=order.client_id,
                    items=items,
                    state=DeliveryState.DRAFT,
                    order_id=order.id,
                    vendor_id=order.vendor_id,
                    site_id=(
                        self._resolver.require(EntityKind.SITE, resolved_site).id
                        if resolved_site
                        else None
                    ),
                    shipment_status=(
                        ShipmentStatus.TOTAL if fully_delivered else ShipmentStatus.PARTIAL
                    ),
                    issue_date=self._clock.today(),
                    notes=f"Order {order.number}",
                )
            )
            if target is not order.state:
                order = self._workflow.execute(EntityType.ORDER, order.id, target, actor)

        self._record(actor, "delivery_created", EntityType.DELIVERY, delivery,
                     order_number=order.number, shipment_status=delivery.shipment_status.value)
        self._cache.put_confirmed(
            cache_key(EntityType.ORDER.value, order.id),
            {"number": order.number, "state": order.state.value},
        )
        return delivery

    def _requested_quantities(
        self,
        order: Order,
        selections: Sequence[LineSelection] | None,
        remaining: dict[str, Decimal],
    ) -> dict[str, Decimal]:
        if selections is None:
            requested = {pid: qty for pid, qty in remaining.items() if qty > ZERO}
            if not requested:
                raise EmptyDocumentError(EntityType.DELIVERY.value)
            return requested

        requested: dict[str, Decimal] = {}
        for selection in selections:
            product_id = str(selection.product_id).strip()
            if product_id not in remaining:
                raise OrderLineNotFoundError(order.number, product_id)
            left = remaining[product_id] - requested.get(product_id, ZERO)
            quantity = left if selection.quantity is None else selection.quantity
            if quantity <= ZERO and selection.quantity is not None:
                raise InvalidLineError("quantity", selection.quantity, product_id)
            if quantity > left or quantity <= ZERO:
                raise ShipmentExceedsOrderError(
                    order.number, product_id, quantity, max(left, ZERO)
                )
            requested[product_id] = requested.get(product_id, ZERO) + quantity
        if not requested:
            raise EmptyDocumentError(EntityType.DELIVERY.value)
        return requested

    def _delivery_items(
        self, order: Order, requested: dict[str, Decimal]
    ) -> tuple[DeliveryItem, ...]:
        catalog = {p.id: p for p in self._repository.load_catalog(EntityKind.PRODUCT)}
        lines: dict[str, DocumentItem] = {}
        for line in order.items:
            if line.product_id is not None:
                lines.setdefault(line.product_id, line)

        items = []
        for product_id, quantity in requested.items():
            line = lines[product_id]
            unit_price = line.unit_price
            if unit_price is None or unit_price <= ZERO:
                product = catalog.get(product_id)
                unit_price = product.last_cost if product and product.last_cost else ZERO
            items.append(
                DeliveryItem(
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    discount_percent=line.discount_percent,
                    tax_percent=line.tax_percent,
                    product_code=line.product_code,
                    description=line.description,
                    quantity_shipped=quantity,
                )
            )
        return tuple(items)

    def dispatch_delivery(self, delivery_id: str, actor: Actor) -> Delivery:
        return self._transition(
            "dispatch_delivery", EntityType.DELIVERY, delivery_id, DeliveryState.IN_TRANSIT, actor
        )

    def mark_delivered(self, delivery_id: str, actor: Actor) -> Delivery:
        return self._transition(
            "mark_delivered", EntityType.DELIVERY, delivery_id, DeliveryState.DELIVERED, actor
        )

    # =========================================================================
    # Invoices
    # =========================================================================

    def consolidate_deliveries_into_invoice(
        self,
        delivery_ids: Sequence[str],
        actor: Actor,
        number: str | None = None,
    ) -> ConsolidationResult:
        """
        Merge deliveries of one client into one DRAFT invoice.

        Display-cache entries of the deliveries are staged PENDING before the
        store commits, then confirmed, or rolled back if anything fails.
        """
        staged = None
        try:
            with self._unit_of_work("consolidate_deliveries", actor):
                draft = self._consolidation.consolidate(delivery_ids, self._clock.today())
                invoice_number = self._number(EntityType.INVOICE, number)
                staged = self._cache.stage_many({
                    cache_key(EntityType.DELIVERY.value, delivery_id): {
                        "invoice_number": invoice_number,
                    }
                    for delivery_id in draft.delivery_ids
                })
                invoice = self._repository.persist_consolidated_invoice(draft, invoice_number)
        except Exception:
            if staged is not None:
                self._cache.rollback(staged)
            raise

        self._cache.confirm(staged, {
            cache_key(EntityType.DELIVERY.value, delivery_id): {
                "invoice_id": invoice.id,
                "invoice_number": invoice.number,
            }
            for delivery_id in invoice.delivery_ids
        })
        self._record(
            actor,
            "invoice_consolidated",
            EntityType.INVOICE,
            invoice,
            delivery_numbers=list(draft.delivery_numbers),
            payable_amount=invoice.totals.payable_amount,
            warnings=[w.message for w in draft.warnings],
        )
        return ConsolidationResult(invoice=invoice, warnings=draft.warnings)

    def stamp_invoice(self, invoice_id: str, actor: Actor) -> Invoice:
        """
        Submit a DRAFT invoice to the stamping service.

        Success moves it to ISSUED with the stamping reference.  Any failure,
        including a timeout or a rejection, raises ``ExternalServiceError``
        and leaves the invoice in DRAFT.  There is no automatic retry.
        """
        with self._unit_of_work("stamp_invoice", actor):
            invoice = self._repository.get_invoice(invoice_id)
            if invoice is None:
                raise NotFoundError(EntityType.INVOICE.value, invoice_id)
            if invoice.state is not InvoiceState.DRAFT:
                raise IllegalTransitionError(
                    EntityType.INVOICE.value,
                    invoice.state.value,
                    InvoiceState.ISSUED.value,
                    invoice.number,
                )
            edge = INVOICE_WORKFLOW.find(InvoiceState.DRAFT.value, InvoiceState.ISSUED.value)
            if not edge.permits(actor.role.value):
                raise UnauthorizedTransitionError(
                    EntityType.INVOICE.value, edge.action, actor.role.value, invoice.number
                )
            self._require_active_parties(invoice)

            receipt = self._call_stamping(invoice, actor)
            issued = self._workflow.execute(
                EntityType.INVOICE,
                invoice.id,
                InvoiceState.ISSUED,
                actor,
                context={"receipt": receipt, "parties_active": True},
                stamping_reference=receipt.reference,
                stamped_at=receipt.stamped_at or self._clock.now(),
            )

        self._record(actor, "invoice_stamped", EntityType.INVOICE, issued,
                     stamping_reference=issued.stamping_reference)
        return issued

    def _require_active_parties(self, invoice: Invoice) -> None:
        client = self._resolver.require(EntityKind.CLIENT, invoice.client_id)
        if not client.active:
            raise InactiveClientError(client.id, client.code)
        if invoice.vendor_id:
            vendor = self._resolver.resolve(EntityKind.VENDOR, invoice.vendor_id).entity
            if vendor is not None and not vendor.active:
                raise InactivePartyError(PartyKind.VENDOR.value, vendor.id, vendor.code)

    def _call_stamping(self, invoice: Invoice, actor: Actor):
        if self._stamping is None:
            raise ExternalServiceError(
                "stamping", "stamp_invoice", "no stamping gateway configured",
                document_number=invoice.number,
            )
        try:
            receipt = self._stamping.stamp_invoice(invoice)
        except ExternalServiceError as exc:
            self._audit.record(actor, "stamping_failed", EntityType.INVOICE.value,
                               invoice.id, invoice.number,
                               {"reason": exc.reason, "timed_out": exc.timed_out})
            raise
        except Exception as exc:
            self._audit.record(actor, "stamping_failed", EntityType.INVOICE.value,
                               invoice.id, invoice.number, {"reason": str(exc)})
            raise ExternalServiceError(
                "stamping", "stamp_invoice", str(exc) or type(exc).__name__,
                document_number=invoice.number,
            ) from exc
        if not receipt.accepted:
            self._audit.record(actor, "stamping_rejected", EntityType.INVOICE.value,
                               invoice.id, invoice.number, {"message": receipt.message})
            raise ExternalServiceError(
                "stamping", "stamp_invoice", receipt.message or "rejected by tax authority",
                document_number=invoice.number,
            )
        return receipt

    def void_invoice(self, invoice_id: str, actor: Actor, reason: str) -> Invoice:
        if not reason or not reason.strip():
            raise ValueError("A reason is required to void an invoice")
        return self._transition(
            "void_invoice", EntityType.INVOICE, invoice_id, InvoiceState.VOID, actor,
            void_reason=reason.strip(),
        )

    # =========================================================================
    # Credit notes
    # =========================================================================

    def issue_credit_note(
        self,
        invoice_id: str,
        items: Sequence[CreditNoteLineRequest],
        reason: str,
        actor: Actor,
        number: str | None = None,
        client_id: str | None = None,
    ) -> CreditNote:
        """
        Record a credit note returning products of an invoice.

        The cumulative credited quantity per product, across every credit
        note of the invoice, may not exceed the invoiced quantity.
        """
        if not reason or not reason.strip():
            raise ValueError("A reason is required for a credit note")
        with self._unit_of_work("issue_credit_note", actor):
            invoice = self._repository.get_invoice(invoice_id)
            if invoice is None:
                raise NotFoundError(EntityType.INVOICE.value, invoice_id)
            if invoice.state is InvoiceState.VOID:
                raise CreditNoteAgainstVoidInvoiceError(invoice.number)
            if client_id is not None:
                client = self._resolver.require(EntityKind.CLIENT, client_id)
                if client.id != invoice.client_id:
                    raise ClientMismatchError(invoice.number, invoice.client_id, client.id)
            if not items:
                raise EmptyDocumentError(EntityType.CREDIT_NOTE.value)

            lines = self._credit_note_lines(invoice, items)
            credit_note = self._repository.persist_credit_note(
                CreditNote(
                    id="",
                    number=self._number(EntityType.CREDIT_NOTE, number),
                    invoice_id=invoice.id,
                    client_id=invoice.client_id,
                    reason=reason.strip(),
                    lines=lines,
                    totals=totals_of(lines),
                    issue_date=self._clock.today(),
                )
            )

        self._record(actor, "credit_note_issued", EntityType.CREDIT_NOTE, credit_note,
                     invoice_number=invoice.number,
                     payable_amount=credit_note.totals.payable_amount)
        return credit_note

    def _credit_note_lines(
        self, invoice: Invoice, requests: Sequence[CreditNoteLineRequest]
    ) -> tuple:
        invoiced = _quantities_by_product([line.item for line in invoice.lines])
        invoice_lines: dict[str, DocumentItem] = {}
        for line in invoice.lines:
            invoice_lines.setdefault(line.product_id, line.item)

        returned: dict[str, Decimal] = {}
        for note in self._repository.list_credit_notes_for_invoice(invoice.id):
            for pid, qty in _quantities_by_product([line.item for line in note.lines]).items():
                returned[pid] = returned.get(pid, ZERO) + qty

        tolerance = self._config.return_quantity_tolerance
        requested: dict[str, Decimal] = {}
        lines = []
        for request in requests:
            product_id = str(request.product_id).strip()
            if product_id not in invoiced:
                raise ProductNotOnInvoiceError(invoice.number, product_id)
            if request.quantity is None or request.quantity <= ZERO:
                raise InvalidLineError("quantity", request.quantity, product_id)
            already = returned.get(product_id, ZERO) + requested.get(product_id, ZERO)
            if already + request.quantity > invoiced[product_id] + tolerance:
                raise ReturnQuantityExceededError(
                    invoice.number,
                    product_id,
                    invoiced[product_id],
                    already,
                    request.quantity,
                )
            requested[product_id] = requested.get(product_id, ZERO) + request.quantity

            source = invoice_lines[product_id]
            lines.append(
                priced(
                    DocumentItem(
                        product_id=product_id,
                        quantity=request.quantity,
                        unit_price=(
                            request.unit_price
                            if request.unit_price is not None
                            else source.unit_price
                        ),
                        discount_percent=source.discount_percent,
                        tax_percent=source.tax_percent,
                        product_code=source.product_code,
                        description=source.description,
                    )
                )
            )
        return tuple(lines)

    # =========================================================================
    # Generic transition
    # =========================================================================

    def transition(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        target_state: Enum | str,
        actor: Actor,
    ) -> Any:
        """Move any document along its workflow (e.g. ``SENT -> EXPIRED``)."""
        kind = entity_type if isinstance(entity_type, EntityType) else EntityType(entity_type)
        return self._transition("transition", kind, entity_id, target_state, actor)
