"""
sales_services.repository -- SQLAlchemy persistence collaborator.

Responsibility:
    Implements the ``SalesRepository`` port over the kernel reference tables
    (parties, sites, products) and the sales-cycle document tables.  Every
    read returns a fresh copy from the database; every write flushes inside
    the caller's transaction.

Architecture position:
    Services layer -- imperative shell.  Imports ORM models from
    ``sales_kernel.models`` and ``sales_modules.sales_cycle.orm``.

Invariants enforced:
    - Reads use ``populate_existing`` so a document already in the identity
      map is refreshed from the database, never served stale.
    - ``persist_consolidated_invoice`` locks the deliveries
      (``SELECT ... FOR UPDATE``), re-checks their ``invoice_id`` guard,
      inserts the invoice and stamps the deliveries in the same transaction.
    - Never calls ``commit()``; the orchestrator owns the boundary.

Failure modes:
    - SQLAlchemyError -> ExternalServiceError("repository", operation, ...).
    - AlreadyConsolidatedError when the guard re-check fails under lock.
    - NotFoundError when ``update_state`` targets a missing document.
    - IllegalTransitionError when ``update_state`` finds the locked row no
      longer in the state the caller validated against.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sales_kernel.domain.amounts import ZERO
from sales_kernel.domain.documents import (
    CreditNote,
    Delivery,
    EntityType,
    Invoice,
    InvoiceDraft,
    Order,
    Quotation,
)
from sales_kernel.domain.field_aliases import state_from_legacy
from sales_kernel.domain.parties import EntityKind, Party, PartyKind, Product, Site
from sales_kernel.exceptions import (
    AlreadyConsolidatedError,
    ExternalServiceError,
    IllegalTransitionError,
    NotFoundError,
)
from sales_kernel.logging_config import get_logger
from sales_kernel.models.party import PartyModel, ProductModel, SiteModel
from sales_kernel.services.sequence_service import SequenceService
from sales_modules.sales_cycle.orm import (
    CreditNoteModel,
    DeliveryModel,
    InvoiceModel,
    OrderModel,
    QuotationModel,
)

logger = get_logger("services.repository")

_DOCUMENT_MODELS: dict[EntityType, type] = {
    EntityType.QUOTATION: QuotationModel,
    EntityType.ORDER: OrderModel,
    EntityType.DELIVERY: DeliveryModel,
    EntityType.INVOICE: InvoiceModel,
    EntityType.CREDIT_NOTE: CreditNoteModel,
}


def _pk(value: str | None) -> int | None:
    """Surrogate ids are numeric strings; anything else cannot match a row."""
    text = "" if value is None else str(value).strip()
    return int(text) if text.isdigit() else None


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "repository_operation_failed",
            extra={"operation": operation, "error": str(exc)},
        )
        raise ExternalServiceError("repository", operation, str(exc)) from exc


class SqlSalesRepository:
    """
    SalesRepository backed by a SQLAlchemy session.

    Usage:
        repository = SqlSalesRepository(session)
        delivery = repository.get_delivery("17")
    """

    def __init__(self, session: Session, created_by: str = "system"):
        self._session = session
        self._created_by = created_by
        self._sequences = SequenceService(session)

    @property
    def session(self) -> Session:
        return self._session

    # =========================================================================
    # Reference data
    # =========================================================================

    def load_parties(self, kind: PartyKind) -> list[Party]:
        with _store_errors("load_parties"):
            rows = self._session.scalars(
                select(PartyModel)
                .where(PartyModel.kind == kind.value)
                .order_by(PartyModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def load_sites(self) -> list[Site]:
        with _store_errors("load_sites"):
            rows = self._session.scalars(select(SiteModel).order_by(SiteModel.id)).all()
            return [row.to_dto() for row in rows]

    def load_products(self) -> list[Product]:
        with _store_errors("load_products"):
            rows = self._session.scalars(
                select(ProductModel).order_by(ProductModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def load_catalog(self, kind: EntityKind) -> list[Party] | list[Site] | list[Product]:
        if kind is EntityKind.CLIENT:
            return self.load_parties(PartyKind.CLIENT)
        if kind is EntityKind.VENDOR:
            return self.load_parties(PartyKind.VENDOR)
        if kind is EntityKind.SITE:
            return self.load_sites()
        return self.load_products()

    def add_party(self, party: Party) -> Party:
        with _store_errors("add_party"):
            row = PartyModel.from_dto(party, self._created_by)
            self._session.add(row)
            self._session.flush()
            return row.to_dto()

    def add_site(self, site: Site) -> Site:
        with _store_errors("add_site"):
            row = SiteModel.from_dto(site, self._created_by)
            self._session.add(row)
            self._session.flush()
            return row.to_dto()

    def add_product(self, product: Product) -> Product:
        with _store_errors("add_product"):
            row = ProductModel.from_dto(product, self._created_by)
            self._session.add(row)
            self._session.flush()
            return row.to_dto()

    # =========================================================================
    # Document reads
    # =========================================================================

    def _get(self, model: type, document_id: str, operation: str) -> Any:
        pk = _pk(document_id)
        if pk is None:
            return None
        with _store_errors(operation):
            row = self._session.get(model, pk, populate_existing=True)
            return row.to_dto() if row is not None else None

    def get_quotation(self, quotation_id: str) -> Quotation | None:
        return self._get(QuotationModel, quotation_id, "get_quotation")

    def get_order(self, order_id: str) -> Order | None:
        return self._get(OrderModel, order_id, "get_order")

    def get_delivery(self, delivery_id: str) -> Delivery | None:
        return self._get(DeliveryModel, delivery_id, "get_delivery")

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        return self._get(InvoiceModel, invoice_id, "get_invoice")

    def get_credit_note(self, credit_note_id: str) -> CreditNote | None:
        return self._get(CreditNoteModel, credit_note_id, "get_credit_note")

    def list_deliveries_for_order(self, order_id: str) -> list[Delivery]:
        pk = _pk(order_id)
        if pk is None:
            return []
        with _store_errors("list_deliveries_for_order"):
            rows = self._session.scalars(
                select(DeliveryModel)
                .where(DeliveryModel.order_id == pk)
                .order_by(DeliveryModel.id)
                .execution_options(populate_existing=True)
            ).all()
            return [row.to_dto() for row in rows]

    def list_credit_notes_for_invoice(self, invoice_id: str) -> list[CreditNote]:
        pk = _pk(invoice_id)
        if pk is None:
            return []
        with _store_errors("list_credit_notes_for_invoice"):
            rows = self._session.scalars(
                select(CreditNoteModel)
                .where(CreditNoteModel.invoice_id == pk)
                .order_by(CreditNoteModel.id)
                .execution_options(populate_existing=True)
            ).all()
            return [row.to_dto() for row in rows]

    # =========================================================================
    # Numbering
    # =========================================================================

    def document_number_exists(self, entity_type: EntityType, number: str) -> bool:
        model = _DOCUMENT_MODELS[entity_type]
        with _store_errors("document_number_exists"):
            return bool(
                self._session.scalar(select(exists().where(model.number == number)))
            )

    def next_sequence_value(self, sequence_name: str) -> int:
        with _store_errors("next_sequence_value"):
            return self._sequences.next_value(sequence_name)

    # =========================================================================
    # Document writes
    # =========================================================================

    def _insert(self, row: Any, operation: str) -> Any:
        with _store_errors(operation):
            self._session.add(row)
            self._session.flush()
            logger.debug(
                "document_persisted",
                extra={"operation": operation, "document_id": str(row.id), "number": row.number},
            )
            return row.to_dto()

    def persist_quotation(self, quotation: Quotation) -> Quotation:
        return self._insert(
            QuotationModel.from_dto(quotation, self._created_by), "persist_quotation"
        )

    def persist_order(self, order: Order) -> Order:
        return self._insert(OrderModel.from_dto(order, self._created_by), "persist_order")

    def persist_delivery(self, delivery: Delivery) -> Delivery:
        return self._insert(
            DeliveryModel.from_dto(delivery, self._created_by), "persist_delivery"
        )

    def persist_credit_note(self, credit_note: CreditNote) -> CreditNote:
        return self._insert(
            CreditNoteModel.from_dto(credit_note, self._created_by), "persist_credit_note"
        )

    def persist_consolidated_invoice(self, draft: InvoiceDraft, number: str) -> Invoice:
        """
        Insert the invoice and stamp its deliveries atomically.

        The deliveries are locked and their ``invoice_id`` re-checked here,
        so a concurrent consolidation that won the race is detected even
        though the engine already checked the guard on its own read.
        """
        pks = [_pk(delivery_id) for delivery_id in draft.delivery_ids]
        with _store_errors("persist_consolidated_invoice"):
            rows = self._session.scalars(
                select(DeliveryModel)
                .where(DeliveryModel.id.in_([pk for pk in pks if pk is not None]))
                .order_by(DeliveryModel.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).all()
            by_id = {str(row.id): row for row in rows}

            for delivery_id in draft.delivery_ids:
                row = by_id.get(delivery_id)
                if row is None:
                    raise NotFoundError("delivery", delivery_id)
                if row.invoice_id is not None:
                    raise AlreadyConsolidatedError(row.number, str(row.invoice_id))

            invoice = InvoiceModel.from_draft(draft, number, self._created_by)
            self._session.add(invoice)
            self._session.flush()

            product_ids = {line.item.product_id for line in draft.lines}
            product_codes = {line.item.product_code for line in draft.lines if line.item.product_code}
            for row in rows:
                row.invoice = invoice
                row.updated_by = self._created_by
                for item in row.items:
                    if item.product_id in product_ids or item.product_code in product_codes:
                        shipped = item.quantity if item.quantity_shipped is None else item.quantity_shipped
                        billable = shipped - (item.quantity_returned or ZERO)
                        if billable > ZERO:
                            item.quantity_invoiced = billable
            self._session.flush()

            logger.info(
                "consolidated_invoice_persisted",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": number,
                    "delivery_numbers": [row.number for row in rows],
                },
            )
            return invoice.to_dto()

    def update_state(
        self,
        entity_type: EntityType,
        entity_id: str,
        new_state: Enum,
        expected_state: Enum | None = None,
        **changes: Any,
    ) -> Any:
        """
        Lock the document row, set its state and any extra columns.

        When ``expected_state`` is given the locked row must still be in it;
        otherwise another caller moved the document first and
        ``IllegalTransitionError`` is raised without writing.
        """
        model = _DOCUMENT_MODELS[entity_type]
        pk = _pk(entity_id)
        with _store_errors("update_state"):
            row = (
                self._session.get(model, pk, with_for_update=True, populate_existing=True)
                if pk is not None
                else None
            )
            if row is None:
                raise NotFoundError(entity_type.value, entity_id)
            if expected_state is not None:
                current = state_from_legacy(entity_type, row.state)
                if current is not expected_state:
                    logger.warning(
                        "state_changed_concurrently",
                        extra={
                            "entity_type": entity_type.value,
                            "entity_id": entity_id,
                            "expected_state": expected_state.value,
                            "current_state": current.value,
                        },
                    )
                    raise IllegalTransitionError(
                        entity_type.value, current.value, new_state.value, row.number
                    )
            for column, value in changes.items():
                if not hasattr(row, column):
                    raise ValueError(f"{model.__tablename__} has no column '{column}'")
                setattr(row, column, value)
            row.state = new_state.value
            self._session.flush()
            return row.to_dto()
