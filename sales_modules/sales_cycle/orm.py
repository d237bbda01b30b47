"""
Sales-Cycle ORM Models (``sales_modules.sales_cycle.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the sales cycle.  Maps the frozen
document dataclasses of ``sales_kernel.domain.documents`` to tables:
quotations, orders, deliveries, invoices and credit notes, each with an
owned item table.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``sales_kernel.db`` and the
kernel domain.  MUST NOT be imported by ``sales_kernel`` (except through
``import_all_orm_models``).

Invariants enforced
-------------------
* Document numbers are unique per document type.
* States are stored as canonical enum values; legacy single-letter codes are
  accepted on read (``state_from_legacy``).
* ``deliveries.invoice_id`` is the single-use consolidation guard; it is
  written in the same transaction that inserts the invoice.
* Items are owned by their document (cascade ``all, delete-orphan``) and
  keep their insertion order through ``position``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sales_kernel.db.base import TrackedBase
from sales_kernel.db.types import LongText, Money, Name, Percent, Quantity, ShortCode
from sales_kernel.domain.amounts import ZERO, round_money
from sales_kernel.domain.documents import (
    CreditNote,
    Delivery,
    DeliveryItem,
    DocumentItem,
    DocumentTotals,
    EntityType,
    Invoice,
    InvoiceDraft,
    LineAmounts,
    Order,
    PricedItem,
    Quotation,
    ShipmentStatus,
)
from sales_kernel.domain.field_aliases import state_from_legacy


def _int_id(value: str | None) -> int | None:
    return int(value) if value not in (None, "") else None


def _str_id(value: int | None) -> str | None:
    return str(value) if value is not None else None


# ---------------------------------------------------------------------------
# Shared item columns
# ---------------------------------------------------------------------------


class ItemColumnsMixin:
    """Columns every document item carries."""

    position: Mapped[int] = mapped_column(nullable=False, default=0)
    product_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    product_code: Mapped[ShortCode | None] = mapped_column(nullable=True)
    description: Mapped[LongText | None] = mapped_column(nullable=True)
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_price: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    discount_percent: Mapped[Percent] = mapped_column(nullable=False, default=ZERO)
    tax_percent: Mapped[Percent] = mapped_column(nullable=False, default=ZERO)

    def _item_dto(self) -> DocumentItem:
        return DocumentItem(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            tax_percent=self.tax_percent,
            product_code=self.product_code,
            description=self.description,
        )

    @staticmethod
    def _item_columns(item: DocumentItem, position: int) -> dict:
        return {
            "position": position,
            "product_id": item.product_id,
            "product_code": item.product_code,
            "description": item.description,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "discount_percent": item.discount_percent,
            "tax_percent": item.tax_percent,
        }


class AmountColumnsMixin:
    """Computed line amounts, stored so issued documents never re-price."""

    gross_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    discount_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    subtotal: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    tax_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    total: Mapped[Money] = mapped_column(nullable=False, default=ZERO)

    def _amounts_dto(self) -> LineAmounts:
        return LineAmounts(
            gross_amount=round_money(self.gross_amount),
            discount_amount=round_money(self.discount_amount),
            subtotal=round_money(self.subtotal),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
        )

    @staticmethod
    def _amount_columns(amounts: LineAmounts) -> dict:
        return {
            "gross_amount": amounts.gross_amount,
            "discount_amount": amounts.discount_amount,
            "subtotal": amounts.subtotal,
            "tax_amount": amounts.tax_amount,
            "total": amounts.total,
        }


class TotalsColumnsMixin:
    """Document-level totals."""

    line_extension_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    discount_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    tax_base: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    tax_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)
    payable_amount: Mapped[Money] = mapped_column(nullable=False, default=ZERO)

    def _totals_dto(self) -> DocumentTotals:
        return DocumentTotals(
            line_extension_amount=round_money(self.line_extension_amount),
            discount_amount=round_money(self.discount_amount),
            tax_base=round_money(self.tax_base),
            tax_amount=round_money(self.tax_amount),
            payable_amount=round_money(self.payable_amount),
        )

    @staticmethod
    def _totals_columns(totals: DocumentTotals) -> dict:
        return {
            "line_extension_amount": totals.line_extension_amount,
            "discount_amount": totals.discount_amount,
            "tax_base": totals.tax_base,
            "tax_amount": totals.tax_amount,
            "payable_amount": totals.payable_amount,
        }


# ---------------------------------------------------------------------------
# 1. Quotations
# ---------------------------------------------------------------------------


class QuotationModel(TrackedBase):
    """
    ORM model for quotations.

    Guarantees:
        - number is unique (uq_quotation_number).
        - expiry_date is informational; expiring is an explicit transition.
    """

    __tablename__ = "quotations"

    __table_args__ = (
        UniqueConstraint("number", name="uq_quotation_number"),
        Index("idx_quotation_client", "client_id"),
        Index("idx_quotation_state", "state"),
    )

    number: Mapped[ShortCode] = mapped_column(nullable=False)
    client_id: Mapped[ShortCode] = mapped_column(nullable=False)
    vendor_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="draft")
    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)

    items: Mapped[list[QuotationItemModel]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="QuotationItemModel.position",
    )

    def to_dto(self) -> Quotation:
        """Convert ORM model to frozen dataclass."""
        return Quotation(
            id=str(self.id),
            number=self.number,
            client_id=self.client_id,
            vendor_id=self.vendor_id,
            items=tuple(item._item_dto() for item in self.items),
            state=state_from_legacy(EntityType.QUOTATION, self.state),
            issue_date=self.issue_date,
            expiry_date=self.expiry_date,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: Quotation, created_by: str = "system") -> QuotationModel:
        """Create ORM model from frozen dataclass (id assigned on insert)."""
        return cls(
            number=dto.number,
            client_id=dto.client_id,
            vendor_id=dto.vendor_id,
            state=dto.state.value,
            issue_date=dto.issue_date,
            expiry_date=dto.expiry_date,
            notes=dto.notes,
            created_by=created_by,
            items=[
                QuotationItemModel(**QuotationItemModel._item_columns(item, position))
                for position, item in enumerate(dto.items)
            ],
        )

    def __repr__(self) -> str:
        return f"<QuotationModel {self.number} [{self.state}]>"


class QuotationItemModel(ItemColumnsMixin, TrackedBase):
    """A quotation line."""

    __tablename__ = "quotation_items"

    __table_args__ = (
        Index("idx_quotation_item_parent", "quotation_id"),
    )

    quotation_id: Mapped[int] = mapped_column(ForeignKey("quotations.id"), nullable=False)
    quotation: Mapped[QuotationModel] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# 2. Orders
# ---------------------------------------------------------------------------


class OrderModel(TrackedBase):
    """
    ORM model for sales orders.

    Guarantees:
        - number is unique (uq_order_number).
        - quotation_id links back to the quotation the order was spawned from.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("number", name="uq_order_number"),
        Index("idx_order_client", "client_id"),
        Index("idx_order_state", "state"),
    )

    number: Mapped[ShortCode] = mapped_column(nullable=False)
    client_id: Mapped[ShortCode] = mapped_column(nullable=False)
    vendor_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    quotation_id: Mapped[int | None] = mapped_column(
        ForeignKey("quotations.id"), nullable=True
    )
    site_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="draft")
    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)

    items: Mapped[list[OrderItemModel]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItemModel.position",
    )

    def to_dto(self) -> Order:
        """Convert ORM model to frozen dataclass."""
        return Order(
            id=str(self.id),
            number=self.number,
            client_id=self.client_id,
            vendor_id=self.vendor_id,
            items=tuple(item._item_dto() for item in self.items),
            state=state_from_legacy(EntityType.ORDER, self.state),
            quotation_id=_str_id(self.quotation_id),
            site_id=self.site_id,
            issue_date=self.issue_date,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: Order, created_by: str = "system") -> OrderModel:
        """Create ORM model from frozen dataclass (id assigned on insert)."""
        return cls(
            number=dto.number,
            client_id=dto.client_id,
            vendor_id=dto.vendor_id,
            quotation_id=_int_id(dto.quotation_id),
            site_id=dto.site_id,
            state=dto.state.value,
            issue_date=dto.issue_date,
            notes=dto.notes,
            created_by=created_by,
            items=[
                OrderItemModel(**OrderItemModel._item_columns(item, position))
                for position, item in enumerate(dto.items)
            ],
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.number} [{self.state}]>"


class OrderItemModel(ItemColumnsMixin, TrackedBase):
    """An order line."""

    __tablename__ = "order_items"

    __table_args__ = (
        Index("idx_order_item_parent", "order_id"),
    )

    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False)
    order: Mapped[OrderModel] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# 3. Invoices
# ---------------------------------------------------------------------------


class InvoiceModel(TotalsColumnsMixin, TrackedBase):
    """
    ORM model for consolidated invoices.

    Guarantees:
        - number is unique (uq_invoice_number).
        - stamping_reference and stamped_at are set only when the invoice
          moves to ``issued``.
        - deliveries lists every delivery stamped with this invoice's id.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("number", name="uq_invoice_number"),
        Index("idx_invoice_client", "client_id"),
        Index("idx_invoice_state", "state"),
    )

    number: Mapped[ShortCode] = mapped_column(nullable=False)
    client_id: Mapped[ShortCode] = mapped_column(nullable=False)
    vendor_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    site_code: Mapped[ShortCode] = mapped_column(nullable=False)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="draft")
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    stamping_reference: Mapped[Name | None] = mapped_column(nullable=True)
    stamped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    void_reason: Mapped[LongText | None] = mapped_column(nullable=True)

    items: Mapped[list[InvoiceItemModel]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItemModel.position",
    )
    deliveries: Mapped[list[DeliveryModel]] = relationship(
        back_populates="invoice",
        lazy="selectin",
        order_by="DeliveryModel.id",
    )

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=str(self.id),
            number=self.number,
            client_id=self.client_id,
            vendor_id=self.vendor_id,
            site_code=self.site_code,
            delivery_ids=tuple(str(d.id) for d in self.deliveries),
            lines=tuple(
                PricedItem(item=item._item_dto(), amounts=item._amounts_dto())
                for item in self.items
            ),
            totals=self._totals_dto(),
            issue_date=self.issue_date,
            due_date=self.due_date,
            notes=self.notes,
            state=state_from_legacy(EntityType.INVOICE, self.state),
            currency=self.currency,
            stamping_reference=self.stamping_reference,
            stamped_at=self.stamped_at,
            void_reason=self.void_reason,
        )

    @classmethod
    def from_draft(
        cls, draft: InvoiceDraft, number: str, created_by: str = "system"
    ) -> InvoiceModel:
        """Create a draft invoice row from a consolidation result."""
        return cls(
            number=number,
            client_id=draft.client_id,
            vendor_id=draft.vendor_id,
            site_code=draft.site_code,
            state="draft",
            issue_date=draft.issue_date,
            due_date=draft.due_date,
            notes=draft.notes,
            currency=draft.currency,
            created_by=created_by,
            items=[
                InvoiceItemModel(
                    **InvoiceItemModel._item_columns(line.item, position),
                    **InvoiceItemModel._amount_columns(line.amounts),
                )
                for position, line in enumerate(draft.lines)
            ],
            **cls._totals_columns(draft.totals),
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.number} [{self.state}]>"


class InvoiceItemModel(ItemColumnsMixin, AmountColumnsMixin, TrackedBase):
    """An invoice line with its computed amounts."""

    __tablename__ = "invoice_items"

    __table_args__ = (
        Index("idx_invoice_item_parent", "invoice_id"),
    )

    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    invoice: Mapped[InvoiceModel] = relationship(back_populates="items")


# ---------------------------------------------------------------------------
# 4. Deliveries
# ---------------------------------------------------------------------------


class DeliveryModel(TrackedBase):
    """
    ORM model for deliveries (remissions).

    Guarantees:
        - number is unique (uq_delivery_number).
        - invoice_id is NULL until the delivery is consolidated, then never
          changes.
    """

    __tablename__ = "deliveries"

    __table_args__ = (
        UniqueConstraint("number", name="uq_delivery_number"),
        Index("idx_delivery_client", "client_id"),
        Index("idx_delivery_order", "order_id"),
        Index("idx_delivery_invoice", "invoice_id"),
    )

    number: Mapped[ShortCode] = mapped_column(nullable=False)
    client_id: Mapped[ShortCode] = mapped_column(nullable=False)
    vendor_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True
    )
    site_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="draft")
    shipment_status: Mapped[ShortCode] = mapped_column(nullable=False, default="total")
    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)

    items: Mapped[list[DeliveryItemModel]] = relationship(
        back_populates="delivery",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DeliveryItemModel.position",
    )
    invoice: Mapped[InvoiceModel | None] = relationship(back_populates="deliveries")

    def to_dto(self) -> Delivery:
        """Convert ORM model to frozen dataclass."""
        return Delivery(
            id=str(self.id),
            number=self.number,
            client_id=self.client_id,
            items=tuple(item.to_dto() for item in self.items),
            state=state_from_legacy(EntityType.DELIVERY, self.state),
            order_id=_str_id(self.order_id),
            vendor_id=self.vendor_id,
            site_id=self.site_id,
            invoice_id=_str_id(self.invoice_id),
            shipment_status=ShipmentStatus(self.shipment_status),
            issue_date=self.issue_date,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: Delivery, created_by: str = "system") -> DeliveryModel:
        """Create ORM model from frozen dataclass (id assigned on insert)."""
        return cls(
            number=dto.number,
            client_id=dto.client_id,
            vendor_id=dto.vendor_id,
            order_id=_int_id(dto.order_id),
            invoice_id=_int_id(dto.invoice_id),
            site_id=dto.site_id,
            state=dto.state.value,
            shipment_status=dto.shipment_status.value,
            issue_date=dto.issue_date,
            notes=dto.notes,
            created_by=created_by,
            items=[
                DeliveryItemModel.from_dto(item, position)
                for position, item in enumerate(dto.items)
            ],
        )

    def __repr__(self) -> str:
        return f"<DeliveryModel {self.number} [{self.state}]>"


class DeliveryItemModel(ItemColumnsMixin, TrackedBase):
    """A delivery line with shipped, invoiced and returned quantities."""

    __tablename__ = "delivery_items"

    __table_args__ = (
        Index("idx_delivery_item_parent", "delivery_id"),
    )

    delivery_id: Mapped[int] = mapped_column(ForeignKey("deliveries.id"), nullable=False)
    quantity_shipped: Mapped[Quantity | None] = mapped_column(nullable=True)
    quantity_invoiced: Mapped[Quantity] = mapped_column(nullable=False, default=ZERO)
    quantity_returned: Mapped[Quantity] = mapped_column(nullable=False, default=ZERO)

    delivery: Mapped[DeliveryModel] = relationship(back_populates="items")

    def to_dto(self) -> DeliveryItem:
        return DeliveryItem(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            tax_percent=self.tax_percent,
            product_code=self.product_code,
            description=self.description,
            quantity_shipped=self.quantity_shipped,
            quantity_invoiced=self.quantity_invoiced,
            quantity_returned=self.quantity_returned,
        )

    @classmethod
    def from_dto(cls, dto: DeliveryItem, position: int = 0) -> DeliveryItemModel:
        return cls(
            **cls._item_columns(dto, position),
            quantity_shipped=dto.quantity_shipped,
            quantity_invoiced=dto.quantity_invoiced,
            quantity_returned=dto.quantity_returned,
        )


# ---------------------------------------------------------------------------
# 5. Credit notes
# ---------------------------------------------------------------------------


class CreditNoteModel(TotalsColumnsMixin, TrackedBase):
    """
    ORM model for credit notes.

    Guarantees:
        - number is unique (uq_credit_note_number).
        - state is always ``recorded``; rows are never updated.
    """

    __tablename__ = "credit_notes"

    __table_args__ = (
        UniqueConstraint("number", name="uq_credit_note_number"),
        Index("idx_credit_note_invoice", "invoice_id"),
    )

    number: Mapped[ShortCode] = mapped_column(nullable=False)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    client_id: Mapped[ShortCode] = mapped_column(nullable=False)
    reason: Mapped[LongText] = mapped_column(nullable=False)
    state: Mapped[ShortCode] = mapped_column(nullable=False, default="recorded")
    issue_date: Mapped[date] = mapped_column(nullable=False)

    items: Mapped[list[CreditNoteItemModel]] = relationship(
        back_populates="credit_note",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CreditNoteItemModel.position",
    )

    def to_dto(self) -> CreditNote:
        """Convert ORM model to frozen dataclass."""
        return CreditNote(
            id=str(self.id),
            number=self.number,
            invoice_id=str(self.invoice_id),
            client_id=self.client_id,
            reason=self.reason,
            lines=tuple(
                PricedItem(item=item._item_dto(), amounts=item._amounts_dto())
                for item in self.items
            ),
            totals=self._totals_dto(),
            issue_date=self.issue_date,
            state=state_from_legacy(EntityType.CREDIT_NOTE, self.state),
        )

    @classmethod
    def from_dto(cls, dto: CreditNote, created_by: str = "system") -> CreditNoteModel:
        """Create ORM model from frozen dataclass (id assigned on insert)."""
        return cls(
            number=dto.number,
            invoice_id=int(dto.invoice_id),
            client_id=dto.client_id,
            reason=dto.reason,
            state=dto.state.value,
            issue_date=dto.issue_date,
            created_by=created_by,
            items=[
                CreditNoteItemModel(
                    **CreditNoteItemModel._item_columns(line.item, position),
                    **CreditNoteItemModel._amount_columns(line.amounts),
                )
                for position, line in enumerate(dto.lines)
            ],
            **cls._totals_columns(dto.totals),
        )

    def __repr__(self) -> str:
        return f"<CreditNoteModel {self.number} -> invoice {self.invoice_id}>"


class CreditNoteItemModel(ItemColumnsMixin, AmountColumnsMixin, TrackedBase):
    """A credit-note line with its computed amounts."""

    __tablename__ = "credit_note_items"

    __table_args__ = (
        Index("idx_credit_note_item_parent", "credit_note_id"),
    )

    credit_note_id: Mapped[int] = mapped_column(
        ForeignKey("credit_notes.id"), nullable=False
    )
    credit_note: Mapped[CreditNoteModel] = relationship(back_populates="items")
