"""
Tests for SqlSalesRepository (sales_services.repository).

Round trips through the real ORM on the configured database (SQLite in
memory by default, DATABASE_URL otherwise).
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from sales_engines.calculator import priced, totals_of
from sales_kernel.domain.documents import (
    Delivery,
    DeliveryItem,
    DeliveryState,
    DocumentItem,
    EntityType,
    InvoiceDraft,
    InvoiceState,
    Order,
    OrderState,
    Quotation,
    ShipmentStatus,
)
from sales_kernel.domain.parties import EntityKind, PartyKind
from sales_kernel.exceptions import (
    AlreadyConsolidatedError,
    IllegalTransitionError,
    NotFoundError,
)
from sales_modules.sales_cycle.orm import DeliveryModel


def _delivery(repository, number="REM-1", client="900123456", **overrides) -> Delivery:
    values = dict(
        id="",
        number=number,
        client_id=client,
        items=(
            DeliveryItem(
                product_id="1",
                quantity=Decimal("5"),
                unit_price=Decimal("100.00"),
                tax_percent=Decimal("19"),
                product_code="P-100",
            ),
        ),
        state=DeliveryState.DELIVERED,
        issue_date=date(2024, 3, 1),
    )
    values.update(overrides)
    return repository.persist_delivery(Delivery(**values))


def _draft(delivery_ids, client_id="1") -> InvoiceDraft:
    lines = (
        priced(
            DocumentItem(
                product_id="1",
                quantity=Decimal("5"),
                unit_price=Decimal("100.00"),
                tax_percent=Decimal("19"),
                product_code="P-100",
            )
        ),
    )
    return InvoiceDraft(
        client_id=client_id,
        vendor_id=None,
        site_code="001",
        delivery_ids=tuple(delivery_ids),
        delivery_numbers=tuple(f"REM-{i}" for i in delivery_ids),
        lines=lines,
        totals=totals_of(lines),
        issue_date=date(2024, 3, 1),
        due_date=date(2024, 3, 31),
        notes="Consolida remisiones",
    )


class TestReferenceData:

    def test_parties_by_kind(self, repository, reference_data):
        clients = repository.load_parties(PartyKind.CLIENT)
        vendors = repository.load_parties(PartyKind.VENDOR)

        assert {c.legacy_code for c in clients} == {"900123456", "800987654", "700555111"}
        assert {v.legacy_code for v in vendors} == {"V-ANA", "V-OLD"}

    def test_party_fields_round_trip(self, repository, reference_data):
        acme = reference_data.clients["acme"]
        loaded = next(c for c in repository.load_parties(PartyKind.CLIENT) if c.id == acme.id)

        assert loaded == acme
        assert loaded.credit_term_days == 45

    def test_load_catalog_dispatches_by_kind(self, repository, reference_data):
        assert {s.code for s in repository.load_catalog(EntityKind.SITE)} == {"2", "BOD-N"}
        assert len(repository.load_catalog(EntityKind.PRODUCT)) == 3

    def test_product_without_cost(self, repository, reference_data):
        gizmo = next(p for p in repository.load_products() if p.code == "P-300")
        assert gizmo.last_cost is None


class TestDocumentRoundTrip:

    def test_quotation(self, repository):
        stored = repository.persist_quotation(
            Quotation(
                id="",
                number="COT-000001",
                client_id="900123456",
                vendor_id=None,
                items=(DocumentItem(product_id="1", quantity=Decimal("2")),),
                expiry_date=date(2024, 4, 1),
            )
        )

        loaded = repository.get_quotation(stored.id)
        assert loaded.number == "COT-000001"
        assert loaded.expiry_date == date(2024, 4, 1)
        assert loaded.items[0].quantity == Decimal("2")

    def test_order_items_keep_position(self, repository):
        stored = repository.persist_order(
            Order(
                id="",
                number="PED-000001",
                client_id="900123456",
                vendor_id=None,
                items=(
                    DocumentItem(product_id="2", quantity=Decimal("1")),
                    DocumentItem(product_id="1", quantity=Decimal("3")),
                ),
                state=OrderState.CONFIRMED,
            )
        )

        loaded = repository.get_order(stored.id)
        assert [i.product_id for i in loaded.items] == ["2", "1"]
        assert loaded.state is OrderState.CONFIRMED

    def test_delivery(self, repository):
        stored = _delivery(repository, shipment_status=ShipmentStatus.PARTIAL)

        loaded = repository.get_delivery(stored.id)
        assert loaded.shipment_status is ShipmentStatus.PARTIAL
        assert loaded.invoice_id is None
        assert loaded.items[0].shipped == Decimal("5")

    def test_deliveries_for_order(self, repository):
        order = repository.persist_order(
            Order(id="", number="PED-1", client_id="900123456", vendor_id=None)
        )
        first = _delivery(repository, "REM-1", order_id=order.id)
        second = _delivery(repository, "REM-2", order_id=order.id)
        _delivery(repository, "REM-3")

        found = repository.list_deliveries_for_order(order.id)
        assert [d.id for d in found] == [first.id, second.id]

    def test_missing_and_non_numeric_ids(self, repository):
        assert repository.get_invoice("999") is None
        assert repository.get_delivery("REM-1") is None
        assert repository.list_deliveries_for_order("abc") == []

    def test_reads_are_fresh(self, repository, session):
        stored = _delivery(repository)
        repository.get_delivery(stored.id)

        session.execute(
            update(DeliveryModel)
            .where(DeliveryModel.id == int(stored.id))
            .values(state="in_transit")
            .execution_options(synchronize_session=False)
        )

        assert repository.get_delivery(stored.id).state is DeliveryState.IN_TRANSIT

    def test_legacy_state_letters_accepted_on_read(self, repository, session):
        stored = _delivery(repository)
        session.execute(
            update(DeliveryModel)
            .where(DeliveryModel.id == int(stored.id))
            .values(state="T")
            .execution_options(synchronize_session=False)
        )

        assert repository.get_delivery(stored.id).state is DeliveryState.IN_TRANSIT


class TestNumbering:

    def test_document_number_exists(self, repository):
        _delivery(repository, "REM-000001")

        assert repository.document_number_exists(EntityType.DELIVERY, "REM-000001")
        assert not repository.document_number_exists(EntityType.DELIVERY, "REM-000002")
        assert not repository.document_number_exists(EntityType.INVOICE, "REM-000001")

    def test_sequences_are_independent(self, repository):
        assert repository.next_sequence_value("invoice") == 1
        assert repository.next_sequence_value("invoice") == 2
        assert repository.next_sequence_value("credit_note") == 1


class TestConsolidatedPersist:

    def test_invoice_links_deliveries(self, repository):
        first = _delivery(repository, "REM-1")
        second = _delivery(repository, "REM-2")

        invoice = repository.persist_consolidated_invoice(
            _draft([first.id, second.id]), "FC-000001"
        )

        assert invoice.state is InvoiceState.DRAFT
        assert invoice.number == "FC-000001"
        assert set(invoice.delivery_ids) == {first.id, second.id}
        assert invoice.totals.payable_amount == Decimal("595.00")
        for delivery_id in (first.id, second.id):
            delivery = repository.get_delivery(delivery_id)
            assert delivery.invoice_id == invoice.id
            assert delivery.items[0].quantity_invoiced == Decimal("5")

    def test_guard_rechecked(self, repository):
        delivery = _delivery(repository)
        repository.persist_consolidated_invoice(_draft([delivery.id]), "FC-000001")

        with pytest.raises(AlreadyConsolidatedError) as exc_info:
            repository.persist_consolidated_invoice(_draft([delivery.id]), "FC-000002")

        assert exc_info.value.delivery_number == "REM-1"
        assert not repository.document_number_exists(EntityType.INVOICE, "FC-000002")

    def test_missing_delivery(self, repository):
        with pytest.raises(NotFoundError):
            repository.persist_consolidated_invoice(_draft(["404"]), "FC-000001")


class TestUpdateState:

    def test_state_and_columns(self, repository):
        delivery = _delivery(repository)
        invoice = repository.persist_consolidated_invoice(_draft([delivery.id]), "FC-000001")

        updated = repository.update_state(
            EntityType.INVOICE,
            invoice.id,
            InvoiceState.ISSUED,
            stamping_reference="CUFE-FC-000001",
            updated_by="u-billing",
        )

        assert updated.state is InvoiceState.ISSUED
        assert updated.stamping_reference == "CUFE-FC-000001"
        assert repository.get_invoice(invoice.id).state is InvoiceState.ISSUED

    def test_unknown_column(self, repository):
        delivery = _delivery(repository)
        with pytest.raises(ValueError):
            repository.update_state(
                EntityType.DELIVERY, delivery.id, DeliveryState.IN_TRANSIT, colour="red"
            )

    def test_missing_document(self, repository):
        with pytest.raises(NotFoundError):
            repository.update_state(EntityType.ORDER, "77", OrderState.SENT)

    def test_expected_state_still_current(self, repository):
        delivery = _delivery(repository)

        updated = repository.update_state(
            EntityType.DELIVERY,
            delivery.id,
            DeliveryState.IN_TRANSIT,
            expected_state=DeliveryState.DRAFT,
        )

        assert updated.state is DeliveryState.IN_TRANSIT

    def test_state_moved_by_another_writer(self, repository, session):
        delivery = _delivery(repository)
        session.execute(
            update(DeliveryModel)
            .where(DeliveryModel.id == int(delivery.id))
            .values(state="T")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(IllegalTransitionError) as exc_info:
            repository.update_state(
                EntityType.DELIVERY,
                delivery.id,
                DeliveryState.IN_TRANSIT,
                expected_state=DeliveryState.DRAFT,
                updated_by="u-logistics",
            )
        assert exc_info.value.from_state == "in_transit"
        assert exc_info.value.document_number == "REM-1"
        assert repository.get_delivery(delivery.id).state is DeliveryState.IN_TRANSIT
