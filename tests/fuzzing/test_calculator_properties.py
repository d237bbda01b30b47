"""
Hypothesis property tests for the line calculator and consolidation merge.

Properties:
- Every derived amount has exactly two decimal places
- subtotal = gross - discount; total = subtotal + tax
- Document totals equal the sum of their lines
- Merging N deliveries of one product bills the sum of their quantities
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from sales_engines.calculator import compute_line, priced, totals_of
from sales_engines.consolidation import ConsolidationEngine
from sales_engines.resolver import IdentifierResolver
from sales_kernel.domain.documents import (
    Delivery,
    DeliveryItem,
    DeliveryState,
    DocumentItem,
    EntityType,
)
from sales_kernel.domain.parties import Party, PartyKind, Product

quantities = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2,
    allow_nan=False, allow_infinity=False,
)
prices = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=4,
    allow_nan=False, allow_infinity=False,
)
percents = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100"), places=2,
    allow_nan=False, allow_infinity=False,
)
tax_rates = st.sampled_from([Decimal("0"), Decimal("5"), Decimal("19")])


@st.composite
def document_items(draw):
    return DocumentItem(
        product_id=str(draw(st.integers(min_value=1, max_value=50))),
        quantity=draw(quantities),
        unit_price=draw(prices),
        discount_percent=draw(percents),
        tax_percent=draw(tax_rates),
    )


class TestLineProperties:

    @given(item=document_items())
    @settings(max_examples=300)
    def test_amounts_are_rounded_to_cents(self, item):
        amounts = compute_line(item)
        for value in (
            amounts.gross_amount,
            amounts.discount_amount,
            amounts.subtotal,
            amounts.tax_amount,
            amounts.total,
        ):
            assert value.as_tuple().exponent == -2

    @given(item=document_items())
    @settings(max_examples=300)
    def test_line_identities(self, item):
        amounts = compute_line(item)
        assert amounts.subtotal == amounts.gross_amount - amounts.discount_amount
        assert amounts.total == amounts.subtotal + amounts.tax_amount
        assert amounts.discount_amount >= 0
        assert amounts.subtotal <= amounts.gross_amount

    @given(item=document_items())
    @settings(max_examples=200)
    def test_full_discount_bills_nothing(self, item):
        free = DocumentItem(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_percent=Decimal("100"),
            tax_percent=item.tax_percent,
        )
        amounts = compute_line(free)
        assert amounts.subtotal == Decimal("0.00")
        assert amounts.tax_amount == Decimal("0.00")


class TestTotalsProperties:

    @given(items=st.lists(document_items(), min_size=1, max_size=20))
    @settings(max_examples=200)
    def test_totals_are_sum_of_lines(self, items):
        lines = [priced(item) for item in items]
        totals = totals_of(lines)

        assert totals.tax_base == sum((line.amounts.subtotal for line in lines), Decimal("0"))
        assert totals.tax_amount == sum((line.amounts.tax_amount for line in lines), Decimal("0"))
        assert totals.payable_amount == totals.tax_base + totals.tax_amount
        assert totals.line_extension_amount - totals.discount_amount == totals.tax_base


class TestConsolidationProperties:

    @given(shipped=st.lists(quantities, min_size=1, max_size=8))
    @settings(
        max_examples=100,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_merged_quantity_is_sum(self, shipped, memory_repository, deterministic_clock):
        if not memory_repository.parties:
            memory_repository.add_party(
                Party(id="1", kind=PartyKind.CLIENT, legacy_code="900123456",
                      display_name="Acme", credit_term_days=30)
            )
            memory_repository.add_product(
                Product(id="20", code="P-100", display_name="Widget")
            )
        delivery_ids = []
        for quantity in shipped:
            delivery = memory_repository.persist_delivery(
                Delivery(
                    id="",
                    number=f"REM-{len(memory_repository.documents[EntityType.DELIVERY]) + 1}",
                    client_id="900123456",
                    items=(
                        DeliveryItem(
                            product_id="20",
                            quantity=quantity,
                            unit_price=Decimal("10.00"),
                            tax_percent=Decimal("19"),
                        ),
                    ),
                    state=DeliveryState.DELIVERED,
                )
            )
            delivery_ids.append(delivery.id)

        engine = ConsolidationEngine(
            memory_repository,
            IdentifierResolver(memory_repository),
            clock=deterministic_clock,
        )
        draft = engine.consolidate(delivery_ids, date(2024, 3, 1))

        assert len(draft.lines) == 1
        assert draft.lines[0].quantity == sum(shipped, Decimal("0"))
        assert draft.totals == totals_of(draft.lines)
