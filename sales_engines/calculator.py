"""
Financial Calculator - line amounts and document totals.

Pure functions with no I/O.  Every derived monetary value is rounded to 2
decimals immediately after it is computed (half away from zero), so the
tax base submitted to the tax authority is itself an exact cent value:

    gross    = round(unit_price * quantity)
    subtotal = round(unit_price * quantity * (1 - discount% / 100))
    discount = gross - subtotal
    tax      = round(subtotal * tax% / 100)
    total    = subtotal + tax

Document totals sum the rounded line values:

    line_extension_amount = sum(gross)
    discount_amount       = sum(discount)
    tax_base              = sum(subtotal)
    tax_amount            = sum(tax)
    payable_amount        = tax_base + tax_amount

Usage:
    from sales_engines.calculator import compute_line, compute_totals
    from sales_kernel.domain.documents import DocumentItem
    from decimal import Decimal

    item = DocumentItem("P1", Decimal("5"), Decimal("100"), tax_percent=Decimal("19"))
    compute_line(item).total      # Decimal("595.00")
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sales_kernel.domain.amounts import HUNDRED, ZERO, round_money
from sales_kernel.domain.documents import (
    DocumentItem,
    DocumentTotals,
    LineAmounts,
    PricedItem,
)
from sales_kernel.exceptions import InvalidLineError
from sales_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")


def validate_item(item: DocumentItem) -> None:
    """
    Reject items the calculator cannot price.

    Raises:
        InvalidLineError: quantity or unit price not positive, discount
            outside [0, 100], or negative tax percent.
    """
    if not isinstance(item.quantity, Decimal) or item.quantity <= ZERO:
        raise InvalidLineError("quantity", item.quantity, item.product_id)
    if not isinstance(item.unit_price, Decimal) or item.unit_price <= ZERO:
        raise InvalidLineError("unit_price", item.unit_price, item.product_id)
    if item.discount_percent < ZERO or item.discount_percent > HUNDRED:
        raise InvalidLineError("discount_percent", item.discount_percent, item.product_id)
    if item.tax_percent < ZERO:
        raise InvalidLineError("tax_percent", item.tax_percent, item.product_id)


def compute_line(item: DocumentItem) -> LineAmounts:
    """Compute the rounded amounts of one line."""
    validate_item(item)

    base = item.unit_price * item.quantity
    gross = round_money(base)
    subtotal = round_money(base * (HUNDRED - item.discount_percent) / HUNDRED)
    discount = gross - subtotal
    tax = round_money(subtotal * item.tax_percent / HUNDRED)

    return LineAmounts(
        gross_amount=gross,
        discount_amount=discount,
        subtotal=subtotal,
        tax_amount=tax,
        total=subtotal + tax,
    )


def priced(item: DocumentItem) -> PricedItem:
    """Pair an item with its computed amounts."""
    return PricedItem(item=item, amounts=compute_line(item))


def totals_of(lines: Iterable[PricedItem]) -> DocumentTotals:
    """Document totals over already-priced lines."""
    gross = discount = subtotal = tax = round_money(ZERO)
    for line in lines:
        gross += line.amounts.gross_amount
        discount += line.amounts.discount_amount
        subtotal += line.amounts.subtotal
        tax += line.amounts.tax_amount
    return DocumentTotals(
        line_extension_amount=gross,
        discount_amount=discount,
        tax_base=subtotal,
        tax_amount=tax,
        payable_amount=subtotal + tax,
    )


def compute_totals(items: Iterable[DocumentItem]) -> DocumentTotals:
    """Document totals over raw items (each validated and priced)."""
    lines = [priced(item) for item in items]
    totals = totals_of(lines)
    logger.debug(
        "document_totals_computed",
        extra={
            "line_count": len(lines),
            "tax_base": totals.tax_base,
            "tax_amount": totals.tax_amount,
            "payable_amount": totals.payable_amount,
        },
    )
    return totals
