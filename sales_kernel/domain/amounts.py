"""
Decimal helpers for monetary and quantity values.

``round_money`` is the ONLY sanctioned rounding function for derived
amounts.  ``ROUND_HALF_UP`` on ``Decimal`` rounds ties away from zero, which
is the rule the invoicing authority applies.  Floats are never accepted.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to ``decimal_places`` using ``rounding``.

    Applied immediately after every derived value (subtotal, tax, total) so
    rounding never accumulates across steps.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: object, default: Decimal | None = None) -> Decimal | None:
    """
    Coerce ``value`` to ``Decimal`` without passing through ``float``.

    ``None``, empty strings and unparseable text return ``default``.  Floats
    are converted through ``str`` so ``0.1`` stays ``Decimal("0.1")``.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return default
    text = str(value).strip()
    if not text:
        return default
    try:
        return Decimal(text)
    except InvalidOperation:
        return default
