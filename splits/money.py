"""
Fixed-point money helpers.

All amounts are Decimal with two places; allocation math works in integer
cents, and exact intermediate ratios use Fraction.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from fractions import Fraction
from typing import Iterable, Optional

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def round_money(value: Decimal) -> Decimal:
    """Round a decimal value to 2 decimal places (half up)"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_money(value) -> Optional[Decimal]:
    """Coerce client input to a non-negative money amount, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return round_money(amount)


def to_cents(value: Optional[Decimal]) -> int:
    if value is None:
        return 0
    return int(round_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def as_fraction(value: Optional[Decimal]) -> Fraction:
    if value is None:
        return Fraction(0)
    return Fraction(Decimal(value))


def floor_cents(amount: Fraction) -> int:
    """Whole cents contained in an exact dollar amount, rounded down."""
    return math.floor(amount * 100)


def round_half_up(value: Fraction) -> int:
    """Round a non-negative exact value to the nearest integer, halves up."""
    return math.floor(value + Fraction(1, 2))


def fraction_to_money(amount: Fraction) -> Decimal:
    return from_cents(round_half_up(amount * 100))


def sum_money(values: Iterable[Optional[Decimal]]) -> Decimal:
    return round_money(sum((v for v in values if v is not None), ZERO))


def compute_extra_fees_total(receipt_total: Optional[Decimal],
                             item_prices: Iterable[Optional[Decimal]],
                             tax: Optional[Decimal] = None,
                             gratuity: Optional[Decimal] = None) -> Decimal:
    """
    Everything on the receipt that is not an item.

    With a declared receipt total this is whatever the items don't cover;
    without one it is tax plus gratuity. The result never drops below
    tax + gratuity so the other-fees bucket can't go negative.
    """
    item_total = sum_money(item_prices)
    explicit_fees = round_money((tax or ZERO) + (gratuity or ZERO))

    if receipt_total is not None:
        extra = max(ZERO, round_money(receipt_total - item_total))
    else:
        extra = explicit_fees

    return max(extra, explicit_fees)


def compute_other_fees(extra_fees_total: Decimal,
                       tax: Optional[Decimal] = None,
                       gratuity: Optional[Decimal] = None) -> Optional[Decimal]:
    result = round_money(extra_fees_total - (tax or ZERO) - (gratuity or ZERO))
    return result if result >= 0 else None


def compute_gratuity_percent(gratuity: Optional[Decimal],
                             subtotal: Optional[Decimal]) -> Optional[Decimal]:
    if gratuity is None or gratuity <= 0 or subtotal is None or subtotal <= 0:
        return None
    return round_money(gratuity / subtotal * 100)
