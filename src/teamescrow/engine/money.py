"""Money value helpers for Teamescrow.

Amounts are ``Decimal`` values quantized to cents with ROUND_HALF_UP. Tax is
always computed on the gross amount and the net is what reaches the
recipient, so ``net + tax == gross`` for every refund.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel

from teamescrow.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round a Decimal to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any, field: str = "amount", allow_zero: bool = True) -> Decimal:
    """Parse user input into a non-negative money amount.

    Args:
        value: Number, numeric string or Decimal.
        field: Field name used in the error message.
        allow_zero: Whether zero is acceptable.

    Returns:
        The amount quantized to cents.

    Raises:
        ValidationError: If the value is missing, not numeric, negative, or
            zero when zero is not allowed.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number") from e
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    amount = quantize(amount)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field} must be greater than zero")
    return amount


class TaxBreakdown(BaseModel):
    """Split of a gross amount into withheld tax and net payment.

    Attributes:
        gross: Amount before tax.
        rate: Tax rate applied.
        tax: Amount withheld.
        net: Amount paid out.
    """

    gross: Decimal
    rate: Decimal
    tax: Decimal
    net: Decimal


def apply_tax(gross: Decimal, rate: Decimal) -> TaxBreakdown:
    """Withhold ``rate`` of ``gross``.

    >>> apply_tax(Decimal("500"), Decimal("0.02")).net
    Decimal('490.00')
    """
    gross = quantize(gross)
    tax = quantize(gross * rate)
    return TaxBreakdown(gross=gross, rate=rate, tax=tax, net=gross - tax)
