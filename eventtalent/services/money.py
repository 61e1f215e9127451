"""Money arithmetic for the fee split and dispute allocations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..core.constants import MONEY_QUANTUM
from ..core.exceptions import IntegrityViolationException, ValidationException

ZERO = Decimal("0.00")


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce ``value`` to a two-decimal Decimal.

    Rejects floats and anything with more than two decimal places instead of
    silently rounding money.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationException(f"{field} must be a decimal string or integer")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationException(f"{field} is not a valid amount") from exc
    if not amount.is_finite():
        raise ValidationException(f"{field} is not a valid amount")
    quantized = amount.quantize(MONEY_QUANTUM)
    if quantized != amount:
        raise ValidationException(f"{field} must have at most two decimal places")
    return quantized


@dataclass(frozen=True)
class FeeSplit:
    gross_amount: Decimal
    platform_fee_amount: Decimal
    talent_amount: Decimal


def compute_fee_split(gross_amount: Any, fee_rate: Decimal) -> FeeSplit:
    """Split ``gross_amount`` so fee + talent share add back to the gross exactly."""
    gross = to_money(gross_amount, "gross_amount")
    if gross <= ZERO:
        raise ValidationException(
            "gross_amount must be greater than zero", details={"gross_amount": str(gross)}
        )
    fee = (gross * Decimal(fee_rate)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
    talent = gross - fee
    if fee < ZERO or talent < ZERO or fee + talent != gross:
        raise IntegrityViolationException(
            "Fee split does not conserve the gross amount",
            details={"gross": str(gross), "fee": str(fee), "talent": str(talent)},
        )
    return FeeSplit(gross_amount=gross, platform_fee_amount=fee, talent_amount=talent)
