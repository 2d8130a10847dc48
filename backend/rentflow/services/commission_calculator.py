"""
Commission calculation — pure, no database access.

1. Fixed rules pay the rule value regardless of the transaction amount
2. Percentage rules pay value% of the transaction amount (nothing without an amount)
3. A positive result is clamped to [min_amount, max_amount], then rounded half-up to cents
4. A zero result stays zero: no clamping, and the caller creates no commission
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
from rentflow.models.commission import CommissionType

ZERO = Decimal("0")
CENTS = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Amount]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't drag binary noise into Decimal
    return Decimal(str(value))


def calculate_commission_amount(rule, transaction_amount: Optional[Amount] = None) -> Decimal:
    if rule is None:
        return ZERO

    value = to_decimal(rule.commission_value) or ZERO
    amount = to_decimal(transaction_amount)

    if rule.commission_type == CommissionType.FIXED:
        raw = value
    elif rule.commission_type == CommissionType.PERCENTAGE and amount:
        raw = value / Decimal("100") * amount
    else:
        raw = ZERO

    if raw <= ZERO:
        return ZERO

    min_amount = to_decimal(rule.min_amount)
    max_amount = to_decimal(rule.max_amount)
    if min_amount is not None and raw < min_amount:
        raw = min_amount
    if max_amount is not None and raw > max_amount:
        raw = max_amount

    return raw.quantize(CENTS, rounding=ROUND_HALF_UP)
