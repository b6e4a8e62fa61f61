"""
Currency helpers.

All amounts are ``Decimal``. Inputs must be finite and carry at most two
fractional digits; rounding (half-up, to the cent) is applied once, at the
end of a computation.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from stride_billing.core.errors import InvalidAmountError, InvalidQuantityError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Any, field: str = "amount") -> Optional[Decimal]:
    """
    Convert a number-like value to Decimal.

    Floats go through ``str`` so 45.1 becomes Decimal("45.1") rather than its
    binary expansion.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidAmountError(f"{field} must be a number", details={"field": field})
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidAmountError(
                f"{field} is not a valid number: {value!r}",
                details={"field": field, "value": str(value)},
            )
    if not result.is_finite():
        raise InvalidAmountError(
            f"{field} must be finite",
            details={"field": field, "value": str(value)},
        )
    return result


def require_money(value: Any, field: str = "amount", allow_negative: bool = False) -> Decimal:
    """
    Validate a currency input.

    Raises:
        InvalidAmountError: not a finite number, more than two fractional
            digits, or negative when ``allow_negative`` is False.
    """
    amount = to_decimal(value, field)
    if amount is None:
        raise InvalidAmountError(f"{field} is required", details={"field": field})
    try:
        has_sub_cents = amount.quantize(CENT) != amount
    except InvalidOperation:
        raise InvalidAmountError(f"{field} is out of range", details={"field": field})
    if has_sub_cents:
        raise InvalidAmountError(
            f"{field} has more than two decimal places: {amount}",
            details={"field": field, "value": str(amount)},
        )
    if not allow_negative and amount < 0:
        raise InvalidAmountError(
            f"{field} cannot be negative: {amount}",
            details={"field": field, "value": str(amount)},
        )
    return amount


def optional_money(value: Any, field: str = "amount") -> Optional[Decimal]:
    if value is None:
        return None
    return require_money(value, field)


def require_quantity(value: Any) -> Decimal:
    """Quantities may be fractional (hours) but never negative."""
    try:
        quantity = to_decimal(value, "quantity")
    except InvalidAmountError as e:
        raise InvalidQuantityError(e.message, details=e.details)
    if quantity is None:
        raise InvalidQuantityError("quantity is required")
    if quantity < 0:
        raise InvalidQuantityError(
            f"quantity cannot be negative: {quantity}",
            details={"quantity": str(quantity)},
        )
    return quantity


def round_money(value: Decimal) -> Decimal:
    """Round to the cent, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
