"""
Enum helpers for VARCHAR-backed enum columns.

Enum members are stored as their UPPERCASE string value in String(50)
columns. API input is accepted in any case ("full_no_deductible",
"Full No Deductible") and normalized before pydantic validates it against
the enum; rows read back coerce to the enum in the core snapshots.
"""

from enum import Enum
from typing import Any, FrozenSet, Optional, Type


def get_enum_value(value: Any) -> Optional[str]:
    """
    Column value for an enum member or plain string.

    Examples:
        >>> get_enum_value(ClassCode.M)
        'M'
        >>> get_enum_value(None)
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def upper_values(enum_class: Type[Enum]) -> FrozenSet[str]:
    return frozenset(str(member.value).upper() for member in enum_class)


def normalize_to_uppercase(value: Any, valid_values: FrozenSet[str]) -> Any:
    """
    Uppercase ``value`` (spaces become underscores) when that names a member.

    Anything else is returned untouched so pydantic reports it.

    Examples:
        >>> normalize_to_uppercase('flat rate', {'PERCENTAGE', 'FLAT_RATE'})
        'FLAT_RATE'
        >>> normalize_to_uppercase('bogus', {'PERCENTAGE', 'FLAT_RATE'})
        'bogus'
    """
    if isinstance(value, str):
        candidate = value.strip().upper().replace(" ", "_")
        if candidate in valid_values:
            return candidate
    return value


def create_uppercase_validator(field_name: str, enum_class: Type[Enum]) -> classmethod:
    """
    Field validator accepting ``enum_class`` values in any case.

    Usage:
        class PromoCodeCreate(BaseModel):
            discount_type: DiscountType

            _normalize_discount_type = create_uppercase_validator('discount_type', DiscountType)
    """
    from pydantic import field_validator

    valid_values = upper_values(enum_class)

    @field_validator(field_name, mode='before')
    @classmethod
    def validate(cls, v):
        return normalize_to_uppercase(v, valid_values)

    return validate
