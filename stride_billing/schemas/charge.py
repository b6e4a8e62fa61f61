"""
Schemas for charge resolution and computation.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from stride_billing.core.categories import normalize_category
from stride_billing.core.enum_utils import create_uppercase_validator
from stride_billing.models.service_catalog import ClassCode, BillingUnit
from stride_billing.schemas.base import BaseCreateSchema, BaseSnapshot


class AdjustmentType(str, Enum):
    """Where the unit rate of a charge came from, when not the catalog."""
    OVERRIDE = "OVERRIDE"                # Per-task override rate
    ACCOUNT_RATE = "ACCOUNT_RATE"        # Account custom rate
    ACCOUNT_PERCENT = "ACCOUNT_PERCENT"  # Account percentage adjustment


class ChargeContext(BaseSnapshot):
    """
    What is being charged.

    The resolver keys on ``service_code`` when given, else on ``category``.
    """
    category: Optional[str] = None
    class_code: Optional[ClassCode] = None
    service_code: Optional[str] = None

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v):
        return normalize_category(v) if isinstance(v, str) else v

    @model_validator(mode='after')
    def require_key(self):
        if not self.category and not self.service_code:
            raise ValueError("category or service_code is required")
        return self

    @property
    def lookup_key(self) -> str:
        return self.service_code or self.category

    @property
    def keyed_on_service_code(self) -> bool:
        return bool(self.service_code)


class ComputedCharge(BaseSnapshot):
    """Result of pricing one service for a quantity."""
    service_code: str
    service_name: str = ""
    class_code: Optional[ClassCode] = None
    billing_unit: BillingUnit
    quantity: Decimal
    unit_rate: Optional[Decimal] = None
    base_rate: Optional[Decimal] = None
    adjustment_type: Optional[AdjustmentType] = None
    raw_amount: Decimal
    minimum_charge: Optional[Decimal] = None
    minimum_applied: bool = False
    final_amount: Decimal
    billable: bool = True
    taxable: bool = False


# ============================================================================
# API
# ============================================================================

class ChargeComputeRequest(BaseCreateSchema):
    category: Optional[str] = None
    class_code: Optional[ClassCode] = None
    service_code: Optional[str] = None
    quantity: Decimal = Field(..., description="Units to bill; zero produces a non-billable charge")
    override_rate: Optional[Decimal] = None
    minimum_charge: Optional[Decimal] = None
    account_id: Optional[UUID] = None

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)

    @model_validator(mode='after')
    def require_key(self):
        if not self.category and not self.service_code:
            raise ValueError("category or service_code is required")
        return self

    def to_context(self) -> ChargeContext:
        return ChargeContext(
            category=self.category,
            class_code=self.class_code,
            service_code=self.service_code,
        )
