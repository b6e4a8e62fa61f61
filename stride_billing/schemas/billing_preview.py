"""
Schemas for billing previews shown before a task or shipment is completed.
"""
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Tuple
from uuid import UUID

from pydantic import Field

from stride_billing.core.enum_utils import create_uppercase_validator
from stride_billing.models.service_catalog import ClassCode
from stride_billing.models.coverage import CoverageType
from stride_billing.schemas.base import BaseCreateSchema, BaseSnapshot


class BillingSourceType(str, Enum):
    """What raised a billing event."""
    MANUAL = "MANUAL"
    TASK = "TASK"
    SCAN = "SCAN"
    SHIPMENT = "SHIPMENT"
    STORAGE = "STORAGE"
    FLAG = "FLAG"


class ShipmentDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    RETURN = "return"


class PreviewLine(BaseSnapshot):
    """One item to price."""
    item_id: Optional[UUID] = None
    item_code: Optional[str] = None
    class_code: Optional[ClassCode] = None
    quantity: Decimal = Decimal("1")

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)


class BillingLineItem(BaseSnapshot):
    item_id: Optional[UUID] = None
    item_code: Optional[str] = None
    class_code: Optional[ClassCode] = None
    service_code: Optional[str] = None
    service_name: Optional[str] = None
    quantity: Decimal
    unit_rate: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    has_rate_error: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class BillingPreview(BaseSnapshot):
    line_items: Tuple[BillingLineItem, ...] = ()
    subtotal: Decimal = Decimal("0.00")
    has_errors: bool = False
    service_code: Optional[str] = None
    service_name: Optional[str] = None


class ChargeTotal(BaseSnapshot):
    """Subtotal with optional promo discount and coverage premium applied."""
    subtotal: Decimal
    promo_code: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    promo_error_code: Optional[str] = None
    promo_error: Optional[str] = None
    coverage_type: Optional[CoverageType] = None
    coverage_premium: Decimal = Decimal("0.00")
    total: Decimal


class MissingRate(BaseSnapshot):
    """A service/class pair with no rate to bill."""
    service_code: str
    class_code: Optional[ClassCode] = None
    item_code: Optional[str] = None

    @property
    def label(self) -> str:
        if self.class_code:
            return f"{self.service_code} ({self.class_code.value})"
        return self.service_code


class TaskCompletionCheck(BaseSnapshot):
    """Whether a task has what it needs to be billed on completion."""
    can_complete: bool = True
    missing_items: bool = False
    missing_rates: Tuple[MissingRate, ...] = ()
    issues: Tuple[str, ...] = ()


# ============================================================================
# API
# ============================================================================

class PreviewLineInput(BaseCreateSchema):
    item_id: Optional[UUID] = None
    item_code: Optional[str] = None
    class_code: Optional[ClassCode] = None
    quantity: Decimal = Field(Decimal("1"), ge=0)

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)


class PreviewExtras(BaseCreateSchema):
    account_id: Optional[UUID] = None
    promo_code: Optional[str] = None
    coverage_type: Optional[CoverageType] = None
    declared_value: Optional[Decimal] = None

    _normalize_coverage_type = create_uppercase_validator('coverage_type', CoverageType)


class TaskPreviewRequest(PreviewExtras):
    task_type: str = Field(..., min_length=1, max_length=100)
    category: Optional[str] = None
    service_code: Optional[str] = None
    lines: List[PreviewLineInput] = Field(default_factory=list)
    override_quantity: Optional[Decimal] = Field(None, ge=0)
    override_rate: Optional[Decimal] = None


class ShipmentPreviewRequest(PreviewExtras):
    direction: ShipmentDirection
    lines: List[PreviewLineInput] = Field(default_factory=list)


class TaskCompletionRequest(BaseCreateSchema):
    task_type: str = Field(..., min_length=1, max_length=100)
    category: Optional[str] = None
    service_code: Optional[str] = None
    requires_items: bool = True
    lines: List[PreviewLineInput] = Field(default_factory=list)
    account_id: Optional[UUID] = None


class BillingPreviewResponse(BaseSnapshot):
    preview: BillingPreview
    total: ChargeTotal
