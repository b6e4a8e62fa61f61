"""
Pydantic schemas for the service catalog.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field, field_validator

from stride_billing.core.categories import (
    normalize_category, map_legacy_unit, map_legacy_trigger,
)
from stride_billing.core.enum_utils import create_uppercase_validator
from stride_billing.models.service_catalog import ClassCode, BillingUnit, BillingTrigger
from stride_billing.schemas.base import (
    BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema, BaseSnapshot,
)


# ============================================================================
# CORE SNAPSHOTS
# ============================================================================

class ServiceEntry(BaseSnapshot):
    """One catalog entry as seen by the resolver and calculator."""
    id: Optional[UUID] = None
    service_code: str
    service_name: str = ""
    category: str
    class_code: Optional[ClassCode] = None
    rate: Optional[Decimal] = None
    billing_unit: BillingUnit = BillingUnit.PER_ITEM
    billing_trigger: BillingTrigger = BillingTrigger.SCAN_EVENT
    minimum_charge: Optional[Decimal] = None
    taxable: bool = False
    is_active: bool = True
    service_time_minutes: Optional[int] = None
    sort_order: int = 0

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v):
        return normalize_category(v) if isinstance(v, str) else v


class AccountServiceAdjustment(BaseSnapshot):
    """Account pricing for a service code."""
    service_code: str
    is_enabled: bool = True
    custom_rate: Optional[Decimal] = None
    custom_percent_adjust: Optional[Decimal] = None


# ============================================================================
# SERVICE EVENT CRUD
# ============================================================================

class ServiceEventBase(BaseCreateSchema):
    service_code: str = Field(..., min_length=1, max_length=50)
    service_name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    class_code: Optional[ClassCode] = None
    rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    minimum_charge: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    billing_unit: BillingUnit = BillingUnit.PER_ITEM
    billing_trigger: BillingTrigger = BillingTrigger.SCAN_EVENT
    taxable: bool = False
    service_time_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    sort_order: int = 0

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v):
        return normalize_category(v) if isinstance(v, str) else v

    @field_validator('billing_unit', mode='before')
    @classmethod
    def parse_billing_unit(cls, v):
        return map_legacy_unit(v)

    @field_validator('billing_trigger', mode='before')
    @classmethod
    def parse_billing_trigger(cls, v):
        return map_legacy_trigger(v)


class ServiceEventCreate(ServiceEventBase):
    is_active: bool = True


class ServiceEventUpdate(BaseUpdateSchema):
    service_name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    class_code: Optional[ClassCode] = None
    rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    minimum_charge: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    billing_unit: Optional[BillingUnit] = None
    billing_trigger: Optional[BillingTrigger] = None
    taxable: Optional[bool] = None
    service_time_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    sort_order: Optional[int] = None

    _normalize_class_code = create_uppercase_validator('class_code', ClassCode)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v):
        return normalize_category(v) if isinstance(v, str) else v

    @field_validator('billing_unit', mode='before')
    @classmethod
    def parse_billing_unit(cls, v):
        return None if v is None else map_legacy_unit(v)

    @field_validator('billing_trigger', mode='before')
    @classmethod
    def parse_billing_trigger(cls, v):
        return None if v is None else map_legacy_trigger(v)


class ServiceEventResponse(BaseResponseSchema):
    id: UUID
    service_code: str
    service_name: str
    category: str
    class_code: Optional[str] = None
    rate: Optional[Decimal] = None
    minimum_charge: Optional[Decimal] = None
    billing_unit: str
    billing_trigger: str
    taxable: bool
    service_time_minutes: Optional[int] = None
    notes: Optional[str] = None
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ServiceEventListResponse(BaseResponseSchema):
    items: List[ServiceEventResponse]
    total: int


# ============================================================================
# ACCOUNT SERVICE SETTINGS
# ============================================================================

class AccountServiceSettingUpsert(BaseCreateSchema):
    is_enabled: bool = True
    custom_rate: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    custom_percent_adjust: Optional[Decimal] = Field(None, ge=-100)


class AccountServiceSettingResponse(BaseResponseSchema):
    id: UUID
    account_id: UUID
    service_code: str
    is_enabled: bool
    custom_rate: Optional[Decimal] = None
    custom_percent_adjust: Optional[Decimal] = None
    updated_at: datetime
