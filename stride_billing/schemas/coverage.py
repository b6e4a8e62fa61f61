"""
Pydantic schemas for valuation coverage.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field

from stride_billing.core.enum_utils import create_uppercase_validator
from stride_billing.models.coverage import CoverageType, CoverageScope
from stride_billing.schemas.base import (
    BaseCreateSchema, BaseResponseSchema, BaseSnapshot,
)


class AdjustmentKind(str, Enum):
    """Billing consequence of changing coverage on an item or shipment."""
    CHARGE = "CHARGE"
    CREDIT = "CREDIT"
    NONE = "NONE"


# ============================================================================
# CORE SNAPSHOTS
# ============================================================================

class CoverageConfig(BaseSnapshot):
    enabled: bool = True
    default_type: CoverageType = CoverageType.STANDARD
    rate_no_deductible: Decimal = Decimal("0.0188")
    rate_with_deductible: Decimal = Decimal("0.0142")
    deductible_amount: Decimal = Decimal("300.00")
    allow_item: bool = True
    allow_shipment: bool = True

    @classmethod
    def from_settings(cls, settings) -> "CoverageConfig":
        """Defaults for tenants with no saved coverage settings."""
        return cls(
            enabled=settings.COVERAGE_ENABLED,
            default_type=settings.COVERAGE_DEFAULT_TYPE,
            rate_no_deductible=settings.COVERAGE_RATE_NO_DEDUCTIBLE,
            rate_with_deductible=settings.COVERAGE_RATE_WITH_DEDUCTIBLE,
            deductible_amount=settings.COVERAGE_DEDUCTIBLE_AMOUNT,
        )


class AccountCoverageOverride(BaseSnapshot):
    override_enabled: bool = False
    rate_no_deductible: Optional[Decimal] = None
    rate_with_deductible: Optional[Decimal] = None
    deductible_amount: Optional[Decimal] = None
    default_type: Optional[CoverageType] = None


class CoverageQuote(BaseSnapshot):
    coverage_type: CoverageType
    declared_value: Decimal
    rate: Decimal
    premium: Decimal
    deductible: Decimal


class CoverageAdjustment(BaseSnapshot):
    """Premium delta when coverage type or declared value changes."""
    previous_premium: Decimal
    new_premium: Decimal
    delta: Decimal
    kind: AdjustmentKind

    @property
    def amount(self) -> Decimal:
        """Unsigned amount to charge or credit."""
        return abs(self.delta)


# ============================================================================
# API
# ============================================================================

class CoverageSettingsUpsert(BaseCreateSchema):
    enabled: bool = True
    default_type: CoverageType = CoverageType.STANDARD
    rate_no_deductible: Decimal = Field(Decimal("0.0188"), ge=0)
    rate_with_deductible: Decimal = Field(Decimal("0.0142"), ge=0)
    deductible_amount: Decimal = Field(Decimal("300.00"), ge=0, decimal_places=2)
    allow_item: bool = True
    allow_shipment: bool = True

    _normalize_default_type = create_uppercase_validator('default_type', CoverageType)


class AccountCoverageOverrideUpsert(BaseCreateSchema):
    override_enabled: bool = True
    rate_no_deductible: Optional[Decimal] = Field(None, ge=0)
    rate_with_deductible: Optional[Decimal] = Field(None, ge=0)
    deductible_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    default_type: Optional[CoverageType] = None

    _normalize_default_type = create_uppercase_validator('default_type', CoverageType)


class CoverageConfigResponse(BaseResponseSchema):
    enabled: bool
    default_type: CoverageType
    rate_no_deductible: Decimal
    rate_with_deductible: Decimal
    deductible_amount: Decimal
    allow_item: bool
    allow_shipment: bool


class CoverageSettingsResponse(CoverageConfigResponse):
    id: UUID
    updated_at: datetime


class CoveragePremiumRequest(BaseCreateSchema):
    declared_value: Decimal
    coverage_type: Optional[CoverageType] = None
    scope: Optional[CoverageScope] = None
    account_id: Optional[UUID] = None

    _normalize_coverage_type = create_uppercase_validator('coverage_type', CoverageType)
    _normalize_scope = create_uppercase_validator('scope', CoverageScope)


class CoverageChangeRequest(BaseCreateSchema):
    current_type: CoverageType
    current_declared_value: Decimal
    new_type: CoverageType
    new_declared_value: Decimal
    scope: Optional[CoverageScope] = None
    account_id: Optional[UUID] = None

    _normalize_current_type = create_uppercase_validator('current_type', CoverageType)
    _normalize_new_type = create_uppercase_validator('new_type', CoverageType)
    _normalize_scope = create_uppercase_validator('scope', CoverageScope)
