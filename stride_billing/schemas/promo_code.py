"""
Pydantic schemas for promo codes, discount previews and redemptions.
"""
import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Tuple
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from stride_billing.core.enum_utils import create_uppercase_validator
from stride_billing.models.promo_code import (
    DiscountType, ExpirationType, ServiceScope, UsageLimitType,
)
from stride_billing.schemas.base import (
    BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema, BaseSnapshot, as_utc,
)

PROMO_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{1,50}$")


def normalize_promo_code(code: str) -> str:
    """Promo codes are matched case-insensitively and stored upper-case."""
    return code.strip().upper()


def check_promo_rules(
    discount_type,
    discount_value: Decimal,
    expiration_type,
    expiration_date: Optional[datetime],
    service_scope,
    selected_services,
    usage_limit_type,
    usage_limit: Optional[int],
) -> None:
    """
    Cross-field promo rules.

    Raises:
        ValueError: first rule violated
    """
    if discount_value is None or discount_value < 0:
        raise ValueError("discount_value must be zero or greater")
    if discount_value.quantize(Decimal("0.01")) != discount_value:
        raise ValueError("discount_value has more than two decimal places")
    if DiscountType(discount_type) == DiscountType.PERCENTAGE and discount_value > 100:
        raise ValueError("percentage discount cannot exceed 100")
    if ExpirationType(expiration_type) == ExpirationType.DATE and expiration_date is None:
        raise ValueError("expiration_date is required when expiration_type is DATE")
    if ServiceScope(service_scope) == ServiceScope.SELECTED and not selected_services:
        raise ValueError("selected_services is required when service_scope is SELECTED")
    if UsageLimitType(usage_limit_type) == UsageLimitType.LIMITED and (usage_limit is None or usage_limit < 1):
        raise ValueError("usage_limit must be at least 1 when usage_limit_type is LIMITED")


# ============================================================================
# CORE SNAPSHOTS
# ============================================================================

class PromoCodeSnapshot(BaseSnapshot):
    """Promo code state at evaluation time."""
    id: Optional[UUID] = None
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expiration_type: ExpirationType = ExpirationType.NONE
    expiration_date: Optional[datetime] = None
    service_scope: ServiceScope = ServiceScope.ALL
    selected_services: Tuple[str, ...] = ()
    usage_limit_type: UsageLimitType = UsageLimitType.UNLIMITED
    usage_limit: Optional[int] = None
    usage_count: int = 0
    is_active: bool = True

    @field_validator('selected_services', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return () if v is None else v

    @field_validator('expiration_date', mode='after')
    @classmethod
    def ensure_tz(cls, v):
        return as_utc(v)

    @property
    def uses_remaining(self) -> Optional[int]:
        """Remaining redemptions, None when unlimited."""
        if self.usage_limit_type != UsageLimitType.LIMITED or self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)


class DiscountResult(BaseSnapshot):
    promo_code: str
    discount_type: DiscountType
    discount_value: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    final_amount: Decimal


class PromoRedemption(BaseSnapshot):
    """
    Decision to redeem a promo once.

    The promo store persists it with a conditional increment keyed by
    ``redemption_id``.
    """
    redemption_id: UUID
    promo_code_id: Optional[UUID] = None
    result: DiscountResult
    promo_after: PromoCodeSnapshot
    redeemed_at: datetime


# ============================================================================
# PROMO CODE CRUD
# ============================================================================

class PromoCodeCreate(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=50)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    expiration_type: ExpirationType = ExpirationType.NONE
    expiration_date: Optional[datetime] = None
    service_scope: ServiceScope = ServiceScope.ALL
    selected_services: List[str] = Field(default_factory=list)
    usage_limit_type: UsageLimitType = UsageLimitType.UNLIMITED
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True

    _normalize_discount_type = create_uppercase_validator('discount_type', DiscountType)
    _normalize_expiration_type = create_uppercase_validator('expiration_type', ExpirationType)
    _normalize_service_scope = create_uppercase_validator('service_scope', ServiceScope)
    _normalize_usage_limit_type = create_uppercase_validator('usage_limit_type', UsageLimitType)

    @field_validator('code')
    @classmethod
    def validate_code(cls, v: str) -> str:
        code = normalize_promo_code(v)
        if not PROMO_CODE_PATTERN.match(code):
            raise ValueError("code may only contain letters, digits, '-' and '_'")
        return code

    @model_validator(mode='after')
    def validate_rules(self):
        check_promo_rules(
            self.discount_type, self.discount_value,
            self.expiration_type, self.expiration_date,
            self.service_scope, self.selected_services,
            self.usage_limit_type, self.usage_limit,
        )
        return self


class PromoCodeUpdate(BaseUpdateSchema):
    """Code is immutable; everything else may change."""
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    expiration_type: Optional[ExpirationType] = None
    expiration_date: Optional[datetime] = None
    service_scope: Optional[ServiceScope] = None
    selected_services: Optional[List[str]] = None
    usage_limit_type: Optional[UsageLimitType] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    _normalize_discount_type = create_uppercase_validator('discount_type', DiscountType)
    _normalize_expiration_type = create_uppercase_validator('expiration_type', ExpirationType)
    _normalize_service_scope = create_uppercase_validator('service_scope', ServiceScope)
    _normalize_usage_limit_type = create_uppercase_validator('usage_limit_type', UsageLimitType)


class PromoCodeResponse(BaseResponseSchema):
    id: UUID
    code: str
    discount_type: str
    discount_value: Decimal
    expiration_type: str
    expiration_date: Optional[datetime] = None
    service_scope: str
    selected_services: Optional[List[str]] = None
    usage_limit_type: str
    usage_limit: Optional[int] = None
    usage_count: int
    uses_remaining: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# PREVIEW / REDEEM
# ============================================================================

class PromoPreviewRequest(BaseCreateSchema):
    code: str = Field(..., min_length=1, max_length=50)
    subtotal: Decimal
    service_codes: List[str] = Field(default_factory=list)


class PromoRedeemRequest(PromoPreviewRequest):
    account_id: Optional[UUID] = None


class PromoRedemptionResponse(BaseResponseSchema):
    redemption_id: UUID
    applied: bool = Field(..., description="False when this redemption was already recorded")
    result: DiscountResult
    uses_remaining: Optional[int] = None
