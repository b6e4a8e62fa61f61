from stride_billing.models.service_catalog import (
    ClassCode, BillingUnit, BillingTrigger,
    ServiceEvent, AccountServiceSetting,
)
from stride_billing.models.promo_code import (
    DiscountType, ExpirationType, ServiceScope, UsageLimitType,
    PromoCode, PromoCodeUsage,
)
from stride_billing.models.coverage import (
    CoverageType, CoverageScope,
    CoverageSettings, AccountCoverageSettings,
)

__all__ = [
    "ClassCode", "BillingUnit", "BillingTrigger",
    "ServiceEvent", "AccountServiceSetting",
    "DiscountType", "ExpirationType", "ServiceScope", "UsageLimitType",
    "PromoCode", "PromoCodeUsage",
    "CoverageType", "CoverageScope",
    "CoverageSettings", "AccountCoverageSettings",
]
