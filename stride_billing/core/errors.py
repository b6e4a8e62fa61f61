"""
Billing error taxonomy.

Every failure the billing core can report is a typed exception carrying a
stable ``error_code`` so the API layer and the billing preview can surface it
without parsing messages. Absence of configuration is always an error, never
an implicit zero charge.
"""
from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base exception for billing errors."""

    error_code = "BILLING_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# SERVICE CATALOG / CHARGES
# =============================================================================

class NoMatchingServiceError(BillingError):
    """No active catalog entry matches the charge context."""
    error_code = "NO_MATCHING_SERVICE"


class RateUnsetError(BillingError):
    """The resolved service has no rate and no override was supplied."""
    error_code = "RATE_UNSET"


class InvalidQuantityError(BillingError):
    error_code = "INVALID_QUANTITY"


class InvalidAmountError(BillingError):
    """Amount is not a finite currency value with at most two decimals."""
    error_code = "INVALID_AMOUNT"


class BillingDisabledError(BillingError):
    """Billing for the service is switched off for the account."""
    error_code = "BILLING_DISABLED"


class DuplicateServiceScopeError(BillingError):
    """Another active entry already prices the same category/class scope."""
    error_code = "DUPLICATE_SERVICE_SCOPE"
    status_code = 409


class ServiceNotFoundError(BillingError):
    error_code = "SERVICE_NOT_FOUND"
    status_code = 404


# =============================================================================
# PROMO CODES
# =============================================================================

class PromoError(BillingError):
    """Base exception for promo code rejections."""
    error_code = "PROMO_ERROR"


class PromoExpiredError(PromoError):
    error_code = "PROMO_EXPIRED"


class PromoExhaustedError(PromoError):
    error_code = "PROMO_EXHAUSTED"


class PromoNotActiveError(PromoError):
    error_code = "PROMO_NOT_ACTIVE"


class PromoScopeMismatchError(PromoError):
    error_code = "PROMO_SCOPE_MISMATCH"


class PromoNotFoundError(PromoError):
    error_code = "PROMO_NOT_FOUND"
    status_code = 404


class InvalidPromoConfigError(PromoError):
    """Promo settings violate a cross-field rule (e.g. LIMITED without a limit)."""
    error_code = "INVALID_PROMO_CONFIG"


class DuplicatePromoCodeError(PromoError):
    error_code = "DUPLICATE_PROMO_CODE"
    status_code = 409


class RedemptionConflictError(PromoError):
    """The redemption_id was already recorded for a different promo code."""
    error_code = "REDEMPTION_CONFLICT"
    status_code = 409


# =============================================================================
# COVERAGE
# =============================================================================

class CoverageError(BillingError):
    """Base exception for valuation coverage errors."""
    error_code = "COVERAGE_ERROR"


class CoverageDisabledError(CoverageError):
    error_code = "COVERAGE_DISABLED"


class InvalidDeclaredValueError(CoverageError):
    error_code = "INVALID_DECLARED_VALUE"


class CoverageScopeNotAllowedError(CoverageError):
    """Coverage is not offered for the requested scope (item or shipment)."""
    error_code = "COVERAGE_SCOPE_NOT_ALLOWED"
