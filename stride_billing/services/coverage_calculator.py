"""
Coverage/Valuation Premium Calculator.

Premium = declared value x the rate for the coverage type. Standard coverage
is always free here; the deductible is a claim-time amount and never reduces
the premium.
"""
import logging
from decimal import Decimal
from typing import Optional

from stride_billing.core.errors import (
    CoverageDisabledError, CoverageScopeNotAllowedError, InvalidDeclaredValueError,
)
from stride_billing.core.money import ZERO, require_money, round_money, to_decimal
from stride_billing.models.coverage import CoverageScope, CoverageType
from stride_billing.schemas.coverage import (
    AccountCoverageOverride, AdjustmentKind, CoverageAdjustment, CoverageConfig,
    CoverageQuote,
)

logger = logging.getLogger(__name__)


class CoverageCalculator:
    """Valuation coverage premiums and adjustments."""

    @staticmethod
    def rate_for(config: CoverageConfig, coverage_type: CoverageType) -> Decimal:
        if coverage_type == CoverageType.FULL_NO_DEDUCTIBLE:
            return config.rate_no_deductible
        if coverage_type == CoverageType.FULL_WITH_DEDUCTIBLE:
            return config.rate_with_deductible
        return ZERO

    @staticmethod
    def deductible_for(config: CoverageConfig, coverage_type: CoverageType) -> Decimal:
        """Deductible applied at claim time."""
        if coverage_type == CoverageType.FULL_WITH_DEDUCTIBLE:
            return config.deductible_amount
        return ZERO

    @staticmethod
    def _declared_value(value) -> Decimal:
        declared = to_decimal(value, "declared_value")
        if declared is None or declared < 0:
            raise InvalidDeclaredValueError(
                f"Declared value must be zero or greater, got {value}",
                details={"declared_value": None if value is None else str(value)},
            )
        return require_money(declared, "declared_value")

    def compute_premium(
        self,
        config: CoverageConfig,
        declared_value,
        coverage_type: Optional[CoverageType] = None,
        scope: Optional[CoverageScope] = None,
    ) -> Decimal:
        """
        Premium for covering ``declared_value``.

        Args:
            config: effective coverage configuration
            declared_value: value declared by the customer
            coverage_type: defaults to ``config.default_type``
            scope: ITEM or SHIPMENT when the caller needs the scope checked

        Raises:
            InvalidDeclaredValueError: negative or missing declared value
            InvalidAmountError: declared value has more than two decimals
            CoverageDisabledError: non-standard coverage while disabled
            CoverageScopeNotAllowedError: coverage not offered at ``scope``
        """
        declared = self._declared_value(declared_value)
        coverage_type = CoverageType(coverage_type or config.default_type)

        if coverage_type == CoverageType.STANDARD:
            return ZERO

        if not config.enabled:
            raise CoverageDisabledError(
                "Valuation coverage is disabled",
                details={"coverage_type": coverage_type.value},
            )

        if scope is not None:
            allowed = config.allow_item if scope == CoverageScope.ITEM else config.allow_shipment
            if not allowed:
                raise CoverageScopeNotAllowedError(
                    f"Coverage is not offered at {scope.value.lower()} level",
                    details={"scope": scope.value},
                )

        return round_money(declared * self.rate_for(config, coverage_type))

    def quote(
        self,
        config: CoverageConfig,
        declared_value,
        coverage_type: Optional[CoverageType] = None,
        scope: Optional[CoverageScope] = None,
    ) -> CoverageQuote:
        """Premium with the rate and deductible that produced it."""
        coverage_type = CoverageType(coverage_type or config.default_type)
        premium = self.compute_premium(config, declared_value, coverage_type, scope)
        return CoverageQuote(
            coverage_type=coverage_type,
            declared_value=self._declared_value(declared_value),
            rate=self.rate_for(config, coverage_type),
            premium=premium,
            deductible=self.deductible_for(config, coverage_type),
        )

    def compute_adjustment(
        self,
        config: CoverageConfig,
        current_type: CoverageType,
        current_declared_value,
        new_type: CoverageType,
        new_declared_value,
        scope: Optional[CoverageScope] = None,
    ) -> CoverageAdjustment:
        """
        Charge or credit owed when coverage on an item or shipment changes.

        A positive delta is billed as an additional charge, a negative delta
        becomes an account credit.
        """
        previous = self.compute_premium(config, current_declared_value, current_type, scope)
        new = self.compute_premium(config, new_declared_value, new_type, scope)
        delta = new - previous
        if delta > 0:
            kind = AdjustmentKind.CHARGE
        elif delta < 0:
            kind = AdjustmentKind.CREDIT
        else:
            kind = AdjustmentKind.NONE
        return CoverageAdjustment(
            previous_premium=previous,
            new_premium=new,
            delta=delta,
            kind=kind,
        )

    @staticmethod
    def merge_account_override(
        config: CoverageConfig,
        override: Optional[AccountCoverageOverride],
    ) -> CoverageConfig:
        """Tenant config with the account's override values laid over it."""
        if override is None or not override.override_enabled:
            return config
        updates = {
            field: getattr(override, field)
            for field in ("rate_no_deductible", "rate_with_deductible", "deductible_amount", "default_type")
            if getattr(override, field) is not None
        }
        return config.model_copy(update=updates)


coverage_calculator = CoverageCalculator()
