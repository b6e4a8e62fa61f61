"""
Charge Calculator.

Prices a resolved service for a quantity:
- Unit rate precedence: per-task override, account custom rate,
  account percentage adjustment of the catalog rate, catalog rate
- Decimal arithmetic throughout, rounded half-up to the cent once at the end
- Optional minimum charge floor (argument, else the service default)
- Zero quantity is "not yet billable": amount 0, no error
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from stride_billing.core.errors import BillingDisabledError, RateUnsetError
from stride_billing.core.money import (
    HUNDRED, ZERO, optional_money, require_quantity, round_money, to_decimal,
)
from stride_billing.schemas.charge import AdjustmentType, ChargeContext, ComputedCharge
from stride_billing.schemas.service_catalog import AccountServiceAdjustment, ServiceEntry
from stride_billing.services.service_resolver import ServiceResolver

logger = logging.getLogger(__name__)

BILLING_DISABLED_MESSAGE = (
    "Billing for this service is disabled for this account. "
    "Please update account pricing settings to continue."
)


class ChargeCalculator:
    """Compute charges from catalog entries."""

    def __init__(self, resolver: Optional[ServiceResolver] = None):
        self.resolver = resolver or ServiceResolver()

    def compute(
        self,
        service: ServiceEntry,
        quantity,
        override_rate=None,
        minimum_charge=None,
        account_adjustment: Optional[AccountServiceAdjustment] = None,
    ) -> ComputedCharge:
        """
        Price ``quantity`` units of ``service``.

        Raises:
            InvalidQuantityError: quantity is negative or not a number
            InvalidAmountError: a money input has more than two decimals
            BillingDisabledError: the account has billing for this service off
            RateUnsetError: no override and no configured rate
        """
        qty = require_quantity(quantity)
        override = optional_money(override_rate, "override_rate")
        minimum = optional_money(minimum_charge, "minimum_charge")
        if minimum is None:
            minimum = optional_money(service.minimum_charge, "minimum_charge")
        base_rate = optional_money(service.rate, "rate")

        adjustment = self._adjustment_for(service, account_adjustment)
        if adjustment is not None and not adjustment.is_enabled:
            raise BillingDisabledError(
                BILLING_DISABLED_MESSAGE,
                details={"service_code": service.service_code},
            )

        unit_rate, adjustment_type = self._unit_rate(base_rate, override, adjustment)

        if qty == 0:
            return ComputedCharge(
                service_code=service.service_code,
                service_name=service.service_name,
                class_code=service.class_code,
                billing_unit=service.billing_unit,
                quantity=qty,
                unit_rate=unit_rate,
                base_rate=base_rate,
                adjustment_type=adjustment_type,
                raw_amount=ZERO,
                minimum_charge=minimum,
                minimum_applied=False,
                final_amount=ZERO,
                billable=False,
                taxable=service.taxable,
            )

        if unit_rate is None:
            raise RateUnsetError(
                f"No rate configured for service '{service.service_code}'"
                + (f" (class {service.class_code.value})" if service.class_code else ""),
                details={
                    "service_code": service.service_code,
                    "class_code": service.class_code.value if service.class_code else None,
                },
            )

        raw_amount = unit_rate * qty
        minimum_applied = minimum is not None and raw_amount < minimum
        final_amount = round_money(minimum if minimum_applied else raw_amount)

        return ComputedCharge(
            service_code=service.service_code,
            service_name=service.service_name,
            class_code=service.class_code,
            billing_unit=service.billing_unit,
            quantity=qty,
            unit_rate=unit_rate,
            base_rate=base_rate,
            adjustment_type=adjustment_type,
            raw_amount=raw_amount,
            minimum_charge=minimum,
            minimum_applied=minimum_applied,
            final_amount=final_amount,
            billable=True,
            taxable=service.taxable,
        )

    def compute_for_context(
        self,
        context: ChargeContext,
        catalog: Iterable[ServiceEntry],
        quantity,
        override_rate=None,
        minimum_charge=None,
        account_adjustments: Optional[Iterable[AccountServiceAdjustment]] = None,
    ) -> ComputedCharge:
        """Resolve the service for ``context`` and price it."""
        service = self.resolver.resolve(context, catalog)
        adjustment = None
        for candidate in account_adjustments or ():
            if candidate.service_code == service.service_code:
                adjustment = candidate
                break
        return self.compute(
            service,
            quantity,
            override_rate=override_rate,
            minimum_charge=minimum_charge,
            account_adjustment=adjustment,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _adjustment_for(
        service: ServiceEntry,
        adjustment: Optional[AccountServiceAdjustment],
    ) -> Optional[AccountServiceAdjustment]:
        if adjustment is None or adjustment.service_code != service.service_code:
            return None
        return adjustment

    @staticmethod
    def _unit_rate(
        base_rate: Optional[Decimal],
        override: Optional[Decimal],
        adjustment: Optional[AccountServiceAdjustment],
    ) -> Tuple[Optional[Decimal], Optional[AdjustmentType]]:
        if override is not None:
            return override, AdjustmentType.OVERRIDE
        if adjustment is not None:
            custom_rate = optional_money(adjustment.custom_rate, "custom_rate")
            if custom_rate is not None:
                return custom_rate, AdjustmentType.ACCOUNT_RATE
            percent = to_decimal(adjustment.custom_percent_adjust, "custom_percent_adjust")
            if percent is not None and base_rate is not None:
                return base_rate * (1 + percent / HUNDRED), AdjustmentType.ACCOUNT_PERCENT
        return base_rate, None


calculator = ChargeCalculator()
