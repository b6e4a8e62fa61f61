"""
Promo/Discount Engine.

Validates a promo code against a subtotal and computes the discounted amount.

Two modes:
- preview: validation and discount only, never changes usage
- commit: same checks, plus a PromoRedemption describing the single usage
  increment the promo store must persist atomically

Rejections are raised in this order: expired, exhausted, not active,
scope mismatch. ``now`` is always supplied by the caller.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from stride_billing.core.errors import (
    PromoExhaustedError, PromoExpiredError, PromoNotActiveError,
    PromoScopeMismatchError,
)
from stride_billing.core.money import HUNDRED, ZERO, require_money, round_money
from stride_billing.models.promo_code import (
    DiscountType, ExpirationType, ServiceScope, UsageLimitType,
)
from stride_billing.schemas.base import as_utc
from stride_billing.schemas.promo_code import (
    DiscountResult, PromoCodeSnapshot, PromoRedemption,
)

logger = logging.getLogger(__name__)


class PromoEngine:
    """Apply promo codes to subtotals."""

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(
        self,
        promo: PromoCodeSnapshot,
        service_codes: Iterable[str],
        now: datetime,
    ) -> None:
        """
        Raise the first reason ``promo`` cannot be used right now.

        Raises:
            PromoExpiredError, PromoExhaustedError, PromoNotActiveError,
            PromoScopeMismatchError
        """
        now = as_utc(now)
        details = {"code": promo.code}

        if (
            promo.expiration_type == ExpirationType.DATE
            and promo.expiration_date is not None
            and now > promo.expiration_date
        ):
            raise PromoExpiredError(
                f"Promo code {promo.code} expired on {promo.expiration_date.isoformat()}",
                details={**details, "expiration_date": promo.expiration_date.isoformat()},
            )

        if promo.usage_limit_type == UsageLimitType.LIMITED and (promo.uses_remaining or 0) <= 0:
            raise PromoExhaustedError(
                f"Promo code {promo.code} has reached its usage limit",
                details={**details, "usage_limit": promo.usage_limit, "usage_count": promo.usage_count},
            )

        if not promo.is_active:
            raise PromoNotActiveError(f"Promo code {promo.code} is not active", details=details)

        if promo.service_scope == ServiceScope.SELECTED:
            involved = set(service_codes or ())
            if not involved.intersection(promo.selected_services):
                raise PromoScopeMismatchError(
                    f"Promo code {promo.code} does not apply to these services",
                    details={
                        **details,
                        "selected_services": list(promo.selected_services),
                        "service_codes": sorted(involved),
                    },
                )

    # =========================================================================
    # DISCOUNT MATH
    # =========================================================================

    @staticmethod
    def discounted_amount(promo: PromoCodeSnapshot, subtotal: Decimal) -> Decimal:
        """Amount due after the discount, clamped at zero and rounded to the cent."""
        if promo.discount_type == DiscountType.PERCENTAGE:
            amount = subtotal * (1 - promo.discount_value / HUNDRED)
        else:
            amount = subtotal - promo.discount_value
        return round_money(max(ZERO, amount))

    def _result(self, promo: PromoCodeSnapshot, subtotal: Decimal) -> DiscountResult:
        final_amount = self.discounted_amount(promo, subtotal)
        return DiscountResult(
            promo_code=promo.code,
            discount_type=promo.discount_type,
            discount_value=promo.discount_value,
            subtotal=subtotal,
            discount_amount=subtotal - final_amount,
            final_amount=final_amount,
        )

    # =========================================================================
    # MODES
    # =========================================================================

    def preview(
        self,
        promo: PromoCodeSnapshot,
        subtotal,
        service_codes: Iterable[str],
        now: datetime,
    ) -> DiscountResult:
        """Validate and compute the discount without touching usage."""
        amount = require_money(subtotal, "subtotal")
        self.validate(promo, service_codes, now)
        return self._result(promo, amount)

    def commit(
        self,
        promo: PromoCodeSnapshot,
        subtotal,
        service_codes: Iterable[str],
        now: datetime,
        redemption_id: Optional[uuid.UUID] = None,
    ) -> PromoRedemption:
        """
        Validate, compute the discount and decide one usage increment.

        The returned redemption carries a fresh ``redemption_id``; persisting
        it twice must be a no-op in the promo store.
        """
        amount = require_money(subtotal, "subtotal")
        self.validate(promo, service_codes, now)
        result = self._result(promo, amount)
        redemption = PromoRedemption(
            redemption_id=redemption_id or uuid.uuid4(),
            promo_code_id=promo.id,
            result=result,
            promo_after=promo.model_copy(update={"usage_count": promo.usage_count + 1}),
            redeemed_at=as_utc(now),
        )
        logger.info(
            f"Promo {promo.code} redemption {redemption.redemption_id} decided: "
            f"{result.subtotal} -> {result.final_amount}"
        )
        return redemption


promo_engine = PromoEngine()
