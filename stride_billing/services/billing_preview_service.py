"""
Billing Preview Service.

Shows what a task or shipment will bill before it is completed:
1. Per-item lines priced by item class
2. Single per-task line for assembly/repair style tasks with a quantity override
3. Subtotal over the lines that priced, with per-line errors collected
4. Optional promo discount and coverage premium on top of the subtotal

Pure: works on catalog, promo and coverage snapshots supplied by the caller.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from stride_billing.core.categories import (
    category_for_task_type, is_per_task_billing, service_code_for_direction,
    service_code_for_task_type,
)
from stride_billing.core.errors import BillingError, PromoError
from stride_billing.core.money import ZERO, round_money
from stride_billing.models.coverage import CoverageScope, CoverageType
from stride_billing.schemas.billing_preview import (
    BillingLineItem, BillingPreview, BillingSourceType, ChargeTotal, MissingRate, PreviewLine,
    ShipmentDirection, TaskCompletionCheck,
)
from stride_billing.schemas.charge import ChargeContext, ComputedCharge
from stride_billing.schemas.coverage import CoverageConfig
from stride_billing.schemas.promo_code import PromoCodeSnapshot
from stride_billing.schemas.service_catalog import AccountServiceAdjustment, ServiceEntry
from stride_billing.services.charge_calculator import ChargeCalculator
from stride_billing.services.coverage_calculator import CoverageCalculator
from stride_billing.services.promo_engine import PromoEngine

logger = logging.getLogger(__name__)


class BillingPreviewService:
    """Assemble billing previews and totals from the billing core."""

    def __init__(
        self,
        calculator: Optional[ChargeCalculator] = None,
        promo_engine: Optional[PromoEngine] = None,
        coverage_calculator: Optional[CoverageCalculator] = None,
    ):
        self.calculator = calculator or ChargeCalculator()
        self.promo_engine = promo_engine or PromoEngine()
        self.coverage_calculator = coverage_calculator or CoverageCalculator()

    # =========================================================================
    # LINE ITEMS
    # =========================================================================

    def _price_line(
        self,
        context: ChargeContext,
        line: PreviewLine,
        catalog: Sequence[ServiceEntry],
        account_adjustments: Sequence[AccountServiceAdjustment],
        override_rate=None,
    ) -> BillingLineItem:
        try:
            charge = self.calculator.compute_for_context(
                context,
                catalog,
                line.quantity,
                override_rate=override_rate,
                account_adjustments=account_adjustments,
            )
        except BillingError as e:
            logger.warning(f"Preview line for '{context.lookup_key}' not priced: {e.error_code} {e.message}")
            return BillingLineItem(
                item_id=line.item_id,
                item_code=line.item_code,
                class_code=line.class_code,
                service_code=context.service_code,
                quantity=line.quantity,
                has_rate_error=True,
                error_code=e.error_code,
                error_message=e.message,
            )
        return BillingLineItem(
            item_id=line.item_id,
            item_code=line.item_code,
            class_code=line.class_code,
            service_code=charge.service_code,
            service_name=charge.service_name,
            quantity=charge.quantity,
            unit_rate=charge.unit_rate,
            total_amount=charge.final_amount,
        )

    @staticmethod
    def _summarize(line_items: List[BillingLineItem], fallback_code: Optional[str]) -> BillingPreview:
        priced = [li for li in line_items if not li.has_rate_error]
        subtotal = round_money(sum((li.total_amount for li in priced), ZERO))
        first = priced[0] if priced else None
        return BillingPreview(
            line_items=tuple(line_items),
            subtotal=subtotal,
            has_errors=any(li.has_rate_error for li in line_items),
            service_code=first.service_code if first else fallback_code,
            service_name=first.service_name if first else None,
        )

    def preview_items(
        self,
        context: ChargeContext,
        lines: Iterable[PreviewLine],
        catalog: Sequence[ServiceEntry],
        account_adjustments: Sequence[AccountServiceAdjustment] = (),
    ) -> BillingPreview:
        """Price each line at its own class under ``context``."""
        line_items = []
        for line in lines:
            line_context = context.model_copy(update={"class_code": line.class_code})
            line_items.append(self._price_line(line_context, line, catalog, account_adjustments))
        return self._summarize(line_items, context.service_code)

    def _task_context(
        self,
        task_type: str,
        catalog: Sequence[ServiceEntry],
        category: Optional[str] = None,
        service_code: Optional[str] = None,
    ) -> ChargeContext:
        if service_code:
            return ChargeContext(service_code=service_code)
        if category:
            return ChargeContext(category=category)
        context = ChargeContext(category=category_for_task_type(task_type))
        # Catalogs without categories for this task type use the legacy price-list code
        if self.calculator.resolver.try_resolve(context, catalog) is None:
            context = ChargeContext(service_code=service_code_for_task_type(task_type))
        return context

    def preview_task(
        self,
        task_type: str,
        lines: Iterable[PreviewLine],
        catalog: Sequence[ServiceEntry],
        category: Optional[str] = None,
        service_code: Optional[str] = None,
        override_quantity=None,
        override_rate=None,
        account_adjustments: Sequence[AccountServiceAdjustment] = (),
    ) -> BillingPreview:
        """
        Preview billing for a task.

        Args:
            task_type: e.g. "Inspection", "Assembly"
            lines: task items
            catalog: tenant catalog snapshot
            category: category key; derived from ``task_type`` when omitted
            service_code: explicit service code, takes precedence over category
            override_quantity: for per-task types, bill one line of this quantity
            override_rate: per-task rate override for that single line
        """
        context = self._task_context(task_type, catalog, category, service_code)

        if is_per_task_billing(task_type) and override_quantity is not None:
            line = PreviewLine(quantity=override_quantity)
            item = self._price_line(context, line, catalog, account_adjustments, override_rate=override_rate)
            return self._summarize([item], context.service_code)

        return self.preview_items(context, lines, catalog, account_adjustments)

    def preview_shipment(
        self,
        direction: ShipmentDirection,
        lines: Iterable[PreviewLine],
        catalog: Sequence[ServiceEntry],
        account_adjustments: Sequence[AccountServiceAdjustment] = (),
    ) -> BillingPreview:
        """Inbound bills receiving, outbound bills will-call, returns bill returns."""
        context = ChargeContext(service_code=service_code_for_direction(ShipmentDirection(direction).value))
        return self.preview_items(context, lines, catalog, account_adjustments)

    # =========================================================================
    # TASK COMPLETION
    # =========================================================================

    def _missing_rate(
        self,
        context: ChargeContext,
        catalog: Sequence[ServiceEntry],
        account_adjustments: Sequence[AccountServiceAdjustment],
        item_code: Optional[str] = None,
    ) -> Optional[MissingRate]:
        entry = self.calculator.resolver.try_resolve(context, catalog)
        if entry is None:
            return MissingRate(service_code=context.lookup_key, class_code=context.class_code, item_code=item_code)
        if entry.rate is not None:
            return None
        adjustment = next((a for a in account_adjustments if a.service_code == entry.service_code), None)
        if adjustment is not None and adjustment.custom_rate is not None:
            return None
        return MissingRate(service_code=entry.service_code, class_code=context.class_code, item_code=item_code)

    def validate_task_completion(
        self,
        task_type: str,
        lines: Iterable[PreviewLine],
        catalog: Sequence[ServiceEntry],
        requires_items: bool = True,
        category: Optional[str] = None,
        service_code: Optional[str] = None,
        account_adjustments: Sequence[AccountServiceAdjustment] = (),
    ) -> TaskCompletionCheck:
        """
        Check a task can be billed before it is completed.

        Item-based tasks need at least one item and a rate for every item
        class. Account-level tasks (``requires_items=False``) need one rate for
        the service itself.
        """
        lines = list(lines)
        context = self._task_context(task_type, catalog, category, service_code)
        missing_items = requires_items and not lines
        issues = []
        if missing_items:
            issues.append("This task requires items. Add at least one item before completing.")

        missing: List[MissingRate] = []
        if requires_items:
            for line in lines:
                line_context = context.model_copy(update={"class_code": line.class_code})
                gap = self._missing_rate(line_context, catalog, account_adjustments, line.item_code)
                if gap is not None:
                    missing.append(gap)
        else:
            gap = self._missing_rate(context, catalog, account_adjustments)
            if gap is not None:
                missing.append(gap)

        if missing:
            labels = list(dict.fromkeys(gap.label for gap in missing))
            issues.append(f"Missing rate for: {', '.join(labels)}. Set rates in the price list before completing.")
            logger.info(f"Task '{task_type}' cannot complete, missing rates: {labels}")

        return TaskCompletionCheck(
            can_complete=not missing_items and not missing,
            missing_items=missing_items,
            missing_rates=tuple(missing),
            issues=tuple(issues),
        )

    # =========================================================================
    # TOTALS
    # =========================================================================

    def total(
        self,
        preview: BillingPreview,
        now: datetime,
        promo: Optional[PromoCodeSnapshot] = None,
        coverage_config: Optional[CoverageConfig] = None,
        coverage_type: Optional[CoverageType] = None,
        declared_value=None,
        coverage_scope: Optional[CoverageScope] = None,
    ) -> ChargeTotal:
        """
        Subtotal, discount and coverage premium for a preview.

        A rejected promo is recorded and the undiscounted subtotal is used.
        Discounts are not offered on previews with unpriced lines. Coverage
        errors propagate since they come from caller input.
        """
        subtotal = preview.subtotal
        discounted = subtotal
        discount_amount = ZERO
        promo_error_code = None
        promo_error = None

        if promo is not None:
            if preview.has_errors:
                promo_error_code = "PREVIEW_HAS_ERRORS"
                promo_error = "Resolve billing errors before applying a promo code"
            else:
                service_codes = {li.service_code for li in preview.line_items if li.service_code}
                try:
                    result = self.promo_engine.preview(promo, subtotal, service_codes, now)
                    discounted = result.final_amount
                    discount_amount = result.discount_amount
                except PromoError as e:
                    logger.info(f"Promo {promo.code} not applied: {e.error_code}")
                    promo_error_code = e.error_code
                    promo_error = e.message

        premium = ZERO
        applied_type = None
        if coverage_config is not None and declared_value is not None:
            applied_type = CoverageType(coverage_type or coverage_config.default_type)
            premium = self.coverage_calculator.compute_premium(
                coverage_config, declared_value, applied_type, coverage_scope
            )

        return ChargeTotal(
            subtotal=subtotal,
            promo_code=promo.code if promo else None,
            discount_amount=discount_amount,
            promo_error_code=promo_error_code,
            promo_error=promo_error,
            coverage_type=applied_type,
            coverage_premium=premium,
            total=round_money(discounted + premium),
        )


# =============================================================================
# BILLING EVENT METADATA
# =============================================================================

def build_billing_metadata(
    charge: ComputedCharge,
    source_type: BillingSourceType,
    source_id: Optional[UUID] = None,
    service_id: Optional[UUID] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Metadata stored with a billing event so the charge can be audited later.
    """
    metadata: Dict[str, Any] = {
        "source_type": BillingSourceType(source_type).value,
        "source_id": str(source_id) if source_id else None,
        "service_id": str(service_id) if service_id else None,
        "service_code": charge.service_code,
        "class_code": charge.class_code.value if charge.class_code else None,
        "billing_unit": charge.billing_unit.value,
        "quantity": str(charge.quantity),
        "base_rate": str(charge.base_rate) if charge.base_rate is not None else None,
        "unit_rate": str(charge.unit_rate) if charge.unit_rate is not None else None,
        "adjustment_applied": charge.adjustment_type is not None,
        "adjustment_type": charge.adjustment_type.value if charge.adjustment_type else None,
        "minimum_applied": charge.minimum_applied,
        "total_amount": str(charge.final_amount),
    }
    if extra:
        metadata.update(extra)
    return metadata


billing_preview_service = BillingPreviewService()
