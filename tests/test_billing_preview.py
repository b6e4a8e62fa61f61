"""Tests for billing previews and totals."""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import make_entry, make_promo
from stride_billing.core.errors import CoverageDisabledError
from stride_billing.models.coverage import CoverageType
from stride_billing.schemas.billing_preview import BillingSourceType, PreviewLine
from stride_billing.schemas.charge import ChargeContext
from stride_billing.schemas.coverage import CoverageConfig
from stride_billing.schemas.service_catalog import AccountServiceAdjustment
from stride_billing.services.billing_preview_service import (
    BillingPreviewService, build_billing_metadata,
)
from stride_billing.services.charge_calculator import ChargeCalculator


@pytest.fixture
def service():
    return BillingPreviewService()


@pytest.fixture
def mixed_lines():
    return [
        PreviewLine(item_code="ITM-1", class_code="S", quantity=Decimal("2")),
        PreviewLine(item_code="ITM-2", class_code="L"),
        PreviewLine(item_code="ITM-3", class_code="M"),
    ]


class TestPreviewItems:
    def test_each_line_priced_at_its_class(self, service, receiving_catalog, mixed_lines):
        preview = service.preview_items(ChargeContext(category="receiving"), mixed_lines, receiving_catalog)
        codes = [li.service_code for li in preview.line_items]
        assert codes == ["RCVG-S", "RCVG-L", "RCVG"]
        assert [li.total_amount for li in preview.line_items] == [
            Decimal("10.00"), Decimal("15.00"), Decimal("8.00"),
        ]
        assert preview.subtotal == Decimal("33.00")
        assert preview.has_errors is False

    def test_unpriced_lines_are_reported_not_summed(self, service):
        catalog = [
            make_entry("INSP-S", "inspection", "S", "5.00"),
            make_entry("INSP-L", "inspection", "L", rate=None),
        ]
        lines = [PreviewLine(class_code="S"), PreviewLine(class_code="L")]
        preview = service.preview_items(ChargeContext(category="inspection"), lines, catalog)
        assert preview.subtotal == Decimal("5.00")
        assert preview.has_errors is True
        failed = preview.line_items[1]
        assert failed.has_rate_error is True
        assert failed.error_code == "RATE_UNSET"
        assert failed.total_amount is None

    def test_empty_lines(self, service, receiving_catalog):
        preview = service.preview_items(ChargeContext(category="receiving"), [], receiving_catalog)
        assert preview.subtotal == Decimal("0.00")
        assert preview.line_items == ()


class TestPreviewTask:
    def test_per_task_override_bills_single_line(self, service, receiving_catalog, mixed_lines):
        preview = service.preview_task(
            "Assembly", mixed_lines, receiving_catalog, category="assembly", override_quantity=Decimal("2")
        )
        assert len(preview.line_items) == 1
        assert preview.subtotal == Decimal("90.00")
        assert preview.service_code == "ASSEMBLY_60"

    def test_per_task_override_rate(self, service, receiving_catalog):
        preview = service.preview_task(
            "Assembly", [], receiving_catalog, category="assembly",
            override_quantity=Decimal("2"), override_rate=Decimal("50.00"),
        )
        assert preview.subtotal == Decimal("100.00")

    def test_category_derived_from_task_type(self, service, receiving_catalog):
        preview = service.preview_task("Receiving", [PreviewLine(class_code="L")], receiving_catalog)
        assert preview.line_items[0].service_code == "RCVG-L"

    def test_legacy_service_code_fallback(self, service):
        catalog = [make_entry("15MA", "labor", None, "20.00")]
        preview = service.preview_task("Assembly", [], catalog, override_quantity=Decimal("3"))
        assert preview.service_code == "15MA"
        assert preview.subtotal == Decimal("60.00")

    def test_explicit_service_code_wins(self, service, receiving_catalog):
        preview = service.preview_task(
            "Inspection", [PreviewLine(class_code="S")], receiving_catalog,
            category="inspection", service_code="RCVG",
        )
        assert preview.line_items[0].total_amount == Decimal("8.00")

    def test_unknown_task_type_lines_fail(self, service, receiving_catalog):
        preview = service.preview_task("Inspection", [PreviewLine(class_code="S")], receiving_catalog)
        assert preview.has_errors is True
        assert preview.line_items[0].error_code == "NO_MATCHING_SERVICE"


class TestPreviewShipment:
    def test_inbound_bills_receiving(self, service, receiving_catalog, mixed_lines):
        preview = service.preview_shipment("inbound", mixed_lines, receiving_catalog)
        assert preview.subtotal == Decimal("32.00")
        assert {li.service_code for li in preview.line_items} == {"RCVG"}

    def test_outbound_without_will_call_service(self, service, receiving_catalog, mixed_lines):
        preview = service.preview_shipment("outbound", mixed_lines, receiving_catalog)
        assert preview.has_errors is True
        assert preview.subtotal == Decimal("0.00")


class TestValidateTaskCompletion:
    @pytest.fixture
    def inspection_catalog(self):
        return [
            make_entry("INSP-S", "inspection", "S", "6.00"),
            make_entry("INSP-L", "inspection", "L", rate=None),
        ]

    def test_all_items_priced(self, service, receiving_catalog, mixed_lines):
        check = service.validate_task_completion("Receiving", mixed_lines, receiving_catalog)
        assert check.can_complete is True
        assert check.missing_rates == ()
        assert check.issues == ()

    def test_missing_class_rate_listed_once(self, service, inspection_catalog):
        lines = [
            PreviewLine(item_code="ITM-1", class_code="S"),
            PreviewLine(item_code="ITM-2", class_code="L"),
            PreviewLine(item_code="ITM-3", class_code="L"),
        ]
        check = service.validate_task_completion("Inspection", lines, inspection_catalog)
        assert check.can_complete is False
        assert check.missing_items is False
        assert [gap.item_code for gap in check.missing_rates] == ["ITM-2", "ITM-3"]
        assert check.issues == (
            "Missing rate for: INSP-L (L). Set rates in the price list before completing.",
        )

    def test_task_without_items(self, service, receiving_catalog):
        check = service.validate_task_completion("Receiving", [], receiving_catalog)
        assert check.can_complete is False
        assert check.missing_items is True
        assert check.missing_rates == ()

    def test_unknown_service_counts_as_missing(self, service, receiving_catalog):
        check = service.validate_task_completion(
            "Inspection", [PreviewLine(class_code="S")], receiving_catalog, service_code="NOPE",
        )
        assert check.can_complete is False
        assert check.missing_rates[0].label == "NOPE (S)"

    def test_account_level_task_with_rate(self, service):
        catalog = [make_entry("ACCT_REVIEW", "account_review", None, "25.00")]
        check = service.validate_task_completion(
            "Account Review", [], catalog, requires_items=False,
        )
        assert check.can_complete is True
        assert check.missing_items is False

    def test_account_level_task_without_rate(self, service):
        catalog = [make_entry("ACCT_REVIEW", "account_review", None, rate=None)]
        check = service.validate_task_completion(
            "Account Review", [], catalog, requires_items=False,
        )
        assert check.can_complete is False
        assert check.missing_rates[0].label == "ACCT_REVIEW"
        assert check.missing_rates[0].class_code is None

    def test_account_rate_fills_missing_rate(self, service):
        catalog = [make_entry("ACCT_REVIEW", "account_review", None, rate=None)]
        adjustments = [AccountServiceAdjustment(service_code="ACCT_REVIEW", custom_rate=Decimal("20.00"))]
        check = service.validate_task_completion(
            "Account Review", [], catalog, requires_items=False, account_adjustments=adjustments,
        )
        assert check.can_complete is True


class TestTotal:
    @pytest.fixture
    def preview(self, service, receiving_catalog, mixed_lines):
        return service.preview_items(ChargeContext(category="receiving"), mixed_lines, receiving_catalog)

    def test_subtotal_only(self, service, preview, now):
        total = service.total(preview, now)
        assert total.total == Decimal("33.00")
        assert total.discount_amount == Decimal("0.00")

    def test_promo_and_coverage(self, service, preview, now):
        total = service.total(
            preview, now,
            promo=make_promo(),
            coverage_config=CoverageConfig(),
            coverage_type=CoverageType.FULL_WITH_DEDUCTIBLE,
            declared_value="10000.00",
        )
        assert total.discount_amount == Decimal("8.25")
        assert total.coverage_premium == Decimal("142.00")
        assert total.coverage_type == CoverageType.FULL_WITH_DEDUCTIBLE
        assert total.total == Decimal("166.75")

    def test_rejected_promo_is_recorded(self, service, preview, now):
        expired = make_promo(expiration_type="DATE", expiration_date=now - timedelta(days=1))
        total = service.total(preview, now, promo=expired)
        assert total.promo_error_code == "PROMO_EXPIRED"
        assert total.total == Decimal("33.00")

    def test_promo_skipped_when_preview_has_errors(self, service, now):
        catalog = [make_entry("INSP", "inspection", None, rate=None)]
        preview = service.preview_items(ChargeContext(category="inspection"), [PreviewLine()], catalog)
        total = service.total(preview, now, promo=make_promo())
        assert total.promo_error_code == "PREVIEW_HAS_ERRORS"
        assert total.discount_amount == Decimal("0.00")

    def test_coverage_errors_propagate(self, service, preview, now):
        with pytest.raises(CoverageDisabledError):
            service.total(
                preview, now,
                coverage_config=CoverageConfig(enabled=False),
                coverage_type=CoverageType.FULL_NO_DEDUCTIBLE,
                declared_value="100.00",
            )


class TestBillingMetadata:
    def test_metadata_records_rate_source(self, receiving_catalog):
        charge = ChargeCalculator().compute(receiving_catalog[3], 1, override_rate="50.00")
        metadata = build_billing_metadata(charge, BillingSourceType.TASK, extra={"task_type": "Assembly"})
        assert metadata["source_type"] == "TASK"
        assert metadata["adjustment_applied"] is True
        assert metadata["adjustment_type"] == "OVERRIDE"
        assert metadata["unit_rate"] == "50.00"
        assert metadata["total_amount"] == "50.00"
        assert metadata["task_type"] == "Assembly"
