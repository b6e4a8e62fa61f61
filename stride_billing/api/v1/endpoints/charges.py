"""
Charge API Endpoints.

- Compute a single charge for a category/service code and class
- Billing previews for tasks and shipments, with optional promo and coverage
- Rate check run before a task is completed
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from stride_billing.api.deps import DB, TenantID
from stride_billing.core.errors import PromoNotFoundError
from stride_billing.models.coverage import CoverageScope
from stride_billing.schemas.billing_preview import (
    BillingPreview, BillingPreviewResponse, PreviewExtras, PreviewLine,
    ShipmentPreviewRequest, TaskCompletionCheck, TaskCompletionRequest, TaskPreviewRequest,
)
from stride_billing.schemas.charge import ChargeComputeRequest, ComputedCharge
from stride_billing.services.billing_preview_service import BillingPreviewService
from stride_billing.services.catalog_service import CatalogService
from stride_billing.services.charge_calculator import ChargeCalculator
from stride_billing.services.coverage_settings_service import CoverageSettingsService
from stride_billing.services.promo_code_service import PromoCodeService

router = APIRouter()


@router.post(
    "/compute",
    response_model=ComputedCharge,
    summary="Compute Charge"
)
async def compute_charge(data: ChargeComputeRequest, db: DB, tenant_id: TenantID):
    """Resolve the service for the context and price the quantity."""
    catalog_service = CatalogService(db, tenant_id)
    catalog = await catalog_service.list_entries()
    adjustments = await catalog_service.get_account_adjustments(data.account_id)

    return ChargeCalculator().compute_for_context(
        data.to_context(),
        catalog,
        data.quantity,
        override_rate=data.override_rate,
        minimum_charge=data.minimum_charge,
        account_adjustments=adjustments,
    )


async def _with_total(
    preview: BillingPreview,
    extras: PreviewExtras,
    previewer: BillingPreviewService,
    db: DB,
    tenant_id: TenantID,
    coverage_scope: CoverageScope,
) -> BillingPreviewResponse:
    now = datetime.now(timezone.utc)
    promo = None
    promo_missing = None
    if extras.promo_code:
        try:
            promo = await PromoCodeService(db, tenant_id).get_snapshot(extras.promo_code)
        except PromoNotFoundError as e:
            promo_missing = e

    coverage_config = None
    if extras.declared_value is not None:
        coverage_config = await CoverageSettingsService(db, tenant_id).get_config(extras.account_id)

    total = previewer.total(
        preview,
        now,
        promo=promo,
        coverage_config=coverage_config,
        coverage_type=extras.coverage_type,
        declared_value=extras.declared_value,
        coverage_scope=coverage_scope,
    )
    if promo_missing is not None:
        total = total.model_copy(update={
            "promo_code": extras.promo_code.strip().upper(),
            "promo_error_code": promo_missing.error_code,
            "promo_error": promo_missing.message,
        })
    return BillingPreviewResponse(preview=preview, total=total)


@router.post(
    "/preview/task",
    response_model=BillingPreviewResponse,
    summary="Preview Task Billing"
)
async def preview_task(data: TaskPreviewRequest, db: DB, tenant_id: TenantID):
    """What completing the task would bill."""
    catalog_service = CatalogService(db, tenant_id)
    catalog = await catalog_service.list_entries()
    adjustments = await catalog_service.get_account_adjustments(data.account_id)

    previewer = BillingPreviewService()
    preview = previewer.preview_task(
        data.task_type,
        [PreviewLine(**line.model_dump()) for line in data.lines],
        catalog,
        category=data.category,
        service_code=data.service_code,
        override_quantity=data.override_quantity,
        override_rate=data.override_rate,
        account_adjustments=adjustments,
    )
    return await _with_total(preview, data, previewer, db, tenant_id, CoverageScope.ITEM)


@router.post(
    "/preview/shipment",
    response_model=BillingPreviewResponse,
    summary="Preview Shipment Billing"
)
async def preview_shipment(data: ShipmentPreviewRequest, db: DB, tenant_id: TenantID):
    """What receiving or releasing the shipment would bill."""
    catalog_service = CatalogService(db, tenant_id)
    catalog = await catalog_service.list_entries()
    adjustments = await catalog_service.get_account_adjustments(data.account_id)

    previewer = BillingPreviewService()
    preview = previewer.preview_shipment(
        data.direction,
        [PreviewLine(**line.model_dump()) for line in data.lines],
        catalog,
        account_adjustments=adjustments,
    )
    return await _with_total(preview, data, previewer, db, tenant_id, CoverageScope.SHIPMENT)


@router.post(
    "/validate/task",
    response_model=TaskCompletionCheck,
    summary="Validate Task Completion"
)
async def validate_task(data: TaskCompletionRequest, db: DB, tenant_id: TenantID):
    """Whether the task has the items and rates it needs to be billed."""
    catalog_service = CatalogService(db, tenant_id)
    catalog = await catalog_service.list_entries()
    adjustments = await catalog_service.get_account_adjustments(data.account_id)

    return BillingPreviewService().validate_task_completion(
        data.task_type,
        [PreviewLine(**line.model_dump()) for line in data.lines],
        catalog,
        requires_items=data.requires_items,
        category=data.category,
        service_code=data.service_code,
        account_adjustments=adjustments,
    )
