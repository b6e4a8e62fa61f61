"""
Valuation Coverage API Endpoints.
"""
from uuid import UUID
from typing import Optional

from fastapi import APIRouter

from stride_billing.api.deps import DB, TenantID
from stride_billing.schemas.coverage import (
    AccountCoverageOverrideUpsert, CoverageAdjustment, CoverageChangeRequest,
    CoverageConfigResponse, CoveragePremiumRequest, CoverageQuote,
    CoverageSettingsResponse, CoverageSettingsUpsert,
)
from stride_billing.services.coverage_calculator import CoverageCalculator
from stride_billing.services.coverage_settings_service import CoverageSettingsService

router = APIRouter()


@router.get(
    "/settings",
    response_model=CoverageConfigResponse,
    summary="Get Effective Coverage Settings"
)
async def get_coverage_settings(db: DB, tenant_id: TenantID, account_id: Optional[UUID] = None):
    service = CoverageSettingsService(db, tenant_id)
    return await service.get_config(account_id)


@router.put(
    "/settings",
    response_model=CoverageSettingsResponse,
    summary="Save Tenant Coverage Settings"
)
async def save_coverage_settings(data: CoverageSettingsUpsert, db: DB, tenant_id: TenantID):
    service = CoverageSettingsService(db, tenant_id)
    return await service.upsert_tenant_settings(data)


@router.put(
    "/accounts/{account_id}",
    response_model=CoverageConfigResponse,
    summary="Save Account Coverage Override"
)
async def save_account_override(
    account_id: UUID,
    data: AccountCoverageOverrideUpsert,
    db: DB,
    tenant_id: TenantID,
):
    """Save the override and return the resulting effective settings."""
    service = CoverageSettingsService(db, tenant_id)
    await service.upsert_account_override(account_id, data)
    return await service.get_config(account_id)


@router.post(
    "/premium",
    response_model=CoverageQuote,
    summary="Quote Coverage Premium"
)
async def quote_premium(data: CoveragePremiumRequest, db: DB, tenant_id: TenantID):
    config = await CoverageSettingsService(db, tenant_id).get_config(data.account_id)
    return CoverageCalculator().quote(config, data.declared_value, data.coverage_type, data.scope)


@router.post(
    "/adjustment",
    response_model=CoverageAdjustment,
    summary="Coverage Change Adjustment"
)
async def coverage_adjustment(data: CoverageChangeRequest, db: DB, tenant_id: TenantID):
    """Charge or credit owed when coverage on an item or shipment changes."""
    config = await CoverageSettingsService(db, tenant_id).get_config(data.account_id)
    return CoverageCalculator().compute_adjustment(
        config,
        data.current_type,
        data.current_declared_value,
        data.new_type,
        data.new_declared_value,
        scope=data.scope,
    )
