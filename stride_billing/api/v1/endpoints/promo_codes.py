"""
Promo Code API Endpoints.

- Promo code administration
- Discount preview (no usage change)
- Redemption (records one usage, idempotent per redemption id)
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from stride_billing.api.deps import DB, TenantID
from stride_billing.schemas.promo_code import (
    DiscountResult, PromoCodeCreate, PromoCodeResponse, PromoCodeUpdate,
    PromoPreviewRequest, PromoRedeemRequest, PromoRedemptionResponse,
)
from stride_billing.services.promo_code_service import PromoCodeService

router = APIRouter()


# ============================================================================
# ADMINISTRATION
# ============================================================================

@router.post(
    "",
    response_model=PromoCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Promo Code"
)
async def create_promo_code(data: PromoCodeCreate, db: DB, tenant_id: TenantID):
    service = PromoCodeService(db, tenant_id)
    return await service.create_promo_code(data)


@router.get(
    "",
    response_model=List[PromoCodeResponse],
    summary="List Promo Codes"
)
async def list_promo_codes(
    db: DB,
    tenant_id: TenantID,
    active_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    service = PromoCodeService(db, tenant_id)
    promos, _ = await service.list_promo_codes(active_only=active_only, skip=skip, limit=limit)
    return promos


@router.get(
    "/code/{code}",
    response_model=PromoCodeResponse,
    summary="Get Promo Code By Code"
)
async def get_promo_code_by_code(code: str, db: DB, tenant_id: TenantID):
    service = PromoCodeService(db, tenant_id)
    promo = await service.get_by_code(code)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return promo


@router.patch(
    "/{promo_id}",
    response_model=PromoCodeResponse,
    summary="Update Promo Code"
)
async def update_promo_code(promo_id: UUID, data: PromoCodeUpdate, db: DB, tenant_id: TenantID):
    service = PromoCodeService(db, tenant_id)
    return await service.update_promo_code(promo_id, data)


@router.post(
    "/{promo_id}/toggle",
    response_model=PromoCodeResponse,
    summary="Activate or Deactivate Promo Code"
)
async def toggle_promo_code(promo_id: UUID, is_active: bool, db: DB, tenant_id: TenantID):
    service = PromoCodeService(db, tenant_id)
    return await service.set_active(promo_id, is_active)


# ============================================================================
# PREVIEW / REDEEM
# ============================================================================

@router.post(
    "/preview",
    response_model=DiscountResult,
    summary="Preview Discount"
)
async def preview_discount(data: PromoPreviewRequest, db: DB, tenant_id: TenantID):
    """Validate a code against a subtotal without recording usage."""
    service = PromoCodeService(db, tenant_id)
    snapshot = await service.get_snapshot(data.code)
    return service.engine.preview(
        snapshot, data.subtotal, data.service_codes, datetime.now(timezone.utc)
    )


@router.post(
    "/redeem",
    response_model=PromoRedemptionResponse,
    summary="Redeem Promo Code"
)
async def redeem_promo_code(
    data: PromoRedeemRequest,
    db: DB,
    tenant_id: TenantID,
    redemption_id: Optional[UUID] = Query(None, description="Replay-safe redemption id"),
):
    """Apply a code and record one usage."""
    service = PromoCodeService(db, tenant_id)
    redemption, applied = await service.redeem(
        data.code,
        data.subtotal,
        data.service_codes,
        datetime.now(timezone.utc),
        account_id=data.account_id,
        redemption_id=redemption_id,
    )
    return PromoRedemptionResponse(
        redemption_id=redemption.redemption_id,
        applied=applied,
        result=redemption.result,
        uses_remaining=redemption.promo_after.uses_remaining,
    )
