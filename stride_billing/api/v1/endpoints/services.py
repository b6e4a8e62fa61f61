"""
Service Catalog API Endpoints.

- Catalog entries (create, list, update, deactivate, reactivate)
- Account service settings (enable flag, custom rate, percent adjustment)
"""
from typing import Optional, List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from stride_billing.api.deps import DB, TenantID
from stride_billing.core.categories import normalize_category
from stride_billing.schemas.service_catalog import (
    ServiceEventCreate, ServiceEventUpdate, ServiceEventResponse, ServiceEventListResponse,
    AccountServiceSettingUpsert, AccountServiceSettingResponse,
)
from stride_billing.services.catalog_service import CatalogService

router = APIRouter()


# ============================================================================
# SERVICE EVENTS
# ============================================================================

@router.post(
    "",
    response_model=ServiceEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Service"
)
async def create_service(data: ServiceEventCreate, db: DB, tenant_id: TenantID):
    """Create a catalog entry. Rejects a second active entry for the same scope."""
    service = CatalogService(db, tenant_id)
    return await service.create_service(data)


@router.get(
    "",
    response_model=ServiceEventListResponse,
    summary="List Services"
)
async def list_services(
    db: DB,
    tenant_id: TenantID,
    category: Optional[str] = None,
    include_inactive: bool = True,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    service = CatalogService(db, tenant_id)
    items, total = await service.list_services(
        category=normalize_category(category),
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return {"items": items, "total": total}


@router.get(
    "/{service_id}",
    response_model=ServiceEventResponse,
    summary="Get Service"
)
async def get_service(service_id: UUID, db: DB, tenant_id: TenantID):
    service = CatalogService(db, tenant_id)
    result = await service.get_service(service_id)
    if not result:
        raise HTTPException(status_code=404, detail="Service not found")
    return result


@router.patch(
    "/{service_id}",
    response_model=ServiceEventResponse,
    summary="Update Service"
)
async def update_service(service_id: UUID, data: ServiceEventUpdate, db: DB, tenant_id: TenantID):
    service = CatalogService(db, tenant_id)
    return await service.update_service(service_id, data)


@router.post(
    "/{service_id}/deactivate",
    response_model=ServiceEventResponse,
    summary="Deactivate Service"
)
async def deactivate_service(service_id: UUID, db: DB, tenant_id: TenantID):
    service = CatalogService(db, tenant_id)
    return await service.deactivate_service(service_id)


@router.post(
    "/{service_id}/reactivate",
    response_model=ServiceEventResponse,
    summary="Reactivate Service"
)
async def reactivate_service(service_id: UUID, db: DB, tenant_id: TenantID):
    service = CatalogService(db, tenant_id)
    return await service.reactivate_service(service_id)


# ============================================================================
# ACCOUNT SERVICE SETTINGS
# ============================================================================

@router.get(
    "/accounts/{account_id}/settings",
    response_model=List[AccountServiceSettingResponse],
    summary="List Account Service Settings"
)
async def list_account_settings(account_id: UUID, db: DB, tenant_id: TenantID):
    service = CatalogService(db, tenant_id)
    return await service.get_account_settings(account_id)


@router.put(
    "/accounts/{account_id}/settings/{service_code}",
    response_model=AccountServiceSettingResponse,
    summary="Set Account Service Setting"
)
async def set_account_setting(
    account_id: UUID,
    service_code: str,
    data: AccountServiceSettingUpsert,
    db: DB,
    tenant_id: TenantID,
):
    service = CatalogService(db, tenant_id)
    return await service.set_account_adjustment(account_id, service_code, data)
