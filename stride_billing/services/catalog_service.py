"""
Service Catalog Service.

Tenant-scoped persistence for the price list:
- Service events (create/update/deactivate/reactivate) with scope uniqueness
- Catalog snapshots for the resolver, in catalog order
- Account-level service settings (enable flag, custom rate, percent adjust)
"""
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stride_billing.core.enum_utils import get_enum_value
from stride_billing.core.errors import DuplicateServiceScopeError, ServiceNotFoundError
from stride_billing.models.service_catalog import ServiceEvent, AccountServiceSetting
from stride_billing.schemas.service_catalog import (
    ServiceEntry, AccountServiceAdjustment,
    ServiceEventCreate, ServiceEventUpdate, AccountServiceSettingUpsert,
)

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for the tenant service catalog."""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    async def list_entries(self, include_inactive: bool = False) -> List[ServiceEntry]:
        """Catalog snapshot in catalog order (sort_order, then creation)."""
        query = select(ServiceEvent).where(ServiceEvent.tenant_id == self.tenant_id)
        if not include_inactive:
            query = query.where(ServiceEvent.is_active == True)  # noqa: E712
        query = query.order_by(ServiceEvent.sort_order, ServiceEvent.created_at, ServiceEvent.service_code)

        result = await self.db.execute(query)
        return [ServiceEntry.model_validate(row) for row in result.scalars().all()]

    # =========================================================================
    # SERVICE EVENTS
    # =========================================================================

    async def _check_scope(
        self,
        service_code: str,
        category: str,
        class_code: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Reject a second active entry for the same category or code at the same class."""
        class_filter = (
            ServiceEvent.class_code.is_(None) if class_code is None
            else ServiceEvent.class_code == class_code
        )
        query = select(ServiceEvent).where(
            and_(
                ServiceEvent.tenant_id == self.tenant_id,
                ServiceEvent.is_active == True,  # noqa: E712
                or_(
                    ServiceEvent.category == category,
                    ServiceEvent.service_code == service_code,
                ),
                class_filter,
            )
        )
        if exclude_id is not None:
            query = query.where(ServiceEvent.id != exclude_id)

        existing = (await self.db.execute(query.limit(1))).scalar_one_or_none()
        if existing:
            logger.warning(
                f"Rejected duplicate scope for tenant {self.tenant_id}: "
                f"{service_code}/{category}/{class_code} conflicts with {existing.service_code}"
            )
            raise DuplicateServiceScopeError(
                f"An active service already covers category '{category}'"
                f" or code '{service_code}' for class {class_code or 'ALL'}",
                details={
                    "existing_service_id": str(existing.id),
                    "existing_service_code": existing.service_code,
                    "category": category,
                    "class_code": class_code,
                },
            )

    async def _commit_scope(self, service: ServiceEvent) -> None:
        """Commit a scope change; a lost race on the active-scope index is a duplicate."""
        # Rollback expires the row, read the scope first
        service_code, category, class_code = service.service_code, service.category, service.class_code
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                f"Active scope index rejected {service_code}/{category}/{class_code} "
                f"for tenant {self.tenant_id}"
            )
            raise DuplicateServiceScopeError(
                f"An active service already covers category '{category}'"
                f" or code '{service_code}' for class {class_code or 'ALL'}",
                details={
                    "category": category,
                    "service_code": service_code,
                    "class_code": class_code,
                },
            )
        await self.db.refresh(service)

    async def create_service(self, data: ServiceEventCreate) -> ServiceEvent:
        """Create a catalog entry."""
        class_code = get_enum_value(data.class_code)
        if data.is_active:
            await self._check_scope(data.service_code, data.category, class_code)

        service = ServiceEvent(
            tenant_id=self.tenant_id,
            service_code=data.service_code,
            service_name=data.service_name,
            category=data.category,
            class_code=class_code,
            rate=data.rate,
            minimum_charge=data.minimum_charge,
            billing_unit=get_enum_value(data.billing_unit),
            billing_trigger=get_enum_value(data.billing_trigger),
            taxable=data.taxable,
            service_time_minutes=data.service_time_minutes,
            notes=data.notes,
            sort_order=data.sort_order,
            is_active=data.is_active,
        )
        self.db.add(service)
        await self._commit_scope(service)
        logger.info(f"Created service {service.service_code} (class={class_code}) for tenant {self.tenant_id}")
        return service

    async def get_service(self, service_id: uuid.UUID) -> Optional[ServiceEvent]:
        """Get service by ID."""
        query = select(ServiceEvent).where(
            and_(
                ServiceEvent.id == service_id,
                ServiceEvent.tenant_id == self.tenant_id
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _require_service(self, service_id: uuid.UUID) -> ServiceEvent:
        service = await self.get_service(service_id)
        if not service:
            raise ServiceNotFoundError(
                f"Service {service_id} not found",
                details={"service_id": str(service_id)},
            )
        return service

    async def list_services(
        self,
        category: Optional[str] = None,
        include_inactive: bool = True,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[ServiceEvent], int]:
        """List services with filters."""
        query = select(ServiceEvent).where(ServiceEvent.tenant_id == self.tenant_id)
        if category:
            query = query.where(ServiceEvent.category == category)
        if not include_inactive:
            query = query.where(ServiceEvent.is_active == True)  # noqa: E712

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.db.scalar(count_query) or 0

        query = query.order_by(ServiceEvent.sort_order, ServiceEvent.created_at).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def update_service(
        self,
        service_id: uuid.UUID,
        data: ServiceEventUpdate
    ) -> ServiceEvent:
        """Update a catalog entry. The service code is immutable."""
        service = await self._require_service(service_id)
        update_data = data.model_dump(exclude_unset=True)

        if service.is_active and ({"category", "class_code"} & update_data.keys()):
            await self._check_scope(
                service.service_code,
                update_data.get("category", service.category),
                get_enum_value(update_data.get("class_code", service.class_code)),
                exclude_id=service.id,
            )

        for field, value in update_data.items():
            setattr(service, field, get_enum_value(value) if field in (
                "class_code", "billing_unit", "billing_trigger"
            ) else value)

        await self._commit_scope(service)
        return service

    async def deactivate_service(self, service_id: uuid.UUID) -> ServiceEvent:
        service = await self._require_service(service_id)
        service.is_active = False
        await self.db.commit()
        await self.db.refresh(service)
        logger.info(f"Deactivated service {service.service_code} for tenant {self.tenant_id}")
        return service

    async def reactivate_service(self, service_id: uuid.UUID) -> ServiceEvent:
        service = await self._require_service(service_id)
        if not service.is_active:
            await self._check_scope(
                service.service_code, service.category, service.class_code, exclude_id=service.id
            )
            service.is_active = True
            await self._commit_scope(service)
        return service

    # =========================================================================
    # ACCOUNT SERVICE SETTINGS
    # =========================================================================

    async def get_account_settings(self, account_id: uuid.UUID) -> List[AccountServiceSetting]:
        query = select(AccountServiceSetting).where(
            and_(
                AccountServiceSetting.tenant_id == self.tenant_id,
                AccountServiceSetting.account_id == account_id,
            )
        ).order_by(AccountServiceSetting.service_code)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_account_adjustments(self, account_id: Optional[uuid.UUID]) -> List[AccountServiceAdjustment]:
        """Account pricing snapshots for the calculator; empty without an account."""
        if account_id is None:
            return []
        settings = await self.get_account_settings(account_id)
        return [AccountServiceAdjustment.model_validate(s) for s in settings]

    async def set_account_adjustment(
        self,
        account_id: uuid.UUID,
        service_code: str,
        data: AccountServiceSettingUpsert
    ) -> AccountServiceSetting:
        """Create or replace an account's pricing for a service code."""
        query = select(AccountServiceSetting).where(
            and_(
                AccountServiceSetting.tenant_id == self.tenant_id,
                AccountServiceSetting.account_id == account_id,
                AccountServiceSetting.service_code == service_code,
            )
        )
        setting = (await self.db.execute(query)).scalar_one_or_none()
        if setting is None:
            setting = AccountServiceSetting(
                tenant_id=self.tenant_id,
                account_id=account_id,
                service_code=service_code,
            )
            self.db.add(setting)

        setting.is_enabled = data.is_enabled
        setting.custom_rate = data.custom_rate
        setting.custom_percent_adjust = data.custom_percent_adjust

        await self.db.commit()
        await self.db.refresh(setting)
        return setting
