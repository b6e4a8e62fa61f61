"""
Coverage Settings Service.

Loads the effective coverage configuration for a tenant (and optionally an
account override) and saves changes to either level.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from stride_billing.config import settings
from stride_billing.core.enum_utils import get_enum_value
from stride_billing.models.coverage import CoverageSettings, AccountCoverageSettings
from stride_billing.schemas.coverage import (
    AccountCoverageOverride, AccountCoverageOverrideUpsert, CoverageConfig,
    CoverageSettingsUpsert,
)
from stride_billing.services.coverage_calculator import CoverageCalculator

logger = logging.getLogger(__name__)


class CoverageSettingsService:
    """Service for tenant and account coverage settings."""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def get_tenant_settings(self) -> Optional[CoverageSettings]:
        query = select(CoverageSettings).where(CoverageSettings.tenant_id == self.tenant_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_account_override(self, account_id: uuid.UUID) -> Optional[AccountCoverageSettings]:
        query = select(AccountCoverageSettings).where(
            and_(
                AccountCoverageSettings.tenant_id == self.tenant_id,
                AccountCoverageSettings.account_id == account_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_config(self, account_id: Optional[uuid.UUID] = None) -> CoverageConfig:
        """
        Effective coverage configuration.

        Tenant settings, or application defaults when none are saved, with the
        account override laid over them when enabled.
        """
        tenant_settings = await self.get_tenant_settings()
        if tenant_settings is not None:
            config = CoverageConfig.model_validate(tenant_settings)
        else:
            config = CoverageConfig.from_settings(settings)

        if account_id is not None:
            override = await self.get_account_override(account_id)
            if override is not None:
                config = CoverageCalculator.merge_account_override(
                    config, AccountCoverageOverride.model_validate(override)
                )
        return config

    async def upsert_tenant_settings(self, data: CoverageSettingsUpsert) -> CoverageSettings:
        row = await self.get_tenant_settings()
        if row is None:
            row = CoverageSettings(tenant_id=self.tenant_id)
            self.db.add(row)

        for field, value in data.model_dump().items():
            setattr(row, field, get_enum_value(value) if field == "default_type" else value)

        await self.db.commit()
        await self.db.refresh(row)
        logger.info(f"Saved coverage settings for tenant {self.tenant_id} (enabled={row.enabled})")
        return row

    async def upsert_account_override(
        self,
        account_id: uuid.UUID,
        data: AccountCoverageOverrideUpsert
    ) -> AccountCoverageSettings:
        row = await self.get_account_override(account_id)
        if row is None:
            row = AccountCoverageSettings(tenant_id=self.tenant_id, account_id=account_id)
            self.db.add(row)

        for field, value in data.model_dump().items():
            setattr(row, field, get_enum_value(value) if field == "default_type" else value)

        await self.db.commit()
        await self.db.refresh(row)
        return row
