"""
Valuation Coverage Models.

- CoverageSettings: tenant-wide coverage rates and availability
- AccountCoverageSettings: per-account override of the tenant settings
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stride_billing.database import Base
from stride_billing.db_types import UUIDType, MoneyType, RateType


class CoverageType(str, Enum):
    """Valuation coverage options."""
    STANDARD = "STANDARD"                          # Carrier liability, no premium
    FULL_NO_DEDUCTIBLE = "FULL_NO_DEDUCTIBLE"      # Full replacement, no deductible
    FULL_WITH_DEDUCTIBLE = "FULL_WITH_DEDUCTIBLE"  # Full replacement, deductible applies at claim time


class CoverageScope(str, Enum):
    ITEM = "ITEM"
    SHIPMENT = "SHIPMENT"


class CoverageSettings(Base):
    """Tenant coverage configuration."""
    __tablename__ = "coverage_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        unique=True
    )

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="STANDARD",
        comment="STANDARD, FULL_NO_DEDUCTIBLE, FULL_WITH_DEDUCTIBLE"
    )
    rate_no_deductible: Mapped[Decimal] = mapped_column(
        RateType,
        nullable=False,
        default=Decimal("0.0188")
    )
    rate_with_deductible: Mapped[Decimal] = mapped_column(
        RateType,
        nullable=False,
        default=Decimal("0.0142")
    )
    deductible_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        default=Decimal("300.00")
    )
    allow_item: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_shipment: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<CoverageSettings(tenant='{self.tenant_id}', enabled={self.enabled})>"


class AccountCoverageSettings(Base):
    """Per-account coverage override. Ignored unless override_enabled."""
    __tablename__ = "account_coverage_settings"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'account_id', name='uq_account_coverage_settings'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)

    override_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    rate_no_deductible: Mapped[Optional[Decimal]] = mapped_column(RateType, nullable=True)
    rate_with_deductible: Mapped[Optional[Decimal]] = mapped_column(RateType, nullable=True)
    deductible_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    default_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<AccountCoverageSettings(account='{self.account_id}', override={self.override_enabled})>"
