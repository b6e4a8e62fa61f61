"""
Service Catalog Models.

This module implements the configured price list:
- ServiceEvent: a billable service, optionally scoped to an item-size class
- AccountServiceSetting: per-account enable flag and rate adjustments
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Text, Index, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from stride_billing.database import Base
from stride_billing.db_types import UUIDType, MoneyType, RateType


# ============================================================================
# ENUMS
# ============================================================================

class ClassCode(str, Enum):
    """Item-size classes used for class-based pricing."""
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


class BillingUnit(str, Enum):
    """What one unit of quantity means."""
    PER_DAY = "PER_DAY"
    PER_ITEM = "PER_ITEM"
    PER_TASK = "PER_TASK"


class BillingTrigger(str, Enum):
    """When an external collaborator raises the charge. No effect on rate math."""
    SCAN_EVENT = "SCAN_EVENT"
    AUTOCALCULATE = "AUTOCALCULATE"
    THROUGH_TASK = "THROUGH_TASK"
    SHIPMENT = "SHIPMENT"
    STOCKTAKE = "STOCKTAKE"
    FLAG = "FLAG"


# ============================================================================
# MODELS
# ============================================================================

class ServiceEvent(Base):
    """
    A priced service in a tenant's catalog.

    Active rows are unique per (category, class_code) and per
    (service_code, class_code). A NULL class code counts as one value and
    inactive rows never collide.
    """
    __tablename__ = "service_events"
    __table_args__ = (
        Index('ix_service_events_tenant_category', 'tenant_id', 'category'),
        Index('ix_service_events_tenant_code', 'tenant_id', 'service_code'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        index=True
    )

    service_code: Mapped[str] = mapped_column(String(50), nullable=False)
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Normalized category key, e.g. receiving, assembly"
    )
    class_code: Mapped[Optional[str]] = mapped_column(
        String(10),
        nullable=True,
        comment="XS, S, M, L, XL, XXL or NULL for flat services"
    )

    # Pricing
    rate: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True,
        comment="NULL = pending configuration, never billed as zero"
    )
    minimum_charge: Mapped[Optional[Decimal]] = mapped_column(
        MoneyType,
        nullable=True
    )
    billing_unit: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="PER_ITEM",
        comment="PER_DAY, PER_ITEM, PER_TASK"
    )
    billing_trigger: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="SCAN_EVENT",
        comment="SCAN_EVENT, AUTOCALCULATE, THROUGH_TASK, SHIPMENT, STOCKTAKE, FLAG"
    )
    taxable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    service_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Catalog order; the resolver takes the first match in this order
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
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
        return f"<ServiceEvent(code='{self.service_code}', class='{self.class_code}', rate={self.rate})>"


# Active-scope uniqueness; CatalogService reports violations as duplicate scopes
Index(
    "uq_service_events_active_category",
    ServiceEvent.tenant_id,
    ServiceEvent.category,
    func.coalesce(ServiceEvent.class_code, ""),
    unique=True,
    postgresql_where=ServiceEvent.is_active == True,  # noqa: E712
    sqlite_where=ServiceEvent.is_active == True,  # noqa: E712
)
Index(
    "uq_service_events_active_code",
    ServiceEvent.tenant_id,
    ServiceEvent.service_code,
    func.coalesce(ServiceEvent.class_code, ""),
    unique=True,
    postgresql_where=ServiceEvent.is_active == True,  # noqa: E712
    sqlite_where=ServiceEvent.is_active == True,  # noqa: E712
)


class AccountServiceSetting(Base):
    """
    Account-level pricing for one service code.

    custom_rate replaces the catalog rate; custom_percent_adjust scales it.
    """
    __tablename__ = "account_service_settings"
    __table_args__ = (
        UniqueConstraint(
            'tenant_id', 'account_id', 'service_code',
            name='uq_account_service_setting'
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    service_code: Mapped[str] = mapped_column(String(50), nullable=False)

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    custom_rate: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    custom_percent_adjust: Mapped[Optional[Decimal]] = mapped_column(
        RateType,
        nullable=True,
        comment="e.g. -10 for 10% off the catalog rate"
    )

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
        return f"<AccountServiceSetting(account='{self.account_id}', code='{self.service_code}')>"
