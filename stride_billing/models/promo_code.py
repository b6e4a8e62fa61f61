"""
Promo Code Models

Supports percentage and flat-rate discounts, optional expiry, service scoping
and usage limits. Redemptions are recorded one row per redemption so a replay
of the same redemption can never increment the usage count twice.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stride_billing.database import Base
from stride_billing.db_types import UUIDType, JSONType, MoneyType


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "PERCENTAGE"  # e.g., 25% off
    FLAT_RATE = "FLAT_RATE"  # e.g., $20 off


class ExpirationType(str, Enum):
    NONE = "NONE"
    DATE = "DATE"


class ServiceScope(str, Enum):
    ALL = "ALL"
    SELECTED = "SELECTED"


class UsageLimitType(str, Enum):
    UNLIMITED = "UNLIMITED"
    LIMITED = "LIMITED"


class PromoCode(Base):
    """
    Promo code configured by a tenant.
    """
    __tablename__ = "promo_codes"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_promo_code_tenant_code'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Stored upper-case, immutable after creation"
    )

    # Discount Type & Value
    discount_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="PERCENTAGE",
        comment="PERCENTAGE, FLAT_RATE"
    )
    discount_value: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        default=0
    )

    # Expiry
    expiration_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="NONE",
        comment="NONE, DATE"
    )
    expiration_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Scope
    service_scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="ALL",
        comment="ALL, SELECTED"
    )
    selected_services: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Service codes the promo applies to when scope is SELECTED"
    )

    # Usage Limits
    usage_limit_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="UNLIMITED",
        comment="UNLIMITED, LIMITED"
    )
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Incremented only by confirmed redemptions"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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

    @property
    def uses_remaining(self) -> Optional[int]:
        """Remaining redemptions, None when unlimited."""
        if self.usage_limit_type != UsageLimitType.LIMITED.value or self.usage_limit is None:
            return None
        return max(0, self.usage_limit - (self.usage_count or 0))

    def __repr__(self) -> str:
        return f"<PromoCode(code='{self.code}', type='{self.discount_type}', value={self.discount_value})>"


class PromoCodeUsage(Base):
    """
    One confirmed redemption of a promo code.
    """
    __tablename__ = "promo_code_usage"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'redemption_id', name='uq_promo_code_usage_redemption'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    promo_code_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    redemption_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        nullable=False,
        comment="Idempotency key issued by the promo engine, unique per tenant"
    )
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<PromoCodeUsage(promo='{self.promo_code_id}', redemption='{self.redemption_id}')>"
