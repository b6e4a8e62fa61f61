"""
Promo Code Service.

Promo store for the discount engine:
- Promo code administration (code is normalized upper-case and immutable)
- Snapshots by code, matched case-insensitively
- Redemption persistence: one usage row per tenant and redemption_id plus a conditional
  usage_count increment, so concurrent redemptions never exceed the limit
  and a replayed redemption is never counted twice
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stride_billing.core.enum_utils import get_enum_value
from stride_billing.core.errors import (
    DuplicatePromoCodeError, InvalidPromoConfigError, PromoExhaustedError,
    PromoNotFoundError, RedemptionConflictError,
)
from stride_billing.models.promo_code import PromoCode, PromoCodeUsage, UsageLimitType
from stride_billing.schemas.promo_code import (
    DiscountResult, PromoCodeCreate, PromoCodeUpdate, PromoCodeSnapshot, PromoRedemption,
    check_promo_rules, normalize_promo_code,
)
from stride_billing.services.promo_engine import PromoEngine

logger = logging.getLogger(__name__)

ENUM_FIELDS = ("discount_type", "expiration_type", "service_scope", "usage_limit_type")


class PromoCodeService:
    """Service for promo codes and redemptions."""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID, engine: Optional[PromoEngine] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.engine = engine or PromoEngine()

    # =========================================================================
    # PROMO CODES
    # =========================================================================

    async def get_by_code(self, code: str) -> Optional[PromoCode]:
        """Get promo code by code (case-insensitive)."""
        query = select(PromoCode).where(
            and_(
                PromoCode.tenant_id == self.tenant_id,
                func.upper(PromoCode.code) == normalize_promo_code(code),
            )
        ).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_promo_code(self, promo_id: uuid.UUID) -> Optional[PromoCode]:
        query = select(PromoCode).where(
            and_(
                PromoCode.id == promo_id,
                PromoCode.tenant_id == self.tenant_id,
            )
        ).execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _require(self, promo_id: uuid.UUID) -> PromoCode:
        promo = await self.get_promo_code(promo_id)
        if not promo:
            raise PromoNotFoundError(f"Promo code {promo_id} not found", details={"id": str(promo_id)})
        return promo

    async def get_snapshot(self, code: str) -> PromoCodeSnapshot:
        """
        Promo state for the discount engine.

        Raises:
            PromoNotFoundError: no promo with that code for this tenant
        """
        promo = await self.get_by_code(code)
        if not promo:
            raise PromoNotFoundError(
                f"Promo code {normalize_promo_code(code)} not found",
                details={"code": normalize_promo_code(code)},
            )
        return PromoCodeSnapshot.model_validate(promo)

    async def list_promo_codes(
        self,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> Tuple[List[PromoCode], int]:
        query = select(PromoCode).where(PromoCode.tenant_id == self.tenant_id)
        if active_only:
            query = query.where(PromoCode.is_active == True)  # noqa: E712

        total = await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0
        query = query.order_by(PromoCode.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create_promo_code(self, data: PromoCodeCreate) -> PromoCode:
        """Create a promo code; codes are unique per tenant ignoring case."""
        code = normalize_promo_code(data.code)
        if await self.get_by_code(code):
            raise DuplicatePromoCodeError(
                f"Promo code {code} already exists",
                details={"code": code},
            )

        promo = PromoCode(
            tenant_id=self.tenant_id,
            code=code,
            discount_type=get_enum_value(data.discount_type),
            discount_value=data.discount_value,
            expiration_type=get_enum_value(data.expiration_type),
            expiration_date=data.expiration_date,
            service_scope=get_enum_value(data.service_scope),
            selected_services=list(data.selected_services) or None,
            usage_limit_type=get_enum_value(data.usage_limit_type),
            usage_limit=data.usage_limit if data.usage_limit_type == UsageLimitType.LIMITED else None,
            usage_count=0,
            is_active=data.is_active,
        )
        self.db.add(promo)
        await self.db.commit()
        await self.db.refresh(promo)
        logger.info(f"Created promo code {promo.code} for tenant {self.tenant_id}")
        return promo

    async def update_promo_code(self, promo_id: uuid.UUID, data: PromoCodeUpdate) -> PromoCode:
        """Update promo settings. The code itself and usage_count never change here."""
        promo = await self._require(promo_id)
        update_data = data.model_dump(exclude_unset=True)

        merged = {
            field: update_data.get(field, getattr(promo, field))
            for field in (
                "discount_type", "discount_value", "expiration_type", "expiration_date",
                "service_scope", "selected_services", "usage_limit_type", "usage_limit",
            )
        }
        try:
            check_promo_rules(**merged)
        except ValueError as e:
            raise InvalidPromoConfigError(str(e), details={"code": promo.code})

        for field, value in update_data.items():
            setattr(promo, field, get_enum_value(value) if field in ENUM_FIELDS else value)

        await self.db.commit()
        await self.db.refresh(promo)
        return promo

    async def set_active(self, promo_id: uuid.UUID, is_active: bool) -> PromoCode:
        promo = await self._require(promo_id)
        promo.is_active = is_active
        await self.db.commit()
        await self.db.refresh(promo)
        return promo

    # =========================================================================
    # REDEMPTIONS
    # =========================================================================

    async def _find_usage(self, redemption_id: uuid.UUID) -> Optional[PromoCodeUsage]:
        """Recorded usage for ``redemption_id`` in this tenant."""
        query = select(PromoCodeUsage).where(
            and_(
                PromoCodeUsage.tenant_id == self.tenant_id,
                PromoCodeUsage.redemption_id == redemption_id,
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _check_same_promo(usage: PromoCodeUsage, promo_code_id: uuid.UUID, code: str) -> None:
        if usage.promo_code_id != promo_code_id:
            raise RedemptionConflictError(
                f"Redemption {usage.redemption_id} was recorded for another promo code",
                details={"redemption_id": str(usage.redemption_id), "code": code},
            )

    async def apply_redemption(
        self,
        redemption: PromoRedemption,
        account_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """
        Persist a redemption decided by the promo engine.

        Returns:
            True when the usage was recorded, False when this redemption_id
            was already recorded for the same promo code

        Raises:
            PromoExhaustedError: the limit was reached by a concurrent redemption
            RedemptionConflictError: the redemption_id belongs to another promo code
        """
        code = redemption.result.promo_code
        if redemption.promo_code_id is None:
            raise PromoNotFoundError(
                f"Promo code {code} is not stored",
                details={"code": code},
            )

        existing = await self._find_usage(redemption.redemption_id)
        if existing is not None:
            self._check_same_promo(existing, redemption.promo_code_id, code)
            logger.info(f"Redemption {redemption.redemption_id} already recorded")
            return False

        try:
            async with self.db.begin_nested():
                self.db.add(PromoCodeUsage(
                    tenant_id=self.tenant_id,
                    promo_code_id=redemption.promo_code_id,
                    redemption_id=redemption.redemption_id,
                    account_id=account_id,
                    subtotal=redemption.result.subtotal,
                    discount_amount=redemption.result.discount_amount,
                    final_amount=redemption.result.final_amount,
                    redeemed_at=redemption.redeemed_at,
                ))
                await self.db.flush()
        except IntegrityError:
            # Only the savepoint is rolled back
            logger.info(f"Redemption {redemption.redemption_id} recorded concurrently")
            existing = await self._find_usage(redemption.redemption_id)
            if existing is not None:
                self._check_same_promo(existing, redemption.promo_code_id, code)
            return False

        # Increment only while below the limit
        stmt = (
            update(PromoCode)
            .where(
                and_(
                    PromoCode.id == redemption.promo_code_id,
                    PromoCode.tenant_id == self.tenant_id,
                    or_(
                        PromoCode.usage_limit_type != UsageLimitType.LIMITED.value,
                        PromoCode.usage_count < PromoCode.usage_limit,
                    ),
                )
            )
            .values(
                usage_count=PromoCode.usage_count + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise PromoExhaustedError(
                f"Promo code {code} has reached its usage limit",
                details={"code": code},
            )

        await self.db.commit()
        logger.info(
            f"Recorded redemption {redemption.redemption_id} of {code} "
            f"for tenant {self.tenant_id}"
        )
        return True

    async def redeem(
        self,
        code: str,
        subtotal,
        service_codes: Iterable[str],
        now: datetime,
        account_id: Optional[uuid.UUID] = None,
        redemption_id: Optional[uuid.UUID] = None,
    ) -> Tuple[PromoRedemption, bool]:
        """
        Validate against current state, decide and persist one redemption.

        Replaying a known ``redemption_id`` of the same promo code returns the
        recorded outcome with applied=False instead of validating again.
        """
        snapshot = await self.get_snapshot(code)

        if redemption_id is not None:
            usage = await self._find_usage(redemption_id)
            if usage is not None:
                self._check_same_promo(usage, snapshot.id, snapshot.code)
                return self._recorded_redemption(snapshot, usage), False

        redemption = self.engine.commit(
            snapshot, subtotal, service_codes, now, redemption_id=redemption_id
        )
        applied = await self.apply_redemption(redemption, account_id=account_id)
        return redemption, applied

    @staticmethod
    def _recorded_redemption(snapshot: PromoCodeSnapshot, usage: PromoCodeUsage) -> PromoRedemption:
        return PromoRedemption(
            redemption_id=usage.redemption_id,
            promo_code_id=usage.promo_code_id,
            result=DiscountResult(
                promo_code=snapshot.code,
                discount_type=snapshot.discount_type,
                discount_value=snapshot.discount_value,
                subtotal=usage.subtotal,
                discount_amount=usage.discount_amount,
                final_amount=usage.final_amount,
            ),
            promo_after=snapshot,
            redeemed_at=usage.redeemed_at,
        )

    async def list_usage(self, promo_id: uuid.UUID) -> List[PromoCodeUsage]:
        query = select(PromoCodeUsage).where(
            and_(
                PromoCodeUsage.tenant_id == self.tenant_id,
                PromoCodeUsage.promo_code_id == promo_id,
            )
        ).order_by(PromoCodeUsage.redeemed_at)
        result = await self.db.execute(query)
        return list(result.scalars().all())
