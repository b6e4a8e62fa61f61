"""Tests for promo validation and discount math."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import make_promo
from stride_billing.core.errors import (
    InvalidAmountError, PromoExhaustedError, PromoExpiredError,
    PromoNotActiveError, PromoScopeMismatchError,
)
from stride_billing.services.promo_engine import PromoEngine


@pytest.fixture
def engine():
    return PromoEngine()


class TestDiscountMath:
    def test_percentage(self, engine, now):
        result = engine.preview(make_promo(), Decimal("100.00"), [], now)
        assert result.final_amount == Decimal("75.00")
        assert result.discount_amount == Decimal("25.00")

    def test_flat_rate(self, engine, now):
        promo = make_promo("TENOFF", discount_type="FLAT_RATE", discount_value=Decimal("10.00"))
        assert engine.preview(promo, "45.00", [], now).final_amount == Decimal("35.00")

    def test_flat_rate_clamped_at_zero(self, engine, now):
        promo = make_promo("BIGOFF", discount_type="FLAT_RATE", discount_value=Decimal("50.00"))
        result = engine.preview(promo, "20.00", [], now)
        assert result.final_amount == Decimal("0.00")
        assert result.discount_amount == Decimal("20.00")

    def test_percentage_rounds_half_up(self, engine, now):
        promo = make_promo("THIRD", discount_value=Decimal("33.33"))
        # 10.05 * 0.6667 = 6.700335
        assert engine.preview(promo, "10.05", [], now).final_amount == Decimal("6.70")

    @pytest.mark.parametrize("discount_type,value", [
        ("PERCENTAGE", "0"), ("PERCENTAGE", "100"), ("FLAT_RATE", "0.01"), ("FLAT_RATE", "999.99"),
    ])
    @pytest.mark.parametrize("subtotal", ["0.00", "0.01", "19.99", "1000.00"])
    def test_final_amount_between_zero_and_subtotal(self, engine, discount_type, value, subtotal):
        promo = make_promo("X", discount_type=discount_type, discount_value=Decimal(value))
        amount = engine.discounted_amount(promo, Decimal(subtotal))
        assert Decimal("0") <= amount <= Decimal(subtotal)

    def test_subtotal_precision_checked(self, engine, now):
        with pytest.raises(InvalidAmountError):
            engine.preview(make_promo(), "10.001", [], now)


class TestValidationOrder:
    def test_expired(self, engine, now):
        promo = make_promo(expiration_type="DATE", expiration_date=now - timedelta(days=1))
        with pytest.raises(PromoExpiredError):
            engine.preview(promo, "10.00", [], now)

    def test_not_expired_on_expiration_instant(self, engine, now):
        promo = make_promo(expiration_type="DATE", expiration_date=now)
        assert engine.preview(promo, "10.00", [], now).final_amount == Decimal("7.50")

    def test_naive_now_treated_as_utc(self, engine, now):
        promo = make_promo(expiration_type="DATE", expiration_date=now + timedelta(hours=1))
        naive = datetime(2025, 6, 1, 12, 30)
        assert engine.preview(promo, "10.00", [], naive).final_amount == Decimal("7.50")

    def test_exhausted(self, engine, now):
        promo = make_promo(usage_limit_type="LIMITED", usage_limit=5, usage_count=5)
        with pytest.raises(PromoExhaustedError):
            engine.preview(promo, "10.00", [], now)

    def test_not_active(self, engine, now):
        with pytest.raises(PromoNotActiveError):
            engine.preview(make_promo(is_active=False), "10.00", [], now)

    def test_scope_mismatch(self, engine, now):
        promo = make_promo(service_scope="SELECTED", selected_services=("ASSEMBLY_60",))
        with pytest.raises(PromoScopeMismatchError):
            engine.preview(promo, "10.00", ["RCVG"], now)

    def test_scope_match(self, engine, now):
        promo = make_promo(service_scope="SELECTED", selected_services=("ASSEMBLY_60",))
        assert engine.preview(promo, "10.00", ["RCVG", "ASSEMBLY_60"], now).final_amount == Decimal("7.50")

    def test_expired_reported_before_everything_else(self, engine, now):
        promo = make_promo(
            expiration_type="DATE",
            expiration_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            usage_limit_type="LIMITED",
            usage_limit=1,
            usage_count=1,
            is_active=False,
            service_scope="SELECTED",
            selected_services=("OTHER",),
        )
        with pytest.raises(PromoExpiredError):
            engine.preview(promo, "10.00", ["RCVG"], now)

    def test_exhausted_reported_before_inactive(self, engine, now):
        promo = make_promo(usage_limit_type="LIMITED", usage_limit=1, usage_count=1, is_active=False)
        with pytest.raises(PromoExhaustedError):
            engine.preview(promo, "10.00", [], now)

    def test_inactive_reported_before_scope(self, engine, now):
        promo = make_promo(is_active=False, service_scope="SELECTED", selected_services=("OTHER",))
        with pytest.raises(PromoNotActiveError):
            engine.preview(promo, "10.00", ["RCVG"], now)


class TestModes:
    def test_preview_does_not_consume_usage(self, engine, now):
        promo = make_promo(usage_limit_type="LIMITED", usage_limit=1)
        engine.preview(promo, "10.00", [], now)
        engine.preview(promo, "10.00", [], now)
        assert promo.usage_count == 0
        assert promo.uses_remaining == 1

    def test_commit_increments_once(self, engine, now):
        promo = make_promo(usage_limit_type="LIMITED", usage_limit=2, usage_count=1)
        redemption = engine.commit(promo, "100.00", [], now)
        assert redemption.promo_after.usage_count == 2
        assert redemption.promo_after.uses_remaining == 0
        assert redemption.promo_code_id == promo.id
        assert redemption.result.final_amount == Decimal("75.00")
        assert promo.usage_count == 1

    def test_commit_rejects_like_preview(self, engine, now):
        promo = make_promo(usage_limit_type="LIMITED", usage_limit=1, usage_count=1)
        with pytest.raises(PromoExhaustedError):
            engine.commit(promo, "10.00", [], now)

    def test_commit_keeps_given_redemption_id(self, engine, now):
        first = engine.commit(make_promo(), "10.00", [], now)
        second = engine.commit(make_promo(), "10.00", [], now, redemption_id=first.redemption_id)
        assert second.redemption_id == first.redemption_id

    def test_commit_generates_distinct_ids(self, engine, now):
        promo = make_promo()
        assert engine.commit(promo, "10.00", [], now).redemption_id != engine.commit(promo, "10.00", [], now).redemption_id
