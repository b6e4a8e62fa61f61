"""Tests for the tenant service catalog store."""

import uuid
from decimal import Decimal

import pytest

from stride_billing.core.errors import DuplicateServiceScopeError, ServiceNotFoundError
from stride_billing.models.service_catalog import BillingTrigger, BillingUnit, ClassCode
from stride_billing.schemas.service_catalog import (
    AccountServiceSettingUpsert, ServiceEventCreate, ServiceEventUpdate,
)
from stride_billing.services.catalog_service import CatalogService


def service_data(service_code, category, class_code=None, rate="10.00", **kwargs):
    return ServiceEventCreate(
        service_code=service_code,
        service_name=kwargs.pop("service_name", service_code),
        category=category,
        class_code=class_code,
        rate=None if rate is None else Decimal(rate),
        **kwargs,
    )


@pytest.fixture
def catalog_service(async_db_session, tenant_id):
    return CatalogService(async_db_session, tenant_id)


class TestCreateService:
    async def test_create_normalizes_inputs(self, catalog_service):
        service = await catalog_service.create_service(service_data(
            "WC-M", "Will Call", "m", billing_unit="Item", billing_trigger="Task Completion",
        ))
        assert service.category == "will_call"
        assert service.class_code == "M"
        assert service.billing_unit == BillingUnit.PER_ITEM.value
        assert service.billing_trigger == BillingTrigger.THROUGH_TASK.value

    async def test_duplicate_category_and_class_rejected(self, catalog_service):
        await catalog_service.create_service(service_data("INSP-M", "inspection", "M"))
        with pytest.raises(DuplicateServiceScopeError) as exc:
            await catalog_service.create_service(service_data("INSP-M2", "inspection", "M"))
        assert exc.value.details["existing_service_code"] == "INSP-M"

    async def test_duplicate_flat_entry_rejected(self, catalog_service):
        await catalog_service.create_service(service_data("INSP", "inspection"))
        with pytest.raises(DuplicateServiceScopeError):
            await catalog_service.create_service(service_data("INSP-2", "inspection"))

    async def test_same_category_other_class_allowed(self, catalog_service):
        await catalog_service.create_service(service_data("INSP-M", "inspection", "M"))
        await catalog_service.create_service(service_data("INSP-L", "inspection", "L"))
        await catalog_service.create_service(service_data("INSP", "inspection"))
        entries = await catalog_service.list_entries()
        assert len(entries) == 3

    async def test_inactive_entry_does_not_block(self, catalog_service):
        await catalog_service.create_service(service_data("OLD", "inspection", is_active=False))
        await catalog_service.create_service(service_data("NEW", "inspection"))

    async def test_scope_is_per_tenant(self, async_db_session, catalog_service):
        await catalog_service.create_service(service_data("INSP", "inspection"))
        other = CatalogService(async_db_session, uuid.uuid4())
        await other.create_service(service_data("INSP", "inspection"))
        assert len(await other.list_entries()) == 1


class TestListEntries:
    async def test_snapshot_order_and_filter(self, catalog_service):
        await catalog_service.create_service(service_data("B", "storage", sort_order=2))
        await catalog_service.create_service(service_data("A", "receiving", sort_order=1))
        await catalog_service.create_service(service_data("C", "disposal", sort_order=3, is_active=False))

        entries = await catalog_service.list_entries()
        assert [e.service_code for e in entries] == ["A", "B"]
        assert entries[0].rate == Decimal("10.00")

        everything = await catalog_service.list_entries(include_inactive=True)
        assert [e.service_code for e in everything] == ["A", "B", "C"]

    async def test_entry_carries_enums(self, catalog_service):
        await catalog_service.create_service(service_data("RCVG-L", "receiving", "L", billing_unit="PER_ITEM"))
        entry = (await catalog_service.list_entries())[0]
        assert entry.class_code == ClassCode.L
        assert entry.billing_unit == BillingUnit.PER_ITEM


class TestUpdateAndActivation:
    async def test_update_rate(self, catalog_service):
        service = await catalog_service.create_service(service_data("INSP", "inspection"))
        updated = await catalog_service.update_service(service.id, ServiceEventUpdate(rate=Decimal("12.50")))
        assert updated.rate == Decimal("12.50")

    async def test_update_into_taken_scope_rejected(self, catalog_service):
        await catalog_service.create_service(service_data("INSP-M", "inspection", "M"))
        other = await catalog_service.create_service(service_data("INSP-L", "inspection", "L"))
        with pytest.raises(DuplicateServiceScopeError):
            await catalog_service.update_service(other.id, ServiceEventUpdate(class_code="M"))

    async def test_update_missing_service(self, catalog_service):
        with pytest.raises(ServiceNotFoundError):
            await catalog_service.update_service(uuid.uuid4(), ServiceEventUpdate(rate=Decimal("1.00")))

    async def test_reactivate_conflict(self, catalog_service):
        old = await catalog_service.create_service(service_data("OLD", "inspection"))
        await catalog_service.deactivate_service(old.id)
        await catalog_service.create_service(service_data("NEW", "inspection"))
        with pytest.raises(DuplicateServiceScopeError):
            await catalog_service.reactivate_service(old.id)

    async def test_deactivate_then_reactivate(self, catalog_service):
        service = await catalog_service.create_service(service_data("INSP", "inspection"))
        await catalog_service.deactivate_service(service.id)
        assert await catalog_service.list_entries() == []
        reactivated = await catalog_service.reactivate_service(service.id)
        assert reactivated.is_active is True


class TestActiveScopeIndex:
    """Writers that passed the scope check concurrently are still stopped by the database."""

    @pytest.fixture
    def unchecked(self, catalog_service, monkeypatch):
        async def passes(*args, **kwargs):
            return None

        monkeypatch.setattr(catalog_service, "_check_scope", passes)
        return catalog_service

    async def test_duplicate_class_entry(self, unchecked):
        await unchecked.create_service(service_data("INSP-M", "inspection", "M"))
        with pytest.raises(DuplicateServiceScopeError) as exc:
            await unchecked.create_service(service_data("INSP-M2", "inspection", "M"))
        assert exc.value.details["class_code"] == "M"
        assert [e.service_code for e in await unchecked.list_entries()] == ["INSP-M"]

    async def test_duplicate_flat_code(self, unchecked):
        await unchecked.create_service(service_data("RCVG", "receiving"))
        with pytest.raises(DuplicateServiceScopeError):
            await unchecked.create_service(service_data("RCVG", "handling"))

    async def test_inactive_rows_may_repeat(self, unchecked):
        await unchecked.create_service(service_data("OLD", "inspection", is_active=False))
        await unchecked.create_service(service_data("OLDER", "inspection", is_active=False))
        await unchecked.create_service(service_data("NEW", "inspection"))
        assert len(await unchecked.list_entries(include_inactive=True)) == 3

    async def test_update_into_taken_scope(self, unchecked):
        await unchecked.create_service(service_data("INSP-M", "inspection", "M"))
        large = await unchecked.create_service(service_data("INSP-L", "inspection", "L"))
        with pytest.raises(DuplicateServiceScopeError):
            await unchecked.update_service(large.id, ServiceEventUpdate(class_code="M"))
        assert (await unchecked.get_service(large.id)).class_code == "L"


class TestAccountSettings:
    async def test_no_account_no_adjustments(self, catalog_service):
        assert await catalog_service.get_account_adjustments(None) == []

    async def test_upsert_adjustment(self, catalog_service):
        account_id = uuid.uuid4()
        await catalog_service.set_account_adjustment(
            account_id, "RCVG", AccountServiceSettingUpsert(custom_rate=Decimal("7.00"))
        )
        await catalog_service.set_account_adjustment(
            account_id, "RCVG", AccountServiceSettingUpsert(is_enabled=False)
        )
        adjustments = await catalog_service.get_account_adjustments(account_id)
        assert len(adjustments) == 1
        assert adjustments[0].is_enabled is False
        assert adjustments[0].custom_rate is None
