"""Tests for the three-tier service resolver."""

import logging

import pytest

from conftest import make_entry
from stride_billing.core.errors import NoMatchingServiceError
from stride_billing.models.service_catalog import ClassCode
from stride_billing.schemas.charge import ChargeContext
from stride_billing.services.service_resolver import ServiceResolver


@pytest.fixture
def resolver():
    return ServiceResolver()


class TestTiers:
    def test_class_specific_entry_wins(self, resolver, receiving_catalog):
        entry = resolver.resolve(ChargeContext(category="receiving", class_code="L"), receiving_catalog)
        assert entry.service_code == "RCVG-L"

    def test_class_specific_wins_regardless_of_catalog_order(self, resolver):
        catalog = [
            make_entry("FLAT", "inspection", None),
            make_entry("INSP-M", "inspection", "M"),
        ]
        entry = resolver.resolve(ChargeContext(category="inspection", class_code="M"), catalog)
        assert entry.service_code == "INSP-M"

    def test_falls_back_to_flat_entry(self, resolver):
        # Only an L entry and a flat entry: class M gets the flat entry, not L
        catalog = [
            make_entry("INSP-L", "inspection", "L"),
            make_entry("INSP", "inspection", None),
        ]
        entry = resolver.resolve(ChargeContext(category="inspection", class_code="M"), catalog)
        assert entry.service_code == "INSP"

    def test_no_class_uses_flat_entry(self, resolver, receiving_catalog):
        entry = resolver.resolve(ChargeContext(category="receiving"), receiving_catalog)
        assert entry.service_code == "RCVG"

    def test_any_entry_when_no_class_or_flat_match(self, resolver):
        catalog = [
            make_entry("WC-XL", "will_call", "XL"),
            make_entry("WC-S", "will_call", "S"),
        ]
        entry = resolver.resolve(ChargeContext(category="will_call", class_code="M"), catalog)
        assert entry.service_code == "WC-XL"

    def test_inactive_entries_never_resolve(self, resolver):
        catalog = [
            make_entry("INSP-M", "inspection", "M", is_active=False),
            make_entry("INSP", "inspection", None),
        ]
        entry = resolver.resolve(ChargeContext(category="inspection", class_code="M"), catalog)
        assert entry.service_code == "INSP"

    def test_category_is_normalized(self, resolver):
        catalog = [make_entry("WC", "will_call", None)]
        entry = resolver.resolve(ChargeContext(category="Will Call"), catalog)
        assert entry.service_code == "WC"


class TestServiceCodeKey:
    def test_service_code_overrides_category(self, resolver, receiving_catalog):
        context = ChargeContext(category="receiving", service_code="ASSEMBLY_60")
        assert resolver.resolve(context, receiving_catalog).service_code == "ASSEMBLY_60"

    def test_service_code_tiers_by_class(self, resolver):
        catalog = [
            make_entry("RCVG", "receiving", None, "8.00"),
            make_entry("RCVG", "receiving_sized", "M", "12.00"),
        ]
        entry = resolver.resolve(ChargeContext(service_code="RCVG", class_code="M"), catalog)
        assert entry.class_code == ClassCode.M


class TestNoMatch:
    def test_no_match_raises(self, resolver, receiving_catalog):
        with pytest.raises(NoMatchingServiceError) as exc:
            resolver.resolve(ChargeContext(category="disposal", class_code="S"), receiving_catalog)
        assert exc.value.details["category"] == "disposal"
        assert exc.value.details["class_code"] == "S"

    def test_empty_catalog_raises(self, resolver):
        with pytest.raises(NoMatchingServiceError):
            resolver.resolve(ChargeContext(category="receiving"), [])

    def test_try_resolve_returns_none(self, resolver):
        assert resolver.try_resolve(ChargeContext(category="receiving"), []) is None

    def test_context_requires_a_key(self):
        with pytest.raises(ValueError):
            ChargeContext(class_code="M")


class TestDeterminism:
    def test_same_inputs_same_entry(self, resolver, receiving_catalog):
        context = ChargeContext(category="receiving", class_code="XL")
        first = resolver.resolve(context, receiving_catalog)
        second = resolver.resolve(context, receiving_catalog)
        assert first == second

    def test_tie_takes_first_and_warns(self, resolver, caplog):
        catalog = [
            make_entry("A", "inspection", None),
            make_entry("B", "inspection", None),
        ]
        with caplog.at_level(logging.WARNING, logger="stride_billing.services.service_resolver"):
            entry = resolver.resolve(ChargeContext(category="inspection"), catalog)
        assert entry.service_code == "A"
        assert "Ambiguous catalog" in caplog.text

    def test_find_scope_conflicts(self, resolver):
        catalog = [
            make_entry("A", "inspection", None),
            make_entry("B", "inspection", None),
            make_entry("C", "inspection", "M"),
            make_entry("D", "inspection", "M", is_active=False),
        ]
        conflicts = resolver.find_scope_conflicts(catalog)
        assert conflicts == {("inspection", None): ["A", "B"]}
