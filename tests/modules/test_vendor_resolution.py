"""Tests for vendor resolution, the resolver cache, the vendor directory and grouping."""

from decimal import Decimal
from uuid import uuid4

import pytest

from collision_ingestion.domain.types import PartInfo
from collision_kernel.exceptions import VendorNotFoundError
from collision_modules.procurement.config import ProcurementConfig
from collision_modules.procurement.grouping import UNASSIGNED, group_by_vendor
from collision_modules.procurement.models import PartLine, VendorType
from collision_modules.procurement.vendor_resolver import (
    VendorCache,
    VendorResolver,
    alias_spellings,
    derive_vendor_type,
    fallback_vendor_type,
)
from collision_modules.procurement.vendors import VendorDirectory


@pytest.fixture
def vendor_cache():
    return VendorCache()


@pytest.fixture
def directory(session, vendor_cache):
    return VendorDirectory(session, vendor_cache)


@pytest.fixture
def resolver(session, vendor_cache):
    return VendorResolver(session, vendor_cache)


@pytest.fixture
def add_vendor(directory, shop_id, test_actor_id):
    def _add_vendor(name, vendor_type=VendorType.AFTERMARKET, **fields):
        return directory.create_vendor(shop_id, name, vendor_type, test_actor_id, **fields)

    return _add_vendor


class TestVendorTypeRules:
    @pytest.mark.parametrize(
        "source_code, part_type, expected",
        [
            ("O", "Bumper", VendorType.OEM),
            (" o ", "Glass", VendorType.OEM),
            ("A", "Windshield Glass", VendorType.AFTERMARKET),
            ("A", "Paint", VendorType.PAINT_SUPPLIER),
            ("", "Primer Surfacer", VendorType.PAINT_SUPPLIER),
            ("A", "Masking Tape", VendorType.PAINT_SUPPLIER),
            ("U", "Door Shell", VendorType.AFTERMARKET),
            (None, None, VendorType.AFTERMARKET),
        ],
    )
    def test_derive(self, source_code, part_type, expected):
        assert derive_vendor_type(source_code, part_type) is expected

    def test_fallback(self):
        assert fallback_vendor_type("O") is VendorType.OEM
        assert fallback_vendor_type("A") is VendorType.AFTERMARKET
        assert fallback_vendor_type(None) is VendorType.AFTERMARKET

    def test_alias_spellings(self):
        spellings = alias_spellings("safelite")
        assert "SafeLite AutoGlass" in spellings
        assert spellings[0] == "safelite"
        assert alias_spellings("Joe's Glass") == ("Joe's Glass",)


class TestVendorResolver:
    def test_alias_match_beats_type(self, resolver, add_vendor, shop_id):
        add_vendor("Aftermarket Parts Supply", rating=Decimal("5"))
        safelite = add_vendor("SafeLite AutoGlass", rating=Decimal("1"))

        vendor = resolver.resolve(
            PartInfo(supplier_ref="Safelite", source_code="A", part_type="Glass"), shop_id,
        )
        assert vendor.id == safelite.id

    def test_alternate_names_match(self, resolver, add_vendor, shop_id):
        coastal = add_vendor("Coastal Glass", alternate_names=["CGX Direct"])
        vendor = resolver.resolve(PartInfo(supplier_ref="cgx direct"), shop_id)
        assert vendor.id == coastal.id

    def test_vendor_number_match(self, resolver, add_vendor, shop_id):
        add_vendor("Aftermarket Parts Supply", rating=Decimal("5"))
        northside = add_vendor("Northside Supply", vendor_number="V-7781")
        vendor = resolver.resolve(PartInfo(supplier_ref="v-7781", source_code="A"), shop_id)
        assert vendor.id == northside.id

    def test_unknown_reference_falls_through_to_type(self, resolver, add_vendor, shop_id):
        oem = add_vendor("OEM Dealer Parts", VendorType.OEM)
        vendor = resolver.resolve(PartInfo(supplier_ref="Nobody", source_code="O"), shop_id)
        assert vendor.id == oem.id

    def test_paint_parts_go_to_paint_supplier(self, resolver, add_vendor, shop_id):
        add_vendor("Aftermarket Parts Supply")
        paint = add_vendor("Paint & Materials Supply", VendorType.PAINT_SUPPLIER)
        vendor = resolver.resolve(PartInfo(source_code="A", part_type="Paint"), shop_id)
        assert vendor.id == paint.id

    def test_fallback_type_when_derived_type_has_no_vendor(self, resolver, add_vendor, shop_id):
        aftermarket = add_vendor("Aftermarket Parts Supply")
        vendor = resolver.resolve(PartInfo(source_code="A", part_type="Clear Coat"), shop_id)
        assert vendor.id == aftermarket.id

    def test_best_vendor_of_type(self, resolver, add_vendor, shop_id):
        add_vendor("Zeta Parts", rating=Decimal("4.5"), fill_rate=Decimal("0.80"))
        add_vendor("Beta Parts", rating=Decimal("4.5"), fill_rate=Decimal("0.95"))
        add_vendor("Alpha Parts", rating=Decimal("4.5"), fill_rate=Decimal("0.95"))
        add_vendor("Top Rated", rating=Decimal("3.0"))

        vendor = resolver.best_of_type(shop_id, VendorType.AFTERMARKET)
        assert vendor.name == "Alpha Parts"

    def test_inactive_vendors_are_ignored(self, resolver, directory, add_vendor, shop_id, test_actor_id):
        vendor = add_vendor("Keystone Automotive")
        directory.deactivate_vendor(vendor.id, test_actor_id)
        assert resolver.resolve(PartInfo(supplier_ref="Keystone"), shop_id) is None

    def test_other_shops_are_invisible(self, resolver, add_vendor):
        add_vendor("OEM Dealer Parts", VendorType.OEM)
        assert resolver.resolve(PartInfo(source_code="O"), uuid4()) is None

    def test_miss_is_logged(self, resolver, shop_id, captured_logs):
        assert resolver.resolve(PartInfo(supplier_ref="Ghost", part_type="Glass"), shop_id) is None

        miss = [r for r in captured_logs() if r["message"] == "vendor_resolution_miss"][0]
        assert miss["supplier_ref"] == "Ghost"
        assert miss["derived_type"] == "aftermarket"

    def test_same_input_same_vendor(self, resolver, add_vendor, shop_id):
        add_vendor("Aftermarket Parts Supply")
        add_vendor("Keystone Automotive")
        part = PartInfo(source_code="A", part_type="Lamp")
        assert resolver.resolve(part, shop_id) == resolver.resolve(part, shop_id)


class TestVendorCache:
    def test_results_are_cached(self, resolver, vendor_cache, add_vendor, shop_id):
        add_vendor("Aftermarket Parts Supply")
        resolver.resolve(PartInfo(source_code="A"), shop_id)
        assert len(vendor_cache) == 1

    def test_vendor_changes_invalidate_the_shop(self, resolver, add_vendor, shop_id):
        part = PartInfo(source_code="A", part_type="Lamp")
        assert resolver.resolve(part, shop_id) is None

        keystone = add_vendor("Keystone Automotive")
        assert resolver.resolve(part, shop_id).id == keystone.id

    def test_unshared_cache_keeps_stale_answers(self, session, add_vendor, shop_id):
        stale = VendorResolver(session, VendorCache())
        part = PartInfo(source_code="A")
        assert stale.resolve(part, shop_id) is None
        add_vendor("Keystone Automotive")
        assert stale.resolve(part, shop_id) is None

    def test_invalidate_is_per_shop(self):
        cache = VendorCache()
        shop_a, shop_b = uuid4(), uuid4()
        cache.put(shop_a, "type:oem", None)
        cache.put(shop_b, "type:oem", None)

        assert cache.invalidate(shop_a) == 1
        assert VendorCache.is_missing(cache.get(shop_a, "type:oem"))
        assert cache.get(shop_b, "type:oem") is None

    def test_disabled_cache_stores_nothing(self):
        cache = VendorCache(enabled=False)
        cache.put(uuid4(), "type:oem", None)
        assert len(cache) == 0


class TestVendorDirectory:
    def test_ensure_default_vendors_is_idempotent(self, directory, shop_id, test_actor_id):
        defaults = ProcurementConfig().default_vendors

        created = directory.ensure_default_vendors(shop_id, defaults, test_actor_id)
        again = directory.ensure_default_vendors(shop_id, defaults, test_actor_id)

        assert len(created) == 5
        assert again == []
        assert all(v.is_default for v in created)
        discounts = {v.name: v.discount_percentage for v in directory.list_vendors(shop_id)}
        assert discounts["Recycled Parts Network"] == Decimal("25")

    def test_find_by_code(self, directory, add_vendor, shop_id):
        keystone = add_vendor("Keystone Automotive")
        assert directory.find_by_code(shop_id, "keys").id == keystone.id
        assert directory.find_by_code(shop_id, "LKQX") is None

    def test_update_vendor(self, directory, add_vendor, test_actor_id):
        vendor = add_vendor("Keystone Automotive")
        updated = directory.update_vendor(
            vendor.id, test_actor_id, vendor_type="recycled", alternate_names=("KAI",),
        )
        assert updated.vendor_type is VendorType.RECYCLED
        assert updated.alternate_names == ("KAI",)

    def test_update_rejects_unknown_fields(self, directory, add_vendor, test_actor_id):
        vendor = add_vendor("Keystone Automotive")
        with pytest.raises(ValueError):
            directory.update_vendor(vendor.id, test_actor_id, shop_id=uuid4())

    def test_deactivated_vendors_are_not_listed(self, directory, add_vendor, shop_id, test_actor_id):
        vendor = add_vendor("Keystone Automotive")
        directory.deactivate_vendor(vendor.id, test_actor_id)
        assert directory.list_vendors(shop_id) == []
        assert len(directory.list_vendors(shop_id, active_only=False)) == 1

    def test_unknown_vendor(self, directory):
        with pytest.raises(VendorNotFoundError):
            directory.get_vendor(uuid4())

    def test_blank_name_rejected(self, add_vendor):
        with pytest.raises(ValueError):
            add_vendor("   ")


def _line(vendor_id=None, part_number="P-1"):
    return PartLine(
        id=uuid4(),
        shop_id=uuid4(),
        ro_number="RO-1",
        part_number=part_number,
        description="",
        quantity_ordered=Decimal("1"),
        unit_cost=Decimal("10"),
        vendor_id=vendor_id,
    )


class TestGroupByVendor:
    def test_groups_keep_first_seen_order(self):
        a, b = uuid4(), uuid4()
        lines = [_line(b, "1"), _line(a, "2"), _line(None, "3"), _line(b, "4")]

        groups = group_by_vendor(lines)

        assert list(groups) == [b, a, UNASSIGNED]
        assert [p.part_number for p in groups[b]] == ["1", "4"]
        assert [vendor for vendor, _ in groups.assigned()] == [b, a]
        assert [p.part_number for p in groups.unassigned] == ["3"]

    def test_empty(self):
        groups = group_by_vendor([])
        assert len(groups) == 0
        assert groups.unassigned == []
