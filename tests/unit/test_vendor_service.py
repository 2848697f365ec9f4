"""
Unit tests for VendorService and VendorCache.

Run: pytest tests/unit/test_vendor_service.py -v
"""

import pytest

from services.vendor_service import VendorCache, VendorService
from models.order_config import Weekday
from exceptions import DatabaseError, VendorNotFoundError

from tests.factories import BoxTypeFactory, MenuItemFactory, VendorFactory


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestVendorCache:
    """Tests for VendorCache"""

    def test_value_served_until_ttl(self):
        clock = FakeClock()
        cache = VendorCache(ttl_seconds=60, clock=clock)
        cache.put("vendors", ["a"])

        clock.now += 59.9
        assert cache.get("vendors") == ["a"]

        clock.now += 0.1
        assert cache.get("vendors") is None

    def test_get_or_load_calls_loader_once_while_fresh(self):
        clock = FakeClock()
        cache = VendorCache(ttl_seconds=60, clock=clock)
        loads = []

        def loader():
            loads.append(1)
            return len(loads)

        assert cache.get_or_load("k", loader) == 1
        assert cache.get_or_load("k", loader) == 1

        clock.now += 61
        assert cache.get_or_load("k", loader) == 2

    def test_invalidate_one_or_all(self):
        cache = VendorCache(ttl_seconds=60, clock=FakeClock())
        cache.put("a", 1)
        cache.put("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.invalidate()
        assert cache.get("b") is None


class TestVendorService:
    """Tests for VendorService lookups"""

    @pytest.fixture
    def vendors(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("vendors", [
            VendorFactory.create(id="v1", name="Soup Co", delivery_days=["Thursday"], cutoff_hours=48),
            VendorFactory.create(id="v2", name="Deli", delivery_days='["Monday","Thursday"]', is_default=True),
        ])
        return mock_supabase

    def test_list_vendors_parses_rows(self, vendors):
        result = VendorService().list_vendors()

        assert [v.id for v in result] == ["v1", "v2"]
        assert result[1].delivery_days == [Weekday.MONDAY, Weekday.THURSDAY]
        assert result[0].cutoff_hours == 48

    def test_cache_avoids_second_read(self, vendors):
        service = VendorService()
        service.list_vendors()
        service.get_vendor("v2")
        service.get_default_vendor()

        assert vendors.count_calls("vendors") == 1

    def test_invalidate_forces_reload(self, vendors):
        service = VendorService()
        service.list_vendors()
        service.invalidate()
        service.list_vendors()

        assert vendors.count_calls("vendors") == 2

    def test_unknown_vendor_raises(self, vendors):
        with pytest.raises(VendorNotFoundError) as exc_info:
            VendorService().get_vendor("missing")

        assert exc_info.value.status_code == 404

    def test_default_vendor_flag_wins(self, vendors):
        assert VendorService().get_default_vendor().id == "v2"

    def test_default_vendor_falls_back_to_first_active(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("vendors", [
            VendorFactory.create(id="v1", is_active=False),
            VendorFactory.create(id="v2"),
        ])

        assert VendorService().get_default_vendor().id == "v2"

    def test_no_vendors_means_no_default(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("vendors", [])

        assert VendorService().get_default_vendor() is None

    def test_read_failure_is_database_error(self, vendors):
        vendors.fail_on("vendors", "select")

        with pytest.raises(DatabaseError):
            VendorService().list_vendors()

    def test_menu_items_and_box_types_by_id(self, vendors):
        vendors.set_table_data("menu_items", [
            MenuItemFactory.create("v1", id="m1", name="Soup"),
            MenuItemFactory.create("v1", id="m2", name="Salad"),
        ])
        vendors.set_table_data("box_types", [BoxTypeFactory.create("v1", id="bt1")])
        service = VendorService()

        items = service.get_menu_items(["m1", "m1", "missing"])
        boxes = service.get_box_types(["bt1", None])

        assert list(items) == ["m1"]
        assert list(boxes) == ["bt1"]
        assert service.get_menu_items([]) == {}
