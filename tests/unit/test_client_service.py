"""
Unit tests for ClientService and snapshot merging.

Run: pytest tests/unit/test_client_service.py -v
"""

import pytest

from services.client_service import ClientService, merge_client_snapshot
from exceptions import ClientNotFoundError, DatabaseError

from tests.factories import ClientFactory


class TestMergeClientSnapshot:
    """Tests for merge_client_snapshot()"""

    def test_no_existing_snapshot(self):
        desired = {"service_type": "Food", "vendor_selections": [], "total_value": 12}

        snapshot = merge_client_snapshot(None, desired)

        assert snapshot == {"service_type": "Food", "vendor_selections": []}

    def test_empty_item_map_keeps_stored_items(self):
        existing = {
            "service_type": "Food",
            "vendor_selections": [{"vendor_id": "v1", "items": {"m1": 2}}],
        }
        desired = {
            "service_type": "Food",
            "vendor_selections": [{"vendor_id": "v1", "items": {}}, {"vendor_id": "v2", "items": {}}],
        }

        snapshot = merge_client_snapshot(existing, desired)

        assert snapshot["vendor_selections"] == [
            {"vendor_id": "v1", "items": {"m1": 2}},
            {"vendor_id": "v2", "items": {}},
        ]

    def test_new_items_replace_stored_items(self):
        existing = {"service_type": "Food", "vendor_selections": [{"vendor_id": "v1", "items": {"m1": 2}}]}
        desired = {"service_type": "Food", "vendor_selections": [{"vendor_id": "v1", "items": {"m2": 1}}]}

        snapshot = merge_client_snapshot(existing, desired)

        assert snapshot["vendor_selections"][0]["items"] == {"m2": 1}

    def test_dropped_vendor_is_dropped(self):
        existing = {"service_type": "Food", "vendor_selections": [{"vendor_id": "v1", "items": {"m1": 2}}]}
        desired = {"service_type": "Food", "vendor_selections": [{"vendor_id": "v2", "items": {}}]}

        snapshot = merge_client_snapshot(existing, desired)

        assert [s["vendor_id"] for s in snapshot["vendor_selections"]] == ["v2"]

    def test_per_day_selections_merge_by_day(self):
        existing = {
            "service_type": "Food",
            "delivery_day_orders": {
                "Thursday": {"vendor_selections": [{"vendor_id": "v1", "items": {"m1": 4}}]},
            },
        }
        desired = {
            "service_type": "Food",
            "delivery_day_orders": {
                "Thursday": {"vendor_selections": [{"vendor_id": "v1", "items": {}}]},
                "Monday": {"vendor_selections": [{"vendor_id": "v1", "items": {}}]},
            },
        }

        snapshot = merge_client_snapshot(existing, desired)

        assert snapshot["delivery_day_orders"]["Thursday"]["vendor_selections"][0]["items"] == {"m1": 4}
        assert snapshot["delivery_day_orders"]["Monday"]["vendor_selections"][0]["items"] == {}

    def test_boxes_match_on_vendor_and_box_type(self):
        existing = {
            "service_type": "Boxes",
            "boxes": [{"vendor_id": "v1", "box_type_id": "bt1", "items": {"m1": 1}, "item_prices": {"m1": 3}}],
        }
        desired = {
            "service_type": "Boxes",
            "boxes": [
                {"vendor_id": "v1", "box_type_id": "bt1", "items": {}},
                {"vendor_id": "v1", "box_type_id": "bt2", "items": {}},
            ],
        }

        snapshot = merge_client_snapshot(existing, desired)

        assert snapshot["boxes"][0]["items"] == {"m1": 1}
        assert snapshot["boxes"][0]["item_prices"] == {"m1": 3}
        assert snapshot["boxes"][1]["items"] == {}

    def test_kind_switch_discards_old_snapshot(self):
        existing = {"service_type": "Boxes", "boxes": [{"vendor_id": "v1", "items": {"m1": 1}}]}
        desired = {"service_type": "Produce", "bill_amount": "40"}

        snapshot = merge_client_snapshot(existing, desired)

        assert snapshot == {"service_type": "Produce", "bill_amount": "40"}


class TestClientService:
    """Tests for ClientService persistence"""

    @pytest.fixture
    def clients(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("clients", [
            ClientFactory.create(
                id="c1",
                upcoming_order={"service_type": "Food", "vendor_selections": [{"vendor_id": "v1", "items": {"m1": 2}}]},
            ),
            ClientFactory.create(id="c2"),
        ])
        return mock_supabase

    def test_get_client_missing_raises(self, clients):
        with pytest.raises(ClientNotFoundError):
            ClientService().get_client("nope")

    def test_get_snapshot(self, clients):
        service = ClientService()

        assert service.get_snapshot("c1")["service_type"] == "Food"
        assert service.get_snapshot("c2") is None

    def test_save_snapshot_merges_and_sets_kind(self, clients):
        snapshot = ClientService().save_snapshot(
            "c1", {"service_type": "Food", "vendor_selections": [{"vendor_id": "v1", "items": {}}]}
        )

        row = next(r for r in clients.rows("clients") if r["id"] == "c1")
        assert row["upcoming_order"] == snapshot
        assert snapshot["vendor_selections"][0]["items"] == {"m1": 2}
        assert row["service_type"] == "Food"

    def test_save_snapshot_failure_is_database_error(self, clients):
        clients.fail_on("clients", "update")

        with pytest.raises(DatabaseError):
            ClientService().save_snapshot("c2", {"service_type": "Produce"})

    def test_create_clients(self, clients):
        created = ClientService().create_clients([{"name": "Ada"}, {"name": "Grace"}])

        assert [c["name"] for c in created] == ["Ada", "Grace"]
        assert len(clients.rows("clients")) == 4
        assert ClientService().create_clients([]) == []

    def test_active_clients_skip_paused_and_no_delivery(self, mock_db, mock_supabase):
        mock_supabase.set_table_data("clients", [
            ClientFactory.create(id="c-b", name="Bea"),
            ClientFactory.create(id="c-a", name="Abe"),
            ClientFactory.create(id="c-paused", name="Cal", paused=True),
            ClientFactory.create(id="c-away", name="Dot", delivery=False),
            ClientFactory.create(id="c-box", name="Eve", service_type="Boxes"),
        ])

        active = ClientService().list_active_clients("Food")

        assert [c["id"] for c in active] == ["c-a", "c-b"]
