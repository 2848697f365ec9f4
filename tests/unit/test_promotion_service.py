"""
Unit tests for PromotionService.

Run: pytest tests/unit/test_promotion_service.py -v
"""

import pytest
from datetime import date

from services.promotion_service import PromotionService

from tests.factories import UpcomingOrderFactory

SUNDAY = date(2024, 6, 9)


@pytest.fixture
def store(mock_db, mock_supabase):
    due = UpcomingOrderFactory.create(
        "c1",
        id="o-due",
        order_number=100007,
        delivery_day="Thursday",
        take_effect_date="2024-06-09",
        scheduled_delivery_date="2024-06-06",
        vendor_id="v1",
        total_items=5,
        total_value=22.0,
    )
    later = UpcomingOrderFactory.create("c2", id="o-later", order_number=100020, take_effect_date="2024-06-16")
    placeholder = UpcomingOrderFactory.create(
        "c3", id="o-placeholder", order_number=100021, delivery_day=None, take_effect_date=None, scheduled_delivery_date=None
    )
    mock_supabase.set_table_data("upcoming_orders", [due, later, placeholder])
    mock_supabase.set_table_data("upcoming_order_vendor_selections", [
        {"id": "sel-1", "order_id": "o-due", "vendor_id": "v1"},
    ])
    mock_supabase.set_table_data("upcoming_order_items", [
        {
            "id": "i-1",
            "order_id": "o-due",
            "vendor_selection_id": "sel-1",
            "menu_item_id": "m-soup",
            "custom_name": None,
            "custom_price": None,
            "unit_value": 5.0,
            "quantity": 2,
            "sort_order": 0,
        },
    ])
    mock_supabase.set_table_data("upcoming_order_box_selections", [
        {
            "id": "b-1",
            "order_id": "o-due",
            "vendor_id": "v1",
            "box_type_id": "bt-std",
            "quantity": 3,
            "items": {},
            "total_value": 12.0,
        },
    ])
    return mock_supabase


class TestPromoteDue:
    """Tests for promote_due()"""

    def test_due_order_is_realized(self, store):
        response = PromotionService().promote_due(SUNDAY)

        assert response.promoted_count == 1
        assert response.skipped_count == 0
        assert response.errors == []

        realized = store.rows("orders")
        assert len(realized) == 1
        assert realized[0]["order_number"] == 100007
        assert realized[0]["status"] == "pending"
        assert realized[0]["total_value"] == 22.0
        assert "take_effect_date" not in realized[0]
        # next Thursday on or after the promotion day
        assert realized[0]["scheduled_delivery_date"] == "2024-06-13"

    def test_child_tree_is_copied_with_new_ids(self, store):
        PromotionService().promote_due(SUNDAY)

        realized_id = store.rows("orders")[0]["id"]
        selection = store.rows("order_vendor_selections")[0]
        item = store.rows("order_items")[0]
        box = store.rows("order_box_selections")[0]

        assert selection["order_id"] == realized_id
        assert selection["id"] != "sel-1"
        assert item["vendor_selection_id"] == selection["id"]
        assert item["quantity"] == 2
        assert box["order_id"] == realized_id
        assert box["total_value"] == 12.0

    def test_future_row_marked_processed(self, store):
        PromotionService().promote_due(SUNDAY)

        future = {o["id"]: o for o in store.rows("upcoming_orders")}
        assert future["o-due"]["status"] == "processed"
        assert future["o-due"]["processed_order_id"] == store.rows("orders")[0]["id"]
        assert future["o-due"]["processed_at"] is not None
        assert future["o-later"]["status"] == "scheduled"
        assert future["o-placeholder"]["status"] == "scheduled"

    def test_second_run_does_nothing(self, store):
        service = PromotionService()
        service.promote_due(SUNDAY)

        response = service.promote_due(SUNDAY)

        assert response.promoted_count == 0
        assert len(store.rows("orders")) == 1

    def test_already_realized_number_is_only_marked(self, store):
        store.set_table_data("orders", [{"id": "r-1", "order_number": 100007, "status": "pending"}])

        response = PromotionService().promote_due(SUNDAY)

        assert response.promoted_count == 0
        assert response.skipped_count == 1
        assert len(store.rows("orders")) == 1
        future = next(o for o in store.rows("upcoming_orders") if o["id"] == "o-due")
        assert future["status"] == "processed"
        assert future["processed_order_id"] == "r-1"

    def test_failed_copy_leaves_no_partial_order(self, store):
        store.fail_on("order_items", "insert")

        response = PromotionService().promote_due(SUNDAY)

        assert response.promoted_count == 0
        assert len(response.errors) == 1
        assert response.errors[0].order_id == "o-due"
        assert store.rows("orders") == []
        assert store.rows("order_vendor_selections") == []
        future = next(o for o in store.rows("upcoming_orders") if o["id"] == "o-due")
        assert future["status"] == "scheduled"

    def test_later_orders_promote_when_due(self, store):
        response = PromotionService().promote_due(date(2024, 6, 16))

        assert response.promoted_count == 2
        assert sorted(o["order_number"] for o in store.rows("orders")) == sorted(
            o["order_number"] for o in store.rows("upcoming_orders") if o["status"] == "processed"
        )
