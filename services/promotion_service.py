"""
Promotion of due orders.

Once per run, every scheduled future order whose take-effect date has
arrived is copied (header and child tree) into the realized partition
under the same order number, and the future row is marked processed.
Each order is promoted on its own; failures are reported, not raised.
"""

from typing import Optional
from datetime import date
import structlog

from models.order_config import DeliveryDayKey
from models.upcoming_order import OrderStatus, PromotionError, PromotionResponse
from services.order_repository import OrderRepository, Partition, get_order_repository
from services.delivery_date_service import (
    DeliveryDateService,
    get_delivery_date_service,
    next_weekday_occurrence,
)
from utils.time_utils import utc_now_iso

logger = structlog.get_logger(__name__)

# Future-only columns and store-managed columns are not copied
NOT_COPIED = {
    "id",
    "take_effect_date",
    "processed_order_id",
    "processed_at",
    "created_at",
    "updated_at",
}


class PromotionService:
    """
    Order promoter.
    """

    def __init__(
        self,
        repository: Optional[OrderRepository] = None,
        date_service: Optional[DeliveryDateService] = None,
    ):
        self.repository = repository or get_order_repository()
        self.date_service = date_service or get_delivery_date_service()

    def promote_due(self, today: Optional[date] = None) -> PromotionResponse:
        """
        Promote every scheduled order with take_effect_date <= today.

        Args:
            today: Defaults to today in the application time zone

        Returns:
            Promoted count, re-marked (already realized) count and per-order errors
        """
        today = today or self.date_service.today()
        due = self.repository.find_due(today)

        logger.info("promotion_started", today=str(today), due=len(due))

        response = PromotionResponse()
        for order in due:
            try:
                if self._promote(order, today):
                    response.promoted_count += 1
                else:
                    response.skipped_count += 1
            except Exception as e:
                logger.error(
                    "promotion_failed",
                    order_id=order["id"],
                    order_number=order.get("order_number"),
                    error=str(e)
                )
                response.errors.append(PromotionError(
                    order_id=order["id"],
                    order_number=order.get("order_number"),
                    error=str(e),
                ))

        logger.info(
            "promotion_finished",
            today=str(today),
            promoted=response.promoted_count,
            skipped=response.skipped_count,
            errors=len(response.errors)
        )
        return response

    def resolve_delivery_date(self, order: dict, today: date) -> Optional[str]:
        """
        Realized delivery date from the stored weekday.

        Orders without a usable weekday keep their stored date.
        """
        key = DeliveryDayKey.parse(order.get("delivery_day")) if order.get("delivery_day") else None
        if key is None:
            return order.get("scheduled_delivery_date")
        return next_weekday_occurrence(key.weekday, today).isoformat()

    def _promote(self, order: dict, today: date) -> bool:
        """
        Promote one order.

        Returns:
            False if the order number was already realized (only marked processed)
        """
        realized = self.repository.find_by_order_number(order["order_number"], Partition.REALIZED)
        if realized is not None:
            self._mark_processed(order, realized["id"])
            logger.info(
                "promotion_already_realized",
                order_id=order["id"],
                order_number=order["order_number"]
            )
            return False

        header = {key: value for key, value in order.items() if key not in NOT_COPIED}
        header.update({
            "status": OrderStatus.PENDING.value,
            "scheduled_delivery_date": self.resolve_delivery_date(order, today),
            "last_updated": utc_now_iso(),
        })

        realized = self.repository.insert_order(header, Partition.REALIZED)
        try:
            self._copy_children(order["id"], realized["id"])
        except Exception:
            # A realized order always carries its full child tree
            self.repository.delete_subtree(realized["id"], Partition.REALIZED)
            raise

        self._mark_processed(order, realized["id"])

        logger.info(
            "order_promoted",
            order_id=order["id"],
            realized_order_id=realized["id"],
            order_number=order["order_number"],
            scheduled_delivery_date=header["scheduled_delivery_date"]
        )
        return True

    def _mark_processed(self, order: dict, realized_id: str) -> None:
        self.repository.update_order(order["id"], {
            "status": OrderStatus.PROCESSED.value,
            "processed_order_id": realized_id,
            "processed_at": utc_now_iso(),
        })

    def _copy_children(self, source_id: str, target_id: str) -> None:
        """Copy the child tree, remapping vendor selection ids."""
        children = self.repository.get_children(source_id, Partition.FUTURE)

        selection_ids: dict[str, str] = {}
        for selection in children["vendor_selections"]:
            copied = self.repository.insert_vendor_selection(target_id, selection["vendor_id"], Partition.REALIZED)
            selection_ids[selection["id"]] = copied["id"]

        self.repository.insert_items(
            [
                {
                    "order_id": target_id,
                    "vendor_selection_id": selection_ids.get(item.get("vendor_selection_id")),
                    "menu_item_id": item.get("menu_item_id"),
                    "custom_name": item.get("custom_name"),
                    "custom_price": item.get("custom_price"),
                    "unit_value": item.get("unit_value"),
                    "quantity": item["quantity"],
                    "sort_order": item.get("sort_order"),
                }
                for item in children["items"]
            ],
            Partition.REALIZED,
        )

        self.repository.insert_box_selections(
            [
                {
                    "order_id": target_id,
                    "vendor_id": box["vendor_id"],
                    "box_type_id": box.get("box_type_id"),
                    "quantity": box.get("quantity"),
                    "items": box.get("items") or {},
                    "total_value": box.get("total_value"),
                }
                for box in children["box_selections"]
            ],
            Partition.REALIZED,
        )


# Singleton instance
_promotion_service: Optional[PromotionService] = None


def get_promotion_service() -> PromotionService:
    """Get or create PromotionService instance."""
    global _promotion_service
    if _promotion_service is None:
        _promotion_service = PromotionService()
    return _promotion_service
