"""
Order store operations for both partitions.

The future (upcoming) and realized partitions share one row shape and
one order number namespace. Each order owns a tree of child rows:

    order -> vendor selection -> line item
    order -> box selection

delete_subtree() is the only way child rows are removed in bulk.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import date
from enum import Enum
import structlog

from config import get_supabase_client
from exceptions import (
    DatabaseError,
    UpcomingOrderNotFoundError,
)

logger = structlog.get_logger(__name__)


class Partition(str, Enum):
    """Order record sets."""
    FUTURE = "future"
    REALIZED = "realized"


@dataclass(frozen=True)
class PartitionTables:
    orders: str
    vendor_selections: str
    items: str
    box_selections: str


PARTITION_TABLES = {
    Partition.FUTURE: PartitionTables(
        orders="upcoming_orders",
        vendor_selections="upcoming_order_vendor_selections",
        items="upcoming_order_items",
        box_selections="upcoming_order_box_selections",
    ),
    Partition.REALIZED: PartitionTables(
        orders="orders",
        vendor_selections="order_vendor_selections",
        items="order_items",
        box_selections="order_box_selections",
    ),
}


class OrderRepository:
    """
    Store operations used by the scheduling engine.

    read-max, point-exists, insert, update-in-place, delete-subtree,
    bulk-insert and range-scan-by-date, for either partition.
    """

    def __init__(self):
        self.db = get_supabase_client()

    def tables(self, partition: Partition = Partition.FUTURE) -> PartitionTables:
        return PARTITION_TABLES[partition]

    # ===================
    # ORDER NUMBERS
    # ===================

    def max_order_number(self) -> Optional[int]:
        """
        Largest order number in either partition.

        One read per partition; None when both are empty.
        """
        try:
            numbers = []
            for partition in Partition:
                result = (
                    self.db.table(self.tables(partition).orders)
                    .select("order_number")
                    .gte("order_number", 1)
                    .order("order_number", desc=True)
                    .limit(1)
                    .execute()
                )
                if result.data:
                    numbers.append(int(result.data[0]["order_number"]))

            return max(numbers) if numbers else None

        except Exception as e:
            logger.error("max_order_number_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def order_number_exists(self, order_number: int) -> bool:
        """Point lookup of an order number in both partitions."""
        try:
            for partition in Partition:
                result = (
                    self.db.table(self.tables(partition).orders)
                    .select("id")
                    .eq("order_number", order_number)
                    .limit(1)
                    .execute()
                )
                if result.data:
                    return True
            return False

        except Exception as e:
            logger.error("order_number_lookup_failed", order_number=order_number, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # HEADER READS
    # ===================

    def get_order(self, order_id: str, partition: Partition = Partition.FUTURE) -> dict:
        """
        Get one order header.

        Raises:
            UpcomingOrderNotFoundError: If no row has that id
        """
        try:
            result = (
                self.db.table(self.tables(partition).orders)
                .select("*")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                raise UpcomingOrderNotFoundError(order_id)

            return result.data[0]

        except UpcomingOrderNotFoundError:
            raise
        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    def find_by_order_number(self, order_number: int, partition: Partition) -> Optional[dict]:
        try:
            result = (
                self.db.table(self.tables(partition).orders)
                .select("*")
                .eq("order_number", order_number)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("find_by_order_number_failed", order_number=order_number, error=str(e))
            raise DatabaseError("select", str(e))

    def find_client_orders(
        self,
        client_id: str,
        status: Optional[str] = None,
        service_type: Optional[str] = None,
    ) -> list[dict]:
        """Future-partition orders of one client, oldest delivery first."""
        try:
            query = (
                self.db.table(self.tables().orders)
                .select("*")
                .eq("client_id", client_id)
            )
            if status:
                query = query.eq("status", status)
            if service_type:
                query = query.eq("service_type", service_type)

            result = query.order("scheduled_delivery_date").execute()
            return result.data or []

        except Exception as e:
            logger.error("find_client_orders_failed", client_id=client_id, error=str(e))
            raise DatabaseError("select", str(e))

    def count_client_orders(self, client_id: str) -> int:
        """Number of future-partition rows the client has ever had (any status)."""
        try:
            result = (
                self.db.table(self.tables().orders)
                .select("id", count="exact")
                .eq("client_id", client_id)
                .execute()
            )
            return result.count or 0

        except Exception as e:
            logger.error("count_client_orders_failed", client_id=client_id, error=str(e))
            raise DatabaseError("select", str(e))

    def find_due(self, today: date) -> list[dict]:
        """Scheduled future orders whose take-effect date is today or earlier."""
        try:
            result = (
                self.db.table(self.tables().orders)
                .select("*")
                .eq("status", "scheduled")
                .lte("take_effect_date", today.isoformat())
                .order("take_effect_date")
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("find_due_orders_failed", today=str(today), error=str(e))
            raise DatabaseError("select", str(e))

    def find_scheduled_for_delivery_date(
        self,
        delivery_date: date,
        service_type: Optional[str] = None,
    ) -> list[dict]:
        """Range scan of scheduled future orders delivering on one date."""
        try:
            query = (
                self.db.table(self.tables().orders)
                .select("*")
                .eq("status", "scheduled")
                .eq("scheduled_delivery_date", delivery_date.isoformat())
            )
            if service_type:
                query = query.eq("service_type", service_type)

            result = query.execute()
            return result.data or []

        except Exception as e:
            logger.error("find_scheduled_for_date_failed", delivery_date=str(delivery_date), error=str(e))
            raise DatabaseError("select", str(e))

    def find_for_delivery_dates(
        self,
        delivery_dates: list[date],
        client_ids: list[str],
        service_type: Optional[str] = None,
        partition: Partition = Partition.REALIZED,
    ) -> list[dict]:
        """Orders of the given clients delivering on any of the given dates."""
        if not delivery_dates or not client_ids:
            return []

        try:
            query = (
                self.db.table(self.tables(partition).orders)
                .select("id, client_id, scheduled_delivery_date")
                .in_("client_id", client_ids)
                .in_("scheduled_delivery_date", [day.isoformat() for day in delivery_dates])
            )
            if service_type:
                query = query.eq("service_type", service_type)

            result = query.execute()
            return result.data or []

        except Exception as e:
            logger.error("find_for_delivery_dates_failed", dates=len(delivery_dates), error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # HEADER WRITES
    # ===================

    def insert_order(self, row: dict, partition: Partition = Partition.FUTURE) -> dict:
        try:
            result = self.db.table(self.tables(partition).orders).insert(row).execute()

            if not result.data:
                raise DatabaseError("insert", "No data returned")

            return result.data[0]

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(
                "insert_order_failed",
                partition=partition.value,
                order_number=row.get("order_number"),
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

    def insert_orders(self, rows: list[dict], partition: Partition = Partition.FUTURE) -> list[dict]:
        """Bulk insert of order headers."""
        if not rows:
            return []

        try:
            result = self.db.table(self.tables(partition).orders).insert(rows).execute()
            return result.data or []

        except Exception as e:
            logger.error("bulk_insert_orders_failed", count=len(rows), error=str(e))
            raise DatabaseError("insert", str(e))

    def update_order(self, order_id: str, fields: dict, partition: Partition = Partition.FUTURE) -> dict:
        try:
            result = (
                self.db.table(self.tables(partition).orders)
                .update(fields)
                .eq("id", order_id)
                .execute()
            )

            if not result.data:
                raise UpcomingOrderNotFoundError(order_id)

            return result.data[0]

        except UpcomingOrderNotFoundError:
            raise
        except Exception as e:
            logger.error("update_order_failed", order_id=order_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # CHILD ROWS
    # ===================

    def get_children(self, order_id: str, partition: Partition = Partition.FUTURE) -> dict:
        """
        Load the child tree of one order.

        Returns:
            {"vendor_selections": [...], "items": [...], "box_selections": [...]}
        """
        tables = self.tables(partition)
        try:
            selections = (
                self.db.table(tables.vendor_selections)
                .select("*")
                .eq("order_id", order_id)
                .execute()
            )
            items = (
                self.db.table(tables.items)
                .select("*")
                .eq("order_id", order_id)
                .order("sort_order")
                .execute()
            )
            boxes = (
                self.db.table(tables.box_selections)
                .select("*")
                .eq("order_id", order_id)
                .execute()
            )

            return {
                "vendor_selections": selections.data or [],
                "items": items.data or [],
                "box_selections": boxes.data or [],
            }

        except Exception as e:
            logger.error("get_children_failed", order_id=order_id, error=str(e))
            raise DatabaseError("select", str(e))

    def insert_vendor_selection(
        self,
        order_id: str,
        vendor_id: str,
        partition: Partition = Partition.FUTURE,
    ) -> dict:
        try:
            result = (
                self.db.table(self.tables(partition).vendor_selections)
                .insert({"order_id": order_id, "vendor_id": vendor_id})
                .execute()
            )

            if not result.data:
                raise DatabaseError("insert", "No data returned")

            return result.data[0]

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(
                "insert_vendor_selection_failed",
                order_id=order_id,
                vendor_id=vendor_id,
                error=str(e)
            )
            raise DatabaseError("insert", str(e), {"vendor_id": vendor_id})

    def insert_items(self, rows: list[dict], partition: Partition = Partition.FUTURE) -> list[dict]:
        """Bulk insert of line items. Rows with quantity <= 0 never reach the store."""
        rows = [row for row in rows if (row.get("quantity") or 0) > 0]
        if not rows:
            return []

        try:
            result = self.db.table(self.tables(partition).items).insert(rows).execute()
            return result.data or []

        except Exception as e:
            logger.error("insert_items_failed", count=len(rows), error=str(e))
            raise DatabaseError("insert", str(e))

    def insert_box_selections(self, rows: list[dict], partition: Partition = Partition.FUTURE) -> list[dict]:
        if not rows:
            return []

        try:
            result = self.db.table(self.tables(partition).box_selections).insert(rows).execute()
            return result.data or []

        except Exception as e:
            logger.error("insert_box_selections_failed", count=len(rows), error=str(e))
            raise DatabaseError("insert", str(e))

    def update_row(self, kind: str, row_id: str, fields: dict, partition: Partition = Partition.FUTURE) -> None:
        """Update one child row in place."""
        try:
            (
                self.db.table(getattr(self.tables(partition), kind))
                .update(fields)
                .eq("id", row_id)
                .execute()
            )

        except Exception as e:
            logger.error("update_row_failed", kind=kind, row_id=row_id, error=str(e))
            raise DatabaseError("update", str(e))

    def delete_rows(self, kind: str, row_ids: list[str], partition: Partition = Partition.FUTURE) -> None:
        """
        Delete child rows by id.

        kind is one of "vendor_selections", "items", "box_selections".
        Deleting a vendor selection also deletes its line items.
        """
        if not row_ids:
            return

        tables = self.tables(partition)
        try:
            if kind == "vendor_selections":
                (
                    self.db.table(tables.items)
                    .delete()
                    .in_("vendor_selection_id", row_ids)
                    .execute()
                )

            (
                self.db.table(getattr(tables, kind))
                .delete()
                .in_("id", row_ids)
                .execute()
            )

        except Exception as e:
            logger.error("delete_rows_failed", kind=kind, count=len(row_ids), error=str(e))
            raise DatabaseError("delete", str(e))

    def delete_subtree(
        self,
        order_id: str,
        partition: Partition = Partition.FUTURE,
        include_header: bool = True,
    ) -> None:
        """
        Delete an order's child tree, leaves first, then optionally the header.

        include_header=False clears the order for a full replace.
        """
        tables = self.tables(partition)
        try:
            self.db.table(tables.items).delete().eq("order_id", order_id).execute()
            self.db.table(tables.vendor_selections).delete().eq("order_id", order_id).execute()
            self.db.table(tables.box_selections).delete().eq("order_id", order_id).execute()

            if include_header:
                self.db.table(tables.orders).delete().eq("id", order_id).execute()

            logger.debug(
                "order_subtree_deleted",
                order_id=order_id,
                partition=partition.value,
                include_header=include_header
            )

        except Exception as e:
            logger.error("delete_subtree_failed", order_id=order_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance
_order_repository: Optional[OrderRepository] = None


def get_order_repository() -> OrderRepository:
    """Get or create OrderRepository instance."""
    global _order_repository
    if _order_repository is None:
        _order_repository = OrderRepository()
    return _order_repository
