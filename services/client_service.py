"""
Client records.

Each client row carries a denormalized "last known good" copy of its
order configuration (the upcoming_order JSON column) for fast reads.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import ClientNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)


def _merge_item_maps(desired: list[dict], existing: list[dict], key_fields: tuple[str, ...]) -> list[dict]:
    """
    Merge two arrays of vendor/box entries.

    Entries are matched on key_fields. A desired entry with an empty item
    map keeps the item map (and item prices) of the matching existing entry.
    """
    existing_by_key = {
        tuple(entry.get(field) for field in key_fields): entry
        for entry in existing or []
    }

    merged = []
    for entry in desired or []:
        entry = dict(entry)
        previous = existing_by_key.get(tuple(entry.get(field) for field in key_fields))
        if previous is not None and not entry.get("items") and previous.get("items"):
            entry["items"] = previous["items"]
            if "item_prices" in previous and not entry.get("item_prices"):
                entry["item_prices"] = previous["item_prices"]
        merged.append(entry)
    return merged


def merge_client_snapshot(existing: Optional[dict], desired: dict) -> dict:
    """
    Build the snapshot to store on the client record.

    Vendor and box arrays come from the desired configuration; item maps
    already stored under an unchanged vendor id are kept instead of being
    reset to empty. Switching service kind discards the old snapshot.
    """
    snapshot = dict(desired)
    snapshot.pop("total_value", None)

    if not existing or existing.get("service_type") != desired.get("service_type"):
        return snapshot

    if "vendor_selections" in desired:
        snapshot["vendor_selections"] = _merge_item_maps(
            desired.get("vendor_selections"),
            existing.get("vendor_selections"),
            ("vendor_id",),
        )

    if "delivery_day_orders" in desired:
        previous_days = existing.get("delivery_day_orders") or {}
        snapshot["delivery_day_orders"] = {
            day: {
                **day_order,
                "vendor_selections": _merge_item_maps(
                    day_order.get("vendor_selections"),
                    (previous_days.get(day) or {}).get("vendor_selections"),
                    ("vendor_id",),
                ),
            }
            for day, day_order in (desired.get("delivery_day_orders") or {}).items()
        }

    if "boxes" in desired:
        snapshot["boxes"] = _merge_item_maps(
            desired.get("boxes"),
            existing.get("boxes"),
            ("vendor_id", "box_type_id"),
        )

    return snapshot


class ClientService:
    """
    Client lookups and snapshot persistence.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "clients"

    def get_client(self, client_id: str) -> dict:
        """
        Get client row.

        Raises:
            ClientNotFoundError: If client doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", client_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                raise ClientNotFoundError(client_id)

            return result.data[0]

        except ClientNotFoundError:
            raise
        except Exception as e:
            logger.error("get_client_failed", client_id=client_id, error=str(e))
            raise DatabaseError("select", str(e))

    def list_active_clients(self, service_type: str) -> list[dict]:
        """Clients of one service kind that are not paused and take deliveries."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("service_type", service_type)
                .order("name")
                .execute()
            )

        except Exception as e:
            logger.error("list_clients_failed", service_type=service_type, error=str(e))
            raise DatabaseError("select", str(e))

        # Missing flags mean active
        return [
            client for client in result.data or []
            if not client.get("paused") and client.get("delivery") is not False
        ]

    def get_snapshot(self, client_id: str) -> Optional[dict]:
        """Stored configuration snapshot, or None if the client never had one."""
        return self.get_client(client_id).get("upcoming_order") or None

    def save_snapshot(self, client_id: str, desired: dict) -> dict:
        """
        Merge and store the configuration snapshot.

        Returns:
            The snapshot that was written
        """
        client = self.get_client(client_id)
        snapshot = merge_client_snapshot(client.get("upcoming_order"), desired)

        try:
            (
                self.db.table(self.table)
                .update({
                    "upcoming_order": snapshot,
                    "service_type": desired.get("service_type"),
                })
                .eq("id", client_id)
                .execute()
            )

            logger.info("client_snapshot_saved", client_id=client_id)
            return snapshot

        except Exception as e:
            logger.error("save_snapshot_failed", client_id=client_id, error=str(e))
            raise DatabaseError("update", str(e))

    def create_clients(self, rows: list[dict]) -> list[dict]:
        """Bulk insert of client rows (import script)."""
        if not rows:
            return []

        try:
            result = self.db.table(self.table).insert(rows).execute()

            logger.info("clients_created", count=len(result.data or []))
            return result.data or []

        except Exception as e:
            logger.error("create_clients_failed", count=len(rows), error=str(e))
            raise DatabaseError("insert", str(e))


# Singleton instance
_client_service: Optional[ClientService] = None


def get_client_service() -> ClientService:
    """Get or create ClientService instance."""
    global _client_service
    if _client_service is None:
        _client_service = ClientService()
    return _client_service
