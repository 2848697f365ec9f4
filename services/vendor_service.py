"""
Vendor directory.

Vendors (delivery weekdays, cutoff hours, default flag), menu items and
box types. The vendor list is read on nearly every reconcile, so it is
held in a VendorCache with a fixed TTL. The cache belongs to the
service instance that created it, and its clock can be injected.
"""

from typing import Any, Callable, Optional
import time
import structlog

from config import get_supabase_client, settings
from models.vendor import Vendor, MenuItem, BoxType
from exceptions import DatabaseError, VendorNotFoundError

logger = structlog.get_logger(__name__)


class VendorCache:
    """Small TTL cache. Entries expire ttl_seconds after they were stored."""

    def __init__(self, ttl_seconds: float, clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            value = loader()
            self.put(key, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


class VendorService:
    """
    Vendor, menu item and box type lookups.
    """

    VENDORS_KEY = "vendors"

    def __init__(self, cache: Optional[VendorCache] = None):
        self.db = get_supabase_client()
        self.table = "vendors"
        self.menu_items_table = "menu_items"
        self.box_types_table = "box_types"
        self.cache = cache or VendorCache(settings.vendor_cache_ttl_seconds)

    # ===================
    # VENDORS
    # ===================

    def list_vendors(self) -> list[Vendor]:
        """All vendors, served from the cache while fresh."""
        return self.cache.get_or_load(self.VENDORS_KEY, self._load_vendors)

    def _load_vendors(self) -> list[Vendor]:
        logger.debug("loading_vendors")

        try:
            result = self.db.table(self.table).select("*").execute()
            vendors = [Vendor(**row) for row in result.data]

            logger.info("vendors_loaded", count=len(vendors))
            return vendors

        except Exception as e:
            logger.error("load_vendors_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_vendor(self, vendor_id: str) -> Vendor:
        """
        Get vendor by id.

        Raises:
            VendorNotFoundError: If no vendor has that id
        """
        for vendor in self.list_vendors():
            if vendor.id == vendor_id:
                return vendor
        raise VendorNotFoundError(vendor_id)

    def get_vendors(self, vendor_ids: list[str]) -> list[Vendor]:
        """Vendors in the order requested; raises on the first unknown id."""
        return [self.get_vendor(vendor_id) for vendor_id in vendor_ids]

    def get_default_vendor(self) -> Optional[Vendor]:
        """The vendor flagged is_default, falling back to the first active vendor."""
        vendors = self.list_vendors()
        for vendor in vendors:
            if vendor.is_default:
                return vendor
        active = [v for v in vendors if v.is_active]
        return active[0] if active else None

    def invalidate(self) -> None:
        self.cache.invalidate()
        logger.info("vendor_cache_invalidated")

    # ===================
    # MENU ITEMS / BOX TYPES
    # ===================

    def get_menu_items(self, item_ids: list[str]) -> dict[str, MenuItem]:
        """
        Look up menu items by id.

        Returns:
            id -> MenuItem for every id that exists
        """
        ids = sorted(set(item_ids))
        if not ids:
            return {}

        try:
            result = (
                self.db.table(self.menu_items_table)
                .select("*")
                .in_("id", ids)
                .execute()
            )
            return {row["id"]: MenuItem(**row) for row in result.data}

        except Exception as e:
            logger.error("get_menu_items_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))

    def get_box_types(self, box_type_ids: list[str]) -> dict[str, BoxType]:
        ids = sorted({i for i in box_type_ids if i})
        if not ids:
            return {}

        try:
            result = (
                self.db.table(self.box_types_table)
                .select("*")
                .in_("id", ids)
                .execute()
            )
            return {row["id"]: BoxType(**row) for row in result.data}

        except Exception as e:
            logger.error("get_box_types_failed", count=len(ids), error=str(e))
            raise DatabaseError("select", str(e))


# Singleton instance
_vendor_service: Optional[VendorService] = None


def get_vendor_service() -> VendorService:
    """Get or create VendorService instance."""
    global _vendor_service
    if _vendor_service is None:
        _vendor_service = VendorService()
    return _vendor_service
