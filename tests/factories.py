"""
Test data factories.

Each factory returns plain dicts shaped like the database rows the
services read.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


class VendorFactory:
    """
    Factory for vendor rows.

    Usage:
        vendor = VendorFactory.create(delivery_days=["Monday", "Thursday"])
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        name: Optional[str] = None,
        delivery_days: Optional[list] = None,
        cutoff_hours: int = 0,
        is_default: bool = False,
        is_active: bool = True,
    ) -> dict:
        counter = cls._next_counter()

        return {
            "id": id or str(uuid4()),
            "name": name or f"Vendor {counter}",
            "delivery_days": delivery_days if delivery_days is not None else ["Thursday"],
            "cutoff_hours": cutoff_hours,
            "is_default": is_default,
            "is_active": is_active,
        }

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list:
        return [cls.create(**overrides) for _ in range(count)]


class MenuItemFactory:
    """Factory for menu item rows."""

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        vendor_id: str,
        id: Optional[str] = None,
        name: Optional[str] = None,
        price_each: float = 5.0,
        value: Optional[float] = None,
    ) -> dict:
        counter = cls._next_counter()

        return {
            "id": id or str(uuid4()),
            "vendor_id": vendor_id,
            "name": name or f"Menu Item {counter}",
            "price_each": price_each,
            "value": value,
        }


class BoxTypeFactory:
    """Factory for box type rows."""

    @classmethod
    def create(cls, vendor_id: str, id: Optional[str] = None, name: str = "Standard Box", price_each: float = 20.0) -> dict:
        return {
            "id": id or str(uuid4()),
            "vendor_id": vendor_id,
            "name": name,
            "price_each": price_each,
        }


class ClientFactory:
    """
    Factory for client rows.

    Usage:
        client = ClientFactory.create(service_type="Food")
        new_client = ClientFactory.create(upcoming_order=None)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        name: Optional[str] = None,
        service_type: str = "Food",
        upcoming_order: Optional[dict] = None,
        paused: bool = False,
        delivery: bool = True,
    ) -> dict:
        counter = cls._next_counter()

        return {
            "id": id or str(uuid4()),
            "name": name or f"Client {counter}",
            "service_type": service_type,
            "upcoming_order": upcoming_order,
            "paused": paused,
            "delivery": delivery,
        }


class UpcomingOrderFactory:
    """
    Factory for future-partition order headers.

    Usage:
        order = UpcomingOrderFactory.create(client_id="c1", delivery_day="Thursday")
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        client_id: str,
        id: Optional[str] = None,
        order_number: Optional[int] = None,
        service_type: str = "Food",
        status: str = "scheduled",
        delivery_day: Optional[str] = "Thursday",
        take_effect_date: Optional[str] = "2024-06-09",
        scheduled_delivery_date: Optional[str] = "2024-06-06",
        vendor_id: Optional[str] = None,
        user_modified: bool = False,
        total_items: int = 0,
        total_value: float = 0.0,
    ) -> dict:
        counter = cls._next_counter()

        return {
            "id": id or str(uuid4()),
            "order_number": order_number or 100000 + counter,
            "client_id": client_id,
            "service_type": service_type,
            "case_id": None,
            "status": status,
            "delivery_day": delivery_day,
            "take_effect_date": take_effect_date,
            "scheduled_delivery_date": scheduled_delivery_date,
            "vendor_id": vendor_id,
            "notes": None,
            "user_modified": user_modified,
            "total_items": total_items,
            "total_value": total_value,
            "updated_by": None,
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "processed_order_id": None,
            "processed_at": None,
        }

    @classmethod
    def create_batch(cls, count: int, client_id: str, **overrides) -> list:
        return [cls.create(client_id=client_id, **overrides) for _ in range(count)]


class CatalogItemFactory:
    """Factory for catalog rows. client_id None means a default row."""

    @classmethod
    def create(
        cls,
        calendar_date: str,
        name: str,
        quantity: int = 1,
        price: float = 0.0,
        sort_order: int = 0,
        client_id: Optional[str] = None,
        expiration_date: Optional[str] = None,
    ) -> dict:
        return {
            "id": str(uuid4()),
            "calendar_date": calendar_date,
            "client_id": client_id,
            "expiration_date": expiration_date,
            "name": name,
            "quantity": quantity,
            "price": price,
            "sort_order": sort_order,
        }
