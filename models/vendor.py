"""
Vendor directory schemas.

Read-only here: vendors, menu items and box types are maintained by
the admin tooling and consumed by the scheduling engine.
"""

from pydantic import Field, field_validator
from typing import Optional
from decimal import Decimal
import json

from models.base import BaseSchema
from models.order_config import Weekday


class Vendor(BaseSchema):
    """Vendor with its fixed delivery weekdays and order cutoff."""

    id: str
    name: Optional[str] = None
    delivery_days: list[Weekday] = Field(default_factory=list)
    cutoff_hours: int = Field(default=0, ge=0)
    is_default: bool = False
    is_active: bool = True

    @field_validator("delivery_days", mode="before")
    @classmethod
    def parse_delivery_days(cls, v):
        """Stored as JSON text or list; unknown names are dropped."""
        if v is None:
            return []
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError:
                v = [part for part in v.split(",")]
        days = []
        for raw in v:
            day = raw if isinstance(raw, Weekday) else Weekday.from_name(str(raw))
            if day is not None and day not in days:
                days.append(day)
        return days

    @field_validator("cutoff_hours", mode="before")
    @classmethod
    def null_cutoff_is_zero(cls, v):
        return v or 0

    def delivers_on(self, weekday: Weekday) -> bool:
        return weekday in self.delivery_days


class MenuItem(BaseSchema):
    """Menu item offered by a vendor."""

    id: str
    vendor_id: Optional[str] = None
    name: str
    price_each: Decimal = Decimal("0")
    value: Optional[Decimal] = None

    @field_validator("price_each", mode="before")
    @classmethod
    def null_price_is_zero(cls, v):
        return v if v is not None else 0

    @property
    def unit_value(self) -> Decimal:
        """Value used for order totals (value column wins over price)."""
        return self.value if self.value is not None else self.price_each


class BoxType(BaseSchema):
    """Box type with its flat price."""

    id: str
    vendor_id: Optional[str] = None
    name: Optional[str] = None
    price_each: Decimal = Decimal("0")

    @field_validator("price_each", mode="before")
    @classmethod
    def null_price_is_zero(cls, v):
        return v if v is not None else 0
