"""
Order configuration schemas.

A configuration is the desired state a caller submits for one client.
It is a tagged union on service_type, validated at the API boundary
before it reaches the reconciler.
"""

from pydantic import Field, TypeAdapter, field_validator, model_validator
from typing import Annotated, Literal, Optional, Union
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from models.base import BaseSchema


class ServiceType(str, Enum):
    """Service kinds a client can be enrolled in."""
    FOOD = "Food"
    BOXES = "Boxes"
    CUSTOM = "Custom"
    PRODUCE = "Produce"

    @classmethod
    def from_label(cls, value: Optional[str]) -> Optional["ServiceType"]:
        """Case-insensitive lookup; None for blanks and unknown labels."""
        if not value:
            return None
        lowered = str(value).strip().lower()
        for kind in cls:
            if kind.value.lower() == lowered:
                return kind
        return None


class Weekday(str, Enum):
    """Delivery weekdays. Order matches date.weekday() (Monday = 0)."""
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @property
    def index(self) -> int:
        return list(Weekday).index(self)

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]

    @classmethod
    def from_name(cls, value: str) -> Optional["Weekday"]:
        """Case-insensitive lookup; None for anything that is not a weekday."""
        if not value:
            return None
        lowered = value.strip().lower()
        for day in cls:
            if day.value.lower() == lowered:
                return day
        return None


@dataclass(frozen=True)
class DeliveryDayKey:
    """
    Explicit (weekday, service kind) pair.

    Legacy configurations label partitions with strings such as
    "Thursday_Food"; parse() accepts those and keeps only the pair.
    """
    weekday: Weekday
    service_type: Optional[ServiceType] = None

    @classmethod
    def parse(cls, raw: str) -> Optional["DeliveryDayKey"]:
        """
        Parse a delivery day label.

        "Thursday" -> (THURSDAY, None)
        "thursday_Food" -> (THURSDAY, FOOD)

        Returns None if the weekday part is not a weekday name.
        """
        if raw is None:
            return None

        day_part, _, suffix = raw.strip().partition("_")
        weekday = Weekday.from_name(day_part)
        if weekday is None:
            return None

        return cls(weekday=weekday, service_type=ServiceType.from_label(suffix))

    @property
    def label(self) -> str:
        return self.weekday.value


# ===================
# CONFIGURATION PARTS
# ===================

class VendorSelection(BaseSchema):
    """One vendor and the menu items ordered from it."""

    vendor_id: str = Field(..., min_length=1, description="Vendor UUID")
    items: dict[str, int] = Field(
        default_factory=dict,
        description="Menu item id -> quantity (zero quantities are dropped)"
    )

    @field_validator("items")
    @classmethod
    def no_negative_quantities(cls, v: dict[str, int]) -> dict[str, int]:
        for item_id, qty in v.items():
            if qty < 0:
                raise ValueError(f"Quantity for {item_id} cannot be negative")
        return v

    @property
    def positive_items(self) -> dict[str, int]:
        return {item_id: qty for item_id, qty in self.items.items() if qty > 0}


class DeliveryDayOrder(BaseSchema):
    """Vendor selections for one delivery weekday."""

    vendor_selections: list[VendorSelection] = Field(default_factory=list)


class BoxOrder(BaseSchema):
    """One box line: vendor, box type and the item map inside the box."""

    vendor_id: str = Field(..., min_length=1, description="Vendor UUID")
    box_type_id: Optional[str] = Field(None, description="Box type UUID")
    quantity: int = Field(default=1, ge=0, description="Number of boxes")
    items: dict[str, int] = Field(
        default_factory=dict,
        description="Item id -> quantity inside the box"
    )
    item_prices: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Item id -> unit price inside the box"
    )


# ===================
# CONFIGURATION VARIANTS
# ===================

class OrderConfigBase(BaseSchema):
    """Fields shared by every service kind."""

    case_id: Optional[str] = Field(None, max_length=200, description="External case reference")
    updated_by: Optional[str] = Field(None, max_length=200, description="Audit actor")
    notes: Optional[str] = Field(None, max_length=2000)
    total_value: Optional[Decimal] = Field(
        None,
        description="Caller's own total; recomputed server side and never stored as-is"
    )


class FoodOrderConfig(OrderConfigBase):
    """
    Food order.

    Either vendor_selections (one partition per weekday the selected
    vendors deliver on) or delivery_day_orders keyed by weekday.
    """

    service_type: Literal["Food"] = "Food"
    vendor_selections: list[VendorSelection] = Field(default_factory=list)
    delivery_day_orders: dict[str, DeliveryDayOrder] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_single_form(self):
        """vendor_selections and delivery_day_orders are mutually exclusive."""
        if self.vendor_selections and self.delivery_day_orders:
            raise ValueError("Use either vendor_selections or delivery_day_orders, not both")
        return self


class BoxesOrderConfig(OrderConfigBase):
    """Boxes order."""

    service_type: Literal["Boxes"] = "Boxes"
    boxes: list[BoxOrder] = Field(default_factory=list)
    delivery_day: Optional[str] = Field(None, description="Weekday override")


class CustomOrderConfig(OrderConfigBase):
    """Single free-text line from one vendor."""

    service_type: Literal["Custom"] = "Custom"
    vendor_id: Optional[str] = Field(None, description="Vendor UUID")
    custom_name: Optional[str] = Field(None, max_length=200)
    custom_price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(default=1, ge=0)
    delivery_day: Optional[str] = Field(None, description="Weekday override")


class ProduceOrderConfig(OrderConfigBase):
    """Produce order: a bill amount, no line items."""

    service_type: Literal["Produce"] = "Produce"
    bill_amount: Decimal = Field(default=Decimal("0"), ge=0)
    vendor_id: Optional[str] = Field(None, description="Vendor UUID (default vendor if omitted)")


OrderConfig = Annotated[
    Union[FoodOrderConfig, BoxesOrderConfig, CustomOrderConfig, ProduceOrderConfig],
    Field(discriminator="service_type"),
]

_order_config_adapter = TypeAdapter(OrderConfig)


def parse_order_config(data: dict) -> Union[FoodOrderConfig, BoxesOrderConfig, CustomOrderConfig, ProduceOrderConfig]:
    """Validate a raw payload (e.g. a stored client snapshot) into its variant."""
    return _order_config_adapter.validate_python(data)
