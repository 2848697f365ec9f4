"""
Settings schemas for validation and serialization.

Settings are key-value pairs stored in the database. The scheduling
engine reads weekly_cutoff_day, weekly_cutoff_time and
default_order_template (a Food order configuration as JSON text).
"""

from pydantic import Field
from typing import Optional
from datetime import date

from models.base import BaseSchema
from models.order_config import Weekday


class SettingKey:
    """Keys read by the scheduling engine."""
    WEEKLY_CUTOFF_DAY = "weekly_cutoff_day"
    WEEKLY_CUTOFF_TIME = "weekly_cutoff_time"
    DEFAULT_ORDER_TEMPLATE = "default_order_template"


class SettingUpdate(BaseSchema):
    """
    Upsert a setting value.

    Key comes from the path.
    """

    value: str = Field(
        ...,
        min_length=1,
        max_length=20000,
        description="Setting value"
    )
    description: Optional[str] = Field(None, max_length=500)


class SettingResponse(BaseSchema):
    """Setting row."""

    id: Optional[str] = Field(None, description="Setting UUID")
    key: str = Field(..., description="Setting key (unique)")
    value: str = Field(..., description="Setting value")
    description: Optional[str] = Field(None, description="Human-readable description")


class SettingListResponse(BaseSchema):
    """List of settings."""

    data: list[SettingResponse]
    total: int


class WeeklyCutoff(BaseSchema):
    """Resolved weekly cutoff (raw strings, parsed by the date calculator)."""

    cutoff_day: str = Field(..., description="Cutoff weekday name, e.g. Friday")
    cutoff_time: str = Field(..., description="Cutoff time HH:MM")


class DeliveryDatesResponse(BaseSchema):
    """Dates computed for a weekday and vendor set."""

    service_type: str
    delivery_day: Optional[Weekday] = None
    take_effect_date: Optional[date] = None
    scheduled_delivery_date: Optional[date] = None
    weekly_cutoff_day: Optional[str] = None
    weekly_cutoff_time: Optional[str] = None
