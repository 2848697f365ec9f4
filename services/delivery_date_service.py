"""
Delivery and take-effect date calculation.

Two dates control every future order:

- scheduled_delivery_date: the next date whose weekday matches the
  vendor's delivery weekday, subject to the vendor's cutoff hours.
- take_effect_date: always a Sunday. It is the first Sunday after
  today, pushed one more week once the current week's cutoff
  (e.g. Friday 17:00) has passed.

Weeks run Sunday to Saturday. "Now" is always taken in the
application time zone.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import structlog

from models.order_config import DeliveryDayKey, ServiceType, Weekday
from models.vendor import Vendor
from exceptions import (
    DateComputationError,
    InvalidDeliveryDayError,
    VendorMissingDeliveryDaysError,
    VendorDeliveryDayMismatchError,
)
from services.settings_service import SettingsService, get_settings_service
from utils.time_utils import Clock, now_in_app_tz, to_app_tz

logger = structlog.get_logger(__name__)

SCAN_DAYS = 14

# Days from the Sunday that starts the week
DAYS_FROM_SUNDAY = {
    Weekday.SUNDAY: 0,
    Weekday.MONDAY: 1,
    Weekday.TUESDAY: 2,
    Weekday.WEDNESDAY: 3,
    Weekday.THURSDAY: 4,
    Weekday.FRIDAY: 5,
    Weekday.SATURDAY: 6,
}


@dataclass
class ScheduleDates:
    """Dates resolved for one order partition."""
    delivery_day: Optional[Weekday]
    take_effect_date: Optional[date]
    scheduled_delivery_date: Optional[date]


# ===================
# PURE DATE RULES
# ===================

def normalize_delivery_day(key: str) -> Weekday:
    """
    Bare weekday for a delivery day label.

    "Thursday_Food" and "thursday" both give Weekday.THURSDAY.

    Raises:
        InvalidDeliveryDayError: If the label has no weekday
    """
    parsed = DeliveryDayKey.parse(key)
    if parsed is None:
        raise InvalidDeliveryDayError(key)
    return parsed.weekday


def next_weekday_occurrence(weekday: Weekday, reference_date: date) -> date:
    """
    Earliest date on or after reference_date falling on weekday.

    Raises:
        DateComputationError: If nothing matches within the scan window
    """
    for offset in range(SCAN_DAYS + 1):
        candidate = reference_date + timedelta(days=offset)
        if candidate.weekday() == weekday.index:
            return candidate

    raise DateComputationError(
        f"No {weekday.value} within {SCAN_DAYS} days of {reference_date}",
        details={"weekday": weekday.value, "reference_date": reference_date.isoformat()}
    )


def next_delivery_date(weekday: Weekday, now: datetime, cutoff_hours: int = 0) -> date:
    """
    Next delivery date for a vendor weekday.

    A date D is eligible only if now + cutoff_hours <= D at 00:00.
    With no cutoff, today itself is eligible.
    """
    local_now = to_app_tz(now)

    if not cutoff_hours:
        return next_weekday_occurrence(weekday, local_now.date())

    earliest = local_now + timedelta(hours=cutoff_hours)
    reference = earliest.date()
    if earliest.time() != time(0, 0):
        reference += timedelta(days=1)

    return next_weekday_occurrence(weekday, reference)


def parse_cutoff_time(value: str) -> time:
    """
    Parse "HH:MM" (seconds allowed).

    Raises:
        DateComputationError: If the value is not a time of day
    """
    try:
        parts = [int(part) for part in str(value).strip().split(":")]
        if len(parts) not in (2, 3):
            raise ValueError(value)
        return time(*parts)
    except (TypeError, ValueError):
        raise DateComputationError(
            f"Invalid weekly cutoff time: {value}",
            details={"weekly_cutoff_time": value}
        )


def take_effect_date(weekly_cutoff_day: str, weekly_cutoff_time: str, now: datetime) -> date:
    """
    Sunday on which a change submitted at `now` takes effect.

    Args:
        weekly_cutoff_day: Weekday name, e.g. "Friday"
        weekly_cutoff_time: "HH:MM"
        now: Current moment

    Raises:
        DateComputationError: If the cutoff day or time is invalid
    """
    cutoff_day = Weekday.from_name(weekly_cutoff_day or "")
    if cutoff_day is None:
        raise DateComputationError(
            f"Invalid weekly cutoff day: {weekly_cutoff_day}",
            details={"weekly_cutoff_day": weekly_cutoff_day}
        )
    cutoff_at = parse_cutoff_time(weekly_cutoff_time)

    local_now = to_app_tz(now)
    today = local_now.date()

    # weekday(): Monday=0 ... Sunday=6
    days_until_sunday = (6 - today.weekday()) % 7 or 7
    upcoming_sunday = today + timedelta(days=days_until_sunday)

    week_start = upcoming_sunday - timedelta(days=7)
    cutoff_date = week_start + timedelta(days=DAYS_FROM_SUNDAY[cutoff_day])
    cutoff_moment = datetime.combine(cutoff_date, cutoff_at, tzinfo=local_now.tzinfo)

    if local_now >= cutoff_moment:
        upcoming_sunday += timedelta(days=7)

    return upcoming_sunday


def earliest_vendor_delivery(vendor: Vendor, now: datetime) -> tuple[Weekday, date]:
    """
    The vendor weekday whose next delivery comes first.

    Raises:
        VendorMissingDeliveryDaysError: If the vendor has no delivery days
    """
    if not vendor.delivery_days:
        raise VendorMissingDeliveryDaysError(vendor.id, vendor.name)

    candidates = [
        (next_delivery_date(day, now, vendor.cutoff_hours), day)
        for day in vendor.delivery_days
    ]
    delivery, day = min(candidates, key=lambda pair: pair[0])
    return day, delivery


def earliest_shared_delivery(vendors: list[Vendor], now: datetime) -> tuple[Weekday, date]:
    """
    The weekday every vendor delivers on whose next delivery comes first.

    The strictest cutoff_hours across the vendors applies.

    Raises:
        VendorMissingDeliveryDaysError: If a vendor has no delivery days
        VendorDeliveryDayMismatchError: If the vendors share no weekday
    """
    shared: Optional[list[Weekday]] = None
    for vendor in vendors:
        if not vendor.delivery_days:
            raise VendorMissingDeliveryDaysError(vendor.id, vendor.name)
        if shared is None:
            shared = list(vendor.delivery_days)
            continue

        overlap = [day for day in shared if vendor.delivers_on(day)]
        if not overlap:
            raise VendorDeliveryDayMismatchError(
                vendor.id,
                vendor.name,
                "/".join(day.value for day in shared),
                [day.value for day in vendor.delivery_days],
            )
        shared = overlap

    if not shared:
        raise DateComputationError("No vendor to derive a delivery day from")

    cutoff_hours = max(vendor.cutoff_hours for vendor in vendors)
    delivery, day = min(
        ((next_delivery_date(day, now, cutoff_hours), day) for day in shared),
        key=lambda pair: pair[0]
    )
    return day, delivery


# ===================
# SERVICE
# ===================

class DeliveryDateService:
    """
    Resolves the dates for an order partition.

    The clock is injectable; weekly cutoff values come from the
    settings store.
    """

    def __init__(
        self,
        settings_service: Optional[SettingsService] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings_service = settings_service or get_settings_service()
        self._clock = clock or now_in_app_tz

    def now(self) -> datetime:
        return to_app_tz(self._clock())

    def today(self) -> date:
        return self.now().date()

    def take_effect_date(self, now: Optional[datetime] = None) -> date:
        cutoff = self.settings_service.get_weekly_cutoff()
        return take_effect_date(cutoff.cutoff_day, cutoff.cutoff_time, now or self.now())

    def compute_dates(
        self,
        service_type: ServiceType,
        weekday: Optional[Weekday],
        vendors: list[Vendor],
        now: Optional[datetime] = None,
    ) -> ScheduleDates:
        """
        Resolve take-effect and delivery dates.

        When weekday is None the earliest weekday shared by all vendors
        is used. The strictest (largest) cutoff_hours across vendors applies.

        Boxes orders tolerate unresolvable dates and get None; every
        other service kind raises DateComputationError.
        """
        now = now or self.now()

        try:
            effective = self.take_effect_date(now)

            if weekday is None:
                weekday, _ = earliest_shared_delivery(vendors, now)

            cutoff_hours = max((vendor.cutoff_hours for vendor in vendors), default=0)
            delivery = next_delivery_date(weekday, now, cutoff_hours)

        except DateComputationError as e:
            if service_type == ServiceType.BOXES:
                logger.warning(
                    "box_order_dates_unresolved",
                    delivery_day=weekday.value if weekday else None,
                    error=e.message
                )
                return ScheduleDates(weekday, None, None)
            raise

        logger.debug(
            "order_dates_computed",
            service_type=service_type.value,
            delivery_day=weekday.value,
            take_effect_date=str(effective),
            scheduled_delivery_date=str(delivery)
        )
        return ScheduleDates(weekday, effective, delivery)


# Singleton instance
_delivery_date_service: Optional[DeliveryDateService] = None


def get_delivery_date_service() -> DeliveryDateService:
    """Get or create DeliveryDateService instance."""
    global _delivery_date_service
    if _delivery_date_service is None:
        _delivery_date_service = DeliveryDateService()
    return _delivery_date_service
