"""
Unit tests for the delivery and take-effect date rules.

Run: pytest tests/unit/test_delivery_date_service.py -v
"""

import pytest
from unittest.mock import MagicMock
from datetime import date, datetime

from services.delivery_date_service import (
    DeliveryDateService,
    normalize_delivery_day,
    next_weekday_occurrence,
    next_delivery_date,
    take_effect_date,
    earliest_vendor_delivery,
    earliest_shared_delivery,
    parse_cutoff_time,
)
from models.order_config import ServiceType, Weekday
from models.settings import WeeklyCutoff
from models.vendor import Vendor
from exceptions import (
    DateComputationError,
    InvalidDeliveryDayError,
    VendorDeliveryDayMismatchError,
    VendorMissingDeliveryDaysError,
)

# 2024-06-03 is a Monday
MONDAY_MORNING = datetime(2024, 6, 3, 10, 0)


def make_vendor(days, cutoff_hours=0, id="v1"):
    return Vendor(id=id, name="Green Grocer", delivery_days=days, cutoff_hours=cutoff_hours)


def make_service(now=MONDAY_MORNING, day="Friday", time="17:00"):
    settings_service = MagicMock()
    settings_service.get_weekly_cutoff.return_value = WeeklyCutoff(cutoff_day=day, cutoff_time=time)
    return DeliveryDateService(settings_service=settings_service, clock=lambda: now)


class TestNormalizeDeliveryDay:
    """Tests for normalize_delivery_day()"""

    @pytest.mark.parametrize("label", ["Thursday", "thursday", "Thursday_Food", "THURSDAY_boxes"])
    def test_labels_reduce_to_weekday(self, label):
        assert normalize_delivery_day(label) == Weekday.THURSDAY

    def test_unknown_label_raises(self):
        with pytest.raises(InvalidDeliveryDayError) as exc_info:
            normalize_delivery_day("Funday_Food")

        assert exc_info.value.details["provided"] == "Funday_Food"


class TestNextDeliveryDate:
    """Tests for next_weekday_occurrence() and next_delivery_date()"""

    def test_next_thursday_from_monday(self):
        assert next_weekday_occurrence(Weekday.THURSDAY, date(2024, 6, 3)) == date(2024, 6, 6)

    def test_same_weekday_is_today(self):
        assert next_weekday_occurrence(Weekday.MONDAY, date(2024, 6, 3)) == date(2024, 6, 3)

    def test_no_cutoff_allows_today(self):
        thursday_afternoon = datetime(2024, 6, 6, 15, 0)

        assert next_delivery_date(Weekday.THURSDAY, thursday_afternoon) == date(2024, 6, 6)

    def test_cutoff_pushes_to_following_week(self):
        """Monday 10:00 + 72h is Thursday 10:00, so Thursday 00:00 is too early."""
        assert next_delivery_date(Weekday.THURSDAY, MONDAY_MORNING, cutoff_hours=72) == date(2024, 6, 13)

    def test_cutoff_landing_on_midnight_is_eligible(self):
        sunday_midnight = datetime(2024, 6, 2, 0, 0)

        # +96h is exactly Thursday 00:00
        assert next_delivery_date(Weekday.THURSDAY, sunday_midnight, cutoff_hours=96) == date(2024, 6, 6)

    def test_earliest_vendor_delivery_picks_soonest_day(self):
        vendor = make_vendor(["Friday", "Tuesday"])

        day, delivery = earliest_vendor_delivery(vendor, MONDAY_MORNING)

        assert day == Weekday.TUESDAY
        assert delivery == date(2024, 6, 4)

    def test_vendor_without_days_raises(self):
        with pytest.raises(VendorMissingDeliveryDaysError):
            earliest_vendor_delivery(make_vendor([]), MONDAY_MORNING)


class TestEarliestSharedDelivery:
    """Tests for earliest_shared_delivery()"""

    def test_picks_soonest_common_day(self):
        vendors = [make_vendor(["Tuesday", "Thursday", "Friday"], id="a"), make_vendor(["Friday", "Thursday"], id="b")]

        day, delivery = earliest_shared_delivery(vendors, MONDAY_MORNING)

        assert day == Weekday.THURSDAY
        assert delivery == date(2024, 6, 6)

    def test_strictest_cutoff_applies(self):
        vendors = [make_vendor(["Tuesday", "Thursday"], id="a"), make_vendor(["Tuesday", "Thursday"], 48, id="b")]

        day, delivery = earliest_shared_delivery(vendors, MONDAY_MORNING)

        assert day == Weekday.THURSDAY
        assert delivery == date(2024, 6, 6)

    def test_no_common_day_raises(self):
        vendors = [make_vendor(["Thursday"], id="a"), make_vendor(["Tuesday"], id="b")]

        with pytest.raises(VendorDeliveryDayMismatchError) as exc_info:
            earliest_shared_delivery(vendors, MONDAY_MORNING)

        assert exc_info.value.details["vendor_id"] == "b"
        assert exc_info.value.details["valid"] == ["Tuesday"]

    def test_vendor_without_days_raises(self):
        with pytest.raises(VendorMissingDeliveryDaysError):
            earliest_shared_delivery([make_vendor(["Thursday"], id="a"), make_vendor([], id="b")], MONDAY_MORNING)


class TestTakeEffectDate:
    """Tests for take_effect_date()"""

    def test_before_cutoff_is_next_sunday(self):
        assert take_effect_date("Friday", "17:00", MONDAY_MORNING) == date(2024, 6, 9)

    def test_just_before_and_at_cutoff_differ_by_one_week(self):
        before = take_effect_date("Friday", "17:00", datetime(2024, 6, 7, 16, 59))
        at = take_effect_date("Friday", "17:00", datetime(2024, 6, 7, 17, 0))

        assert before == date(2024, 6, 9)
        assert at == date(2024, 6, 16)
        assert (at - before).days == 7

    def test_saturday_after_cutoff(self):
        assert take_effect_date("Friday", "17:00", datetime(2024, 6, 8, 9, 0)) == date(2024, 6, 16)

    def test_sunday_never_returns_today(self):
        result = take_effect_date("Friday", "17:00", datetime(2024, 6, 9, 9, 0))

        assert result == date(2024, 6, 16)

    def test_result_is_always_sunday(self):
        for day in range(3, 17):
            result = take_effect_date("Wednesday", "08:30", datetime(2024, 6, day, 12, 0))
            assert result.weekday() == 6
            assert result > date(2024, 6, day)

    def test_invalid_cutoff_day_raises(self):
        with pytest.raises(DateComputationError):
            take_effect_date("Someday", "17:00", MONDAY_MORNING)

    def test_invalid_cutoff_time_raises(self):
        with pytest.raises(DateComputationError):
            parse_cutoff_time("5pm")


class TestDeliveryDateService:
    """Tests for DeliveryDateService.compute_dates()"""

    def test_compute_dates_for_explicit_weekday(self):
        service = make_service()

        dates = service.compute_dates(ServiceType.FOOD, Weekday.THURSDAY, [make_vendor(["Thursday"])])

        assert dates.delivery_day == Weekday.THURSDAY
        assert dates.take_effect_date == date(2024, 6, 9)
        assert dates.scheduled_delivery_date == date(2024, 6, 6)

    def test_weekday_defaults_to_vendor_earliest(self):
        service = make_service()

        dates = service.compute_dates(ServiceType.CUSTOM, None, [make_vendor(["Wednesday"])])

        assert dates.delivery_day == Weekday.WEDNESDAY
        assert dates.scheduled_delivery_date == date(2024, 6, 5)

    def test_weekday_defaults_to_day_all_vendors_share(self):
        service = make_service()
        vendors = [make_vendor(["Tuesday", "Friday"], id="a"), make_vendor(["Friday"], id="b")]

        dates = service.compute_dates(ServiceType.BOXES, None, vendors)

        assert dates.delivery_day == Weekday.FRIDAY
        assert dates.scheduled_delivery_date == date(2024, 6, 7)

    def test_strictest_vendor_cutoff_applies(self):
        service = make_service()
        vendors = [make_vendor(["Thursday"], 0, id="a"), make_vendor(["Thursday"], 72, id="b")]

        dates = service.compute_dates(ServiceType.FOOD, Weekday.THURSDAY, vendors)

        assert dates.scheduled_delivery_date == date(2024, 6, 13)

    def test_settings_drive_take_effect(self):
        service = make_service(day="Monday", time="09:00")

        # Monday 10:00 is past Monday 09:00
        assert service.take_effect_date() == date(2024, 6, 16)

    def test_boxes_tolerate_unresolvable_dates(self):
        service = make_service(day="NotADay")

        dates = service.compute_dates(ServiceType.BOXES, Weekday.THURSDAY, [make_vendor(["Thursday"])])

        assert dates.delivery_day == Weekday.THURSDAY
        assert dates.take_effect_date is None
        assert dates.scheduled_delivery_date is None

    def test_food_requires_dates(self):
        service = make_service(day="NotADay")

        with pytest.raises(DateComputationError):
            service.compute_dates(ServiceType.FOOD, Weekday.THURSDAY, [make_vendor(["Thursday"])])

    def test_now_uses_application_time_zone(self):
        service = make_service()

        assert service.now().tzinfo is not None
        assert service.today() == date(2024, 6, 3)
