import pytest
from datetime import date, timedelta

from ..core.exceptions import NotFoundError, ValidationError
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.capacity_service import CapacityStore
from ..services.catalog_service import CatalogService
from .conftest import MONDAY, SATURDAY, add_animal


class TestCapacityPrecedence:
    """容量来源优先级：例外 > 星期规则 > 默认规则 > 0"""

    def test_default_rule_applies_to_every_day(self, test_db, seeded):
        days = AvailabilityService(test_db).check_availability(seeded["daycare"], MONDAY, SATURDAY)

        assert len(days) == 6
        assert all(d.total_capacity == 25 and d.spots_remaining == 25 and d.available for d in days)

    def test_day_of_week_rule_beats_default(self, test_db, seeded):
        CapacityStore(test_db).save_rule(seeded["daycare"], 10, day_of_week=6)

        days = AvailabilityService(test_db).check_availability(seeded["daycare"], MONDAY, SATURDAY)
        by_date = {d.date: d for d in days}

        assert by_date[MONDAY].total_capacity == 25
        assert by_date[SATURDAY].total_capacity == 10

    def test_override_beats_day_of_week_rule(self, test_db, seeded):
        store = CapacityStore(test_db)
        store.save_rule(seeded["daycare"], 10, day_of_week=6)
        store.set_override(SATURDAY, "event", max_capacity=35, service_type_id=seeded["daycare"])

        day = AvailabilityService(test_db).check_availability(seeded["daycare"], SATURDAY, SATURDAY)[0]

        assert day.total_capacity == 35
        assert day.spots_remaining == 35

    def test_service_override_beats_global_override(self, test_db, seeded):
        store = CapacityStore(test_db)
        store.set_override(MONDAY, "short_staffed", max_capacity=12)
        store.set_override(MONDAY, "training_day", max_capacity=8, service_type_id=seeded["daycare"])

        service = AvailabilityService(test_db)
        assert service.check_availability(seeded["daycare"], MONDAY, MONDAY)[0].total_capacity == 8
        assert service.check_availability(seeded["boarding"], MONDAY, MONDAY)[0].total_capacity == 12

    def test_closure_marks_day_unavailable(self, test_db, seeded):
        CapacityStore(test_db).set_override(MONDAY, "holiday")

        day = AvailabilityService(test_db).check_availability(seeded["daycare"], MONDAY, MONDAY)[0]

        assert day.available is False
        assert day.spots_remaining == 0
        assert day.total_capacity == 0

    def test_service_without_rules_is_closed(self, test_db, seeded):
        training = CatalogService(test_db).create_service_type("training", "Training", 3000)

        day = AvailabilityService(test_db).check_availability(training.id, MONDAY, MONDAY)[0]

        assert day.available is False
        assert day.total_capacity == 0

    def test_slot_rules_do_not_count_as_day_capacity(self, test_db, seeded):
        day = AvailabilityService(test_db).check_availability(seeded["grooming"], MONDAY, MONDAY)[0]
        assert day.total_capacity == 6


class TestLedgerCounting:
    """台账占用"""

    def test_spots_deplete_and_recover(self, test_db, seeded, booking_service):
        service = AvailabilityService(test_db)
        before = service.check_availability(seeded["daycare"], MONDAY, MONDAY)[0].spots_remaining

        booking = booking_service.create_booking(
            seeded["alice"], seeded["daycare"], [seeded["rex"], seeded["bella"]], MONDAY)
        during = service.check_availability(seeded["daycare"], MONDAY, MONDAY)[0].spots_remaining

        booking_service.cancel_booking(booking.id, seeded["alice"])
        after = service.check_availability(seeded["daycare"], MONDAY, MONDAY)[0].spots_remaining

        assert before == 25
        assert during == 23
        assert after == 25

    def test_multi_day_booking_counts_on_every_spanned_day(self, test_db, seeded, booking_service):
        booking_service.create_multi_day_booking(
            seeded["alice"], seeded["boarding"], [seeded["rex"]], MONDAY, MONDAY + timedelta(days=2))

        days = AvailabilityService(test_db).check_availability(
            seeded["boarding"], MONDAY - timedelta(days=1), MONDAY + timedelta(days=3))
        spots = [d.spots_remaining for d in days]

        assert spots == [10, 9, 9, 9, 10]

    def test_other_service_does_not_consume_capacity(self, test_db, seeded, booking_service):
        booking_service.create_booking(seeded["alice"], seeded["daycare"], [seeded["rex"]], MONDAY)

        day = AvailabilityService(test_db).check_availability(seeded["boarding"], MONDAY, MONDAY)[0]
        assert day.spots_remaining == 10

    def test_facility_cap_limits_every_service(self, test_db, seeded):
        availability = AvailabilityService(test_db, facility_daily_max=3)
        bookings = BookingService(test_db, availability=availability)
        extra = add_animal(test_db, seeded["alice"], "Ziggy")
        bookings.create_multi_day_booking(
            seeded["alice"], seeded["boarding"], [seeded["rex"], seeded["bella"], extra],
            MONDAY - timedelta(days=1), MONDAY)

        day = availability.check_availability(seeded["daycare"], MONDAY, MONDAY)[0]

        assert day.total_capacity == 25
        assert day.spots_remaining == 0
        assert day.available is False

    def test_unavailable_dates_respects_animal_count(self, test_db, seeded):
        CapacityStore(test_db).set_override(MONDAY, "low_staff", max_capacity=1,
                                            service_type_id=seeded["daycare"])
        service = AvailabilityService(test_db)

        assert service.unavailable_dates(seeded["daycare"], MONDAY, MONDAY, 1) == []
        assert service.unavailable_dates(seeded["daycare"], MONDAY, MONDAY, 2) == [MONDAY]

    def test_facility_status_reports_by_service(self, test_db, seeded, booking_service):
        staff = seeded["staff"]
        daycare = booking_service.create_booking(seeded["alice"], seeded["daycare"], [seeded["rex"]], MONDAY)
        booking_service.confirm_booking(daycare.id, staff)
        booking_service.check_in(daycare.id, staff)
        boarding = booking_service.create_multi_day_booking(
            seeded["bob"], seeded["boarding"], [seeded["luna"]], MONDAY - timedelta(days=2), MONDAY)
        booking_service.confirm_booking(boarding.id, staff)
        # 待确认的预订不计入看板
        booking_service.create_booking(seeded["alice"], seeded["daycare"], [seeded["bella"]], MONDAY)

        status = AvailabilityService(test_db).facility_status(MONDAY)

        assert status["total_animals"] == 2
        assert status["max_capacity"] == 40
        assert status["capacity_percent"] == 5
        assert status["by_service"] == {"daycare": 1, "boarding": 1}


class TestWindowValidation:
    """查询区间校验"""

    def test_end_before_start(self, test_db, seeded):
        with pytest.raises(ValidationError):
            AvailabilityService(test_db).check_availability(seeded["daycare"], MONDAY, MONDAY - timedelta(days=1))

    def test_window_longer_than_limit(self, test_db, seeded):
        with pytest.raises(ValidationError):
            AvailabilityService(test_db).check_availability(
                seeded["daycare"], MONDAY, MONDAY + timedelta(days=30))

    def test_zero_window_limit_is_honoured(self, test_db, seeded):
        with pytest.raises(ValidationError):
            AvailabilityService(test_db, max_window_days=0).check_availability(seeded["daycare"], MONDAY, MONDAY)

    def test_thirty_day_window_is_allowed(self, test_db, seeded):
        days = AvailabilityService(test_db).check_availability(
            seeded["daycare"], MONDAY, MONDAY + timedelta(days=29))
        assert len(days) == 30

    def test_unknown_service(self, test_db, seeded):
        with pytest.raises(NotFoundError):
            AvailabilityService(test_db).check_availability(9999, MONDAY, MONDAY)


class TestSlotAvailability:
    """按时段的可用性"""

    def test_slots_listed_in_start_order(self, test_db, seeded):
        slots = AvailabilityService(test_db).get_slot_availability(seeded["grooming"], MONDAY)

        assert [s.start_time for s in slots] == ["09:00", "11:00"]
        assert [s.end_time for s in slots] == ["10:30", "12:30"]
        assert all(s.spots_remaining == 2 for s in slots)

    def test_booked_slot_depletes(self, test_db, seeded, booking_service):
        booking_service.create_booking(seeded["alice"], seeded["grooming"], [seeded["rex"]], MONDAY,
                                       start_time="09:00")

        slots = {s.start_time: s for s in AvailabilityService(test_db).get_slot_availability(
            seeded["grooming"], MONDAY)}

        assert slots["09:00"].spots_remaining == 1
        assert slots["11:00"].spots_remaining == 2

    def test_day_of_week_slot_rule_beats_default(self, test_db, seeded):
        CapacityStore(test_db).save_rule(seeded["grooming"], 4, day_of_week=6,
                                         start_time="09:00", end_time="10:30")
        service = AvailabilityService(test_db)

        saturday = {s.start_time: s.total_capacity for s in service.get_slot_availability(seeded["grooming"], SATURDAY)}
        monday = {s.start_time: s.total_capacity for s in service.get_slot_availability(seeded["grooming"], MONDAY)}

        assert saturday == {"09:00": 4, "11:00": 2}
        assert monday == {"09:00": 2, "11:00": 2}

    def test_closure_closes_all_slots(self, test_db, seeded):
        CapacityStore(test_db).set_override(MONDAY, "holiday")

        slots = AvailabilityService(test_db).get_slot_availability(seeded["grooming"], MONDAY)

        assert slots
        assert not any(s.available for s in slots)

    def test_slot_remaining(self, test_db, seeded):
        service = AvailabilityService(test_db)

        assert service.slot_remaining(seeded["grooming"], MONDAY, "11:00") == 2
        assert service.slot_remaining(seeded["grooming"], MONDAY, "15:00") == 0
        assert service.slot_remaining(seeded["daycare"], MONDAY, "09:00") is None
