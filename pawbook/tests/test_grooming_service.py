import pytest

from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..services.booking_service import BookingService
from ..services.grooming_service import GroomingPricingService
from .conftest import MONDAY, add_animal


@pytest.fixture
def grooming(test_db):
    """美容价格矩阵：small / large 各三档，medium 一档"""
    service = GroomingPricingService(test_db)
    for size, rating, price, minutes in [
        ("large", 5, 11000, 180),
        ("small", 3, 5500, 75),
        ("large", 1, 6000, 90),
        ("small", 1, 4000, 45),
        ("medium", 3, 6500, 90),
        ("small", 5, 7000, 120),
        ("large", 3, 8000, 120),
    ]:
        service.save_tier(size, rating, price, minutes)
    return service


class TestPriceMatrix:
    """价格矩阵维护与查询"""

    def test_matrix_ordered_by_size_then_rating(self, grooming):
        matrix = grooming.get_price_matrix()

        assert [(t.size_category, t.condition_rating) for t in matrix] == [
            ("small", 1), ("small", 3), ("small", 5), ("medium", 3),
            ("large", 1), ("large", 3), ("large", 5),
        ]

    def test_save_same_cell_updates(self, grooming):
        first = grooming.get_price("small", 3)

        saved = grooming.save_tier("small", 3, 5900, 80, label="Small, matted")

        assert saved.id == first.id
        assert saved.price_cents == 5900
        assert saved.label == "Small, matted"
        assert len(grooming.get_price_matrix()) == 7

    def test_get_price(self, grooming):
        tier = grooming.get_price("large", 3)

        assert tier.price_cents == 8000
        assert tier.estimated_minutes == 120

    def test_missing_cell(self, grooming):
        with pytest.raises(NotFoundError):
            grooming.get_price("medium", 1)

    def test_invalid_size_and_rating(self, grooming):
        with pytest.raises(ValidationError):
            grooming.get_price("giant", 3)
        with pytest.raises(ValidationError):
            grooming.get_price("small", 6)
        with pytest.raises(ValidationError):
            grooming.save_tier("small", 0, 4000, 30)

    def test_price_range_ignores_inactive_tiers(self, grooming):
        assert grooming.get_price_range("small") == {
            "size_category": "small", "min_price_cents": 4000, "max_price_cents": 7000}

        grooming.update_tier(grooming.get_price("small", 5).id, is_active=False)

        assert grooming.get_price_range("small")["max_price_cents"] == 5500

    def test_price_range_without_tiers(self, grooming):
        with pytest.raises(NotFoundError):
            grooming.get_price_range("xl")

    def test_update_tier(self, grooming):
        tier_id = grooming.get_price("medium", 3).id

        updated = grooming.update_tier(tier_id, price_cents=6800, estimated_minutes=100)

        assert updated.price_cents == 6800
        assert updated.estimated_minutes == 100

    def test_update_tier_validation(self, grooming):
        tier_id = grooming.get_price("medium", 3).id

        with pytest.raises(ValidationError):
            grooming.update_tier(tier_id)
        with pytest.raises(ValidationError):
            grooming.update_tier(tier_id, price_cents=-1)
        with pytest.raises(NotFoundError):
            grooming.update_tier(9999, price_cents=100)


class TestConditionRating:
    """美容师评分与报价"""

    def _grooming_booking(self, test_db, seeded, animal_ids):
        return BookingService(test_db).create_booking(
            seeded["alice"], seeded["grooming"], animal_ids, MONDAY, start_time="09:00")

    def test_total_replaced_once_every_animal_is_rated(self, test_db, seeded, grooming):
        booking = self._grooming_booking(test_db, seeded, [seeded["rex"], seeded["bella"]])
        assert booking.total_cents == 15000

        first = grooming.rate_condition(booking.id, seeded["rex"], 3, seeded["staff"])
        assert first.quoted_price_cents == 8000
        assert first.all_rated is False
        assert first.booking_total_cents is None
        assert BookingService(test_db).get_booking(booking.id).total_cents == 15000

        second = grooming.rate_condition(booking.id, seeded["bella"], 1, seeded["staff"])
        assert second.quoted_price_cents == 4000
        assert second.all_rated is True
        assert second.booking_total_cents == 12000
        assert BookingService(test_db).get_booking(booking.id).total_cents == 12000

    def test_rating_again_replaces_quote(self, test_db, seeded, grooming):
        booking = self._grooming_booking(test_db, seeded, [seeded["bella"]])

        grooming.rate_condition(booking.id, seeded["bella"], 1, seeded["staff"])
        result = grooming.rate_condition(booking.id, seeded["bella"], 5, seeded["staff"])

        assert result.booking_total_cents == 7000
        row = test_db.execute_one(
            "SELECT condition_rating, quoted_price_cents FROM booking_animals WHERE booking_id = ?",
            [booking.id])
        assert row == (5, 7000)

    def test_only_grooming_bookings(self, test_db, seeded, grooming):
        daycare = BookingService(test_db).create_booking(
            seeded["alice"], seeded["daycare"], [seeded["rex"]], MONDAY)

        with pytest.raises(ValidationError):
            grooming.rate_condition(daycare.id, seeded["rex"], 3, seeded["staff"])

    def test_animal_not_in_booking(self, test_db, seeded, grooming):
        booking = self._grooming_booking(test_db, seeded, [seeded["rex"]])

        with pytest.raises(NotFoundError):
            grooming.rate_condition(booking.id, seeded["bella"], 3, seeded["staff"])

    def test_size_required(self, test_db, seeded, grooming):
        scruffy = add_animal(test_db, seeded["alice"], "Scruffy", size=None)
        booking = self._grooming_booking(test_db, seeded, [scruffy])

        with pytest.raises(ValidationError):
            grooming.rate_condition(booking.id, scruffy, 3, seeded["staff"])

    def test_missing_tier(self, test_db, seeded, grooming):
        booking = BookingService(test_db).create_booking(
            seeded["bob"], seeded["grooming"], [seeded["luna"]], MONDAY, start_time="11:00")

        with pytest.raises(NotFoundError):
            grooming.rate_condition(booking.id, seeded["luna"], 1, seeded["staff"])

    def test_requires_active_staff(self, test_db, seeded, grooming):
        booking = self._grooming_booking(test_db, seeded, [seeded["rex"]])

        with pytest.raises(AuthorizationError):
            grooming.rate_condition(booking.id, seeded["rex"], 3, 9999)

    def test_rating_out_of_range(self, test_db, seeded, grooming):
        booking = self._grooming_booking(test_db, seeded, [seeded["rex"]])

        with pytest.raises(ValidationError):
            grooming.rate_condition(booking.id, seeded["rex"], 6, seeded["staff"])
