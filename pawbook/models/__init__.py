"""
Domain models.
"""

from .booking import ACTIVE_STATUSES, ON_SITE_STATUSES, Booking, BookingAction, BookingStatus, TRANSITIONS
from .capacity import CapacityOverride, CapacityRule, DayAvailability, SlotAvailability
from .grooming import ConditionRatingResult, GroomingPriceTier, SizeCategory
from .pricing import FixedDiscount, PercentageDiscount, PriceQuote, PricingRule, Surcharge
from .service_type import ServiceType

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingAction",
    "BookingStatus",
    "ON_SITE_STATUSES",
    "TRANSITIONS",
    "CapacityOverride",
    "CapacityRule",
    "DayAvailability",
    "SlotAvailability",
    "ConditionRatingResult",
    "GroomingPriceTier",
    "SizeCategory",
    "FixedDiscount",
    "PercentageDiscount",
    "PriceQuote",
    "PricingRule",
    "Surcharge",
    "ServiceType",
]
