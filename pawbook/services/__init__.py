"""
Business logic services.
Contains service layer implementations for the booking engine.
"""

from .availability_service import AvailabilityService
from .booking_service import BookingService
from .capacity_service import CapacityStore
from .catalog_service import CatalogService
from .concierge_tools import ConciergeTools, TOOL_DEFINITIONS, execute_tool
from .grooming_service import GroomingPricingService
from .pricing_service import PricingService

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CapacityStore",
    "CatalogService",
    "ConciergeTools",
    "GroomingPricingService",
    "PricingService",
    "TOOL_DEFINITIONS",
    "execute_tool",
]
