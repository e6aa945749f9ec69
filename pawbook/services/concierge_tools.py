"""
AI 助理工具调用
把预订核心暴露为普通函数调用，业务异常转换为结构化错误对象返回，
助理可以直接向客户转述"为什么不行"（例如哪几天满了、哪只动物重复预订）。
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.exceptions import (
    AuthenticationError,
    BaseApplicationError,
    NotFoundError,
    ValidationError,
)
from ..models.service_type import ServiceType
from ..utils.dates import parse_iso_date
from .booking_service import BookingService

logger = logging.getLogger(__name__)

_SERVICE_NAME = {
    "type": "string",
    "description": "The service type: daycare, boarding, or grooming",
}

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "check_availability",
        "description": "Check if a service is available on specific dates. Always check before creating a booking.",
        "input_schema": {
            "type": "object",
            "properties": {
                "service_name": _SERVICE_NAME,
                "start_date": {"type": "string", "description": "Start date in YYYY-MM-DD format"},
                "end_date": {
                    "type": "string",
                    "description": "End date in YYYY-MM-DD format. Same as start_date for single-day bookings.",
                },
            },
            "required": ["service_name", "start_date", "end_date"],
        },
    },
    {
        "name": "create_booking",
        "description": "Create a booking for the customer. For boarding use start_date and end_date; "
                       "for daycare or grooming they should be the same. Always check availability first.",
        "input_schema": {
            "type": "object",
            "properties": {
                "service_name": _SERVICE_NAME,
                "start_date": {"type": "string", "description": "Start date in YYYY-MM-DD format"},
                "end_date": {"type": "string", "description": "End date in YYYY-MM-DD format"},
                "animal_names": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Names of the animals to book for. Must match animals on file.",
                },
                "start_time": {"type": "string", "description": "Slot start time HH:MM for grooming"},
                "notes": {"type": "string", "description": "Optional notes for the booking"},
            },
            "required": ["service_name", "start_date", "end_date", "animal_names"],
        },
    },
    {
        "name": "get_my_bookings",
        "description": "Get the customer's upcoming bookings.",
        "input_schema": {
            "type": "object",
            "properties": {
                "include_past": {
                    "type": "boolean",
                    "description": "Include past bookings. Defaults to false (upcoming only).",
                },
            },
            "required": [],
        },
    },
    {
        "name": "cancel_booking",
        "description": "Cancel a booking by ID.",
        "input_schema": {
            "type": "object",
            "properties": {
                "booking_id": {"type": "integer", "description": "The booking ID to cancel"},
                "reason": {"type": "string", "description": "Reason for cancellation"},
            },
            "required": ["booking_id"],
        },
    },
    {
        "name": "get_services_and_pricing",
        "description": "Get the list of available services and their base pricing.",
        "input_schema": {"type": "object", "properties": {}, "required": []},
    },
]


class ConciergeTools:
    """工具执行器"""

    def __init__(self, booking_service: Optional[BookingService] = None):
        self.bookings = booking_service or BookingService()
        self.catalog = self.bookings.catalog
        self.db = self.bookings.db

    def execute(self, tool_name: str, tool_input: Dict[str, Any],
                customer_id: Optional[int]) -> Dict[str, Any]:
        """
        执行一次工具调用

        Returns:
            成功时为工具结果；业务异常时为 {"error": {code, message, details}}
        """
        logger.info("Executing tool %s for customer %s", tool_name, customer_id)
        handler = getattr(self, f"_tool_{tool_name}", None)
        try:
            if handler is None:
                raise ValidationError(f"Unknown tool: {tool_name}", "tool_name")
            return handler(tool_input or {}, customer_id)
        except BaseApplicationError as e:
            logger.info("Tool %s returned %s: %s", tool_name, e.error_code, e.message)
            return {"error": e.to_dict()}

    # ------------------------------------------------------------------
    # 工具实现
    # ------------------------------------------------------------------
    def _tool_check_availability(self, tool_input: Dict[str, Any], customer_id: Optional[int]):
        service = self._resolve_service(tool_input.get("service_name"))
        start = parse_iso_date(tool_input.get("start_date"), "start_date")
        end = parse_iso_date(tool_input.get("end_date") or tool_input.get("start_date"), "end_date")
        days = self.bookings.availability.check_availability(service.id, start, end)
        return {
            "service": service.name,
            "base_price": service.base_price_display,
            "dates": [
                {"date": d.date.isoformat(), "available": d.available, "spots_left": d.spots_remaining}
                for d in days
            ],
        }

    def _tool_create_booking(self, tool_input: Dict[str, Any], customer_id: Optional[int]):
        self._require_customer(customer_id)
        service = self._resolve_service(tool_input.get("service_name"))
        animals = self._resolve_animals(customer_id, tool_input.get("animal_names") or [])
        start = parse_iso_date(tool_input.get("start_date"), "start_date")
        end = parse_iso_date(tool_input.get("end_date") or tool_input.get("start_date"), "end_date")
        animal_ids = [a["id"] for a in animals]
        notes = tool_input.get("notes") or None

        if start != end:
            booking = self.bookings.create_multi_day_booking(
                customer_id, service.id, animal_ids, start, end, notes=notes)
        else:
            booking = self.bookings.create_booking(
                customer_id, service.id, animal_ids, start,
                start_time=tool_input.get("start_time") or None, notes=notes)

        return {
            "success": True,
            "booking_id": booking.id,
            "service": service.name,
            "date": booking.date_label(),
            "animals": [a["name"] for a in animals],
            "total_price": booking.total_display,
            "status": booking.status,
        }

    def _tool_get_my_bookings(self, tool_input: Dict[str, Any], customer_id: Optional[int]):
        self._require_customer(customer_id)
        include_past = bool(tool_input.get("include_past"))
        bookings, total = self.bookings.list_customer_bookings(
            customer_id, upcoming_only=not include_past, limit=10)
        names = self._animal_names([aid for b in bookings for aid in b.animal_ids])
        return {
            "total": total,
            "bookings": [
                {
                    "id": b.id,
                    "service": b.service_name,
                    "date": b.date_label(),
                    "animals": [names.get(aid, str(aid)) for aid in b.animal_ids],
                    "status": b.status,
                    "price": b.total_display,
                }
                for b in bookings
            ],
        }

    def _tool_cancel_booking(self, tool_input: Dict[str, Any], customer_id: Optional[int]):
        self._require_customer(customer_id)
        try:
            booking_id = int(tool_input.get("booking_id"))
        except (TypeError, ValueError):
            raise ValidationError("booking_id must be an integer", "booking_id")
        booking = self.bookings.cancel_booking(booking_id, customer_id, tool_input.get("reason") or None)
        return {
            "success": True,
            "booking_id": booking.id,
            "status": booking.status,
            "message": "Booking has been cancelled.",
        }

    def _tool_get_services_and_pricing(self, tool_input: Dict[str, Any], customer_id: Optional[int]):
        return {"services": self.catalog.services_and_pricing()}

    # ------------------------------------------------------------------
    # 名称解析
    # ------------------------------------------------------------------
    def _require_customer(self, customer_id: Optional[int]):
        if customer_id is None:
            raise AuthenticationError(
                "You need an account to manage bookings. Please contact us to set one up first.")

    def _resolve_service(self, service_name: Optional[str]) -> ServiceType:
        if not service_name:
            raise ValidationError("service_name is required", "service_name")
        service = self.catalog.find_by_name(service_name)
        if service is None:
            raise NotFoundError("Service type", service_name)
        return service

    def _resolve_animals(self, customer_id: int, names: List[str]) -> List[Dict[str, Any]]:
        """按名字（不区分大小写）匹配客户名下的动物"""
        if not names:
            raise ValidationError("At least one animal is required", "animal_names")
        rows = self.db.fetch_dicts("SELECT id, name FROM animals WHERE customer_id = ?", [customer_id])
        by_name = {row["name"].lower(): row for row in rows}
        resolved = []
        for name in names:
            match = by_name.get(str(name).strip().lower())
            if match is None:
                raise NotFoundError("Animal", name)
            resolved.append(match)
        return resolved

    def _animal_names(self, animal_ids: List[int]) -> Dict[int, str]:
        if not animal_ids:
            return {}
        ids = sorted(set(animal_ids))
        rows = self.db.execute_query(
            f"SELECT id, name FROM animals WHERE id IN ({', '.join('?' for _ in ids)})", ids)
        return {row[0]: row[1] for row in rows}


def execute_tool(tool_name: str, tool_input: Dict[str, Any], customer_id: Optional[int],
                 tools: Optional[ConciergeTools] = None) -> Dict[str, Any]:
    """工具调用入口"""
    return (tools or ConciergeTools()).execute(tool_name, tool_input, customer_id)
