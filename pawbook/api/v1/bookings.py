"""
预订路由
客户：创建、查询、取消；员工：确认、到店、离店、未到店
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...core.error_handler import create_paginated_response, create_success_response
from ...core.security import Principal, require_customer, require_staff
from ...schemas.booking import (
    BookingCancelRequest,
    BookingCheckOutRequest,
    BookingCreateRequest,
    BookingResponse,
    MultiDayBookingCreateRequest,
)
from ...services.booking_service import BookingService
from ..deps import get_booking_service

router = APIRouter()


def _dump(booking) -> dict:
    return BookingResponse.from_booking(booking).model_dump(mode="json")


@router.post("", status_code=201)
def create_booking(
    req: BookingCreateRequest,
    principal: Principal = Depends(require_customer),
    bookings: BookingService = Depends(get_booking_service),
):
    """创建单日预订"""
    booking = bookings.create_booking(
        principal.id, req.service_type_id, req.animal_ids, req.date,
        start_time=req.start_time, notes=req.notes,
    )
    return create_success_response(_dump(booking), "Booking created")


@router.post("/multi-day", status_code=201)
def create_multi_day_booking(
    req: MultiDayBookingCreateRequest,
    principal: Principal = Depends(require_customer),
    bookings: BookingService = Depends(get_booking_service),
):
    """创建多日预订"""
    booking = bookings.create_multi_day_booking(
        principal.id, req.service_type_id, req.animal_ids, req.start_date, req.end_date,
        notes=req.notes,
    )
    return create_success_response(_dump(booking), "Booking created")


@router.get("")
def list_my_bookings(
    status: Optional[str] = Query(None, description="状态过滤"),
    upcoming: bool = Query(False, description="只看未结束的预订"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_customer),
    bookings: BookingService = Depends(get_booking_service),
):
    """我的预订"""
    items, total = bookings.list_customer_bookings(
        principal.id, status=status, upcoming_only=upcoming, limit=limit, offset=offset)
    return create_paginated_response([_dump(b) for b in items], total, limit, offset)


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    principal: Principal = Depends(require_customer),
    bookings: BookingService = Depends(get_booking_service),
):
    """预订详情（只能查看自己的预订）"""
    return create_success_response(_dump(bookings.get_booking(booking_id, principal.id)))


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    req: Optional[BookingCancelRequest] = None,
    principal: Principal = Depends(require_customer),
    bookings: BookingService = Depends(get_booking_service),
):
    """取消预订"""
    reason = req.reason if req else None
    booking = bookings.cancel_booking(booking_id, principal.id, reason)
    return create_success_response(_dump(booking), "Booking cancelled")


@router.post("/{booking_id}/confirm")
def confirm_booking(
    booking_id: int,
    principal: Principal = Depends(require_staff),
    bookings: BookingService = Depends(get_booking_service),
):
    """确认预订"""
    return create_success_response(_dump(bookings.confirm_booking(booking_id, principal.id)),
                                   "Booking confirmed")


@router.post("/{booking_id}/check-in")
def check_in(
    booking_id: int,
    principal: Principal = Depends(require_staff),
    bookings: BookingService = Depends(get_booking_service),
):
    """到店"""
    return create_success_response(_dump(bookings.check_in(booking_id, principal.id)), "Checked in")


@router.post("/{booking_id}/check-out")
def check_out(
    booking_id: int,
    req: Optional[BookingCheckOutRequest] = None,
    principal: Principal = Depends(require_staff),
    bookings: BookingService = Depends(get_booking_service),
):
    """离店"""
    booking = bookings.check_out(booking_id, principal.id, req.notes if req else None)
    return create_success_response(_dump(booking), "Checked out")


@router.post("/{booking_id}/no-show")
def mark_no_show(
    booking_id: int,
    principal: Principal = Depends(require_staff),
    bookings: BookingService = Depends(get_booking_service),
):
    """标记未到店"""
    return create_success_response(_dump(bookings.mark_no_show(booking_id, principal.id)),
                                   "Marked as no-show")
