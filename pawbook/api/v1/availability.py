"""
可用性查询路由
"""

import datetime as dt
from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...services.availability_service import AvailabilityService
from ..deps import get_availability_service

router = APIRouter()


@router.get("")
def check_availability(
    service_type_id: int = Query(..., description="服务类型ID"),
    start_date: dt.date = Query(..., description="开始日期"),
    end_date: dt.date = Query(..., description="结束日期（含）"),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """逐日可用性"""
    days = availability.check_availability(service_type_id, start_date, end_date)
    return create_success_response({
        "service_type_id": service_type_id,
        "dates": [d.model_dump(mode="json") for d in days],
    })


@router.get("/slots")
def check_slot_availability(
    service_type_id: int = Query(..., description="服务类型ID"),
    date: dt.date = Query(..., description="日期"),
    availability: AvailabilityService = Depends(get_availability_service),
):
    """按时段的可用性（美容）"""
    slots = availability.get_slot_availability(service_type_id, date)
    return create_success_response({
        "service_type_id": service_type_id,
        "date": date.isoformat(),
        "slots": [s.model_dump(mode="json") for s in slots],
    })
