"""
预订相关的请求/响应模式
"""

from pydantic import BaseModel, Field
import datetime as dt
from typing import List, Optional
from ..models.booking import Booking, BookingStatus


class BookingCreateRequest(BaseModel):
    """单日预订请求"""
    service_type_id: int = Field(..., description="服务类型ID")
    animal_ids: List[int] = Field(..., min_length=1, description="参与的动物ID")
    date: dt.date = Field(..., description="预订日期")
    start_time: Optional[str] = Field(None, description="时段 HH:MM（美容）")
    notes: Optional[str] = Field(None, max_length=1000, description="备注")


class MultiDayBookingCreateRequest(BaseModel):
    """多日预订请求"""
    service_type_id: int = Field(..., description="服务类型ID")
    animal_ids: List[int] = Field(..., min_length=1, description="参与的动物ID")
    start_date: dt.date = Field(..., description="开始日期")
    end_date: dt.date = Field(..., description="结束日期（含）")
    notes: Optional[str] = Field(None, max_length=1000, description="备注")


class BookingCancelRequest(BaseModel):
    """取消请求"""
    reason: Optional[str] = Field(None, max_length=500, description="取消原因")


class BookingCheckOutRequest(BaseModel):
    """离店请求"""
    notes: Optional[str] = Field(None, max_length=1000, description="离店备注")


class BookingResponse(BaseModel):
    """预订响应"""
    id: int = Field(..., description="预订ID")
    customer_id: int = Field(..., description="客户ID")
    service_type_id: int = Field(..., description="服务类型ID")
    service_name: Optional[str] = Field(None, description="服务名称")
    date: dt.date = Field(..., description="锚定日期")
    start_date: Optional[dt.date] = Field(None, description="多日预订开始日期")
    end_date: Optional[dt.date] = Field(None, description="多日预订结束日期")
    start_time: Optional[str] = Field(None, description="时段")
    status: BookingStatus = Field(..., description="状态")
    animal_ids: List[int] = Field(..., description="动物ID")
    total_cents: int = Field(..., description="总价（分）")
    total: str = Field(..., description="总价展示")
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    checked_in_at: Optional[dt.datetime] = None
    checked_in_by: Optional[int] = None
    checked_out_at: Optional[dt.datetime] = None
    checked_out_by: Optional[int] = None
    created_at: Optional[dt.datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(**booking.model_dump(exclude={"updated_at"}), total=booking.total_display)
