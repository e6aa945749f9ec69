"""
预订相关数据模型
"""

from pydantic import Field
import datetime as dt
from typing import Dict, FrozenSet, List, Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class BookingStatus(str, Enum):
    """预订状态枚举"""
    PENDING = "pending"           # 待确认
    CONFIRMED = "confirmed"       # 已确认
    CHECKED_IN = "checked_in"     # 已入住/到店
    CHECKED_OUT = "checked_out"   # 已离店
    CANCELLED = "cancelled"       # 已取消
    NO_SHOW = "no_show"           # 未到店


# 占用容量的状态
ACTIVE_STATUSES: FrozenSet[str] = frozenset({
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.CHECKED_IN.value,
})

# 已确认或已到店的动物，员工看板只统计这些
ON_SITE_STATUSES: FrozenSet[str] = frozenset({
    BookingStatus.CONFIRMED.value,
    BookingStatus.CHECKED_IN.value,
})


class BookingAction(str, Enum):
    """生命周期动作"""
    CONFIRM = "confirm"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    CANCEL = "cancel"
    NO_SHOW = "no_show"


# 动作 -> (允许的来源状态, 目标状态)；终态不出现在任何来源集合中
TRANSITIONS: Dict[BookingAction, tuple] = {
    BookingAction.CONFIRM: (frozenset({"pending"}), BookingStatus.CONFIRMED),
    BookingAction.CHECK_IN: (frozenset({"confirmed"}), BookingStatus.CHECKED_IN),
    BookingAction.CHECK_OUT: (frozenset({"checked_in"}), BookingStatus.CHECKED_OUT),
    BookingAction.CANCEL: (frozenset({"pending", "confirmed"}), BookingStatus.CANCELLED),
    BookingAction.NO_SHOW: (frozenset({"pending", "confirmed"}), BookingStatus.NO_SHOW),
}


class Booking(BaseEntity, TimestampMixin):
    """预订完整模型"""
    id: int = Field(..., description="预订ID")
    customer_id: int = Field(..., description="客户ID")
    service_type_id: int = Field(..., description="服务类型ID")
    service_name: Optional[str] = Field(None, description="服务名称")
    date: dt.date = Field(..., description="锚定日期（多日预订为开始日期）")
    start_date: Optional[dt.date] = Field(None, description="多日预订开始日期")
    end_date: Optional[dt.date] = Field(None, description="多日预订结束日期")
    start_time: Optional[str] = Field(None, description="时段 HH:MM")
    status: BookingStatus = Field(..., description="状态")
    total_cents: int = Field(..., ge=0, description="总价（分）")
    animal_ids: List[int] = Field(default_factory=list, description="参与的动物ID")
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    checked_in_at: Optional[dt.datetime] = None
    checked_in_by: Optional[int] = None
    checked_out_at: Optional[dt.datetime] = None
    checked_out_by: Optional[int] = None

    @property
    def is_multi_day(self) -> bool:
        return self.start_date is not None

    @property
    def span_start(self) -> dt.date:
        return self.start_date or self.date

    @property
    def span_end(self) -> dt.date:
        return self.end_date or self.date

    @property
    def total_display(self) -> str:
        return f"${self.total_cents / 100:.2f}"

    def date_label(self) -> str:
        if self.is_multi_day:
            return f"{self.span_start.isoformat()} to {self.span_end.isoformat()}"
        return self.date.isoformat()
