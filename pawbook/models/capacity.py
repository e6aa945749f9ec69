"""
容量相关数据模型
"""

from pydantic import BaseModel, Field, field_validator, model_validator
import datetime as dt
from typing import Optional
from .base import BaseEntity, TimestampMixin
from ..core.exceptions import ValidationError
from ..utils.dates import validate_slot_time


class CapacityRule(BaseEntity, TimestampMixin):
    """容量规则

    day_of_week 为空表示适用于所有日期；start_time 非空表示按时段（如美容）计容量。
    """
    id: Optional[int] = Field(None, description="规则ID")
    service_type_id: int = Field(..., description="服务类型ID")
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="星期（0=周日），空为所有日期")
    max_capacity: int = Field(..., ge=0, description="最大容量")
    start_time: Optional[str] = Field(None, description="时段开始 HH:MM")
    end_time: Optional[str] = Field(None, description="时段结束 HH:MM")

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v, info):
        if v is None:
            return v
        try:
            return validate_slot_time(v, info.field_name)
        except ValidationError as e:
            raise ValueError(e.message)

    @model_validator(mode="after")
    def validate_window(self):
        if self.end_time is not None and self.start_time is None:
            raise ValueError("end_time requires start_time")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_slot(self) -> bool:
        return self.start_time is not None


class CapacityOverride(BaseEntity, TimestampMixin):
    """按日期的容量例外；max_capacity 为空表示当天闭馆"""
    id: Optional[int] = Field(None, description="例外ID")
    date: dt.date = Field(..., description="日期")
    service_type_id: Optional[int] = Field(None, description="服务类型ID，空为全局")
    max_capacity: Optional[int] = Field(None, ge=0, description="当天容量，空为闭馆")
    reason: str = Field(..., min_length=1, description="原因，如 holiday")
    description: Optional[str] = Field(None, description="说明")

    @property
    def is_closure(self) -> bool:
        return self.max_capacity is None


class DayAvailability(BaseModel):
    """单日可用性结论"""
    date: dt.date
    available: bool
    spots_remaining: int
    total_capacity: int


class SlotAvailability(BaseModel):
    """单个时段的可用性"""
    start_time: str
    end_time: Optional[str] = None
    available: bool
    spots_remaining: int
    total_capacity: int
