"""
服务类型数据模型
"""

from pydantic import Field
from typing import Optional
from .base import BaseEntity, TimestampMixin


class ServiceType(BaseEntity, TimestampMixin):
    """可预订的服务（日托、寄宿、美容）"""
    id: int = Field(..., description="服务类型ID")
    name: str = Field(..., description="内部名称，如 daycare")
    display_name: str = Field(..., description="展示名称")
    description: Optional[str] = Field(None, description="描述")
    base_price_cents: int = Field(..., ge=0, description="基础价格（分）")
    duration_minutes: Optional[int] = Field(None, description="时长（分钟），空表示全天")
    is_active: bool = Field(True, description="是否开放预订")
    sort_order: int = Field(0, description="排序")

    @property
    def base_price_display(self) -> str:
        return f"${self.base_price_cents / 100:.2f}"

    @property
    def duration_display(self) -> str:
        return f"{self.duration_minutes} min" if self.duration_minutes else "Full day"
