"""
员工管理接口的请求模式
"""

from pydantic import BaseModel, Field
import datetime as dt
from typing import Any, Dict, Optional


class CapacityRuleRequest(BaseModel):
    """容量规则（同一 服务/星期/时段 重复提交即更新）"""
    service_type_id: int = Field(..., description="服务类型ID")
    max_capacity: int = Field(..., ge=0, description="最大容量")
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="星期（0=周日），空为所有日期")
    start_time: Optional[str] = Field(None, description="时段开始 HH:MM")
    end_time: Optional[str] = Field(None, description="时段结束 HH:MM")


class CapacityOverrideRequest(BaseModel):
    """容量例外；max_capacity 为空表示闭馆"""
    date: dt.date = Field(..., description="日期")
    service_type_id: Optional[int] = Field(None, description="服务类型ID，空为全局")
    max_capacity: Optional[int] = Field(None, ge=0, description="当天容量")
    reason: str = Field(..., min_length=1, description="原因")
    description: Optional[str] = Field(None, description="说明")


class PricingRuleCreateRequest(BaseModel):
    """价格规则创建请求

    adjustment 示例：{"kind": "percentage_discount", "percentage": 10}
    """
    service_type_id: int = Field(..., description="服务类型ID")
    name: str = Field(..., min_length=1, description="规则名称")
    adjustment: Dict[str, Any] = Field(..., description="价格调整")
    day_of_week: Optional[int] = Field(None, description="仅在该星期生效")
    min_animals: Optional[int] = Field(None, description="动物数量下限")
    membership_plan_id: Optional[int] = Field(None, description="会员计划")
    priority: int = Field(0, description="优先级，越大越先执行")
    is_active: bool = Field(True, description="是否启用")


class PricingRuleUpdateRequest(BaseModel):
    """价格规则更新请求"""
    is_active: Optional[bool] = Field(None, description="是否启用")
    priority: Optional[int] = Field(None, description="优先级")


class ServiceTypeUpdateRequest(BaseModel):
    """服务类型更新请求（只允许修改价格和启停状态）"""
    base_price_cents: Optional[int] = Field(None, ge=0, description="基础价格（分）")
    is_active: Optional[bool] = Field(None, description="是否开放预订")


class GroomingTierRequest(BaseModel):
    """美容价格矩阵中的一格（同一 体型/评分 重复提交即更新）"""
    size_category: str = Field(..., description="体型 small/medium/large/xl")
    condition_rating: int = Field(..., ge=1, le=5, description="毛发状况评分")
    price_cents: int = Field(..., ge=0, description="价格（分）")
    estimated_minutes: int = Field(..., ge=0, description="预计耗时（分钟）")
    label: Optional[str] = Field(None, description="展示名称")
    is_active: bool = Field(True, description="是否启用")


class GroomingTierUpdateRequest(BaseModel):
    """修改价格档"""
    price_cents: Optional[int] = Field(None, ge=0, description="价格（分）")
    estimated_minutes: Optional[int] = Field(None, ge=0, description="预计耗时（分钟）")
    is_active: Optional[bool] = Field(None, description="是否启用")


class ConditionRatingRequest(BaseModel):
    """美容师评分"""
    condition_rating: int = Field(..., ge=1, le=5, description="毛发状况评分 1-5")
