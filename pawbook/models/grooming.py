"""
美容价格矩阵数据模型
价格由动物体型和毛发状况评分（1-5，越大越难打理）共同决定
"""

from pydantic import Field
from enum import Enum
from typing import Optional
from .base import BaseEntity, TimestampMixin


class SizeCategory(str, Enum):
    """动物体型"""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XL = "xl"


SIZE_ORDER = [s.value for s in SizeCategory]

MIN_CONDITION_RATING = 1
MAX_CONDITION_RATING = 5


class GroomingPriceTier(BaseEntity, TimestampMixin):
    """价格矩阵中的一格"""
    id: int = Field(..., description="价格档ID")
    size_category: SizeCategory = Field(..., description="体型")
    condition_rating: int = Field(..., ge=MIN_CONDITION_RATING, le=MAX_CONDITION_RATING,
                                  description="毛发状况评分")
    label: str = Field(..., description="展示名称")
    estimated_minutes: int = Field(..., ge=0, description="预计耗时（分钟）")
    price_cents: int = Field(..., ge=0, description="价格（分）")
    is_active: bool = Field(True, description="是否启用")


class ConditionRatingResult(BaseEntity):
    """毛发状况评分结果"""
    booking_id: int
    animal_id: int
    condition_rating: int
    quoted_price_cents: int
    tier: GroomingPriceTier
    all_rated: bool = Field(..., description="该预订的所有动物是否都已评分")
    booking_total_cents: Optional[int] = Field(None, description="全部评分后的预订总价")
