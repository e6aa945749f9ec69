"""
价格规则数据模型

规则类型是一个封闭的标签联合（按 kind 区分），每种调整只携带自己需要的字段：
- PercentageDiscount: percentage
- FixedDiscount: value_cents
- Surcharge: value_cents
"""

from decimal import Decimal, ROUND_FLOOR
from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union
from .base import BaseEntity, TimestampMixin


class PercentageDiscount(BaseModel):
    """按百分比折扣"""
    kind: Literal["percentage_discount"] = "percentage_discount"
    percentage: Decimal = Field(..., gt=0, le=100, description="折扣百分比")

    def apply(self, total_cents: int) -> int:
        # 四舍五入（.5 向上），与前端 Math.round 一致
        discount = (Decimal(total_cents) * self.percentage / 100 + Decimal("0.5")).to_integral_value(
            rounding=ROUND_FLOOR)
        return total_cents - int(discount)


class FixedDiscount(BaseModel):
    """固定金额折扣"""
    kind: Literal["fixed_discount"] = "fixed_discount"
    value_cents: int = Field(..., gt=0, description="折扣金额（分）")

    def apply(self, total_cents: int) -> int:
        return total_cents - self.value_cents


class Surcharge(BaseModel):
    """固定金额附加费"""
    kind: Literal["surcharge"] = "surcharge"
    value_cents: int = Field(..., gt=0, description="附加金额（分）")

    def apply(self, total_cents: int) -> int:
        return total_cents + self.value_cents


PriceAdjustment = Annotated[
    Union[PercentageDiscount, FixedDiscount, Surcharge],
    Field(discriminator="kind"),
]


class PricingRule(BaseEntity, TimestampMixin):
    """价格规则，priority 越大越先执行"""
    id: Optional[int] = Field(None, description="规则ID")
    service_type_id: int = Field(..., description="服务类型ID")
    name: str = Field(..., min_length=1, description="规则名称")
    adjustment: PriceAdjustment = Field(..., description="价格调整")
    day_of_week: Optional[int] = Field(None, ge=0, le=6, description="仅在该星期生效")
    min_animals: Optional[int] = Field(None, ge=1, description="动物数量下限")
    membership_plan_id: Optional[int] = Field(None, description="会员计划（由计费模块处理）")
    is_active: bool = Field(True, description="是否启用")
    priority: int = Field(0, description="优先级")

    @classmethod
    def from_row(cls, row: dict) -> "PricingRule":
        """由数据库行构造，type/value_cents/percentage 三列折叠为 adjustment"""
        kind = row["type"]
        if kind == "percentage_discount":
            adjustment = {"kind": kind, "percentage": row["percentage"]}
        else:
            adjustment = {"kind": kind, "value_cents": row["value_cents"]}
        return cls(
            id=row["id"],
            service_type_id=row["service_type_id"],
            name=row["name"],
            adjustment=adjustment,
            day_of_week=row.get("day_of_week"),
            min_animals=row.get("min_animals"),
            membership_plan_id=row.get("membership_plan_id"),
            is_active=row["is_active"],
            priority=row["priority"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_columns(self) -> dict:
        """展开为数据库列"""
        adj = self.adjustment
        return {
            "type": adj.kind,
            "percentage": adj.percentage if isinstance(adj, PercentageDiscount) else None,
            "value_cents": None if isinstance(adj, PercentageDiscount) else adj.value_cents,
        }


class PriceQuote(BaseModel):
    """报价结果"""
    per_day_cents: int
    days: int = 1
    total_cents: int
    applied_rules: List[str] = Field(default_factory=list)
    priced_on: Optional[str] = None
