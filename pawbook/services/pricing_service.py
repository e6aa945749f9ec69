"""
价格规则引擎

计算流程：
1. total = 基础价格 × 动物数量
2. 读取该服务所有启用的规则，按 priority 从高到低（同优先级按 id）依次执行
3. 跳过：星期不符、动物数量不足、会员计划规则（由计费模块处理）
4. 折扣/附加费依次作用于当前 total
5. 最终结果不小于 0

多日预订：按开始日期算出单日价格后乘以天数，星期类规则不按天重新评估
（按开始日期定价）。
"""

import logging
from datetime import date
from typing import List, Optional

import pydantic

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import NotFoundError, ValidationError
from ..models.pricing import PriceQuote, PricingRule
from ..models.service_type import ServiceType
from ..utils.dates import day_of_week, inclusive_days

logger = logging.getLogger(__name__)

_COLUMNS = ("id, service_type_id, name, type, value_cents, percentage, min_animals, membership_plan_id, "
            "day_of_week, is_active, priority, created_at, updated_at")


class PricingService:
    """价格规则引擎"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def active_rules(self, service_type_id: int) -> List[PricingRule]:
        """每次计算都重新读取，不缓存"""
        rows = self.db.fetch_dicts(
            f"SELECT {_COLUMNS} FROM pricing_rules WHERE service_type_id = ? AND is_active "
            "ORDER BY priority DESC, id",
            [service_type_id],
        )
        return [PricingRule.from_row(row) for row in rows]

    def quote(self, service_type: ServiceType, animal_count: int, on_date: date) -> PriceQuote:
        """单日报价"""
        if animal_count < 1:
            raise ValidationError("At least one animal is required", "animal_ids")

        total = service_type.base_price_cents * animal_count
        applied = []
        dow = day_of_week(on_date)

        for rule in self.active_rules(service_type.id):
            if rule.day_of_week is not None and rule.day_of_week != dow:
                continue
            if rule.min_animals is not None and animal_count < rule.min_animals:
                continue
            if rule.membership_plan_id is not None:
                continue
            total = rule.adjustment.apply(total)
            applied.append(rule.name)

        total = max(0, total)
        return PriceQuote(per_day_cents=total, days=1, total_cents=total,
                          applied_rules=applied, priced_on=on_date.isoformat())

    def calculate_price(self, service_type: ServiceType, animal_count: int, on_date: date) -> int:
        return self.quote(service_type, animal_count, on_date).total_cents

    def quote_stay(self, service_type: ServiceType, animal_count: int,
                   start_date: date, end_date: date) -> PriceQuote:
        """多日报价：单日价格按开始日期计算一次，再乘以含首尾的天数"""
        days = inclusive_days(start_date, end_date)
        per_day = self.quote(service_type, animal_count, start_date)
        return PriceQuote(
            per_day_cents=per_day.per_day_cents,
            days=days,
            total_cents=per_day.per_day_cents * days,
            applied_rules=per_day.applied_rules,
            priced_on=start_date.isoformat(),
        )

    # ------------------------------------------------------------------
    # 规则维护
    # ------------------------------------------------------------------
    def create_rule(self, service_type_id: int, name: str, adjustment: dict,
                    day_of_week: Optional[int] = None, min_animals: Optional[int] = None,
                    membership_plan_id: Optional[int] = None, priority: int = 0,
                    is_active: bool = True) -> PricingRule:
        try:
            rule = PricingRule(service_type_id=service_type_id, name=name, adjustment=adjustment,
                               day_of_week=day_of_week, min_animals=min_animals,
                               membership_plan_id=membership_plan_id, priority=priority,
                               is_active=is_active)
        except pydantic.ValidationError as e:
            err = e.errors()[0]
            raise ValidationError(err.get("msg", "Invalid pricing rule"),
                                  ".".join(str(p) for p in err.get("loc", ())) or None)

        cols = rule.to_columns()
        with self.db.transaction() as conn:
            if not conn.execute("SELECT 1 FROM service_types WHERE id = ?", [service_type_id]).fetchone():
                raise NotFoundError("Service type", service_type_id)
            rule_id = conn.execute(
                "INSERT INTO pricing_rules(service_type_id, name, type, value_cents, percentage, min_animals, "
                "membership_plan_id, day_of_week, is_active, priority) VALUES (?,?,?,?,?,?,?,?,?,?) RETURNING id",
                [service_type_id, name, cols["type"], cols["value_cents"], cols["percentage"], min_animals,
                 membership_plan_id, day_of_week, is_active, priority],
            ).fetchone()[0]
        logger.info("Created pricing rule %s '%s' for service %s", rule_id, name, service_type_id)
        return self.get_rule(rule_id)

    def get_rule(self, rule_id: int) -> PricingRule:
        row = self.db.fetch_dict(f"SELECT {_COLUMNS} FROM pricing_rules WHERE id = ?", [rule_id])
        if not row:
            raise NotFoundError("Pricing rule", rule_id)
        return PricingRule.from_row(row)

    def update_rule(self, rule_id: int, is_active: Optional[bool] = None,
                    priority: Optional[int] = None) -> PricingRule:
        """启停或调整优先级"""
        if is_active is None and priority is None:
            raise ValidationError("Nothing to update")
        with self.db.transaction() as conn:
            self.get_rule(rule_id)
            if is_active is not None:
                conn.execute("UPDATE pricing_rules SET is_active = ?, updated_at = now() WHERE id = ?",
                             [is_active, rule_id])
            if priority is not None:
                conn.execute("UPDATE pricing_rules SET priority = ?, updated_at = now() WHERE id = ?",
                             [priority, rule_id])
        return self.get_rule(rule_id)
