"""
容量规则与容量例外存储

规则键：(service_type_id, day_of_week, start_time)，同一个键只保留一条规则，
重复保存即更新。例外键：(date, service_type_id)，global 例外的 service_type_id 为空。
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

import pydantic

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import NotFoundError, ValidationError
from ..models.capacity import CapacityOverride, CapacityRule

logger = logging.getLogger(__name__)

_RULE_COLUMNS = "id, service_type_id, day_of_week, max_capacity, start_time, end_time, created_at, updated_at"
_OVERRIDE_COLUMNS = "id, date, service_type_id, max_capacity, reason, description, created_at"


def _first_error(exc: pydantic.ValidationError) -> ValidationError:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or None
    return ValidationError(err.get("msg", "Invalid value"), field)


class CapacityStore:
    """容量规则 / 容量例外"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    # ------------------------------------------------------------------
    # 容量规则
    # ------------------------------------------------------------------
    def save_rule(self, service_type_id: int, max_capacity: int,
                  day_of_week: Optional[int] = None,
                  start_time: Optional[str] = None,
                  end_time: Optional[str] = None) -> CapacityRule:
        """新增或更新容量规则"""
        try:
            rule = CapacityRule(service_type_id=service_type_id, max_capacity=max_capacity,
                                day_of_week=day_of_week, start_time=start_time, end_time=end_time)
        except pydantic.ValidationError as e:
            raise _first_error(e)

        with self.db.transaction() as conn:
            if not conn.execute("SELECT 1 FROM service_types WHERE id = ?", [service_type_id]).fetchone():
                raise NotFoundError("Service type", service_type_id)

            existing = conn.execute(
                "SELECT id FROM capacity_rules WHERE service_type_id = ? "
                "AND day_of_week IS NOT DISTINCT FROM ? AND start_time IS NOT DISTINCT FROM ?",
                [service_type_id, day_of_week, start_time],
            ).fetchone()

            if existing:
                rule_id = existing[0]
                conn.execute(
                    "UPDATE capacity_rules SET max_capacity = ?, end_time = ?, updated_at = now() WHERE id = ?",
                    [rule.max_capacity, rule.end_time, rule_id],
                )
            else:
                rule_id = conn.execute(
                    "INSERT INTO capacity_rules(service_type_id, day_of_week, max_capacity, start_time, end_time) "
                    "VALUES (?,?,?,?,?) RETURNING id",
                    [service_type_id, day_of_week, rule.max_capacity, rule.start_time, rule.end_time],
                ).fetchone()[0]

        logger.info("Saved capacity rule %s: service=%s dow=%s slot=%s max=%s",
                    rule_id, service_type_id, day_of_week, start_time, max_capacity)
        return self.get_rule(rule_id)

    def get_rule(self, rule_id: int) -> CapacityRule:
        row = self.db.fetch_dict(f"SELECT {_RULE_COLUMNS} FROM capacity_rules WHERE id = ?", [rule_id])
        if not row:
            raise NotFoundError("Capacity rule", rule_id)
        return CapacityRule(**row)

    def list_rules(self, service_type_id: Optional[int] = None) -> List[CapacityRule]:
        query = f"SELECT {_RULE_COLUMNS} FROM capacity_rules"
        params = []
        if service_type_id is not None:
            query += " WHERE service_type_id = ?"
            params.append(service_type_id)
        query += " ORDER BY service_type_id, day_of_week NULLS FIRST, start_time NULLS FIRST"
        return [CapacityRule(**row) for row in self.db.fetch_dicts(query, params)]

    def day_rules(self, service_type_id: int) -> Dict[Optional[int], CapacityRule]:
        """全天规则，按星期索引（None 为默认规则）"""
        return {r.day_of_week: r for r in self.list_rules(service_type_id) if not r.is_slot}

    def slot_rules(self, service_type_id: int) -> List[CapacityRule]:
        return [r for r in self.list_rules(service_type_id) if r.is_slot]

    # ------------------------------------------------------------------
    # 容量例外
    # ------------------------------------------------------------------
    def set_override(self, on_date: date, reason: str,
                     max_capacity: Optional[int] = None,
                     service_type_id: Optional[int] = None,
                     description: Optional[str] = None) -> CapacityOverride:
        """设置某天的容量例外；max_capacity 为空表示闭馆。已存在则替换"""
        try:
            override = CapacityOverride(date=on_date, service_type_id=service_type_id,
                                        max_capacity=max_capacity, reason=reason,
                                        description=description)
        except pydantic.ValidationError as e:
            raise _first_error(e)

        with self.db.transaction() as conn:
            if service_type_id is not None and not conn.execute(
                    "SELECT 1 FROM service_types WHERE id = ?", [service_type_id]).fetchone():
                raise NotFoundError("Service type", service_type_id)

            conn.execute(
                "DELETE FROM capacity_overrides WHERE date = ? AND service_type_id IS NOT DISTINCT FROM ?",
                [on_date, service_type_id],
            )
            override_id = conn.execute(
                "INSERT INTO capacity_overrides(date, service_type_id, max_capacity, reason, description) "
                "VALUES (?,?,?,?,?) RETURNING id",
                [on_date, service_type_id, override.max_capacity, override.reason, override.description],
            ).fetchone()[0]

        logger.info("Set capacity override on %s (service=%s): %s",
                    on_date, service_type_id, "closed" if max_capacity is None else max_capacity)
        row = self.db.fetch_dict(f"SELECT {_OVERRIDE_COLUMNS} FROM capacity_overrides WHERE id = ?", [override_id])
        return CapacityOverride(**row)

    def remove_override(self, on_date: date, service_type_id: Optional[int] = None):
        with self.db.transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM capacity_overrides WHERE date = ? AND service_type_id IS NOT DISTINCT FROM ? "
                "RETURNING id",
                [on_date, service_type_id],
            ).fetchall()
            if not deleted:
                raise NotFoundError("Capacity override", on_date.isoformat())
        logger.info("Removed capacity override on %s (service=%s)", on_date, service_type_id)

    def list_overrides(self, start: date, end: date) -> List[CapacityOverride]:
        rows = self.db.fetch_dicts(
            f"SELECT {_OVERRIDE_COLUMNS} FROM capacity_overrides WHERE date BETWEEN ? AND ? "
            "ORDER BY date, service_type_id NULLS FIRST",
            [start, end],
        )
        return [CapacityOverride(**row) for row in rows]

    def overrides_for(self, service_type_id: int, start: date, end: date
                      ) -> Dict[date, CapacityOverride]:
        """区间内每天生效的例外：服务专属例外优先于全局例外"""
        chosen: Dict[date, Tuple[int, CapacityOverride]] = {}
        for o in self.list_overrides(start, end):
            if o.service_type_id not in (None, service_type_id):
                continue
            rank = 1 if o.service_type_id == service_type_id else 0
            if o.date not in chosen or rank > chosen[o.date][0]:
                chosen[o.date] = (rank, o)
        return {d: o for d, (_, o) in chosen.items()}
