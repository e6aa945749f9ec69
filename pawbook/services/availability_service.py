"""
可用性解析服务
合并容量规则、容量例外、台账占用和全馆每日上限，逐日给出可预订结论

单日计算规则：
1. 先找服务专属例外，没有再找全局例外
2. 例外容量为空 → 闭馆：available=False, spots=0, capacity=0
3. 容量优先级：例外 > 星期规则 > 默认规则 > 0（未配置视为不开放）
4. booked = 覆盖当天的有效预订的动物数（多日预订在其跨越的每一天都计入）
5. 全馆剩余 = 全馆上限 - 当天所有服务的动物数；实际剩余取两者较小值
6. available = 实际剩余 > 0
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Tuple

from ..config.settings import settings
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import ValidationError
from ..models.booking import ACTIVE_STATUSES, ON_SITE_STATUSES
from ..models.capacity import DayAvailability, SlotAvailability
from ..utils.dates import day_of_week, inclusive_days, iter_dates, validate_slot_time
from .capacity_service import CapacityStore
from .catalog_service import CatalogService

logger = logging.getLogger(__name__)

_ACTIVE_SQL = ", ".join(f"'{s}'" for s in sorted(ACTIVE_STATUSES))
_ON_SITE_SQL = ", ".join(f"'{s}'" for s in sorted(ON_SITE_STATUSES))


class AvailabilityService:
    """可用性解析"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 facility_daily_max: Optional[int] = None,
                 max_window_days: Optional[int] = None):
        self.db = db or db_manager
        self.catalog = CatalogService(self.db)
        self.capacity = CapacityStore(self.db)
        self.facility_daily_max = (settings.facility_daily_max
                                   if facility_daily_max is None else facility_daily_max)
        self.max_window_days = (settings.max_booking_days
                                if max_window_days is None else max_window_days)

    def check_availability(self, service_type_id: int, start_date: date,
                           end_date: date) -> List[DayAvailability]:
        """
        逐日可用性

        Args:
            service_type_id: 服务类型ID
            start_date: 开始日期（含）
            end_date: 结束日期（含）

        Returns:
            区间内每天一条 DayAvailability

        Raises:
            ValidationError: 区间颠倒或超过最长天数
            NotFoundError: 服务类型不存在
        """
        self._validate_window(start_date, end_date)
        self.catalog.get_service_type(service_type_id)
        return self._resolve(service_type_id, start_date, end_date)

    def unavailable_dates(self, service_type_id: int, start_date: date, end_date: date,
                          animal_count: int) -> List[date]:
        """剩余名额不足以容纳 animal_count 只动物的日期"""
        return [
            day.date
            for day in self._resolve(service_type_id, start_date, end_date)
            if not day.available or day.spots_remaining < animal_count
        ]

    def get_slot_availability(self, service_type_id: int, on_date: date) -> List[SlotAvailability]:
        """
        按时段的可用性（美容等按时段排班的服务）

        同一开始时间下，星期规则优先于默认规则；当天闭馆则所有时段不可用。
        """
        self.catalog.get_service_type(service_type_id)
        override = self.capacity.overrides_for(service_type_id, on_date, on_date).get(on_date)
        closed = override is not None and override.is_closure

        dow = day_of_week(on_date)
        by_start: Dict[str, Tuple[int, object]] = {}
        for rule in self.capacity.slot_rules(service_type_id):
            if rule.day_of_week not in (None, dow):
                continue
            rank = 1 if rule.day_of_week == dow else 0
            if rule.start_time not in by_start or rank > by_start[rule.start_time][0]:
                by_start[rule.start_time] = (rank, rule)

        booked = self._slot_counts(service_type_id, on_date)
        slots = []
        for start_time in sorted(by_start):
            rule = by_start[start_time][1]
            capacity = 0 if closed else rule.max_capacity
            remaining = max(0, capacity - booked.get(start_time, 0))
            slots.append(SlotAvailability(
                start_time=start_time,
                end_time=rule.end_time,
                available=remaining > 0,
                spots_remaining=remaining,
                total_capacity=capacity,
            ))
        return slots

    def slot_remaining(self, service_type_id: int, on_date: date, start_time: str) -> Optional[int]:
        """指定时段的剩余名额；该服务没有时段规则时返回 None"""
        validate_slot_time(start_time)
        slots = self.get_slot_availability(service_type_id, on_date)
        if not slots:
            return None
        for slot in slots:
            if slot.start_time == start_time:
                return slot.spots_remaining
        return 0

    def facility_status(self, on_date: date) -> dict:
        """当天全馆动物数及按服务的分布

        只统计已确认和已到店的预订；待确认的预订虽然占用名额，但不计入看板。
        """
        rows = self.db.fetch_dicts(
            f"""
            SELECT st.name AS service_name, COUNT(ba.animal_id) AS animals
            FROM bookings b
            JOIN booking_animals ba ON ba.booking_id = b.id
            JOIN service_types st ON st.id = b.service_type_id
            WHERE b.status IN ({_ON_SITE_SQL})
              AND COALESCE(b.start_date, b.date) <= ?
              AND COALESCE(b.end_date, b.date) >= ?
            GROUP BY st.name
            """,
            [on_date, on_date],
        )
        by_service = {row["service_name"]: int(row["animals"]) for row in rows}
        total = sum(by_service.values())
        max_capacity = self.facility_daily_max
        return {
            "date": on_date.isoformat(),
            "total_animals": total,
            "max_capacity": max_capacity,
            "capacity_percent": round(total * 100 / max_capacity) if max_capacity else 100,
            "by_service": by_service,
        }

    def _validate_window(self, start_date: date, end_date: date):
        if end_date < start_date:
            raise ValidationError("end_date must be on or after start_date", "end_date")
        if inclusive_days(start_date, end_date) > self.max_window_days:
            raise ValidationError(
                f"Date range cannot exceed {self.max_window_days} days", "end_date")

    def _resolve(self, service_type_id: int, start_date: date, end_date: date) -> List[DayAvailability]:
        rules = self.capacity.day_rules(service_type_id)
        overrides = self.capacity.overrides_for(service_type_id, start_date, end_date)
        service_booked, facility_booked = self._daily_counts(service_type_id, start_date, end_date)

        results = []
        for current in iter_dates(start_date, end_date):
            override = overrides.get(current)
            if override is not None and override.is_closure:
                results.append(DayAvailability(date=current, available=False,
                                               spots_remaining=0, total_capacity=0))
                continue

            if override is not None:
                total_capacity = override.max_capacity
            else:
                rule = rules.get(day_of_week(current)) or rules.get(None)
                total_capacity = rule.max_capacity if rule else 0

            spots = max(0, total_capacity - service_booked.get(current, 0))
            facility_left = max(0, self.facility_daily_max - facility_booked.get(current, 0))
            effective = min(spots, facility_left)

            results.append(DayAvailability(
                date=current,
                available=effective > 0,
                spots_remaining=effective,
                total_capacity=total_capacity,
            ))
        return results

    def _daily_counts(self, service_type_id: int, start_date: date, end_date: date
                      ) -> Tuple[Dict[date, int], Dict[date, int]]:
        """
        按天统计动物数：(本服务, 全馆)

        多日预订展开到它跨越的每一天，只计入落在查询区间内的天。
        """
        rows = self.db.execute_query(
            f"""
            SELECT b.service_type_id,
                   COALESCE(b.start_date, b.date) AS span_start,
                   COALESCE(b.end_date, b.date) AS span_end,
                   COUNT(ba.animal_id) AS animals
            FROM bookings b
            JOIN booking_animals ba ON ba.booking_id = b.id
            WHERE b.status IN ({_ACTIVE_SQL})
              AND COALESCE(b.start_date, b.date) <= ?
              AND COALESCE(b.end_date, b.date) >= ?
            GROUP BY b.id, b.service_type_id, span_start, span_end
            """,
            [end_date, start_date],
        )

        service_booked: Dict[date, int] = defaultdict(int)
        facility_booked: Dict[date, int] = defaultdict(int)
        for st_id, span_start, span_end, animals in rows:
            for d in iter_dates(max(span_start, start_date), min(span_end, end_date)):
                facility_booked[d] += animals
                if st_id == service_type_id:
                    service_booked[d] += animals
        return service_booked, facility_booked

    def _slot_counts(self, service_type_id: int, on_date: date) -> Dict[str, int]:
        rows = self.db.execute_query(
            f"""
            SELECT b.start_time, COUNT(ba.animal_id)
            FROM bookings b
            JOIN booking_animals ba ON ba.booking_id = b.id
            WHERE b.service_type_id = ?
              AND b.date = ?
              AND b.start_time IS NOT NULL
              AND b.status IN ({_ACTIVE_SQL})
            GROUP BY b.start_time
            """,
            [service_type_id, on_date],
        )
        return {start_time: int(count) for start_time, count in rows}
