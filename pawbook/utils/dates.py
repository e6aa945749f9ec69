"""
日期工具
星期编号沿用前端约定：0=周日 ... 6=周六
"""

import re
from datetime import date, timedelta
from typing import Iterator

from ..core.exceptions import ValidationError

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def day_of_week(d: date) -> int:
    """Python 的 weekday() 以周一为 0，这里转换为周日为 0"""
    return (d.weekday() + 1) % 7


def iter_dates(start: date, end: date) -> Iterator[date]:
    """按天迭代闭区间 [start, end]"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def parse_iso_date(value: str, field: str = "date") -> date:
    """解析 YYYY-MM-DD，失败时抛出 ValidationError"""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be in YYYY-MM-DD format", field)


def validate_slot_time(value: str, field: str = "start_time") -> str:
    """校验 HH:MM 时段格式"""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError(f"{field} must be in HH:MM format", field)
    return value
