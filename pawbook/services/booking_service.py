"""
预订生命周期服务
负责创建、确认、到店/离店、取消和未到店标记

主要功能：
- 单日预订与多日预订创建
- 动物归属校验、容量校验、重复预订检测
- 调用价格引擎计算总价
- 状态机校验（所有转换单向，终态不可再转换）
- 提交后发布领域事件（审计日志、客户通知由订阅者处理）

业务规则：
- 有效状态（pending/confirmed/checked_in）占用容量
- 同一动物不能在重叠日期拥有同一服务的两条有效预订
- 创建流程的全部校验与写入在同一个事务里完成，容量检查以提交时为准
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.settings import settings
from ..core import events
from ..core.database import DatabaseManager, db_manager
from ..core.events import DomainEvent, EventBus, event_bus_for
from ..core.exceptions import (
    AuthorizationError,
    CapacityError,
    DuplicateBookingError,
    InvalidStateError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from ..models.booking import ACTIVE_STATUSES, Booking, BookingAction, BookingStatus, TRANSITIONS
from ..utils.dates import inclusive_days, iter_dates, validate_slot_time
from .availability_service import AvailabilityService
from .catalog_service import CatalogService
from .pricing_service import PricingService

logger = logging.getLogger(__name__)

_ACTIVE_SQL = ", ".join(f"'{s}'" for s in sorted(ACTIVE_STATUSES))

_BOOKING_SELECT = """
    SELECT b.id, b.customer_id, b.service_type_id, st.name AS service_name, b.date, b.start_date,
           b.end_date, b.start_time, b.status, b.total_cents, b.notes, b.cancel_reason,
           b.checked_in_at, b.checked_in_by, b.checked_out_at, b.checked_out_by,
           b.created_at, b.updated_at
    FROM bookings b
    JOIN service_types st ON st.id = b.service_type_id
"""

_EVENT_BY_ACTION = {
    BookingAction.CONFIRM: events.BOOKING_CONFIRMED,
    BookingAction.CHECK_IN: events.BOOKING_CHECKED_IN,
    BookingAction.CHECK_OUT: events.BOOKING_CHECKED_OUT,
    BookingAction.CANCEL: events.BOOKING_CANCELLED,
    BookingAction.NO_SHOW: events.BOOKING_NO_SHOW,
}


def _placeholders(values: Sequence[Any]) -> str:
    return ", ".join("?" for _ in values)


class BookingService:
    """预订服务类，封装所有预订相关的业务逻辑"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 event_bus: Optional[EventBus] = None,
                 availability: Optional[AvailabilityService] = None,
                 max_booking_days: Optional[int] = None):
        self.db = db or db_manager
        self.event_bus = event_bus or event_bus_for(self.db)
        self.catalog = CatalogService(self.db)
        self.pricing = PricingService(self.db)
        self.availability = availability or AvailabilityService(self.db)
        self.max_booking_days = (settings.max_booking_days
                                 if max_booking_days is None else max_booking_days)

    # ------------------------------------------------------------------
    # 创建
    # ------------------------------------------------------------------
    def create_booking(self, customer_id: int, service_type_id: int, animal_ids: List[int],
                       on_date: date, start_time: Optional[str] = None,
                       notes: Optional[str] = None) -> Booking:
        """
        创建单日预订

        Args:
            customer_id: 客户ID（由认证服务提供）
            service_type_id: 服务类型ID
            animal_ids: 参与的动物ID列表
            on_date: 预订日期
            start_time: 时段 HH:MM（美容等按时段的服务）
            notes: 备注

        Returns:
            Booking: 状态为 pending 的新预订

        Raises:
            NotFoundError: 服务类型不存在
            InactiveServiceError: 服务已停用
            OwnershipError: 动物不属于该客户
            CapacityError: 当天（或时段）名额不足
            DuplicateBookingError: 动物已有重叠的有效预订
        """
        if start_time is not None:
            validate_slot_time(start_time)
        return self._create(customer_id, service_type_id, animal_ids, on_date, on_date,
                            multi_day=False, start_time=start_time, notes=notes)

    def create_multi_day_booking(self, customer_id: int, service_type_id: int,
                                 animal_ids: List[int], start_date: date, end_date: date,
                                 notes: Optional[str] = None) -> Booking:
        """
        创建多日预订（寄宿等）

        总价 = 按开始日期计算的单日价格 × 含首尾天数。

        Raises:
            ValidationError: 结束日期早于开始日期或超过最长天数
            以及 create_booking 的全部异常
        """
        if end_date < start_date:
            raise ValidationError("end_date must be on or after start_date", "end_date")
        if inclusive_days(start_date, end_date) > self.max_booking_days:
            raise ValidationError(
                f"Multi-day bookings cannot exceed {self.max_booking_days} days", "end_date")
        return self._create(customer_id, service_type_id, animal_ids, start_date, end_date,
                            multi_day=True, start_time=None, notes=notes)

    def _create(self, customer_id: int, service_type_id: int, animal_ids: List[int],
                start_date: date, end_date: date, multi_day: bool,
                start_time: Optional[str], notes: Optional[str]) -> Booking:
        animal_ids = self._normalize_animals(animal_ids)

        with self.db.transaction() as conn:
            service = self.catalog.require_bookable(service_type_id)
            self._check_ownership(customer_id, animal_ids)

            unavailable = self.availability.unavailable_dates(
                service_type_id, start_date, end_date, len(animal_ids))
            if unavailable:
                logger.info("Booking rejected for customer %s: no capacity for %s on %s",
                            customer_id, service.name, unavailable)
                raise CapacityError(unavailable)

            if start_time is not None:
                remaining = self.availability.slot_remaining(service_type_id, start_date, start_time)
                if remaining is not None and remaining < len(animal_ids):
                    raise CapacityError([start_date], start_time)

            self._check_duplicates(service_type_id, animal_ids, start_date, end_date)

            if multi_day:
                quote = self.pricing.quote_stay(service, len(animal_ids), start_date, end_date)
            else:
                quote = self.pricing.quote(service, len(animal_ids), start_date)

            booking_id = conn.execute(
                "INSERT INTO bookings(customer_id, service_type_id, date, start_date, end_date, start_time, "
                "status, total_cents, notes) VALUES (?,?,?,?,?,?,?,?,?) RETURNING id",
                [customer_id, service_type_id, start_date,
                 start_date if multi_day else None, end_date if multi_day else None,
                 start_time, BookingStatus.PENDING.value, quote.total_cents, notes],
            ).fetchone()[0]
            for animal_id in animal_ids:
                conn.execute("INSERT INTO booking_animals(booking_id, animal_id) VALUES (?, ?)",
                             [booking_id, animal_id])

        booking = self.get_booking(booking_id)
        logger.info("Created booking %s: customer=%s service=%s dates=%s animals=%s total=%s",
                    booking.id, customer_id, service.name, booking.date_label(), animal_ids,
                    booking.total_cents)
        self._publish(events.BOOKING_CREATED, booking, customer_id, "customer",
                      {"applied_rules": quote.applied_rules})
        return booking

    def _normalize_animals(self, animal_ids: List[int]) -> List[int]:
        if not animal_ids:
            raise ValidationError("At least one animal is required", "animal_ids")
        if len(set(animal_ids)) != len(animal_ids):
            raise ValidationError("Each animal can only be listed once", "animal_ids")
        return list(animal_ids)

    def _check_ownership(self, customer_id: int, animal_ids: List[int]):
        rows = self.db.execute_query(
            f"SELECT id FROM animals WHERE customer_id = ? AND id IN ({_placeholders(animal_ids)})",
            [customer_id, *animal_ids],
        )
        missing = set(animal_ids) - {row[0] for row in rows}
        if missing:
            raise OwnershipError(missing)

    def _check_duplicates(self, service_type_id: int, animal_ids: List[int],
                          start_date: date, end_date: date):
        """同一服务、日期重叠、共享至少一只动物的有效预订"""
        rows = self.db.execute_query(
            f"""
            SELECT b.id, ba.animal_id, COALESCE(b.start_date, b.date), COALESCE(b.end_date, b.date)
            FROM bookings b
            JOIN booking_animals ba ON ba.booking_id = b.id
            WHERE b.service_type_id = ?
              AND b.status IN ({_ACTIVE_SQL})
              AND COALESCE(b.start_date, b.date) <= ?
              AND COALESCE(b.end_date, b.date) >= ?
              AND ba.animal_id IN ({_placeholders(animal_ids)})
            """,
            [service_type_id, end_date, start_date, *animal_ids],
        )
        if not rows:
            return

        conflict_dates = set()
        for _, _, span_start, span_end in rows:
            conflict_dates.update(iter_dates(max(span_start, start_date), min(span_end, end_date)))
        logger.info("Duplicate booking rejected: animals %s already booked (bookings %s)",
                    sorted({r[1] for r in rows}), sorted({r[0] for r in rows}))
        raise DuplicateBookingError(
            animal_ids=[r[1] for r in rows],
            dates=conflict_dates,
            booking_ids=[r[0] for r in rows],
        )

    # ------------------------------------------------------------------
    # 状态转换
    # ------------------------------------------------------------------
    def confirm_booking(self, booking_id: int, staff_id: int) -> Booking:
        """确认预订，仅限 pending"""
        self._require_staff(staff_id)
        return self._transition(booking_id, BookingAction.CONFIRM, staff_id, "staff")

    def cancel_booking(self, booking_id: int, customer_id: int,
                       reason: Optional[str] = None) -> Booking:
        """
        客户取消自己的预订

        不属于该客户的预订按"不存在"处理，避免泄露预订是否存在。
        """
        return self._transition(booking_id, BookingAction.CANCEL, customer_id, "customer",
                                owner_id=customer_id, updates={"cancel_reason": reason},
                                payload={"reason": reason})

    def check_in(self, booking_id: int, staff_id: int) -> Booking:
        """到店，仅限 confirmed；记录操作人和时间"""
        self._require_staff(staff_id)
        return self._transition(booking_id, BookingAction.CHECK_IN, staff_id, "staff",
                                updates={"checked_in_at": datetime.now(), "checked_in_by": staff_id})

    def check_out(self, booking_id: int, staff_id: int, notes: Optional[str] = None) -> Booking:
        """离店，仅限 checked_in；记录操作人和时间"""
        self._require_staff(staff_id)
        updates: Dict[str, Any] = {"checked_out_at": datetime.now(), "checked_out_by": staff_id}
        if notes is not None:
            updates["notes"] = notes
        return self._transition(booking_id, BookingAction.CHECK_OUT, staff_id, "staff", updates=updates)

    def mark_no_show(self, booking_id: int, staff_id: int) -> Booking:
        """未到店，仅限 pending / confirmed"""
        self._require_staff(staff_id)
        return self._transition(booking_id, BookingAction.NO_SHOW, staff_id, "staff")

    def _transition(self, booking_id: int, action: BookingAction, actor_id: int, actor_role: str,
                    owner_id: Optional[int] = None, updates: Optional[Dict[str, Any]] = None,
                    payload: Optional[Dict[str, Any]] = None) -> Booking:
        allowed_from, target = TRANSITIONS[action]

        with self.db.transaction() as conn:
            row = conn.execute("SELECT customer_id, status FROM bookings WHERE id = ?",
                               [booking_id]).fetchone()
            if not row or (owner_id is not None and row[0] != owner_id):
                raise NotFoundError("Booking", booking_id)

            current = row[1]
            if current not in allowed_from:
                logger.info("Rejected %s on booking %s (status %s)", action.value, booking_id, current)
                raise InvalidStateError(booking_id, current, action.value, allowed_from)

            columns = {"status": target.value, **(updates or {})}
            assignments = ", ".join(f"{col} = ?" for col in columns)
            conn.execute(
                f"UPDATE bookings SET {assignments}, updated_at = now() WHERE id = ?",
                [*columns.values(), booking_id],
            )

        booking = self.get_booking(booking_id)
        logger.info("Booking %s: %s -> %s by %s %s", booking_id, current, target.value, actor_role, actor_id)
        self._publish(_EVENT_BY_ACTION[action], booking, actor_id, actor_role,
                      {"previous_status": current, **(payload or {})})
        return booking

    def _require_staff(self, staff_id: int):
        row = self.db.execute_one("SELECT is_active FROM staff WHERE id = ?", [staff_id])
        if not row or not row[0]:
            raise AuthorizationError()

    def _publish(self, name: str, booking: Booking, actor_id: Optional[int], actor_role: str,
                 extra: Optional[Dict[str, Any]] = None):
        payload = {
            "customer_id": booking.customer_id,
            "service": booking.service_name,
            "dates": booking.date_label(),
            "start_time": booking.start_time,
            "animal_ids": booking.animal_ids,
            "status": booking.status,
            "total_cents": booking.total_cents,
            **(extra or {}),
        }
        self.event_bus.publish(DomainEvent(name=name, booking_id=booking.id, actor_id=actor_id,
                                           actor_role=actor_role, payload=payload))

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------
    def get_booking(self, booking_id: int, customer_id: Optional[int] = None) -> Booking:
        """获取预订；指定 customer_id 时只返回该客户自己的预订"""
        bookings = self._load_bookings("WHERE b.id = ?", [booking_id])
        if not bookings or (customer_id is not None and bookings[0].customer_id != customer_id):
            raise NotFoundError("Booking", booking_id)
        return bookings[0]

    def list_customer_bookings(self, customer_id: int, status: Optional[str] = None,
                               upcoming_only: bool = False, limit: int = 20,
                               offset: int = 0) -> Tuple[List[Booking], int]:
        """客户的预订列表（按日期倒序）及总数"""
        conditions = ["b.customer_id = ?"]
        params: List[Any] = [customer_id]
        if status:
            if status not in {s.value for s in BookingStatus}:
                raise ValidationError(f"Unknown booking status '{status}'", "status")
            conditions.append("b.status = ?")
            params.append(status)
        if upcoming_only:
            conditions.append("COALESCE(b.end_date, b.date) >= ?")
            params.append(date.today())

        where = "WHERE " + " AND ".join(conditions)
        total = self.db.execute_one(f"SELECT COUNT(*) FROM bookings b {where}", params)[0]
        bookings = self._load_bookings(where, params, "ORDER BY b.date DESC, b.id DESC LIMIT ? OFFSET ?",
                                       [limit, offset])
        return bookings, int(total)

    def get_schedule(self, on_date: date, service_type_id: Optional[int] = None) -> List[Booking]:
        """员工日程：当天的所有预订，包括跨越当天的多日预订"""
        conditions = ["COALESCE(b.start_date, b.date) <= ?", "COALESCE(b.end_date, b.date) >= ?"]
        params: List[Any] = [on_date, on_date]
        if service_type_id is not None:
            conditions.append("b.service_type_id = ?")
            params.append(service_type_id)
        return self._load_bookings("WHERE " + " AND ".join(conditions), params,
                                   "ORDER BY b.start_time NULLS LAST, b.created_at, b.id")

    def get_facility_status(self, on_date: date) -> Dict[str, Any]:
        """员工看板：当天全馆动物数、上限占比及按服务分布"""
        return self.availability.facility_status(on_date)

    def _load_bookings(self, where: str, params: List[Any], tail: str = "",
                       tail_params: Optional[List[Any]] = None) -> List[Booking]:
        rows = self.db.fetch_dicts(f"{_BOOKING_SELECT} {where} {tail}", params + (tail_params or []))
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        animal_rows = self.db.execute_query(
            f"SELECT booking_id, animal_id FROM booking_animals WHERE booking_id IN ({_placeholders(ids)}) "
            "ORDER BY booking_id, animal_id",
            ids,
        )
        animals_by_booking: Dict[int, List[int]] = {}
        for booking_id, animal_id in animal_rows:
            animals_by_booking.setdefault(booking_id, []).append(animal_id)

        return [Booking(**row, animal_ids=animals_by_booking.get(row["id"], [])) for row in rows]
