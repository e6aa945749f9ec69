"""
领域事件
预订生命周期在事务提交后发布事件，审计日志和客户通知等外部模块订阅这些事件。
核心本身不发送任何消息。

每个数据库管理器对应一条进程内共享的总线（event_bus_for），
外部模块订阅 event_bus_for(db_manager) 即可收到线上应用的所有预订事件。
"""

import json
import logging
import threading
import weakref
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking.created"
BOOKING_CONFIRMED = "booking.confirmed"
BOOKING_CANCELLED = "booking.cancelled"
BOOKING_CHECKED_IN = "booking.checked_in"
BOOKING_CHECKED_OUT = "booking.checked_out"
BOOKING_NO_SHOW = "booking.no_show"

ALL_EVENTS = "*"


@dataclass
class DomainEvent:
    name: str
    booking_id: int
    actor_id: Optional[int]
    actor_role: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.now)


Subscriber = Callable[[DomainEvent], None]


class EventBus:
    """进程内发布/订阅

    订阅者的异常会被记录但不会影响已提交的预订。
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: Subscriber):
        with self._lock:
            self._subscribers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Subscriber):
        with self._lock:
            if handler in self._subscribers.get(event_name, []):
                self._subscribers[event_name].remove(handler)

    def publish(self, event: DomainEvent):
        with self._lock:
            handlers = list(self._subscribers.get(event.name, [])) + list(self._subscribers.get(ALL_EVENTS, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event subscriber failed for %s (booking %s)", event.name, event.booking_id)


class AuditLogWriter:
    """把领域事件写入 logs 表"""

    def __init__(self, db):
        self.db = db

    def __call__(self, event: DomainEvent):
        self.db.execute_query(
            "INSERT INTO logs(booking_id, actor_id, actor_role, action, detail_json) VALUES (?,?,?,?,?)",
            [event.booking_id, event.actor_id, event.actor_role, event.name,
             json.dumps(event.payload, default=str)],
        )


def create_event_bus(db) -> EventBus:
    """创建事件总线并挂上审计日志订阅者"""
    bus = EventBus()
    bus.subscribe(ALL_EVENTS, AuditLogWriter(db))
    return bus


_buses: "weakref.WeakKeyDictionary" = weakref.WeakKeyDictionary()
_buses_lock = threading.Lock()


def event_bus_for(db) -> EventBus:
    """返回该数据库共享的事件总线，首次调用时创建"""
    with _buses_lock:
        bus = _buses.get(db)
        if bus is None:
            bus = create_event_bus(db)
            _buses[db] = bus
        return bus
