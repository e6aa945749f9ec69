"""
服务类型目录
维护服务类型及基础价格；一旦被预订引用，员工只能修改价格和启停状态
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import InactiveServiceError, NotFoundError, ValidationError
from ..models.service_type import ServiceType

logger = logging.getLogger(__name__)

_COLUMNS = ("id, name, display_name, description, base_price_cents, duration_minutes, "
            "is_active, sort_order, created_at, updated_at")


class CatalogService:
    """服务类型目录"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def create_service_type(self, name: str, display_name: str, base_price_cents: int,
                            description: Optional[str] = None,
                            duration_minutes: Optional[int] = None,
                            is_active: bool = True, sort_order: int = 0) -> ServiceType:
        """新增服务类型"""
        if base_price_cents < 0:
            raise ValidationError("base_price_cents must not be negative", "base_price_cents")
        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM service_types WHERE lower(name) = lower(?)", [name]).fetchone():
                raise ValidationError(f"Service type '{name}' already exists", "name")
            row = conn.execute(
                "INSERT INTO service_types(name, display_name, description, base_price_cents, "
                "duration_minutes, is_active, sort_order) VALUES (?,?,?,?,?,?,?) RETURNING id",
                [name, display_name, description, base_price_cents, duration_minutes, is_active, sort_order],
            ).fetchone()
        logger.info("Created service type %s (%s)", name, row[0])
        return self.get_service_type(row[0])

    def get_service_type(self, service_type_id: int) -> ServiceType:
        row = self.db.fetch_dict(f"SELECT {_COLUMNS} FROM service_types WHERE id = ?", [service_type_id])
        if not row:
            raise NotFoundError("Service type", service_type_id)
        return ServiceType(**row)

    def find_by_name(self, name: str) -> Optional[ServiceType]:
        """按名称查找（不区分大小写）"""
        row = self.db.fetch_dict(
            f"SELECT {_COLUMNS} FROM service_types WHERE lower(name) = lower(?)", [name.strip()])
        return ServiceType(**row) if row else None

    def require_bookable(self, service_type_id: int) -> ServiceType:
        """确认服务存在且处于开放状态"""
        service = self.get_service_type(service_type_id)
        if not service.is_active:
            raise InactiveServiceError(service.name)
        return service

    def list_service_types(self, active_only: bool = True) -> List[ServiceType]:
        query = f"SELECT {_COLUMNS} FROM service_types"
        if active_only:
            query += " WHERE is_active"
        query += " ORDER BY sort_order, id"
        return [ServiceType(**row) for row in self.db.fetch_dicts(query)]

    def update_service_type(self, service_type_id: int, base_price_cents: Optional[int] = None,
                            is_active: Optional[bool] = None) -> ServiceType:
        """员工修改价格或启停状态"""
        if base_price_cents is None and is_active is None:
            raise ValidationError("Nothing to update")
        if base_price_cents is not None and base_price_cents < 0:
            raise ValidationError("base_price_cents must not be negative", "base_price_cents")

        with self.db.transaction() as conn:
            self.get_service_type(service_type_id)
            if base_price_cents is not None:
                conn.execute(
                    "UPDATE service_types SET base_price_cents = ?, updated_at = now() WHERE id = ?",
                    [base_price_cents, service_type_id])
            if is_active is not None:
                conn.execute(
                    "UPDATE service_types SET is_active = ?, updated_at = now() WHERE id = ?",
                    [is_active, service_type_id])
        logger.info("Updated service type %s (price=%s, active=%s)",
                    service_type_id, base_price_cents, is_active)
        return self.get_service_type(service_type_id)

    def services_and_pricing(self) -> List[Dict[str, Any]]:
        """开放中的服务及基础价格、时长"""
        return [
            {
                "id": s.id,
                "name": s.name,
                "display_name": s.display_name,
                "description": s.description,
                "base_price_cents": s.base_price_cents,
                "base_price": s.base_price_display,
                "duration_minutes": s.duration_minutes,
                "duration": s.duration_display,
            }
            for s in self.list_service_types(active_only=True)
        ]
