"""
路由共用的依赖
所有服务都绑定到 get_db 返回的数据库管理器，测试时覆盖 get_db 即可换成内存库
预订服务发布到该数据库共享的事件总线，通知等模块在同一条总线上订阅
"""

from fastapi import Depends

from ..core.database import DatabaseManager, get_db
from ..core.events import EventBus, event_bus_for
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.capacity_service import CapacityStore
from ..services.catalog_service import CatalogService
from ..services.grooming_service import GroomingPricingService
from ..services.pricing_service import PricingService


def get_availability_service(db: DatabaseManager = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_event_bus(db: DatabaseManager = Depends(get_db)) -> EventBus:
    return event_bus_for(db)


def get_booking_service(db: DatabaseManager = Depends(get_db),
                        event_bus: EventBus = Depends(get_event_bus)) -> BookingService:
    return BookingService(db, event_bus=event_bus)


def get_capacity_store(db: DatabaseManager = Depends(get_db)) -> CapacityStore:
    return CapacityStore(db)


def get_catalog_service(db: DatabaseManager = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_grooming_service(db: DatabaseManager = Depends(get_db)) -> GroomingPricingService:
    return GroomingPricingService(db)


def get_pricing_service(db: DatabaseManager = Depends(get_db)) -> PricingService:
    return PricingService(db)
