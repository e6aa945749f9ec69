"""
测试配置文件
提供测试所需的fixtures和配置

每个测试使用独立的内存 DuckDB，并预置三种服务、两个客户及其动物、一名员工。
"""

import pytest
from datetime import date
from fastapi.testclient import TestClient

from ..app import create_app
from ..core.database import DatabaseManager, get_db
from ..core.security import ROLE_CUSTOMER, ROLE_STAFF, security_manager
from ..services.booking_service import BookingService
from ..services.capacity_service import CapacityStore
from ..services.catalog_service import CatalogService

# 2030-07-01 是周一
MONDAY = date(2030, 7, 1)
FRIDAY = date(2030, 7, 5)
SATURDAY = date(2030, 7, 6)
SUNDAY = date(2030, 7, 7)


def insert_returning_id(db: DatabaseManager, sql: str, params: list) -> int:
    return db.execute_one(sql + " RETURNING id", params)[0]


def add_animal(db: DatabaseManager, customer_id: int, name: str, size: str = "medium") -> int:
    return insert_returning_id(
        db, "INSERT INTO animals(customer_id, name, size_category) VALUES (?, ?, ?)",
        [customer_id, name, size])


def auth_headers(subject_id: int, role: str = ROLE_CUSTOMER) -> dict:
    token = security_manager.create_jwt_token(subject_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_db():
    """测试数据库"""
    db = DatabaseManager(":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def seeded(test_db):
    """
    预置数据：
    - daycare 4500 分，默认容量 25
    - boarding 6500 分，默认容量 10
    - grooming 7500 分 / 90 分钟，全天容量 6，09:00 和 11:00 两个时段各 2 个名额
    - alice: Rex, Bella；bob: Luna；员工 Sam
    """
    catalog = CatalogService(test_db)
    capacity = CapacityStore(test_db)

    daycare = catalog.create_service_type("daycare", "Daycare", 4500, sort_order=1)
    boarding = catalog.create_service_type("boarding", "Boarding", 6500, sort_order=2)
    grooming = catalog.create_service_type("grooming", "Grooming", 7500, duration_minutes=90, sort_order=3)

    capacity.save_rule(daycare.id, 25)
    capacity.save_rule(boarding.id, 10)
    capacity.save_rule(grooming.id, 6)
    capacity.save_rule(grooming.id, 2, start_time="09:00", end_time="10:30")
    capacity.save_rule(grooming.id, 2, start_time="11:00", end_time="12:30")

    alice = insert_returning_id(
        test_db, "INSERT INTO customers(first_name, last_name, email) VALUES (?, ?, ?)",
        ["Alice", "Walker", "alice@example.com"])
    bob = insert_returning_id(
        test_db, "INSERT INTO customers(first_name, last_name, email) VALUES (?, ?, ?)",
        ["Bob", "Stone", "bob@example.com"])
    staff = insert_returning_id(
        test_db, "INSERT INTO staff(first_name, last_name, role) VALUES (?, ?, ?)",
        ["Sam", "Keeper", "manager"])

    return {
        "daycare": daycare.id,
        "boarding": boarding.id,
        "grooming": grooming.id,
        "alice": alice,
        "bob": bob,
        "staff": staff,
        "rex": add_animal(test_db, alice, "Rex", "large"),
        "bella": add_animal(test_db, alice, "Bella", "small"),
        "luna": add_animal(test_db, bob, "Luna"),
    }


@pytest.fixture
def booking_service(test_db):
    """预订服务"""
    return BookingService(test_db)


@pytest.fixture
def client(test_db):
    """测试客户端，所有路由使用内存数据库"""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: test_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice_headers(seeded):
    return auth_headers(seeded["alice"])


@pytest.fixture
def bob_headers(seeded):
    return auth_headers(seeded["bob"])


@pytest.fixture
def staff_headers(seeded):
    return auth_headers(seeded["staff"], ROLE_STAFF)
