"""
数据库连接和管理模块
提供 DuckDB 连接、表结构初始化和事务控制

数据库表说明：
- service_types: 服务类型（日托、寄宿、美容）及基础价格
- capacity_rules: 容量规则（全部日期 / 按星期 / 按时段）
- capacity_overrides: 按日期的容量例外（闭馆、扩容）
- pricing_rules: 价格调整规则
- customers / animals / staff: 身份数据，仅用于归属校验和操作人记录
- bookings / booking_animals: 预订台账（美容预订的动物行记录毛发状况评分和报价）
- grooming_price_tiers: 美容价格矩阵（体型 × 毛发状况 1-5）
- logs: 审计日志
"""

import duckdb
import logging
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
from contextlib import contextmanager
import threading

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

# 数据文件存储目录
DATA_DIR = Path(__file__).parent.parent / "data"

# 完整的表结构定义
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS service_types_id_seq;
CREATE TABLE IF NOT EXISTS service_types (
  id INTEGER DEFAULT nextval('service_types_id_seq') PRIMARY KEY,
  name TEXT UNIQUE NOT NULL,
  display_name TEXT NOT NULL,
  description TEXT,
  base_price_cents INTEGER NOT NULL CHECK (base_price_cents >= 0),
  duration_minutes INTEGER,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  sort_order INTEGER NOT NULL DEFAULT 0,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS capacity_rules_id_seq;
CREATE TABLE IF NOT EXISTS capacity_rules (
  id INTEGER DEFAULT nextval('capacity_rules_id_seq') PRIMARY KEY,
  service_type_id INTEGER NOT NULL,
  day_of_week INTEGER CHECK (day_of_week BETWEEN 0 AND 6),
  max_capacity INTEGER NOT NULL CHECK (max_capacity >= 0),
  start_time TEXT,
  end_time TEXT,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_capacity_rules_service ON capacity_rules(service_type_id);

CREATE SEQUENCE IF NOT EXISTS capacity_overrides_id_seq;
CREATE TABLE IF NOT EXISTS capacity_overrides (
  id INTEGER DEFAULT nextval('capacity_overrides_id_seq') PRIMARY KEY,
  date DATE NOT NULL,
  service_type_id INTEGER,
  max_capacity INTEGER CHECK (max_capacity IS NULL OR max_capacity >= 0),
  reason TEXT NOT NULL,
  description TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_capacity_overrides_date ON capacity_overrides(date);

CREATE SEQUENCE IF NOT EXISTS pricing_rules_id_seq;
CREATE TABLE IF NOT EXISTS pricing_rules (
  id INTEGER DEFAULT nextval('pricing_rules_id_seq') PRIMARY KEY,
  service_type_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  type TEXT CHECK (type IN ('percentage_discount','fixed_discount','surcharge')) NOT NULL,
  value_cents INTEGER,
  percentage DECIMAL(5,2),
  min_animals INTEGER,
  membership_plan_id INTEGER,
  day_of_week INTEGER CHECK (day_of_week IS NULL OR day_of_week BETWEEN 0 AND 6),
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  priority INTEGER NOT NULL DEFAULT 0,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS customers_id_seq;
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER DEFAULT nextval('customers_id_seq') PRIMARY KEY,
  first_name TEXT,
  last_name TEXT,
  email TEXT,
  phone TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS animals_id_seq;
CREATE TABLE IF NOT EXISTS animals (
  id INTEGER DEFAULT nextval('animals_id_seq') PRIMARY KEY,
  customer_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  size_category TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_animals_customer ON animals(customer_id);

CREATE SEQUENCE IF NOT EXISTS staff_id_seq;
CREATE TABLE IF NOT EXISTS staff (
  id INTEGER DEFAULT nextval('staff_id_seq') PRIMARY KEY,
  first_name TEXT,
  last_name TEXT,
  role TEXT NOT NULL DEFAULT 'staff',
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS bookings_id_seq;
CREATE TABLE IF NOT EXISTS bookings (
  id INTEGER DEFAULT nextval('bookings_id_seq') PRIMARY KEY,
  customer_id INTEGER NOT NULL,
  service_type_id INTEGER NOT NULL,
  date DATE NOT NULL,
  start_date DATE,
  end_date DATE,
  start_time TEXT,
  status TEXT CHECK (status IN ('pending','confirmed','checked_in','checked_out','cancelled','no_show')) NOT NULL,
  total_cents INTEGER NOT NULL,
  notes TEXT,
  cancel_reason TEXT,
  checked_in_at TIMESTAMP,
  checked_in_by INTEGER,
  checked_out_at TIMESTAMP,
  checked_out_by INTEGER,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now(),
  CHECK ((start_date IS NULL) = (end_date IS NULL)),
  CHECK (start_date IS NULL OR (start_date <= end_date AND date = start_date))
);

CREATE INDEX IF NOT EXISTS idx_bookings_customer ON bookings(customer_id);
CREATE INDEX IF NOT EXISTS idx_bookings_service_date ON bookings(service_type_id, date);

CREATE TABLE IF NOT EXISTS booking_animals (
  booking_id INTEGER NOT NULL,
  animal_id INTEGER NOT NULL,
  condition_rating INTEGER CHECK (condition_rating IS NULL OR condition_rating BETWEEN 1 AND 5),
  quoted_price_cents INTEGER,
  PRIMARY KEY (booking_id, animal_id)
);

CREATE INDEX IF NOT EXISTS idx_booking_animals_animal ON booking_animals(animal_id);

CREATE SEQUENCE IF NOT EXISTS grooming_price_tiers_id_seq;
CREATE TABLE IF NOT EXISTS grooming_price_tiers (
  id INTEGER DEFAULT nextval('grooming_price_tiers_id_seq') PRIMARY KEY,
  size_category TEXT CHECK (size_category IN ('small','medium','large','xl')) NOT NULL,
  condition_rating INTEGER NOT NULL CHECK (condition_rating BETWEEN 1 AND 5),
  label TEXT NOT NULL,
  estimated_minutes INTEGER NOT NULL CHECK (estimated_minutes >= 0),
  price_cents INTEGER NOT NULL CHECK (price_cents >= 0),
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now(),
  UNIQUE (size_category, condition_rating)
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  booking_id INTEGER,
  actor_id INTEGER,
  actor_role TEXT,
  action TEXT NOT NULL,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_booking ON logs(booking_id);
CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


class DatabaseManager:
    """数据库管理器，封装所有数据库操作

    所有读写都经过同一把可重入锁：DuckDB 连接对象不能被多个线程同时使用，
    同时 transaction() 借助这把锁串行化并发写入。
    """

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self._tx_local = threading.local()
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """从设置中获取数据库路径"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url.replace("duckdb://", "", 1)
            # duckdb:///:memory: 写法
            if db_url == "/:memory:":
                db_url = ":memory:"
        return db_url or str(DATA_DIR / "pawbook.duckdb")

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接（首次访问时建表）"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """初始化数据库"""
        with self._lock:
            self.connection.execute(SCHEMA_SQL)
        logger.info("Database schema ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        持有全局锁直到提交，保证"检查容量 → 写入预订"在并发下是原子的。
        业务异常原样抛出；驱动层异常包装为 DatabaseError / ConcurrencyError。
        嵌套调用时只有最外层负责 BEGIN/COMMIT。
        """
        with self._lock:
            conn = self.connection
            if getattr(self._tx_local, "depth", 0):
                self._tx_local.depth += 1
                try:
                    yield conn
                finally:
                    self._tx_local.depth -= 1
                return

            self._tx_local.depth = 1
            try:
                conn.execute("BEGIN")
                yield conn
                conn.execute("COMMIT")
            except BaseApplicationError:
                self._rollback(conn)
                raise
            except duckdb.Error as e:
                self._rollback(conn)
                if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                    raise ConcurrencyError()
                raise DatabaseError(f"Database operation failed: {e}")
            except Exception:
                self._rollback(conn)
                raise
            finally:
                self._tx_local.depth = 0

    def _rollback(self, conn: duckdb.DuckDBPyConnection):
        try:
            conn.execute("ROLLBACK")
        except duckdb.Error:
            logger.warning("Rollback failed", exc_info=True)

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        try:
            with self._lock:
                con = self.connection
                if params:
                    return con.execute(query, params).fetchall()
                return con.execute(query).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        try:
            with self._lock:
                con = self.connection
                if params:
                    return con.execute(query, params).fetchone()
                return con.execute(query).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dicts(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """执行查询并按列名返回字典列表"""
        try:
            with self._lock:
                con = self.connection
                cursor = con.execute(query, params) if params else con.execute(query)
                columns = [col[0] for col in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dict(self, query: str, params: list = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_dicts(query, params)
        return rows[0] if rows else None

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


# 全局数据库管理器实例
db_manager = DatabaseManager()


def get_db() -> DatabaseManager:
    """FastAPI 依赖：返回当前数据库管理器"""
    return db_manager
