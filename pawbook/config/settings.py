from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # 数据库配置
    # 形如 duckdb:///path/to/file.duckdb、duckdb://:memory: 或 duckdb:///:memory:；留空使用 pawbook/data/pawbook.duckdb
    database_url: str = ""

    # JWT配置（身份由外部认证服务签发，这里只负责校验）
    jwt_secret_key: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7天

    # 业务常量
    facility_daily_max: int = 40  # 全馆每日动物上限（跨所有服务）
    max_booking_days: int = 30  # 多日预订最长天数（含首尾）

    # API配置
    api_title: str = "Pawbook Booking API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 日志
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # 开发模式
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_prefix": "PAWBOOK_",
        "case_sensitive": False,
    }


# 全局设置实例
settings = Settings()
