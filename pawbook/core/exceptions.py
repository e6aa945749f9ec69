"""
自定义异常类
提供更精确的错误处理和异常信息

所有业务异常都可以由调用方恢复（换个输入重试，或直接展示给用户），
details 中携带足够的信息让 UI 和 AI 助理解释"为什么不行"。
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """结构化错误对象，供 AI 工具调用方直接转述"""
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""

    def __init__(self, message: str):
        super().__init__(message, "DATABASE_ERROR")


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""

    def __init__(self, message: str = "The system is busy, please retry"):
        super().__init__(message, "CONCURRENCY_CONFLICT")


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""

    def __init__(self, message: str):
        super().__init__(message, "AUTHENTICATION_REQUIRED")


class AuthorizationError(BaseApplicationError):
    """授权相关异常（例如客户调用员工接口）"""

    def __init__(self, message: str = "Staff permission required"):
        super().__init__(message, "PERMISSION_DENIED")


class NotFoundError(BaseApplicationError):
    """资源不存在"""

    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(
            f"{resource} not found",
            "NOT_FOUND",
            {"resource": resource, "id": resource_id},
        )


class InactiveServiceError(BaseApplicationError):
    """服务类型已停用"""

    def __init__(self, service_name: str):
        super().__init__(
            f"Service '{service_name}' is not currently available",
            "SERVICE_INACTIVE",
            {"service": service_name},
        )


class OwnershipError(BaseApplicationError):
    """动物不属于当前客户"""

    def __init__(self, animal_ids: Iterable[int]):
        ids = sorted(animal_ids)
        super().__init__(
            "One or more animals were not found on your account",
            "OWNERSHIP_MISMATCH",
            {"animal_ids": ids},
        )


class ValidationError(BaseApplicationError):
    """数据验证异常"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, "VALIDATION_ERROR", {"field": field} if field else {})


class CapacityError(BaseApplicationError):
    """容量不足，details.dates 列出所有不可预订的日期"""

    def __init__(self, dates: Iterable[date], start_time: Optional[str] = None):
        date_list = [d.isoformat() for d in sorted(dates)]
        if start_time:
            message = f"No availability at {start_time} on {', '.join(date_list)}"
        else:
            message = f"No availability on {', '.join(date_list)}"
        details: Dict[str, Any] = {"dates": date_list}
        if start_time:
            details["start_time"] = start_time
        super().__init__(message, "CAPACITY_EXCEEDED", details)

    @property
    def dates(self) -> List[str]:
        return self.details["dates"]


class DuplicateBookingError(BaseApplicationError):
    """同一动物在重叠日期已有同类服务的有效预订"""

    def __init__(self, animal_ids: Iterable[int], dates: Iterable[date],
                 booking_ids: Iterable[int]):
        super().__init__(
            "One or more animals already have a booking for this service on these dates",
            "DUPLICATE_BOOKING",
            {
                "animal_ids": sorted(set(animal_ids)),
                "dates": [d.isoformat() for d in sorted(set(dates))],
                "booking_ids": sorted(set(booking_ids)),
            },
        )


class InvalidStateError(BaseApplicationError):
    """非法的状态转换，details 中给出当前状态与允许的来源状态"""

    def __init__(self, booking_id: int, current_status: str, attempted_action: str,
                 allowed_from: Iterable[str]):
        allowed = sorted(allowed_from)
        super().__init__(
            f"Cannot {attempted_action.replace('_', ' ')} a booking with status '{current_status}'",
            "INVALID_STATE",
            {
                "booking_id": booking_id,
                "current_status": current_status,
                "attempted_action": attempted_action,
                "allowed_from": allowed,
            },
        )
