"""
安全相关功能
JWT 签发与校验；令牌携带 sub（客户或员工ID）和 role（customer / staff）

身份由外部认证服务负责，预订核心只信任令牌里的声明。
"""

import jwt
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config.settings import settings
from .exceptions import AuthenticationError, AuthorizationError

ROLE_CUSTOMER = "customer"
ROLE_STAFF = "staff"
ROLES = (ROLE_CUSTOMER, ROLE_STAFF)


@dataclass(frozen=True)
class Principal:
    """当前调用者"""
    id: int
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_STAFF


class SecurityManager:
    """安全管理器"""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None,
                 expire_hours: Optional[int] = None):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.expire_hours = expire_hours or settings.jwt_expire_hours

    def create_jwt_token(self, subject_id: int, role: str = ROLE_CUSTOMER,
                         additional_claims: Dict[str, Any] = None) -> str:
        """创建JWT token"""
        if role not in ROLES:
            raise AuthenticationError(f"Unknown role '{role}'")
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "role": role,
            "exp": now + timedelta(hours=self.expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

    def get_principal_from_token(self, token: str) -> Principal:
        """从token中提取调用者身份"""
        payload = self.decode_jwt_token(token)
        role = payload.get("role")
        if role not in ROLES:
            raise AuthenticationError("Token missing role")
        try:
            subject_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise AuthenticationError("Token missing subject")
        return Principal(id=subject_id, role=role)


# 全局安全管理器实例
security_manager = SecurityManager()

_bearer = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)
) -> Principal:
    """从Authorization header中提取并验证调用者"""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    return security_manager.get_principal_from_token(credentials.credentials)


async def require_customer(principal: Principal = Depends(get_current_principal)) -> Principal:
    """客户接口"""
    if principal.role != ROLE_CUSTOMER:
        raise AuthorizationError("Customer account required")
    return principal


async def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    """员工接口"""
    if not principal.is_staff:
        raise AuthorizationError()
    return principal
