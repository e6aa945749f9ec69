"""
API routes and endpoints.
"""

from fastapi import APIRouter
from ..schemas.common import ErrorResponse
from .v1 import admin, availability, bookings, grooming, services

api_router = APIRouter(responses={
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
})

# 包含所有v1路由
api_router.include_router(availability.router, prefix="/availability", tags=["可用性"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["预订"])
api_router.include_router(services.router, prefix="", tags=["服务"])
api_router.include_router(grooming.router, prefix="/grooming", tags=["美容"])
api_router.include_router(admin.router, prefix="/admin", tags=["员工管理"])
