"""
服务与价格路由
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...services.catalog_service import CatalogService
from ..deps import get_catalog_service

router = APIRouter()


@router.get("/services-and-pricing")
def get_services_and_pricing(catalog: CatalogService = Depends(get_catalog_service)):
    """开放中的服务及基础价格"""
    return create_success_response({"services": catalog.services_and_pricing()})
