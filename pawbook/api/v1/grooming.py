"""
美容价格路由（客户）
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...core.security import require_customer
from ...services.grooming_service import GroomingPricingService
from ..deps import get_grooming_service

router = APIRouter()


@router.get("/pricing/{size_category}", dependencies=[Depends(require_customer)])
def get_grooming_price_range(
    size_category: str,
    grooming: GroomingPricingService = Depends(get_grooming_service),
):
    """某体型的美容价格区间（最终价格由美容师评分后确定）"""
    return create_success_response(grooming.get_price_range(size_category))
