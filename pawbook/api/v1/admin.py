"""
员工管理路由
日程、全馆看板、容量规则/例外、价格规则、服务类型、美容价格矩阵与评分
"""

import datetime as dt
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...core.error_handler import create_success_response
from ...core.security import Principal, require_staff
from ...schemas.admin import (
    CapacityOverrideRequest,
    CapacityRuleRequest,
    ConditionRatingRequest,
    GroomingTierRequest,
    GroomingTierUpdateRequest,
    PricingRuleCreateRequest,
    PricingRuleUpdateRequest,
    ServiceTypeUpdateRequest,
)
from ...schemas.booking import BookingResponse
from ...services.booking_service import BookingService
from ...services.capacity_service import CapacityStore
from ...services.catalog_service import CatalogService
from ...services.grooming_service import GroomingPricingService
from ...services.pricing_service import PricingService
from ..deps import (
    get_booking_service,
    get_capacity_store,
    get_catalog_service,
    get_grooming_service,
    get_pricing_service,
)

router = APIRouter(dependencies=[Depends(require_staff)])


@router.get("/schedule")
def get_schedule(
    date: dt.date = Query(..., description="日期"),
    service_type_id: Optional[int] = Query(None, description="服务类型过滤"),
    bookings: BookingService = Depends(get_booking_service),
):
    """当天日程（含跨越当天的多日预订）"""
    items = bookings.get_schedule(date, service_type_id)
    return create_success_response({
        "date": date.isoformat(),
        "bookings": [BookingResponse.from_booking(b).model_dump(mode="json") for b in items],
    })


@router.get("/facility")
def get_facility_status(
    date: dt.date = Query(..., description="日期"),
    bookings: BookingService = Depends(get_booking_service),
):
    """全馆当天动物数与上限占比"""
    return create_success_response(bookings.get_facility_status(date))


@router.get("/capacity-rules")
def list_capacity_rules(
    service_type_id: Optional[int] = Query(None),
    store: CapacityStore = Depends(get_capacity_store),
):
    rules = store.list_rules(service_type_id)
    return create_success_response([r.model_dump(mode="json") for r in rules])


@router.put("/capacity-rules")
def save_capacity_rule(
    req: CapacityRuleRequest,
    store: CapacityStore = Depends(get_capacity_store),
):
    """新增或更新容量规则"""
    rule = store.save_rule(req.service_type_id, req.max_capacity, req.day_of_week,
                           req.start_time, req.end_time)
    return create_success_response(rule.model_dump(mode="json"), "Capacity rule saved")


@router.put("/capacity-overrides")
def set_capacity_override(
    req: CapacityOverrideRequest,
    store: CapacityStore = Depends(get_capacity_store),
):
    """设置容量例外（闭馆或临时调整容量）"""
    override = store.set_override(req.date, req.reason, req.max_capacity,
                                  req.service_type_id, req.description)
    return create_success_response(override.model_dump(mode="json"), "Capacity override saved")


@router.delete("/capacity-overrides")
def remove_capacity_override(
    date: dt.date = Query(..., description="日期"),
    service_type_id: Optional[int] = Query(None, description="服务类型ID，空为全局"),
    store: CapacityStore = Depends(get_capacity_store),
):
    store.remove_override(date, service_type_id)
    return create_success_response(message="Capacity override removed")


@router.post("/pricing-rules", status_code=201)
def create_pricing_rule(
    req: PricingRuleCreateRequest,
    pricing: PricingService = Depends(get_pricing_service),
):
    rule = pricing.create_rule(req.service_type_id, req.name, req.adjustment,
                               day_of_week=req.day_of_week, min_animals=req.min_animals,
                               membership_plan_id=req.membership_plan_id,
                               priority=req.priority, is_active=req.is_active)
    return create_success_response(rule.model_dump(mode="json"), "Pricing rule created")


@router.patch("/pricing-rules/{rule_id}")
def update_pricing_rule(
    rule_id: int,
    req: PricingRuleUpdateRequest,
    pricing: PricingService = Depends(get_pricing_service),
):
    rule = pricing.update_rule(rule_id, is_active=req.is_active, priority=req.priority)
    return create_success_response(rule.model_dump(mode="json"), "Pricing rule updated")


@router.patch("/service-types/{service_type_id}")
def update_service_type(
    service_type_id: int,
    req: ServiceTypeUpdateRequest,
    catalog: CatalogService = Depends(get_catalog_service),
):
    """只允许修改基础价格和启停状态"""
    service = catalog.update_service_type(service_type_id, base_price_cents=req.base_price_cents,
                                          is_active=req.is_active)
    return create_success_response(service.model_dump(mode="json"), "Service type updated")


@router.get("/grooming/matrix")
def get_grooming_matrix(grooming: GroomingPricingService = Depends(get_grooming_service)):
    """完整美容价格矩阵"""
    tiers = grooming.get_price_matrix()
    return create_success_response({"matrix": [t.model_dump(mode="json") for t in tiers]})


@router.put("/grooming/matrix")
def save_grooming_tier(
    req: GroomingTierRequest,
    grooming: GroomingPricingService = Depends(get_grooming_service),
):
    tier = grooming.save_tier(req.size_category, req.condition_rating, req.price_cents,
                              req.estimated_minutes, label=req.label, is_active=req.is_active)
    return create_success_response(tier.model_dump(mode="json"), "Price tier saved")


@router.patch("/grooming/matrix/{tier_id}")
def update_grooming_tier(
    tier_id: int,
    req: GroomingTierUpdateRequest,
    grooming: GroomingPricingService = Depends(get_grooming_service),
):
    tier = grooming.update_tier(tier_id, price_cents=req.price_cents,
                                estimated_minutes=req.estimated_minutes, is_active=req.is_active)
    return create_success_response(tier.model_dump(mode="json"), "Price tier updated")


@router.post("/grooming/bookings/{booking_id}/animals/{animal_id}/rating")
def rate_grooming_condition(
    booking_id: int,
    animal_id: int,
    req: ConditionRatingRequest,
    principal: Principal = Depends(require_staff),
    grooming: GroomingPricingService = Depends(get_grooming_service),
):
    """美容师评分，按价格矩阵记录该动物的报价"""
    result = grooming.rate_condition(booking_id, animal_id, req.condition_rating, principal.id)
    return create_success_response(result.model_dump(mode="json"), "Condition rated")
