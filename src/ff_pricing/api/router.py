"""ff_pricing REST API: quotes, pricing rules, brand rate overrides."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.database import get_db_session
from src.ff_common.response import ApiResponse, success_for
from src.ff_pricing.application.resolver import PricingResolver, get_pricing_resolver
from src.ff_pricing.application.schemas import (
    BrandRateRequest,
    BrandRateResponse,
    CreateRuleRequest,
    EstimateRequest,
    EstimateResponse,
    RuleResponse,
)
from src.ff_pricing.application.service import PricingAdminService, get_pricing_admin_service

router = APIRouter(prefix="/pricing", tags=["pricing"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Resolver = Annotated[PricingResolver, Depends(get_pricing_resolver)]
Admin = Annotated[PricingAdminService, Depends(get_pricing_admin_service)]


@router.post("/estimate")
async def estimate(
    body: EstimateRequest, db: DbSession, resolver: Resolver, request: Request
) -> ApiResponse:
    result = await resolver.resolve(
        db,
        body.brand_id,
        body.weight_grams,
        body.num_boxes,
        body.priority.value,
        body.destination_pincode,
        body.declared_value_paise,
    )
    return success_for(request, EstimateResponse.from_domain(result).model_dump())


@router.get("/rules")
async def list_rules(
    db: DbSession,
    admin: Admin,
    request: Request,
    brand_id: str | None = Query(None, description="Filter by brand; omit for all"),
    include_inactive: bool = Query(False),
) -> ApiResponse:
    rules = await admin.list_rules(db, brand_id, include_inactive)
    return success_for(request, [RuleResponse.from_domain(r).model_dump() for r in rules])


@router.post("/rules", status_code=201)
async def create_rule(
    body: CreateRuleRequest, db: DbSession, admin: Admin, request: Request
) -> ApiResponse:
    rule = await admin.create_rule(
        db,
        body.brand_id,
        body.name,
        body.priority,
        body.exclusive,
        body.condition.to_domain(),
        body.to_action(),
    )
    return success_for(request, RuleResponse.from_domain(rule).model_dump())


@router.get("/rules/{rule_id}")
async def get_rule(rule_id: int, db: DbSession, admin: Admin, request: Request) -> ApiResponse:
    rule = await admin.get_rule(db, rule_id)
    return success_for(request, RuleResponse.from_domain(rule).model_dump())


@router.post("/rules/{rule_id}/deactivate")
async def deactivate_rule(
    rule_id: int, db: DbSession, admin: Admin, request: Request
) -> ApiResponse:
    rule = await admin.deactivate_rule(db, rule_id)
    return success_for(request, RuleResponse.from_domain(rule).model_dump())


@router.put("/brands/{brand_id}/rate")
async def set_brand_rate(
    brand_id: str, body: BrandRateRequest, db: DbSession, admin: Admin, request: Request
) -> ApiResponse:
    pricing = await admin.set_brand_rate(db, brand_id, body.per_box_rate_paise)
    return success_for(request, BrandRateResponse.from_domain(brand_id, pricing).model_dump())


@router.delete("/brands/{brand_id}/rate")
async def clear_brand_rate(
    brand_id: str, db: DbSession, admin: Admin, request: Request
) -> ApiResponse:
    cleared = await admin.clear_brand_rate(db, brand_id)
    return success_for(request, {"brand_id": brand_id, "cleared": cleared})
