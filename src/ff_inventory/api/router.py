"""ff_inventory REST API: records, adjustments, transfers, ledger."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.database import get_db_session
from src.ff_common.response import ApiResponse, success_for
from src.ff_inventory.application.schemas import (
    AdjustRequest,
    AdjustResponse,
    RecordResponse,
    ReplayResponse,
    TransferRequest,
    TransferResponse,
)
from src.ff_inventory.application.service import InventoryService, get_inventory_service

router = APIRouter(prefix="/inventory", tags=["inventory"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Inventory = Annotated[InventoryService, Depends(get_inventory_service)]


@router.get("/{brand_id}/parts/{part_id}")
async def get_record(
    brand_id: str, part_id: str, db: DbSession, inventory: Inventory, request: Request
) -> ApiResponse:
    record = await inventory.get_record(db, brand_id, part_id)
    return success_for(request, RecordResponse.from_domain(record).model_dump())


@router.post("/{brand_id}/parts/{part_id}/adjustments")
async def adjust(
    brand_id: str,
    part_id: str,
    body: AdjustRequest,
    db: DbSession,
    inventory: Inventory,
    request: Request,
) -> ApiResponse:
    result = await inventory.adjust(
        db, brand_id, part_id, body.adjustment_type, body.quantity, body.reason, body.actor_id
    )
    return success_for(request, AdjustResponse.from_domain(result).model_dump())


@router.post("/{brand_id}/parts/{part_id}/transfers")
async def transfer(
    brand_id: str,
    part_id: str,
    body: TransferRequest,
    db: DbSession,
    inventory: Inventory,
    request: Request,
) -> ApiResponse:
    result = await inventory.transfer(
        db,
        brand_id,
        part_id,
        body.from_bucket.value,
        body.to_bucket.value,
        body.quantity,
        body.reference_note,
        body.actor_id,
    )
    return success_for(request, TransferResponse.from_domain(result).model_dump())


@router.get("/{brand_id}/parts/{part_id}/ledger")
async def list_ledger(
    brand_id: str,
    part_id: str,
    db: DbSession,
    inventory: Inventory,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await inventory.list_ledger(db, brand_id, part_id, cursor, limit)
    return success_for(request, data.model_dump())


@router.get("/{brand_id}/parts/{part_id}/replay")
async def replay(
    brand_id: str, part_id: str, db: DbSession, inventory: Inventory, request: Request
) -> ApiResponse:
    report = await inventory.replay(db, brand_id, part_id)
    return success_for(request, ReplayResponse.from_domain(report).model_dump())
