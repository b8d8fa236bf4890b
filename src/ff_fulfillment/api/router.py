"""ff_fulfillment REST API: single shipment and batch booking.

Business failures (insufficient balance, carrier refusal) are reported in
the outcome payload with HTTP 200; only request-level errors use AppError.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.database import get_db_session
from src.ff_common.response import ApiResponse, success_for
from src.ff_fulfillment.application.batch import BatchCoordinator
from src.ff_fulfillment.application.orchestrator import FulfillmentOrchestrator
from src.ff_fulfillment.application.schemas import (
    BatchRequestSchema,
    BatchResponse,
    OutcomeResponse,
    ShipmentRequestSchema,
)
from src.ff_fulfillment.application.service import get_batch_coordinator, get_orchestrator

router = APIRouter(prefix="/shipments", tags=["fulfillment"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Orchestrator = Annotated[FulfillmentOrchestrator, Depends(get_orchestrator)]
Batch = Annotated[BatchCoordinator, Depends(get_batch_coordinator)]


@router.post("")
async def book_shipment(
    body: ShipmentRequestSchema, db: DbSession, orchestrator: Orchestrator, request: Request
) -> ApiResponse:
    outcome = await orchestrator.fulfill(db, body.to_domain())
    return success_for(request, OutcomeResponse.from_domain(outcome).model_dump())


@router.post("/batch")
async def book_batch(
    body: BatchRequestSchema, db: DbSession, batch: Batch, request: Request
) -> ApiResponse:
    result = await batch.process_batch(db, [s.to_domain() for s in body.shipments])
    return success_for(request, BatchResponse.from_domain(result).model_dump())
