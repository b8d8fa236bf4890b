"""BatchCoordinator: up to MAX_BATCH_SIZE shipments with per-item isolation."""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ff_common.enums import FulfillmentState
from src.ff_common.errors import (
    BatchTooLargeError,
    CompensationFailedError,
    InternalError,
    InvariantViolationError,
)
from src.ff_common.id_generator import generate_id
from src.ff_fulfillment.application.orchestrator import FulfillmentOrchestrator
from src.ff_fulfillment.domain.models import (
    BatchResult,
    BatchSummary,
    BrandSettlement,
    FulfillmentOutcome,
    ShipmentRequest,
)

logger = logging.getLogger(__name__)


class BatchCoordinator:
    def __init__(
        self, orchestrator: FulfillmentOrchestrator, max_batch_size: int | None = None
    ) -> None:
        self._orchestrator = orchestrator
        self._max = max_batch_size if max_batch_size is not None else settings.MAX_BATCH_SIZE

    async def process_batch(
        self, db: AsyncSession, requests: Sequence[ShipmentRequest]
    ) -> BatchResult:
        """Process items sequentially in submission order.

        Results are 1:1 with requests. InvariantViolationError aborts the
        batch; any other error becomes that item's failed outcome. A failed
        compensation is reported as still debited.
        """
        if len(requests) > self._max:
            raise BatchTooLargeError(len(requests), self._max)

        batch_id = generate_id("BATCH")
        logger.info("Batch %s started: %d shipments", batch_id, len(requests))
        results: list[FulfillmentOutcome] = []
        for request in requests:
            try:
                outcome = await self._orchestrator.fulfill(db, request)
            except InvariantViolationError:
                logger.critical("Batch %s aborted at %s", batch_id, request.reference_id)
                raise
            except CompensationFailedError as exc:
                logger.critical(
                    "Batch %s item %s left debited: %s",
                    batch_id, request.reference_id, exc.message,
                )
                outcome = FulfillmentOutcome(
                    request_id=request.request_id,
                    reference_id=request.reference_id,
                    brand_id=request.brand_id,
                    success=False,
                    state=FulfillmentState.ADMITTED,
                    wallet_deducted=True,
                    error=exc.message,
                    error_code=exc.code,
                    stranded_debit=exc.amount,
                )
            except Exception as exc:
                logger.exception("Batch %s item %s failed", batch_id, request.reference_id)
                error = InternalError(str(exc) or type(exc).__name__)
                outcome = FulfillmentOutcome(
                    request_id=request.request_id,
                    reference_id=request.reference_id,
                    brand_id=request.brand_id,
                    success=False,
                    state=FulfillmentState.FAILED,
                    error=error.message,
                    error_code=error.code,
                )
            results.append(outcome)

        summary = summarize(results)
        logger.info(
            "Batch %s done: %d/%d successful, %d insufficient balance",
            batch_id, summary.successful, summary.total, summary.insufficient_balance_count,
        )
        return BatchResult(batch_id=batch_id, results=tuple(results), summary=summary)


def summarize(results: Sequence[FulfillmentOutcome]) -> BatchSummary:
    total = len(results)
    successful = sum(1 for r in results if r.success)
    settlements: dict[str, BrandSettlement] = {}
    for r in results:
        settlement = settlements.setdefault(r.brand_id, BrandSettlement(r.brand_id))
        settlement.total_debited += r.debited_amount
        if r.debited_amount and r.margin is not None:
            settlement.total_carrier_cost += r.carrier_cost or 0
            settlement.total_margin += r.margin
        if r.success:
            settlement.successful_shipments += 1
        else:
            settlement.failed_shipments += 1
    # round half up, integer percent
    rate = (successful * 200 + total) // (total * 2) if total else 0
    return BatchSummary(
        total=total,
        successful=successful,
        failed=total - successful,
        insufficient_balance_count=sum(1 for r in results if r.insufficient_balance),
        success_rate_percent=rate,
        settlements=tuple(settlements.values()),
    )
