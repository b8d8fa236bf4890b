"""FulfillmentOrchestrator: couples a wallet debit to a carrier booking.

State machine per (brand_id, reference_id):

    PRICED -> ADMITTED -> BOOKED -> SETTLED
    PRICED -> REJECTED                 (insufficient balance, no carrier call)
    ADMITTED -> COMPENSATED            (carrier failed, debit credited back)
    ADMITTED|BOOKED, success           (AWB issued, record write failed; reconcile)
    FAILED                             (pricing failed, no side effects)

Every debit is followed by exactly one of: an AWB (SETTLED) or a
compensating credit of the same amount and reference (COMPENSATED).
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ff_common.enums import FulfillmentState, WalletReason
from src.ff_common.errors import (
    AppError,
    CarrierPermanentError,
    CarrierTransientError,
    CompensationFailedError,
    InternalError,
    InvariantViolationError,
)
from src.ff_fulfillment.domain.models import (
    IN_FLIGHT_STATES,
    RETRYABLE_STATES,
    CarrierBookingRequest,
    CarrierBookingResult,
    FulfillmentOutcome,
    FulfillmentRecord,
    ShipmentRequest,
)
from src.ff_fulfillment.domain.repository import (
    CarrierGateway,
    FulfillmentRecordRepositoryProtocol,
)
from src.ff_fulfillment.infrastructure.persistence import FulfillmentRecordRepository
from src.ff_ledger.locks import KeyedLocks, locks_for
from src.ff_pricing.application.resolver import PricingResolver
from src.ff_pricing.domain.models import ShipmentCostEstimate
from src.ff_wallet.application.service import WalletService

logger = logging.getLogger(__name__)


class FulfillmentOrchestrator:
    def __init__(
        self,
        pricing: PricingResolver,
        wallet: WalletService,
        carrier: CarrierGateway,
        records: FulfillmentRecordRepositoryProtocol | None = None,
        locks: KeyedLocks | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        retry_backoff_seconds: float | None = None,
    ) -> None:
        self._pricing = pricing
        self._wallet = wallet
        self._carrier = carrier
        self._records: FulfillmentRecordRepositoryProtocol = (
            records or FulfillmentRecordRepository()
        )
        self._locks = locks if locks is not None else locks_for("fulfillment")
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.CARRIER_TIMEOUT_SECONDS
        )
        self._max_retries = (
            max_retries if max_retries is not None else settings.CARRIER_MAX_RETRIES
        )
        self._backoff = (
            retry_backoff_seconds
            if retry_backoff_seconds is not None
            else settings.CARRIER_RETRY_BACKOFF_SECONDS
        )

    async def fulfill(self, db: AsyncSession, request: ShipmentRequest) -> FulfillmentOutcome:
        """Price, admit, book and settle one shipment.

        Business failures come back as outcomes. Only InvariantViolationError
        and CompensationFailedError propagate.
        """
        async with self._locks.hold((request.brand_id, request.reference_id)):
            existing = await self._records.get(db, request.brand_id, request.reference_id)
            if existing is not None and existing.state not in RETRYABLE_STATES:
                return self._replay(request, existing)

            # 1. price
            try:
                estimate = await self._pricing.resolve(
                    db,
                    request.brand_id,
                    request.weight_grams,
                    request.num_boxes,
                    request.priority,
                    request.destination_pincode,
                    request.declared_value,
                )
            except InvariantViolationError:
                raise
            except AppError as exc:
                logger.warning("Pricing failed for %s: %s", request.reference_id, exc.message)
                await self._record(
                    db, request, FulfillmentState.FAILED, error=exc.message, error_code=exc.code
                )
                return self._failure(request, FulfillmentState.FAILED, exc)
            await self._record(db, request, FulfillmentState.PRICED, estimate)

            # 2. admission + debit
            decision = await self._wallet.debit_or_reject(
                db,
                request.brand_id,
                estimate.final_total,
                WalletReason.SHIPMENT.value,
                request.reference_id,
            )
            if decision.duplicate:
                # A debit exists for this reference but no record says so.
                logger.error("Orphan debit found for reference %s", request.reference_id)
                return FulfillmentOutcome(
                    request_id=request.request_id,
                    reference_id=request.reference_id,
                    brand_id=request.brand_id,
                    success=False,
                    state=FulfillmentState.ADMITTED,
                    cost_estimate=estimate,
                    wallet_deducted=True,
                    error=f"reference {request.reference_id} was already debited",
                    duplicate=True,
                )
            if not decision.admitted:
                error = (
                    f"Insufficient balance: required {estimate.final_total} paise,"
                    f" available {decision.current_balance} paise"
                )
                await self._record(
                    db, request, FulfillmentState.REJECTED, estimate, error=error, error_code=2001
                )
                return FulfillmentOutcome(
                    request_id=request.request_id,
                    reference_id=request.reference_id,
                    brand_id=request.brand_id,
                    success=False,
                    state=FulfillmentState.REJECTED,
                    cost_estimate=estimate,
                    error=error,
                    error_code=2001,
                    insufficient_balance=True,
                    shortfall=decision.shortfall,
                )

            # 3. carrier booking; from here on a failure owes a compensating credit
            try:
                await self._record(db, request, FulfillmentState.ADMITTED, estimate)
                result = await self._book_with_retry(self._booking_request(request))
            except InvariantViolationError:
                raise
            except (CarrierTransientError, CarrierPermanentError) as exc:
                return await self._compensate(db, request, estimate, exc)
            except Exception as exc:
                logger.exception("Unexpected error after debit for %s", request.reference_id)
                return await self._compensate(db, request, estimate, InternalError(str(exc)))

            # 4. settle; the AWB exists, so the debit stands even if the record lags
            state = await self._settle(db, request, estimate, result)
            logger.info(
                "Shipment %s %s brand=%s awb=%s debited=%d carrier_cost=%s",
                request.reference_id, state.value.lower(), request.brand_id,
                result.awb_number, estimate.final_total, result.cost_estimate,
            )
            return FulfillmentOutcome(
                request_id=request.request_id,
                reference_id=request.reference_id,
                brand_id=request.brand_id,
                success=True,
                state=state,
                awb_number=result.awb_number,
                tracking_url=result.tracking_url,
                cost_estimate=estimate,
                wallet_deducted=True,
                carrier_cost=result.cost_estimate,
            )

    async def _settle(
        self,
        db: AsyncSession,
        request: ShipmentRequest,
        estimate: ShipmentCostEstimate,
        result: CarrierBookingResult,
    ) -> FulfillmentState:
        """Persist BOOKED then SETTLED; BOOKED is returned if either write fails.

        A write failure here is never compensated: the shipment is real. The
        record is left in an in-flight state, which answers retries without
        charging again, and is flagged for reconciliation.
        """
        for state in (FulfillmentState.BOOKED, FulfillmentState.SETTLED):
            try:
                await self._record(
                    db, request, state, estimate,
                    awb_number=result.awb_number, tracking_url=result.tracking_url,
                    carrier_cost=result.cost_estimate,
                )
            except Exception:
                logger.critical(
                    "Shipment %s booked as %s but the %s record was not saved;"
                    " reconcile brand=%s amount=%d",
                    request.reference_id, result.awb_number, state.value,
                    request.brand_id, estimate.final_total,
                    exc_info=True,
                )
                return FulfillmentState.BOOKED
        return FulfillmentState.SETTLED

    async def _book_with_retry(self, booking: CarrierBookingRequest) -> CarrierBookingResult:
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result = await asyncio.wait_for(
                    self._carrier.book_shipment(booking), timeout=self._timeout
                )
            except (asyncio.TimeoutError, CarrierTransientError) as exc:
                if attempt == attempts:
                    if isinstance(exc, CarrierTransientError):
                        raise
                    raise CarrierTransientError(
                        f"no response within {self._timeout}s after {attempts} attempts"
                    ) from exc
                delay = self._backoff * (2 ** (attempt - 1))
                logger.warning(
                    "Carrier attempt %d/%d failed for %s: %s. Retrying in %.2fs",
                    attempt, attempts, booking.reference_id, exc, delay,
                )
                await asyncio.sleep(delay)
                continue
            if not result.success or not result.awb_number:
                raise CarrierPermanentError(result.error or "carrier returned no AWB")
            return result
        raise InternalError("carrier retry loop exited without a result")

    async def _compensate(
        self,
        db: AsyncSession,
        request: ShipmentRequest,
        estimate: ShipmentCostEstimate,
        cause: AppError,
    ) -> FulfillmentOutcome:
        await db.rollback()
        try:
            await self._wallet.credit(
                db,
                request.brand_id,
                estimate.final_total,
                WalletReason.COMPENSATION.value,
                request.reference_id,
            )
        except Exception as exc:
            logger.critical(
                "Compensation credit FAILED for %s brand=%s amount=%d",
                request.reference_id, request.brand_id, estimate.final_total,
            )
            if isinstance(exc, InvariantViolationError):
                raise
            raise CompensationFailedError(
                request.reference_id, estimate.final_total, str(exc) or type(exc).__name__
            ) from exc
        await self._record(
            db, request, FulfillmentState.COMPENSATED, estimate,
            error=cause.message, error_code=cause.code,
        )
        logger.warning(
            "Shipment %s compensated brand=%s amount=%d: %s",
            request.reference_id, request.brand_id, estimate.final_total, cause.message,
        )
        return self._failure(request, FulfillmentState.COMPENSATED, cause, estimate)

    async def _record(
        self,
        db: AsyncSession,
        request: ShipmentRequest,
        state: FulfillmentState,
        estimate: ShipmentCostEstimate | None = None,
        *,
        awb_number: str | None = None,
        tracking_url: str | None = None,
        error: str | None = None,
        error_code: int | None = None,
        carrier_cost: int | None = None,
    ) -> None:
        record = FulfillmentRecord(
            reference_id=request.reference_id,
            brand_id=request.brand_id,
            state=state,
            final_total=estimate.final_total if estimate else 0,
            carrier_cost=carrier_cost,
            awb_number=awb_number,
            tracking_url=tracking_url,
            error=error,
            error_code=error_code,
        )
        try:
            await self._records.upsert(db, record)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    def _replay(self, request: ShipmentRequest, record: FulfillmentRecord) -> FulfillmentOutcome:
        logger.info(
            "Duplicate reference %s answered from record (%s)",
            request.reference_id, record.state.value,
        )
        if record.state is FulfillmentState.SETTLED:
            return FulfillmentOutcome(
                request_id=request.request_id,
                reference_id=request.reference_id,
                brand_id=record.brand_id,
                success=True,
                state=record.state,
                awb_number=record.awb_number,
                tracking_url=record.tracking_url,
                wallet_deducted=True,
                duplicate=True,
                carrier_cost=record.carrier_cost,
            )
        error = record.error
        if record.state in IN_FLIGHT_STATES:
            error = f"shipment {request.reference_id} is already in progress"
        return FulfillmentOutcome(
            request_id=request.request_id,
            reference_id=request.reference_id,
            brand_id=record.brand_id,
            success=False,
            state=record.state,
            wallet_deducted=record.state in IN_FLIGHT_STATES,
            error=error or record.state.value,
            error_code=record.error_code,
            duplicate=True,
        )

    @staticmethod
    def _failure(
        request: ShipmentRequest,
        state: FulfillmentState,
        exc: AppError,
        estimate: ShipmentCostEstimate | None = None,
    ) -> FulfillmentOutcome:
        return FulfillmentOutcome(
            request_id=request.request_id,
            reference_id=request.reference_id,
            brand_id=request.brand_id,
            success=False,
            state=state,
            cost_estimate=estimate,
            error=exc.message,
            error_code=exc.code,
        )

    @staticmethod
    def _booking_request(request: ShipmentRequest) -> CarrierBookingRequest:
        return CarrierBookingRequest(
            reference_id=request.reference_id,
            brand_id=request.brand_id,
            consignee=request.consignee,
            weight_grams=request.weight_grams,
            num_boxes=request.num_boxes,
            priority=request.priority,
            declared_value=request.declared_value,
            description=request.description,
        )
