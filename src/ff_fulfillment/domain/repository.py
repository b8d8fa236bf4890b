"""Protocols for fulfillment records and the external carrier."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_fulfillment.domain.models import (
    CarrierBookingRequest,
    CarrierBookingResult,
    FulfillmentRecord,
)


class FulfillmentRecordRepositoryProtocol(Protocol):
    async def get(
        self, db: AsyncSession, brand_id: str, reference_id: str
    ) -> FulfillmentRecord | None: ...

    async def upsert(self, db: AsyncSession, record: FulfillmentRecord) -> FulfillmentRecord: ...


class CarrierGateway(Protocol):
    """Books a shipment with the carrier and returns an AWB.

    Raises CarrierTransientError for timeouts/5xx; returns success=False for
    a definitive refusal.
    """

    async def book_shipment(self, request: CarrierBookingRequest) -> CarrierBookingResult: ...
