"""Carrier gateways: HTTP adapter (httpx) and a local simulator.

CARRIER_MODE selects the implementation. The simulator mirrors the sandbox
behaviour of the production integration: AWBs are issued locally and
nothing leaves the process.
"""

import logging
from dataclasses import asdict

import httpx

from config.settings import settings
from src.ff_common.errors import CarrierTransientError
from src.ff_common.id_generator import generate_id
from src.ff_common.paise import apply_bps, ceil_div
from src.ff_fulfillment.domain.models import CarrierBookingRequest, CarrierBookingResult
from src.ff_fulfillment.domain.repository import CarrierGateway

logger = logging.getLogger(__name__)


def booking_payload(request: CarrierBookingRequest) -> dict[str, object]:
    consignee = asdict(request.consignee)
    consignee["kind"] = request.consignee.kind.value
    return {
        "reference_number": request.reference_id,
        "customer_code": request.brand_id,
        "consignee": consignee,
        "weight_grams": request.weight_grams,
        "num_pieces": request.num_boxes,
        "service_type": request.priority,
        "declared_value_paise": request.declared_value,
        "description": request.description,
    }


def _carrier_cost(value: object) -> int | None:
    """The carrier's charge in paise; anything but a non-negative int is dropped."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def simulated_carrier_cost(weight_grams: int, priority: str) -> int:
    """Sandbox tariff: per-kg base with a floor, plus 15% fuel and 18% GST."""
    rate_per_kg = 5_000 if priority == "EXPRESS" else 3_500
    base = max(3_000, ceil_div(weight_grams * rate_per_kg, 1_000))
    with_fuel = base + apply_bps(base, 1_500)
    return with_fuel + apply_bps(with_fuel, 1_800)


class HttpCarrierGateway:
    """Timeouts, transport errors and 5xx raise CarrierTransientError;
    4xx and explicit refusals come back as success=False."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"x-api-key": api_key, "Content-Type": "application/json"},
        )

    async def book_shipment(self, request: CarrierBookingRequest) -> CarrierBookingResult:
        try:
            response = await self._client.post("/shipments", json=booking_payload(request))
        except httpx.TimeoutException as exc:
            raise CarrierTransientError(f"timeout booking {request.reference_id}") from exc
        except httpx.TransportError as exc:
            raise CarrierTransientError(f"transport error: {exc}") from exc

        if response.status_code >= 500:
            raise CarrierTransientError(f"carrier returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400:
            error = body.get("error") or f"carrier returned HTTP {response.status_code}"
            logger.warning("Carrier refused %s: %s", request.reference_id, error)
            return CarrierBookingResult(success=False, error=error)

        return CarrierBookingResult(
            success=bool(body.get("success")),
            awb_number=body.get("awb_number"),
            tracking_url=body.get("tracking_url"),
            cost_estimate=_carrier_cost(body.get("cost_estimate")),
            error=body.get("error"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class SimulatedCarrierGateway:
    """Issues AWBs locally. Pincodes in refuse_pincodes are rejected."""

    def __init__(
        self,
        tracking_base_url: str = "https://track.example.invalid/awb/",
        refuse_pincodes: frozenset[str] = frozenset(),
    ) -> None:
        self._tracking_base_url = tracking_base_url
        self._refuse_pincodes = refuse_pincodes

    async def book_shipment(self, request: CarrierBookingRequest) -> CarrierBookingResult:
        if request.consignee.pincode in self._refuse_pincodes:
            return CarrierBookingResult(
                success=False, error=f"pincode {request.consignee.pincode} not serviceable"
            )
        awb = generate_id("SIM")
        logger.info("Simulated booking %s -> %s", request.reference_id, awb)
        return CarrierBookingResult(
            success=True,
            awb_number=awb,
            tracking_url=f"{self._tracking_base_url}{awb}",
            cost_estimate=simulated_carrier_cost(request.weight_grams, request.priority),
        )


def build_carrier_gateway() -> CarrierGateway:
    if settings.CARRIER_MODE == "http":
        return HttpCarrierGateway(
            settings.CARRIER_API_URL,
            settings.CARRIER_API_KEY,
            settings.CARRIER_TIMEOUT_SECONDS,
        )
    return SimulatedCarrierGateway()
