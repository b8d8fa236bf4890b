"""Domain models for ff_fulfillment: pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

from src.ff_common.enums import ConsigneeKind, FulfillmentState
from src.ff_pricing.domain.models import ShipmentCostEstimate

# ---------------------------------------------------------------------------
# Consignee variants (closed set, discriminated by kind)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceCenterConsignee:
    service_center_id: str
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    kind: Literal[ConsigneeKind.SERVICE_CENTER] = ConsigneeKind.SERVICE_CENTER


@dataclass(frozen=True)
class DistributorConsignee:
    distributor_id: str
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    kind: Literal[ConsigneeKind.DISTRIBUTOR] = ConsigneeKind.DISTRIBUTOR


@dataclass(frozen=True)
class CustomerConsignee:
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    email: str | None = None
    kind: Literal[ConsigneeKind.CUSTOMER] = ConsigneeKind.CUSTOMER


Consignee = Union[ServiceCenterConsignee, DistributorConsignee, CustomerConsignee]


# ---------------------------------------------------------------------------
# Requests and carrier exchange
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShipmentRequest:
    request_id: str
    reference_id: str  # idempotency key; one debit per reference
    brand_id: str
    consignee: Consignee
    weight_grams: int
    num_boxes: int = 1
    priority: str = "STANDARD"
    declared_value: int = 0
    description: str | None = None

    @property
    def destination_pincode(self) -> str:
        return self.consignee.pincode


@dataclass(frozen=True)
class CarrierBookingRequest:
    reference_id: str
    brand_id: str
    consignee: Consignee
    weight_grams: int
    num_boxes: int
    priority: str
    declared_value: int
    description: str | None = None


@dataclass(frozen=True)
class CarrierBookingResult:
    success: bool
    awb_number: str | None = None
    tracking_url: str | None = None
    cost_estimate: int | None = None  # carrier's own charge in paise, feeds margin
    error: str | None = None


# ---------------------------------------------------------------------------
# State and outcomes
# ---------------------------------------------------------------------------

RETRYABLE_STATES = frozenset(
    {FulfillmentState.REJECTED, FulfillmentState.FAILED, FulfillmentState.PRICED}
)
IN_FLIGHT_STATES = frozenset({FulfillmentState.ADMITTED, FulfillmentState.BOOKED})


@dataclass(frozen=True)
class FulfillmentRecord:
    reference_id: str
    brand_id: str
    state: FulfillmentState
    final_total: int = 0
    carrier_cost: int | None = None  # what the carrier charges us, paise
    awb_number: str | None = None
    tracking_url: str | None = None
    error: str | None = None
    error_code: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class FulfillmentOutcome:
    """Per-item result. Exactly one of awb_number / error is set."""
    request_id: str
    reference_id: str
    brand_id: str
    success: bool
    state: FulfillmentState
    awb_number: str | None = None
    tracking_url: str | None = None
    cost_estimate: ShipmentCostEstimate | None = None
    wallet_deducted: bool = False
    error: str | None = None
    error_code: int | None = None
    insufficient_balance: bool = False
    shortfall: int | None = None
    duplicate: bool = False
    carrier_cost: int | None = None
    stranded_debit: int = 0  # debit left standing by a failed compensation

    @property
    def debited_amount(self) -> int:
        """Net amount this call took from the wallet (0 for replays)."""
        if self.duplicate:
            return 0
        if self.wallet_deducted and self.cost_estimate is not None:
            return self.cost_estimate.final_total
        if self.wallet_deducted:
            return self.stranded_debit
        return 0

    @property
    def margin(self) -> int | None:
        """Charged total minus the carrier's cost, when both are known."""
        if self.carrier_cost is None or self.cost_estimate is None:
            return None
        return self.cost_estimate.final_total - self.carrier_cost


@dataclass
class BrandSettlement:
    brand_id: str
    total_debited: int = 0
    successful_shipments: int = 0
    failed_shipments: int = 0
    total_carrier_cost: int = 0
    total_margin: int = 0  # over the shipments whose carrier cost is known


@dataclass(frozen=True)
class BatchSummary:
    total: int
    successful: int
    failed: int
    insufficient_balance_count: int
    success_rate_percent: int
    settlements: tuple[BrandSettlement, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BatchResult:
    batch_id: str
    results: tuple[FulfillmentOutcome, ...]
    summary: BatchSummary
