"""Pydantic schemas for ff_fulfillment API.

Consignee is a discriminated union on `kind`; each variant converts to its
frozen domain dataclass.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from src.ff_common.enums import ShipmentPriority
from src.ff_common.id_generator import generate_id
from src.ff_common.paise import paise_to_display
from src.ff_fulfillment.domain.models import (
    BatchResult,
    Consignee,
    CustomerConsignee,
    DistributorConsignee,
    FulfillmentOutcome,
    ServiceCenterConsignee,
    ShipmentRequest,
)
from src.ff_pricing.application.schemas import PINCODE_PATTERN, EstimateResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class _ConsigneeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    phone: str = Field(..., min_length=10, max_length=15)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=64)
    state: str = Field(..., min_length=1, max_length=64)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)


class ServiceCenterConsigneeSchema(_ConsigneeBase):
    kind: Literal["SERVICE_CENTER"]
    service_center_id: str = Field(..., min_length=1, max_length=64)

    def to_domain(self) -> ServiceCenterConsignee:
        return ServiceCenterConsignee(
            service_center_id=self.service_center_id,
            name=self.name, phone=self.phone, address=self.address,
            city=self.city, state=self.state, pincode=self.pincode,
        )


class DistributorConsigneeSchema(_ConsigneeBase):
    kind: Literal["DISTRIBUTOR"]
    distributor_id: str = Field(..., min_length=1, max_length=64)

    def to_domain(self) -> DistributorConsignee:
        return DistributorConsignee(
            distributor_id=self.distributor_id,
            name=self.name, phone=self.phone, address=self.address,
            city=self.city, state=self.state, pincode=self.pincode,
        )


class CustomerConsigneeSchema(_ConsigneeBase):
    kind: Literal["CUSTOMER"]
    email: str | None = Field(None, max_length=254)

    def to_domain(self) -> CustomerConsignee:
        return CustomerConsignee(
            name=self.name, phone=self.phone, address=self.address,
            city=self.city, state=self.state, pincode=self.pincode, email=self.email,
        )


ConsigneeSchema = Annotated[
    Union[ServiceCenterConsigneeSchema, DistributorConsigneeSchema, CustomerConsigneeSchema],
    Field(discriminator="kind"),
]


class ShipmentRequestSchema(BaseModel):
    reference_id: str = Field(..., min_length=1, max_length=128, description="Idempotency key")
    brand_id: str = Field(..., min_length=1, max_length=64)
    consignee: ConsigneeSchema
    weight_grams: int = Field(..., ge=0)
    num_boxes: int = Field(1, ge=1, le=1000)
    priority: ShipmentPriority = ShipmentPriority.STANDARD
    declared_value_paise: int = Field(0, ge=0)
    description: str | None = Field(None, max_length=500)

    def to_domain(self) -> ShipmentRequest:
        consignee: Consignee = self.consignee.to_domain()
        return ShipmentRequest(
            request_id=generate_id("REQ"),
            reference_id=self.reference_id,
            brand_id=self.brand_id,
            consignee=consignee,
            weight_grams=self.weight_grams,
            num_boxes=self.num_boxes,
            priority=self.priority.value,
            declared_value=self.declared_value_paise,
            description=self.description,
        )


class BatchRequestSchema(BaseModel):
    # Size limit is enforced by BatchCoordinator so it maps to BatchTooLargeError.
    shipments: list[ShipmentRequestSchema] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OutcomeResponse(BaseModel):
    request_id: str
    reference_id: str
    brand_id: str
    success: bool
    state: str
    awb_number: str | None
    tracking_url: str | None
    cost_estimate: EstimateResponse | None
    wallet_deducted: bool
    error: str | None
    error_code: int | None
    insufficient_balance: bool
    shortfall_paise: int | None
    duplicate: bool
    carrier_cost_paise: int | None
    margin_paise: int | None

    @classmethod
    def from_domain(cls, outcome: FulfillmentOutcome) -> "OutcomeResponse":
        return cls(
            request_id=outcome.request_id,
            reference_id=outcome.reference_id,
            brand_id=outcome.brand_id,
            success=outcome.success,
            state=outcome.state.value,
            awb_number=outcome.awb_number,
            tracking_url=outcome.tracking_url,
            cost_estimate=(
                EstimateResponse.from_domain(outcome.cost_estimate)
                if outcome.cost_estimate else None
            ),
            wallet_deducted=outcome.wallet_deducted,
            error=outcome.error,
            error_code=outcome.error_code,
            insufficient_balance=outcome.insufficient_balance,
            shortfall_paise=outcome.shortfall,
            duplicate=outcome.duplicate,
            carrier_cost_paise=outcome.carrier_cost,
            margin_paise=outcome.margin,
        )


class SettlementResponse(BaseModel):
    brand_id: str
    total_debited_paise: int
    total_debited_display: str
    successful_shipments: int
    failed_shipments: int
    total_carrier_cost_paise: int
    total_margin_paise: int


class BatchSummaryResponse(BaseModel):
    total: int
    successful: int
    failed: int
    insufficient_balance_count: int
    success_rate_percent: int
    settlements: list[SettlementResponse]


class BatchResponse(BaseModel):
    batch_id: str
    results: list[OutcomeResponse]
    summary: BatchSummaryResponse

    @classmethod
    def from_domain(cls, batch: BatchResult) -> "BatchResponse":
        s = batch.summary
        return cls(
            batch_id=batch.batch_id,
            results=[OutcomeResponse.from_domain(r) for r in batch.results],
            summary=BatchSummaryResponse(
                total=s.total,
                successful=s.successful,
                failed=s.failed,
                insufficient_balance_count=s.insufficient_balance_count,
                success_rate_percent=s.success_rate_percent,
                settlements=[
                    SettlementResponse(
                        brand_id=b.brand_id,
                        total_debited_paise=b.total_debited,
                        total_debited_display=paise_to_display(b.total_debited),
                        successful_shipments=b.successful_shipments,
                        failed_shipments=b.failed_shipments,
                        total_carrier_cost_paise=b.total_carrier_cost,
                        total_margin_paise=b.total_margin,
                    )
                    for b in s.settlements
                ],
            ),
        )
