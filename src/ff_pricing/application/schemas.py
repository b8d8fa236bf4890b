"""Pydantic schemas for ff_pricing API."""

from pydantic import BaseModel, Field

from src.ff_common.datetime_utils import to_iso
from src.ff_common.enums import RuleActionType, ShipmentPriority
from src.ff_common.paise import paise_to_display
from src.ff_pricing.domain.models import (
    BrandPricing,
    PricingRule,
    RuleAction,
    RuleCondition,
    ShipmentCostEstimate,
)

PINCODE_PATTERN = r"^\d{6}$"

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class EstimateRequest(BaseModel):
    brand_id: str = Field(..., min_length=1, max_length=64)
    weight_grams: int = Field(..., ge=0)
    num_boxes: int = Field(1, ge=1, le=1000)
    priority: ShipmentPriority = ShipmentPriority.STANDARD
    destination_pincode: str = Field(..., pattern=PINCODE_PATTERN)
    declared_value_paise: int = Field(0, ge=0)


class RuleConditionSchema(BaseModel):
    min_weight_grams: int | None = Field(None, ge=0)
    max_weight_grams: int | None = Field(None, ge=0)
    pincode_prefixes: list[str] = Field(default_factory=list)
    priorities: list[ShipmentPriority] = Field(default_factory=list)
    min_declared_value: int | None = Field(None, ge=0)

    def to_domain(self) -> RuleCondition:
        return RuleCondition(
            min_weight_grams=self.min_weight_grams,
            max_weight_grams=self.max_weight_grams,
            pincode_prefixes=tuple(self.pincode_prefixes),
            priorities=tuple(p.value for p in self.priorities),
            min_declared_value=self.min_declared_value,
        )


class CreateRuleRequest(BaseModel):
    brand_id: str | None = Field(None, max_length=64, description="Omit for a global rule")
    name: str = Field(..., min_length=1, max_length=128)
    priority: int = Field(0, ge=0, le=10_000)
    exclusive: bool = False
    condition: RuleConditionSchema = Field(default_factory=RuleConditionSchema)
    action_type: RuleActionType
    action_value: int = Field(
        ..., description="paise for BASE_RATE/SURCHARGE, bps for MULTIPLIER"
    )

    def to_action(self) -> RuleAction:
        return RuleAction(self.action_type, self.action_value)


class BrandRateRequest(BaseModel):
    per_box_rate_paise: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class EstimateResponse(BaseModel):
    base_rate: int
    weight_charges: int
    service_charges: int
    remote_area_surcharge: int
    platform_markup: int
    minimum_charge_adjustment: int
    final_total: int
    final_total_display: str
    per_box_rate: int
    rate_source: str
    applied_rules: list[str]

    @classmethod
    def from_domain(cls, estimate: ShipmentCostEstimate) -> "EstimateResponse":
        return cls(
            base_rate=estimate.base_rate,
            weight_charges=estimate.weight_charges,
            service_charges=estimate.service_charges,
            remote_area_surcharge=estimate.remote_area_surcharge,
            platform_markup=estimate.platform_markup,
            minimum_charge_adjustment=estimate.minimum_charge_adjustment,
            final_total=estimate.final_total,
            final_total_display=paise_to_display(estimate.final_total),
            per_box_rate=estimate.per_box_rate,
            rate_source=estimate.rate_source,
            applied_rules=list(estimate.applied_rules),
        )


class RuleResponse(BaseModel):
    id: int
    brand_id: str | None
    name: str
    priority: int
    is_active: bool
    exclusive: bool
    condition: dict[str, object]
    action_type: str
    action_value: int
    created_at: str

    @classmethod
    def from_domain(cls, rule: PricingRule) -> "RuleResponse":
        return cls(
            id=rule.id,
            brand_id=rule.brand_id,
            name=rule.name,
            priority=rule.priority,
            is_active=rule.is_active,
            exclusive=rule.exclusive,
            condition=rule.condition.to_dict(),
            action_type=rule.action.action_type.value,
            action_value=rule.action.value,
            created_at=to_iso(rule.created_at),
        )


class BrandRateResponse(BaseModel):
    brand_id: str
    per_box_rate_paise: int
    per_box_rate_display: str
    is_active: bool

    @classmethod
    def from_domain(cls, brand_id: str, pricing: BrandPricing) -> "BrandRateResponse":
        return cls(
            brand_id=brand_id,
            per_box_rate_paise=pricing.per_box_rate,
            per_box_rate_display=paise_to_display(pricing.per_box_rate),
            is_active=pricing.is_active,
        )
