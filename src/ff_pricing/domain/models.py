"""Domain models for ff_pricing: pure dataclasses.

Money in paise, multipliers in bps, weight in grams.
"""

from dataclasses import dataclass, field
from datetime import datetime

from config.settings import Settings, settings
from src.ff_common.enums import RuleActionType, ShipmentPriority


@dataclass(frozen=True)
class PricingConfig:
    """Explicit pricing configuration, passed to the resolver at construction."""
    default_rate: int | None
    weight_rate_per_kg: int
    free_weight_grams_per_box: int
    priority_multipliers_bps: dict[str, int]
    remote_area_surcharge: int
    remote_pincode_prefixes: tuple[str, ...]
    markup_bps: int
    minimum_charge: int = 0

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "PricingConfig":
        s = s or settings
        return cls(
            default_rate=s.DEFAULT_RATE,
            weight_rate_per_kg=s.WEIGHT_RATE_PER_KG,
            free_weight_grams_per_box=s.FREE_WEIGHT_GRAMS_PER_BOX,
            priority_multipliers_bps={
                ShipmentPriority.STANDARD.value: s.STANDARD_MULTIPLIER_BPS,
                ShipmentPriority.EXPRESS.value: s.EXPRESS_MULTIPLIER_BPS,
            },
            remote_area_surcharge=s.REMOTE_AREA_SURCHARGE,
            remote_pincode_prefixes=tuple(s.REMOTE_PINCODE_PREFIXES),
            markup_bps=s.MARKUP_BPS,
            minimum_charge=s.MINIMUM_CHARGE,
        )


@dataclass(frozen=True)
class BrandPricing:
    """Admin-configured per-box rate override for one brand."""
    per_box_rate: int
    is_active: bool = True
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Brand:
    id: str
    pricing_config: BrandPricing | None = None


@dataclass(frozen=True)
class RuleCondition:
    """All set thresholds must hold; an empty condition matches every shipment."""
    min_weight_grams: int | None = None
    max_weight_grams: int | None = None
    pincode_prefixes: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    min_declared_value: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "min_weight_grams": self.min_weight_grams,
            "max_weight_grams": self.max_weight_grams,
            "pincode_prefixes": list(self.pincode_prefixes),
            "priorities": list(self.priorities),
            "min_declared_value": self.min_declared_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> "RuleCondition":
        data = data or {}
        return cls(
            min_weight_grams=data.get("min_weight_grams"),  # type: ignore[arg-type]
            max_weight_grams=data.get("max_weight_grams"),  # type: ignore[arg-type]
            pincode_prefixes=tuple(data.get("pincode_prefixes") or ()),  # type: ignore[arg-type]
            priorities=tuple(data.get("priorities") or ()),  # type: ignore[arg-type]
            min_declared_value=data.get("min_declared_value"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class RuleAction:
    action_type: RuleActionType
    value: int  # BASE_RATE/SURCHARGE: paise; MULTIPLIER: extra bps


@dataclass(frozen=True)
class PricingRule:
    id: int
    brand_id: str | None  # None = global
    name: str
    priority: int
    is_active: bool
    exclusive: bool
    condition: RuleCondition
    action: RuleAction
    created_at: datetime | None = None


@dataclass(frozen=True)
class ShipmentQuote:
    """Pricing inputs for one shipment."""
    brand_id: str
    weight_grams: int
    num_boxes: int
    priority: str
    destination_pincode: str
    declared_value: int = 0


@dataclass(frozen=True)
class ShipmentCostEstimate:
    base_rate: int
    weight_charges: int
    service_charges: int
    remote_area_surcharge: int
    platform_markup: int
    minimum_charge_adjustment: int
    final_total: int
    per_box_rate: int = 0
    rate_source: str = ""
    applied_rules: tuple[str, ...] = field(default_factory=tuple)

    @property
    def subtotal(self) -> int:
        return (
            self.base_rate + self.weight_charges + self.service_charges
            + self.remote_area_surcharge
        )
