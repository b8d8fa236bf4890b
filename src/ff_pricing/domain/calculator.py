"""Pure cost computation: no I/O, deterministic for a given input."""

from src.ff_common.enums import RuleActionType
from src.ff_common.errors import ConfigurationError, InvalidQuantityError
from src.ff_common.paise import BPS_ONE, apply_bps, ceil_div, paise_to_display
from src.ff_pricing.domain.models import (
    Brand,
    PricingConfig,
    PricingRule,
    ShipmentCostEstimate,
    ShipmentQuote,
)
from src.ff_pricing.domain.rules import base_rate_rule

RATE_SOURCE_BRAND = "BRAND_ADMIN_RATE"
RATE_SOURCE_RULE = "PRICING_RULE"
RATE_SOURCE_DEFAULT = "SYSTEM_DEFAULT"


def resolve_per_box_rate(
    brand: Brand, rules: list[PricingRule], config: PricingConfig
) -> tuple[int, str, str]:
    """Admin brand rate, then BASE_RATE rule, then system default.

    Returns (per_box_rate, rate_source, description).
    """
    pricing = brand.pricing_config
    if pricing is not None and pricing.is_active:
        return (
            pricing.per_box_rate,
            RATE_SOURCE_BRAND,
            f"brand rate {paise_to_display(pricing.per_box_rate)}/box",
        )
    rule = base_rate_rule(rules)
    if rule is not None:
        return (
            rule.action.value,
            RATE_SOURCE_RULE,
            f"rule '{rule.name}' base rate {paise_to_display(rule.action.value)}/box",
        )
    if config.default_rate is not None:
        return (
            config.default_rate,
            RATE_SOURCE_DEFAULT,
            f"default rate {paise_to_display(config.default_rate)}/box",
        )
    raise ConfigurationError(f"no rate configured for brand {brand.id}")


def is_remote(pincode: str, config: PricingConfig) -> bool:
    return bool(config.remote_pincode_prefixes) and pincode.startswith(
        config.remote_pincode_prefixes
    )


def compute_estimate(
    quote: ShipmentQuote,
    brand: Brand,
    rules: list[PricingRule],
    config: PricingConfig,
) -> ShipmentCostEstimate:
    """`rules` must already be filtered by select_rules()."""
    if quote.num_boxes < 1:
        raise InvalidQuantityError(f"num_boxes must be >= 1, got {quote.num_boxes}")
    if quote.weight_grams < 0:
        raise InvalidQuantityError(f"weight must be >= 0, got {quote.weight_grams}")
    multiplier = config.priority_multipliers_bps.get(quote.priority)
    if multiplier is None:
        raise ConfigurationError(f"no multiplier configured for priority {quote.priority}")

    per_box_rate, rate_source, rate_note = resolve_per_box_rate(brand, rules, config)
    applied = [rate_note]

    # 1. base
    base_rate = per_box_rate * quote.num_boxes

    # 2. weight beyond the free allowance, per kg
    excess_grams = max(0, quote.weight_grams - config.free_weight_grams_per_box * quote.num_boxes)
    weight_charges = ceil_div(excess_grams * config.weight_rate_per_kg, 1000)

    # 3. priority multiplier plus MULTIPLIER rules, then flat SURCHARGE rules
    surcharges = 0
    for rule in rules:
        if rule.action.action_type is RuleActionType.MULTIPLIER:
            multiplier += rule.action.value
            applied.append(f"rule '{rule.name}' multiplier +{rule.action.value}bps")
        elif rule.action.action_type is RuleActionType.SURCHARGE:
            surcharges += rule.action.value
            applied.append(
                f"rule '{rule.name}' surcharge {paise_to_display(rule.action.value)}"
            )
    service_charges = apply_bps(base_rate + weight_charges, multiplier - BPS_ONE) + surcharges

    # 4. remote area, per box
    remote = 0
    if is_remote(quote.destination_pincode, config):
        remote = config.remote_area_surcharge * quote.num_boxes
        applied.append(f"remote area {quote.destination_pincode[:2]}")

    # 5. platform markup on the subtotal
    subtotal = base_rate + weight_charges + service_charges + remote
    markup = apply_bps(subtotal, config.markup_bps)

    # 6. minimum charge top-up
    minimum_adjustment = max(0, config.minimum_charge - (subtotal + markup))
    if minimum_adjustment:
        applied.append(f"minimum charge {paise_to_display(config.minimum_charge)}")

    return ShipmentCostEstimate(
        base_rate=base_rate,
        weight_charges=weight_charges,
        service_charges=service_charges,
        remote_area_surcharge=remote,
        platform_markup=markup,
        minimum_charge_adjustment=minimum_adjustment,
        final_total=subtotal + markup + minimum_adjustment,
        per_box_rate=per_box_rate,
        rate_source=rate_source,
        applied_rules=tuple(applied),
    )
