"""Rule matching and selection."""

from collections.abc import Iterable

from src.ff_common.enums import RuleActionType
from src.ff_pricing.domain.models import PricingRule, RuleCondition, ShipmentQuote


def condition_matches(condition: RuleCondition, quote: ShipmentQuote) -> bool:
    if condition.min_weight_grams is not None and quote.weight_grams < condition.min_weight_grams:
        return False
    if condition.max_weight_grams is not None and quote.weight_grams > condition.max_weight_grams:
        return False
    if condition.pincode_prefixes and not quote.destination_pincode.startswith(
        condition.pincode_prefixes
    ):
        return False
    if condition.priorities and quote.priority not in condition.priorities:
        return False
    if (
        condition.min_declared_value is not None
        and quote.declared_value < condition.min_declared_value
    ):
        return False
    return True


def select_rules(rules: Iterable[PricingRule], quote: ShipmentQuote) -> list[PricingRule]:
    """Active matching rules, highest priority first (ties by id).

    The first matching exclusive rule suppresses every other rule.
    """
    matched = sorted(
        (r for r in rules if r.is_active and condition_matches(r.condition, quote)),
        key=lambda r: (-r.priority, r.id),
    )
    for rule in matched:
        if rule.exclusive:
            return [rule]
    return matched


def base_rate_rule(rules: Iterable[PricingRule]) -> PricingRule | None:
    """Highest-priority BASE_RATE rule among already-selected rules."""
    for rule in rules:
        if rule.action.action_type is RuleActionType.BASE_RATE:
            return rule
    return None
