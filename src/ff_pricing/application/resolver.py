"""PricingResolver: side-effect-free cost estimate for one shipment."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_pricing.domain.calculator import compute_estimate
from src.ff_pricing.domain.models import PricingConfig, ShipmentCostEstimate, ShipmentQuote
from src.ff_pricing.domain.repository import (
    BrandDirectoryProtocol,
    PricingRuleRepositoryProtocol,
)
from src.ff_pricing.domain.rules import select_rules
from src.ff_pricing.infrastructure.persistence import BrandDirectory, PricingRuleRepository

logger = logging.getLogger(__name__)


class PricingResolver:
    def __init__(
        self,
        config: PricingConfig | None = None,
        brands: BrandDirectoryProtocol | None = None,
        rules: PricingRuleRepositoryProtocol | None = None,
    ) -> None:
        self._config = config or PricingConfig.from_settings()
        self._brands: BrandDirectoryProtocol = brands or BrandDirectory()
        self._rules: PricingRuleRepositoryProtocol = rules or PricingRuleRepository()

    @property
    def config(self) -> PricingConfig:
        return self._config

    async def resolve(
        self,
        db: AsyncSession,
        brand_id: str,
        weight_grams: int,
        num_boxes: int,
        priority: str,
        destination_pincode: str,
        declared_value: int = 0,
    ) -> ShipmentCostEstimate:
        quote = ShipmentQuote(
            brand_id=brand_id,
            weight_grams=weight_grams,
            num_boxes=num_boxes,
            priority=priority,
            destination_pincode=destination_pincode,
            declared_value=declared_value,
        )
        return await self.resolve_quote(db, quote)

    async def resolve_quote(self, db: AsyncSession, quote: ShipmentQuote) -> ShipmentCostEstimate:
        brand = await self._brands.get_brand(db, quote.brand_id)
        rules = select_rules(await self._rules.list_active_rules(db, quote.brand_id), quote)
        estimate = compute_estimate(quote, brand, rules, self._config)
        logger.debug(
            "Priced brand=%s boxes=%d weight=%dg total=%d source=%s",
            quote.brand_id, quote.num_boxes, quote.weight_grams,
            estimate.final_total, estimate.rate_source,
        )
        return estimate


_resolver: PricingResolver | None = None


def get_pricing_resolver() -> PricingResolver:
    global _resolver  # noqa: PLW0603
    if _resolver is None:
        _resolver = PricingResolver()
    return _resolver
