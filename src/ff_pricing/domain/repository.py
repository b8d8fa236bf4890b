"""Repository Protocols for brand rate overrides and pricing rules."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_pricing.domain.models import Brand, BrandPricing, PricingRule, RuleAction, RuleCondition


class BrandDirectoryProtocol(Protocol):
    async def get_brand(self, db: AsyncSession, brand_id: str) -> Brand: ...

    async def set_rate(
        self, db: AsyncSession, brand_id: str, per_box_rate: int
    ) -> BrandPricing: ...

    async def clear_rate(self, db: AsyncSession, brand_id: str) -> bool: ...


class PricingRuleRepositoryProtocol(Protocol):
    async def list_active_rules(self, db: AsyncSession, brand_id: str) -> list[PricingRule]: ...

    async def list_rules(
        self, db: AsyncSession, brand_id: str | None, include_inactive: bool
    ) -> list[PricingRule]: ...

    async def get_rule(self, db: AsyncSession, rule_id: int) -> PricingRule | None: ...

    async def create_rule(
        self,
        db: AsyncSession,
        brand_id: str | None,
        name: str,
        priority: int,
        exclusive: bool,
        condition: RuleCondition,
        action: RuleAction,
    ) -> PricingRule: ...

    async def deactivate_rule(self, db: AsyncSession, rule_id: int) -> PricingRule | None: ...
