"""PricingAdminService: brand-admin maintenance of rules and brand rates.

Read-only from the orchestrator's point of view: quotes go through
PricingResolver, which never writes.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.errors import InvalidAmountError, PricingRuleNotFoundError
from src.ff_pricing.domain.models import BrandPricing, PricingRule, RuleAction, RuleCondition
from src.ff_pricing.domain.repository import (
    BrandDirectoryProtocol,
    PricingRuleRepositoryProtocol,
)
from src.ff_pricing.infrastructure.persistence import BrandDirectory, PricingRuleRepository

logger = logging.getLogger(__name__)


class PricingAdminService:
    def __init__(
        self,
        brands: BrandDirectoryProtocol | None = None,
        rules: PricingRuleRepositoryProtocol | None = None,
    ) -> None:
        self._brands: BrandDirectoryProtocol = brands or BrandDirectory()
        self._rules: PricingRuleRepositoryProtocol = rules or PricingRuleRepository()

    async def list_rules(
        self, db: AsyncSession, brand_id: str | None = None, include_inactive: bool = False
    ) -> list[PricingRule]:
        return await self._rules.list_rules(db, brand_id, include_inactive)

    async def get_rule(self, db: AsyncSession, rule_id: int) -> PricingRule:
        rule = await self._rules.get_rule(db, rule_id)
        if rule is None:
            raise PricingRuleNotFoundError(rule_id)
        return rule

    async def create_rule(
        self,
        db: AsyncSession,
        brand_id: str | None,
        name: str,
        priority: int,
        exclusive: bool,
        condition: RuleCondition,
        action: RuleAction,
    ) -> PricingRule:
        try:
            rule = await self._rules.create_rule(
                db, brand_id, name, priority, exclusive, condition, action
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Pricing rule %d created: %s (%s)", rule.id, name, action.action_type.value)
        return rule

    async def deactivate_rule(self, db: AsyncSession, rule_id: int) -> PricingRule:
        try:
            rule = await self._rules.deactivate_rule(db, rule_id)
            if rule is None:
                raise PricingRuleNotFoundError(rule_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Pricing rule %d deactivated", rule_id)
        return rule

    async def set_brand_rate(
        self, db: AsyncSession, brand_id: str, per_box_rate: int
    ) -> BrandPricing:
        if per_box_rate <= 0:
            raise InvalidAmountError(per_box_rate)
        try:
            pricing = await self._brands.set_rate(db, brand_id, per_box_rate)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Brand %s rate set to %d paise/box", brand_id, per_box_rate)
        return pricing

    async def clear_brand_rate(self, db: AsyncSession, brand_id: str) -> bool:
        try:
            cleared = await self._brands.clear_rate(db, brand_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return cleared


_admin_service: PricingAdminService | None = None


def get_pricing_admin_service() -> PricingAdminService:
    global _admin_service  # noqa: PLW0603
    if _admin_service is None:
        _admin_service = PricingAdminService()
    return _admin_service
