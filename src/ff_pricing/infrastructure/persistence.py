"""PostgreSQL access for brand_pricing_overrides and pricing_rules.

Both tables are read by the resolver on every quote and written only by
brand-admin endpoints; callers own the transaction.
"""

import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.enums import RuleActionType
from src.ff_common.errors import InternalError
from src.ff_pricing.domain.models import (
    Brand,
    BrandPricing,
    PricingRule,
    RuleAction,
    RuleCondition,
)

_RULE_COLUMNS = (
    "id, brand_id, name, priority, is_active, exclusive, condition,"
    " action_type, action_value, created_at"
)

_GET_OVERRIDE_SQL = text("""
    SELECT per_box_rate, is_active, updated_at
    FROM brand_pricing_overrides
    WHERE brand_id = :brand_id
""")

_UPSERT_OVERRIDE_SQL = text("""
    INSERT INTO brand_pricing_overrides (brand_id, per_box_rate, is_active)
    VALUES (:brand_id, :per_box_rate, TRUE)
    ON CONFLICT (brand_id) DO UPDATE
        SET per_box_rate = EXCLUDED.per_box_rate,
            is_active = TRUE,
            updated_at = NOW()
    RETURNING per_box_rate, is_active, updated_at
""")

_CLEAR_OVERRIDE_SQL = text("""
    UPDATE brand_pricing_overrides
    SET is_active = FALSE, updated_at = NOW()
    WHERE brand_id = :brand_id AND is_active
    RETURNING brand_id
""")

_LIST_ACTIVE_RULES_SQL = text(f"""
    SELECT {_RULE_COLUMNS}
    FROM pricing_rules
    WHERE is_active AND (brand_id IS NULL OR brand_id = :brand_id)
    ORDER BY priority DESC, id ASC
""")

_LIST_RULES_SQL = text(f"""
    SELECT {_RULE_COLUMNS}
    FROM pricing_rules
    WHERE (CAST(:brand_id AS TEXT) IS NULL OR brand_id = :brand_id)
      AND (:include_inactive OR is_active)
    ORDER BY priority DESC, id ASC
""")

_GET_RULE_SQL = text(f"""
    SELECT {_RULE_COLUMNS}
    FROM pricing_rules
    WHERE id = :id
""")

_INSERT_RULE_SQL = text(f"""
    INSERT INTO pricing_rules
        (brand_id, name, priority, exclusive, condition, action_type, action_value)
    VALUES
        (:brand_id, :name, :priority, :exclusive, CAST(:condition AS JSONB),
         :action_type, :action_value)
    RETURNING {_RULE_COLUMNS}
""")

_DEACTIVATE_RULE_SQL = text(f"""
    UPDATE pricing_rules
    SET is_active = FALSE
    WHERE id = :id
    RETURNING {_RULE_COLUMNS}
""")


def _row_to_rule(row: object) -> PricingRule:
    condition = row.condition  # type: ignore[attr-defined]
    if isinstance(condition, str):
        condition = json.loads(condition)
    return PricingRule(
        id=row.id,  # type: ignore[attr-defined]
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        priority=row.priority,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        exclusive=row.exclusive,  # type: ignore[attr-defined]
        condition=RuleCondition.from_dict(condition),
        action=RuleAction(
            RuleActionType(row.action_type),  # type: ignore[attr-defined]
            row.action_value,  # type: ignore[attr-defined]
        ),
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_pricing(row: object) -> BrandPricing:
    return BrandPricing(
        per_box_rate=row.per_box_rate,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class BrandDirectory:
    """Brands are owned elsewhere; only their pricing override lives here."""

    async def get_brand(self, db: AsyncSession, brand_id: str) -> Brand:
        result = await db.execute(_GET_OVERRIDE_SQL, {"brand_id": brand_id})
        row = result.fetchone()
        return Brand(id=brand_id, pricing_config=_row_to_pricing(row) if row else None)

    async def set_rate(
        self, db: AsyncSession, brand_id: str, per_box_rate: int
    ) -> BrandPricing:
        result = await db.execute(
            _UPSERT_OVERRIDE_SQL, {"brand_id": brand_id, "per_box_rate": per_box_rate}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Brand rate upsert returned no rows")
        return _row_to_pricing(row)

    async def clear_rate(self, db: AsyncSession, brand_id: str) -> bool:
        result = await db.execute(_CLEAR_OVERRIDE_SQL, {"brand_id": brand_id})
        return result.fetchone() is not None


class PricingRuleRepository:
    async def list_active_rules(self, db: AsyncSession, brand_id: str) -> list[PricingRule]:
        result = await db.execute(_LIST_ACTIVE_RULES_SQL, {"brand_id": brand_id})
        return [_row_to_rule(row) for row in result.fetchall()]

    async def list_rules(
        self, db: AsyncSession, brand_id: str | None, include_inactive: bool
    ) -> list[PricingRule]:
        result = await db.execute(
            _LIST_RULES_SQL, {"brand_id": brand_id, "include_inactive": include_inactive}
        )
        return [_row_to_rule(row) for row in result.fetchall()]

    async def get_rule(self, db: AsyncSession, rule_id: int) -> PricingRule | None:
        result = await db.execute(_GET_RULE_SQL, {"id": rule_id})
        row = result.fetchone()
        return _row_to_rule(row) if row else None

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
        result = await db.execute(
            _INSERT_RULE_SQL,
            {
                "brand_id": brand_id,
                "name": name,
                "priority": priority,
                "exclusive": exclusive,
                "condition": json.dumps(condition.to_dict()),
                "action_type": action.action_type.value,
                "action_value": action.value,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Pricing rule insert returned no rows")
        return _row_to_rule(row)

    async def deactivate_rule(self, db: AsyncSession, rule_id: int) -> PricingRule | None:
        result = await db.execute(_DEACTIVATE_RULE_SQL, {"id": rule_id})
        row = result.fetchone()
        return _row_to_rule(row) if row else None
