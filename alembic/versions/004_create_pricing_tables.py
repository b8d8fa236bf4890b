"""004: create brand_pricing_overrides and pricing_rules

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE brand_pricing_overrides (
            brand_id        VARCHAR(64) PRIMARY KEY,
            per_box_rate    BIGINT      NOT NULL,
            is_active       BOOLEAN     NOT NULL DEFAULT TRUE,
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_brand_rate_gt_0 CHECK (per_box_rate > 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_brand_pricing_overrides_updated_at
            BEFORE UPDATE ON brand_pricing_overrides
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE pricing_rules (
            id              BIGSERIAL    PRIMARY KEY,
            brand_id        VARCHAR(64),
            name            VARCHAR(128) NOT NULL,
            priority        INTEGER      NOT NULL DEFAULT 0,
            is_active       BOOLEAN      NOT NULL DEFAULT TRUE,
            exclusive       BOOLEAN      NOT NULL DEFAULT FALSE,
            condition       JSONB        NOT NULL DEFAULT '{}'::jsonb,
            action_type     VARCHAR(16)  NOT NULL,
            action_value    BIGINT       NOT NULL,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_pricing_rule_action CHECK (
                action_type IN ('BASE_RATE', 'SURCHARGE', 'MULTIPLIER')
            ),
            CONSTRAINT ck_pricing_rule_rate_gt_0 CHECK (
                action_type <> 'BASE_RATE' OR action_value > 0
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_pricing_rules_active
        ON pricing_rules (brand_id, priority DESC)
        WHERE is_active;
    """)
    op.execute("COMMENT ON COLUMN pricing_rules.brand_id IS 'NULL = global rule';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS pricing_rules CASCADE;")
    op.execute("DROP TABLE IF EXISTS brand_pricing_overrides CASCADE;")
