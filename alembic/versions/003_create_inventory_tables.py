"""003: create inventory_records and inventory_ledger

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE inventory_records (
            brand_id            VARCHAR(64) NOT NULL,
            part_id             VARCHAR(64) NOT NULL,
            on_hand             INTEGER     NOT NULL DEFAULT 0,
            available           INTEGER     NOT NULL DEFAULT 0,
            reserved            INTEGER     NOT NULL DEFAULT 0,
            defective           INTEGER     NOT NULL DEFAULT 0,
            quarantine          INTEGER     NOT NULL DEFAULT 0,
            in_transit          INTEGER     NOT NULL DEFAULT 0,
            version             BIGINT      NOT NULL DEFAULT 0,
            last_restocked_at   TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (brand_id, part_id),
            CONSTRAINT ck_inventory_buckets_gte_0 CHECK (
                on_hand >= 0 AND available >= 0 AND reserved >= 0
                AND defective >= 0 AND quarantine >= 0 AND in_transit >= 0
            ),
            CONSTRAINT ck_inventory_available CHECK (
                available = GREATEST(0, on_hand - reserved - defective - quarantine)
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_inventory_records_updated_at
            BEFORE UPDATE ON inventory_records
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE inventory_ledger (
            id              BIGSERIAL    PRIMARY KEY,
            brand_id        VARCHAR(64)  NOT NULL,
            part_id         VARCHAR(64)  NOT NULL,
            action_type     VARCHAR(16)  NOT NULL,
            quantity        INTEGER      NOT NULL,
            signed_delta    INTEGER      NOT NULL,
            source          VARCHAR(16)  NOT NULL,
            destination     VARCHAR(16)  NOT NULL,
            reference_note  VARCHAR(500),
            created_by      VARCHAR(64),
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            FOREIGN KEY (brand_id, part_id) REFERENCES inventory_records (brand_id, part_id),
            CONSTRAINT ck_inventory_action_type CHECK (
                action_type IN ('ADD', 'CONSUMED', 'ADJUSTMENT', 'TRANSFER')
            ),
            CONSTRAINT ck_inventory_quantity_gte_0 CHECK (quantity >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_inventory_ledger_key
        ON inventory_ledger (brand_id, part_id, id DESC);
    """)
    op.execute("""
        CREATE TRIGGER trg_inventory_ledger_append_only
            BEFORE UPDATE OR DELETE ON inventory_ledger
            FOR EACH ROW EXECUTE FUNCTION fn_reject_ledger_mutation();
    """)
    op.execute("COMMENT ON TABLE inventory_ledger IS 'Inventory ledger, append-only. signed_delta is the on_hand change.';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS inventory_ledger CASCADE;")
    op.execute("DROP TABLE IF EXISTS inventory_records CASCADE;")
