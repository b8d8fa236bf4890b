"""005: create fulfillment_records

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fulfillment_records (
            reference_id    VARCHAR(128) NOT NULL,
            brand_id        VARCHAR(64)  NOT NULL,
            state           VARCHAR(16)  NOT NULL,
            final_total     BIGINT       NOT NULL DEFAULT 0,
            carrier_cost    BIGINT,
            awb_number      VARCHAR(64),
            tracking_url    VARCHAR(500),
            error           VARCHAR(1000),
            error_code      INTEGER,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            PRIMARY KEY (brand_id, reference_id),
            CONSTRAINT ck_fulfillment_state CHECK (
                state IN ('PRICED', 'ADMITTED', 'BOOKED', 'SETTLED',
                          'REJECTED', 'COMPENSATED', 'FAILED')
            ),
            CONSTRAINT ck_fulfillment_settled_has_awb CHECK (
                state <> 'SETTLED' OR awb_number IS NOT NULL
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_fulfillment_records_updated_at
            BEFORE UPDATE ON fulfillment_records
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("CREATE INDEX idx_fulfillment_brand_state ON fulfillment_records (brand_id, state);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fulfillment_records CASCADE;")
