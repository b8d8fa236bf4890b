"""002: create wallet_accounts and wallet_transactions

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallet_accounts (
            brand_id        VARCHAR(64) PRIMARY KEY,
            balance         BIGINT      NOT NULL DEFAULT 0,
            total_credited  BIGINT      NOT NULL DEFAULT 0,
            total_debited   BIGINT      NOT NULL DEFAULT 0,
            version         BIGINT      NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_balance_gte_0 CHECK (balance >= 0),
            CONSTRAINT ck_wallet_balance_identity
                CHECK (balance = total_credited - total_debited),
            CONSTRAINT ck_wallet_totals_gte_0
                CHECK (total_credited >= 0 AND total_debited >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_accounts_updated_at
            BEFORE UPDATE ON wallet_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("""
        CREATE TABLE wallet_transactions (
            id                  BIGSERIAL    PRIMARY KEY,
            brand_id            VARCHAR(64)  NOT NULL REFERENCES wallet_accounts (brand_id),
            txn_type            VARCHAR(10)  NOT NULL,
            amount              BIGINT       NOT NULL,
            reason              VARCHAR(32)  NOT NULL,
            reference_id        VARCHAR(128),
            resulting_balance   BIGINT       NOT NULL,
            created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallet_txn_type CHECK (txn_type IN ('CREDIT', 'DEBIT')),
            CONSTRAINT ck_wallet_txn_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_wallet_txn_balance_gte_0 CHECK (resulting_balance >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_wallet_txn_brand ON wallet_transactions (brand_id, id DESC);")
    # At most one DEBIT per (brand, reference): the idempotency backstop.
    op.execute("""
        CREATE UNIQUE INDEX uq_wallet_debit_reference
        ON wallet_transactions (brand_id, reference_id)
        WHERE txn_type = 'DEBIT' AND reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_wallet_transactions_append_only
            BEFORE UPDATE OR DELETE ON wallet_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_ledger_mutation();
    """)
    op.execute("COMMENT ON TABLE wallet_transactions IS 'Wallet ledger, append-only. Amounts in paise.';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallet_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallet_accounts CASCADE;")
