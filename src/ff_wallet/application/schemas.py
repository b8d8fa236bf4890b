"""Pydantic schemas for ff_wallet API."""

from pydantic import BaseModel, Field

from src.ff_common.datetime_utils import to_iso
from src.ff_common.enums import WalletReason
from src.ff_common.paise import paise_to_display
from src.ff_wallet.domain.models import (
    ReconciliationReport,
    WalletAccount,
    WalletMutation,
    WalletTransaction,
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreditRequest(BaseModel):
    amount_paise: int = Field(..., gt=0, description="Amount to credit in paise")
    reason: WalletReason = WalletReason.RECHARGE
    reference_id: str | None = Field(None, max_length=128)


class DebitRequest(BaseModel):
    amount_paise: int = Field(..., gt=0, description="Amount to debit in paise")
    reason: WalletReason = WalletReason.ADMIN_ADJUSTMENT
    reference_id: str | None = Field(None, max_length=128)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    brand_id: str
    balance_paise: int
    balance_display: str
    total_credited_paise: int
    total_debited_paise: int

    @classmethod
    def from_domain(cls, account: WalletAccount) -> "BalanceResponse":
        return cls(
            brand_id=account.brand_id,
            balance_paise=account.balance,
            balance_display=paise_to_display(account.balance),
            total_credited_paise=account.total_credited,
            total_debited_paise=account.total_debited,
        )


class MutationResponse(BaseModel):
    balance_paise: int
    balance_display: str
    amount_paise: int
    amount_display: str
    transaction_id: int

    @classmethod
    def from_domain(cls, mutation: WalletMutation) -> "MutationResponse":
        return cls(
            balance_paise=mutation.new_balance,
            balance_display=paise_to_display(mutation.new_balance),
            amount_paise=mutation.transaction.amount,
            amount_display=paise_to_display(mutation.transaction.amount),
            transaction_id=mutation.transaction_id,
        )


class TransactionItem(BaseModel):
    id: int
    txn_type: str
    amount_paise: int
    amount_display: str
    reason: str
    reference_id: str | None
    resulting_balance_paise: int
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, txn: WalletTransaction) -> "TransactionItem":
        return cls(
            id=txn.id,
            txn_type=txn.txn_type,
            amount_paise=txn.amount,
            amount_display=paise_to_display(txn.amount),
            reason=txn.reason,
            reference_id=txn.reference_id,
            resulting_balance_paise=txn.resulting_balance,
            created_at=to_iso(txn.created_at),
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class ReconciliationResponse(BaseModel):
    brand_id: str
    consistent: bool
    snapshot_balance_paise: int
    replayed_balance_paise: int
    entry_count: int
    violations: list[str]

    @classmethod
    def from_domain(cls, report: ReconciliationReport) -> "ReconciliationResponse":
        return cls(
            brand_id=report.brand_id,
            consistent=report.consistent,
            snapshot_balance_paise=report.snapshot_balance,
            replayed_balance_paise=report.replayed_balance,
            entry_count=report.entry_count,
            violations=list(report.violations),
        )
