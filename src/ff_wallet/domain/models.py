"""Domain models for ff_wallet: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WalletAccount:
    brand_id: str
    balance: int          # paise, never negative
    total_credited: int   # paise, monotonically non-decreasing
    total_debited: int    # paise, monotonically non-decreasing
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class WalletEntryDraft:
    txn_type: str         # WalletTxnType value
    amount: int           # paise, > 0
    reason: str
    reference_id: str | None = None


@dataclass(frozen=True)
class WalletTransaction:
    id: int               # BIGSERIAL, total order per brand
    brand_id: str
    txn_type: str
    amount: int
    reason: str
    reference_id: str | None
    resulting_balance: int
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.txn_type == "CREDIT" else -self.amount


@dataclass(frozen=True)
class WalletMutation:
    """Result of a successful credit or debit."""
    new_balance: int
    transaction_id: int
    transaction: WalletTransaction


@dataclass(frozen=True)
class BalanceCheck:
    """Advisory read. Never used to gate a later debit."""
    sufficient: bool
    current_balance: int
    shortfall: int


@dataclass(frozen=True)
class DebitDecision:
    """Outcome of debit_or_reject: admitted, rejected for funds, or a duplicate reference."""
    admitted: bool
    mutation: WalletMutation | None = None
    shortfall: int = 0
    current_balance: int = 0
    duplicate: bool = False


@dataclass(frozen=True)
class ReconciliationReport:
    brand_id: str
    snapshot_balance: int
    replayed_balance: int
    entry_count: int
    violations: tuple[str, ...] = ()

    @property
    def consistent(self) -> bool:
        return not self.violations and self.snapshot_balance == self.replayed_balance
