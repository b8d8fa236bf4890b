"""Pure wallet ledger rules: credit/debit arithmetic, invariants, replay."""

from collections.abc import Iterable
from dataclasses import replace

from src.ff_common.enums import WalletTxnType
from src.ff_common.errors import InsufficientBalanceError, InvalidAmountError
from src.ff_wallet.domain.models import WalletAccount, WalletEntryDraft, WalletTransaction


def validate_amount(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError(amount)


def credit_account(
    account: WalletAccount, amount: int, reason: str, reference_id: str | None
) -> tuple[WalletAccount, WalletEntryDraft]:
    updated = replace(
        account,
        balance=account.balance + amount,
        total_credited=account.total_credited + amount,
    )
    return updated, WalletEntryDraft(WalletTxnType.CREDIT.value, amount, reason, reference_id)


def debit_account(
    account: WalletAccount, amount: int, reason: str, reference_id: str | None
) -> tuple[WalletAccount, WalletEntryDraft]:
    """Check-then-subtract. Must run under the ledger lock."""
    if account.balance < amount:
        raise InsufficientBalanceError(amount, account.balance)
    updated = replace(
        account,
        balance=account.balance - amount,
        total_debited=account.total_debited + amount,
    )
    return updated, WalletEntryDraft(WalletTxnType.DEBIT.value, amount, reason, reference_id)


def check_account_invariants(account: WalletAccount) -> list[str]:
    violations: list[str] = []
    if account.balance < 0:
        violations.append(f"balance {account.balance} < 0 for brand {account.brand_id}")
    if account.balance != account.total_credited - account.total_debited:
        violations.append(
            f"balance {account.balance} != credited {account.total_credited}"
            f" - debited {account.total_debited} for brand {account.brand_id}"
        )
    return violations


def replay_balance(entries: Iterable[WalletTransaction]) -> tuple[int, list[str]]:
    """Replay entries oldest-first. Returns (balance, chain violations).

    Each entry's resulting_balance must equal the previous resulting balance
    plus/minus its amount.
    """
    balance = 0
    violations: list[str] = []
    for entry in entries:
        balance += entry.signed_amount
        if balance < 0:
            violations.append(f"entry {entry.id}: replayed balance went negative ({balance})")
        if entry.resulting_balance != balance:
            violations.append(
                f"entry {entry.id}: resulting_balance {entry.resulting_balance}"
                f" != replayed {balance}"
            )
    return balance, violations
