"""WalletService: prepaid brand balance on top of the generic Ledger.

Every balance change goes through Ledger.apply: per-brand lock, row lock,
check-then-subtract, version-guarded save and transaction append in one
commit. check_balance is advisory only; admission is decided by debit.
"""

import logging
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.errors import DuplicateReferenceError, InsufficientBalanceError
from src.ff_common.pagination import cursor_decode, cursor_encode
from src.ff_ledger.ledger import Ledger
from src.ff_ledger.locks import KeyedLocks
from src.ff_wallet.application.schemas import TransactionItem, TransactionListResponse
from src.ff_wallet.domain.models import (
    BalanceCheck,
    DebitDecision,
    ReconciliationReport,
    WalletAccount,
    WalletMutation,
)
from src.ff_wallet.domain.repository import WalletRepositoryProtocol
from src.ff_wallet.domain.rules import (
    check_account_invariants,
    credit_account,
    debit_account,
    replay_balance,
    validate_amount,
)
from src.ff_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class WalletService:
    def __init__(
        self,
        repo: WalletRepositoryProtocol | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()
        self._ledger = Ledger("wallet", self._repo, check_account_invariants, locks)

    async def get_account(self, db: AsyncSession, brand_id: str) -> WalletAccount:
        account = await self._ledger.query(db, brand_id)
        if account is None:
            return WalletAccount(brand_id, 0, 0, 0, 0)
        return account

    async def get_balance(self, db: AsyncSession, brand_id: str) -> int:
        return (await self.get_account(db, brand_id)).balance

    async def check_balance(self, db: AsyncSession, brand_id: str, amount: int) -> BalanceCheck:
        balance = await self.get_balance(db, brand_id)
        return BalanceCheck(
            sufficient=balance >= amount,
            current_balance=balance,
            shortfall=max(0, amount - balance),
        )

    async def credit(
        self,
        db: AsyncSession,
        brand_id: str,
        amount: int,
        reason: str,
        reference_id: str | None = None,
    ) -> WalletMutation:
        validate_amount(amount)
        account, txn = await self._ledger.apply(
            db,
            brand_id,
            partial(credit_account, amount=amount, reason=reason, reference_id=reference_id),
        )
        logger.info(
            "Wallet credit brand=%s amount=%d reason=%s ref=%s balance=%d",
            brand_id, amount, reason, reference_id, account.balance,
        )
        return WalletMutation(account.balance, txn.id, txn)

    async def debit(
        self,
        db: AsyncSession,
        brand_id: str,
        amount: int,
        reason: str,
        reference_id: str | None = None,
    ) -> WalletMutation:
        """Atomic check-then-subtract.

        Raises InsufficientBalanceError when balance < amount and
        DuplicateReferenceError when reference_id was already debited.
        """
        validate_amount(amount)

        async def _no_prior_debit() -> None:
            if reference_id and await self._repo.find_debit_by_reference(
                db, brand_id, reference_id
            ):
                raise DuplicateReferenceError(reference_id)

        account, txn = await self._ledger.apply(
            db,
            brand_id,
            partial(debit_account, amount=amount, reason=reason, reference_id=reference_id),
            guard=_no_prior_debit,
        )
        logger.info(
            "Wallet debit brand=%s amount=%d reason=%s ref=%s balance=%d",
            brand_id, amount, reason, reference_id, account.balance,
        )
        return WalletMutation(account.balance, txn.id, txn)

    async def debit_or_reject(
        self,
        db: AsyncSession,
        brand_id: str,
        amount: int,
        reason: str,
        reference_id: str | None = None,
    ) -> DebitDecision:
        """debit() with the expected business outcomes folded into a decision."""
        try:
            mutation = await self.debit(db, brand_id, amount, reason, reference_id)
        except InsufficientBalanceError as exc:
            logger.info(
                "Wallet debit rejected brand=%s amount=%d shortfall=%d",
                brand_id, amount, exc.shortfall,
            )
            return DebitDecision(
                admitted=False, shortfall=exc.shortfall, current_balance=exc.available
            )
        except DuplicateReferenceError:
            return DebitDecision(admitted=False, duplicate=True)
        return DebitDecision(
            admitted=True, mutation=mutation, current_balance=mutation.new_balance
        )

    async def list_transactions(
        self,
        db: AsyncSession,
        brand_id: str,
        cursor: str | None,
        limit: int,
        txn_type: str | None,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        txns = await self._repo.list_transactions(db, brand_id, cursor_id, limit + 1, txn_type)
        has_more = len(txns) > limit
        page = txns[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(
            items=[TransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def reconcile(self, db: AsyncSession, brand_id: str) -> ReconciliationReport:
        """Replay the transaction log and compare with the snapshot."""
        account = await self.get_account(db, brand_id)
        entries = await self._repo.list_all_transactions(db, brand_id)
        replayed, violations = replay_balance(entries)
        violations.extend(check_account_invariants(account))
        report = ReconciliationReport(
            brand_id=brand_id,
            snapshot_balance=account.balance,
            replayed_balance=replayed,
            entry_count=len(entries),
            violations=tuple(violations),
        )
        if not report.consistent:
            logger.error(
                "Wallet drift brand=%s snapshot=%d replayed=%d violations=%s",
                brand_id, account.balance, replayed, violations,
            )
        return report


_wallet_service: WalletService | None = None


def get_wallet_service() -> WalletService:
    global _wallet_service  # noqa: PLW0603
    if _wallet_service is None:
        _wallet_service = WalletService()
    return _wallet_service
