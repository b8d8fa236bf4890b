"""WalletRepository: PostgreSQL implementation of WalletRepositoryProtocol.

Snapshot writes are version-guarded: `UPDATE ... WHERE version = :version`.
Zero rows updated means the row changed under a held lock, which can only
be a bug or an out-of-band write, so it surfaces as InvariantViolationError.

Transaction ownership: the Ledger (application layer) commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.enums import WalletTxnType
from src.ff_common.errors import DuplicateReferenceError, InternalError, InvariantViolationError
from src.ff_wallet.domain.models import WalletAccount, WalletEntryDraft, WalletTransaction

_ACCOUNT_COLUMNS = (
    "brand_id, balance, total_credited, total_debited, version, created_at, updated_at"
)
_TXN_COLUMNS = (
    "id, brand_id, txn_type, amount, reason, reference_id, resulting_balance, created_at"
)

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM wallet_accounts
    WHERE brand_id = :brand_id
""")

_ENSURE_ACCOUNT_SQL = text("""
    INSERT INTO wallet_accounts (brand_id)
    VALUES (:brand_id)
    ON CONFLICT (brand_id) DO NOTHING
""")

_LOCK_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM wallet_accounts
    WHERE brand_id = :brand_id
    FOR UPDATE
""")

_SAVE_ACCOUNT_SQL = text(f"""
    UPDATE wallet_accounts
    SET balance        = :balance,
        total_credited = :total_credited,
        total_debited  = :total_debited,
        version        = version + 1,
        updated_at     = NOW()
    WHERE brand_id = :brand_id AND version = :version
    RETURNING {_ACCOUNT_COLUMNS}
""")

_INSERT_TXN_SQL = text(f"""
    INSERT INTO wallet_transactions
        (brand_id, txn_type, amount, reason, reference_id, resulting_balance)
    VALUES
        (:brand_id, :txn_type, :amount, :reason, :reference_id, :resulting_balance)
    RETURNING {_TXN_COLUMNS}
""")

_FIND_DEBIT_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM wallet_transactions
    WHERE brand_id = :brand_id AND reference_id = :reference_id AND txn_type = 'DEBIT'
    LIMIT 1
""")

_LIST_TXN_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM wallet_transactions
    WHERE brand_id = :brand_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:txn_type AS TEXT) IS NULL OR txn_type = :txn_type)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_ALL_TXN_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM wallet_transactions
    WHERE brand_id = :brand_id
    ORDER BY id ASC
""")


def _row_to_account(row: object) -> WalletAccount:
    return WalletAccount(
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        total_credited=row.total_credited,  # type: ignore[attr-defined]
        total_debited=row.total_debited,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_txn(row: object) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,  # type: ignore[attr-defined]
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        txn_type=row.txn_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        resulting_balance=row.resulting_balance,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class WalletRepository:
    """Concrete LedgerStore for wallet accounts plus read queries."""

    async def get(self, db: AsyncSession, key: str) -> WalletAccount | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"brand_id": key})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock(self, db: AsyncSession, key: str) -> WalletAccount:
        # Accounts are created lazily; a zero row for a failed debit is rolled back.
        await db.execute(_ENSURE_ACCOUNT_SQL, {"brand_id": key})
        result = await db.execute(_LOCK_ACCOUNT_SQL, {"brand_id": key})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Wallet account missing after upsert for brand {key}")
        return _row_to_account(row)

    async def save(
        self, db: AsyncSession, previous: WalletAccount, current: WalletAccount
    ) -> WalletAccount:
        result = await db.execute(
            _SAVE_ACCOUNT_SQL,
            {
                "brand_id": current.brand_id,
                "balance": current.balance,
                "total_credited": current.total_credited,
                "total_debited": current.total_debited,
                "version": previous.version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InvariantViolationError(
                f"wallet {current.brand_id} changed concurrently (version {previous.version})"
            )
        return _row_to_account(row)

    async def append(
        self, db: AsyncSession, draft: WalletEntryDraft, snapshot: WalletAccount
    ) -> WalletTransaction:
        try:
            result = await db.execute(
                _INSERT_TXN_SQL,
                {
                    "brand_id": snapshot.brand_id,
                    "txn_type": draft.txn_type,
                    "amount": draft.amount,
                    "reason": draft.reason,
                    "reference_id": draft.reference_id,
                    "resulting_balance": snapshot.balance,
                },
            )
        except IntegrityError as exc:
            # uq_wallet_debit_reference: another process debited this reference first
            if draft.txn_type == WalletTxnType.DEBIT.value and draft.reference_id:
                raise DuplicateReferenceError(draft.reference_id) from exc
            raise
        row = result.fetchone()
        if row is None:
            raise InternalError("Wallet transaction insert returned no rows")
        return _row_to_txn(row)

    async def find_debit_by_reference(
        self, db: AsyncSession, brand_id: str, reference_id: str
    ) -> WalletTransaction | None:
        result = await db.execute(
            _FIND_DEBIT_SQL, {"brand_id": brand_id, "reference_id": reference_id}
        )
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def list_transactions(
        self,
        db: AsyncSession,
        brand_id: str,
        cursor_id: int | None,
        limit: int,
        txn_type: str | None,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TXN_SQL,
            {
                "brand_id": brand_id,
                "cursor_id": cursor_id,
                "limit": limit,
                "txn_type": txn_type,
            },
        )
        return [_row_to_txn(row) for row in result.fetchall()]

    async def list_all_transactions(
        self, db: AsyncSession, brand_id: str
    ) -> list[WalletTransaction]:
        result = await db.execute(_LIST_ALL_TXN_SQL, {"brand_id": brand_id})
        return [_row_to_txn(row) for row in result.fetchall()]
