"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory store that conforms to this Protocol.
Infrastructure layer provides the PostgreSQL implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_wallet.domain.models import WalletAccount, WalletEntryDraft, WalletTransaction


class WalletRepositoryProtocol(Protocol):
    # --- LedgerStore ---
    async def get(self, db: AsyncSession, key: str) -> WalletAccount | None: ...

    async def lock(self, db: AsyncSession, key: str) -> WalletAccount: ...

    async def save(
        self, db: AsyncSession, previous: WalletAccount, current: WalletAccount
    ) -> WalletAccount: ...

    async def append(
        self, db: AsyncSession, draft: WalletEntryDraft, snapshot: WalletAccount
    ) -> WalletTransaction: ...

    # --- queries ---
    async def find_debit_by_reference(
        self, db: AsyncSession, brand_id: str, reference_id: str
    ) -> WalletTransaction | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        brand_id: str,
        cursor_id: int | None,
        limit: int,
        txn_type: str | None,
    ) -> list[WalletTransaction]: ...

    async def list_all_transactions(
        self, db: AsyncSession, brand_id: str
    ) -> list[WalletTransaction]: ...
