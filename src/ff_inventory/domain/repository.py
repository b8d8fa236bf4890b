"""Repository Protocol for inventory records and their ledger."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_inventory.domain.models import (
    InventoryEntryDraft,
    InventoryLedgerEntry,
    InventoryRecord,
)

RecordKey = tuple[str, str]  # (brand_id, part_id)


class InventoryRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, key: RecordKey) -> InventoryRecord | None: ...

    async def lock(self, db: AsyncSession, key: RecordKey) -> InventoryRecord: ...

    async def save(
        self, db: AsyncSession, previous: InventoryRecord, current: InventoryRecord
    ) -> InventoryRecord: ...

    async def append(
        self, db: AsyncSession, draft: InventoryEntryDraft, snapshot: InventoryRecord
    ) -> InventoryLedgerEntry: ...

    async def list_ledger(
        self,
        db: AsyncSession,
        key: RecordKey,
        cursor_id: int | None,
        limit: int,
    ) -> list[InventoryLedgerEntry]: ...

    async def list_all_entries(
        self, db: AsyncSession, key: RecordKey
    ) -> list[InventoryLedgerEntry]: ...
