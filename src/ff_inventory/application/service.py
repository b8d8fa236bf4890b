"""InventoryService: bucket counts per (brand, part) on the generic Ledger."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.datetime_utils import utc_now
from src.ff_common.enums import AdjustmentType
from src.ff_common.errors import InvalidQuantityError, InventoryRecordNotFoundError
from src.ff_common.pagination import cursor_decode, cursor_encode
from src.ff_inventory.application.schemas import LedgerEntryItem, LedgerListResponse
from src.ff_inventory.domain.models import (
    AdjustmentResult,
    InventoryRecord,
    ReplayReport,
    TransferResult,
)
from src.ff_inventory.domain.repository import InventoryRepositoryProtocol
from src.ff_inventory.domain.rules import (
    adjust_record,
    check_record_invariants,
    parse_bucket,
    replay_buckets,
    transfer_record,
)
from src.ff_inventory.infrastructure.persistence import InventoryRepository
from src.ff_ledger.locks import KeyedLocks
from src.ff_ledger.ledger import Ledger

logger = logging.getLogger(__name__)


class InventoryService:
    def __init__(
        self,
        repo: InventoryRepositoryProtocol | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo: InventoryRepositoryProtocol = repo or InventoryRepository()
        self._ledger = Ledger("inventory", self._repo, check_record_invariants, locks)

    async def get_record(self, db: AsyncSession, brand_id: str, part_id: str) -> InventoryRecord:
        record = await self._ledger.query(db, (brand_id, part_id))
        if record is None:
            raise InventoryRecordNotFoundError(brand_id, part_id)
        return record

    async def adjust(
        self,
        db: AsyncSession,
        brand_id: str,
        part_id: str,
        adjustment_type: AdjustmentType | str,
        quantity: int,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> AdjustmentResult:
        try:
            kind = AdjustmentType(adjustment_type)
        except ValueError:
            raise InvalidQuantityError(f"unknown adjustment type {adjustment_type!r}") from None
        if quantity < 0:
            raise InvalidQuantityError(f"quantity must be >= 0, got {quantity}")
        now = utc_now()

        record, entry = await self._ledger.apply(
            db,
            (brand_id, part_id),
            lambda current: adjust_record(current, kind, quantity, reason, actor_id, now),
        )
        clamped = kind is AdjustmentType.REMOVE and entry.quantity < quantity
        if clamped:
            logger.warning(
                "REMOVE clamped brand=%s part=%s requested=%d removed=%d",
                brand_id, part_id, quantity, entry.quantity,
            )
        logger.info(
            "Inventory %s brand=%s part=%s delta=%d on_hand=%d",
            kind.value, brand_id, part_id, entry.signed_delta, record.on_hand,
        )
        return AdjustmentResult(record, entry, requested_quantity=quantity, clamped=clamped)

    async def transfer(
        self,
        db: AsyncSession,
        brand_id: str,
        part_id: str,
        from_bucket: str,
        to_bucket: str,
        quantity: int,
        reference_note: str | None = None,
        actor_id: str | None = None,
    ) -> TransferResult:
        source = parse_bucket(from_bucket)
        destination = parse_bucket(to_bucket)
        key = (brand_id, part_id)

        async def _record_exists() -> None:
            if await self._repo.get(db, key) is None:
                raise InventoryRecordNotFoundError(brand_id, part_id)

        record, entry = await self._ledger.apply(
            db,
            key,
            lambda current: transfer_record(
                current, source, destination, quantity, reference_note, actor_id
            ),
            guard=_record_exists,
        )
        logger.info(
            "Inventory transfer brand=%s part=%s %s->%s qty=%d",
            brand_id, part_id, source.value, destination.value, quantity,
        )
        return TransferResult(record, entry)

    async def list_ledger(
        self,
        db: AsyncSession,
        brand_id: str,
        part_id: str,
        cursor: str | None,
        limit: int,
    ) -> LedgerListResponse:
        cursor_id = cursor_decode(cursor)
        entries = await self._repo.list_ledger(db, (brand_id, part_id), cursor_id, limit + 1)
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerListResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def replay(self, db: AsyncSession, brand_id: str, part_id: str) -> ReplayReport:
        """Rebuild every bucket from the ledger and compare with the snapshot."""
        record = await self.get_record(db, brand_id, part_id)
        entries = await self._repo.list_all_entries(db, (brand_id, part_id))
        replayed, violations = replay_buckets(brand_id, part_id, entries)
        report = ReplayReport(
            snapshot=record,
            replayed=replayed,
            entry_count=len(entries),
            violations=tuple(violations),
        )
        if not report.consistent:
            logger.error(
                "Inventory drift brand=%s part=%s buckets=%s violations=%s",
                brand_id, part_id, ",".join(report.mismatched_buckets), violations,
            )
        return report


_inventory_service: InventoryService | None = None


def get_inventory_service() -> InventoryService:
    global _inventory_service  # noqa: PLW0603
    if _inventory_service is None:
        _inventory_service = InventoryService()
    return _inventory_service
