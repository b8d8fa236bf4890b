"""InventoryRepository: PostgreSQL implementation of InventoryRepositoryProtocol.

Same discipline as the wallet store: lazy row creation, SELECT ... FOR UPDATE,
version-guarded UPDATE. The CHECK constraints on inventory_records mirror
check_record_invariants.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.errors import InternalError, InvariantViolationError
from src.ff_inventory.domain.models import (
    InventoryEntryDraft,
    InventoryLedgerEntry,
    InventoryRecord,
)
from src.ff_inventory.domain.repository import RecordKey

_RECORD_COLUMNS = (
    "brand_id, part_id, on_hand, available, reserved, defective, quarantine,"
    " in_transit, version, last_restocked_at, updated_at"
)
_ENTRY_COLUMNS = (
    "id, brand_id, part_id, action_type, quantity, signed_delta, source,"
    " destination, reference_note, created_by, created_at"
)

_GET_RECORD_SQL = text(f"""
    SELECT {_RECORD_COLUMNS}
    FROM inventory_records
    WHERE brand_id = :brand_id AND part_id = :part_id
""")

_ENSURE_RECORD_SQL = text("""
    INSERT INTO inventory_records (brand_id, part_id)
    VALUES (:brand_id, :part_id)
    ON CONFLICT (brand_id, part_id) DO NOTHING
""")

_LOCK_RECORD_SQL = text(f"""
    SELECT {_RECORD_COLUMNS}
    FROM inventory_records
    WHERE brand_id = :brand_id AND part_id = :part_id
    FOR UPDATE
""")

_SAVE_RECORD_SQL = text(f"""
    UPDATE inventory_records
    SET on_hand           = :on_hand,
        available         = :available,
        reserved          = :reserved,
        defective         = :defective,
        quarantine        = :quarantine,
        in_transit        = :in_transit,
        last_restocked_at = :last_restocked_at,
        version           = version + 1,
        updated_at        = NOW()
    WHERE brand_id = :brand_id AND part_id = :part_id AND version = :version
    RETURNING {_RECORD_COLUMNS}
""")

_INSERT_ENTRY_SQL = text(f"""
    INSERT INTO inventory_ledger
        (brand_id, part_id, action_type, quantity, signed_delta,
         source, destination, reference_note, created_by)
    VALUES
        (:brand_id, :part_id, :action_type, :quantity, :signed_delta,
         :source, :destination, :reference_note, :created_by)
    RETURNING {_ENTRY_COLUMNS}
""")

_LIST_ENTRIES_SQL = text(f"""
    SELECT {_ENTRY_COLUMNS}
    FROM inventory_ledger
    WHERE brand_id = :brand_id AND part_id = :part_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_ALL_ENTRIES_SQL = text(f"""
    SELECT {_ENTRY_COLUMNS}
    FROM inventory_ledger
    WHERE brand_id = :brand_id AND part_id = :part_id
    ORDER BY id ASC
""")


def _row_to_record(row: object) -> InventoryRecord:
    return InventoryRecord(
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        part_id=row.part_id,  # type: ignore[attr-defined]
        on_hand=row.on_hand,  # type: ignore[attr-defined]
        available=row.available,  # type: ignore[attr-defined]
        reserved=row.reserved,  # type: ignore[attr-defined]
        defective=row.defective,  # type: ignore[attr-defined]
        quarantine=row.quarantine,  # type: ignore[attr-defined]
        in_transit=row.in_transit,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        last_restocked_at=row.last_restocked_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_entry(row: object) -> InventoryLedgerEntry:
    return InventoryLedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        part_id=row.part_id,  # type: ignore[attr-defined]
        action_type=row.action_type,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        signed_delta=row.signed_delta,  # type: ignore[attr-defined]
        source=row.source,  # type: ignore[attr-defined]
        destination=row.destination,  # type: ignore[attr-defined]
        reference_note=row.reference_note,  # type: ignore[attr-defined]
        created_by=row.created_by,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _key_params(key: RecordKey) -> dict[str, str]:
    brand_id, part_id = key
    return {"brand_id": brand_id, "part_id": part_id}


class InventoryRepository:
    async def get(self, db: AsyncSession, key: RecordKey) -> InventoryRecord | None:
        result = await db.execute(_GET_RECORD_SQL, _key_params(key))
        row = result.fetchone()
        return _row_to_record(row) if row else None

    async def lock(self, db: AsyncSession, key: RecordKey) -> InventoryRecord:
        await db.execute(_ENSURE_RECORD_SQL, _key_params(key))
        result = await db.execute(_LOCK_RECORD_SQL, _key_params(key))
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Inventory record missing after upsert for {key}")
        return _row_to_record(row)

    async def save(
        self, db: AsyncSession, previous: InventoryRecord, current: InventoryRecord
    ) -> InventoryRecord:
        result = await db.execute(
            _SAVE_RECORD_SQL,
            {
                **_key_params(current.key),
                "on_hand": current.on_hand,
                "available": current.available,
                "reserved": current.reserved,
                "defective": current.defective,
                "quarantine": current.quarantine,
                "in_transit": current.in_transit,
                "last_restocked_at": current.last_restocked_at,
                "version": previous.version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InvariantViolationError(
                f"inventory {current.key} changed concurrently (version {previous.version})"
            )
        return _row_to_record(row)

    async def append(
        self, db: AsyncSession, draft: InventoryEntryDraft, snapshot: InventoryRecord
    ) -> InventoryLedgerEntry:
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                **_key_params(snapshot.key),
                "action_type": draft.action_type,
                "quantity": draft.quantity,
                "signed_delta": draft.signed_delta,
                "source": draft.source,
                "destination": draft.destination,
                "reference_note": draft.reference_note,
                "created_by": draft.created_by,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Inventory ledger insert returned no rows")
        return _row_to_entry(row)

    async def list_ledger(
        self,
        db: AsyncSession,
        key: RecordKey,
        cursor_id: int | None,
        limit: int,
    ) -> list[InventoryLedgerEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL, {**_key_params(key), "cursor_id": cursor_id, "limit": limit}
        )
        return [_row_to_entry(row) for row in result.fetchall()]

    async def list_all_entries(
        self, db: AsyncSession, key: RecordKey
    ) -> list[InventoryLedgerEntry]:
        result = await db.execute(_LIST_ALL_ENTRIES_SQL, _key_params(key))
        return [_row_to_entry(row) for row in result.fetchall()]
