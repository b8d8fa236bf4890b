"""Domain models for ff_inventory: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

EXTERNAL = "EXTERNAL"  # ledger endpoint for stock entering/leaving the system
BUCKET_FIELDS = ("on_hand", "available", "reserved", "defective", "quarantine", "in_transit")


@dataclass(frozen=True)
class InventoryRecord:
    """Bucket counts for one (brand, part).

    reserved/defective/quarantine are held portions of on_hand;
    in_transit sits outside on_hand. available is derived.
    """
    brand_id: str
    part_id: str
    on_hand: int = 0
    available: int = 0
    reserved: int = 0
    defective: int = 0
    quarantine: int = 0
    in_transit: int = 0
    version: int = 0
    last_restocked_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.brand_id, self.part_id

    @property
    def held(self) -> int:
        return self.reserved + self.defective + self.quarantine


@dataclass(frozen=True)
class InventoryEntryDraft:
    action_type: str
    quantity: int        # >= 0; magnitude actually applied
    signed_delta: int    # change to on_hand
    source: str
    destination: str
    reference_note: str | None = None
    created_by: str | None = None


@dataclass(frozen=True)
class InventoryLedgerEntry:
    id: int
    brand_id: str
    part_id: str
    action_type: str
    quantity: int
    signed_delta: int
    source: str
    destination: str
    reference_note: str | None
    created_by: str | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AdjustmentResult:
    record: InventoryRecord
    entry: InventoryLedgerEntry
    requested_quantity: int
    clamped: bool = False  # REMOVE asked for more than on_hand


@dataclass(frozen=True)
class TransferResult:
    record: InventoryRecord
    entry: InventoryLedgerEntry


@dataclass(frozen=True)
class ReplayReport:
    snapshot: InventoryRecord
    replayed: InventoryRecord
    entry_count: int
    violations: tuple[str, ...] = ()

    @property
    def mismatched_buckets(self) -> tuple[str, ...]:
        return tuple(
            name for name in BUCKET_FIELDS
            if getattr(self.snapshot, name) != getattr(self.replayed, name)
        )

    @property
    def consistent(self) -> bool:
        return not self.violations and not self.mismatched_buckets
