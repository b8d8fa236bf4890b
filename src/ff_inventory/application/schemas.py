"""Pydantic schemas for ff_inventory API."""

from pydantic import BaseModel, Field

from src.ff_common.datetime_utils import to_iso
from src.ff_common.enums import AdjustmentType, Bucket
from src.ff_inventory.domain.models import (
    AdjustmentResult,
    InventoryLedgerEntry,
    InventoryRecord,
    ReplayReport,
    TransferResult,
)


class AdjustRequest(BaseModel):
    adjustment_type: AdjustmentType
    quantity: int = Field(..., ge=0)
    reason: str | None = Field(None, max_length=500)
    actor_id: str | None = Field(None, max_length=64)


class TransferRequest(BaseModel):
    from_bucket: Bucket
    to_bucket: Bucket
    quantity: int = Field(..., gt=0)
    reference_note: str | None = Field(None, max_length=500)
    actor_id: str | None = Field(None, max_length=64)


class RecordResponse(BaseModel):
    brand_id: str
    part_id: str
    on_hand: int
    available: int
    reserved: int
    defective: int
    quarantine: int
    in_transit: int
    last_restocked_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, record: InventoryRecord) -> "RecordResponse":
        return cls(
            brand_id=record.brand_id,
            part_id=record.part_id,
            on_hand=record.on_hand,
            available=record.available,
            reserved=record.reserved,
            defective=record.defective,
            quarantine=record.quarantine,
            in_transit=record.in_transit,
            last_restocked_at=to_iso(record.last_restocked_at),
            updated_at=to_iso(record.updated_at),
        )


class LedgerEntryItem(BaseModel):
    id: int
    action_type: str
    quantity: int
    signed_delta: int
    source: str
    destination: str
    reference_note: str | None
    created_by: str | None
    created_at: str

    @classmethod
    def from_domain(cls, entry: InventoryLedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            action_type=entry.action_type,
            quantity=entry.quantity,
            signed_delta=entry.signed_delta,
            source=entry.source,
            destination=entry.destination,
            reference_note=entry.reference_note,
            created_by=entry.created_by,
            created_at=to_iso(entry.created_at),
        )


class AdjustResponse(BaseModel):
    record: RecordResponse
    entry: LedgerEntryItem
    requested_quantity: int
    clamped: bool

    @classmethod
    def from_domain(cls, result: AdjustmentResult) -> "AdjustResponse":
        return cls(
            record=RecordResponse.from_domain(result.record),
            entry=LedgerEntryItem.from_domain(result.entry),
            requested_quantity=result.requested_quantity,
            clamped=result.clamped,
        )


class TransferResponse(BaseModel):
    record: RecordResponse
    entry: LedgerEntryItem

    @classmethod
    def from_domain(cls, result: TransferResult) -> "TransferResponse":
        return cls(
            record=RecordResponse.from_domain(result.record),
            entry=LedgerEntryItem.from_domain(result.entry),
        )


class LedgerListResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class BucketCounts(BaseModel):
    on_hand: int
    available: int
    reserved: int
    defective: int
    quarantine: int
    in_transit: int

    @classmethod
    def from_domain(cls, record: InventoryRecord) -> "BucketCounts":
        return cls(
            on_hand=record.on_hand,
            available=record.available,
            reserved=record.reserved,
            defective=record.defective,
            quarantine=record.quarantine,
            in_transit=record.in_transit,
        )


class ReplayResponse(BaseModel):
    consistent: bool
    snapshot: BucketCounts
    replayed: BucketCounts
    mismatched_buckets: list[str]
    entry_count: int
    violations: list[str]

    @classmethod
    def from_domain(cls, report: ReplayReport) -> "ReplayResponse":
        return cls(
            consistent=report.consistent,
            snapshot=BucketCounts.from_domain(report.snapshot),
            replayed=BucketCounts.from_domain(report.replayed),
            mismatched_buckets=list(report.mismatched_buckets),
            entry_count=report.entry_count,
            violations=list(report.violations),
        )
