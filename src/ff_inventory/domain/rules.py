"""Pure inventory rules: typed adjustments, bucket transfers, invariants, replay."""

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from src.ff_common.enums import AdjustmentType, Bucket, InventoryActionType
from src.ff_common.errors import InsufficientBucketQuantityError, InvalidQuantityError
from src.ff_inventory.domain.models import (
    EXTERNAL,
    InventoryEntryDraft,
    InventoryLedgerEntry,
    InventoryRecord,
)

_HELD = (Bucket.RESERVED, Bucket.DEFECTIVE, Bucket.QUARANTINE)
_ACTION_FOR = {
    AdjustmentType.ADD: InventoryActionType.ADD,
    AdjustmentType.REMOVE: InventoryActionType.CONSUMED,
    AdjustmentType.SET: InventoryActionType.ADJUSTMENT,
}


def compute_available(on_hand: int, reserved: int, defective: int, quarantine: int) -> int:
    return max(0, on_hand - reserved - defective - quarantine)


def with_available(record: InventoryRecord) -> InventoryRecord:
    return replace(
        record,
        available=compute_available(
            record.on_hand, record.reserved, record.defective, record.quarantine
        ),
    )


def parse_bucket(value: str) -> Bucket:
    try:
        return Bucket(value.lower())
    except ValueError:
        raise InvalidQuantityError(f"unknown bucket {value!r}") from None


def adjust_record(
    record: InventoryRecord,
    adjustment_type: AdjustmentType,
    quantity: int,
    reason: str | None,
    actor_id: str | None,
    now: datetime,
) -> tuple[InventoryRecord, InventoryEntryDraft]:
    """ADD / REMOVE (clamped at zero) / SET (absolute) on on_hand."""
    if quantity < 0:
        raise InvalidQuantityError(f"quantity must be >= 0, got {quantity}")

    if adjustment_type is AdjustmentType.ADD:
        new_on_hand = record.on_hand + quantity
    elif adjustment_type is AdjustmentType.REMOVE:
        new_on_hand = max(0, record.on_hand - quantity)
    else:
        new_on_hand = quantity

    delta = new_on_hand - record.on_hand
    updated = with_available(replace(record, on_hand=new_on_hand))
    if adjustment_type is AdjustmentType.ADD and quantity > 0:
        updated = replace(updated, last_restocked_at=now)

    source, destination = (EXTERNAL, Bucket.ON_HAND.value)
    if delta < 0:
        source, destination = destination, source
    draft = InventoryEntryDraft(
        action_type=_ACTION_FOR[adjustment_type].value,
        quantity=abs(delta),
        signed_delta=delta,
        source=source,
        destination=destination,
        reference_note=reason,
        created_by=actor_id,
    )
    return updated, draft


def _bucket_count(record: InventoryRecord, bucket: Bucket) -> int:
    # Free stock is what an ON_HAND endpoint moves.
    if bucket is Bucket.ON_HAND:
        return record.available
    return getattr(record, bucket.value)


def _counts(record: InventoryRecord) -> dict[Bucket, int]:
    return {bucket: getattr(record, bucket.value) for bucket in Bucket}


def _with_counts(record: InventoryRecord, counts: dict[Bucket, int]) -> InventoryRecord:
    return with_available(replace(record, **{b.value: n for b, n in counts.items()}))


def _release(counts: dict[Bucket, int], bucket: Bucket, quantity: int) -> None:
    """Return quantity from `bucket` to free on_hand."""
    if bucket in _HELD:
        counts[bucket] -= quantity
    elif bucket is Bucket.IN_TRANSIT:
        counts[Bucket.IN_TRANSIT] -= quantity
        counts[Bucket.ON_HAND] += quantity


def _place(counts: dict[Bucket, int], bucket: Bucket, quantity: int) -> None:
    """Move quantity of free on_hand into `bucket`."""
    if bucket in _HELD:
        counts[bucket] += quantity
    elif bucket is Bucket.IN_TRANSIT:
        counts[Bucket.ON_HAND] -= quantity
        counts[Bucket.IN_TRANSIT] += quantity


def transfer_record(
    record: InventoryRecord,
    from_bucket: Bucket,
    to_bucket: Bucket,
    quantity: int,
    reference_note: str | None,
    actor_id: str | None,
) -> tuple[InventoryRecord, InventoryEntryDraft]:
    """Move quantity between buckets in two steps: release into free on_hand,
    then place into the destination."""
    if quantity <= 0:
        raise InvalidQuantityError(f"transfer quantity must be > 0, got {quantity}")
    if from_bucket is to_bucket:
        raise InvalidQuantityError(f"cannot transfer {from_bucket.value} into itself")

    source_count = _bucket_count(record, from_bucket)
    if source_count < quantity:
        raise InsufficientBucketQuantityError(from_bucket.value, quantity, source_count)

    counts = _counts(record)
    _release(counts, from_bucket, quantity)
    if to_bucket is Bucket.IN_TRANSIT and counts[Bucket.ON_HAND] < quantity:
        raise InsufficientBucketQuantityError(
            Bucket.ON_HAND.value, quantity, counts[Bucket.ON_HAND]
        )
    _place(counts, to_bucket, quantity)

    updated = _with_counts(record, counts)
    draft = InventoryEntryDraft(
        action_type=InventoryActionType.TRANSFER.value,
        quantity=quantity,
        signed_delta=updated.on_hand - record.on_hand,
        source=from_bucket.value,
        destination=to_bucket.value,
        reference_note=reference_note,
        created_by=actor_id,
    )
    return updated, draft


def check_record_invariants(record: InventoryRecord) -> list[str]:
    violations: list[str] = []
    for bucket in Bucket:
        count = getattr(record, bucket.value)
        if count < 0:
            violations.append(f"{bucket.value} {count} < 0 for {record.key}")
    expected = compute_available(
        record.on_hand, record.reserved, record.defective, record.quarantine
    )
    if record.available != expected:
        violations.append(
            f"available {record.available} != {expected} for {record.key}"
        )
    return violations


def replay_buckets(
    brand_id: str, part_id: str, entries: Iterable[InventoryLedgerEntry]
) -> tuple[InventoryRecord, list[str]]:
    """Replay entries oldest-first into an empty record. Returns (record, violations).

    ADD, CONSUMED and ADJUSTMENT move on_hand by signed_delta. TRANSFER
    re-applies the move named by source, destination and quantity, and its
    recorded signed_delta must match the on_hand change that move implies.
    """
    counts = {bucket: 0 for bucket in Bucket}
    violations: list[str] = []
    for entry in entries:
        if entry.action_type != InventoryActionType.TRANSFER.value:
            counts[Bucket.ON_HAND] += entry.signed_delta
        else:
            try:
                source, destination = Bucket(entry.source), Bucket(entry.destination)
            except ValueError:
                violations.append(
                    f"entry {entry.id}: unknown transfer {entry.source} -> {entry.destination}"
                )
                continue
            before = counts[Bucket.ON_HAND]
            _release(counts, source, entry.quantity)
            _place(counts, destination, entry.quantity)
            if counts[Bucket.ON_HAND] - before != entry.signed_delta:
                violations.append(
                    f"entry {entry.id}: signed_delta {entry.signed_delta}"
                    f" != replayed {counts[Bucket.ON_HAND] - before}"
                )
        negative = [bucket.value for bucket, count in counts.items() if count < 0]
        if negative:
            violations.append(f"entry {entry.id}: {', '.join(negative)} went negative")
    return _with_counts(InventoryRecord(brand_id, part_id), counts), violations
