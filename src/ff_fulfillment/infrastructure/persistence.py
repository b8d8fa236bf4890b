"""FulfillmentRecordRepository: one state-machine row per (brand_id, reference_id)."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.enums import FulfillmentState
from src.ff_common.errors import InternalError
from src.ff_fulfillment.domain.models import FulfillmentRecord

_RECORD_COLUMNS = (
    "reference_id, brand_id, state, final_total, carrier_cost, awb_number, tracking_url,"
    " error, error_code, created_at, updated_at"
)

_GET_RECORD_SQL = text(f"""
    SELECT {_RECORD_COLUMNS}
    FROM fulfillment_records
    WHERE brand_id = :brand_id AND reference_id = :reference_id
""")

_UPSERT_RECORD_SQL = text(f"""
    INSERT INTO fulfillment_records
        (reference_id, brand_id, state, final_total, carrier_cost, awb_number,
         tracking_url, error, error_code)
    VALUES
        (:reference_id, :brand_id, :state, :final_total, :carrier_cost, :awb_number,
         :tracking_url, :error, :error_code)
    ON CONFLICT (brand_id, reference_id) DO UPDATE
        SET state        = EXCLUDED.state,
            final_total  = EXCLUDED.final_total,
            carrier_cost = EXCLUDED.carrier_cost,
            awb_number   = EXCLUDED.awb_number,
            tracking_url = EXCLUDED.tracking_url,
            error        = EXCLUDED.error,
            error_code   = EXCLUDED.error_code,
            updated_at   = NOW()
    RETURNING {_RECORD_COLUMNS}
""")


def _row_to_record(row: object) -> FulfillmentRecord:
    return FulfillmentRecord(
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        brand_id=row.brand_id,  # type: ignore[attr-defined]
        state=FulfillmentState(row.state),  # type: ignore[attr-defined]
        final_total=row.final_total,  # type: ignore[attr-defined]
        carrier_cost=row.carrier_cost,  # type: ignore[attr-defined]
        awb_number=row.awb_number,  # type: ignore[attr-defined]
        tracking_url=row.tracking_url,  # type: ignore[attr-defined]
        error=row.error,  # type: ignore[attr-defined]
        error_code=row.error_code,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class FulfillmentRecordRepository:
    async def get(
        self, db: AsyncSession, brand_id: str, reference_id: str
    ) -> FulfillmentRecord | None:
        result = await db.execute(
            _GET_RECORD_SQL, {"brand_id": brand_id, "reference_id": reference_id}
        )
        row = result.fetchone()
        return _row_to_record(row) if row else None

    async def upsert(self, db: AsyncSession, record: FulfillmentRecord) -> FulfillmentRecord:
        result = await db.execute(
            _UPSERT_RECORD_SQL,
            {
                "reference_id": record.reference_id,
                "brand_id": record.brand_id,
                "state": record.state.value,
                "final_total": record.final_total,
                "carrier_cost": record.carrier_cost,
                "awb_number": record.awb_number,
                "tracking_url": record.tracking_url,
                "error": record.error,
                "error_code": record.error_code,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Fulfillment record upsert returned no rows")
        return _row_to_record(row)
