"""Unit tests for FulfillmentOrchestrator: admission, booking, compensation, replay."""

import asyncio
from dataclasses import replace

import pytest

from src.ff_common.enums import FulfillmentState
from src.ff_common.errors import (
    CarrierPermanentError,
    CarrierTransientError,
    CompensationFailedError,
)
from src.ff_fulfillment.application.orchestrator import FulfillmentOrchestrator
from src.ff_fulfillment.domain.models import CarrierBookingResult
from src.ff_ledger.locks import KeyedLocks
from src.ff_pricing.application.resolver import PricingResolver
from src.ff_pricing.domain.models import PricingConfig
from src.ff_wallet.application.service import WalletService
from tests.fakes import (
    FakeBrandDirectory,
    FakeRecordRepository,
    FakeRuleRepository,
    FakeSession,
    InMemoryWalletStore,
    ScriptedCarrier,
    shipment,
)

COST = 26_400  # 1 box, 5kg, EXPRESS, non-remote


@pytest.fixture
def records() -> FakeRecordRepository:
    return FakeRecordRepository()


@pytest.fixture
def resolver(pricing_config: PricingConfig) -> PricingResolver:
    return PricingResolver(
        pricing_config, brands=FakeBrandDirectory(), rules=FakeRuleRepository()
    )


def build(
    resolver: PricingResolver,
    wallet: WalletService,
    carrier: ScriptedCarrier,
    records: FakeRecordRepository,
    timeout_seconds: float = 1.0,
    max_retries: int = 2,
    locks: KeyedLocks | None = None,
) -> FulfillmentOrchestrator:
    return FulfillmentOrchestrator(
        resolver,
        wallet,
        carrier,
        records=records,
        locks=locks if locks is not None else KeyedLocks(),
        timeout_seconds=timeout_seconds,
        max_retries=max_retries,
        retry_backoff_seconds=0,
    )


class TestHappyPath:
    async def test_settles_and_debits_once(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier()
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.success
        assert outcome.state == FulfillmentState.SETTLED
        assert outcome.awb_number is not None
        assert outcome.error is None
        assert outcome.debited_amount == COST
        assert wallet_store.accounts["b1"].balance == 100_000 - COST
        assert [s for _, s in records.history] == ["PRICED", "ADMITTED", "BOOKED", "SETTLED"]
        assert len(carrier.calls) == 1
        assert carrier.calls[0].consignee.pincode == "560001"

    async def test_carrier_cost_and_margin_are_recorded(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(carrier_cost=18_000)
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.carrier_cost == 18_000
        assert outcome.margin == COST - 18_000
        assert records.records[("b1", "ORD-1")].carrier_cost == 18_000

    async def test_unknown_carrier_cost_has_no_margin(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        outcome = await build(resolver, wallet, ScriptedCarrier(), records).fulfill(
            db, shipment()
        )
        assert outcome.success
        assert outcome.carrier_cost is None
        assert outcome.margin is None


class TestAdmission:
    async def test_insufficient_balance_rejects_without_carrier_call(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 20_000)
        carrier = ScriptedCarrier()
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert not outcome.success
        assert outcome.state == FulfillmentState.REJECTED
        assert outcome.insufficient_balance
        assert outcome.shortfall == COST - 20_000
        assert outcome.error_code == 2001
        assert outcome.debited_amount == 0
        assert carrier.calls == []
        assert wallet_store.accounts["b1"].balance == 20_000

    async def test_rejected_reference_can_be_retried_after_top_up(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        orchestrator = build(resolver, wallet, ScriptedCarrier(), records)
        first = await orchestrator.fulfill(db, shipment())
        assert first.state == FulfillmentState.REJECTED

        await wallet.credit(db, "b1", 50_000, "RECHARGE")
        second = await orchestrator.fulfill(db, shipment())
        assert second.success
        assert not second.duplicate
        assert wallet_store.accounts["b1"].balance == 50_000 - COST

    async def test_pricing_failure_records_failed(
        self,
        pricing_config: PricingConfig,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        resolver = PricingResolver(
            replace(pricing_config, default_rate=None),
            brands=FakeBrandDirectory(),
            rules=FakeRuleRepository(),
        )
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier()
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.state == FulfillmentState.FAILED
        assert outcome.error_code == 3001
        assert records.records[("b1", "ORD-1")].state == FulfillmentState.FAILED
        assert carrier.calls == []
        assert wallet_store.accounts["b1"].balance == 100_000


class TestCompensation:
    async def test_permanent_failure_restores_balance(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(CarrierBookingResult(success=False, error="pincode not served"))
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert not outcome.success
        assert outcome.state == FulfillmentState.COMPENSATED
        assert outcome.awb_number is None
        assert "pincode not served" in (outcome.error or "")
        assert outcome.error_code == CarrierPermanentError("x").code
        assert outcome.debited_amount == 0
        assert wallet_store.accounts["b1"].balance == 100_000
        assert len(carrier.calls) == 1

        ref_txns = [t for t in wallet_store.transactions if t.reference_id == "ORD-1"]
        assert [(t.txn_type, t.amount, t.reason) for t in ref_txns] == [
            ("DEBIT", COST, "SHIPMENT"),
            ("CREDIT", COST, "compensation"),
        ]

    async def test_retries_exhausted_compensates(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(default=CarrierTransientError("502 from carrier"))
        outcome = await build(resolver, wallet, carrier, records, max_retries=2).fulfill(
            db, shipment()
        )

        assert outcome.state == FulfillmentState.COMPENSATED
        assert outcome.error_code == 5001
        assert len(carrier.calls) == 3
        assert wallet_store.accounts["b1"].balance == 100_000

    async def test_unexpected_error_after_debit_compensates(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(ValueError("bad payload"))
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.state == FulfillmentState.COMPENSATED
        assert outcome.error_code == 9002
        assert wallet_store.accounts["b1"].balance == 100_000

    async def test_failed_compensation_propagates(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)

        class FailingCredit(ScriptedCarrier):
            async def book_shipment(self, request):  # type: ignore[no-untyped-def]
                wallet_store.fail_append = True
                raise CarrierPermanentError("refused")

        with pytest.raises(CompensationFailedError) as info:
            await build(resolver, wallet, FailingCredit(), records).fulfill(db, shipment())
        assert info.value.amount == COST
        assert isinstance(info.value.__cause__, RuntimeError)
        assert records.records[("b1", "ORD-1")].state == FulfillmentState.ADMITTED
        assert wallet_store.accounts["b1"].balance == 100_000 - COST


class TestRecordWriteAfterBooking:
    async def test_booked_write_failure_keeps_debit_and_awb(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        db: FakeSession,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        records = FakeRecordRepository(fail_on=frozenset({"BOOKED"}))
        carrier = ScriptedCarrier()
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.success
        assert outcome.state == FulfillmentState.BOOKED
        assert outcome.awb_number == "AWB1001"
        assert outcome.wallet_deducted
        assert outcome.debited_amount == COST
        assert wallet_store.accounts["b1"].balance == 100_000 - COST
        assert [t.txn_type for t in wallet_store.transactions if t.reference_id == "ORD-1"] == [
            "DEBIT"
        ]
        assert records.records[("b1", "ORD-1")].state == FulfillmentState.ADMITTED
        assert any(r.levelname == "CRITICAL" for r in caplog.records)

    async def test_retry_after_unrecorded_booking_is_not_charged_again(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        records = FakeRecordRepository(fail_on=frozenset({"BOOKED"}))
        carrier = ScriptedCarrier()
        orchestrator = build(resolver, wallet, carrier, records)
        await orchestrator.fulfill(db, shipment())
        again = await orchestrator.fulfill(db, shipment())

        assert again.duplicate
        assert again.wallet_deducted
        assert again.debited_amount == 0
        assert len(carrier.calls) == 1
        assert wallet_store.accounts["b1"].balance == 100_000 - COST

    async def test_settled_write_failure_leaves_booked_record(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        records = FakeRecordRepository(fail_on=frozenset({"SETTLED"}))
        carrier = ScriptedCarrier(carrier_cost=20_000)
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.success
        assert outcome.state == FulfillmentState.BOOKED
        assert outcome.awb_number is not None
        record = records.records[("b1", "ORD-1")]
        assert record.state == FulfillmentState.BOOKED
        assert record.awb_number == outcome.awb_number
        assert record.carrier_cost == 20_000
        assert wallet_store.accounts["b1"].balance == 100_000 - COST


class TestCarrierRetry:
    async def test_timeout_then_success(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(("sleep", 1.0))
        orchestrator = build(
            resolver, wallet, carrier, records, timeout_seconds=0.01, max_retries=1
        )
        outcome = await orchestrator.fulfill(db, shipment())

        assert outcome.success
        assert len(carrier.calls) == 2
        assert wallet_store.accounts["b1"].balance == 100_000 - COST

    async def test_timeouts_exhausted_compensate(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(default=("sleep", 1.0))
        orchestrator = build(
            resolver, wallet, carrier, records, timeout_seconds=0.01, max_retries=1
        )
        outcome = await orchestrator.fulfill(db, shipment())

        assert outcome.state == FulfillmentState.COMPENSATED
        assert outcome.error_code == 5001
        assert len(carrier.calls) == 2
        assert wallet_store.accounts["b1"].balance == 100_000

    async def test_transient_then_success(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(CarrierTransientError("503"))
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())
        assert outcome.success
        assert len(carrier.calls) == 2


class TestIdempotency:
    async def test_settled_reference_is_replayed(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier()
        orchestrator = build(resolver, wallet, carrier, records)
        first = await orchestrator.fulfill(db, shipment())
        second = await orchestrator.fulfill(db, shipment())

        assert second.duplicate
        assert second.success
        assert second.awb_number == first.awb_number
        assert second.debited_amount == 0
        assert len(carrier.calls) == 1
        assert wallet_store.accounts["b1"].balance == 100_000 - COST

    async def test_compensated_reference_is_not_retried(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier(CarrierBookingResult(success=False, error="refused"))
        orchestrator = build(resolver, wallet, carrier, records)
        await orchestrator.fulfill(db, shipment())
        again = await orchestrator.fulfill(db, shipment())

        assert again.duplicate
        assert again.state == FulfillmentState.COMPENSATED
        assert again.error == "Carrier booking failed: refused"
        assert len(carrier.calls) == 1

    async def test_concurrent_same_reference_debits_once(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        carrier = ScriptedCarrier()
        orchestrator = build(resolver, wallet, carrier, records)
        outcomes = await asyncio.gather(
            *(orchestrator.fulfill(db, shipment()) for _ in range(3))
        )

        assert sum(1 for o in outcomes if not o.duplicate) == 1
        assert all(o.success for o in outcomes)
        assert len(carrier.calls) == 1
        assert wallet_store.accounts["b1"].balance == 100_000 - COST

    async def test_orphan_debit_is_not_charged_twice(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        await wallet.debit(db, "b1", COST, "SHIPMENT", "ORD-1")
        carrier = ScriptedCarrier()
        outcome = await build(resolver, wallet, carrier, records).fulfill(db, shipment())

        assert outcome.duplicate
        assert not outcome.success
        assert carrier.calls == []
        assert wallet_store.accounts["b1"].balance == 100_000 - COST

    async def test_brands_sharing_a_reference_are_independent(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 100_000)
        wallet_store.seed("b2", 100_000)
        carrier = ScriptedCarrier()
        orchestrator = build(resolver, wallet, carrier, records)
        first = await orchestrator.fulfill(db, shipment("ORD-1", "b1"))
        second = await orchestrator.fulfill(db, shipment("ORD-1", "b2"))

        assert first.success and second.success
        assert not second.duplicate
        assert second.brand_id == "b2"
        assert second.awb_number != first.awb_number
        assert len(carrier.calls) == 2
        assert wallet_store.accounts["b1"].balance == 100_000 - COST
        assert wallet_store.accounts["b2"].balance == 100_000 - COST
        assert records.records[("b1", "ORD-1")].awb_number == first.awb_number
        assert records.records[("b2", "ORD-1")].awb_number == second.awb_number

    async def test_other_brand_does_not_overwrite_rejected_record(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b2", 100_000)
        orchestrator = build(resolver, wallet, ScriptedCarrier(), records)
        rejected = await orchestrator.fulfill(db, shipment("ORD-1", "b1"))
        settled = await orchestrator.fulfill(db, shipment("ORD-1", "b2"))

        assert rejected.state == FulfillmentState.REJECTED
        assert settled.state == FulfillmentState.SETTLED
        assert records.records[("b1", "ORD-1")].state == FulfillmentState.REJECTED
        assert records.records[("b2", "ORD-1")].brand_id == "b2"

    async def test_lock_registry_drains(
        self,
        resolver: PricingResolver,
        wallet: WalletService,
        wallet_store: InMemoryWalletStore,
        records: FakeRecordRepository,
        db: FakeSession,
    ) -> None:
        wallet_store.seed("b1", 10_000_000)
        locks = KeyedLocks()
        orchestrator = build(resolver, wallet, ScriptedCarrier(), records, locks=locks)
        outcomes = await asyncio.gather(
            *(orchestrator.fulfill(db, shipment(f"ORD-{i}")) for i in range(40)),
            orchestrator.fulfill(db, shipment("ORD-0")),
        )

        assert sum(1 for o in outcomes if o.success and not o.duplicate) == 40
        assert len(locks) == 0
