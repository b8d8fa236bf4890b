"""Unit tests for WalletService on the in-memory store."""

import asyncio

import pytest

from src.ff_common.errors import (
    DuplicateReferenceError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from src.ff_ledger.locks import KeyedLocks
from src.ff_wallet.application.service import WalletService
from src.ff_wallet.domain.models import WalletAccount, WalletTransaction
from src.ff_wallet.domain.rules import check_account_invariants, replay_balance
from tests.fakes import FakeSession, InMemoryWalletStore


class TestBalance:
    async def test_unknown_brand_reads_zero(self, wallet: WalletService, db: FakeSession) -> None:
        assert await wallet.get_balance(db, "new-brand") == 0

    async def test_check_balance_is_advisory(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 300)
        check = await wallet.check_balance(db, "b1", 500)
        assert not check.sufficient
        assert check.shortfall == 200
        assert wallet_store.accounts["b1"].balance == 300


class TestCredit:
    async def test_creates_account_lazily(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        result = await wallet.credit(db, "b1", 50000, "RECHARGE")
        assert result.new_balance == 50000
        assert wallet_store.accounts["b1"].total_credited == 50000
        assert result.transaction.resulting_balance == 50000

    @pytest.mark.parametrize("amount", [0, -1])
    async def test_rejects_non_positive(
        self, wallet: WalletService, db: FakeSession, amount: int
    ) -> None:
        with pytest.raises(InvalidAmountError):
            await wallet.credit(db, "b1", amount, "RECHARGE")


class TestDebit:
    async def test_subtracts_and_logs(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 1000)
        result = await wallet.debit(db, "b1", 400, "SHIPMENT", "ref-1")
        assert result.new_balance == 600
        assert wallet_store.accounts["b1"].total_debited == 400
        assert wallet_store.transactions[-1].reference_id == "ref-1"

    async def test_insufficient_balance_reports_shortfall(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 100)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await wallet.debit(db, "b1", 400, "SHIPMENT", "ref-1")
        assert exc_info.value.shortfall == 300
        assert wallet_store.accounts["b1"].balance == 100

    async def test_second_debit_with_same_reference_refused(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 1000)
        await wallet.debit(db, "b1", 100, "SHIPMENT", "ref-1")
        with pytest.raises(DuplicateReferenceError):
            await wallet.debit(db, "b1", 100, "SHIPMENT", "ref-1")
        assert wallet_store.accounts["b1"].balance == 900

    async def test_credit_with_debited_reference_allowed(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 1000)
        await wallet.debit(db, "b1", 100, "SHIPMENT", "ref-1")
        await wallet.credit(db, "b1", 100, "compensation", "ref-1")
        assert wallet_store.accounts["b1"].balance == 1000


class TestDebitOrReject:
    async def test_admitted(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 500)
        decision = await wallet.debit_or_reject(db, "b1", 400, "SHIPMENT", "r1")
        assert decision.admitted
        assert decision.mutation is not None
        assert decision.current_balance == 100

    async def test_rejected(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 100)
        decision = await wallet.debit_or_reject(db, "b1", 400, "SHIPMENT", "r1")
        assert not decision.admitted
        assert decision.shortfall == 300
        assert decision.current_balance == 100

    async def test_duplicate(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 1000)
        await wallet.debit(db, "b1", 100, "SHIPMENT", "r1")
        decision = await wallet.debit_or_reject(db, "b1", 100, "SHIPMENT", "r1")
        assert decision.duplicate
        assert not decision.admitted


class TestConcurrency:
    async def test_two_debits_of_400_against_500(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore
    ) -> None:
        wallet_store.seed("b1", 500)
        decisions = await asyncio.gather(
            wallet.debit_or_reject(FakeSession(), "b1", 400, "SHIPMENT", "r1"),
            wallet.debit_or_reject(FakeSession(), "b1", 400, "SHIPMENT", "r2"),
        )
        assert sorted(d.admitted for d in decisions) == [False, True]
        rejected = next(d for d in decisions if not d.admitted)
        assert rejected.shortfall == 300
        assert wallet_store.accounts["b1"].balance == 100

    async def test_many_debits_never_overdraw(self, wallet_store: InMemoryWalletStore) -> None:
        wallet_store.seed("b1", 1000)
        # Two service instances share the process-wide lock registry in production;
        # here they share one KeyedLocks.
        locks = KeyedLocks()
        services = [WalletService(repo=wallet_store, locks=locks) for _ in range(2)]
        decisions = await asyncio.gather(*(
            services[i % 2].debit_or_reject(FakeSession(), "b1", 150, "SHIPMENT", f"r{i}")
            for i in range(12)
        ))
        admitted = sum(d.admitted for d in decisions)
        account = wallet_store.accounts["b1"]
        assert admitted == 6
        assert account.balance == 100
        assert check_account_invariants(account) == []

    async def test_same_reference_concurrently_debits_once(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore
    ) -> None:
        wallet_store.seed("b1", 1000)
        decisions = await asyncio.gather(*(
            wallet.debit_or_reject(FakeSession(), "b1", 100, "SHIPMENT", "same-ref")
            for _ in range(5)
        ))
        assert sum(d.admitted for d in decisions) == 1
        assert sum(d.duplicate for d in decisions) == 4
        assert wallet_store.accounts["b1"].balance == 900


class TestReplay:
    def test_replay_rebuilds_balance(self) -> None:
        entries = [
            WalletTransaction(1, "b1", "CREDIT", 500, "RECHARGE", None, 500),
            WalletTransaction(2, "b1", "DEBIT", 400, "SHIPMENT", "r1", 100),
            WalletTransaction(3, "b1", "CREDIT", 400, "compensation", "r1", 500),
        ]
        balance, violations = replay_balance(entries)
        assert balance == 500
        assert violations == []

    def test_replay_detects_broken_chain(self) -> None:
        entries = [
            WalletTransaction(1, "b1", "CREDIT", 500, "RECHARGE", None, 500),
            WalletTransaction(2, "b1", "DEBIT", 400, "SHIPMENT", "r1", 50),
        ]
        _, violations = replay_balance(entries)
        assert len(violations) == 1
        assert "entry 2" in violations[0]

    async def test_reconcile_after_mixed_activity(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        await wallet.credit(db, "b1", 1000, "RECHARGE")
        await wallet.debit(db, "b1", 300, "SHIPMENT", "r1")
        await wallet.debit_or_reject(db, "b1", 5000, "SHIPMENT", "r2")
        await wallet.credit(db, "b1", 300, "compensation", "r1")
        report = await wallet.reconcile(db, "b1")
        assert report.consistent
        assert report.replayed_balance == 1000
        assert report.entry_count == 3

    async def test_reconcile_reports_drift(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 500)
        wallet_store.accounts["b1"] = WalletAccount("b1", 400, 500, 100, 2)
        report = await wallet.reconcile(db, "b1")
        assert not report.consistent
        assert report.snapshot_balance == 400
        assert report.replayed_balance == 500


class TestInvariants:
    def test_negative_balance(self) -> None:
        assert check_account_invariants(WalletAccount("b1", -1, 0, 1, 1))

    def test_identity(self) -> None:
        assert check_account_invariants(WalletAccount("b1", 10, 20, 5, 1))
        assert check_account_invariants(WalletAccount("b1", 15, 20, 5, 1)) == []


class TestListTransactions:
    async def test_cursor_pagination(
        self, wallet: WalletService, db: FakeSession
    ) -> None:
        for _ in range(5):
            await wallet.credit(db, "b1", 100, "RECHARGE")
        page1 = await wallet.list_transactions(db, "b1", None, 2, None)
        assert len(page1.items) == 2
        assert page1.has_more
        assert page1.items[0].resulting_balance_paise == 500
        page3 = await wallet.list_transactions(db, "b1", page1.next_cursor, 10, None)
        assert [i.resulting_balance_paise for i in page3.items] == [300, 200, 100]
        assert not page3.has_more
        assert page3.next_cursor is None

    async def test_filter_by_type(
        self, wallet: WalletService, wallet_store: InMemoryWalletStore, db: FakeSession
    ) -> None:
        wallet_store.seed("b1", 1000)
        await wallet.debit(db, "b1", 100, "SHIPMENT", "r1")
        page = await wallet.list_transactions(db, "b1", None, 10, "DEBIT")
        assert [i.txn_type for i in page.items] == ["DEBIT"]
        assert page.items[0].amount_display == "₹1.00"
