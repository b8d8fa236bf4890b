"""API tests: the real app with in-memory services via dependency overrides."""

import pytest
from httpx import AsyncClient

from src.ff_common.database import get_db_session
from src.ff_fulfillment.application.batch import BatchCoordinator
from src.ff_fulfillment.application.orchestrator import FulfillmentOrchestrator
from src.ff_fulfillment.application.service import get_batch_coordinator, get_orchestrator
from src.ff_inventory.application.service import InventoryService, get_inventory_service
from src.ff_ledger.locks import KeyedLocks
from src.ff_pricing.application.resolver import PricingResolver, get_pricing_resolver
from src.ff_pricing.domain.models import PricingConfig
from src.ff_wallet.application.service import WalletService, get_wallet_service
from tests.fakes import (
    FakeBrandDirectory,
    FakeRecordRepository,
    FakeRedis,
    FakeRuleRepository,
    FakeSession,
    InMemoryWalletStore,
    ScriptedCarrier,
)

CONSIGNEE = {
    "kind": "SERVICE_CENTER",
    "service_center_id": "SC-1",
    "name": "Indiranagar SC",
    "phone": "9800000002",
    "address": "100 Ft Road",
    "city": "Bengaluru",
    "state": "KA",
    "pincode": "560038",
}


def _shipment(reference_id: str, **overrides: object) -> dict[str, object]:
    body: dict[str, object] = {
        "reference_id": reference_id,
        "brand_id": "b1",
        "consignee": CONSIGNEE,
        "weight_grams": 5_000,
        "priority": "EXPRESS",
    }
    body.update(overrides)
    return body


@pytest.fixture
async def api(
    client: AsyncClient,
    db: FakeSession,
    wallet: WalletService,
    inventory: InventoryService,
    pricing_config: PricingConfig,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncClient:
    from src.main import app

    redis = FakeRedis()

    async def fake_redis() -> FakeRedis:
        return redis

    async def fake_db():  # type: ignore[no-untyped-def]
        yield db

    monkeypatch.setattr("src.ff_gateway.middleware.rate_limit.get_redis", fake_redis)
    resolver = PricingResolver(
        pricing_config, brands=FakeBrandDirectory(), rules=FakeRuleRepository()
    )
    orchestrator = FulfillmentOrchestrator(
        resolver,
        wallet,
        ScriptedCarrier(default=None, carrier_cost=20_000),
        records=FakeRecordRepository(),
        locks=KeyedLocks(),
        timeout_seconds=1.0,
        max_retries=0,
        retry_backoff_seconds=0,
    )
    app.dependency_overrides[get_db_session] = fake_db
    app.dependency_overrides[get_wallet_service] = lambda: wallet
    app.dependency_overrides[get_inventory_service] = lambda: inventory
    app.dependency_overrides[get_pricing_resolver] = lambda: resolver
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_batch_coordinator] = lambda: BatchCoordinator(
        orchestrator, max_batch_size=3
    )
    return client


class TestWalletApi:
    async def test_credit_then_balance(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/wallets/b1/credit", json={"amount_paise": 50_000, "reason": "RECHARGE"}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["balance_paise"] == 50_000

        resp = await api.get("/api/v1/wallets/b1")
        assert resp.json()["code"] == 0
        assert resp.json()["data"]["balance_paise"] == 50_000

    async def test_overdraft_returns_envelope_with_shortfall(
        self, api: AsyncClient, wallet_store: InMemoryWalletStore
    ) -> None:
        wallet_store.seed("b1", 1_000)
        resp = await api.post(
            "/api/v1/wallets/b1/debit",
            json={"amount_paise": 2_500, "reason": "SHIPMENT", "reference_id": "X"},
            headers={"X-Request-ID": "req_overdraft"},
        )
        body = resp.json()
        assert resp.status_code == 422
        assert body["code"] == 2001
        assert body["data"]["shortfall"] == 1_500
        assert body["request_id"] == "req_overdraft"

    async def test_non_positive_amount_is_validation_error(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/wallets/b1/credit", json={"amount_paise": 0, "reason": "RECHARGE"}
        )
        assert resp.status_code == 422


class TestPricingApi:
    async def test_estimate(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/pricing/estimate",
            json={
                "brand_id": "b1",
                "weight_grams": 5_000,
                "num_boxes": 1,
                "priority": "EXPRESS",
                "destination_pincode": "560001",
            },
        )
        data = resp.json()["data"]
        assert data["final_total"] == 26_400
        assert data["final_total_display"] == "₹264.00"

    async def test_bad_pincode_rejected(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/pricing/estimate",
            json={"brand_id": "b1", "weight_grams": 1, "destination_pincode": "5600"},
        )
        assert resp.status_code == 422


class TestInventoryApi:
    async def test_adjust_and_read(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/inventory/b1/parts/p1/adjustments",
            json={"adjustment_type": "ADD", "quantity": 10},
        )
        assert resp.status_code == 200
        resp = await api.get("/api/v1/inventory/b1/parts/p1")
        data = resp.json()["data"]
        assert data["on_hand"] == 10
        assert data["available"] == 10

    async def test_missing_record_is_404(self, api: AsyncClient) -> None:
        resp = await api.get("/api/v1/inventory/b1/parts/nope")
        assert resp.status_code == 404
        assert resp.json()["code"] == 4003

    async def test_cannot_transfer_into_available(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/inventory/b1/parts/p1/transfers",
            json={"from_bucket": "on_hand", "to_bucket": "available", "quantity": 1},
        )
        assert resp.status_code == 422

    async def test_replay_reports_every_bucket(self, api: AsyncClient) -> None:
        base = "/api/v1/inventory/b1/parts/p2"
        await api.post(f"{base}/adjustments", json={"adjustment_type": "ADD", "quantity": 9})
        await api.post(
            f"{base}/transfers",
            json={"from_bucket": "on_hand", "to_bucket": "in_transit", "quantity": 4},
        )
        resp = await api.get(f"{base}/replay")
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["consistent"] is True
        assert data["replayed"] == {
            "on_hand": 5, "available": 5, "reserved": 0,
            "defective": 0, "quarantine": 0, "in_transit": 4,
        }
        assert data["entry_count"] == 2


class TestShipmentApi:
    async def test_book_single(
        self, api: AsyncClient, wallet_store: InMemoryWalletStore
    ) -> None:
        wallet_store.seed("b1", 100_000)
        resp = await api.post("/api/v1/shipments", json=_shipment("R1"))
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["success"] is True
        assert data["state"] == "SETTLED"
        assert data["awb_number"]
        assert data["cost_estimate"]["final_total"] == 26_400
        assert data["carrier_cost_paise"] == 20_000
        assert data["margin_paise"] == 6_400
        assert wallet_store.accounts["b1"].balance == 100_000 - 26_400

    async def test_insufficient_balance_is_business_outcome(self, api: AsyncClient) -> None:
        resp = await api.post("/api/v1/shipments", json=_shipment("R2"))
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["success"] is False
        assert data["insufficient_balance"] is True
        assert data["shortfall_paise"] == 26_400
        assert data["margin_paise"] is None

    async def test_unknown_consignee_kind_rejected(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/shipments", json=_shipment("R3", consignee={**CONSIGNEE, "kind": "WAREHOUSE"})
        )
        assert resp.status_code == 422

    async def test_batch(self, api: AsyncClient, wallet_store: InMemoryWalletStore) -> None:
        wallet_store.seed("b1", 60_000)
        resp = await api.post(
            "/api/v1/shipments/batch",
            json={"shipments": [_shipment("A"), _shipment("B"), _shipment("C")]},
        )
        summary = resp.json()["data"]["summary"]
        assert summary["successful"] == 2
        assert summary["insufficient_balance_count"] == 1
        assert summary["success_rate_percent"] == 67
        settlement = summary["settlements"][0]
        assert settlement["total_debited_paise"] == 52_800
        assert settlement["total_carrier_cost_paise"] == 40_000
        assert settlement["total_margin_paise"] == 12_800

    async def test_batch_too_large(self, api: AsyncClient) -> None:
        resp = await api.post(
            "/api/v1/shipments/batch",
            json={"shipments": [_shipment(f"S{i}") for i in range(4)]},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == 5003

    async def test_empty_batch_rejected(self, api: AsyncClient) -> None:
        resp = await api.post("/api/v1/shipments/batch", json={"shipments": []})
        assert resp.status_code == 422


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"
