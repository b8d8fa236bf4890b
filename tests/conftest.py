"""Shared test fixtures.

Services get a fresh KeyedLocks per test: a contended asyncio.Lock binds to
the event loop it was first awaited on.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.ff_inventory.application.service import InventoryService
from src.ff_ledger.locks import KeyedLocks
from src.ff_pricing.domain.models import PricingConfig
from src.ff_wallet.application.service import WalletService
from tests.fakes import FakeSession, InMemoryInventoryStore, InMemoryWalletStore


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def wallet_store() -> InMemoryWalletStore:
    return InMemoryWalletStore()


@pytest.fixture
def wallet(wallet_store: InMemoryWalletStore) -> WalletService:
    return WalletService(repo=wallet_store, locks=KeyedLocks())


@pytest.fixture
def inventory_store() -> InMemoryInventoryStore:
    return InMemoryInventoryStore()


@pytest.fixture
def inventory(inventory_store: InMemoryInventoryStore) -> InventoryService:
    return InventoryService(repo=inventory_store, locks=KeyedLocks())


@pytest.fixture
def pricing_config() -> PricingConfig:
    """Round numbers: ₹100/box default, 2kg free per box, ₹20/kg, 10% markup."""
    return PricingConfig(
        default_rate=10_000,
        weight_rate_per_kg=2_000,
        free_weight_grams_per_box=2_000,
        priority_multipliers_bps={"STANDARD": 10_000, "EXPRESS": 15_000},
        remote_area_surcharge=2_500,
        remote_pincode_prefixes=("79", "18", "37", "85", "86", "87", "88", "89"),
        markup_bps=1_000,
        minimum_charge=0,
    )


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
