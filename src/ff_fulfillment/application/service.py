"""Process-wide accessors for the fulfillment services (FastAPI dependencies)."""

from src.ff_fulfillment.application.batch import BatchCoordinator
from src.ff_fulfillment.application.orchestrator import FulfillmentOrchestrator
from src.ff_fulfillment.infrastructure.carrier import build_carrier_gateway
from src.ff_pricing.application.resolver import get_pricing_resolver
from src.ff_wallet.application.service import get_wallet_service

_orchestrator: FulfillmentOrchestrator | None = None
_batch: BatchCoordinator | None = None


def get_orchestrator() -> FulfillmentOrchestrator:
    global _orchestrator  # noqa: PLW0603
    if _orchestrator is None:
        _orchestrator = FulfillmentOrchestrator(
            pricing=get_pricing_resolver(),
            wallet=get_wallet_service(),
            carrier=build_carrier_gateway(),
        )
    return _orchestrator


def get_batch_coordinator() -> BatchCoordinator:
    global _batch  # noqa: PLW0603
    if _batch is None:
        _batch = BatchCoordinator(get_orchestrator())
    return _batch
