import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
for path in (SRC_DIR, PROJECT_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from leadscore.config.settings import RetryConfig  # noqa: E402
from leadscore.data import InMemoryLeadStore  # noqa: E402
from leadscore.models import GatewayRegistry  # noqa: E402
from leadscore.scoring import ScoringService  # noqa: E402
from tests.fixtures.doubles import FakeGateway, ManualClock  # noqa: E402
from tests.fixtures.sample_data import make_leads  # noqa: E402

LEAD_IDS = [123, 124, 125, 126, 127, *range(200, 220)]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def leads() -> InMemoryLeadStore:
    return InMemoryLeadStore(make_leads(LEAD_IDS))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway("m1")


@pytest.fixture
def registry(gateway: FakeGateway) -> GatewayRegistry:
    registry = GatewayRegistry()
    registry.register(gateway, default=True)
    registry.register(FakeGateway("m2", offset=0.1))
    return registry


@pytest.fixture
def service(registry: GatewayRegistry, leads: InMemoryLeadStore):
    service = ScoringService(registry, leads, retry=RetryConfig(max_attempts=3, backoff_ms=0))
    yield service
    service.close()
