"""
Shared fixtures for registry client tests.
"""

import pytest
import pytest_asyncio

from shared.config import RegistryConfig
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryPolicy
from shared.test_helpers import BASE_URL, FakeRegistry

from registry_client.adapters.registry_transport import RegistryTransport
from registry_client.client import RegistryClient


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self, clock: FakeClock = None):
        self.delays = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


def build_client(registry: FakeRegistry, *, retry_attempts: int = 3, metrics=None, **config) -> RegistryClient:
    """RegistryClient wired to a FakeRegistry with zero-delay retries."""
    cfg = RegistryConfig(api_url=BASE_URL, retry_attempts=retry_attempts, **config)
    transport = RegistryTransport(cfg.api_url, client=registry.http_client(), metrics=metrics)
    policy = RetryPolicy(RetryConfig(max_attempts=retry_attempts, base_delay=0.0, jitter=False),
                         sleep=RecordingSleep())
    return RegistryClient(cfg, transport=transport, retry_policy=policy, metrics=metrics)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    """Registry with a few well-known crates."""
    fake = FakeRegistry()
    fake.add_crate("serde", "1.0.193", downloads=300000)
    fake.add_crate("tokio", "1.35.0", downloads=200000)
    fake.add_crate("reqwest", "0.11.23", downloads=100000)
    return fake


@pytest.fixture
def metrics():
    return MetricsCollector("registry_client_test")


@pytest_asyncio.fixture
async def client(registry):
    client = build_client(registry)
    yield client
    await client.close()
