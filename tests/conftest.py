"""Global pytest configuration and fixtures."""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from querycache.cache.store import MemoryCacheStore
from querycache.config import Settings


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProducer:
    """Async producer returning a fixed result and counting its calls."""

    def __init__(self, result: Any) -> None:
        self.result = result
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        return copy.deepcopy(self.result)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with test defaults, overridable per test."""

    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "cache_enabled": True,
            "default_ttl": 3600,
            "invalidation_strategy": "record",
            "analytics_enabled": False,
            "enable_metrics": False,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def untagged_store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(supports_tags=False, clock=clock)


@pytest.fixture
def make_producer() -> Callable[[Any], CountingProducer]:
    return CountingProducer
