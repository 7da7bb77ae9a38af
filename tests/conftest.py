"""Shared fixtures for the AgriIntel test suite."""

from typing import List

import pytest


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_clock():
    """Create a fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def recording_sleep():
    """Create a sleep that returns immediately and records delays."""
    return RecordingSleep()


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Keep tests independent of the developer's environment."""
    monkeypatch.delenv("NEXT_PUBLIC_API_URL", raising=False)
    monkeypatch.delenv("WEATHER_API_KEY", raising=False)
