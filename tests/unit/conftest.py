"""Unit test fixtures: controllable clock and canned tokens."""

from __future__ import annotations

import pytest

from github_app_auth.models import CacheKey, InstallationToken


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def key() -> CacheKey:
    return CacheKey(123, 456, "https://api.github.com")


@pytest.fixture
def make_token(clock, key):
    def _make(value: str = "ghs_token", ttl: float = 3600.0, for_key: CacheKey | None = None) -> InstallationToken:
        return InstallationToken(token=value, expires_at=clock.now + ttl, key=for_key or key)

    return _make
