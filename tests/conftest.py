"""Shared fixtures for privacy engine tests."""

from datetime import datetime, timedelta, UTC

import pytest


class FakeClock:
    """Controllable clock for lazy-expiry tests"""
    
    def __init__(self, start: datetime):
        self.now = start
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))
