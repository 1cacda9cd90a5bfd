from __future__ import annotations

import pytest

from fakes import Clock, FakeUpstream

from relay.core.memory import SessionStore
from relay.core.quota import RateLimitStore
from relay.relay import ChatRelay


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def quota(clock) -> RateLimitStore:
    return RateLimitStore(daily_limit=50, today=clock)


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def relay(quota, sessions, upstream) -> ChatRelay:
    return ChatRelay(quota=quota, sessions=sessions, upstream=upstream)
