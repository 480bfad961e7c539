from __future__ import annotations

from datetime import datetime

import pytest

from chamada_diaria.offline.kv_store import InMemoryKeyValueStore
from chamada_diaria.offline.outbox import OfflineOutbox

from fakes import FakeClock, FakeGateway


@pytest.fixture
def fixed_now() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 8, 0, 0))


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def outbox(store, fixed_now) -> OfflineOutbox:
    return OfflineOutbox(store, clock=fixed_now)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
