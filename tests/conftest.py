import asyncio

import pytest

from backend.selection import SelectionEngine
from backend.session import Identity
from backend.store import AppointmentStore
from backend.synchronizer import AppointmentSynchronizer
from tests.fakes import FIXED_NOW, FakeQueryService


@pytest.fixture
def service():
    return FakeQueryService()


@pytest.fixture
def store():
    return AppointmentStore()


@pytest.fixture
def delays():
    return []


@pytest.fixture
def fake_sleep(delays):
    async def _sleep(seconds):
        delays.append(seconds)
        await asyncio.sleep(0)

    return _sleep


@pytest.fixture
def synchronizer(service, store, fake_sleep):
    return AppointmentSynchronizer(
        service,
        store,
        tz_name="America/Sao_Paulo",
        debounce_seconds=0.01,
        subscribe_max_attempts=3,
        retry_base_seconds=1.0,
        retry_max_seconds=30.0,
        clock=lambda: FIXED_NOW,
        sleep=fake_sleep,
    )


@pytest.fixture
def engine(service, store, synchronizer):
    return SelectionEngine(service, store, synchronizer)


@pytest.fixture
def u1():
    return Identity(id="u1", email="u1@example.com")


@pytest.fixture
def u2():
    return Identity(id="u2", email="u2@example.com")
