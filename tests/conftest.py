from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from eventregister.adapters.memory import InMemoryRecordStore
from eventregister.adapters.sqlalchemy import SqlAlchemyRecordStore, shutdown, startup
from eventregister.domain.ledger import CounterLedger
from eventregister.domain.reconciliation import CounterReconciler
from eventregister.domain.registrations import RegistrationService
from tests.helpers.registrations import FakeClock, RecordingNotifier

os.environ.setdefault("EVENTREGISTER_STORE", "memory")

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ledger(memory_store: InMemoryRecordStore) -> CounterLedger:
    return CounterLedger(memory_store)


@pytest.fixture
def service(
    memory_store: InMemoryRecordStore,
    ledger: CounterLedger,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> RegistrationService:
    return RegistrationService(memory_store, ledger=ledger, notifier=notifier, clock=clock)


@pytest.fixture
def reconciler(memory_store: InMemoryRecordStore, ledger: CounterLedger) -> CounterReconciler:
    return CounterReconciler(memory_store, ledger)


@pytest_asyncio.fixture
async def sqlalchemy_store(tmp_path: Path) -> AsyncIterator[SqlAlchemyRecordStore]:
    # file-backed so every session gets its own connection
    await startup(database_uri=f"sqlite+aiosqlite:///{tmp_path / 'register.db'}", force=True)
    try:
        # small pages so scans cross page boundaries
        yield SqlAlchemyRecordStore(page_size=2)
    finally:
        await shutdown()
