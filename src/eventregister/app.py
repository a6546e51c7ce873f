"""Application orchestration entry points."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from eventregister.adapters.memory import InMemoryRecordStore
from eventregister.adapters.notification import build_notifier
from eventregister.adapters.sqlalchemy import SqlAlchemyRecordStore, shutdown, startup
from eventregister.adapters.webhook import registration_from_submission
from eventregister.config import StoreBackend, get_database_config, get_store_backend
from eventregister.domain.ledger import CounterLedger
from eventregister.domain.reconciliation import CounterReconciler
from eventregister.domain.registrations import RegistrationService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from eventregister.adapters.webhook import SubmissionInput
    from eventregister.domain.model import Registration
    from eventregister.domain.ports import RecordStore, RegistrationNotifier
    from eventregister.domain.reconciliation import ReconciliationResult

log = getLogger(__name__)


@dataclass(slots=True)
class EventRegister:
    """The registration service and reconciliation job sharing one store."""

    store: RecordStore
    service: RegistrationService
    reconciler: CounterReconciler

    async def register_submission(self, event_id: str, payload: SubmissionInput) -> Registration:
        """Normalize a raw form submission and register it."""

        registration = registration_from_submission(event_id, payload)
        return await self.service.register(registration)

    async def reconcile(self, event_id: str) -> ReconciliationResult:
        return await self.reconciler.reconcile(event_id)


def build_register(
    store: RecordStore, *, notifier: RegistrationNotifier | None = None
) -> EventRegister:
    ledger = CounterLedger(store)
    service = RegistrationService(store, ledger=ledger, notifier=notifier)
    return EventRegister(
        store=store,
        service=service,
        reconciler=CounterReconciler(store, ledger),
    )


@asynccontextmanager
async def open_register(
    *,
    backend: StoreBackend | None = None,
    notifier: RegistrationNotifier | None = None,
) -> AsyncIterator[EventRegister]:
    """Yield an :class:`EventRegister` on the configured backend, shutting it down afterwards."""

    effective_backend = backend or get_store_backend()
    effective_notifier = notifier or build_notifier()
    log.info("Opening event register on %s backend", effective_backend.value)

    if effective_backend is StoreBackend.MEMORY:
        yield build_register(InMemoryRecordStore(), notifier=effective_notifier)
        return

    config = get_database_config()
    await startup(database_uri=config.uri)
    try:
        store = SqlAlchemyRecordStore(page_size=config.scan_page_size)
        yield build_register(store, notifier=effective_notifier)
    finally:
        await shutdown()
