"""Counter ledger: best-effort aggregate counters stored beside the records.

Every adjustment is a read-modify-write against the record store with no
conditional write, so concurrent adjustments of the same counter may lose an
update. :mod:`eventregister.domain.reconciliation` repairs such drift.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from eventregister.domain.codec import counter_item, counter_value
from eventregister.domain.model import CounterName, CounterSnapshot

if TYPE_CHECKING:
    from collections.abc import Mapping

    from eventregister.domain.ports import RecordStore

log = logging.getLogger(__name__)


class CounterLedger:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def get(self, event_id: str, name: CounterName) -> int:
        return counter_value(await self._store.get(event_id, name.value))

    async def adjust(self, event_id: str, name: CounterName, delta: int) -> int:
        """Apply ``delta`` to a counter and return the stored value.

        Missing counters start at ``max(delta, 0)``. Decrements are clamped at zero;
        increments never are.
        """

        existing = await self._store.get(event_id, name.value)
        if existing is None:
            previous = None
            updated = max(delta, 0)
        else:
            previous = counter_value(existing)
            updated = previous + delta
            if delta < 0 and updated < 0:
                log.warning(
                    "Counter %s/%s would drop to %d (was %d, delta %d); clamping at 0",
                    event_id,
                    name.value,
                    updated,
                    previous,
                    delta,
                )
                updated = 0
        await self._store.update(counter_item(event_id, name, updated))
        log.debug(
            "Counter %s/%s: %s -> %d (delta %+d)",
            event_id,
            name.value,
            "absent" if previous is None else previous,
            updated,
            delta,
        )
        return updated

    async def adjust_many(
        self, event_id: str, deltas: Mapping[CounterName, int]
    ) -> dict[CounterName, int]:
        """Issue independent adjustments concurrently; zero deltas are skipped.

        This is not a transaction. If one adjustment fails the others may still
        have been applied.
        """

        pending = {name: delta for name, delta in deltas.items() if delta}
        if not pending:
            return {}
        results = await asyncio.gather(
            *(self.adjust(event_id, name, delta) for name, delta in pending.items())
        )
        return dict(zip(pending, results, strict=True))

    async def set(self, event_id: str, name: CounterName, value: int) -> None:
        """Overwrite a counter unconditionally."""

        if value < 0:
            raise ValueError(f"Counter {name.value} cannot be set to a negative value ({value})")
        previous = await self.get(event_id, name)
        await self._store.put(counter_item(event_id, name, value))
        log.info("Counter %s/%s set: %d -> %d", event_id, name.value, previous, value)

    async def snapshot(self, event_id: str) -> CounterSnapshot:
        names = list(CounterName)
        values = await asyncio.gather(*(self.get(event_id, name) for name in names))
        return CounterSnapshot(event_id=event_id, counts=dict(zip(names, values, strict=True)))
