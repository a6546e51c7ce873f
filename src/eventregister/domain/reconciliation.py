"""Recompute an event's counters from its participant records.

Reconciliation is the only path that writes absolute counter values. It repairs
drift left by lost read-modify-write updates in the ledger and is idempotent:
two runs without intervening writes produce identical snapshots.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from eventregister.domain.codec import (
    CHECKED_IN_ATTRIBUTE,
    METADATA_ATTRIBUTE,
    PAID_ATTRIBUTE,
    VEHICLE_TYPE_ATTRIBUTE,
    decode_metadata,
)
from eventregister.domain.errors import SerializationError
from eventregister.domain.model import CounterName, VehicleType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from eventregister.domain.ledger import CounterLedger
    from eventregister.domain.model import CounterSnapshot, Item
    from eventregister.domain.ports import RecordStore

log = logging.getLogger(__name__)

STATUS_SUCCESS = "success"


@dataclass(slots=True)
class CounterTally:
    """Counter values derived from a set of participant records."""

    counts: dict[CounterName, int] = field(
        default_factory=lambda: dict.fromkeys(CounterName, 0)
    )
    records: int = 0
    unparseable: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    event_id: str
    status: str
    before: CounterSnapshot
    after: CounterSnapshot
    records_scanned: int
    unparseable_records: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"Counters reconciled successfully. Scanned {self.records_scanned} user records."

    def to_payload(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "status": self.status,
            "before": self.before.to_payload(),
            "after": self.after.to_payload(),
            "recordsScanned": self.records_scanned,
            "message": self.message,
            "unparseableRecords": list(self.unparseable_records),
        }


def _vehicle_type(item: Item) -> VehicleType:
    raw = item.attributes.get(VEHICLE_TYPE_ATTRIBUTE)
    try:
        return VehicleType(raw)
    except ValueError:
        normalized = VehicleType.normalize(raw if isinstance(raw, str) else None)
        log.warning(
            "Record %s/%s has non-canonical vehicle type %r; counting it as %s",
            item.partition_key,
            item.sort_key,
            raw,
            normalized.value,
        )
        return normalized


def _participants(item: Item, tally: CounterTally) -> int:
    try:
        return decode_metadata(item.attributes.get(METADATA_ATTRIBUTE)).participant_count
    except SerializationError:
        log.warning(
            "Cannot parse metadata of %s/%s; counting one participant",
            item.partition_key,
            item.sort_key,
            exc_info=True,
        )
        tally.unparseable.append(item.sort_key)
        return 1


def tally_records(items: Iterable[Item]) -> CounterTally:
    """Derive every counter from scanned items, skipping the counters themselves."""

    tally = CounterTally()
    counts = tally.counts
    for item in items:
        if CounterName.is_counter_key(item.sort_key):
            continue
        tally.records += 1
        vehicle_type = _vehicle_type(item)
        checked_in = bool(item.attributes.get(CHECKED_IN_ATTRIBUTE, False))
        paid = bool(item.attributes.get(PAID_ATTRIBUTE, False))
        people = _participants(item, tally)

        counts[CounterName.TOTAL] += 1
        counts[CounterName.total_for(vehicle_type)] += 1
        counts[CounterName.TOTAL_PARTICIPANTS] += people
        if checked_in:
            counts[CounterName.check_in_for(vehicle_type)] += 1
            counts[CounterName.PARTICIPANTS_CHECKED_IN] += people
        else:
            counts[CounterName.PARTICIPANTS_NOT_CHECKED_IN] += people
        if paid:
            counts[CounterName.PAID] += 1
            counts[CounterName.paid_for(vehicle_type)] += 1
    return tally


class CounterReconciler:
    def __init__(self, store: RecordStore, ledger: CounterLedger) -> None:
        self._store = store
        self._ledger = ledger

    async def reconcile(self, event_id: str) -> ReconciliationResult:
        log.info("Reconciling counters for event %s", event_id)
        before = await self._ledger.snapshot(event_id)
        tally = tally_records(await self._store.scan(event_id))
        await asyncio.gather(
            *(self._ledger.set(event_id, name, value) for name, value in tally.counts.items())
        )
        after = await self._ledger.snapshot(event_id)
        log.info(
            "Reconciled counters for event %s: %d records scanned, %d unparseable",
            event_id,
            tally.records,
            len(tally.unparseable),
        )
        return ReconciliationResult(
            event_id=event_id,
            status=STATUS_SUCCESS,
            before=before,
            after=after,
            records_scanned=tally.records,
            unparseable_records=tuple(tally.unparseable),
        )
