"""Registration and mutation engine.

Each mutation loads the record, computes the new state together with its audit
entries, persists it, and only then adjusts the counters for the *transition*.
Nothing is written when a precondition fails.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from eventregister.domain.codec import (
    PHONE_NUMBER_ATTRIBUTE,
    registration_from_item,
    registration_to_item,
)
from eventregister.domain.errors import NotFoundError, PreconditionFailedError, ValidationError
from eventregister.domain.history import ChangeHistoryRecorder, append_entries
from eventregister.domain.ledger import CounterLedger
from eventregister.domain.model import (
    ChangeAction,
    CheckIn,
    CounterName,
    PaymentInfo,
    Person,
    PersonType,
    Vehicle,
    VehicleType,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from eventregister.domain.model import (
        CounterSnapshot,
        Metadata,
        PaymentConfirmation,
        Registration,
        RegistrationUpdate,
    )
    from eventregister.domain.ports import RecordStore, RegistrationNotifier

log = logging.getLogger(__name__)

REGISTERED_DESCRIPTION = "User registered"
REREGISTERED_DESCRIPTION = "User re-registered with updated information"

type CounterDeltas = dict[CounterName, int]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_text(value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def _participant_deltas(checked_in: bool, delta: int) -> CounterDeltas:
    """Counter deltas for ``delta`` people joining (or leaving) a record."""

    if checked_in:
        bucket = CounterName.PARTICIPANTS_CHECKED_IN
    else:
        bucket = CounterName.PARTICIPANTS_NOT_CHECKED_IN
    return {CounterName.TOTAL_PARTICIPANTS: delta, bucket: delta}


def _vehicle_move_deltas(
    old: VehicleType, new: VehicleType, *, checked_in: bool, paid: bool
) -> CounterDeltas:
    if old is new:
        return {}
    deltas: CounterDeltas = {CounterName.total_for(old): -1, CounterName.total_for(new): 1}
    if checked_in:
        deltas[CounterName.check_in_for(old)] = -1
        deltas[CounterName.check_in_for(new)] = 1
    if paid:
        deltas[CounterName.paid_for(old)] = -1
        deltas[CounterName.paid_for(new)] = 1
    return deltas


def _combine(*parts: CounterDeltas) -> CounterDeltas:
    combined: defaultdict[CounterName, int] = defaultdict(int)
    for part in parts:
        for name, delta in part.items():
            combined[name] += delta
    return dict(combined)


def _ensure_driver(metadata: Metadata, phone_number: str | None) -> None:
    if not metadata.people:
        metadata.people.append(Person(type=PersonType.DRIVER, phone_number=phone_number))


class RegistrationService:
    """Orchestrates record mutations, counters and the audit trail for one store."""

    def __init__(
        self,
        store: RecordStore,
        *,
        ledger: CounterLedger | None = None,
        history: ChangeHistoryRecorder | None = None,
        notifier: RegistrationNotifier | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ledger = ledger or CounterLedger(store)
        self._history = history or ChangeHistoryRecorder(clock)
        self._notifier = notifier
        self._clock = clock

    @property
    def ledger(self) -> CounterLedger:
        return self._ledger

    # --- Lookups --------------------------------------------------------------

    async def get(self, event_id: str, participant_key: str) -> Registration:
        registration = await self._load(event_id, participant_key)
        if registration is None:
            raise NotFoundError(event_id, participant_key)
        return registration

    async def find_by_phone(self, event_id: str, phone_number: str) -> Registration | None:
        """Return the first participant whose stored phone number matches, if any."""

        wanted = _require_text(phone_number, "Phone number")
        for item in await self._store.scan(event_id):
            if CounterName.is_counter_key(item.sort_key):
                continue
            if item.attributes.get(PHONE_NUMBER_ATTRIBUTE) == wanted:
                return registration_from_item(item)
        return None

    async def counters(self, event_id: str) -> CounterSnapshot:
        return await self._ledger.snapshot(event_id)

    # --- Mutations ------------------------------------------------------------

    async def register(self, registration: Registration) -> Registration:
        """Create a record, or merge a re-submitted form into the existing one."""

        event_id = _require_text(registration.event_id, "Event id")
        participant_key = _require_text(registration.participant_key, "Participant key")
        if CounterName.is_counter_key(participant_key):
            raise ValidationError(f"{participant_key!r} is reserved for a counter")

        incoming = registration.model_copy(
            update={"event_id": event_id, "participant_key": participant_key}, deep=True
        )
        _ensure_driver(incoming.metadata, incoming.metadata.phone_number or incoming.phone_number)

        existing = await self._load(event_id, participant_key)
        if existing is None:
            stored, deltas = self._new_registration(incoming)
        else:
            stored, deltas = self._merge_registration(existing, incoming)

        await self._persist(existing, stored)
        await self._ledger.adjust_many(event_id, deltas)
        log.info(
            "%s %s for event %s (%d people, %s)",
            "Registered" if existing is None else "Re-registered",
            participant_key,
            event_id,
            stored.participant_count,
            stored.vehicle_type.value,
        )
        await self._notify(stored)
        return stored

    async def check_in(self, event_id: str, participant_key: str, who: str) -> Registration:
        by_who = _require_text(who, "Checked-in-by")
        current = await self.get(event_id, participant_key)
        if current.checked_in:
            at = current.metadata.check_in.check_in_at if current.metadata.check_in else None
            log.info(
                "%s (%s) already checked in at %s; rejected check-in by %s",
                participant_key,
                event_id,
                at,
                by_who,
            )
            raise PreconditionFailedError(event_id, participant_key, "Already checked in")

        updated = current.model_copy(deep=True)
        updated.checked_in = True
        updated.metadata.check_in = CheckIn(check_in_at=self._clock(), by_who=by_who)
        self._history.record(
            updated.metadata, ChangeAction.CHECK_IN_ADDED, f"User checked in by {by_who}"
        )

        await self._persist(current, updated)
        people = updated.participant_count
        await self._ledger.adjust_many(
            event_id,
            {
                CounterName.check_in_for(updated.vehicle_type): 1,
                CounterName.PARTICIPANTS_CHECKED_IN: people,
                CounterName.PARTICIPANTS_NOT_CHECKED_IN: -people,
            },
        )
        log.info("Checked in %s for event %s by %s", participant_key, event_id, by_who)
        return updated

    async def cancel_check_in(self, event_id: str, participant_key: str, who: str) -> Registration:
        by_who = _require_text(who, "Cancelled-by")
        current = await self.get(event_id, participant_key)
        if not current.checked_in:
            log.info(
                "Cancelling check-in of %s (%s) by %s failed: not checked in",
                participant_key,
                event_id,
                by_who,
            )
            raise PreconditionFailedError(event_id, participant_key, "Not checked in")

        updated = current.model_copy(deep=True)
        updated.checked_in = False
        updated.metadata.check_in = None
        self._history.record(
            updated.metadata, ChangeAction.CHECK_IN_REMOVED, f"Check-in cancelled by {by_who}"
        )

        await self._persist(current, updated)
        people = updated.participant_count
        await self._ledger.adjust_many(
            event_id,
            {
                CounterName.check_in_for(updated.vehicle_type): -1,
                CounterName.PARTICIPANTS_CHECKED_IN: -people,
                CounterName.PARTICIPANTS_NOT_CHECKED_IN: people,
            },
        )
        log.info("Cancelled check-in of %s for event %s by %s", participant_key, event_id, by_who)
        return updated

    async def confirm_payment(
        self, event_id: str, participant_key: str, payment: PaymentConfirmation
    ) -> Registration:
        """Mark the record paid; paid counters move only on the first confirmation."""

        current = await self.get(event_id, participant_key)
        already_paid = current.paid

        updated = current.model_copy(deep=True)
        updated.paid = True
        info = updated.metadata.payment_info or PaymentInfo()
        info.confirmed_at = self._clock()
        info.by_who = payment.by_who
        info.amount = payment.amount
        if payment.payment_file and payment.payment_file.strip():
            info.payment_file = payment.payment_file
        updated.metadata.payment_info = info

        amount = str(payment.amount) if payment.amount is not None else "unknown amount"
        by_who = payment.by_who if payment.by_who is not None else "system"
        self._history.record(
            updated.metadata, ChangeAction.PAYMENT_ADDED, f"Payment confirmed: {amount} by {by_who}"
        )

        await self._persist(current, updated)
        if not already_paid:
            await self._ledger.adjust_many(
                event_id,
                {CounterName.PAID: 1, CounterName.paid_for(updated.vehicle_type): 1},
            )
        log.info(
            "Payment confirmed for %s in event %s (%s, first=%s)",
            participant_key,
            event_id,
            amount,
            not already_paid,
        )
        return updated

    async def update(
        self, event_id: str, participant_key: str, changes: RegistrationUpdate
    ) -> Registration:
        """Apply only the fields present in ``changes``."""

        current = await self.get(event_id, participant_key)
        updated = current.model_copy(deep=True)
        metadata = updated.metadata
        supplied = changes.model_fields_set

        if "people" in supplied and changes.people:
            self._apply_people(metadata, changes.people)
        if "phone_number" in supplied and changes.phone_number is not None:
            metadata.phone_number = changes.phone_number
            updated.phone_number = changes.phone_number
            if metadata.people:
                metadata.people[0].phone_number = changes.phone_number
        if "vehicle" in supplied and changes.vehicle is not None:
            self._apply_vehicle(metadata, changes.vehicle)
        if "payment_file" in supplied and changes.payment_file is not None:
            if metadata.payment_info is None:
                metadata.payment_info = PaymentInfo()
            metadata.payment_info.payment_file = changes.payment_file
        if "comment" in supplied:
            self._history.record_comment_change(metadata, metadata.comment, changes.comment)
            metadata.comment = changes.comment
        if "vehicle_type" in supplied and changes.vehicle_type is not None:
            updated.vehicle_type = VehicleType.normalize(changes.vehicle_type)
        if "paid" in supplied and changes.paid is not None and changes.paid != updated.paid:
            updated.paid = changes.paid

        self._history.record_update(current, updated)
        await self._persist(current, updated)

        people_delta = updated.participant_count - current.participant_count
        if people_delta:
            await self._ledger.adjust_many(
                event_id, _participant_deltas(updated.checked_in, people_delta)
            )
        log.info("Updated %s for event %s (%s)", participant_key, event_id, sorted(supplied))
        return updated

    # --- Helpers --------------------------------------------------------------

    def _new_registration(self, incoming: Registration) -> tuple[Registration, CounterDeltas]:
        # a record always starts unpaid and not checked in
        stored = incoming.model_copy(update={"paid": False, "checked_in": False}, deep=True)
        stored.metadata.check_in = None
        stored.metadata.change_history = None
        self._history.record(stored.metadata, ChangeAction.USER_REGISTERED, REGISTERED_DESCRIPTION)
        deltas = _combine(
            {CounterName.TOTAL: 1, CounterName.total_for(stored.vehicle_type): 1},
            _participant_deltas(False, stored.participant_count),
        )
        return stored, deltas

    def _merge_registration(
        self, existing: Registration, incoming: Registration
    ) -> tuple[Registration, CounterDeltas]:
        """Take profile data from the new submission, keep state and history."""

        stored = incoming.model_copy(deep=True)
        stored.paid = existing.paid
        stored.checked_in = existing.checked_in

        metadata = stored.metadata
        previous = existing.metadata
        metadata.check_in = previous.check_in.model_copy() if previous.check_in else None
        metadata.registered_at = metadata.registered_at or previous.registered_at
        metadata.payment_info = self._merge_payment_info(
            previous.payment_info, metadata.payment_info
        )
        metadata.change_history = list(previous.change_history or []) or None
        metadata.comments_history = list(previous.comments_history or []) or None

        self._history.record(metadata, ChangeAction.USER_REGISTERED, REREGISTERED_DESCRIPTION)
        self._history.record_comment_change(metadata, previous.comment, metadata.comment)

        deltas = _combine(
            _participant_deltas(
                stored.checked_in, stored.participant_count - existing.participant_count
            ),
            _vehicle_move_deltas(
                existing.vehicle_type,
                stored.vehicle_type,
                checked_in=stored.checked_in,
                paid=stored.paid,
            ),
        )
        return stored, deltas

    @staticmethod
    def _merge_payment_info(
        previous: PaymentInfo | None, submitted: PaymentInfo | None
    ) -> PaymentInfo | None:
        if previous is None:
            return submitted
        merged = previous.model_copy()
        if submitted is not None and submitted.payment_file and submitted.payment_file.strip():
            merged.payment_file = submitted.payment_file
        return merged

    @staticmethod
    def _apply_people(metadata: Metadata, people: list[Person]) -> None:
        if not metadata.people:
            metadata.people.append(Person(type=PersonType.DRIVER))
        driver = metadata.people[0]
        incoming_driver = people[0]
        if incoming_driver.name is not None:
            driver.name = incoming_driver.name
        if incoming_driver.cc is not None:
            driver.cc = incoming_driver.cc
        if len(people) > 1:
            metadata.people[1:] = [
                Person(type=PersonType.GUEST, name=guest.name, cc=guest.cc) for guest in people[1:]
            ]

    @staticmethod
    def _apply_vehicle(metadata: Metadata, vehicle: Vehicle) -> None:
        target = metadata.vehicle or Vehicle()
        if vehicle.plate is not None:
            target.plate = vehicle.plate
        if vehicle.make is not None:
            target.make = vehicle.make
        if vehicle.model is not None:
            target.model = vehicle.model
        metadata.vehicle = target

    async def _load(self, event_id: str, participant_key: str) -> Registration | None:
        if CounterName.is_counter_key(participant_key):
            return None
        item = await self._store.get(event_id, participant_key)
        return registration_from_item(item) if item is not None else None

    async def _persist(self, loaded: Registration | None, updated: Registration) -> None:
        """Write ``updated``, keeping audit entries another writer stored since ``loaded``.

        Field values are last-writer-wins; audit trails are merged.
        """

        current = await self._load(updated.event_id, updated.participant_key)
        if current is not None:
            self._carry_over_audit(loaded, current, updated)
        await self._store.put(registration_to_item(updated))

    def _carry_over_audit(
        self, loaded: Registration | None, current: Registration, updated: Registration
    ) -> None:
        base_history = (loaded.metadata.change_history or []) if loaded else []
        base_comments = (loaded.metadata.comments_history or []) if loaded else []
        stored_history = current.metadata.change_history or []
        stored_comments = current.metadata.comments_history or []

        foreign_entries = stored_history[len(base_history) :]
        foreign_comments = stored_comments[len(base_comments) :]
        if not foreign_entries and not foreign_comments:
            return

        metadata = updated.metadata
        own_entries = (metadata.change_history or [])[len(base_history) :]
        own_comments = (metadata.comments_history or [])[len(base_comments) :]
        metadata.change_history = append_entries(stored_history, own_entries) or None
        metadata.comments_history = [*stored_comments, *own_comments] or None
        log.info(
            "Merged %d audit entries written concurrently for %s in event %s",
            len(foreign_entries),
            updated.participant_key,
            updated.event_id,
        )

    async def _notify(self, registration: Registration) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.registration_completed(registration)
        except Exception:  # noqa: BLE001
            log.warning(
                "Registration notification failed for %s in event %s",
                registration.participant_key,
                registration.event_id,
                exc_info=True,
            )
