from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from eventregister.domain.codec import registration_to_item
from eventregister.domain.errors import NotFoundError, PreconditionFailedError, ValidationError
from eventregister.domain.model import (
    ChangeAction,
    CounterName,
    PaymentConfirmation,
    Person,
    RegistrationUpdate,
    Vehicle,
    VehicleType,
)
from eventregister.domain.registrations import RegistrationService
from tests.helpers.registrations import (
    ALICE,
    EVENT_ID,
    FailingNotifier,
    FakeClock,
    make_registration,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from eventregister.adapters.memory import InMemoryRecordStore
    from eventregister.domain.model import CounterSnapshot, Registration
    from tests.helpers.registrations import RecordingNotifier


def _actions(registration: Registration) -> list[ChangeAction]:
    return [entry.action for entry in registration.metadata.change_history or []]


def _counts(snapshot: CounterSnapshot, *names: CounterName) -> tuple[int, ...]:
    return tuple(snapshot[name] for name in names)


async def test_end_to_end_counter_flow(service: RegistrationService) -> None:
    await service.register(make_registration(guests=["Bob"]))

    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.TOTAL,
        CounterName.TOTAL_CAR,
        CounterName.TOTAL_PARTICIPANTS,
        CounterName.PARTICIPANTS_NOT_CHECKED_IN,
    ) == (1, 1, 2, 2)

    await service.check_in(EVENT_ID, ALICE, "gate")
    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.CHECK_IN_CAR,
        CounterName.PARTICIPANTS_CHECKED_IN,
        CounterName.PARTICIPANTS_NOT_CHECKED_IN,
    ) == (1, 2, 0)

    await service.confirm_payment(EVENT_ID, ALICE, PaymentConfirmation(amount=Decimal("20")))
    counters = await service.counters(EVENT_ID)
    assert _counts(counters, CounterName.PAID, CounterName.PAID_CAR) == (1, 1)

    await service.cancel_check_in(EVENT_ID, ALICE, "gate")
    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.PARTICIPANTS_CHECKED_IN,
        CounterName.PARTICIPANTS_NOT_CHECKED_IN,
        CounterName.CHECK_IN_CAR,
    ) == (0, 2, 0)
    assert counters.is_consistent


async def test_new_registration_is_audited_and_announced(
    service: RegistrationService, notifier: RecordingNotifier
) -> None:
    stored = await service.register(make_registration())

    assert _actions(stored) == [ChangeAction.USER_REGISTERED]
    assert stored.metadata.change_history is not None
    assert stored.metadata.change_history[0].description == "User registered"
    assert [reg.participant_key for reg in notifier.received] == [ALICE]
    assert await service.get(EVENT_ID, ALICE) == stored


async def test_new_registration_starts_unpaid_and_not_checked_in(
    service: RegistrationService,
) -> None:
    incoming = make_registration()
    incoming.paid = True
    incoming.checked_in = True

    stored = await service.register(incoming)

    assert (stored.paid, stored.checked_in) == (False, False)
    counters = await service.counters(EVENT_ID)
    assert counters[CounterName.PAID] == 0
    assert counters[CounterName.PARTICIPANTS_NOT_CHECKED_IN] == 2


async def test_registration_without_people_gets_a_driver(service: RegistrationService) -> None:
    incoming = make_registration(guests=[])
    incoming.metadata.people = []

    stored = await service.register(incoming)

    assert len(stored.metadata.people) == 1
    assert stored.metadata.people[0].phone_number == "+351900000001"


@pytest.mark.parametrize("key", ["", "   ", "total", "paidCounterquad"])
async def test_register_rejects_unusable_keys(service: RegistrationService, key: str) -> None:
    with pytest.raises(ValidationError):
        await service.register(make_registration(participant_key=key))


async def test_check_in_twice_fails_and_counts_once(service: RegistrationService) -> None:
    await service.register(make_registration())
    first = await service.check_in(EVENT_ID, ALICE, "gate")

    with pytest.raises(PreconditionFailedError) as excinfo:
        await service.check_in(EVENT_ID, ALICE, "gate")

    assert excinfo.value.reason == "Already checked in"
    assert first.checked_in
    assert first.metadata.check_in is not None
    assert first.metadata.check_in.by_who == "gate"
    counters = await service.counters(EVENT_ID)
    assert counters[CounterName.CHECK_IN_CAR] == 1
    assert counters[CounterName.PARTICIPANTS_CHECKED_IN] == 2
    stored = await service.get(EVENT_ID, ALICE)
    assert _actions(stored) == [ChangeAction.USER_REGISTERED, ChangeAction.CHECK_IN_ADDED]


async def test_cancel_without_check_in_fails_without_writing(
    service: RegistrationService, memory_store: InMemoryRecordStore
) -> None:
    await service.register(make_registration())
    before = await memory_store.get(EVENT_ID, ALICE)

    with pytest.raises(PreconditionFailedError):
        await service.cancel_check_in(EVENT_ID, ALICE, "gate")

    assert await memory_store.get(EVENT_ID, ALICE) == before


async def test_cancel_check_in_clears_check_in_and_audits(service: RegistrationService) -> None:
    await service.register(make_registration())
    await service.check_in(EVENT_ID, ALICE, "gate")

    cancelled = await service.cancel_check_in(EVENT_ID, ALICE, "supervisor")

    assert not cancelled.checked_in
    assert cancelled.metadata.check_in is None
    assert cancelled.metadata.change_history is not None
    assert cancelled.metadata.change_history[-1].description == "Check-in cancelled by supervisor"


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.get(EVENT_ID, "ghost@example.com"),
        lambda s: s.check_in(EVENT_ID, "ghost@example.com", "gate"),
        lambda s: s.cancel_check_in(EVENT_ID, "ghost@example.com", "gate"),
        lambda s: s.confirm_payment(EVENT_ID, "ghost@example.com", PaymentConfirmation()),
        lambda s: s.update(EVENT_ID, "ghost@example.com", RegistrationUpdate(comment="x")),
    ],
)
async def test_unknown_participant_is_not_found(
    service: RegistrationService, call: Callable[[RegistrationService], Awaitable[Registration]]
) -> None:
    with pytest.raises(NotFoundError):
        await call(service)


async def test_payment_counts_only_first_confirmation(service: RegistrationService) -> None:
    await service.register(make_registration(payment_file="form-receipt.pdf"))

    first = await service.confirm_payment(
        EVENT_ID, ALICE, PaymentConfirmation(amount=Decimal("25.50"), by_who="treasurer")
    )
    second = await service.confirm_payment(
        EVENT_ID, ALICE, PaymentConfirmation(payment_file="bank-transfer.pdf")
    )

    counters = await service.counters(EVENT_ID)
    assert _counts(counters, CounterName.PAID, CounterName.PAID_CAR) == (1, 1)
    assert first.metadata.payment_info is not None
    assert first.metadata.payment_info.payment_file == "form-receipt.pdf"
    assert first.metadata.payment_info.amount == Decimal("25.50")
    assert second.metadata.payment_info is not None
    assert second.metadata.payment_info.payment_file == "bank-transfer.pdf"
    assert second.metadata.change_history is not None
    assert [entry.description for entry in second.metadata.change_history[-2:]] == [
        "Payment confirmed: 25.50 by treasurer",
        "Payment confirmed: unknown amount by system",
    ]


async def test_update_comment_only_records_comment_entry(service: RegistrationService) -> None:
    await service.register(make_registration(comment="vegetarian"))

    updated = await service.update(EVENT_ID, ALICE, RegistrationUpdate(comment="vegan"))

    assert _actions(updated) == [ChangeAction.USER_REGISTERED, ChangeAction.COMMENT_UPDATED]
    assert updated.metadata.comment == "vegan"
    assert updated.metadata.comments_history == ["vegetarian"]


async def test_update_explicit_null_comment_clears_it(service: RegistrationService) -> None:
    await service.register(make_registration(comment="call me"))

    updated = await service.update(EVENT_ID, ALICE, RegistrationUpdate(comment=None))

    assert updated.metadata.comment is None
    assert updated.metadata.change_history is not None
    assert updated.metadata.change_history[-1].description == (
        'Comment changed from "call me" to "(empty)"'
    )


async def test_update_phone_and_vehicle_type_in_one_entry(service: RegistrationService) -> None:
    await service.register(make_registration())

    updated = await service.update(
        EVENT_ID,
        ALICE,
        RegistrationUpdate(phone_number="+351911111111", vehicle_type="Mota"),
    )

    assert _actions(updated) == [ChangeAction.USER_REGISTERED, ChangeAction.USER_UPDATED]
    assert updated.metadata.change_history is not None
    assert updated.metadata.change_history[-1].description == (
        "phoneNumber: +351900000001 -> +351911111111\nvehicleType: car -> motorcycle"
    )
    assert updated.vehicle_type is VehicleType.MOTORCYCLE
    assert updated.metadata.people[0].phone_number == "+351911111111"
    stored = await service.get(EVENT_ID, ALICE)
    assert stored.phone_number == "+351911111111"


async def test_update_without_changes_adds_no_entry(service: RegistrationService) -> None:
    await service.register(make_registration())

    updated = await service.update(EVENT_ID, ALICE, RegistrationUpdate(paid=False))

    assert _actions(updated) == [ChangeAction.USER_REGISTERED]


async def test_update_merges_people_and_vehicle(service: RegistrationService) -> None:
    await service.register(make_registration(guests=["Bob"]))

    updated = await service.update(
        EVENT_ID,
        ALICE,
        RegistrationUpdate(
            people=[Person(cc="999"), Person(name="Carol"), Person(name="Dan", cc="42")],
            vehicle=Vehicle(make="Nissan"),
            payment_file="proof.png",
        ),
    )

    driver, *guests = updated.metadata.people
    assert (driver.name, driver.cc) == ("Alice", "999")
    assert [(guest.name, guest.cc) for guest in guests] == [("Carol", None), ("Dan", "42")]
    assert updated.metadata.vehicle == Vehicle(plate="AA-00-BB", make="Nissan")
    assert updated.metadata.payment_info is not None
    assert updated.metadata.payment_info.payment_file == "proof.png"


async def test_update_driver_only_keeps_guests(service: RegistrationService) -> None:
    await service.register(make_registration(guests=["Bob"]))

    updated = await service.update(
        EVENT_ID, ALICE, RegistrationUpdate(people=[Person(name="Alicia")])
    )

    assert [person.name for person in updated.metadata.people] == ["Alicia", "Bob"]


async def test_update_adjusts_participant_counters(service: RegistrationService) -> None:
    await service.register(make_registration(guests=["Bob"]))
    await service.check_in(EVENT_ID, ALICE, "gate")

    await service.update(
        EVENT_ID,
        ALICE,
        RegistrationUpdate(people=[Person(), Person(name="Carol"), Person(name="Dan")]),
    )

    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.TOTAL_PARTICIPANTS,
        CounterName.PARTICIPANTS_CHECKED_IN,
        CounterName.PARTICIPANTS_NOT_CHECKED_IN,
    ) == (3, 3, 0)


async def test_reregistration_preserves_state_and_history(service: RegistrationService) -> None:
    await service.register(make_registration(comment="first", payment_file="a.pdf"))
    await service.check_in(EVENT_ID, ALICE, "gate")
    await service.confirm_payment(EVENT_ID, ALICE, PaymentConfirmation(amount=Decimal("10")))

    again = await service.register(
        make_registration(guests=["Bob", "Carol"], comment="second", driver="Alice B.")
    )

    assert again.paid
    assert again.checked_in
    assert again.metadata.check_in is not None
    assert again.metadata.payment_info is not None
    assert again.metadata.payment_info.amount == Decimal("10")
    assert again.metadata.payment_info.payment_file == "a.pdf"
    assert again.metadata.people[0].name == "Alice B."
    assert again.metadata.comments_history == ["first"]
    assert _actions(again) == [
        ChangeAction.USER_REGISTERED,
        ChangeAction.CHECK_IN_ADDED,
        ChangeAction.PAYMENT_ADDED,
        ChangeAction.USER_REGISTERED,
        ChangeAction.COMMENT_UPDATED,
    ]
    assert again.metadata.change_history is not None
    assert again.metadata.change_history[3].description == (
        "User re-registered with updated information"
    )

    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.TOTAL,
        CounterName.TOTAL_PARTICIPANTS,
        CounterName.PARTICIPANTS_CHECKED_IN,
        CounterName.PARTICIPANTS_NOT_CHECKED_IN,
    ) == (1, 3, 3, 0)


async def test_reregistration_moves_vehicle_counters(service: RegistrationService) -> None:
    await service.register(make_registration())
    await service.check_in(EVENT_ID, ALICE, "gate")
    await service.confirm_payment(EVENT_ID, ALICE, PaymentConfirmation())

    await service.register(make_registration(vehicle_type=VehicleType.QUAD))

    counters = await service.counters(EVENT_ID)
    assert _counts(
        counters,
        CounterName.TOTAL_CAR,
        CounterName.TOTAL_QUAD,
        CounterName.CHECK_IN_CAR,
        CounterName.CHECK_IN_QUAD,
        CounterName.PAID_CAR,
        CounterName.PAID_QUAD,
    ) == (0, 1, 0, 1, 0, 1)
    assert counters.is_consistent


async def test_notifier_failure_does_not_undo_registration(
    memory_store: InMemoryRecordStore, caplog: pytest.LogCaptureFixture
) -> None:
    service = RegistrationService(memory_store, notifier=FailingNotifier(), clock=FakeClock())

    with caplog.at_level(logging.WARNING, logger="eventregister.domain.registrations"):
        stored = await service.register(make_registration())

    assert await service.get(EVENT_ID, ALICE) == stored
    assert "notification failed" in caplog.text


async def test_find_by_phone(service: RegistrationService) -> None:
    await service.register(make_registration())
    await service.register(make_registration("bob@example.com", phone_number="+351922222222"))

    found = await service.find_by_phone(EVENT_ID, "+351922222222")

    assert found is not None
    assert found.participant_key == "bob@example.com"
    assert await service.find_by_phone(EVENT_ID, "+351000000000") is None


async def test_concurrent_audit_entries_are_kept(
    service: RegistrationService, memory_store: InMemoryRecordStore
) -> None:
    await service.register(make_registration())
    stale = await service.get(EVENT_ID, ALICE)
    await service.check_in(EVENT_ID, ALICE, "gate")

    # a writer that loaded the record before the check-in now persists its update
    updated = stale.model_copy(deep=True)
    updated.metadata.comment = "late"
    service._history.record_comment_change(updated.metadata, None, "late")  # noqa: SLF001
    await service._persist(stale, updated)  # noqa: SLF001

    stored = await service.get(EVENT_ID, ALICE)
    assert _actions(stored) == [
        ChangeAction.USER_REGISTERED,
        ChangeAction.CHECK_IN_ADDED,
        ChangeAction.COMMENT_UPDATED,
    ]
    assert stored.metadata.comment == "late"
    assert await memory_store.get(EVENT_ID, ALICE) == registration_to_item(stored)
