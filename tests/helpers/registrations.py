"""Builders and fakes shared by registration tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from eventregister.domain.model import (
    Metadata,
    Person,
    PersonType,
    Registration,
    Vehicle,
    VehicleType,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

EVENT_ID = "E"
ALICE = "alice@example.com"


@dataclass(slots=True)
class FakeClock:
    """Deterministic clock advancing one second per reading."""

    now: datetime = field(default_factory=lambda: datetime(2024, 5, 1, 9, 0, tzinfo=UTC))
    step: timedelta = timedelta(seconds=1)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@dataclass(slots=True)
class RecordingNotifier:
    received: list[Registration] = field(default_factory=list)

    async def registration_completed(self, registration: Registration) -> None:
        self.received.append(registration)


class FailingNotifier:
    async def registration_completed(self, registration: Registration) -> None:
        raise ConnectionError(f"mail server down for {registration.participant_key}")


def make_registration(
    participant_key: str = ALICE,
    *,
    event_id: str = EVENT_ID,
    driver: str = "Alice",
    guests: Sequence[str] = ("Bob",),
    vehicle_type: VehicleType = VehicleType.CAR,
    phone_number: str | None = "+351900000001",
    comment: str | None = None,
    payment_file: str | None = None,
) -> Registration:
    """Build a normalized registration: driver first, then guests."""

    people = [Person(type=PersonType.DRIVER, name=driver, phone_number=phone_number)]
    people.extend(Person(name=guest) for guest in guests)
    metadata_fields: dict[str, Any] = {
        "people": people,
        "vehicle": Vehicle(plate="AA-00-BB", make="Toyota"),
        "phone_number": phone_number,
        "comment": comment,
    }
    if payment_file is not None:
        metadata_fields["payment_info"] = {"payment_file": payment_file}
    return Registration(
        event_id=event_id,
        participant_key=participant_key,
        vehicle_type=vehicle_type,
        phone_number=phone_number,
        metadata=Metadata(**metadata_fields),
    )


def make_submission(**overrides: Any) -> dict[str, Any]:
    """Raw form payload as posted by the registration webhook."""

    payload: dict[str, Any] = {
        "submittedAt": 1714554000000,
        "email": ALICE,
        "driverName": "Alice",
        "driverCc": "12345678",
        "phoneNumber": "+351900000001",
        "vehicleType": "Jipe",
        "vehiclePlate": "AA-00-BB",
        "vehicleBrand": "Toyota",
        "guestsNumber": "1",
        "guestsNames": "Bob",
        "guestsCc": "87654321",
        "payment": "receipt.pdf",
    }
    payload.update(overrides)
    return payload
