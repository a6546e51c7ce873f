"""Participant records and the metadata blob embedded in them."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .enums import ChangeAction, PersonType, VehicleType


def _normalize_vehicle_type(value: object) -> object:
    if value is None or isinstance(value, str):
        return VehicleType.normalize(value)
    return value


class RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Person(RecordModel):
    type: PersonType = PersonType.GUEST
    name: str | None = None
    cc: str | None = None
    phone_number: str | None = None
    drivers_license: str | None = None


class Vehicle(RecordModel):
    plate: str | None = None
    make: str | None = None
    model: str | None = None


class PaymentInfo(RecordModel):
    amount: Decimal | None = None
    by_who: str | None = None
    confirmed_at: datetime | None = None
    payment_file: str | None = None


class CheckIn(RecordModel):
    check_in_at: datetime | None = None
    by_who: str | None = None


class ChangeEntry(RecordModel):
    """One line of a record's audit trail; ``timestamp`` is ISO-8601 UTC."""

    timestamp: str
    action: ChangeAction
    description: str


class Metadata(RecordModel):
    people: list[Person] = Field(default_factory=list)
    vehicle: Vehicle | None = None
    phone_number: str | None = None
    registered_at: datetime | None = None
    check_in: CheckIn | None = None
    raw_webhook: str | None = None
    payment_info: PaymentInfo | None = None
    comment: str | None = None
    # legacy projection of previous comments, oldest first
    comments_history: list[str] | None = None
    change_history: list[ChangeEntry] | None = None

    @model_validator(mode="after")
    def _driver_first(self) -> Metadata:
        if self.people:
            self.people[0].type = PersonType.DRIVER
        return self

    @property
    def driver(self) -> Person | None:
        return self.people[0] if self.people else None

    @property
    def participant_count(self) -> int:
        """Driver plus guests; a record always accounts for at least its driver."""
        return max(len(self.people), 1)


class Registration(RecordModel):
    """A participant record, keyed by ``(event_id, participant_key)``."""

    event_id: str
    participant_key: str
    paid: bool = False
    checked_in: bool = False
    vehicle_type: VehicleType = VehicleType.CAR
    phone_number: str | None = None
    metadata: Metadata = Field(default_factory=Metadata)

    _coerce_vehicle_type = field_validator("vehicle_type", mode="before")(
        _normalize_vehicle_type
    )

    @property
    def participant_count(self) -> int:
        return self.metadata.participant_count


class RegistrationUpdate(RecordModel):
    """Partial update; only fields present in ``model_fields_set`` are applied.

    An explicit ``comment=None`` clears the comment.
    """

    people: list[Person] | None = None
    phone_number: str | None = None
    vehicle: Vehicle | None = None
    payment_file: str | None = None
    comment: str | None = None
    vehicle_type: str | None = None
    paid: bool | None = None


class PaymentConfirmation(RecordModel):
    amount: Decimal | None = None
    by_who: str | None = None
    payment_file: str | None = None
