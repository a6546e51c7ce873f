"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class VehicleType(StrEnum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    QUAD = "quad"

    @classmethod
    def normalize(cls, value: str | VehicleType | None) -> VehicleType:
        """Map free-text input (including form labels) onto the canonical set.

        Unrecognised or missing input falls back to ``CAR``.
        """

        if isinstance(value, VehicleType):
            return value
        if value is None:
            return cls.CAR
        return _VEHICLE_ALIASES.get(value.strip().lower(), cls.CAR)


_VEHICLE_ALIASES: Final[dict[str, VehicleType]] = {
    "car": VehicleType.CAR,
    "jipe": VehicleType.CAR,
    "motorcycle": VehicleType.MOTORCYCLE,
    "mota": VehicleType.MOTORCYCLE,
    "quad": VehicleType.QUAD,
}


class PersonType(StrEnum):
    DRIVER = "driver"
    GUEST = "guest"


class ChangeAction(StrEnum):
    USER_REGISTERED = "USER_REGISTERED"
    USER_UPDATED = "USER_UPDATED"
    PAYMENT_ADDED = "PAYMENT_ADDED"
    CHECK_IN_ADDED = "CHECK_IN_ADDED"
    CHECK_IN_REMOVED = "CHECK_IN_REMOVED"
    COMMENT_UPDATED = "COMMENT_UPDATED"


class CounterName(StrEnum):
    """Every counter sort key the ledger may write.

    Counters share a partition with participant records, so a name must never be
    mistakable for a participant key (an email address).
    """

    TOTAL = "total"
    TOTAL_CAR = "totalcar"
    TOTAL_MOTORCYCLE = "totalmotorcycle"
    TOTAL_QUAD = "totalquad"

    CHECK_IN_CAR = "checkInCountercar"
    CHECK_IN_MOTORCYCLE = "checkInCountermotorcycle"
    CHECK_IN_QUAD = "checkInCounterquad"

    PAID = "paidCounter"
    PAID_CAR = "paidCountercar"
    PAID_MOTORCYCLE = "paidCountermotorcycle"
    PAID_QUAD = "paidCounterquad"

    TOTAL_PARTICIPANTS = "totalParticipants"
    PARTICIPANTS_CHECKED_IN = "participantsCheckedIn"
    PARTICIPANTS_NOT_CHECKED_IN = "participantsNotCheckedIn"

    @classmethod
    def total_for(cls, vehicle_type: VehicleType) -> CounterName:
        return cls(f"{cls.TOTAL.value}{vehicle_type.value}")

    @classmethod
    def check_in_for(cls, vehicle_type: VehicleType) -> CounterName:
        return cls(f"checkInCounter{vehicle_type.value}")

    @classmethod
    def paid_for(cls, vehicle_type: VehicleType) -> CounterName:
        return cls(f"{cls.PAID.value}{vehicle_type.value}")

    @classmethod
    def is_counter_key(cls, sort_key: str) -> bool:
        return sort_key in _COUNTER_KEYS


_COUNTER_KEYS: Final[frozenset[str]] = frozenset(name.value for name in CounterName)


def _validate_counter_registry() -> None:
    for name in CounterName:
        if "@" in name.value or not name.value.isalnum():
            raise RuntimeError(f"Counter name {name.value!r} could collide with a participant key")
    for vehicle_type in VehicleType:
        # raises ValueError if a per-type counter is missing from the registry
        CounterName.total_for(vehicle_type)
        CounterName.check_in_for(vehicle_type)
        CounterName.paid_for(vehicle_type)


_validate_counter_registry()
