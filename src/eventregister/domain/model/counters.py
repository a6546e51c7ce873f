"""Point-in-time view over an event's counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .enums import CounterName, VehicleType

if TYPE_CHECKING:
    from collections.abc import Mapping

_PAYLOAD_KEYS: Final[dict[CounterName, str]] = {
    CounterName.TOTAL: "total",
    CounterName.TOTAL_CAR: "totalCar",
    CounterName.TOTAL_MOTORCYCLE: "totalMotorcycle",
    CounterName.TOTAL_QUAD: "totalQuad",
    CounterName.TOTAL_PARTICIPANTS: "totalParticipants",
    CounterName.CHECK_IN_CAR: "checkedInCar",
    CounterName.CHECK_IN_MOTORCYCLE: "checkedInMotorcycle",
    CounterName.CHECK_IN_QUAD: "checkedInQuad",
    CounterName.PAID: "paid",
    CounterName.PAID_CAR: "paidCar",
    CounterName.PAID_MOTORCYCLE: "paidMotorcycle",
    CounterName.PAID_QUAD: "paidQuad",
    CounterName.PARTICIPANTS_CHECKED_IN: "participantsCheckedIn",
    CounterName.PARTICIPANTS_NOT_CHECKED_IN: "participantsNotCheckedIn",
}


@dataclass(frozen=True, slots=True)
class CounterSnapshot:
    """Counter values for one event; counters never written read as zero."""

    event_id: str
    counts: Mapping[CounterName, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        filled = {name: int(self.counts.get(name, 0)) for name in CounterName}
        object.__setattr__(self, "counts", MappingProxyType(filled))

    def __getitem__(self, name: CounterName) -> int:
        return self.counts[name]

    @property
    def is_consistent(self) -> bool:
        """Whether the per-type totals and participant split add up."""

        by_type = sum(self.counts[CounterName.total_for(vt)] for vt in VehicleType)
        participants = (
            self.counts[CounterName.PARTICIPANTS_CHECKED_IN]
            + self.counts[CounterName.PARTICIPANTS_NOT_CHECKED_IN]
        )
        return (
            by_type == self.counts[CounterName.TOTAL]
            and participants == self.counts[CounterName.TOTAL_PARTICIPANTS]
        )

    def to_payload(self) -> dict[str, int]:
        return {_PAYLOAD_KEYS[name]: value for name, value in self.counts.items()}
