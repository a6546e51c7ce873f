"""Domain model package."""

from __future__ import annotations

from .counters import CounterSnapshot
from .enums import ChangeAction, CounterName, PersonType, VehicleType
from .item import Item
from .registration import (
    ChangeEntry,
    CheckIn,
    Metadata,
    PaymentConfirmation,
    PaymentInfo,
    Person,
    Registration,
    RegistrationUpdate,
    Vehicle,
)

__all__ = [
    "ChangeAction",
    "ChangeEntry",
    "CheckIn",
    "CounterName",
    "CounterSnapshot",
    "Item",
    "Metadata",
    "PaymentConfirmation",
    "PaymentInfo",
    "Person",
    "PersonType",
    "Registration",
    "RegistrationUpdate",
    "Vehicle",
    "VehicleType",
]
