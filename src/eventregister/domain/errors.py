"""Typed failures raised by the registration core."""

from __future__ import annotations


class RegistrationError(Exception):
    """Base class for failures surfaced to callers of the registration core."""


class NotFoundError(RegistrationError):
    """No participant record exists for the requested key."""

    def __init__(self, event_id: str, participant_key: str) -> None:
        super().__init__(f"No registration for {participant_key!r} in event {event_id!r}")
        self.event_id = event_id
        self.participant_key = participant_key


class PreconditionFailedError(RegistrationError):
    """The record is not in a state that allows the requested transition."""

    def __init__(self, event_id: str, participant_key: str, reason: str) -> None:
        super().__init__(f"{reason} ({participant_key!r} in event {event_id!r})")
        self.event_id = event_id
        self.participant_key = participant_key
        self.reason = reason


class ValidationError(RegistrationError, ValueError):
    """Arguments to a mutation or audit entry are missing or malformed."""


class SerializationError(RegistrationError):
    """A metadata blob could not be parsed or produced."""
