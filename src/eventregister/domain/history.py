"""Append-only audit trail kept inside each record's metadata."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

from eventregister.domain.errors import ValidationError
from eventregister.domain.model import ChangeAction, ChangeEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from eventregister.domain.model import Metadata, Person, Registration, Vehicle

log = logging.getLogger(__name__)

EMPTY: Final[str] = "(empty)"

TRACKED_FIELDS: Final[tuple[str, ...]] = (
    "people",
    "phoneNumber",
    "vehicle",
    "paymentFile",
    "vehicleType",
    "paid",
)

_ESCAPES: Final[dict[int, str]] = str.maketrans(
    {
        "\\": "\\\\",
        '"': '\\"',
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
    }
)


def sanitize(text: str | None) -> str:
    """Escape free text for embedding in a change description.

    >>> sanitize('say "hi"')
    'say \\\\"hi\\\\"'
    >>> sanitize("   ")
    '(empty)'
    """

    if text is None or not text.strip():
        return EMPTY
    return text.translate(_ESCAPES)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""

    utc = moment.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _render_person(person: Person) -> str:
    details = [
        f"{label}: {value}"
        for label, value in (
            ("cc", person.cc),
            ("license", person.drivers_license),
        )
        if value
    ]
    name = person.name or "(unnamed)"
    return f"{name} ({', '.join(details)})" if details else name


def _render_people(people: list[Person]) -> str | None:
    if not people:
        return None
    return ", ".join(_render_person(person) for person in people)


def _render_vehicle(vehicle: Vehicle | None) -> str | None:
    if vehicle is None:
        return None
    parts = [part for part in (vehicle.plate, vehicle.make, vehicle.model) if part]
    return " ".join(parts) or None


def tracked_values(registration: Registration) -> dict[str, Any]:
    """Comparable values of every tracked field."""

    metadata = registration.metadata
    payment_file = metadata.payment_info.payment_file if metadata.payment_info else None
    vehicle = metadata.vehicle.model_dump(exclude_none=True) if metadata.vehicle else None
    return {
        "people": [
            person.model_dump(exclude_none=True, exclude={"phone_number"})
            for person in metadata.people
        ],
        "phoneNumber": metadata.phone_number or registration.phone_number,
        "vehicle": vehicle or None,
        "paymentFile": payment_file,
        "vehicleType": registration.vehicle_type.value,
        "paid": registration.paid,
    }


def _rendered_values(registration: Registration) -> dict[str, str | None]:
    metadata = registration.metadata
    payment_file = metadata.payment_info.payment_file if metadata.payment_info else None
    return {
        "people": _render_people(metadata.people),
        "phoneNumber": metadata.phone_number or registration.phone_number,
        "vehicle": _render_vehicle(metadata.vehicle),
        "paymentFile": payment_file,
        "vehicleType": registration.vehicle_type.value,
        "paid": "true" if registration.paid else "false",
    }


def describe_changes(before: Registration, after: Registration) -> list[str]:
    """One ``"field: old -> new"`` line per tracked field that differs."""

    old_values = tracked_values(before)
    new_values = tracked_values(after)
    old_text = _rendered_values(before)
    new_text = _rendered_values(after)
    return [
        f"{field}: {sanitize(old_text[field])} -> {sanitize(new_text[field])}"
        for field in TRACKED_FIELDS
        if old_values[field] != new_values[field]
    ]


def append_entries(history: list[ChangeEntry], additions: list[ChangeEntry]) -> list[ChangeEntry]:
    """Return ``history`` followed by ``additions``, never stepping back in time."""

    merged = list(history)
    for entry in additions:
        last = _parse_timestamp(merged[-1].timestamp) if merged else None
        current = _parse_timestamp(entry.timestamp)
        if last is not None and current is not None and current < last:
            merged.append(entry.model_copy(update={"timestamp": merged[-1].timestamp}))
        else:
            merged.append(entry)
    return merged


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


class ChangeHistoryRecorder:
    """Writes :class:`ChangeEntry` lines into ``Metadata.change_history``."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def record(
        self,
        metadata: Metadata | None,
        action: ChangeAction | str | None,
        description: str | None,
    ) -> ChangeEntry:
        if metadata is None:
            raise ValidationError("Cannot record a change without metadata")
        if not action:
            raise ValidationError("Change action is required")
        try:
            resolved = ChangeAction(action)
        except ValueError as exc:
            raise ValidationError(f"Unknown change action {action!r}") from exc
        if description is None or not description.strip():
            raise ValidationError("Change description is required")

        if metadata.change_history is None:
            metadata.change_history = []
        entry = ChangeEntry(
            timestamp=self._next_timestamp(metadata.change_history),
            action=resolved,
            description=description,
        )
        metadata.change_history.append(entry)
        log.debug("Recorded %s: %s", resolved.value, description)
        return entry

    def record_update(self, before: Registration, after: Registration) -> ChangeEntry | None:
        """Record one ``USER_UPDATED`` entry on ``after`` if any tracked field changed."""

        lines = describe_changes(before, after)
        if not lines:
            return None
        return self.record(after.metadata, ChangeAction.USER_UPDATED, "\n".join(lines))

    def record_comment_change(
        self, metadata: Metadata, old: str | None, new: str | None
    ) -> ChangeEntry | None:
        """Record a ``COMMENT_UPDATED`` entry and keep the legacy comment list in step.

        Blank and missing comments are equivalent. The previous comment is appended to
        ``comments_history`` only when it had content.
        """

        if (_is_blank(old) and _is_blank(new)) or old == new:
            return None
        if old is not None and old.strip():
            if metadata.comments_history is None:
                metadata.comments_history = []
            metadata.comments_history.append(old)
        description = f'Comment changed from "{sanitize(old)}" to "{sanitize(new)}"'
        return self.record(metadata, ChangeAction.COMMENT_UPDATED, description)

    def _next_timestamp(self, history: list[ChangeEntry]) -> str:
        now = self._clock()
        if history:
            last = _parse_timestamp(history[-1].timestamp)
            if last is not None and last > now:
                # wall clock stepped back; keep the trail ordered
                now = last
        return format_timestamp(now)
