"""Translate form submissions into normalized registrations."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from logging import getLogger
from typing import Any, Final

from pydantic import ValidationError as PydanticValidationError

from eventregister.domain.errors import ValidationError
from eventregister.domain.model import (
    Metadata,
    PaymentInfo,
    Person,
    PersonType,
    Registration,
    Vehicle,
    VehicleType,
)

from .schema import WebhookSubmission

log = getLogger(__name__)

GUEST_SEPARATORS: Final[re.Pattern[str]] = re.compile(r"<br\s*/?>|\n|,", re.IGNORECASE)

type SubmissionInput = WebhookSubmission | Mapping[str, Any] | str | bytes


def split_guest_field(value: str | None) -> list[str]:
    """Split a free-text guest field on ``<BR/>``, newlines or commas.

    Positions are preserved (blank entries come back as empty strings) so names
    and identity numbers can be paired by index.
    """

    if value is None or not value.strip():
        return []
    return [part.strip() for part in GUEST_SEPARATORS.split(value.strip())]


def parse_submission(payload: SubmissionInput) -> WebhookSubmission:
    if isinstance(payload, WebhookSubmission):
        return payload
    try:
        if isinstance(payload, str | bytes):
            return WebhookSubmission.model_validate_json(payload)
        return WebhookSubmission.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid registration submission: {exc}") from exc


def _raw_text(payload: SubmissionInput, submission: WebhookSubmission) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    if isinstance(payload, str):
        return payload
    if isinstance(payload, WebhookSubmission):
        return submission.model_dump_json(by_alias=True, exclude_none=True)
    return json.dumps(payload, default=str)


def _build_people(submission: WebhookSubmission) -> list[Person]:
    people = [
        Person(
            type=PersonType.DRIVER,
            name=submission.driver_name,
            cc=submission.driver_cc,
            phone_number=submission.phone_number,
        )
    ]
    names = split_guest_field(submission.guests_names)
    ccs = split_guest_field(submission.guests_cc)
    for index, name in enumerate(names):
        if not name:
            continue
        cc = ccs[index] if index < len(ccs) and ccs[index] else None
        people.append(Person(type=PersonType.GUEST, name=name, cc=cc))

    guests = len(people) - 1
    if names and guests != submission.guests_number:
        log.warning(
            "Submission for %s declares %d guests but names %d",
            submission.email,
            submission.guests_number,
            guests,
        )
    return people


def _build_vehicle(submission: WebhookSubmission) -> Vehicle | None:
    if not any((submission.vehicle_plate, submission.vehicle_brand, submission.vehicle_model)):
        return None
    return Vehicle(
        plate=submission.vehicle_plate,
        make=submission.vehicle_brand,
        model=submission.vehicle_model,
    )


def registration_from_submission(event_id: str, payload: SubmissionInput) -> Registration:
    """Return the normalized registration for one raw form submission."""

    submission = parse_submission(payload)
    vehicle_type = VehicleType.normalize(submission.vehicle_type)
    if submission.vehicle_type and vehicle_type.value != submission.vehicle_type.lower():
        log.debug("Mapped vehicle type %r to %s", submission.vehicle_type, vehicle_type.value)

    metadata = Metadata(
        people=_build_people(submission),
        vehicle=_build_vehicle(submission),
        phone_number=submission.phone_number,
        registered_at=submission.submitted_at,
        payment_info=PaymentInfo(payment_file=submission.payment) if submission.payment else None,
        comment=submission.comment,
        raw_webhook=_raw_text(payload, submission),
    )
    return Registration(
        event_id=event_id,
        participant_key=submission.email,
        vehicle_type=vehicle_type,
        phone_number=submission.phone_number,
        metadata=metadata,
    )
