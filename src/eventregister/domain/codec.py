"""Translate between domain records and store items."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from eventregister.domain.errors import SerializationError
from eventregister.domain.model import Item, Metadata, Registration

if TYPE_CHECKING:
    from eventregister.domain.model import CounterName

PAID_ATTRIBUTE: Final[str] = "paid"
CHECKED_IN_ATTRIBUTE: Final[str] = "checkedIn"
VEHICLE_TYPE_ATTRIBUTE: Final[str] = "vehicleType"
PHONE_NUMBER_ATTRIBUTE: Final[str] = "phoneNumber"
METADATA_ATTRIBUTE: Final[str] = "metadata"
COUNT_ATTRIBUTE: Final[str] = "count"


def encode_metadata(metadata: Metadata) -> str:
    try:
        return metadata.model_dump_json(by_alias=True, exclude_none=True)
    except PydanticSerializationError as exc:
        raise SerializationError(f"Cannot serialize metadata: {exc}") from exc


def decode_metadata(blob: object) -> Metadata:
    """Parse a stored metadata blob (JSON text or an already-decoded mapping)."""

    if blob is None:
        raise SerializationError("Record has no metadata")
    try:
        if isinstance(blob, str | bytes):
            return Metadata.model_validate_json(blob)
        return Metadata.model_validate(blob)
    except PydanticValidationError as exc:
        raise SerializationError(f"Cannot parse metadata: {exc}") from exc


def registration_to_item(registration: Registration) -> Item:
    phone_number = registration.metadata.phone_number or registration.phone_number
    return Item(
        partition_key=registration.event_id,
        sort_key=registration.participant_key,
        attributes={
            PAID_ATTRIBUTE: registration.paid,
            CHECKED_IN_ATTRIBUTE: registration.checked_in,
            VEHICLE_TYPE_ATTRIBUTE: registration.vehicle_type.value,
            PHONE_NUMBER_ATTRIBUTE: phone_number,
            METADATA_ATTRIBUTE: encode_metadata(registration.metadata),
        },
    )


def registration_from_item(item: Item) -> Registration:
    attributes = item.attributes
    return Registration(
        event_id=item.partition_key,
        participant_key=item.sort_key,
        paid=bool(attributes.get(PAID_ATTRIBUTE, False)),
        checked_in=bool(attributes.get(CHECKED_IN_ATTRIBUTE, False)),
        vehicle_type=attributes.get(VEHICLE_TYPE_ATTRIBUTE),
        phone_number=attributes.get(PHONE_NUMBER_ATTRIBUTE),
        metadata=decode_metadata(attributes.get(METADATA_ATTRIBUTE)),
    )


def counter_item(event_id: str, name: CounterName, count: int) -> Item:
    return Item(partition_key=event_id, sort_key=name.value, attributes={COUNT_ATTRIBUTE: count})


def counter_value(item: Item | None) -> int:
    if item is None:
        return 0
    return int(item.attributes.get(COUNT_ATTRIBUTE, 0))
