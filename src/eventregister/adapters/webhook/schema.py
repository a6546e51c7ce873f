"""Pydantic model describing the registration form webhook payload."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _parse_guest_count(value: object) -> object:
    if value is None:
        return 0
    if isinstance(value, str):
        return int(value.strip() or 0)
    return value


def _parse_submitted_at(value: object) -> object:
    # the form service sends epoch milliseconds
    if isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str) and value.strip().isdigit():
        return datetime.fromtimestamp(int(value.strip()) / 1000, tz=UTC)
    return _blank_to_none(value)


class WebhookBaseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, extra="ignore", populate_by_name=True)


class WebhookSubmission(WebhookBaseModel):
    email: str
    submitted_at: datetime | None = None
    driver_name: str | None = None
    driver_cc: str | None = None
    address: str | None = None
    phone_number: str | None = None
    vehicle_type: str | None = None
    vehicle_plate: str | None = None
    vehicle_brand: str | None = None
    vehicle_model: str | None = None
    guests_number: int = Field(default=0, ge=0)
    guests_names: str | None = None
    guests_cc: str | None = None
    payment: str | None = None
    comment: str | None = Field(default=None, validation_alias=AliasChoices("comment", "comments"))

    _normalize_email = field_validator("email", mode="before")(_blank_to_none)
    _normalize_text = field_validator(
        "driver_name",
        "driver_cc",
        "address",
        "phone_number",
        "vehicle_type",
        "vehicle_plate",
        "vehicle_brand",
        "vehicle_model",
        "guests_names",
        "guests_cc",
        "payment",
        "comment",
        mode="before",
    )(_blank_to_none)
    _normalize_guest_count = field_validator("guests_number", mode="before")(_parse_guest_count)
    _normalize_submitted_at = field_validator("submitted_at", mode="before")(_parse_submitted_at)
