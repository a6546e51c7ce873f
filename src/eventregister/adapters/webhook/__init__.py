"""Public interface for the registration form webhook adapter."""

from __future__ import annotations

from .schema import WebhookSubmission
from .translator import (
    SubmissionInput,
    parse_submission,
    registration_from_submission,
    split_guest_field,
)

__all__ = [
    "SubmissionInput",
    "WebhookSubmission",
    "parse_submission",
    "registration_from_submission",
    "split_guest_field",
]
