"""Registration notification settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, positive_number_env_var

DEFAULT_NOTIFY_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class NotificationConfig:
    """Where to announce completed registrations; ``url=None`` keeps it in the logs."""

    url: str | None = None
    timeout_seconds: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS


def get_notification_config() -> NotificationConfig:
    return NotificationConfig(
        url=optional_env_var("EVENTREGISTER_NOTIFY_URL"),
        timeout_seconds=positive_number_env_var(
            "EVENTREGISTER_NOTIFY_TIMEOUT", DEFAULT_NOTIFY_TIMEOUT_SECONDS, float
        ),
    )
