"""Registration notifiers: log-only by default, or an HTTP callback."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx

from eventregister.config import get_notification_config

if TYPE_CHECKING:
    from eventregister.config import NotificationConfig
    from eventregister.domain.model import Registration
    from eventregister.domain.ports import RegistrationNotifier

log = getLogger(__name__)

REGISTRATION_COMPLETED = "registration.completed"


def registration_payload(registration: Registration) -> dict[str, Any]:
    """JSON body announcing ``registration``; the raw form submission is left out."""

    body = registration.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        exclude={"metadata": {"raw_webhook"}},
    )
    return {"type": REGISTRATION_COMPLETED, "registration": body}


class LoggingNotifier:
    async def registration_completed(self, registration: Registration) -> None:
        log.info(
            "Registration completed: %s in event %s",
            registration.participant_key,
            registration.event_id,
        )


class NotificationError(RuntimeError):
    """Raised when the notification endpoint rejects a registration callback."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HttpRegistrationNotifier:
    """POST each completed registration to ``url`` as JSON."""

    url: str
    timeout_seconds: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None

    async def registration_completed(self, registration: Registration) -> None:
        payload = registration_payload(registration)
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            response = await client.post(self.url, json=payload)
        if response.is_error:
            raise NotificationError(
                f"Notification endpoint answered {response.status_code} for "
                f"{registration.participant_key}",
                status_code=response.status_code,
            )
        log.debug(
            "Notified %s about %s (%s)",
            self.url,
            registration.participant_key,
            response.status_code,
        )


def build_notifier(config: NotificationConfig | None = None) -> RegistrationNotifier:
    effective = config or get_notification_config()
    if effective.url is None:
        return LoggingNotifier()
    return HttpRegistrationNotifier(url=effective.url, timeout_seconds=effective.timeout_seconds)
