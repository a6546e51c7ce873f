"""Port for announcing completed registrations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from eventregister.domain.model import Registration


@runtime_checkable
class RegistrationNotifier(Protocol):
    async def registration_completed(self, registration: Registration) -> None: ...
