"""Domain port definitions for adapters."""

from __future__ import annotations

from .notification import RegistrationNotifier
from .persistence import RecordStore

__all__ = [
    "RecordStore",
    "RegistrationNotifier",
]
