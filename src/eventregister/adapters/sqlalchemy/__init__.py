"""SQLAlchemy adapter package for the event register."""

from __future__ import annotations

from .mappings import create_all_tables, events_register_table, metadata
from .store import (
    SqlAlchemyRecordStore,
    StoreNotStartedError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyRecordStore",
    "StoreNotStartedError",
    "configured_engine",
    "create_all_tables",
    "events_register_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
