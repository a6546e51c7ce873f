"""SQLAlchemy table metadata for the event register."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime, Dialect, MetaData, String, Table, TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    """Store aware datetimes; SQLite hands them back naive, so re-attach UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "pk": "pk_%(table_name)s",
    }
)

# participant records and counters share the table; sort_key tells them apart
events_register_table = Table(
    "events_register",
    metadata,
    Column("partition_key", String, primary_key=True),
    Column("sort_key", String, primary_key=True),
    Column("attributes", JSON, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create database tables for the register metadata."""

    log.info("Creating all tables")
    async with engine.begin() as connection:
        await connection.run_sync(metadata.create_all)
