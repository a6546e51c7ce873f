"""SQLAlchemy-backed record store and its engine lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eventregister.adapters.sqlalchemy.mappings import create_all_tables, events_register_table
from eventregister.config import get_database_config
from eventregister.config.storage import DEFAULT_SCAN_PAGE_SIZE
from eventregister.domain.model import Item

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.sql.dml import Insert

log = logging.getLogger(__name__)

_table = events_register_table

# dialects whose INSERT supports ON CONFLICT DO UPDATE
_UPSERT_INSERTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class StoreNotStartedError(RuntimeError):
    """Raised when the SQLAlchemy store is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @engine.setter
    def engine(self, value: AsyncEngine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._engine is None:
            raise StoreNotStartedError(
                "SQLAlchemy store not initialised. Call eventregister.adapters.sqlalchemy."
                "startup() before creating a store."
            )
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


async def startup(
    *,
    engine: AsyncEngine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the async engine, create tables, and prepare the session factory."""

    if _STATE.engine is not None and not force:
        raise StoreNotStartedError(
            "SQLAlchemy store already initialised. Pass force=True to reconfigure."
        )
    if force and _STATE.engine is not None and _STATE.engine is not engine:
        await _STATE.engine.dispose()

    resolved_engine = engine or create_async_engine(database_uri or get_database_config().uri)
    if resolved_engine.dialect.name not in _UPSERT_INSERTS:
        supported = ", ".join(sorted(_UPSERT_INSERTS))
        raise StoreNotStartedError(
            f"Unsupported database dialect {resolved_engine.dialect.name!r}; "
            f"the record store needs one of: {supported}"
        )
    await create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine
    log.info("SQLAlchemy store started on %s", resolved_engine.url.render_as_string())


def configured_engine() -> AsyncEngine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


async def shutdown() -> None:
    """Dispose the managed engine and reset state."""

    if _STATE.engine is not None:
        await _STATE.engine.dispose()
    _STATE.engine = None


def _now() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyRecordStore:
    """Record store over a single ``events_register`` table.

    Every call runs in its own transaction; nothing spans more than one item.
    Writes are upserts, so concurrent writers to one key never conflict: the last
    one wins.
    """

    def __init__(self, *, page_size: int = DEFAULT_SCAN_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.session_factory: async_sessionmaker[AsyncSession] = _STATE.session_factory
        self.page_size = page_size
        self._insert = _UPSERT_INSERTS[self.session_factory.kw["bind"].dialect.name]

    async def get(self, partition_key: str, sort_key: str) -> Item | None:
        async with self.session_factory() as session:
            attributes = await self._attributes(session, partition_key, sort_key)
        if attributes is None:
            return None
        return Item(partition_key=partition_key, sort_key=sort_key, attributes=attributes)

    async def put(self, item: Item) -> None:
        async with self.session_factory() as session, session.begin():
            await session.execute(self._upsert(item, dict(item.attributes)))

    async def update(self, item: Item) -> None:
        async with self.session_factory() as session, session.begin():
            stored = await self._attributes(session, item.partition_key, item.sort_key)
            merged = {**(stored or {}), **item.attributes}
            # the row may be created by another writer between the read and the upsert
            await session.execute(self._upsert(item, merged))

    async def scan(self, partition_key: str) -> Sequence[Item]:
        """Return every item in the partition, paging through by sort key."""

        items: list[Item] = []
        last_key: str | None = None
        async with self.session_factory() as session:
            while True:
                statement = (
                    select(_table.c.sort_key, _table.c.attributes)
                    .where(_table.c.partition_key == partition_key)
                    .order_by(_table.c.sort_key)
                    .limit(self.page_size)
                )
                if last_key is not None:
                    statement = statement.where(_table.c.sort_key > last_key)
                rows = (await session.execute(statement)).all()
                items.extend(
                    Item(
                        partition_key=partition_key,
                        sort_key=row.sort_key,
                        attributes=dict(row.attributes),
                    )
                    for row in rows
                )
                if len(rows) < self.page_size:
                    break
                last_key = rows[-1].sort_key
        log.debug("Scanned %d items in partition %s", len(items), partition_key)
        return items

    @staticmethod
    async def _attributes(
        session: AsyncSession, partition_key: str, sort_key: str
    ) -> dict[str, Any] | None:
        statement = select(_table.c.attributes).where(
            _table.c.partition_key == partition_key,
            _table.c.sort_key == sort_key,
        )
        attributes = (await session.execute(statement)).scalar_one_or_none()
        return dict(attributes) if attributes is not None else None

    def _upsert(self, item: Item, attributes: dict[str, Any]) -> Insert:
        """Insert ``item`` or overwrite the stored row with the same keys."""

        statement = self._insert(_table).values(
            partition_key=item.partition_key,
            sort_key=item.sort_key,
            attributes=attributes,
            updated_at=_now(),
        )
        return statement.on_conflict_do_update(
            index_elements=[_table.c.partition_key, _table.c.sort_key],
            set_={
                "attributes": statement.excluded.attributes,
                "updated_at": statement.excluded.updated_at,
            },
        )
