"""Ports for the partitioned key-value record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventregister.domain.model import Item


@runtime_checkable
class RecordStore(Protocol):
    """Single-item operations over a partitioned key-value store.

    ``put`` and ``update`` are last-writer-wins; there is no version check and no
    operation spans more than one item. ``scan`` returns participant records and
    counters alike; callers separate them by sort key.
    """

    async def get(self, partition_key: str, sort_key: str) -> Item | None: ...

    async def put(self, item: Item) -> None:
        """Store ``item``, replacing any existing attributes."""
        ...

    async def update(self, item: Item) -> None:
        """Merge ``item``'s attributes into the stored item, creating it if absent."""
        ...

    async def scan(self, partition_key: str) -> Sequence[Item]: ...
