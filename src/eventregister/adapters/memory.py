"""In-process record store, used for tests and the ``memory`` backend."""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventregister.domain.model import Item

log = logging.getLogger(__name__)


class InMemoryRecordStore:
    """Dictionary-backed store; items are copied on the way in and out."""

    def __init__(self, items: Sequence[Item] = ()) -> None:
        self._items: dict[tuple[str, str], Item] = {}
        for item in items:
            self._items[item.key] = copy.deepcopy(item)

    async def get(self, partition_key: str, sort_key: str) -> Item | None:
        item = self._items.get((partition_key, sort_key))
        return copy.deepcopy(item) if item is not None else None

    async def put(self, item: Item) -> None:
        self._items[item.key] = copy.deepcopy(item)

    async def update(self, item: Item) -> None:
        stored = self._items.get(item.key)
        if stored is None:
            self._items[item.key] = copy.deepcopy(item)
            return
        stored.attributes.update(copy.deepcopy(item.attributes))

    async def scan(self, partition_key: str) -> Sequence[Item]:
        items = [
            copy.deepcopy(item)
            for key, item in sorted(self._items.items())
            if key[0] == partition_key
        ]
        log.debug("Scanned %d items in partition %s", len(items), partition_key)
        return items

    def __len__(self) -> int:
        return len(self._items)
