"""The unit exchanged with the record store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Item:
    """A stored item: participant record or counter, located by its two keys.

    ``partition_key`` is the event id. ``sort_key`` is a participant key or a
    counter name; both live in the same partition.
    """

    partition_key: str
    sort_key: str
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.partition_key, self.sort_key)
