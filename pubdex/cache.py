"""A bounded set that evicts a random member once full."""

from __future__ import annotations

import random


class GrpHashset:
    """Set of byte strings whose size is kept near ``max_size`` by random eviction."""

    def __init__(self, max_size: int, rng: random.Random | None = None):
        self.max_size = max_size
        self.count = 0
        self._items: list[bytes] = []
        self._set: set[bytes] = set()
        self._rng = rng if rng is not None else random.Random()

    def __contains__(self, value: object) -> bool:
        return bytes(value) in self._set  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._set)

    def contains(self, value: bytes) -> bool:
        return value in self

    def insert(self, value: bytes) -> bool:
        """Add ``value``; return True if it was not already present."""
        value = bytes(value)
        self.count += 1
        added = value not in self._set
        self._set.add(value)
        self._items.append(value)
        if self.count >= self.max_size:
            victim = self._items.pop(self._rng.randrange(self.max_size))
            self._set.discard(victim)
        return added