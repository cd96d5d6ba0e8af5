#=============================================================================
# File        : heapwatch/history.py
# Project     : HeapWatch v1.0
# Component   : History - Fixed-capacity Snapshot Ring
# Description : Circular buffer retaining the most recent N snapshots
#               " O(1) push, oldest entry overwritten when full
#               " Oldest-to-newest traversal regardless of wrap position
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_history.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Tuple

from .snapshot import Snapshot


class HistoryRing:
    """
    Fixed-capacity circular buffer of Snapshots.

    Not thread-safe: the owning Monitor is the only writer. Readers on other
    threads should use ``snapshots()`` through the Monitor, which copies out
    under its lock.
    """

    __slots__ = ('_items', '_index', '_count', '_size')

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError(f"History size must be at least 1, got {size}")
        self._items: List[Optional[Snapshot]] = [None] * size
        self._index = size - 1  # slot of the newest entry
        self._count = 0
        self._size = size

    @property
    def size(self) -> int:
        return self._size

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def is_full(self) -> bool:
        return self._count == self._size

    def push(self, snapshot: Snapshot) -> "HistoryRing":
        """Append a snapshot, overwriting the oldest when full."""
        self._index = (self._index + 1) % self._size
        self._items[self._index] = snapshot
        if self._count < self._size:
            self._count += 1
        return self

    def _start(self) -> int:
        # once full this is the slot right after the newest entry
        return (self._index + 1 - self._count) % self._size

    def for_each(self, visit: Callable[[Snapshot], None]) -> None:
        """Call ``visit`` on every retained snapshot, oldest first."""
        start = self._start()
        for offset in range(self._count):
            visit(self._items[(start + offset) % self._size])  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[Snapshot]:
        start = self._start()
        for offset in range(self._count):
            yield self._items[(start + offset) % self._size]  # type: ignore[misc]

    @property
    def oldest(self) -> Optional[Snapshot]:
        if not self._count:
            return None
        return self._items[self._start()]

    @property
    def newest(self) -> Optional[Snapshot]:
        if not self._count:
            return None
        return self._items[self._index]

    def snapshots(self) -> Tuple[Snapshot, ...]:
        """Immutable copy of the retained snapshots, oldest first."""
        return tuple(self)

    def copy(self) -> "HistoryRing":
        clone = HistoryRing(self._size)
        clone._items = list(self._items)
        clone._index = self._index
        clone._count = self._count
        return clone

    def __repr__(self) -> str:
        return f"HistoryRing(size={self._size}, count={self._count})"
