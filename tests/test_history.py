#=============================================================================
# File        : tests/test_history.py
# Project     : HeapWatch v1.0
# Component   : History Ring Test Suite
# Description : Ordering, eviction and copy-out behaviour of HistoryRing
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import pytest

from heapwatch.history import HistoryRing

from conftest import make_snapshot


def allocs(ring):
    seen = []
    ring.for_each(lambda s: seen.append(s.alloc_bytes))
    return seen


class TestHistoryRing:

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            HistoryRing(0)

    def test_empty_ring_visits_nothing(self):
        ring = HistoryRing(4)
        assert allocs(ring) == []
        assert ring.oldest is None
        assert ring.newest is None
        assert len(ring) == 0

    @pytest.mark.parametrize("pushes", [1, 2, 5])
    def test_partial_fill_visits_in_push_order(self, pushes):
        ring = HistoryRing(5)
        for i in range(pushes):
            ring.push(make_snapshot(i * 10, i, float(i)))

        assert allocs(ring) == [i * 10 for i in range(pushes)]
        assert ring.count == pushes

    def test_overflow_keeps_last_size_entries_oldest_first(self):
        ring = HistoryRing(4)
        for i in range(11):
            ring.push(make_snapshot(i, i, float(i)))

        assert allocs(ring) == [7, 8, 9, 10]
        assert ring.count == 4
        assert ring.is_full()
        assert ring.oldest.alloc_bytes == 7
        assert ring.newest.alloc_bytes == 10

    def test_capacity_three_eviction_scenario(self):
        ring = HistoryRing(3)
        for alloc, cycle in ((100, 1), (150, 2), (400, 3)):
            ring.push(make_snapshot(alloc, cycle, float(cycle)))
        assert allocs(ring) == [100, 150, 400]

        ring.push(make_snapshot(50, 4, 4.0))

        assert allocs(ring) == [150, 400, 50]
        assert [s.gc_cycle_number for s in ring] == [2, 3, 4]

    def test_size_one_ring_holds_newest(self):
        ring = HistoryRing(1)
        ring.push(make_snapshot(1, 1, 1.0))
        ring.push(make_snapshot(2, 2, 2.0))
        assert allocs(ring) == [2]
        assert ring.oldest is ring.newest

    def test_snapshots_is_an_independent_copy(self):
        ring = HistoryRing(2)
        ring.push(make_snapshot(1, 1, 1.0))
        copied = ring.snapshots()
        ring.push(make_snapshot(2, 2, 2.0))
        ring.push(make_snapshot(3, 3, 3.0))

        assert isinstance(copied, tuple)
        assert [s.alloc_bytes for s in copied] == [1]

    def test_copy_does_not_share_storage(self):
        ring = HistoryRing(3)
        ring.push(make_snapshot(1, 1, 1.0))
        clone = ring.copy()
        clone.push(make_snapshot(2, 2, 2.0))

        assert allocs(ring) == [1]
        assert allocs(clone) == [1, 2]

    def test_push_returns_ring(self):
        ring = HistoryRing(2)
        assert ring.push(make_snapshot(1, 1, 1.0)) is ring
