#=============================================================================
# File        : tests/test_sampling.py
# Project     : HeapWatch v1.0
# Component   : Sampling Test Suite
# Description : Runtime counter reads and snapshot capture
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import gc
import tracemalloc

import pytest

from heapwatch.sampling import (
    PsutilProvider, RuntimeStats, StatsReadError, StatsReader,
    force_provider, gc_cycle_count, get_stats_reader,
)
from heapwatch.snapshot import capture_snapshot

from conftest import FakeProvider


class TestStatsReader:

    def test_reads_provider_and_gc_counters(self, fake_reader):
        stats = fake_reader.read(generation=1, gc_finished_at=5.0)
        assert stats.alloc_bytes == 4096
        assert stats.total_alloc_bytes == 8192
        assert stats.allocated_blocks > 0
        assert stats.generation == 1
        assert stats.gc_finished_at == 5.0

    def test_cycle_number_advances_after_collection(self, fake_reader):
        before = fake_reader.read().gc_cycle_number
        gc.collect()
        assert fake_reader.read().gc_cycle_number > before

    def test_gc_cycle_count_sums_generations(self):
        expected = sum(s['collections'] for s in gc.get_stats())
        assert gc_cycle_count() >= expected

    def test_provider_failure_is_stats_read_error(self):
        reader = StatsReader(FakeProvider(fail=True))
        with pytest.raises(StatsReadError):
            reader.read()

    def test_heap_alloc_only_while_tracing(self, fake_reader):
        assert fake_reader.read().heap_alloc_bytes is None
        tracemalloc.start()
        try:
            data = [bytearray(1024) for _ in range(16)]
            assert fake_reader.read().heap_alloc_bytes > 0
            del data
        finally:
            tracemalloc.stop()

    def test_force_provider_replaces_global_reader(self):
        force_provider(FakeProvider(rss=123))
        assert get_stats_reader().read().alloc_bytes == 123
        assert get_stats_reader().provider_type == "FakeProvider"

    def test_psutil_provider_reads_real_process(self):
        provider = PsutilProvider()
        assert provider.get_rss_bytes() > 0
        assert provider.get_vms_bytes() >= provider.get_rss_bytes()


class TestRuntimeStats:

    def test_time_since_gc(self):
        stats = RuntimeStats(alloc_bytes=1, allocated_blocks=1, gc_cycle_number=1,
                             gc_finished_at=10.0)
        assert stats.time_since_gc(now=12.5) == 2.5
        assert stats.time_since_gc(now=9.0) == 0.0

    def test_time_since_gc_unknown(self):
        stats = RuntimeStats(alloc_bytes=1, allocated_blocks=1, gc_cycle_number=1)
        assert stats.time_since_gc() is None

    def test_triggered_by_gc(self, fake_reader):
        assert fake_reader.read(gc_finished_at=1.0).triggered_by_gc
        assert not fake_reader.read().triggered_by_gc


class TestCaptureSnapshot:

    def test_maps_runtime_fields(self):
        stats = RuntimeStats(alloc_bytes=500, allocated_blocks=42, gc_cycle_number=9,
                             heap_alloc_bytes=300, total_alloc_bytes=900)
        snapshot = capture_snapshot(stats, taken_at=77.0)

        assert snapshot.alloc_bytes == 500
        assert snapshot.heap_objects == 42
        assert snapshot.malloc_count is None
        assert snapshot.gc_cycle_number == 9
        assert snapshot.heap_alloc_bytes == 300
        assert snapshot.total_alloc_bytes == 900
        assert snapshot.taken_at == 77.0

    def test_defaults_to_current_time(self):
        stats = RuntimeStats(alloc_bytes=1, allocated_blocks=1, gc_cycle_number=1)
        assert capture_snapshot(stats).taken_at > 0

    def test_snapshot_is_immutable(self):
        snapshot = capture_snapshot(
            RuntimeStats(alloc_bytes=1, allocated_blocks=1, gc_cycle_number=1), taken_at=1.0)
        with pytest.raises(AttributeError):
            snapshot.alloc_bytes = 2  # type: ignore[misc]
