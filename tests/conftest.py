#=============================================================================
# File        : tests/conftest.py
# Project     : HeapWatch v1.0
# Component   : Shared Test Fixtures
# Description : Deterministic providers, traps and clocks for the test suite
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import gc
import itertools
import sys
import threading
import time
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Add heapwatch to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from heapwatch.sampling import RuntimeStats, StatsReader, reset_global_state
from heapwatch.snapshot import Snapshot


class FakeProvider:
    """Memory provider returning scripted values."""

    def __init__(self, rss: int = 4096, vms: Optional[int] = 8192, fail: bool = False):
        self.rss = rss
        self.vms = vms
        self.fail = fail
        self.reads = 0

    def get_rss_bytes(self) -> int:
        self.reads += 1
        if self.fail:
            raise OSError("provider unavailable")
        return self.rss

    def get_vms_bytes(self) -> Optional[int]:
        return self.vms


class ScriptedTrap:
    """
    Trap returning scripted results in order.

    Items are RuntimeStats or exceptions (raised from the wait). Once the
    script is exhausted ``drained`` is set and waits block until interrupted.
    """

    def __init__(self, items: List[Any]):
        self._items = list(items)
        self._wake = threading.Event()
        self.drained = threading.Event()
        self.waits = 0

    def await_next_gc_completion(self, timeout: Optional[float] = None) -> Optional[RuntimeStats]:
        self.waits += 1
        if self._items:
            item = self._items.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        self.drained.set()
        self._wake.wait(timeout if timeout is not None else 5.0)
        self._wake.clear()
        return None

    def interrupt(self) -> None:
        self._wake.set()


def make_stats(alloc: int, cycle: int, blocks: int = 1000, from_gc: bool = True) -> RuntimeStats:
    """Scripted read; ``from_gc`` marks it as delivered by a completed collection."""
    return RuntimeStats(alloc_bytes=alloc, allocated_blocks=blocks, gc_cycle_number=cycle,
                        gc_finished_at=time.monotonic() if from_gc else None)


def make_snapshot(alloc: int, cycle: int, taken_at: float, objects: int = 1000) -> Snapshot:
    return Snapshot(alloc_bytes=alloc, heap_objects=objects,
                    gc_cycle_number=cycle, taken_at=taken_at)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_reader(fake_provider):
    return StatsReader(fake_provider)


@pytest.fixture
def step_clock():
    """Clock advancing one second per call, starting at 1000.0."""
    counter = itertools.count(1000.0, 1.0)
    return lambda: next(counter)


@pytest.fixture
def gc_disabled():
    """Keep automatic collections from firing during timing-sensitive tests."""
    was_enabled = gc.isenabled()
    gc.disable()
    try:
        yield
    finally:
        if was_enabled:
            gc.enable()


@pytest.fixture(autouse=True)
def _reset_sampling_state():
    yield
    reset_global_state()
