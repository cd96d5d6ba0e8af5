#=============================================================================
# File        : heapwatch/sampling.py
# Project     : HeapWatch v1.0
# Component   : Sampling - Runtime Memory Counter Reads
# Description : Low-overhead reads of the interpreter's memory counters
#               " Cross-platform RSS/VMS measurement via psutil
#               " Fallback mechanisms for systems without psutil
#               " GC cycle counters from the gc module
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, psutil, gc, tracemalloc
# Standards   : PEP 8, Type Hints, Cross-platform Compatibility
# Created     : 2025-08-19
# Modified    : 2025-09-02 (RuntimeStats reader for GC-synchronized sampling)
# Dependencies: os, gc, sys, time, tracemalloc, psutil, resource (fallback)
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_sampling.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import gc
import os
import sys
import time
import logging
import tracemalloc
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

_logger = logging.getLogger(__name__)


class StatsReadError(RuntimeError):
    """Raised when the runtime memory counters cannot be read."""


@runtime_checkable
class MemoryProvider(Protocol):
    """Protocol for process memory measurement providers."""

    def get_rss_bytes(self) -> int:
        """Get resident memory in bytes."""
        ...

    def get_vms_bytes(self) -> Optional[int]:
        """Get virtual memory size in bytes if available."""
        ...


class PsutilProvider:
    """Memory provider using psutil (preferred)."""

    def __init__(self) -> None:
        try:
            import psutil
            self._psutil = psutil
            self._process = psutil.Process(os.getpid())
        except ImportError:
            raise ImportError("psutil not available")

    def get_rss_bytes(self) -> int:
        try:
            return int(self._process.memory_info().rss)
        except self._psutil.Error as e:
            raise StatsReadError(f"psutil memory_info failed: {e}") from e

    def get_vms_bytes(self) -> Optional[int]:
        try:
            return int(self._process.memory_info().vms)
        except self._psutil.Error as e:
            raise StatsReadError(f"psutil memory_info failed: {e}") from e


class ResourceProvider:
    """Fallback memory provider using the resource module (peak RSS only)."""

    def get_rss_bytes(self) -> int:
        try:
            import resource
            maxrss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        except (ImportError, OSError) as e:
            raise StatsReadError(f"getrusage failed: {e}") from e
        # Linux reports KB, macOS reports bytes
        if sys.platform == "darwin":
            return int(maxrss)
        return int(maxrss) * 1024

    def get_vms_bytes(self) -> Optional[int]:
        return None


class NullProvider:
    """Null memory provider when no measurement is available."""

    def get_rss_bytes(self) -> int:
        return 0

    def get_vms_bytes(self) -> Optional[int]:
        return None


def detect_provider() -> MemoryProvider:
    """Auto-detect the best available memory provider."""
    try:
        return PsutilProvider()
    except ImportError:
        pass

    try:
        provider = ResourceProvider()
        if provider.get_rss_bytes() > 0:
            return provider
    except StatsReadError:
        pass

    _logger.warning("No memory provider available, byte counters will read as 0")
    return NullProvider()


@dataclass(frozen=True)
class RuntimeStats:
    """One raw read of the interpreter's memory counters."""
    alloc_bytes: int
    allocated_blocks: int
    gc_cycle_number: int
    heap_alloc_bytes: Optional[int] = None
    total_alloc_bytes: Optional[int] = None
    generation: Optional[int] = None          # generation of the triggering GC
    gc_finished_at: Optional[float] = None    # time.monotonic() at GC completion

    def time_since_gc(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds between the triggering GC completion and ``now``."""
        if self.gc_finished_at is None:
            return None
        now = time.monotonic() if now is None else now
        return max(0.0, now - self.gc_finished_at)

    @property
    def triggered_by_gc(self) -> bool:
        """True when a completed collection produced this read (not a poll)."""
        return self.gc_finished_at is not None


def gc_cycle_count() -> int:
    """Total completed collections across all generations."""
    return sum(stats.get("collections", 0) for stats in gc.get_stats())


class StatsReader:
    """
    Synchronous, side-effect free read of the runtime memory counters.

    Safe to call from inside a gc callback: it never triggers a collection
    and only allocates a handful of small objects.
    """

    def __init__(self, provider: Optional[MemoryProvider] = None) -> None:
        self._provider = provider if provider is not None else detect_provider()

    @property
    def provider_type(self) -> str:
        return type(self._provider).__name__

    def read(self, generation: Optional[int] = None,
             gc_finished_at: Optional[float] = None) -> RuntimeStats:
        try:
            rss = self._provider.get_rss_bytes()
            vms = self._provider.get_vms_bytes()
        except StatsReadError:
            raise
        except Exception as e:
            raise StatsReadError(f"{self.provider_type} read failed: {e}") from e

        heap = None
        if tracemalloc.is_tracing():
            heap, _peak = tracemalloc.get_traced_memory()

        return RuntimeStats(
            alloc_bytes=rss,
            allocated_blocks=sys.getallocatedblocks(),
            gc_cycle_number=gc_cycle_count(),
            heap_alloc_bytes=heap,
            total_alloc_bytes=vms,
            generation=generation,
            gc_finished_at=gc_finished_at,
        )


_default_reader: Optional[StatsReader] = None


def get_stats_reader() -> StatsReader:
    """Get the default process-wide stats reader."""
    global _default_reader
    if _default_reader is None:
        _default_reader = StatsReader()
    return _default_reader


# Testing hooks for deterministic unit tests
def force_provider(provider: MemoryProvider) -> None:
    """Force a specific memory provider for testing (replaces global reader)."""
    global _default_reader
    _default_reader = StatsReader(provider)


def reset_global_state() -> None:
    """Reset global reader state (for testing)."""
    global _default_reader
    _default_reader = None
