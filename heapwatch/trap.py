#=============================================================================
# File        : heapwatch/trap.py
# Project     : HeapWatch v1.0
# Component   : GC Trap - One-shot Garbage Collection Completion Wait
# Description : Suspend the caller until the collector finishes a cycle
#               " Native post-GC hook (gc.callbacks), the default
#               " Finalizer-on-sentinel variant (weakref.finalize)
#               " Fixed-interval polling variant
#               " Interruptible waits for graceful shutdown
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, gc, weakref, queue
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: gc, weakref, queue, threading, sampling, config
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_trap.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

"""
GC completion traps.

Every trap hands results over through a ``queue.SimpleQueue`` created for a
single wait. ``SimpleQueue.put`` is reentrant, so it is safe to call from a
gc callback or a weakref callback running on an arbitrary thread, including
the waiting thread itself. Only one wait may be outstanding per trap.
"""

from __future__ import annotations

import gc
import queue
import threading
import time
import weakref
import logging
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from .config import HeapWatchConfig
from .sampling import RuntimeStats, StatsReader, get_stats_reader

_logger = logging.getLogger(__name__)

# Handoff markers
_INTERRUPTED = object()


class _Fired:
    __slots__ = ('at',)

    def __init__(self, at: float) -> None:
        self.at = at


@runtime_checkable
class GcTrap(Protocol):
    """Protocol for one-shot GC completion traps."""

    def await_next_gc_completion(self, timeout: Optional[float] = None) -> Optional[RuntimeStats]:
        """Block until the next GC completes; None on timeout or interrupt."""
        ...

    def interrupt(self) -> None:
        """Wake the outstanding wait (or the next one) with None."""
        ...


class _OneShotTrap:
    """Shared arm/wait/disarm cycle for the concrete traps."""

    name = "base"

    def __init__(self, reader: Optional[StatsReader] = None) -> None:
        self._reader = reader if reader is not None else get_stats_reader()
        self._lock = threading.Lock()
        self._handoff: Optional[queue.SimpleQueue] = None
        self._interrupt_pending = False
        self.waits = 0

    def _arm(self, handoff: queue.SimpleQueue) -> Callable[[], None]:
        """Arm one notification into ``handoff``; return its disarm function."""
        raise NotImplementedError

    def _resolve(self, item: Any) -> RuntimeStats:
        if isinstance(item, RuntimeStats):
            return item
        if isinstance(item, BaseException):
            raise item
        raise TypeError(f"Unexpected handoff item {item!r}")

    def _receive(self, handoff: queue.SimpleQueue, timeout: Optional[float]) -> Any:
        try:
            return handoff.get(timeout=timeout)
        except queue.Empty:
            return None

    def await_next_gc_completion(self, timeout: Optional[float] = None) -> Optional[RuntimeStats]:
        handoff: queue.SimpleQueue = queue.SimpleQueue()
        with self._lock:
            if self._handoff is not None:
                raise RuntimeError(f"{self.name} trap already has a wait outstanding")
            if self._interrupt_pending:
                self._interrupt_pending = False
                return None
            self._handoff = handoff
            self.waits += 1

        disarm = self._arm(handoff)
        try:
            item = self._receive(handoff, timeout)
        finally:
            disarm()
            with self._lock:
                self._handoff = None

        if item is None or item is _INTERRUPTED:
            return None
        return self._resolve(item)

    def interrupt(self) -> None:
        with self._lock:
            if self._handoff is None:
                self._interrupt_pending = True
                return
            self._handoff.put(_INTERRUPTED)

    def info(self) -> Dict[str, Any]:
        return {'trap': self.name, 'waits': self.waits, 'outstanding': self._handoff is not None}


class GcCallbackTrap(_OneShotTrap):
    """
    Trap built on the interpreter's native post-GC hook.

    The callback reads the counters in the ``stop`` phase, i.e. right after
    the collection finished and its statistics were updated.
    """

    name = "callback"

    def __init__(self, reader: Optional[StatsReader] = None, min_generation: int = 0) -> None:
        super().__init__(reader)
        self._min_generation = min_generation

    def _arm(self, handoff: queue.SimpleQueue) -> Callable[[], None]:
        reader = self._reader
        min_generation = self._min_generation
        fired = [False]

        def on_gc(phase: str, info: Dict[str, Any]) -> None:
            if phase != "stop" or fired[0]:
                return
            generation = info.get("generation", 0)
            if generation < min_generation:
                return
            fired[0] = True
            finished_at = time.monotonic()
            try:
                item: Any = reader.read(generation=generation, gc_finished_at=finished_at)
            except Exception as e:
                # the waiter re-raises it
                item = e
            handoff.put(item)

        gc.callbacks.append(on_gc)

        def disarm() -> None:
            try:
                gc.callbacks.remove(on_gc)
            except ValueError:
                pass

        return disarm


class _Sentinel:
    """Self-referencing allocation only the cyclic collector can reclaim."""
    __slots__ = ('self_ref', '__weakref__')


def _notify_collected(handoff: queue.SimpleQueue) -> None:
    handoff.put(_Fired(time.monotonic()))


class FinalizerTrap(_OneShotTrap):
    """
    Trap using a finalizer on a short-lived sentinel as a GC event.

    The finalizer runs while the collection is still in progress, so it only
    signals; the counters are read by the waiter once it gets to run again.
    """

    name = "finalizer"

    def _arm(self, handoff: queue.SimpleQueue) -> Callable[[], None]:
        sentinel = _Sentinel()
        sentinel.self_ref = sentinel
        finalizer = weakref.finalize(sentinel, _notify_collected, handoff)
        finalizer.atexit = False
        del sentinel
        return finalizer.detach

    def _resolve(self, item: Any) -> RuntimeStats:
        if isinstance(item, _Fired):
            return self._reader.read(gc_finished_at=item.at)
        return super()._resolve(item)


class PollingTrap(_OneShotTrap):
    """Fallback trap reading the counters on a fixed interval."""

    name = "poll"

    def __init__(self, reader: Optional[StatsReader] = None, interval_s: float = 1.0) -> None:
        super().__init__(reader)
        self._interval_s = interval_s

    def _arm(self, handoff: queue.SimpleQueue) -> Callable[[], None]:
        return lambda: None

    def _receive(self, handoff: queue.SimpleQueue, timeout: Optional[float]) -> Any:
        interval = self._interval_s if timeout is None else min(self._interval_s, timeout)
        try:
            # only an interrupt ever arrives here
            return handoff.get(timeout=interval)
        except queue.Empty:
            return self._reader.read()


def create_trap(config: HeapWatchConfig, reader: Optional[StatsReader] = None) -> GcTrap:
    """Build the trap selected by ``config.trap``."""
    if config.trap == "callback":
        return GcCallbackTrap(reader, min_generation=config.min_generation)
    if config.trap == "finalizer":
        if config.min_generation:
            _logger.warning("finalizer trap ignores min_generation")
        return FinalizerTrap(reader)
    if config.trap == "poll":
        return PollingTrap(reader, interval_s=config.poll_interval_s)
    raise ValueError(f"Unknown trap '{config.trap}'")
