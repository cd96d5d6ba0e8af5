#=============================================================================
# File        : heapwatch/report.py
# Project     : HeapWatch v1.0
# Component   : Report - Growth Diffs and Leak Classification
# Description : Data structures and pure functions for leak verdicts
#               " Change/Diff between two snapshots (negative deltas kept)
#               " LeakReport with growth rate normalized to hours
#               " Deterministic, configurable classification policy
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, Enum
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-08-19
# Modified    : 2025-09-02 (History ring classification)
# Dependencies: dataclasses, enum, typing, config, history, snapshot
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_report.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .config import ClassifierConfig
from .history import HistoryRing
from .snapshot import Snapshot

SECONDS_PER_HOUR = 3600.0


class LeakReason(Enum):
    """Verdicts a LeakReport can carry."""
    INSUFFICIENT_DATA = "insufficient-data"
    LEAK_SUSPECTED = "leak-suspected"
    STABLE = "stable"
    SHRINKING = "shrinking"
    GROWING = "growing"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Change:
    """Counter deltas between two snapshots. Negative means the heap shrank."""
    alloc_bytes: int
    heap_objects: int


@dataclass(frozen=True)
class Diff:
    before: Snapshot
    after: Snapshot
    change: Change

    @property
    def elapsed_s(self) -> float:
        return self.after.taken_at - self.before.taken_at


def diff(before: Snapshot, after: Snapshot) -> Diff:
    """Pair two snapshots with their counter deltas."""
    return Diff(
        before=before,
        after=after,
        change=Change(
            alloc_bytes=after.alloc_bytes - before.alloc_bytes,
            heap_objects=after.heap_objects - before.heap_objects,
        ),
    )


@dataclass(frozen=True)
class LeakReport:
    """
    Growth summary over the window covered by a history ring.

    ``start``/``end`` are wall-clock timestamps of the oldest and newest
    snapshot; both are 0.0 when the ring was empty.
    """
    start: float
    end: float
    collections: int
    growth: int
    growth_per_hour: float
    reason: LeakReason
    samples: int = 0

    @property
    def is_leak_suspected(self) -> bool:
        return self.reason is LeakReason.LEAK_SUSPECTED

    @property
    def duration_s(self) -> float:
        return max(0.0, self.end - self.start)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'end': self.end,
            'collections': self.collections,
            'growth': self.growth,
            'growth_per_hour': self.growth_per_hour,
            'reason': self.reason.value,
        }

    def summary(self) -> str:
        """Generate human-readable summary."""
        return (f"{self.reason.value}: {self.growth:+d} bytes over "
                f"{self.duration_s:.1f}s ({self.collections} collections, "
                f"{self.growth_per_hour:+.0f} bytes/hour)")


def _insufficient(start: float = 0.0, end: float = 0.0, collections: int = 0,
                  growth: int = 0, samples: int = 0) -> LeakReport:
    return LeakReport(
        start=start,
        end=end,
        collections=collections,
        growth=growth,
        growth_per_hour=0.0,
        reason=LeakReason.INSUFFICIENT_DATA,
        samples=samples,
    )


def classify_growth(growth: int, growth_per_hour: float, collections: int,
                    config: ClassifierConfig) -> LeakReason:
    """
    Apply the classification policy. First match wins:

    1. leak-suspected: positive growth at or above the leak threshold,
       sustained over at least ``min_collections`` collections
    2. stable: rate within the tolerance band around zero
    3. shrinking: rate below the negative tolerance
    4. growing: anything else
    """
    if (growth > 0
            and growth_per_hour >= config.leak_threshold_bytes_per_hour
            and collections >= config.min_collections):
        return LeakReason.LEAK_SUSPECTED
    if abs(growth_per_hour) <= config.stable_tolerance_bytes_per_hour:
        return LeakReason.STABLE
    if growth_per_hour < -config.stable_tolerance_bytes_per_hour:
        return LeakReason.SHRINKING
    return LeakReason.GROWING


def classify(history: HistoryRing, config: Optional[ClassifierConfig] = None) -> LeakReport:
    """Summarize the growth between the oldest and newest retained snapshot."""
    config = config or ClassifierConfig()
    samples = history.count
    if samples < 2:
        return _insufficient(samples=samples)

    oldest = history.oldest
    newest = history.newest
    assert oldest is not None and newest is not None

    delta = diff(oldest, newest)
    growth = delta.change.alloc_bytes
    # duplicate or regressing cycle numbers never yield a negative count
    collections = max(0, newest.gc_cycle_number - oldest.gc_cycle_number)
    elapsed = delta.elapsed_s

    if elapsed < config.min_elapsed_s:
        return _insufficient(oldest.taken_at, newest.taken_at, collections, growth, samples)

    growth_per_hour = growth * SECONDS_PER_HOUR / elapsed
    return LeakReport(
        start=oldest.taken_at,
        end=newest.taken_at,
        collections=collections,
        growth=growth,
        growth_per_hour=growth_per_hour,
        reason=classify_growth(growth, growth_per_hour, collections, config),
        samples=samples,
    )
