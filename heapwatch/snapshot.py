#=============================================================================
# File        : heapwatch/snapshot.py
# Project     : HeapWatch v1.0
# Component   : Snapshot - Point-in-time Memory Counter Record
# Description : Immutable snapshot of the runtime memory counters
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: time, dataclasses, sampling
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_history.py, tests/test_report.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .sampling import RuntimeStats


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable read of the memory counters at one instant.

    ``gc_cycle_number`` strictly increases between consecutive snapshots
    under correct operation.
    """
    alloc_bytes: int
    heap_objects: int
    gc_cycle_number: int
    taken_at: float

    heap_alloc_bytes: Optional[int] = None
    total_alloc_bytes: Optional[int] = None
    malloc_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'alloc_bytes': self.alloc_bytes,
            'heap_objects': self.heap_objects,
            'gc_cycle_number': self.gc_cycle_number,
            'taken_at': self.taken_at,
            'heap_alloc_bytes': self.heap_alloc_bytes,
            'total_alloc_bytes': self.total_alloc_bytes,
            'malloc_count': self.malloc_count,
        }


def capture_snapshot(stats: RuntimeStats, taken_at: Optional[float] = None) -> Snapshot:
    """Turn a raw runtime read into a Snapshot."""
    return Snapshot(
        alloc_bytes=stats.alloc_bytes,
        heap_objects=stats.allocated_blocks,
        gc_cycle_number=stats.gc_cycle_number,
        taken_at=time.time() if taken_at is None else taken_at,
        heap_alloc_bytes=stats.heap_alloc_bytes,
        total_alloc_bytes=stats.total_alloc_bytes,
    )
