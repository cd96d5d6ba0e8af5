#=============================================================================
# File        : heapwatch/__init__.py
# Project     : HeapWatch v1.0 - Open Source
# Component   : Package Initialization
# Description : GC-synchronized heap growth observer
#               • Samples memory counters right after each GC cycle
#               • Bounded history of snapshots, constant memory
#               • Growth rate and leak verdict as structured log records
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, gc callbacks
# Standards   : PEP 8, Type Hints, Dataclasses
# Created     : 2025-08-19
# Modified    : 2025-09-02 (GC-synchronized monitor)
# Dependencies: typing, threading, gc, psutil
# SHA-256     : [Updated by CI/CD]
# Testing     : tests/
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. Released under MIT License.
#=============================================================================

"""
HeapWatch - GC-synchronized heap growth monitoring

Quick Start:
    import heapwatch

    monitor = heapwatch.watch()

    # Your application code here

    print(monitor.last_report)
    heapwatch.stop()
"""

from .monitor import (
    Monitor,
    MonitorState,
    new_monitor,
    watch,
    stop,
    is_watching,
    get_status,
)

from .config import (
    HeapWatchConfig,
    ClassifierConfig,
)

from .sampling import (
    RuntimeStats,
    StatsReader,
    StatsReadError,
)

from .snapshot import Snapshot, capture_snapshot
from .history import HistoryRing
from .report import Change, Diff, LeakReport, LeakReason, diff, classify
from .trap import GcTrap, GcCallbackTrap, FinalizerTrap, PollingTrap, create_trap

__version__ = "1.0.0"
__author__ = "Kyle Clouthier"
__license__ = "MIT"

__all__ = [
    # Monitor
    "Monitor",
    "MonitorState",
    "new_monitor",
    "watch",
    "stop",
    "is_watching",
    "get_status",

    # Configuration
    "HeapWatchConfig",
    "ClassifierConfig",

    # Sampling
    "RuntimeStats",
    "StatsReader",
    "StatsReadError",
    "Snapshot",
    "capture_snapshot",
    "HistoryRing",

    # Reporting
    "Change",
    "Diff",
    "LeakReport",
    "LeakReason",
    "diff",
    "classify",

    # Traps
    "GcTrap",
    "GcCallbackTrap",
    "FinalizerTrap",
    "PollingTrap",
    "create_trap",

    # Metadata
    "__version__",
    "__author__",
    "__license__",
]
