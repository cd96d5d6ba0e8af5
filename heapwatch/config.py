#=============================================================================
# File        : heapwatch/config.py
# Project     : HeapWatch v1.0
# Component   : Configuration - HeapWatch Configuration Dataclasses
# Description : Central configuration with validation and env overrides
#               • Validation & coercion for safe values
#               • Environment variable overrides for ops
#               • Classifier thresholds as explicit configuration
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, Type Literals
# Standards   : PEP 8, Type Hints, Immutable Configuration
# Created     : 2025-08-19
# Modified    : 2025-09-02 (GC-synchronized sampling settings)
# Dependencies: dataclasses, typing, os
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_config.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Literal

TrapName = Literal["callback", "finalizer", "poll"]

TRAP_NAMES = ("callback", "finalizer", "poll")

MIB = 1024 * 1024
KIB = 1024


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None: return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_optional_float(name: str, default: Optional[float]) -> Optional[float]:
    v = os.getenv(name)
    if v is None: return default
    if v.strip().lower() in {"", "none", "off"}:
        return None
    try:
        return float(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class ClassifierConfig:
    """Thresholds for turning history growth into a leak verdict."""
    leak_threshold_bytes_per_hour: float = 8 * MIB
    min_collections: int = 10
    stable_tolerance_bytes_per_hour: float = 256 * KIB
    min_elapsed_s: float = 1.0     # below this the rate is not extrapolated

    def __post_init__(self):
        object.__setattr__(self, "leak_threshold_bytes_per_hour",
                           max(0.0, float(self.leak_threshold_bytes_per_hour)))
        object.__setattr__(self, "min_collections", max(0, int(self.min_collections)))
        object.__setattr__(self, "stable_tolerance_bytes_per_hour",
                           max(0.0, float(self.stable_tolerance_bytes_per_hour)))
        if self.min_elapsed_s <= 0:
            raise ValueError(f"min_elapsed_s must be positive, got {self.min_elapsed_s}")


@dataclass(frozen=True)
class HeapWatchConfig:
    """
    HeapWatch runtime configuration.

    Safety defaults:
      - native post-GC callback trap, every generation
      - no wait timeout (a stalled collector stalls the monitor)
      - leak report every 10 samples
    """
    history_size: int = 120
    trap: TrapName = "callback"
    min_generation: int = 0           # ignore collections below this generation
    poll_interval_s: float = 1.0      # only used by the "poll" trap
    trap_timeout_s: Optional[float] = None
    report_every_cycles: int = 10
    report_interval_s: Optional[float] = None

    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    def __post_init__(self):
        if self.history_size < 1:
            raise ValueError(f"history_size must be at least 1, got {self.history_size}")
        if self.trap not in TRAP_NAMES:
            raise ValueError(f"Unknown trap '{self.trap}'")

        gen = min(2, max(0, int(self.min_generation)))
        pi = max(0.05, self.poll_interval_s)
        timeout = self.trap_timeout_s
        if timeout is not None and timeout <= 0:
            timeout = None
        every = max(0, int(self.report_every_cycles))
        interval = self.report_interval_s
        if interval is not None and interval <= 0:
            interval = None

        object.__setattr__(self, "min_generation", gen)
        object.__setattr__(self, "poll_interval_s", pi)
        object.__setattr__(self, "trap_timeout_s", timeout)
        object.__setattr__(self, "report_every_cycles", every)
        object.__setattr__(self, "report_interval_s", interval)

    # --------- Factory helpers ---------

    @staticmethod
    def from_env(base: Optional["HeapWatchConfig"] = None) -> "HeapWatchConfig":
        """
        Build config from environment variables, overlaying a base config.
        Supported envs:
          HEAPWATCH_HISTORY_SIZE
          HEAPWATCH_TRAP (callback|finalizer|poll)
          HEAPWATCH_MIN_GENERATION
          HEAPWATCH_POLL_INTERVAL_S
          HEAPWATCH_TRAP_TIMEOUT_S (seconds, or "none")
          HEAPWATCH_REPORT_EVERY
          HEAPWATCH_REPORT_INTERVAL_S (seconds, or "none")
          HEAPWATCH_LEAK_THRESHOLD_BYTES_PER_HOUR
          HEAPWATCH_MIN_COLLECTIONS
          HEAPWATCH_STABLE_TOLERANCE_BYTES_PER_HOUR
          HEAPWATCH_MIN_ELAPSED_S
        """
        base = base or HeapWatchConfig()
        cls = base.classifier
        return replace(
            base,
            history_size=_env_int("HEAPWATCH_HISTORY_SIZE", base.history_size),
            trap=(os.getenv("HEAPWATCH_TRAP", base.trap) or base.trap),  # type: ignore
            min_generation=_env_int("HEAPWATCH_MIN_GENERATION", base.min_generation),
            poll_interval_s=_env_float("HEAPWATCH_POLL_INTERVAL_S", base.poll_interval_s),
            trap_timeout_s=_env_optional_float("HEAPWATCH_TRAP_TIMEOUT_S", base.trap_timeout_s),
            report_every_cycles=_env_int("HEAPWATCH_REPORT_EVERY", base.report_every_cycles),
            report_interval_s=_env_optional_float("HEAPWATCH_REPORT_INTERVAL_S", base.report_interval_s),
            classifier=ClassifierConfig(
                leak_threshold_bytes_per_hour=_env_float(
                    "HEAPWATCH_LEAK_THRESHOLD_BYTES_PER_HOUR", cls.leak_threshold_bytes_per_hour),
                min_collections=_env_int("HEAPWATCH_MIN_COLLECTIONS", cls.min_collections),
                stable_tolerance_bytes_per_hour=_env_float(
                    "HEAPWATCH_STABLE_TOLERANCE_BYTES_PER_HOUR", cls.stable_tolerance_bytes_per_hour),
                min_elapsed_s=_env_float("HEAPWATCH_MIN_ELAPSED_S", cls.min_elapsed_s),
            ),
        )

    def merge(self, **overrides) -> "HeapWatchConfig":
        """Return a copy with provided fields overridden (immutably)."""
        return replace(self, **overrides)

    def reports_enabled(self) -> bool:
        return self.report_every_cycles > 0 or self.report_interval_s is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'history_size': self.history_size,
            'trap': self.trap,
            'min_generation': self.min_generation,
            'poll_interval_s': self.poll_interval_s,
            'trap_timeout_s': self.trap_timeout_s,
            'report_every_cycles': self.report_every_cycles,
            'report_interval_s': self.report_interval_s,
            'classifier': {
                'leak_threshold_bytes_per_hour': self.classifier.leak_threshold_bytes_per_hour,
                'min_collections': self.classifier.min_collections,
                'stable_tolerance_bytes_per_hour': self.classifier.stable_tolerance_bytes_per_hour,
                'min_elapsed_s': self.classifier.min_elapsed_s,
            },
        }
