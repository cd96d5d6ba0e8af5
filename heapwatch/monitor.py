#=============================================================================
# File        : heapwatch/monitor.py
# Project     : HeapWatch v1.0
# Component   : Monitor - GC-synchronized Sampling Control Loop
# Description : Background loop tying trap -> snapshot -> history -> report
#               " One daemon thread per monitor, one trap wait at a time
#               " Duplicate cycle detection, logged and absorbed
#               " Periodic leak reports to the log and an optional sink
#               " Idempotent closed signal and graceful close requests
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2025-08-19
# Modified    : 2025-09-02 (GC trap driven control loop)
# Dependencies: config, sampling, snapshot, history, report, trap
# SHA-256     : [PLACEHOLDER - Updated by CI/CD]
# Testing     : tests/test_monitor.py
# License     : MIT License
# Copyright   : © 2025 Kyle Clouthier. All rights reserved.
#=============================================================================

from __future__ import annotations

import time
import threading
import logging
import platform
import os
import sys
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .config import HeapWatchConfig
from .sampling import RuntimeStats, StatsReader, StatsReadError, get_stats_reader
from .snapshot import Snapshot, capture_snapshot
from .history import HistoryRing
from .report import LeakReport, classify
from .trap import GcTrap, create_trap

# Configure safe logging defaults
_logger = logging.getLogger(__name__)

# Add console handler only if none exists
if not _logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _formatter = logging.Formatter('[HeapWatch] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _logger.addHandler(_console_handler)

ReportSink = Callable[[LeakReport], None]


class MonitorState(Enum):
    CREATED = "created"
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


def format_fields(fields: Dict[str, Any]) -> str:
    """Render structured fields as ``key=value`` pairs for the message text."""
    parts = []
    for key, value in fields.items():
        if isinstance(value, float):
            value = f"{value:.6g}"
        parts.append(f"{key}={value}")
    return " ".join(parts)


def sample_fields(stats: RuntimeStats, now: Optional[float] = None) -> Dict[str, Any]:
    return {
        'gc_cycle_number': stats.gc_cycle_number,
        'alloc_bytes': stats.alloc_bytes,
        'heap_alloc_bytes': stats.heap_alloc_bytes,
        'total_alloc_bytes': stats.total_alloc_bytes,
        'malloc_count': None,  # CPython keeps no cumulative malloc counter
        'time_since_gc': stats.time_since_gc(now),
    }


class Monitor:
    """
    GC-synchronized heap growth observer.

    The control loop runs on its own daemon thread and is the only writer of
    the history ring. ``closed`` is set exactly once, when the loop exits for
    any reason; ``closing`` records a shutdown request.
    """

    def __init__(self,
                 config: Optional[HeapWatchConfig] = None,
                 logger: Optional[logging.Logger] = None,
                 trap: Optional[GcTrap] = None,
                 reader: Optional[StatsReader] = None,
                 report_sink: Optional[ReportSink] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self.config = config or HeapWatchConfig()
        self.log = logger or _logger
        self._reader = reader if reader is not None else get_stats_reader()
        self._trap = trap if trap is not None else create_trap(self.config, self._reader)
        self._report_sink = report_sink
        self._clock = clock

        self.closed = threading.Event()
        self.closing = threading.Event()

        self._history = HistoryRing(self.config.history_size)
        self._history_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._state = MonitorState.CREATED
        self._thread: Optional[threading.Thread] = None

        self._last_cycle: Optional[int] = None
        self._last_report: Optional[LeakReport] = None
        self._last_report_time = 0.0
        self._samples_since_report = 0

        self.started_at = 0.0
        self.samples = 0
        self.anomalies = 0
        self.timeouts = 0
        self.reports = 0
        self.error: Optional[BaseException] = None

    # --------- Lifecycle ---------

    def start(self) -> "Monitor":
        """Start the control loop in the background and return immediately."""
        with self._state_lock:
            if self._state is not MonitorState.CREATED:
                raise RuntimeError(f"Monitor cannot start from state {self._state.value}")
            self._state = MonitorState.RUNNING
            self.started_at = self._clock()
            self._last_report_time = self.started_at
            self._thread = threading.Thread(
                target=self._run,
                name="HeapWatch-Monitor",
                daemon=True,
            )
            # started under the lock so close() never sees an unstarted thread
            self._thread.start()
        return self

    def close(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Request shutdown. The loop notices after its current trap wait,
        which is interrupted here. Returns whether ``closed`` is set.
        """
        with self._state_lock:
            if self._state is MonitorState.CREATED:
                self._state = MonitorState.CLOSING
                self.closing.set()
                self._mark_closed()
                return True
            if self._state is MonitorState.RUNNING:
                self._state = MonitorState.CLOSING
        self.closing.set()
        self._trap.interrupt()

        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        return self.closed.is_set()

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        return self.closed.wait(timeout)

    def _mark_closed(self) -> None:
        # Event.set is idempotent; the state lock keeps the transition single
        with self._state_lock:
            if self._state is MonitorState.CLOSED:
                return
            self._state = MonitorState.CLOSED
        self.closed.set()

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    # --------- Control loop ---------

    def _run(self) -> None:
        self.log.debug("Monitor started")
        try:
            while not self.closing.is_set():
                stats = self._trap.await_next_gc_completion(self.config.trap_timeout_s)
                if stats is None:
                    if self.closing.is_set():
                        break
                    # bounded wait expired, read directly
                    self.timeouts += 1
                    self.log.debug("GC trap timed out, reading stats directly")
                    stats = self._reader.read()
                self._observe(stats)
        except StatsReadError as e:
            self.error = e
            self.log.error(f"Failed to read runtime stats, monitor closing: {e}")
        except Exception as e:
            self.error = e
            self.log.error(f"Monitor loop failed, closing: {e}", exc_info=True)
        finally:
            self._mark_closed()
            self.log.debug("Monitor stopped")

    def _observe(self, stats: RuntimeStats) -> None:
        """Process one trap result. Runs on the loop thread only."""
        # polled and timed-out reads repeat the cycle number while the collector is idle
        if (stats.triggered_by_gc and self._last_cycle is not None
                and stats.gc_cycle_number <= self._last_cycle):
            self.anomalies += 1
            fields = {
                'last_gc_cycle_number': self._last_cycle,
                'gc_cycle_number': stats.gc_cycle_number,
            }
            self.log.error(f"unexpected duplicate cycle number {format_fields(fields)}",
                           extra={'fields': fields})
        elif self._last_cycle is None or stats.gc_cycle_number > self._last_cycle:
            self._last_cycle = stats.gc_cycle_number

        snapshot = capture_snapshot(stats, taken_at=self._clock())
        with self._history_lock:
            self._history.push(snapshot)
        self.samples += 1
        self._samples_since_report += 1

        if self.log.isEnabledFor(logging.DEBUG):
            fields = sample_fields(stats)
            self.log.debug(f"GC ran {format_fields(fields)}", extra={'fields': fields})

        if self._report_due(snapshot.taken_at):
            self._emit_report(snapshot.taken_at)

    def _report_due(self, now: float) -> bool:
        if not self.config.reports_enabled():
            return False
        every = self.config.report_every_cycles
        if every and self._samples_since_report >= every:
            return True
        interval = self.config.report_interval_s
        return interval is not None and now - self._last_report_time >= interval

    def _emit_report(self, now: float) -> None:
        report = classify(self._history, self.config.classifier)
        self._last_report = report
        self._last_report_time = now
        self._samples_since_report = 0
        self.reports += 1

        fields = report.to_dict()
        level = logging.WARNING if report.is_leak_suspected else logging.INFO
        self.log.log(level, f"leak report {format_fields(fields)}", extra={'fields': fields})

        if self._report_sink is not None:
            try:
                self._report_sink(report)
            except Exception as e:
                self.log.error(f"Report sink failed: {e}")

    # --------- Read-only views ---------

    @property
    def last_report(self) -> Optional[LeakReport]:
        return self._last_report

    def history_snapshot(self) -> Tuple[Snapshot, ...]:
        """Copy of the retained snapshots, oldest first."""
        with self._history_lock:
            return self._history.snapshots()

    def classify_now(self) -> LeakReport:
        """Classify a copy of the current history without touching the loop."""
        with self._history_lock:
            history = self._history.copy()
        return classify(history, self.config.classifier)

    def get_status(self) -> Dict[str, Any]:
        report = self._last_report
        return {
            'state': self._state.value,
            'uptime_seconds': self._clock() - self.started_at if self.started_at else 0,
            'samples': self.samples,
            'anomalies': self.anomalies,
            'timeouts': self.timeouts,
            'reports': self.reports,
            'history_count': len(self._history),
            'history_size': self._history.size,
            'last_gc_cycle_number': self._last_cycle,
            'last_report': report.to_dict() if report else None,
            'error': str(self.error) if self.error else None,
            'configuration': self.config.to_dict(),
        }


def new_monitor(config: Optional[HeapWatchConfig] = None,
                logger: Optional[logging.Logger] = None,
                trap: Optional[GcTrap] = None,
                reader: Optional[StatsReader] = None,
                report_sink: Optional[ReportSink] = None) -> Monitor:
    """Create a Monitor and start its control loop in the background."""
    return Monitor(config=config, logger=logger, trap=trap, reader=reader,
                   report_sink=report_sink).start()


# Process-wide monitor for the convenience API
_watch_state = {
    'monitor': None,
    'lock': threading.RLock(),
}

_environment_info = {
    'platform': platform.system(),
    'python_implementation': platform.python_implementation(),
    'python_version': platform.python_version(),
    'process_name': os.path.basename(sys.argv[0]) if sys.argv else 'unknown'
}


def watch(config: Optional[HeapWatchConfig] = None,
          logger: Optional[logging.Logger] = None,
          report_sink: Optional[ReportSink] = None) -> Monitor:
    """
    Start the process-wide monitor (environment overrides applied).

    Returns the running monitor; calling again while it runs returns it.
    """
    with _watch_state['lock']:
        monitor = _watch_state['monitor']
        if monitor is not None and not monitor.closed.is_set():
            _logger.warning("HeapWatch monitor already running")
            return monitor
        config = HeapWatchConfig.from_env(config)
        monitor = new_monitor(config=config, logger=logger, report_sink=report_sink)
        _watch_state['monitor'] = monitor
        _logger.info(f"HeapWatch started with trap={config.trap} history_size={config.history_size}")
        return monitor


def stop(timeout: Optional[float] = 2.0) -> None:
    """Close the process-wide monitor if one is running."""
    with _watch_state['lock']:
        monitor = _watch_state['monitor']
        if monitor is None:
            return
        _watch_state['monitor'] = None
    if not monitor.close(wait=True, timeout=timeout):
        _logger.warning("HeapWatch monitor did not close within timeout")


def is_watching() -> bool:
    monitor = _watch_state['monitor']
    return monitor is not None and not monitor.closed.is_set()


def get_status() -> Dict[str, Any]:
    """Status of the process-wide monitor."""
    monitor = _watch_state['monitor']
    status: Dict[str, Any] = {
        'is_watching': is_watching(),
        'environment_info': _environment_info.copy(),
    }
    if monitor is not None:
        status['monitor'] = monitor.get_status()
    return status


def _cleanup_on_exit():
    """Close the process-wide monitor on interpreter exit."""
    try:
        stop(timeout=0.5)
    except Exception:
        pass  # Ignore errors during cleanup


import atexit
atexit.register(_cleanup_on_exit)
