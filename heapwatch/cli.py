#!/usr/bin/env python3
"""
HeapWatch CLI Interface

Command-line host process for the HeapWatch monitor: starts a monitor, ticks
periodically and exits on interrupt or when the monitor closes.
"""

import argparse
import json
import logging
import signal
import sys
import threading
import time

from . import __version__
from .config import HeapWatchConfig, TRAP_NAMES
from .monitor import new_monitor

GROW_CHUNK_BYTES = 64 * 1024


def create_parser():
    """Create the argument parser for HeapWatch CLI."""
    parser = argparse.ArgumentParser(
        prog='heapwatch',
        description='HeapWatch - GC-synchronized heap growth monitoring',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  heapwatch watch --log-level debug
  heapwatch watch --trap poll --poll-interval 0.5 --grow
  heapwatch config --json
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Watch command
    watch_parser = subparsers.add_parser('watch', help='Run a monitor in the foreground')
    watch_parser.add_argument('--history-size', type=int, default=None,
                              help='Snapshots retained in the history ring')
    watch_parser.add_argument('--trap', choices=list(TRAP_NAMES), default=None,
                              help='GC trap implementation (default: callback)')
    watch_parser.add_argument('--poll-interval', type=float, default=None,
                              help='Polling interval in seconds for the poll trap')
    watch_parser.add_argument('--report-every', type=int, default=None,
                              help='Emit a leak report every N samples')
    watch_parser.add_argument('--tick', type=float, default=1.0,
                              help='Seconds between ticks (default: 1)')
    watch_parser.add_argument('--grow', action='store_true',
                              help='Grow a junk buffer every tick (demo leak)')
    watch_parser.add_argument('--duration', type=float, default=None,
                              help='Exit after this many seconds')
    watch_parser.add_argument('--log-level', default='info',
                              choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')

    # Config command
    config_parser = subparsers.add_parser('config', help='Show effective configuration')
    config_parser.add_argument('--json', action='store_true',
                               help='Output in JSON format')

    return parser


def build_config(args):
    """Environment-backed config with command-line overrides applied."""
    config = HeapWatchConfig.from_env()
    overrides = {}
    if getattr(args, 'history_size', None) is not None:
        overrides['history_size'] = args.history_size
    if getattr(args, 'trap', None) is not None:
        overrides['trap'] = args.trap
    if getattr(args, 'poll_interval', None) is not None:
        overrides['poll_interval_s'] = args.poll_interval
    if getattr(args, 'report_every', None) is not None:
        overrides['report_every_cycles'] = args.report_every
    return config.merge(**overrides) if overrides else config


def format_config_text(config):
    lines = []
    lines.append("HeapWatch Configuration")
    lines.append("=" * 23)
    for key, value in config.to_dict().items():
        if isinstance(value, dict):
            lines.append(f"{key}:")
            for sub_key, sub_value in value.items():
                lines.append(f"   {sub_key}: {sub_value}")
        else:
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


def _relay(source, target):
    source.wait()
    target.set()


def cmd_watch(args, stop_event=None):
    """
    Handle watch command.

    ``stop_event`` replaces the signal-driven interrupt; it is also set when
    the monitor closes on its own.
    """
    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    logger = logging.getLogger('heapwatch')

    interrupt = stop_event or threading.Event()
    previous = {}
    if threading.current_thread() is threading.main_thread():
        def on_signal(signum, frame):
            interrupt.set()
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, on_signal)

    monitor = new_monitor(config=config, logger=logger)
    # a closing monitor wakes the tick wait too; the relay ends once closed is set
    threading.Thread(target=_relay, args=(monitor.closed, interrupt),
                     name="HeapWatch-CloseRelay", daemon=True).start()
    junk = []
    deadline = time.monotonic() + args.duration if args.duration is not None else None

    try:
        while True:
            woke = interrupt.wait(args.tick)
            if monitor.closed.is_set():
                print("Monitor closed")
                return 1 if monitor.error else 0
            if woke:
                break
            if args.grow:
                junk.append(bytearray(GROW_CHUNK_BYTES))
            print(f"tick, {len(junk) * GROW_CHUNK_BYTES}")
            if deadline is not None and time.monotonic() >= deadline:
                break
    finally:
        monitor.close(wait=True, timeout=2.0)
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    report = monitor.last_report
    if report is not None:
        print(report.summary())
    return 0


def cmd_config(args):
    """Handle config command."""
    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 1

    if args.json:
        print(json.dumps(config.to_dict(), indent=2))
    else:
        print(format_config_text(config))
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handlers
    handlers = {
        'watch': cmd_watch,
        'config': cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
