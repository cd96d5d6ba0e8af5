#=============================================================================
# File        : tests/test_cli.py
# Project     : HeapWatch v1.0
# Component   : CLI Test Suite
# Description : Host process shell commands
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2025-09-02
#=============================================================================

import json
import threading
import time

import pytest

from heapwatch import __version__
from heapwatch.cli import build_config, cmd_watch, create_parser, main
from heapwatch.sampling import force_provider

from conftest import FakeProvider


class TestCli:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "heapwatch" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(['--version'])
        assert __version__ in capsys.readouterr().out

    def test_config_json_applies_env(self, capsys, monkeypatch):
        monkeypatch.setenv("HEAPWATCH_HISTORY_SIZE", "9")
        assert main(['config', '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['history_size'] == 9
        assert data['trap'] == "callback"

    def test_config_text(self, capsys):
        assert main(['config']) == 0
        out = capsys.readouterr().out
        assert "HeapWatch Configuration" in out
        assert "leak_threshold_bytes_per_hour" in out

    def test_invalid_override_is_reported(self, capsys):
        assert main(['watch', '--history-size', '0', '--duration', '0']) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_command_line_overrides(self):
        args = create_parser().parse_args(
            ['watch', '--trap', 'poll', '--poll-interval', '0.2', '--report-every', '4'])
        config = build_config(args)
        assert config.trap == "poll"
        assert config.poll_interval_s == 0.2
        assert config.report_every_cycles == 4

    def test_watch_runs_for_duration(self, capsys):
        code = main(['watch', '--trap', 'poll', '--poll-interval', '0.05',
                     '--tick', '0.05', '--duration', '0.3', '--report-every', '2', '--grow'])
        assert code == 0
        assert "tick" in capsys.readouterr().out

    def test_watch_exits_when_monitor_fails_without_waiting_a_tick(self, capsys):
        force_provider(FakeProvider(fail=True))
        started = time.monotonic()
        code = main(['watch', '--trap', 'poll', '--poll-interval', '0.05', '--tick', '30'])
        assert code == 1
        assert time.monotonic() - started < 10.0
        assert "Monitor closed" in capsys.readouterr().out

    def test_watch_stops_on_interrupt(self, capsys):
        args = create_parser().parse_args(['watch', '--trap', 'poll', '--tick', '0.05'])
        interrupt = threading.Event()
        threading.Timer(0.2, interrupt.set).start()
        assert cmd_watch(args, stop_event=interrupt) == 0
