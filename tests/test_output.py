"""Tests for the output system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb colour disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- JSON and plain rendering of format_response
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from editron_auth import output as output_module
from editron_auth.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("editron_auth.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("editron_auth.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


class TestFormatResolution:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_wins(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDetection:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_dumb_terminal(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_default(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStreams:
    def test_data_goes_to_stdout(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("tok...")
        captured = capsys.readouterr()
        assert captured.out == "tok...\n"
        assert captured.err == ""

    def test_diagnostics_go_to_stderr(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.info("Opening your browser")
        mgr.warning("Ignoring stored session")
        mgr.error("Not logged in")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Opening your browser" in captured.err
        assert "Warning: Ignoring stored session" in captured.err
        assert "Error: Not logged in" in captured.err

    def test_quiet_keeps_warnings_and_errors(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.suggest("hidden")
        mgr.warning("shown")
        mgr.error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert err.count("shown") == 2

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("trace")
        assert capsys.readouterr().err == ""

        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("trace")
        assert "[debug] trace" in capsys.readouterr().err


class TestFormatResponse:
    def test_json(self, capsys):
        data = {"server": "backend_v1", "logged_in": True}
        OutputManager(format=OutputFormat.JSON).format_response(data)
        assert json.loads(capsys.readouterr().out) == data

    def test_plain_dict(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response(
            {"server": "backend_v1", "logged_in": False}
        )
        assert capsys.readouterr().out == "server\tbackend_v1\nlogged_in\tFalse\n"

    def test_plain_list(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response(
            [{"id": "a", "available": True}, "b"]
        )
        assert capsys.readouterr().out == "a\tTrue\nb\n"


class TestGlobalInstance:
    def test_default_is_created_lazily(self):
        reset_output()
        first = get_output()
        assert get_output() is first

    def test_module_helpers_use_installed_manager(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.print_data("hello")
        output_module.warning("careful")
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert "careful" in captured.err
