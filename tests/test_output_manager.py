"""Tests for the output manager.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- print_table in all three modes
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from brapi_analyser import output as output_module
from brapi_analyser.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("brapi_analyser.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("brapi_analyser.output._is_tty", lambda: True)


HEADERS = ["Path", "Message Level"]
ROWS = [["/studies", "ERROR"], ["/germplasm/[id]", "INFO"]]


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_is_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_is_rich_on_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_auto_is_plain_without_color(self, tty):
        assert OutputManager(format=OutputFormat.AUTO, no_color=True).format == OutputFormat.PLAIN

    def test_explicit_formats_kept(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON
        assert OutputManager(format=OutputFormat.RICH).format == OutputFormat.RICH


class TestColorDisabling:
    def test_no_color_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_terminal(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False

    def test_env_sets_manager_no_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert OutputManager().no_color is True


# ------------------------------------------------------------------ #
# stdout / stderr discipline
# ------------------------------------------------------------------ #


class TestStreams:
    def test_data_goes_to_stdout(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("hello")
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == ""

    def test_diagnostics_go_to_stderr(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.info("loading")
        mgr.warning("careful")
        mgr.error("broken")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == ["loading", "Warning: careful", "Error: broken"]

    def test_quiet_keeps_warnings_and_errors(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("loading")
        mgr.success("done")
        mgr.suggest("try --help")
        mgr.warning("careful")
        mgr.error("broken")
        assert capsys.readouterr().err.splitlines() == ["Warning: careful", "Error: broken"]

    def test_debug_only_when_verbose(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("hidden")
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("shown")
        assert capsys.readouterr().err == "[debug] shown\n"


# ------------------------------------------------------------------ #
# Tables
# ------------------------------------------------------------------ #


class TestPrintTable:
    def test_plain(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_table(HEADERS, ROWS)
        assert capsys.readouterr().out.splitlines() == [
            "Path\tMessage Level",
            "/studies\tERROR",
            "/germplasm/[id]\tINFO",
        ]

    def test_json(self, capsys):
        OutputManager(format=OutputFormat.JSON).print_table(HEADERS, ROWS)
        assert json.loads(capsys.readouterr().out) == [
            {"Path": "/studies", "Message Level": "ERROR"},
            {"Path": "/germplasm/[id]", "Message Level": "INFO"},
        ]

    def test_rich_escapes_markup(self, capsys, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_table(HEADERS, ROWS, title="Report", level_column="Message Level")
        out = capsys.readouterr().out
        assert "Report" in out
        assert "/germplasm/[id]" in out
        assert "ERROR" in out

    def test_print_json_non_serialisable(self, capsys):
        from datetime import date

        OutputManager(format=OutputFormat.JSON).print_json({"when": date(2024, 1, 2)})
        assert json.loads(capsys.readouterr().out) == {"when": "2024-01-02"}


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_creates_default(self):
        reset_output()
        assert get_output() is get_output()

    def test_set_and_reset(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr

    def test_module_helpers_delegate(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.error("broken")
        output_module.suggest("try again")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == "Error: broken\n→ try again\n"
