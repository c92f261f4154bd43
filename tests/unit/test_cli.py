"""Tests for the signin-debug CLI: argument parsing and command output."""

from __future__ import annotations

import logging
from io import StringIO
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from rich.console import Console

if TYPE_CHECKING:
    from pathlib import Path

_CLI = "emmylearn.cli"


def _capture_console() -> tuple[Console, StringIO]:
    """Create a Rich Console that writes to a StringIO buffer."""
    buf = StringIO()
    return Console(file=buf, width=200, force_terminal=False), buf


class TestParser:
    """Parser recognises all subcommands and their arguments."""

    def _parser(self):
        from emmylearn.cli import _build_parser

        return _build_parser()

    def test_env_default_provider(self) -> None:
        args = self._parser().parse_args(["env", "localhost"])
        assert args.command == "env"
        assert args.hostname == "localhost"
        assert args.provider == "google"

    def test_env_rejects_unknown_provider(self) -> None:
        with pytest.raises(SystemExit):
            self._parser().parse_args(["env", "localhost", "--provider", "github"])

    def test_simulate_needs_entries(self) -> None:
        with pytest.raises(SystemExit):
            self._parser().parse_args(["simulate"])

    def test_simulate_options(self) -> None:
        args = self._parser().parse_args(
            ["simulate", "timeout", "ok", "--provider", "apple", "--timeout-ms", "5"]
        )
        assert args.callbacks == ["timeout", "ok"]
        assert args.provider == "apple"
        assert args.timeout_ms == 5
        assert args.hostname == "localhost"

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            self._parser().parse_args([])


class TestCommands:
    """Command handlers print what the sign-in core decides."""

    def test_env_production(self) -> None:
        from emmylearn.cli import _cmd_env

        con, buf = _capture_console()
        _cmd_env("mlaniak.github.io", "google", console=con)

        output = buf.getvalue()
        assert "production" in output
        assert "https://mlaniak.github.io/emmys-learning-app/auth/callback" in output
        assert '"prompt": "consent"' in output

    def test_env_development(self) -> None:
        from emmylearn.cli import _cmd_env

        con, buf = _capture_console()
        _cmd_env("192.168.1.20", "apple", console=con)

        output = buf.getvalue()
        assert "development" in output
        assert "http://localhost:5173/auth/callback" in output

    def test_parse_error_url(self) -> None:
        from emmylearn.cli import _cmd_parse

        con, buf = _capture_console()
        _cmd_parse(
            "http://localhost:5173/auth/callback"
            "?error=access_denied&error_description=User%20denied%20access&tab=1",
            console=con,
        )

        output = buf.getvalue()
        assert "access_denied" in output
        assert "User denied access" in output
        assert "user_cancelled" in output
        assert "http://localhost:5173/auth/callback?tab=1" in output

    def test_parse_success_url(self) -> None:
        from emmylearn.cli import _cmd_parse

        con, buf = _capture_console()
        _cmd_parse("http://localhost:5173/auth/callback?code=abc", console=con)

        assert "No error parameter present" in buf.getvalue()

    def test_classify(self) -> None:
        from emmylearn.cli import _cmd_classify

        con, buf = _capture_console()
        _cmd_classify("server_error", console=con)

        output = buf.getvalue()
        assert "server_error" in output
        assert "True" in output
        assert "Server error during sign-in" in output

    def test_backoff(self) -> None:
        from emmylearn.cli import _cmd_backoff

        con, buf = _capture_console()
        _cmd_backoff(console=con)

        output = buf.getvalue()
        assert "1000 ms" in output
        assert "2000 ms" in output
        assert "4000 ms" not in output
        assert "give up" in output

    async def test_simulate_retries_then_completes(self) -> None:
        from emmylearn.cli import _cmd_simulate

        con, buf = _capture_console()
        code = await _cmd_simulate(
            ["server_error", "ok"], "google", "localhost", 50, console=con
        )

        output = buf.getvalue()
        assert code == 0
        assert "retry_scheduled" in output
        assert "Backoff delays: 1000 ms" in output
        assert "Completed" in output
        assert "emmy@example.com" in output

    async def test_simulate_failure(self) -> None:
        from emmylearn.cli import _cmd_simulate

        con, buf = _capture_console()
        code = await _cmd_simulate(["invalid_request"], "google", "localhost", 50, console=con)

        assert code == 1
        assert "configuration_error" in buf.getvalue()

    async def test_simulate_cancelled(self) -> None:
        from emmylearn.cli import _cmd_simulate

        con, buf = _capture_console()
        code = await _cmd_simulate(["access_denied"], "apple", "localhost", 50, console=con)

        assert code == 2
        assert "Cancelled" in buf.getvalue()

    async def test_simulate_timeout_and_unreachable(self) -> None:
        from emmylearn.cli import _cmd_simulate

        con, buf = _capture_console()
        code = await _cmd_simulate(
            ["timeout", "unreachable", "ok"], "google", "localhost", 10, console=con
        )

        output = buf.getvalue()
        assert code == 0
        assert "callback_timeout" in output
        assert "provider_unreachable" in output


class TestMarkupInInput:
    """Bracketed provider text is printed literally, not read as Rich markup."""

    def test_parse_bracketed_description(self) -> None:
        from emmylearn.cli import _cmd_parse

        con, buf = _capture_console()
        _cmd_parse(
            "https://x/auth/callback"
            "?error=%5Bbold%5Dserver_error&error_description=%5B%2Fbold%5D",
            console=con,
        )

        output = buf.getvalue()
        assert "[bold]server_error" in output
        assert "[/bold]" in output
        assert "unknown_error" in output

    def test_classify_bracketed_code(self) -> None:
        from emmylearn.cli import _cmd_classify

        con, buf = _capture_console()
        _cmd_classify("[/oops]", console=con)

        assert "[/oops]" in buf.getvalue()

    def test_env_bracketed_hostname(self) -> None:
        from emmylearn.cli import _cmd_env

        con, buf = _capture_console()
        _cmd_env("[red]host", "google", console=con)

        assert "[red]host" in buf.getvalue()


class TestEntryPoint:
    """signin_debug wires logging, then dispatches the subcommand."""

    def test_simulate_exit_code(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        restore_root_logger: logging.Logger,
    ) -> None:
        from emmylearn.cli import signin_debug

        con, buf = _capture_console()
        monkeypatch.setattr(
            "sys.argv",
            [
                "signin-debug",
                "--log-dir",
                str(tmp_path),
                "simulate",
                "server_error",
                "server_error",
            ],
        )

        with patch(f"{_CLI}.console", con), pytest.raises(SystemExit) as exc_info:
            signin_debug()

        assert exc_info.value.code == 0
        assert "after 3 attempt(s)" in buf.getvalue()

    def test_logs_flow_to_file(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        restore_root_logger: logging.Logger,
    ) -> None:
        from emmylearn.cli import signin_debug

        con, _ = _capture_console()
        monkeypatch.setenv("APP__LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setattr(
            "sys.argv", ["signin-debug", "simulate", "invalid_request"]
        )

        with patch(f"{_CLI}.console", con), pytest.raises(SystemExit):
            signin_debug()

        (log_file,) = (tmp_path / "logs").glob("emmylearn.*.log")
        text = log_file.read_text()
        assert "ERROR" in text
        assert "configuration_error" in text

    def test_verbose_echoes_info(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        restore_root_logger: logging.Logger,
    ) -> None:
        from emmylearn.cli import signin_debug

        con, _ = _capture_console()
        monkeypatch.setattr(
            "sys.argv",
            ["signin-debug", "-v", "--log-dir", str(tmp_path), "classify", "x"],
        )

        with patch(f"{_CLI}.console", con):
            signin_debug()

        levels = [
            h.level
            for h in restore_root_logger.handlers
            if not isinstance(h, RotatingFileHandler)
            and isinstance(h, logging.StreamHandler)
            and getattr(h, "_emmylearn_handler", False)
        ]
        assert levels == [logging.INFO]

    def test_version(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        from emmylearn import __version__
        from emmylearn.cli import signin_debug

        monkeypatch.setattr("sys.argv", ["signin-debug", "--version"])

        with pytest.raises(SystemExit) as exc_info:
            signin_debug()

        assert exc_info.value.code == 0
        assert f"signin-debug {__version__}" in capsys.readouterr().out

    def test_classify_dispatch(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        restore_root_logger: logging.Logger,
    ) -> None:
        from emmylearn.cli import signin_debug

        con, buf = _capture_console()
        monkeypatch.setattr(
            "sys.argv",
            ["signin-debug", "--log-dir", str(tmp_path), "classify", "bogus"],
        )

        with patch(f"{_CLI}.console", con):
            signin_debug()

        assert "unknown_error" in buf.getvalue()
