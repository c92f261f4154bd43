"""Command-line diagnostics for the sign-in flow.

Shows what the sign-in core would do for a given hostname, callback URL or
provider error code, and can replay a whole flow against the mock gateway.

Usage:
    signin-debug env mlaniak.github.io
    signin-debug parse "https://example.com/auth/callback#error=server_error"
    signin-debug classify access_denied
    signin-debug backoff
    signin-debug simulate server_error server_error ok
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from emmylearn import __version__, setup_logging

if TYPE_CHECKING:
    import argparse

    from emmylearn.auth.mock import ScriptEntry

console = Console()

_PROVIDERS = ("google", "apple")


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for signin-debug subcommands."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="signin-debug",
        description="Inspect and simulate the OAuth sign-in flow.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: APP__LOG_DIR)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Echo INFO logs to stderr"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # env
    env_p = sub.add_parser("env", help="Show environment and request config")
    env_p.add_argument("hostname", help="Hostname the app is served from")
    env_p.add_argument(
        "--provider", default="google", choices=_PROVIDERS, help="Identity provider"
    )

    # parse
    parse_p = sub.add_parser("parse", help="Parse a provider callback URL")
    parse_p.add_argument("url", help="Callback URL (query or fragment)")

    # classify
    classify_p = sub.add_parser("classify", help="Classify a provider error code")
    classify_p.add_argument("code", help="Provider error code (e.g. server_error)")

    # backoff
    sub.add_parser("backoff", help="Show the configured retry schedule")

    # simulate
    sim_p = sub.add_parser(
        "simulate", help="Run a sign-in flow against the mock gateway"
    )
    sim_p.add_argument(
        "callbacks",
        nargs="+",
        help=(
            "One entry per attempt: 'ok', 'timeout', 'unreachable', "
            "or a provider error code"
        ),
    )
    sim_p.add_argument(
        "--provider", default="google", choices=_PROVIDERS, help="Identity provider"
    )
    sim_p.add_argument("--hostname", default="localhost", help="Page hostname")
    sim_p.add_argument(
        "--timeout-ms",
        type=int,
        default=200,
        help="Callback timeout for 'timeout' entries (default: 200)",
    )

    return parser


def _cmd_env(
    hostname: str,
    provider: str,
    *,
    console: Console | None = None,
) -> None:
    """Show the environment, app URL and request config for a hostname."""
    from emmylearn.auth import (
        ProviderId,
        build_request_config,
        classify_environment,
        get_app_url,
    )

    con = console or globals()["console"]
    environment = classify_environment(hostname)
    config = build_request_config(environment, ProviderId(provider))

    table = Table(title=f"Environment for {escape(hostname)}", show_header=False)
    table.add_row("Environment", str(environment))
    table.add_row("App URL", get_app_url(environment))
    table.add_row("Provider", provider)
    table.add_row("Request config", escape(json.dumps(config.to_dict(), indent=2)))
    con.print(table)


def _cmd_parse(url: str, *, console: Console | None = None) -> None:
    from emmylearn.auth import (
        CallbackError,
        clean_callback_url,
        classify_error,
        is_retryable,
        parse_callback_url,
    )

    con = console or globals()["console"]
    result = parse_callback_url(url)
    match result:
        case CallbackError():
            classified = classify_error(result)
            con.print(
                Panel(
                    f"[bold]code:[/] {escape(result.code)}\n"
                    f"[bold]description:[/] {escape(result.description or '-')}\n"
                    f"[bold]kind:[/] {classified.kind}\n"
                    f"[bold]retryable:[/] {is_retryable(classified.kind)}\n"
                    f"[bold]message:[/] {classified.message}",
                    title="[red]Callback error[/]",
                )
            )
        case _:
            con.print(Panel("No error parameter present", title="[green]Success[/]"))
    con.print(f"[dim]Cleaned URL:[/] {escape(clean_callback_url(url))}")


def _cmd_classify(code: str, *, console: Console | None = None) -> None:
    from emmylearn.auth import CallbackError, classify_error, is_retryable

    con = console or globals()["console"]
    classified = classify_error(CallbackError(code=code))
    table = Table(show_header=False)
    table.add_row("Code", escape(code))
    table.add_row("Kind", str(classified.kind))
    table.add_row("Retryable", str(is_retryable(classified.kind)))
    table.add_row("Message", classified.message)
    con.print(table)


def _cmd_backoff(*, console: Console | None = None) -> None:
    from emmylearn.auth import RetryPolicy
    from emmylearn.config import get_settings

    con = console or globals()["console"]
    policy = RetryPolicy.from_config(get_settings().retry)
    table = Table(title=f"Retry schedule (max {policy.max_attempts} attempts)")
    table.add_column("Attempt", justify="right")
    table.add_column("Delay before next attempt", justify="right")
    for attempt in range(policy.max_attempts):
        if attempt + 1 < policy.max_attempts:
            delay = f"{policy.delay_for(attempt)} ms"
        else:
            delay = "[dim]give up[/]"
        table.add_row(str(attempt + 1), delay)
    con.print(table)


def _script_entry(token: str) -> ScriptEntry:
    from emmylearn.auth.mock import HANG, SUCCESS_CALLBACK, error_callback

    match token:
        case "ok":
            return SUCCESS_CALLBACK
        case "timeout":
            return HANG
        case "unreachable":
            return ConnectionError("provider unreachable")
        case _:
            return error_callback(token)


async def _cmd_simulate(
    callbacks: list[str],
    provider: str,
    hostname: str,
    timeout_ms: int,
    *,
    console: Console | None = None,
) -> int:
    """Replay a scripted flow and return 0, 1 or 2 for completed, failed or cancelled."""
    from emmylearn.auth import (
        Cancelled,
        Completed,
        Failed,
        RetryPolicy,
        SignInOrchestrator,
    )
    from emmylearn.auth.mock import MockProviderGateway
    from emmylearn.config import get_settings

    con = console or globals()["console"]
    delays: list[float] = []

    async def _record_delay(seconds: float) -> None:
        delays.append(seconds)

    settings = get_settings()
    gateway = MockProviderGateway(
        [_script_entry(token) for token in callbacks],
        hostname=hostname,
    )
    orchestrator = SignInOrchestrator(
        gateway,
        deploy=settings.deploy,
        retry_policy=RetryPolicy.from_config(settings.retry),
        callback_timeout_ms=timeout_ms,
        sleep=_record_delay,
    )
    outcome = await orchestrator.begin_sign_in(provider)

    trace_table = Table(title="Flow trace")
    trace_table.add_column("Stage")
    trace_table.add_column("Event")
    trace_table.add_column("Data")
    for trace in orchestrator.recent_flows():
        for event in trace.events:
            trace_table.add_row(
                str(event.stage),
                escape(event.event),
                escape(", ".join(f"{k}={v}" for k, v in event.data.items())),
            )
    con.print(trace_table)

    if delays:
        con.print(
            "Backoff delays: " + ", ".join(f"{d * 1000:g} ms" for d in delays)
        )

    match outcome:
        case Completed(session=session):
            con.print(
                f"[green]Completed[/] after {outcome.attempts} attempt(s): "
                f"{escape(session.email)} ({escape(session.user_id)})"
            )
            return 0
        case Failed(kind=kind, message=message):
            con.print(
                f"[red]Failed[/] ({kind}) after {outcome.attempts} attempt(s): "
                f"{message}"
            )
            return 1
        case Cancelled():
            con.print(f"[yellow]Cancelled[/] after {outcome.attempts} attempt(s)")
            return 2


def signin_debug() -> None:
    """Inspect and simulate the OAuth sign-in flow.

    Usage:
        signin-debug <command> [options]

    Commands:
        env <hostname>          Environment, app URL and request config
        parse <url>             Parse a callback URL and classify its error
        classify <code>         Classify a provider error code
        backoff                 Show the configured retry schedule
        simulate <entry>...     Run a flow against the mock gateway
    """
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:])
    setup_logging(
        args.log_dir,
        console_level=logging.INFO if args.verbose else logging.WARNING,
    )

    match args.command:
        case "env":
            _cmd_env(args.hostname, args.provider)
        case "parse":
            _cmd_parse(args.url)
        case "classify":
            _cmd_classify(args.code)
        case "backoff":
            _cmd_backoff()
        case "simulate":
            sys.exit(
                asyncio.run(
                    _cmd_simulate(
                        args.callbacks,
                        args.provider,
                        args.hostname,
                        args.timeout_ms,
                    )
                )
            )
