import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable

import httpx
from rich.console import Console
from rich.table import Table

from .config import SUPPORTED_MODELS, Config, load_config
from .engine import TriageEngine, TriageSession, build_engine, start_session
from .errors import ConfigurationError
from .logging_config import setup_logging
from .models import Category, Window
from .report import generate_triage_text, write_triage_to_file


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config_from_args(args: argparse.Namespace) -> Config:
    overrides: Dict[str, Any] = {}
    if getattr(args, "model", None):
        overrides["triage_model"] = args.model
    if getattr(args, "demo", False):
        overrides["demo_mode"] = True
    return load_config(**overrides)


def _render_window_table(console: Console, window: Window, session: TriageSession, config: Config) -> None:
    cache = session.cache
    emails = cache.get(window)

    title = f"{window.label} ({len(emails)})"
    if cache.last_refreshed(window):
        title += f" - refreshed {cache.last_refreshed(window)}"
    table = Table(title=title, show_lines=True)

    table.add_column("Category")
    table.add_column("From")
    table.add_column("Summary")
    table.add_column("Action")
    table.add_column("Context")
    table.add_column("Link")

    # Actionable first, newest first within a category
    ordered = sorted(emails, key=lambda e: e.category != Category.ACTIONABLE.value)
    for e in ordered:
        style = "red" if e.category == Category.ACTIONABLE.value else "yellow"
        table.add_row(
            f"[{style}]{e.category}[/{style}]",
            e.sender_name or e.sender_email,
            e.summary,
            e.action,
            "\n".join(line for line in e.context if line),
            e.web_url(config.web_mail_url),
        )

    console.print(table)


def _render_session(
    console: Console,
    session: TriageSession,
    config: Config,
    windows: Iterable[Window] = tuple(Window),
) -> None:
    for window in windows:
        if session.cache.is_populated(window):
            _render_window_table(console, window, session, config)
    if session.error:
        console.print(f"[bold red]Error:[/bold red] {session.error}")


def _write_report(console: Console, session: TriageSession, config: Config, args: argparse.Namespace) -> None:
    if not args.output:
        return
    text = generate_triage_text(session.cache, config.web_mail_url, error=session.error)
    path = config.report_output_path if args.output == "-" else Path(args.output)
    write_triage_to_file(path, text)
    console.print(f"Report written to {path}")


# ---------------------------------------------------------------------------
# Async drivers
# ---------------------------------------------------------------------------


async def _run_once(config: Config, today_only: bool) -> TriageSession:
    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http:
        engine = build_engine(config, http)
        if today_only:
            session = TriageSession()
            await engine.refresh_today(session)
            return session
        return await start_session(engine)


async def _interactive_loop(config: Config, console: Console) -> None:
    async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as http:
        engine: TriageEngine = build_engine(config, http)

        console.print("Running initial triage...")
        session = await start_session(engine)
        _render_session(console, session, config)

        while True:
            try:
                choice = await asyncio.to_thread(
                    console.input, "[a] full cycle  [r] refresh today  [q] quit > "
                )
            except EOFError:
                break

            choice = choice.strip().lower()
            if choice in ("q", "quit", "exit"):
                break
            if choice == "a":
                refreshed = await engine.run_full_cycle(session)
                _render_session(console, session, config, windows=refreshed or tuple(Window))
            elif choice == "r":
                await engine.refresh_today(session)
                _render_session(console, session, config, windows=(Window.TODAY,))
            else:
                console.print("Unknown choice.")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_command(args: argparse.Namespace, today_only: bool) -> int:
    config = _config_from_args(args)
    setup_logging(config.log_level)
    console = Console()

    try:
        session = asyncio.run(_run_once(config, today_only=today_only))
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 2

    windows = (Window.TODAY,) if today_only else tuple(Window)
    _render_session(console, session, config, windows=windows)
    _write_report(console, session, config, args)

    logging.info("Triage finished%s.", " with errors" if session.error else "")
    return 1 if session.error else 0


def cmd_run(args: argparse.Namespace) -> int:
    return _run_command(args, today_only=False)


def cmd_today(args: argparse.Namespace) -> int:
    return _run_command(args, today_only=True)


def cmd_interactive(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    setup_logging(config.log_level)
    console = Console()

    try:
        asyncio.run(_interactive_loop(config, console))
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return 2
    return 0


# ---------------------------------------------------------------------------
# Main CLI entrypoint
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mail-triage",
        description="LLM-assisted email triage by actionability.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--model",
        type=str,
        choices=list(SUPPORTED_MODELS),
        default=None,
        help="Classification model (default: TRIAGE_MODEL or gpt-4o-mini).",
    )
    common.add_argument(
        "--demo",
        action="store_true",
        help="Use the built-in demo mailbox instead of real providers.",
    )

    p_run = subparsers.add_parser(
        "run",
        parents=[common],
        help="Triage today, yesterday and the past week.",
    )
    p_today = subparsers.add_parser(
        "today",
        parents=[common],
        help="Triage today's emails only.",
    )
    for p in (p_run, p_today):
        p.add_argument(
            "-o",
            "--output",
            nargs="?",
            const="-",
            default=None,
            help="Also write a markdown report (default path: REPORT_OUTPUT_PATH).",
        )

    subparsers.add_parser(
        "interactive",
        parents=[common],
        help="Keep a session open and refresh on demand.",
    )

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        code = cmd_run(args)
    elif args.command == "today":
        code = cmd_today(args)
    elif args.command == "interactive":
        code = cmd_interactive(args)
    else:
        parser.error(f"Unknown command: {args.command!r}")
        return

    sys.exit(code)


if __name__ == "__main__":
    main()
