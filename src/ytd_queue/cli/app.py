"""CLI application entry point and command routing for ytd-queue.

This module is the **sole error boundary** for the entire application.
It catches :class:`~ytd_queue.exceptions.YtdQueueError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via Rich
and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the core
  scheduler and the infrastructure adapters.
* ``print()`` is forbidden; the shared Rich console is used exclusively.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.table import Table

from ytd_queue.cli import exit_codes
from ytd_queue.cli.console import configure_logging, console
from ytd_queue.cli.progress import QueueProgress, shorten
from ytd_queue.core.models import JobMode, JobStatus, Settings
from ytd_queue.core.scheduler import JobScheduler, parse_urls
from ytd_queue.exceptions import ConfigurationError, YtdQueueError
from ytd_queue.infra.history_store import JsonHistoryStore
from ytd_queue.infra.process_runner import ProcessRunner
from ytd_queue.infra.settings_store import (
    HISTORY_FILENAME,
    SETTINGS_FILENAME,
    default_config_dir,
    load_settings,
    save_settings,
)
from ytd_queue.infra.tool_detector import detect_ffmpeg, require_downloader
from ytd_queue.infra.ytdlp_probe import YtDlpProbe
from ytd_queue.version import __version__

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    The CLI supports:
    * ``ytd-queue <url> [<url> ...]`` — queue and download URLs in order
    * ``ytd-queue doctor``            — environment diagnostics
    * ``ytd-queue history``           — recently finished jobs
    * ``ytd-queue --version``
    """
    parser = argparse.ArgumentParser(
        prog="ytd-queue",
        description="Download a queue of videos one at a time with yt-dlp, "
        "keeping the original audio track.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "targets",
        nargs="*",
        help="URLs to download, or 'doctor' / 'history'.",
    )
    parser.add_argument(
        "-i",
        "--input",
        metavar="FILE",
        help="Read additional URLs from FILE, one per line.",
    )
    parser.add_argument(
        "--audio",
        dest="mode",
        action="store_const",
        const=JobMode.AUDIO,
        default=None,
        help="Extract audio only.",
    )
    parser.add_argument(
        "--video",
        dest="mode",
        action="store_const",
        const=JobMode.VIDEO,
        help="Download video with the original audio (default).",
    )
    parser.add_argument("-o", "--output-dir", metavar="DIR", help="Destination directory.")
    parser.add_argument(
        "--playlist",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Download whole playlists instead of single videos.",
    )
    parser.add_argument("--downloader", metavar="PATH", help="Path to the yt-dlp executable.")
    parser.add_argument(
        "--ffmpeg-location",
        metavar="PATH",
        help="ffmpeg binary or the directory containing it.",
    )
    parser.add_argument("--audio-format", metavar="FMT", help="Audio container for --audio.")
    parser.add_argument("--config", metavar="FILE", help="Settings file to use.")
    parser.add_argument(
        "--save-settings",
        action="store_true",
        help="Persist the effective settings to the settings file.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-vv for debug).",
    )
    return parser


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def _settings_path(args: argparse.Namespace) -> Path:
    if args.config:
        return Path(args.config).expanduser()
    return default_config_dir() / SETTINGS_FILENAME


def _resolve_settings(args: argparse.Namespace) -> Settings:
    """Load the settings file and apply command-line overrides."""
    path = _settings_path(args)
    settings = load_settings(path)

    overrides: dict[str, Any] = {}
    if args.mode is not None:
        overrides["mode"] = args.mode
    if args.output_dir:
        overrides["output_dir"] = str(Path(args.output_dir).expanduser())
    if args.playlist is not None:
        overrides["playlist_enabled"] = args.playlist
    if args.downloader:
        overrides["downloader_path"] = args.downloader
    if args.ffmpeg_location:
        overrides["transcoder_location"] = args.ffmpeg_location
    if args.audio_format:
        overrides["audio_format"] = args.audio_format
    settings = dataclasses.replace(settings, **overrides)

    if args.save_settings:
        save_settings(settings, path)
        log.info("Settings saved to %s", path)
    return settings


def _check_ready(settings: Settings) -> Settings:
    """Refuse to start the queue when every job would fail.

    Returns *settings* with ``downloader_path`` resolved to an absolute,
    user-expanded path.
    """
    downloader = require_downloader(settings.downloader_path)
    if not settings.output_dir:
        raise ConfigurationError(
            "No output directory configured.",
            hint="Pass -o DIR or set output_dir in the settings file.",
        )
    if not detect_ffmpeg(settings.transcoder_location).found:
        log.warning("ffmpeg not found; merging and audio extraction will fail.")
    return dataclasses.replace(settings, downloader_path=str(downloader))


def _collect_urls(args: argparse.Namespace) -> list[str]:
    text = "\n".join(args.targets)
    if args.input:
        try:
            text += "\n" + Path(args.input).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Could not read URL list {args.input}: {exc}") from exc
    return parse_urls(text)


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _on_interrupt(scheduler: JobScheduler) -> None:
    console.print("\n[yellow]Stopping: canceling the running job…[/yellow]")
    scheduler.stop()


async def _run_scheduler(scheduler: JobScheduler) -> None:
    """Run the queue, turning Ctrl+C into a cooperative stop where supported."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt, scheduler)
        installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops: KeyboardInterrupt reaches the error boundary.
        installed = False
    try:
        await scheduler.run()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _handle_queue(urls: list[str], settings: Settings) -> int:
    """Queue *urls* and run them one at a time with a live display.

    Flow:
    1. Check the downloader and output directory.
    2. Build the scheduler with the yt-dlp probe and process runner.
    3. Run every job, rendering progress with Rich.
    4. Print a per-status summary.
    """
    settings = _check_ready(settings)

    history = JsonHistoryStore(default_config_dir() / HISTORY_FILENAME)
    history.load()
    display = QueueProgress()
    scheduler = JobScheduler(
        settings,
        YtDlpProbe(),
        ProcessRunner(),
        history=history,
        on_update=display,
        system_path=os.environ.get("PATH", ""),
    )
    scheduler.enqueue(urls)

    with display:
        display.add(scheduler.jobs)
        asyncio.run(_run_scheduler(scheduler))

    counts = scheduler.summary()
    console.print(
        f"\n[bold]Done[/bold] {counts[JobStatus.DONE]} · "
        f"[red]failed[/red] {counts[JobStatus.FAILED]} · "
        f"[yellow]canceled[/yellow] {counts[JobStatus.CANCELED]} · "
        f"pending {counts[JobStatus.PENDING]}"
    )
    if scheduler.stopping:
        return exit_codes.KEYBOARD_INTERRUPT
    if counts[JobStatus.DONE] == len(scheduler.jobs):
        return exit_codes.SUCCESS
    return exit_codes.GENERAL_ERROR


def _handle_history() -> int:
    """Render recently finished jobs, newest first."""
    store = JsonHistoryStore(default_config_dir() / HISTORY_FILENAME)
    store.load()
    if not store.entries:
        console.print("No history yet.")
        return exit_codes.SUCCESS

    table = Table(title="ytd-queue history", header_style="bold cyan", border_style="dim")
    table.add_column("Finished")
    table.add_column("Status")
    table.add_column("Mode")
    table.add_column("URL")
    table.add_column("Summary", overflow="fold")
    for entry in store.entries:
        table.add_row(
            entry.ended_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            entry.status.value,
            entry.mode.value,
            escape(shorten(entry.url)),
            escape(entry.summary),
        )
    console.print(table)
    return exit_codes.SUCCESS


def _handle_doctor(settings: Settings) -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from ytd_queue.cli.doctor import run_doctor

    return run_doctor(settings)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the ytd-queue CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if not args.targets and not args.input:
        parser.print_help()
        return exit_codes.SUCCESS

    command = args.targets[0].lower() if args.targets else ""
    if command == "history":
        return _handle_history()

    settings = _resolve_settings(args)
    if command == "doctor":
        return _handle_doctor(settings)

    urls = _collect_urls(args)
    if not urls:
        raise ConfigurationError("No URLs to download.")
    return _handle_queue(urls, settings)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except YtdQueueError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
