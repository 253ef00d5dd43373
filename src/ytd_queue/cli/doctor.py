"""``ytd-queue doctor`` — environment diagnostics command.

Gathers system information and renders a Rich table summarising
whether the runtime environment satisfies ytd-queue's requirements.

This module lives in the CLI layer — it may import from ``infra``
and ``core``, and it renders via Rich.  No business logic resides
here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import platform
import sys

from rich.table import Table

from ytd_queue.cli import exit_codes
from ytd_queue.cli.console import console
from ytd_queue.core.models import Settings
from ytd_queue.infra.tool_detector import detect_downloader, detect_ffmpeg
from ytd_queue.version import __version__

_OK = "[green]OK[/green]"
_WARN = "[yellow]WARN[/yellow]"


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 11)
    status = _OK if ok else "[red]FAIL (>=3.11 required)[/red]"
    return "Python", version, status


def _ytdlp_package_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the yt-dlp package row.

    A missing package is only a warning: a standalone yt-dlp binary
    configured via ``--downloader`` works just as well.
    """
    try:
        from yt_dlp.version import __version__ as ydl_ver
    except ImportError:
        return "yt-dlp package", "NOT INSTALLED", _WARN
    return "yt-dlp package", ydl_ver, _OK


def _downloader_check(settings: Settings) -> tuple[str, str, str]:
    """Return (label, value, status) for the yt-dlp executable row."""
    status_obj = detect_downloader(settings.downloader_path)
    if status_obj.found:
        return "yt-dlp", str(status_obj.path), _OK
    return "yt-dlp", f"{settings.downloader_path} not found", "[red]FAIL[/red]"


def _ffmpeg_check(settings: Settings) -> tuple[str, str, str]:
    """Return (label, value, status) for the ffmpeg row."""
    status_obj = detect_ffmpeg(settings.transcoder_location)
    if status_obj.found:
        path_str = str(status_obj.path) if status_obj.path else "found"
        return "ffmpeg", path_str, _OK
    return "ffmpeg", "not found", _WARN


def _os_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    system_display = {
        "Windows": "Windows",
        "Linux": "Linux",
        "Darwin": "macOS",
    }.get(system_raw, system_raw)
    release = platform.release()
    machine = platform.machine()
    value = f"{system_display} {release} ({machine})"
    return "OS", value, _OK


def _ytdqueue_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the ytd-queue version row."""
    return "ytd-queue", __version__, _OK


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(settings: Settings) -> int:
    """Execute all diagnostic checks and render a Rich summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when all critical checks pass,
        :data:`exit_codes.GENERAL_ERROR` if a critical check fails.
    """
    checks = [
        _ytdqueue_version_check(),
        _python_version_check(),
        _ytdlp_package_check(),
        _downloader_check(settings),
        _ffmpeg_check(settings),
        _os_check(),
    ]
    has_failure = any("FAIL" in status for _, _, status in checks)

    table = Table(
        title="ytd-queue doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=12)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, status in checks:
        table.add_row(label, value, status)

    console.print()
    console.print(table)
    console.print()

    # Show ffmpeg install guidance when missing.
    ffmpeg_status = detect_ffmpeg(settings.transcoder_location)
    if not ffmpeg_status.found and ffmpeg_status.install_commands:
        console.print("[yellow]ffmpeg is not installed.[/yellow]")
        console.print("Merging and audio extraction need it. Install with one of:\n")
        for cmd in ffmpeg_status.install_commands:
            console.print(f"  [bold]{cmd}[/bold]")
        console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR

    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
