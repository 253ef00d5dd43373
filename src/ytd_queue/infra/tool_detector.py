"""Infrastructure: locating yt-dlp and ffmpeg, with platform guidance.

Rules
-----
* Detection via :func:`shutil.which` and path checks only — no subprocess.
* No permanent PATH modification.
* No automatic installation.
* No ``print()`` — callers handle user-facing output.
"""

from __future__ import annotations

import platform
import shutil
from dataclasses import dataclass
from pathlib import Path

from ytd_queue.exceptions import ExecutableNotFoundError

_FFMPEG_NAMES: tuple[str, ...] = ("ffmpeg", "ffmpeg.exe")


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ToolStatus:
    """Result of a tool detection probe.

    Attributes
    ----------
    found : bool
        Whether the tool was located.
    path : Path | None
        Absolute path to the binary, or ``None``.
    version_hint : str
        Human-readable status string (e.g. ``"found at …"`` or ``"not found"``).
    install_commands : tuple[str, ...]
        Suggested shell commands for installing the tool on the current
        platform.  Empty when the tool is already present.
    """

    found: bool
    path: Path | None
    version_hint: str
    install_commands: tuple[str, ...]


def _found(path: Path) -> ToolStatus:
    resolved = path.resolve()
    return ToolStatus(
        found=True,
        path=resolved,
        version_hint=f"found at {resolved}",
        install_commands=(),
    )


def _missing(install_commands: tuple[str, ...]) -> ToolStatus:
    return ToolStatus(
        found=False,
        path=None,
        version_hint="not found",
        install_commands=install_commands,
    )


# ---------------------------------------------------------------------------
# yt-dlp
# ---------------------------------------------------------------------------

def detect_downloader(configured: str) -> ToolStatus:
    """Locate the yt-dlp executable named by *configured*.

    A path pointing at an existing file wins; otherwise *configured* is
    looked up on ``PATH`` (which covers the console script installed
    with the ``yt-dlp`` package).
    """
    candidate = Path(configured).expanduser()
    if candidate.is_file():
        return _found(candidate)

    result = shutil.which(configured)
    if result is not None:
        return _found(Path(result))
    return _missing(("pip install yt-dlp",))


def require_downloader(configured: str) -> Path:
    """Locate yt-dlp or raise :class:`ExecutableNotFoundError`."""
    status = detect_downloader(configured)
    if not status.found or status.path is None:
        raise ExecutableNotFoundError(
            f"yt-dlp not found: {configured}",
            hint="Install it with: pip install yt-dlp, or pass --downloader PATH.",
        )
    return status.path


# ---------------------------------------------------------------------------
# ffmpeg
# ---------------------------------------------------------------------------

def detect_ffmpeg(location: str | None = None) -> ToolStatus:
    """Probe for an ffmpeg binary.

    *location* may name the binary itself or the directory holding it;
    it is checked before ``PATH``.  Returns a :class:`ToolStatus`
    regardless of the outcome — the caller decides whether to abort or
    merely warn.
    """
    if location:
        candidate = Path(location).expanduser()
        if candidate.is_file():
            return _found(candidate)
        if candidate.is_dir():
            for name in _FFMPEG_NAMES:
                binary = candidate / name
                if binary.is_file():
                    return _found(binary)

    result = shutil.which("ffmpeg")
    if result is not None:
        return _found(Path(result))
    return _missing(_platform_install_commands())


# ---------------------------------------------------------------------------
# Platform-specific install guidance
# ---------------------------------------------------------------------------

def _platform_install_commands() -> tuple[str, ...]:
    """Return ffmpeg install commands appropriate for the current OS."""
    system = platform.system().lower()
    if system == "windows":
        return (
            "winget install Gyan.FFmpeg",
            "choco install ffmpeg",
        )
    if system == "linux":
        return (
            "sudo apt install ffmpeg",
            "sudo dnf install ffmpeg",
            "sudo pacman -S ffmpeg",
        )
    if system == "darwin":
        return ("brew install ffmpeg",)
    # Unknown platform.
    return ("Please install ffmpeg from https://ffmpeg.org/download.html",)
