"""Infrastructure layer — external system integration.

This layer spawns yt-dlp, inspects the filesystem for tools, and
persists settings and history.  Every raw ``OSError`` must be caught
here and re-raised as a :class:`~ytd_queue.exceptions.YtdQueueError`
subclass (or logged, where losing the operation is harmless).

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
"""

from ytd_queue.infra.history_store import JsonHistoryStore
from ytd_queue.infra.process_runner import ProcessRunner, RunningProcess
from ytd_queue.infra.tool_detector import (
    ToolStatus,
    detect_downloader,
    detect_ffmpeg,
    require_downloader,
)
from ytd_queue.infra.ytdlp_probe import YtDlpProbe

__all__: list[str] = [
    "JsonHistoryStore",
    "ProcessRunner",
    "RunningProcess",
    "ToolStatus",
    "YtDlpProbe",
    "detect_downloader",
    "detect_ffmpeg",
    "require_downloader",
]
