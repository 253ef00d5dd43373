"""ytd-queue — a sequential yt-dlp download queue.

Each queued URL is probed, its original audio track chosen, and then
downloaded by the yt-dlp executable, strictly one job at a time.
"""

from ytd_queue.version import __version__

__all__: list[str] = ["__version__"]
