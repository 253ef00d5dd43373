"""Progress extraction from yt-dlp output lines.

Only the ``[download]  42.5%`` line shape is recognised; everything
else leaves progress untouched.  Values are returned as-is, so a retried
fragment can make progress go backwards — callers overwrite rather than
take the maximum.
"""

from __future__ import annotations

import re

_DOWNLOAD_PERCENT = re.compile(r"\[download\]\s+(\d+(?:\.\d+)?)%")


def parse_progress(line: str) -> float | None:
    """Return the percentage announced by *line*, or ``None``."""
    match = _DOWNLOAD_PERCENT.search(line)
    if match is None:
        return None
    return float(match.group(1))
