"""Custom exception hierarchy for ytd-queue.

Every error that can end a job, or abort the CLI, inherits from
:class:`YtdQueueError`.  Raw ``OSError`` / ``json`` exceptions must
never propagate beyond the layer that caught them — they are re-raised
as a typed subclass defined here.

Hierarchy
---------
YtdQueueError
├── InvalidURLError
├── ConfigurationError
├── QueueError
│   └── JobStateError
├── ExecutableNotFoundError
├── ProbeFailedError
├── NoSuitableAudioTrackError
├── ProcessSpawnError
└── NonZeroExitError
"""

from __future__ import annotations

import enum


class YtdQueueError(Exception):
    """Base exception for all ytd-queue errors.

    Job-local subclasses are caught by the scheduler and written to the
    job log; the rest reach the CLI error boundary, which renders a
    clean message without a stack trace.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Input / configuration -------------------------------------------------

class InvalidURLError(YtdQueueError):
    """Raised when a queued URL fails validation."""


class ConfigurationError(YtdQueueError):
    """Raised when settings are missing or invalid."""


# --- Queue -----------------------------------------------------------------

class QueueError(YtdQueueError):
    """Raised for queue operations that are not permitted right now."""


class JobStateError(QueueError):
    """Raised on an illegal job status transition."""


# --- Probe -----------------------------------------------------------------

class ProbeFailure(str, enum.Enum):
    """Why a metadata probe produced no usable result."""

    NON_ZERO_EXIT = "non-zero-exit"
    EMPTY_OUTPUT = "empty-output"
    PARSE_ERROR = "parse-error"


class ProbeFailedError(YtdQueueError):
    """Raised when the metadata probe fails."""

    def __init__(
        self,
        message: str,
        *,
        reason: ProbeFailure,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.reason: ProbeFailure = reason


class NoSuitableAudioTrackError(YtdQueueError):
    """Raised when no audio track can be chosen without guessing."""


# --- External processes ----------------------------------------------------

class ExecutableNotFoundError(YtdQueueError):
    """Raised when the downloader executable cannot be located."""


class ProcessSpawnError(YtdQueueError):
    """Raised when an external process cannot be started."""


class NonZeroExitError(YtdQueueError):
    """Raised when the download process exits unsuccessfully."""

    def __init__(self, exit_code: int | None, *, hint: str | None = None) -> None:
        super().__init__(f"yt-dlp exited with code {exit_code}.", hint=hint)
        self.exit_code: int | None = exit_code


def append_ytdlp_upgrade_suggestion(hint: str) -> str:
    """Append yt-dlp upgrade guidance to an existing hint text.

    The suggestion is appended only once and preserves the original
    hint content verbatim.
    """
    marker = "Also try updating yt-dlp:"
    if marker in hint:
        return hint
    return "\n".join(
        (
            hint,
            marker,
            "    pip install --upgrade yt-dlp",
        )
    )
