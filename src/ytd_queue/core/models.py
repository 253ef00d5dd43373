"""Domain models for ytd-queue.

Value objects (formats, selected tracks, settings, history entries) are
**frozen** dataclasses with no I/O.  :class:`Job` is the single mutable
model: it is owned by the scheduler while queued or running and its
status transitions are enforced here.
"""

from __future__ import annotations

import enum
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ytd_queue.exceptions import JobStateError

LOG_LIMIT: int = 500
"""Maximum number of log lines kept per job."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class JobMode(str, enum.Enum):
    """What a job produces."""

    VIDEO = "video"
    AUDIO = "audio"


class JobStatus(str, enum.Enum):
    """Lifecycle state of a job."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL: frozenset[JobStatus] = frozenset(
    {JobStatus.DONE, JobStatus.FAILED, JobStatus.CANCELED}
)

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: _TERMINAL,
    JobStatus.DONE: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELED: frozenset(),
}


class TrackReason(str, enum.Enum):
    """Which rule of the selection cascade picked the audio track."""

    EXPLICIT_ORIGINAL = "explicit-original"
    VIDEO_LANGUAGE = "video-language"
    SINGLE_LANGUAGE = "single-language"
    NO_LANGUAGE_INFO = "no-language-info"


# ---------------------------------------------------------------------------
# Individual format descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MediaFormat:
    """A single stream offered by the source, as reported by the probe.

    Every field except :attr:`format_id` is optional: sources routinely
    omit codecs, bitrates and languages.
    """

    format_id: str
    """Downloader-specific identifier passed back via ``-f``."""

    acodec: str | None = None
    """Audio codec name.  ``"none"`` or ``None`` when there is no audio."""

    vcodec: str | None = None
    """Video codec name.  ``"none"`` or ``None`` when there is no video."""

    language: str | None = None
    """Raw language tag as reported (not normalized)."""

    note: str | None = None
    """Human-readable note (yt-dlp ``format_note``)."""

    bitrate: float | None = None
    """Audio bitrate in kbit/s (yt-dlp ``abr``)."""

    total_bitrate: float | None = None
    """Total bitrate in kbit/s (yt-dlp ``tbr``)."""

    height: int | None = None
    """Vertical resolution in pixels."""

    extension: str | None = None
    """Container extension (e.g. ``m4a``, ``webm``)."""

    @property
    def has_audio(self) -> bool:
        return bool(self.acodec) and self.acodec != "none"

    @property
    def has_video(self) -> bool:
        return bool(self.vcodec) and self.vcodec != "none"

    @property
    def is_audio_only(self) -> bool:
        return self.has_audio and not self.has_video

    @property
    def is_combined(self) -> bool:
        return self.has_audio and self.has_video


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Parsed output of a metadata probe."""

    formats: tuple[MediaFormat, ...]
    language: str | None = None
    """Video-level language hint, if the source reports one."""


@dataclass(frozen=True, slots=True)
class SelectedTrack:
    """The single audio track chosen for a job."""

    format_id: str
    reason: TrackReason
    is_combined: bool
    note: str | None = None
    language: str | None = None
    extension: str | None = None
    bitrate: float | None = None

    @classmethod
    def from_format(
        cls,
        fmt: MediaFormat,
        reason: TrackReason,
        *,
        combined: bool,
    ) -> SelectedTrack:
        return cls(
            format_id=fmt.format_id,
            reason=reason,
            is_combined=combined,
            note=fmt.note,
            language=fmt.language,
            extension=fmt.extension,
            bitrate=fmt.bitrate,
        )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Settings:
    """User settings read by the scheduler at job-start time."""

    downloader_path: str = "yt-dlp"
    """Path (or bare name) of the yt-dlp executable."""

    transcoder_location: str | None = None
    """ffmpeg binary or the directory containing it."""

    output_dir: str = ""
    playlist_enabled: bool = False
    audio_format: str = "mp3"
    mode: JobMode = JobMode.VIDEO

    js_runtime: str | None = "node"
    """Passed as ``--js-runtimes``; ``None`` omits the flag."""

    extractor_args: str | None = "youtube:player_client=web,android"
    """Passed as ``--extractor-args``; ``None`` omits the flag."""


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

def _new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False, slots=True)
class Job:
    """One queued download.

    ``url``, ``mode`` and ``output_dir`` are fixed at enqueue time.
    ``status`` only moves forward: pending -> running -> terminal.
    """

    url: str
    mode: JobMode
    output_dir: str
    id: str = field(default_factory=_new_job_id)
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    log: deque[str] = field(default_factory=lambda: deque(maxlen=LOG_LIMIT))
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    def append_log(self, line: str) -> None:
        """Append *line*; empty lines are ignored, the oldest lines drop first."""
        if not line:
            return
        self.log.append(line)

    def request_cancel(self) -> None:
        self.cancel_requested = True

    def _transition(self, target: JobStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise JobStateError(
                f"Job {self.id} cannot move from {self.status.value} "
                f"to {target.value}.",
            )
        self.status = target

    def mark_running(self) -> None:
        self._transition(JobStatus.RUNNING)
        self.started_at = _utcnow()
        self.progress = 0.0

    def finish(self, status: JobStatus) -> None:
        """Move to a terminal *status*; ``DONE`` forces progress to 100."""
        if not status.is_terminal:
            raise JobStateError(f"{status.value} is not a terminal status.")
        self._transition(status)
        self.ended_at = _utcnow()
        if status is JobStatus.DONE:
            self.progress = 100.0


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Terminal summary of a job, handed to the history recorder."""

    url: str
    mode: JobMode
    output_dir: str
    status: JobStatus
    ended_at: datetime
    summary: str = ""

    @classmethod
    def from_job(cls, job: Job, *, summary_lines: int = 5) -> HistoryEntry:
        if not job.status.is_terminal:
            raise JobStateError(f"Job {job.id} has not finished yet.")
        tail = list(job.log)[-summary_lines:]
        return cls(
            url=job.url,
            mode=job.mode,
            output_dir=job.output_dir,
            status=job.status,
            ended_at=job.ended_at or _utcnow(),
            summary=" ".join(tail),
        )
