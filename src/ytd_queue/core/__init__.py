"""Core layer — models, track selection, argument building, scheduling.

Rules
-----
* No ``print()`` calls.
* No direct process, filesystem or network I/O; external effects go
  through the protocols in :mod:`ytd_queue.core.protocols`.
* No imports from ``cli`` or ``infra``.
"""

from ytd_queue.core.models import (
    HistoryEntry,
    Job,
    JobMode,
    JobStatus,
    MediaFormat,
    ProbeResult,
    SelectedTrack,
    Settings,
    TrackReason,
)
from ytd_queue.core.protocols import (
    HistoryRecorder,
    MetadataProbe,
    ProcessHandle,
    ProcessLauncher,
)
from ytd_queue.core.scheduler import JobScheduler
from ytd_queue.core.track_selector import select_audio_track

__all__: list[str] = [
    "HistoryEntry",
    "HistoryRecorder",
    "Job",
    "JobMode",
    "JobScheduler",
    "JobStatus",
    "MediaFormat",
    "MetadataProbe",
    "ProbeResult",
    "ProcessHandle",
    "ProcessLauncher",
    "SelectedTrack",
    "Settings",
    "TrackReason",
    "select_audio_track",
]
