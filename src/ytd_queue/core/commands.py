"""Pure construction of yt-dlp argument vectors and the spawn search path.

Nothing here touches the filesystem or the environment; the caller
passes the inherited ``PATH`` in explicitly.
"""

from __future__ import annotations

import ntpath
import os
import posixpath

from ytd_queue.core.models import Job, JobMode, SelectedTrack, Settings

RECODE_POSTPROCESSOR_ARGS = (
    "VideoConvertor+ffmpeg:-c:v libx264 -crf 20 -preset medium "
    "-c:a aac -b:a 192k -movflags +faststart"
)
MERGE_POSTPROCESSOR_ARGS = "Merger+ffmpeg:-c:v copy -c:a aac -b:a 192k"


# ---------------------------------------------------------------------------
# Shared flags
# ---------------------------------------------------------------------------

def _common_args(settings: Settings) -> list[str]:
    args: list[str] = []
    if settings.js_runtime:
        args.extend(("--js-runtimes", settings.js_runtime))
    if settings.extractor_args:
        args.extend(("--extractor-args", settings.extractor_args))
    return args


def _playlist_args(settings: Settings) -> list[str]:
    return [] if settings.playlist_enabled else ["--no-playlist"]


# ---------------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------------

def build_probe_args(url: str, settings: Settings) -> list[str]:
    """Arguments for a metadata-only run that prints one JSON document."""
    args = _common_args(settings)
    args.extend(("-J", "--skip-download"))
    args.extend(_playlist_args(settings))
    args.append(url)
    return args


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

def _format_args(job: Job, track: SelectedTrack, settings: Settings) -> list[str]:
    """Format selection plus any merge / recode post-processing."""
    if job.mode is JobMode.AUDIO:
        return ["-x", "--audio-format", settings.audio_format, "-f", track.format_id]

    if track.is_combined:
        args = ["-f", track.format_id]
        if track.extension and track.extension != "mp4":
            args.extend(("--recode-video", "mp4"))
            args.extend(("--postprocessor-args", RECODE_POSTPROCESSOR_ARGS))
        else:
            args.extend(("--merge-output-format", "mp4"))
        return args

    # Audio-only track: pair it with the best video stream.
    return [
        "--merge-output-format",
        "mp4",
        "--postprocessor-args",
        MERGE_POSTPROCESSOR_ARGS,
        "-f",
        f"bv*+{track.format_id}",
    ]


def build_download_args(job: Job, track: SelectedTrack, settings: Settings) -> list[str]:
    """Arguments for the real download of *job* using *track*."""
    args = _common_args(settings)
    args.append("--newline")
    args.extend(_playlist_args(settings))
    args.extend(_format_args(job, track, settings))
    if settings.transcoder_location:
        args.extend(("--ffmpeg-location", settings.transcoder_location))
    args.extend(("-P", job.output_dir))
    args.append(job.url)
    return args


# ---------------------------------------------------------------------------
# Working directory / search path
# ---------------------------------------------------------------------------

def downloader_workdir(downloader_path: str) -> str | None:
    """Directory containing the downloader, or ``None`` for a bare name.

    Both ``/`` and ``\\`` are accepted as separators so Windows-style
    paths read from a settings file resolve on any host.
    """
    if "\\" in downloader_path:
        directory = ntpath.dirname(downloader_path)
    else:
        directory = posixpath.dirname(downloader_path)
    return directory or None


def build_search_path(
    downloader_path: str,
    transcoder_location: str | None,
    system_path: str,
    *,
    sep: str = os.pathsep,
) -> str | None:
    """Assemble the ``PATH`` handed to child processes.

    Order: downloader directory, transcoder location, inherited path.
    Segments are trimmed, empties dropped and duplicates removed while
    keeping the first occurrence.  Returns ``None`` when nothing remains.
    """
    sources: list[str] = []
    workdir = downloader_workdir(downloader_path)
    if workdir:
        sources.append(workdir)
    if transcoder_location:
        sources.append(transcoder_location)
    if system_path:
        sources.append(system_path)

    segments: list[str] = []
    for source in sources:
        for segment in source.split(sep):
            segment = segment.strip()
            if segment and segment not in segments:
                segments.append(segment)
    return sep.join(segments) if segments else None


def build_spawn_env(settings: Settings, system_path: str) -> dict[str, str] | None:
    """Environment overrides for child processes, or ``None`` to inherit.

    Launchers merge the overrides over the inherited environment.
    """
    search_path = build_search_path(
        settings.downloader_path,
        settings.transcoder_location,
        system_path,
    )
    if search_path is None:
        return None
    return {"PATH": search_path}
