"""Single-concurrency job scheduler.

The :class:`JobScheduler` owns the ordered job list and drives each job
through probe → track selection → download, one job at a time.  It is
the only writer of queue and job state; everything runs on one asyncio
event loop, so no locks are needed.

Guarantees
----------
* At most one job is ``running`` at any instant.
* Pending jobs start in FIFO order.
* A failing job never stalls the queue: every job-local error is
  written to the job log and turned into a terminal status.
* A cancel request always wins over the exit code, however late the
  exit is observed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from ytd_queue.core.commands import (
    build_download_args,
    build_spawn_env,
    downloader_workdir,
)
from ytd_queue.core.messages import Error, Exit, Line
from ytd_queue.core.models import (
    HistoryEntry,
    Job,
    JobStatus,
    ProbeResult,
    SelectedTrack,
    Settings,
    TrackReason,
)
from ytd_queue.core.progress import parse_progress
from ytd_queue.core.protocols import (
    HistoryRecorder,
    MetadataProbe,
    ProcessHandle,
    ProcessLauncher,
)
from ytd_queue.core.track_selector import select_audio_track
from ytd_queue.exceptions import (
    InvalidURLError,
    NonZeroExitError,
    NoSuitableAudioTrackError,
    QueueError,
    YtdQueueError,
)

log = logging.getLogger(__name__)

_REASON_TEXT: dict[TrackReason, str] = {
    TrackReason.EXPLICIT_ORIGINAL: "matched the original-audio marker",
    TrackReason.SINGLE_LANGUAGE: "no original marker, only one language offered",
    TrackReason.VIDEO_LANGUAGE: "no original marker, matched the video language",
    TrackReason.NO_LANGUAGE_INFO: "no language info, using the best available track",
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def parse_urls(text: str) -> list[str]:
    """Split newline-separated input into URLs, dropping blanks and repeats."""
    urls: list[str] = []
    for line in text.splitlines():
        url = line.strip()
        if url and url not in urls:
            urls.append(url)
    return urls


def validate_url(url: str) -> str:
    """Return the stripped *url* or raise :class:`InvalidURLError`."""
    stripped = url.strip()
    if not stripped:
        raise InvalidURLError("URL must not be empty.")
    if not stripped.startswith(("http://", "https://")):
        raise InvalidURLError(
            f"Invalid URL: {stripped}",
            hint="URL must start with http:// or https://",
        )
    return stripped


def classify_exit(job: Job, code: int | None) -> JobStatus:
    """Terminal status for a process that exited with *code*.

    Reads ``cancel_requested`` at call time, so a natural exit that
    races a cancel request is still reported as canceled.
    """
    if job.cancel_requested:
        return JobStatus.CANCELED
    if code == 0:
        return JobStatus.DONE
    return JobStatus.FAILED


def describe_selection(track: SelectedTrack) -> str:
    note = f" ({track.note})" if track.note else ""
    return f"Using audio track {track.format_id}{note} · {_REASON_TEXT[track.reason]}"


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class JobScheduler:
    """Queue of download jobs, run strictly one at a time.

    Parameters
    ----------
    settings:
        Current settings.  Read once when each job starts; assign a new
        value to :attr:`settings` to affect later jobs.
    probe:
        Any object satisfying the :class:`MetadataProbe` protocol.
    launcher:
        Any object satisfying the :class:`ProcessLauncher` protocol.
    history:
        Optional sink receiving a :class:`HistoryEntry` per finished job.
    on_update:
        Optional callable invoked with a job whenever its status,
        progress or log changes.
    system_path:
        Inherited search path appended after the tool directories.
    """

    def __init__(
        self,
        settings: Settings,
        probe: MetadataProbe,
        launcher: ProcessLauncher,
        *,
        history: HistoryRecorder | None = None,
        on_update: Callable[[Job], None] | None = None,
        system_path: str = "",
    ) -> None:
        self.settings: Settings = settings
        self._probe: MetadataProbe = probe
        self._launcher: ProcessLauncher = launcher
        self._history: HistoryRecorder | None = history
        self._on_update: Callable[[Job], None] | None = on_update
        self._system_path: str = system_path

        self._jobs: list[Job] = []
        self._running: Job | None = None
        self._handle: ProcessHandle | None = None
        self._probe_task: asyncio.Future[ProbeResult] | None = None
        self._stopping: bool = False

    # ------------------------------------------------------------------
    # Queue inspection
    # ------------------------------------------------------------------

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    @property
    def running(self) -> Job | None:
        return self._running

    @property
    def stopping(self) -> bool:
        return self._stopping

    def get(self, job_id: str) -> Job:
        for job in self._jobs:
            if job.id == job_id:
                return job
        raise QueueError(f"No job with id {job_id}.")

    def pending(self) -> list[Job]:
        return [job for job in self._jobs if job.status is JobStatus.PENDING]

    def summary(self) -> dict[JobStatus, int]:
        """Number of jobs per status, every status present."""
        counts = {status: 0 for status in JobStatus}
        for job in self._jobs:
            counts[job.status] += 1
        return counts

    # ------------------------------------------------------------------
    # Queue mutation
    # ------------------------------------------------------------------

    def enqueue(self, urls: Iterable[str]) -> list[Job]:
        """Append one pending job per distinct URL.

        Mode and output directory are snapshotted from the current
        settings.  Nothing is queued if any URL is invalid.

        Raises
        ------
        InvalidURLError
            If a URL is empty or not http(s).
        """
        validated: list[str] = []
        for url in urls:
            url = validate_url(url)
            if url not in validated:
                validated.append(url)

        jobs = [
            Job(url=url, mode=self.settings.mode, output_dir=self.settings.output_dir)
            for url in validated
        ]
        self._jobs.extend(jobs)
        for job in jobs:
            log.debug("Queued job %s: %s", job.id, job.url)
        return jobs

    def remove(self, job_id: str) -> Job:
        """Remove a job that is not running.

        Raises
        ------
        QueueError
            If the job is unknown or currently running.
        """
        job = self.get(job_id)
        if job.status is JobStatus.RUNNING:
            raise QueueError(
                "A running job cannot be removed.",
                hint="Cancel it first.",
            )
        self._jobs.remove(job)
        return job

    def clear_finished(self) -> int:
        """Drop every job in a terminal state; return how many were dropped."""
        before = len(self._jobs)
        self._jobs = [job for job in self._jobs if not job.status.is_terminal]
        return before - len(self._jobs)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_current(self) -> bool:
        """Request cancellation of the running job.

        Returns ``False`` when no job is running.  Safe to call from any
        coroutine or loop callback; the flag is consulted again when the
        job's process exits.
        """
        job = self._running
        if job is None:
            return False

        job.request_cancel()
        signalled = True
        if self._probe_task is not None and not self._probe_task.done():
            self._probe_task.cancel()
        elif self._handle is not None:
            signalled = self._handle.cancel()

        if signalled:
            job.append_log("Cancellation requested.")
        else:
            job.append_log("Cancel failed: the process could not be signalled.")
        self._notify(job)
        return True

    def stop(self) -> None:
        """Start no further jobs and cancel the running one."""
        self._stopping = True
        self.cancel_current()

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    async def run_next(self) -> Job | None:
        """Run the oldest pending job to a terminal state.

        No-op (returns ``None``) while another job is running, after
        :meth:`stop`, or when nothing is pending.
        """
        if self._running is not None or self._stopping:
            return None
        job = next(
            (job for job in self._jobs if job.status is JobStatus.PENDING),
            None,
        )
        if job is None:
            return None
        await self._run_job(job)
        return job

    async def run(self) -> None:
        """Run pending jobs until none are left."""
        while await self.run_next() is not None:
            pass

    async def _run_job(self, job: Job) -> None:
        settings = self.settings
        job.mark_running()
        self._running = job
        log.info("Starting job %s: %s", job.id, job.url)
        self._notify(job)

        try:
            status = await self._execute(job, settings)
        except asyncio.CancelledError:
            job.request_cancel()
            if self._handle is not None:
                self._handle.cancel()
            self._finish(job, JobStatus.CANCELED)
            raise
        except YtdQueueError as exc:
            job.append_log(str(exc))
            if exc.hint:
                job.append_log(f"Hint: {exc.hint}")
            status = self._failure_status(job)
        except Exception as exc:  # noqa: BLE001
            log.exception("Unexpected error while running job %s", job.id)
            job.append_log(f"Unexpected error: {type(exc).__name__}: {exc}")
            status = self._failure_status(job)

        self._finish(job, status)

    async def _execute(self, job: Job, settings: Settings) -> JobStatus:
        env = build_spawn_env(settings, self._system_path)

        result = await self._probe_formats(job, settings, env)
        if result is None or job.cancel_requested:
            return JobStatus.CANCELED

        track = select_audio_track(result.formats, result.language)
        if track is None:
            raise NoSuitableAudioTrackError(
                "No audio track is marked original or matches the video "
                "language; download stopped.",
            )
        job.append_log(describe_selection(track))

        args = build_download_args(job, track, settings)
        log.debug("Launching %s %s", settings.downloader_path, args)
        self._handle = await self._launcher.launch(
            settings.downloader_path,
            args,
            cwd=downloader_workdir(settings.downloader_path),
            env=env,
        )
        if job.cancel_requested:
            # The request arrived while the process was starting.
            self._handle.cancel()

        code = await self._consume(job, self._handle)
        status = classify_exit(job, code)
        if status is JobStatus.FAILED:
            raise NonZeroExitError(code)
        return status

    async def _probe_formats(
        self,
        job: Job,
        settings: Settings,
        env: dict[str, str] | None,
    ) -> ProbeResult | None:
        """Run the probe as a cancellable task; ``None`` if the job was canceled."""
        self._probe_task = asyncio.ensure_future(
            self._probe.probe(job.url, settings, env=env),
        )
        try:
            return await self._probe_task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if job.cancel_requested and (current is None or not current.cancelling()):
                return None
            raise
        finally:
            self._probe_task = None

    async def _consume(self, job: Job, handle: ProcessHandle) -> int | None:
        """Feed process messages into the job; return the exit code."""
        code: int | None = None
        async for message in handle.messages():
            if isinstance(message, Line):
                job.append_log(message.text)
                progress = parse_progress(message.text)
                if progress is not None:
                    job.progress = progress
                self._notify(job)
            elif isinstance(message, Error):
                job.append_log(f"Error: {message.cause}")
            elif isinstance(message, Exit):
                code = message.code
        return code

    # ------------------------------------------------------------------
    # Terminal transition
    # ------------------------------------------------------------------

    @staticmethod
    def _failure_status(job: Job) -> JobStatus:
        return JobStatus.CANCELED if job.cancel_requested else JobStatus.FAILED

    def _finish(self, job: Job, status: JobStatus) -> None:
        job.finish(status)
        self._running = None
        self._handle = None
        self._probe_task = None
        log.info("Job %s finished: %s", job.id, status.value)

        if self._history is not None:
            try:
                self._history.record(HistoryEntry.from_job(job))
            except Exception:  # noqa: BLE001
                log.exception("Could not record history for job %s", job.id)
        self._notify(job)

    def _notify(self, job: Job) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(job)
        except Exception:  # noqa: BLE001
            log.exception("Update callback failed for job %s", job.id)
