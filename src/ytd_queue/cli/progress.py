"""Rich-based queue display driven by scheduler updates.

This module bridges the scheduler's ``on_update`` callback with a Rich
:class:`~rich.progress.Progress` display: one row per job, showing its
progress and status.  The core layer only hands over :class:`Job`
objects; all rendering happens here.

Design
------
* :class:`QueueProgress` manages a Rich Progress context.
* :meth:`__call__` is the callback passed to the scheduler.
* Shutdown-safe: once the display is stopped, calls are ignored.
"""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
)

from ytd_queue.cli.console import console as default_console
from ytd_queue.core.models import Job, JobStatus

_STATUS_MARKUP: dict[JobStatus, str] = {
    JobStatus.PENDING: "[dim]pending[/dim]",
    JobStatus.RUNNING: "[cyan]running[/cyan]",
    JobStatus.DONE: "[green]done[/green]",
    JobStatus.FAILED: "[red]failed[/red]",
    JobStatus.CANCELED: "[yellow]canceled[/yellow]",
}


def shorten(text: str, width: int = 50) -> str:
    """Truncate *text* to *width* characters with an ellipsis."""
    if len(text) > width:
        return text[: width - 3] + "..."
    return text


def _failure_text(job: Job) -> str:
    """Last log line, keeping the error when a hint line follows it."""
    lines = list(job.log)
    if len(lines) > 1 and lines[-1].startswith("Hint: "):
        return f"{lines[-2]}\n  {lines[-1]}"
    return lines[-1]


class QueueProgress:
    """Callable scheduler observer rendering the queue with Rich.

    Usage::

        with QueueProgress() as display:
            display.add(scheduler.jobs)
            scheduler = JobScheduler(..., on_update=display)
            await scheduler.run()
    """

    def __init__(self, console: Console | None = None) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.fields[status]}"),
            console=console or default_console,
            transient=False,
        )
        self._task_ids: dict[str, TaskID] = {}
        self._started: bool = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> QueueProgress:
        self.start()
        return self

    def __exit__(self, *_args: object) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def stop(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

    # ------------------------------------------------------------------
    # Scheduler callback
    # ------------------------------------------------------------------

    def add(self, jobs: Iterable[Job]) -> None:
        """Create a row for each job not shown yet."""
        for job in jobs:
            self._task_id(job)

    def __call__(self, job: Job) -> None:
        if not self._started:
            return
        task_id = self._task_id(job)
        self._progress.update(
            task_id,
            completed=min(100.0, max(0.0, job.progress)),
            status=_STATUS_MARKUP[job.status],
        )
        if job.status is JobStatus.FAILED and job.log:
            self._progress.console.print(
                f"[red]✗[/red] {escape(shorten(job.url))}: {escape(_failure_text(job))}",
                highlight=False,
            )

    def _task_id(self, job: Job) -> TaskID:
        task_id = self._task_ids.get(job.id)
        if task_id is None:
            task_id = self._progress.add_task(
                escape(shorten(job.url)),
                total=100,
                status=_STATUS_MARKUP[job.status],
            )
            self._task_ids[job.id] = task_id
        return task_id
