"""asyncio implementation of :class:`~ytd_queue.core.protocols.ProcessLauncher`.

This module is the **only** place that spawns the download process.
Spawn failures are re-raised as typed
:class:`~ytd_queue.exceptions.YtdQueueError` subclasses; everything that
happens afterwards is reported as :mod:`ytd_queue.core.messages` over a
single ordered queue.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Mapping, Sequence

from ytd_queue.core.messages import Error, Exit, Line, ProcessMessage
from ytd_queue.exceptions import ExecutableNotFoundError, ProcessSpawnError

log = logging.getLogger(__name__)

STREAM_LIMIT: int = 1024 * 1024
"""Longest accepted output line, in bytes."""


def merge_env(overrides: Mapping[str, str] | None) -> dict[str, str] | None:
    """Overlay *overrides* on the inherited environment (``None`` = inherit)."""
    if overrides is None:
        return None
    return {**os.environ, **overrides}


def decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip()


class RunningProcess:
    """Handle for one started process.

    Two reader tasks push stdout and stderr lines into one queue as they
    arrive; a supervisor task pushes the final :class:`Exit` once both
    streams are drained and the process has been reaped.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._queue: asyncio.Queue[ProcessMessage] = asyncio.Queue()
        self._cancel_sent: bool = False
        self._supervisor = asyncio.ensure_future(self._supervise())

    @property
    def pid(self) -> int:
        return self._process.pid

    async def _read(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        try:
            while True:
                try:
                    raw = await stream.readline()
                except ValueError as exc:
                    # Line longer than STREAM_LIMIT; the chunk is dropped.
                    self._queue.put_nowait(Error(exc))
                    continue
                if not raw:
                    break
                self._queue.put_nowait(Line(decode_line(raw)))
        except OSError as exc:
            self._queue.put_nowait(Error(exc))

    async def _supervise(self) -> None:
        code: int | None = None
        try:
            await asyncio.gather(
                self._read(self._process.stdout),
                self._read(self._process.stderr),
            )
            code = await self._process.wait()
        except Exception as exc:  # noqa: BLE001
            self._queue.put_nowait(Error(exc))
            code = self._process.returncode
        finally:
            self._queue.put_nowait(Exit(code))

    async def messages(self) -> AsyncIterator[ProcessMessage]:
        """Yield messages in arrival order; the last one is :class:`Exit`."""
        while True:
            message = await self._queue.get()
            yield message
            if isinstance(message, Exit):
                return

    def cancel(self) -> bool:
        """Send a termination signal.

        Idempotent: only the first call signals.  Never raises — a
        process that has already exited is logged and reported as
        ``False``.
        """
        if self._cancel_sent:
            return True
        if self._process.returncode is not None:
            log.info("Process %s already exited; nothing to cancel.", self.pid)
            return False
        try:
            self._process.terminate()
        except ProcessLookupError:
            log.info("Process %s already exited; nothing to cancel.", self.pid)
            return False
        except OSError as exc:
            log.warning("Could not terminate process %s: %s", self.pid, exc)
            return False
        self._cancel_sent = True
        return True


class ProcessRunner:
    """Concrete :class:`ProcessLauncher` backed by :mod:`asyncio` subprocesses.

    Usage::

        runner = ProcessRunner()
        handle = await runner.launch("yt-dlp", ["--newline", url])
        async for message in handle.messages():
            ...
    """

    async def launch(
        self,
        executable: str,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> RunningProcess:
        """Start *executable* with *args*.

        *env* holds overrides merged over the inherited environment.

        Raises
        ------
        ExecutableNotFoundError
            When *executable* does not exist.
        ProcessSpawnError
            For any other failure to start the process.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=merge_env(env),
                limit=STREAM_LIMIT,
            )
        except FileNotFoundError as exc:
            raise ExecutableNotFoundError(
                f"Program not found: {executable}",
                hint="Check the yt-dlp path in your settings.",
            ) from exc
        except OSError as exc:
            raise ProcessSpawnError(f"Could not start {executable}: {exc}") from exc

        log.debug("Started process %s: %s", process.pid, executable)
        return RunningProcess(process)
