"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — so the scheduler can be driven by fakes in tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Protocol

from ytd_queue.core.messages import ProcessMessage
from ytd_queue.core.models import HistoryEntry, ProbeResult, Settings


class MetadataProbe(Protocol):
    """Contract for metadata-only invocations of the downloader."""

    async def probe(
        self,
        url: str,
        settings: Settings,
        *,
        env: Mapping[str, str] | None = None,
    ) -> ProbeResult:
        """List the streams offered by *url* without downloading.

        *env* holds environment overrides merged over the inherited
        environment.

        Raises
        ------
        ExecutableNotFoundError
            When the downloader cannot be found.
        ProcessSpawnError
            When the downloader cannot be started for another reason.
        ProbeFailedError
            On a non-zero exit, empty output or unparseable output.
        """
        ...  # pragma: no cover


class ProcessHandle(Protocol):
    """A started external process."""

    def messages(self) -> AsyncIterator[ProcessMessage]:
        """Yield output in arrival order, ending with one ``Exit``."""
        ...  # pragma: no cover

    def cancel(self) -> bool:
        """Ask the process to terminate.

        Best-effort and idempotent: returns ``False`` instead of raising
        when the process could not be signalled.
        """
        ...  # pragma: no cover


class ProcessLauncher(Protocol):
    """Contract for spawning external processes."""

    async def launch(
        self,
        executable: str,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ProcessHandle:
        """Start *executable* with *args*.

        Raises
        ------
        ExecutableNotFoundError
            When *executable* does not exist.
        ProcessSpawnError
            When the process cannot be started for another reason.
        """
        ...  # pragma: no cover


class HistoryRecorder(Protocol):
    """Write-only sink for terminal job summaries."""

    def record(self, entry: HistoryEntry) -> None:
        ...  # pragma: no cover
