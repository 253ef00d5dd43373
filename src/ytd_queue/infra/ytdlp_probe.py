"""yt-dlp backed implementation of :class:`~ytd_queue.core.protocols.MetadataProbe`.

Runs ``yt-dlp -J --skip-download`` as a child process and hands its
stdout to :func:`~ytd_queue.core.probe_parser.parse_probe_output`.
Every failure is re-raised as a typed
:class:`~ytd_queue.exceptions.YtdQueueError` subclass — nothing raw
escapes the infrastructure boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from ytd_queue.core.commands import build_probe_args, downloader_workdir
from ytd_queue.core.models import ProbeResult, Settings
from ytd_queue.core.probe_parser import parse_probe_output
from ytd_queue.exceptions import (
    ExecutableNotFoundError,
    ProbeFailedError,
    ProbeFailure,
    ProcessSpawnError,
    append_ytdlp_upgrade_suggestion,
)
from ytd_queue.infra.process_runner import merge_env

log = logging.getLogger(__name__)


class YtDlpProbe:
    """Concrete :class:`MetadataProbe` running the yt-dlp executable.

    Usage::

        probe = YtDlpProbe()
        result = await probe.probe(url, settings)

    This class satisfies the :class:`~ytd_queue.core.protocols.MetadataProbe`
    protocol structurally — no explicit inheritance required.
    """

    async def probe(
        self,
        url: str,
        settings: Settings,
        *,
        env: Mapping[str, str] | None = None,
    ) -> ProbeResult:
        """List the formats offered by *url*.

        Raises
        ------
        ExecutableNotFoundError
            When the downloader cannot be found.
        ProcessSpawnError
            When the downloader cannot be started for another reason.
        ProbeFailedError
            On a non-zero exit, empty stdout or an unparseable document.
        """
        executable = settings.downloader_path
        args = build_probe_args(url, settings)
        log.debug("Probing %s with %s %s", url, executable, args)

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=downloader_workdir(executable),
                env=merge_env(env),
            )
        except FileNotFoundError as exc:
            raise ExecutableNotFoundError(
                f"Could not read video info: program not found: {executable}",
                hint="Check the yt-dlp path in your settings.",
            ) from exc
        except OSError as exc:
            raise ProcessSpawnError(
                f"Could not read video info: {exc}",
            ) from exc

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            self._kill(process)
            await process.wait()
            raise

        text = stdout.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            detail = text or stderr.decode("utf-8", errors="replace").strip()
            raise ProbeFailedError(
                detail or "Could not read video info.",
                reason=ProbeFailure.NON_ZERO_EXIT,
                hint=append_ytdlp_upgrade_suggestion(
                    f"yt-dlp exited with code {process.returncode}.",
                ),
            )
        if not text:
            raise ProbeFailedError(
                "Could not read video info: yt-dlp printed nothing.",
                reason=ProbeFailure.EMPTY_OUTPUT,
            )

        result = parse_probe_output(text)
        log.debug(
            "Probe of %s found %d formats (language=%s)",
            url,
            len(result.formats),
            result.language,
        )
        return result

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            log.debug("Probe process %s already exited.", process.pid)
