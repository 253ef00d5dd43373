"""JSON-file implementation of :class:`~ytd_queue.core.protocols.HistoryRecorder`."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from ytd_queue.core.models import HistoryEntry, JobMode, JobStatus

log = logging.getLogger(__name__)

HISTORY_LIMIT: int = 200


def entry_to_dict(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "url": entry.url,
        "mode": entry.mode.value,
        "output_dir": entry.output_dir,
        "status": entry.status.value,
        "ended_at": entry.ended_at.isoformat(),
        "summary": entry.summary,
    }


def entry_from_dict(data: dict[str, Any]) -> HistoryEntry:
    """Rebuild an entry.  Raises ``KeyError``/``ValueError`` on bad data."""
    return HistoryEntry(
        url=str(data["url"]),
        mode=JobMode(data["mode"]),
        output_dir=str(data["output_dir"]),
        status=JobStatus(data["status"]),
        ended_at=datetime.fromisoformat(data["ended_at"]),
        summary=str(data.get("summary", "")),
    )


class JsonHistoryStore:
    """Newest-first history, capped at *limit* entries, saved on every record.

    Write failures are logged rather than raised: losing a history entry
    must never fail the job it describes.
    """

    def __init__(self, path: Path, *, limit: int = HISTORY_LIMIT) -> None:
        self._path = path
        self._limit = limit
        self._entries: list[HistoryEntry] = []

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def load(self) -> None:
        """Read the history file; a missing or corrupt file yields no entries."""
        self._entries = []
        if not self._path.is_file():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Could not read history from %s: %s", self._path, exc)
            return
        if not isinstance(raw, list):
            log.warning("History file %s is not a JSON list; ignoring it.", self._path)
            return

        for item in raw[: self._limit]:
            try:
                self._entries.append(entry_from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed history entry: %s", exc)

    def record(self, entry: HistoryEntry) -> None:
        self._entries.insert(0, entry)
        del self._entries[self._limit :]
        self._save()

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps([entry_to_dict(e) for e in self._entries], indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            log.warning("Could not save history to %s: %s", self._path, exc)
