"""Loading and saving :class:`~ytd_queue.core.models.Settings` as JSON.

A missing or unreadable settings file is never fatal: defaults are used
and the problem is logged.  Only values that would make every job fail
(an unknown mode) raise :class:`~ytd_queue.exceptions.ConfigurationError`.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from ytd_queue.core.models import JobMode, Settings
from ytd_queue.exceptions import ConfigurationError

log = logging.getLogger(__name__)

HOME_ENV_VAR = "YTD_QUEUE_HOME"
SETTINGS_FILENAME = "settings.json"
HISTORY_FILENAME = "history.json"

_FIELD_NAMES: frozenset[str] = frozenset(f.name for f in dataclasses.fields(Settings))


def default_config_dir() -> Path:
    """``$YTD_QUEUE_HOME`` if set, else ``~/.config/ytd-queue``."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "ytd-queue"


def default_settings() -> Settings:
    """Settings used when nothing is configured."""
    return Settings(
        downloader_path=shutil.which("yt-dlp") or "yt-dlp",
        output_dir=str(Path.home() / "Downloads"),
    )


def settings_from_dict(data: dict[str, Any], base: Settings | None = None) -> Settings:
    """Overlay *data* on *base* (defaults when ``None``).

    Unknown keys are logged and ignored.

    Raises
    ------
    ConfigurationError
        If ``mode`` is not ``video`` or ``audio``.
    """
    base = base if base is not None else default_settings()
    values: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FIELD_NAMES:
            log.warning("Ignoring unknown setting %r", key)
            continue
        values[key] = value

    if "mode" in values:
        try:
            values["mode"] = JobMode(values["mode"])
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid mode in settings: {values['mode']!r}",
                hint="Use 'video' or 'audio'.",
            ) from exc
    return dataclasses.replace(base, **values)


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    data = dataclasses.asdict(settings)
    data["mode"] = settings.mode.value
    return data


def load_settings(path: Path) -> Settings:
    """Read settings from *path*, falling back to defaults."""
    if not path.is_file():
        return default_settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("Could not read settings from %s: %s; using defaults.", path, exc)
        return default_settings()
    if not isinstance(data, dict):
        log.warning("Settings file %s is not a JSON object; using defaults.", path)
        return default_settings()
    return settings_from_dict(data)


def save_settings(settings: Settings, path: Path) -> None:
    """Write *settings* to *path*, creating parent directories.

    Raises
    ------
    ConfigurationError
        If the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(settings_to_dict(settings), indent=2),
            encoding="utf-8",
        )
    except OSError as exc:
        raise ConfigurationError(f"Could not save settings to {path}: {exc}") from exc
