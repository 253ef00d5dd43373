"""Parse the JSON document printed by ``yt-dlp -J`` into domain models.

The document is untrusted: every format entry is validated field by
field and malformed entries are logged and skipped rather than coerced
into falsy defaults.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ytd_queue.core.models import MediaFormat, ProbeResult
from ytd_queue.exceptions import ProbeFailedError, ProbeFailure

log = logging.getLogger(__name__)

_STRING_FIELDS: dict[str, str] = {
    "acodec": "acodec",
    "vcodec": "vcodec",
    "language": "language",
    "format_note": "note",
    "ext": "extension",
}
_NUMBER_FIELDS: dict[str, str] = {
    "abr": "bitrate",
    "tbr": "total_bitrate",
}


class _MalformedFormat(ValueError):
    """Raised internally for a format entry that fails validation."""


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_format(raw: object) -> MediaFormat:
    """Validate one raw format entry.

    Raises
    ------
    ValueError
        If *raw* is not an object, has no ``format_id``, or carries a
        field of the wrong type.
    """
    if not isinstance(raw, dict):
        raise _MalformedFormat(f"expected an object, got {type(raw).__name__}")

    format_id = raw.get("format_id")
    if _is_number(format_id):
        format_id = str(format_id)
    if not isinstance(format_id, str) or not format_id:
        raise _MalformedFormat("missing format_id")

    fields: dict[str, Any] = {}
    for key, attr in _STRING_FIELDS.items():
        value = raw.get(key)
        if value is not None and not isinstance(value, str):
            raise _MalformedFormat(f"{key} must be a string")
        fields[attr] = value

    for key, attr in _NUMBER_FIELDS.items():
        value = raw.get(key)
        if value is not None and not _is_number(value):
            raise _MalformedFormat(f"{key} must be a number")
        fields[attr] = float(value) if value is not None else None

    height = raw.get("height")
    if height is not None:
        if not _is_number(height):
            raise _MalformedFormat("height must be a number")
        height = int(height)

    return MediaFormat(format_id=format_id, height=height, **fields)


def parse_formats(raw_formats: object) -> tuple[MediaFormat, ...]:
    """Parse a raw ``formats`` array, skipping malformed entries."""
    if not isinstance(raw_formats, list):
        return ()
    parsed: list[MediaFormat] = []
    for index, raw in enumerate(raw_formats):
        try:
            parsed.append(parse_format(raw))
        except _MalformedFormat as exc:
            log.warning("Skipping malformed format #%d: %s", index, exc)
    return tuple(parsed)


def parse_probe_output(text: str) -> ProbeResult:
    """Parse the full probe document.

    Raises
    ------
    ProbeFailedError
        With reason ``PARSE_ERROR`` when *text* is not a JSON object.
    """
    try:
        document: object = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProbeFailedError(
            f"Could not parse video info: {exc}",
            reason=ProbeFailure.PARSE_ERROR,
        ) from exc

    if not isinstance(document, dict):
        raise ProbeFailedError(
            "Could not parse video info: expected a JSON object.",
            reason=ProbeFailure.PARSE_ERROR,
        )

    language = document.get("language")
    return ProbeResult(
        formats=parse_formats(document.get("formats")),
        language=language if isinstance(language, str) else None,
    )
