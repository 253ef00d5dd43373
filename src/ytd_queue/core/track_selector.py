"""Deterministic audio-track selection.

Every function in this module is a **pure** transformation — no I/O,
no side effects, fully deterministic, and trivially unit-testable.

Given every stream a source offers, :func:`select_audio_track` picks
exactly one audio track using a strict cascade (first match wins):

1. **Explicit original** — a stream whose note marks it as the original
   audio; audio-only streams first, then combined streams.
2. **Video language** — a stream whose language equals the video-level
   language reported by the source.
3. **Single language** — only one known language is on offer.
4. **No language info** — no stream carries a known language at all,
   so there is nothing to disambiguate: take the best stream.
5. Otherwise the choice is ambiguous and ``None`` is returned.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from ytd_queue.core.models import MediaFormat, SelectedTrack, TrackReason

_ORIGINAL_NOTE = re.compile(r"(original|原声|原音|原始)", re.IGNORECASE)

_SENTINEL_LANGUAGES: frozenset[str] = frozenset({"und", "unknown", "mul", "zxx"})


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def normalize_language(value: str | None) -> str | None:
    """Return the trimmed tag, or ``None`` for empty and placeholder tags.

    ``und``, ``unknown``, ``mul`` and ``zxx`` (any case) carry no usable
    language information.
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() in _SENTINEL_LANGUAGES:
        return None
    return trimmed


def has_original_note(note: str | None) -> bool:
    """Whether *note* marks the stream as the original audio."""
    if note is None:
        return False
    return _ORIGINAL_NOTE.search(note) is not None


def known_languages(formats: Iterable[MediaFormat]) -> set[str]:
    """Distinct normalized languages among *formats*."""
    languages: set[str] = set()
    for fmt in formats:
        language = normalize_language(fmt.language)
        if language is not None:
            languages.add(language)
    return languages


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------

def _bitrate_key(fmt: MediaFormat) -> float:
    if fmt.bitrate is not None:
        return fmt.bitrate
    return fmt.total_bitrate or 0.0


def _combined_key(fmt: MediaFormat) -> tuple[int, float]:
    return (fmt.height or 0, fmt.total_bitrate or 0.0)


def pick_best_by_bitrate(formats: Sequence[MediaFormat]) -> MediaFormat:
    """Highest audio bitrate, falling back to total bitrate.

    Ties keep input order.
    """
    return max(formats, key=_bitrate_key)


def pick_best_combined(formats: Sequence[MediaFormat]) -> MediaFormat:
    """Highest resolution, then highest total bitrate.  Ties keep input order."""
    return max(formats, key=_combined_key)


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------

def _pick(
    audio_only: Sequence[MediaFormat],
    combined: Sequence[MediaFormat],
    reason: TrackReason,
) -> SelectedTrack | None:
    """Best audio-only candidate, else best combined candidate."""
    if audio_only:
        best = pick_best_by_bitrate(audio_only)
        return SelectedTrack.from_format(best, reason, combined=False)
    if combined:
        best = pick_best_combined(combined)
        return SelectedTrack.from_format(best, reason, combined=True)
    return None


def select_audio_track(
    formats: Sequence[MediaFormat],
    video_language: str | None = None,
) -> SelectedTrack | None:
    """Pick the single best audio track among *formats*.

    Parameters
    ----------
    formats:
        Every stream the source offers.  Streams without audio are
        ignored.
    video_language:
        Optional language of the video itself.  Placeholder tags such as
        ``und`` are treated as absent.

    Returns
    -------
    SelectedTrack | None
        ``None`` when there is no audio at all, or when several
        languages are on offer with nothing to choose between them.
        Callers must abort the job in that case.
    """
    audio_only = [fmt for fmt in formats if fmt.is_audio_only]
    combined = [fmt for fmt in formats if fmt.is_combined]
    if not audio_only and not combined:
        return None

    # 1. Explicitly marked original audio.
    track = _pick(
        [fmt for fmt in audio_only if has_original_note(fmt.note)],
        [fmt for fmt in combined if has_original_note(fmt.note)],
        TrackReason.EXPLICIT_ORIGINAL,
    )
    if track is not None:
        return track

    # 2. Same language as the video.  The comparison is on the raw tag.
    if normalize_language(video_language) is not None:
        track = _pick(
            [fmt for fmt in audio_only if fmt.language == video_language],
            [fmt for fmt in combined if fmt.language == video_language],
            TrackReason.VIDEO_LANGUAGE,
        )
        if track is not None:
            return track

    # 3. Only one language on offer.
    audio_languages = known_languages(audio_only)
    combined_languages = known_languages(combined)
    if len(audio_languages) == 1:
        (language,) = audio_languages
        track = _pick(
            [fmt for fmt in audio_only if normalize_language(fmt.language) == language],
            [],
            TrackReason.SINGLE_LANGUAGE,
        )
        if track is not None:
            return track
    if len(combined_languages) == 1:
        (language,) = combined_languages
        track = _pick(
            [],
            [fmt for fmt in combined if normalize_language(fmt.language) == language],
            TrackReason.SINGLE_LANGUAGE,
        )
        if track is not None:
            return track

    # 4. Nothing to disambiguate.
    if not audio_languages and not combined_languages:
        return _pick(audio_only, combined, TrackReason.NO_LANGUAGE_INFO)

    # 5. Several languages and no signal: refuse to guess.
    return None
