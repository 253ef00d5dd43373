"""Smoke tests — verify scaffold wiring.

These tests prove that:
* The CLI entry point is importable and callable.
* The exception hierarchy is correctly structured.
* Version is accessible.
* Exit codes are defined.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from ytd_queue import __version__
from ytd_queue.cli import exit_codes
from ytd_queue.cli.app import main
from ytd_queue.exceptions import (
    ConfigurationError,
    ExecutableNotFoundError,
    InvalidURLError,
    JobStateError,
    NonZeroExitError,
    NoSuitableAudioTrackError,
    ProbeFailedError,
    ProbeFailure,
    ProcessSpawnError,
    QueueError,
    YtdQueueError,
    append_ytdlp_upgrade_suggestion,
)


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

class TestVersion:
    def test_version_is_string(self) -> None:
        assert isinstance(__version__, str)

    def test_version_is_semver_like(self) -> None:
        parts = __version__.split(".")
        assert len(parts) == 3
        assert all(part.isdigit() for part in parts)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

class TestExceptions:
    @pytest.mark.parametrize(
        "exc_class",
        [
            InvalidURLError,
            ConfigurationError,
            QueueError,
            JobStateError,
            ExecutableNotFoundError,
            NoSuitableAudioTrackError,
            ProcessSpawnError,
        ],
    )
    def test_all_exceptions_inherit_from_base(
        self, exc_class: type[YtdQueueError]
    ) -> None:
        assert issubclass(exc_class, YtdQueueError)

    def test_job_state_error_is_queue_error(self) -> None:
        assert issubclass(JobStateError, QueueError)

    def test_hint_is_stored(self) -> None:
        err = YtdQueueError("boom", hint="try this")
        assert str(err) == "boom"
        assert err.hint == "try this"

    def test_hint_defaults_to_none(self) -> None:
        assert YtdQueueError("boom").hint is None

    def test_probe_failure_carries_reason(self) -> None:
        err = ProbeFailedError("bad", reason=ProbeFailure.EMPTY_OUTPUT)
        assert isinstance(err, YtdQueueError)
        assert err.reason is ProbeFailure.EMPTY_OUTPUT

    def test_non_zero_exit_message(self) -> None:
        err = NonZeroExitError(3)
        assert err.exit_code == 3
        assert "code 3" in str(err)

    def test_upgrade_suggestion_appended_once(self) -> None:
        once = append_ytdlp_upgrade_suggestion("Check the URL.")
        twice = append_ytdlp_upgrade_suggestion(once)
        assert once.startswith("Check the URL.")
        assert "pip install --upgrade yt-dlp" in once
        assert once == twice


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

class TestExitCodes:
    def test_success_is_zero(self) -> None:
        assert exit_codes.SUCCESS == 0

    def test_general_error_is_one(self) -> None:
        assert exit_codes.GENERAL_ERROR == 1

    def test_keyboard_interrupt_is_130(self) -> None:
        assert exit_codes.KEYBOARD_INTERRUPT == 130

    def test_unexpected_error_is_two(self) -> None:
        assert exit_codes.UNEXPECTED_ERROR == 2


# ---------------------------------------------------------------------------
# CLI routing
# ---------------------------------------------------------------------------

class TestCLIRouting:
    def test_no_args_returns_success(self, capsys: pytest.CaptureFixture[str]) -> None:
        """No arguments should print help and exit 0."""
        assert main([]) == exit_codes.SUCCESS
        assert "ytd-queue" in capsys.readouterr().out

    def test_version_flag(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0

    @patch("ytd_queue.cli.doctor.run_doctor", return_value=exit_codes.SUCCESS)
    def test_doctor_returns_success(self, _mock_doc: object) -> None:
        assert main(["doctor"]) == exit_codes.SUCCESS

    def test_urls_route_to_queue(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from ytd_queue.cli import app as app_module

        seen: list[list[str]] = []

        def fake_queue(urls: list[str], settings: object) -> int:
            seen.append(urls)
            return exit_codes.SUCCESS

        monkeypatch.setattr(app_module, "_handle_queue", fake_queue)
        code = main([
            "https://www.youtube.com/watch?v=a",
            "https://www.youtube.com/watch?v=b",
            "https://www.youtube.com/watch?v=a",
        ])
        assert code == exit_codes.SUCCESS
        assert seen == [[
            "https://www.youtube.com/watch?v=a",
            "https://www.youtube.com/watch?v=b",
        ]]
