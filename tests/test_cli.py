"""Tests for CLI wiring (cli/app.py, cli/console.py, cli/progress.py).

The yt-dlp probe and the process runner are replaced with in-memory
fakes; nothing is downloaded.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from rich.console import Console

from ytd_queue.cli import app, exit_codes
from ytd_queue.cli.console import verbosity_to_level
from ytd_queue.cli.progress import QueueProgress, shorten
from ytd_queue.core.messages import Exit, Line, ProcessMessage
from ytd_queue.core.models import (
    HistoryEntry,
    Job,
    JobMode,
    JobStatus,
    MediaFormat,
    ProbeResult,
    Settings,
)
from ytd_queue.exceptions import (
    ConfigurationError,
    ExecutableNotFoundError,
    InvalidURLError,
    YtdQueueError,
)
from ytd_queue.infra.history_store import JsonHistoryStore
from ytd_queue.infra.tool_detector import ToolStatus

URL = "https://www.youtube.com/watch?v=abc123"
_FFMPEG_FOUND = ToolStatus(
    found=True, path=Path("/usr/bin/ffmpeg"), version_hint="found", install_commands=()
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class _Probe:
    async def probe(
        self,
        url: str,
        settings: Settings,
        *,
        env: Mapping[str, str] | None = None,
    ) -> ProbeResult:
        return ProbeResult(
            formats=(
                MediaFormat(format_id="251", acodec="opus", vcodec="none", note="original"),
            ),
        )


class _Handle:
    def __init__(self, code: int) -> None:
        self._code = code

    async def messages(self) -> AsyncIterator[ProcessMessage]:
        yield Line("[download] 100% of 1.00MiB")
        yield Exit(self._code)

    def cancel(self) -> bool:
        return True


def _runner_factory(code: int) -> type:
    class _Runner:
        async def launch(
            self,
            executable: str,
            args: Sequence[str],
            *,
            cwd: str | None = None,
            env: Mapping[str, str] | None = None,
        ) -> _Handle:
            return _Handle(code)

    return _Runner


def _patch_queue(monkeypatch: pytest.MonkeyPatch, code: int = 0) -> None:
    monkeypatch.setattr(app, "_check_ready", lambda settings: settings)
    monkeypatch.setattr(app, "YtDlpProbe", _Probe)
    monkeypatch.setattr(app, "ProcessRunner", _runner_factory(code))


# ---------------------------------------------------------------------------
# Queue command
# ---------------------------------------------------------------------------

class TestHandleQueue:
    def test_success_records_history(
        self, monkeypatch: pytest.MonkeyPatch, isolated_home: Path, tmp_path: Path
    ) -> None:
        _patch_queue(monkeypatch, code=0)
        code = app._handle_queue([URL], Settings(output_dir=str(tmp_path)))

        assert code == exit_codes.SUCCESS
        store = JsonHistoryStore(isolated_home / "history.json")
        store.load()
        (entry,) = store.entries
        assert entry.url == URL
        assert entry.status is JobStatus.DONE

    def test_failed_job_returns_general_error(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        _patch_queue(monkeypatch, code=1)
        code = app._handle_queue([URL], Settings(output_dir=str(tmp_path)))
        assert code == exit_codes.GENERAL_ERROR

    def test_relative_downloader_launched_by_absolute_path(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        (tmp_path / "tools").mkdir()
        downloader = tmp_path / "tools" / "yt-dlp"
        downloader.write_text("", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        launches: list[tuple[str, str | None]] = []

        class _RecordingRunner:
            async def launch(
                self,
                executable: str,
                args: Sequence[str],
                *,
                cwd: str | None = None,
                env: Mapping[str, str] | None = None,
            ) -> _Handle:
                launches.append((executable, cwd))
                return _Handle(0)

        monkeypatch.setattr(app, "detect_ffmpeg", lambda location=None: _FFMPEG_FOUND)
        monkeypatch.setattr(app, "YtDlpProbe", _Probe)
        monkeypatch.setattr(app, "ProcessRunner", _RecordingRunner)

        settings = Settings(downloader_path="tools/yt-dlp", output_dir=str(tmp_path / "out"))
        assert app._handle_queue([URL], settings) == exit_codes.SUCCESS
        assert launches == [(str(downloader.resolve()), str(downloader.resolve().parent))]

    def test_invalid_url_aborts(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        _patch_queue(monkeypatch)
        with pytest.raises(InvalidURLError):
            app._handle_queue(["not-a-url"], Settings(output_dir=str(tmp_path)))


class TestCheckReady:
    def test_missing_downloader(self, tmp_path: Path) -> None:
        settings = Settings(downloader_path=str(tmp_path / "missing-yt-dlp"), output_dir="/out")
        with pytest.raises(ExecutableNotFoundError):
            app._check_ready(settings)

    def test_missing_output_dir(self, tmp_path: Path) -> None:
        downloader = tmp_path / "yt-dlp"
        downloader.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="output directory"):
            app._check_ready(Settings(downloader_path=str(downloader), output_dir=""))

    def test_missing_ffmpeg_only_warns(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        downloader = tmp_path / "yt-dlp"
        downloader.write_text("", encoding="utf-8")
        missing = ToolStatus(found=False, path=None, version_hint="not found", install_commands=())
        with patch("ytd_queue.cli.app.detect_ffmpeg", return_value=missing):
            with caplog.at_level(logging.WARNING):
                app._check_ready(Settings(downloader_path=str(downloader), output_dir="/out"))
        assert "ffmpeg not found" in caplog.text

    def test_relative_downloader_made_absolute(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        (tmp_path / "tools").mkdir()
        downloader = tmp_path / "tools" / "yt-dlp"
        downloader.write_text("", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        with patch("ytd_queue.cli.app.detect_ffmpeg", return_value=_FFMPEG_FOUND):
            ready = app._check_ready(Settings(downloader_path="tools/yt-dlp", output_dir="/out"))
        assert Path(ready.downloader_path).is_absolute()
        assert ready.downloader_path == str(downloader.resolve())

    def test_home_relative_downloader_expanded(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        (tmp_path / "bin").mkdir()
        downloader = tmp_path / "bin" / "yt-dlp"
        downloader.write_text("", encoding="utf-8")
        monkeypatch.setenv("HOME", str(tmp_path))
        with patch("ytd_queue.cli.app.detect_ffmpeg", return_value=_FFMPEG_FOUND):
            ready = app._check_ready(Settings(downloader_path="~/bin/yt-dlp", output_dir="/out"))
        assert ready.downloader_path == str(downloader.resolve())


# ---------------------------------------------------------------------------
# Argument handling
# ---------------------------------------------------------------------------

class TestMainArguments:
    def _capture(self, monkeypatch: pytest.MonkeyPatch) -> list[tuple[list[str], Settings]]:
        calls: list[tuple[list[str], Settings]] = []

        def fake_queue(urls: list[str], settings: Settings) -> int:
            calls.append((urls, settings))
            return exit_codes.SUCCESS

        monkeypatch.setattr(app, "_handle_queue", fake_queue)
        return calls

    def test_overrides_and_save(
        self, monkeypatch: pytest.MonkeyPatch, isolated_home: Path, tmp_path: Path
    ) -> None:
        calls = self._capture(monkeypatch)
        out = tmp_path / "music"
        code = app.main([
            "--audio",
            "-o", str(out),
            "--playlist",
            "--audio-format", "opus",
            "--save-settings",
            URL,
        ])

        assert code == exit_codes.SUCCESS
        (_urls, settings), = calls
        assert settings.mode is JobMode.AUDIO
        assert settings.output_dir == str(out)
        assert settings.playlist_enabled is True
        assert settings.audio_format == "opus"

        saved = json.loads((isolated_home / "settings.json").read_text(encoding="utf-8"))
        assert saved["mode"] == "audio"
        assert saved["audio_format"] == "opus"

    def test_config_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        calls = self._capture(monkeypatch)
        config = tmp_path / "custom.json"
        config.write_text('{"output_dir": "/from-config", "mode": "audio"}', encoding="utf-8")

        app.main(["--config", str(config), "--video", URL])
        (_urls, settings), = calls
        assert settings.output_dir == "/from-config"
        assert settings.mode is JobMode.VIDEO

    def test_invalid_config_mode(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        self._capture(monkeypatch)
        config = tmp_path / "bad.json"
        config.write_text('{"mode": "karaoke"}', encoding="utf-8")
        with pytest.raises(ConfigurationError):
            app.main(["--config", str(config), URL])

    def test_input_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        calls = self._capture(monkeypatch)
        urls = tmp_path / "urls.txt"
        urls.write_text(f"\n{URL}\nhttps://youtu.be/xyz\n{URL}\n", encoding="utf-8")

        app.main(["-i", str(urls)])
        (collected, _settings), = calls
        assert collected == [URL, "https://youtu.be/xyz"]

    def test_missing_input_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        self._capture(monkeypatch)
        with pytest.raises(ConfigurationError, match="Could not read URL list"):
            app.main(["-i", str(tmp_path / "nope.txt")])

    def test_empty_input_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        self._capture(monkeypatch)
        urls = tmp_path / "urls.txt"
        urls.write_text("\n  \n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="No URLs"):
            app.main(["-i", str(urls)])


# ---------------------------------------------------------------------------
# History command
# ---------------------------------------------------------------------------

class TestHistoryCommand:
    def test_empty(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert app.main(["history"]) == exit_codes.SUCCESS
        assert "No history yet." in capsys.readouterr().err

    def test_lists_entries(
        self, isolated_home: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        job = Job(url=URL, mode=JobMode.VIDEO, output_dir="/out")
        job.mark_running()
        job.append_log("all good")
        job.finish(JobStatus.DONE)
        JsonHistoryStore(isolated_home / "history.json").record(HistoryEntry.from_job(job))

        assert app.main(["history"]) == exit_codes.SUCCESS
        assert "ytd-queue history" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Error boundary
# ---------------------------------------------------------------------------

class TestErrorBoundary:
    def _run_cli(self, monkeypatch: pytest.MonkeyPatch, outcome: Any) -> int:
        def fake_main() -> int:
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        monkeypatch.setattr(app, "main", fake_main)
        with pytest.raises(SystemExit) as exc_info:
            app.cli()
        return exc_info.value.code  # type: ignore[return-value]

    def test_success(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert self._run_cli(monkeypatch, exit_codes.SUCCESS) == 0

    def test_domain_error_with_hint(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = self._run_cli(monkeypatch, YtdQueueError("Broken [thing]", hint="Fix it."))
        assert code == exit_codes.GENERAL_ERROR
        err = capsys.readouterr().err
        assert "Broken [thing]" in err
        assert "Fix it." in err

    def test_keyboard_interrupt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert self._run_cli(monkeypatch, KeyboardInterrupt()) == exit_codes.KEYBOARD_INTERRUPT

    def test_unexpected_error(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert self._run_cli(monkeypatch, RuntimeError("kaboom")) == exit_codes.UNEXPECTED_ERROR
        assert "RuntimeError: kaboom" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Console / progress display
# ---------------------------------------------------------------------------

class TestVerbosity:
    @pytest.mark.parametrize(
        ("verbosity", "level"),
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
    )
    def test_levels(self, verbosity: int, level: int) -> None:
        assert verbosity_to_level(verbosity) == level


class TestQueueProgress:
    def test_shorten(self) -> None:
        assert shorten("short") == "short"
        long = "x" * 80
        assert shorten(long) == "x" * 47 + "..."
        assert len(shorten(long, 20)) == 20

    def test_updates_ignored_before_start(self) -> None:
        display = QueueProgress(Console(file=io.StringIO()))
        display(Job(url=URL, mode=JobMode.VIDEO, output_dir="/out"))

    def test_failed_job_is_reported(self) -> None:
        buffer = io.StringIO()
        job = Job(url=URL, mode=JobMode.VIDEO, output_dir="/out")
        with QueueProgress(Console(file=buffer, width=120)) as display:
            display.add([job])
            job.mark_running()
            display(job)
            job.append_log("ERROR: [youtube] abc123: Video unavailable")
            job.finish(JobStatus.FAILED)
            display(job)
        assert "Video unavailable" in buffer.getvalue()

    def test_failure_hint_is_shown_with_error(self) -> None:
        buffer = io.StringIO()
        job = Job(url=URL, mode=JobMode.VIDEO, output_dir="/out")
        with QueueProgress(Console(file=buffer, width=120)) as display:
            display.add([job])
            job.mark_running()
            display(job)
            job.append_log("Program not found: yt-dlp")
            job.append_log("Hint: Check the yt-dlp path in your settings.")
            job.finish(JobStatus.FAILED)
            display(job)
        output = buffer.getvalue()
        assert "Program not found: yt-dlp" in output
        assert "Hint: Check the yt-dlp path in your settings." in output
