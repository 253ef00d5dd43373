"""Shared pytest fixtures and configuration for the ytd-queue test suite.

Guidelines
----------
* No internet access in any test.
* yt-dlp is never executed; process tests spawn the current Python.
* Core tests must be pure — no side effects.
* Settings and history never touch the real home directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the settings/history directory at a temporary path."""
    home = tmp_path / "ytd-queue-home"
    monkeypatch.setenv("YTD_QUEUE_HOME", str(home))
    return home
