from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console


@pytest.fixture
def stdout() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(stdout: io.StringIO) -> Console:
    return Console(file=stdout, force_terminal=False, color_system=None, width=120)


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / ".git").mkdir()
    monkeypatch.chdir(tmp_path)
    for name in (
        "RALPH_POLL_INTERVAL_MS",
        "RALPH_MAX_WAIT_MS",
        "RALPH_SETTLE_DELAY_MS",
        "RALPH_TICK_MS",
        "RALPH_TMUX_TARGET",
        "RALPH_ABORT_ON_DELIVERY_FAILURE",
        "RALPH_OUTPUT",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
