from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.text import Text

from .jsonl import read_json, write_json_atomic


STATUS_RELPATH = Path(".ralph") / "status.json"


@dataclass(frozen=True)
class StatusSnapshot:
    running: bool
    iteration_count: int
    session_id: str | None = None
    timestamp: str = ""
    pid: int | None = None
    stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "iteration_count": self.iteration_count,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "pid": self.pid,
            "stale": self.stale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusSnapshot":
        try:
            count = int(data.get("iteration_count") or 0)
        except (TypeError, ValueError):
            count = 0
        session_id = data.get("session_id")
        pid = data.get("pid")
        return cls(
            running=bool(data.get("running")),
            iteration_count=max(0, count),
            session_id=str(session_id) if session_id else None,
            timestamp=str(data.get("timestamp") or ""),
            pid=pid if isinstance(pid, int) and not isinstance(pid, bool) and pid > 0 else None,
        )


StatusListener = Callable[[StatusSnapshot], None]


def render_status(snapshot: StatusSnapshot) -> str:
    if snapshot.running:
        return f"▶ Ralph: iteration {snapshot.iteration_count}"
    return "■ Ralph: idle"


class ConsoleStatusReporter:
    def __init__(self, console: Console) -> None:
        self.console = console
        self.last_line: str | None = None

    def __call__(self, snapshot: StatusSnapshot) -> None:
        line = render_status(snapshot)
        if line == self.last_line:
            return
        self.last_line = line
        style = "bold green" if snapshot.running else "dim"
        self.console.print(Text(line, style=style))


class StatusFileReporter:
    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_repo(cls, repo_root: Path) -> "StatusFileReporter":
        return cls(repo_root / STATUS_RELPATH)

    def __call__(self, snapshot: StatusSnapshot) -> None:
        write_json_atomic(self.path, snapshot.to_dict())


def process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else.
        return True
    return True


def read_status(
    repo_root: Path, *, alive: Callable[[int], bool] | None = None
) -> StatusSnapshot | None:
    """Last published snapshot, or ``None`` if no run was recorded.

    A snapshot that claims to be running but whose process is gone (killed
    before it could publish idle) is reported as not running and ``stale``.
    """
    data = read_json(repo_root / STATUS_RELPATH)
    if data is None:
        return None
    snapshot = StatusSnapshot.from_dict(data)
    check = alive or process_alive
    if snapshot.running and snapshot.pid is not None and not check(snapshot.pid):
        return replace(snapshot, running=False, stale=True)
    return snapshot
