"""Low-level JSONL storage helpers."""

from __future__ import annotations

import json
import os
from pathlib import Path

from .events import RalphEvent
from .util import json_dumps_compact


def read_jsonl(path: Path) -> list[dict]:
    if not path.exists():
        return []
    rows: list[dict] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                rows.append(json.loads(line))
    return rows


def append_jsonl(path: Path, row: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json_dumps_compact(row) + "\n")


def write_json_atomic(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
    os.replace(tmp, path)


def read_json(path: Path) -> dict | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


class JsonlEventLog:
    """Append-only diagnostic log; one JSON object per event."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __call__(self, event: RalphEvent) -> None:
        append_jsonl(self.path, event.to_dict())

    def read(self) -> list[dict]:
        return read_jsonl(self.path)
