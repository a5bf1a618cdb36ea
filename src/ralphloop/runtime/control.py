from __future__ import annotations

from pathlib import Path
from typing import Any

from ..jsonl import read_json, write_json_atomic
from ..util import short_id, utc_now_iso


CONTROL_RELPATH = Path(".ralph") / "control.json"


class ControlFile:
    """Stop requests posted by a separate ``ralph stop`` process.

    A request is only honoured if its signature differs from the one seen
    when the session started, so a stale file never cancels a new run.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_repo(cls, repo_root: Path) -> "ControlFile":
        return cls(repo_root / CONTROL_RELPATH)

    @staticmethod
    def control_signature(state: dict[str, Any] | None) -> str:
        if not state:
            return ""
        parts = [
            str(state.get("timestamp") or ""),
            str(state.get("command") or ""),
            str(state.get("nonce") or ""),
        ]
        return "|".join(parts)

    def read_state(self) -> dict[str, Any] | None:
        return read_json(self.path)

    def signature(self) -> str:
        return self.control_signature(self.read_state())

    def stop_requested_since(self, last_signature: str) -> tuple[bool, str]:
        state = self.read_state()
        signature = self.control_signature(state)
        if not signature or signature == last_signature:
            return False, last_signature
        command = str((state or {}).get("command") or "").strip().lower()
        return command == "stop", signature

    def request_stop(self, *, author: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "command": "stop",
            "timestamp": utc_now_iso(),
            "nonce": short_id(),
        }
        if author:
            payload["author"] = author
        write_json_atomic(self.path, payload)
        return payload
