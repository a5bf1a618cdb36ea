from __future__ import annotations

from pathlib import Path

from ..errors import ContentReadError
from .base import ContentHandle


_SKIP_DIRS = frozenset({".git", ".ralph", "node_modules", ".venv", "__pycache__"})


class WorkspaceFinder:
    """Finds prompt files under a workspace root with a glob pattern."""

    def __init__(self, root: Path, *, max_candidates: int = 100) -> None:
        self.root = root.resolve()
        self.max_candidates = max(1, int(max_candidates))

    def _label(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def find_candidates(self, pattern: str) -> list[ContentHandle]:
        out: list[ContentHandle] = []
        for path in sorted(self.root.glob(pattern)):
            rel_parts = path.relative_to(self.root).parts
            if any(part in _SKIP_DIRS for part in rel_parts[:-1]):
                continue
            if not path.is_file():
                continue
            resolved = path.resolve()
            out.append(ContentHandle(path=resolved, label=self._label(resolved)))
            if len(out) >= self.max_candidates:
                break
        return out

    def read_text(self, handle: ContentHandle) -> str:
        try:
            return handle.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadError(handle.display, exc) from exc
