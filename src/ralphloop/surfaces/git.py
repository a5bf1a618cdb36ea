from __future__ import annotations

from pathlib import Path

from ..util import CommandError, run_capture


class GitFingerprintProvider:
    """Fingerprints a repository by its HEAD commit.

    Returns ``None`` when there is no repository (or no commit yet), which
    the watcher treats as "no change this tick".
    """

    def __init__(self, repo_root: Path, *, timeout: float = 5.0) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    def _git_capture(self, argv: list[str]) -> str:
        try:
            return run_capture(argv, cwd=self.repo_root, timeout=self.timeout).strip()
        except (CommandError, OSError):
            return ""

    def get_fingerprint(self) -> str | None:
        head = self._git_capture(["git", "rev-parse", "HEAD"])
        return head or None


def find_repo_root(start: Path | None = None) -> Path:
    """Walk up to find .git directory."""
    p = (start or Path.cwd()).resolve()
    while p != p.parent:
        if (p / ".git").exists():
            return p
        p = p.parent
    return (start or Path.cwd()).resolve()
