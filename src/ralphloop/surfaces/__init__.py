from __future__ import annotations

from .base import (
    CandidateFinder,
    ContentHandle,
    FingerprintProvider,
    InputSurface,
    Keystroke,
    Picker,
)
from .git import GitFingerprintProvider, find_repo_root
from .keystroke import OsKeystroke, build_keystroke
from .picker import RichPicker
from .tmux import TmuxSurface
from .workspace import WorkspaceFinder

__all__ = [
    "CandidateFinder",
    "ContentHandle",
    "FingerprintProvider",
    "GitFingerprintProvider",
    "InputSurface",
    "Keystroke",
    "OsKeystroke",
    "Picker",
    "RichPicker",
    "TmuxSurface",
    "WorkspaceFinder",
    "build_keystroke",
    "find_repo_root",
]
