from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence


@dataclass(frozen=True)
class ContentHandle:
    """A prompt file candidate. Identity is the resolved path, not the label."""

    path: Path
    label: str = field(default="", compare=False)

    @property
    def display(self) -> str:
        return self.label or str(self.path)


class FingerprintProvider(Protocol):
    def get_fingerprint(self) -> str | None:
        ...


class CandidateFinder(Protocol):
    def find_candidates(self, pattern: str) -> list[ContentHandle]:
        ...

    def read_text(self, handle: ContentHandle) -> str:
        ...


class Picker(Protocol):
    def prompt(self, candidates: Sequence[ContentHandle]) -> ContentHandle | None:
        ...


class InputSurface(Protocol):
    name: str

    def focus(self) -> None:
        ...

    def publish(self, text: str) -> None:
        ...

    def trigger_processing(self) -> None:
        ...

    def paste(self) -> None:
        ...

    def type_text(self, text: str) -> None:
        ...

    def accept_selected(self) -> None:
        ...

    def trigger_cleanup(self) -> None:
        ...


class Keystroke(Protocol):
    name: str

    def press_return(self) -> None:
        ...
