"""Operator-facing notifications rendered on a rich console."""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.text import Text


class Notifier(Protocol):
    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class ConsoleNotifier:
    def __init__(self, console: Console) -> None:
        self.console = console

    def _line(self, marker: str, style: str, message: str) -> None:
        line = Text()
        line.append(f"{marker} ", style=style)
        line.append(message)
        self.console.print(line)

    def info(self, message: str) -> None:
        self._line("●", "cyan", message)

    def warning(self, message: str) -> None:
        self._line("⚠", "yellow", message)

    def error(self, message: str) -> None:
        self._line("✗", "bold red", message)

