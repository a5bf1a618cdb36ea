from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from .base import ContentHandle


class RichPicker:
    """Interactive prompt-file selection on the terminal."""

    def __init__(self, console: Console, *, title: str = "Select a ralph-prompt file") -> None:
        self.console = console
        self.title = title

    def render(self, candidates: Sequence[ContentHandle]) -> None:
        table = Table(title=self.title, expand=False, show_edge=False, pad_edge=False)
        table.add_column("#", style="bold cyan", justify="right")
        table.add_column("File", style="bold")
        table.add_column("Path", style="dim")
        for idx, handle in enumerate(candidates, start=1):
            table.add_row(str(idx), handle.display, str(handle.path))
        self.console.print(table)

    def prompt(self, candidates: Sequence[ContentHandle]) -> ContentHandle | None:
        if not candidates:
            return None
        self.render(candidates)
        choices = [str(idx) for idx in range(1, len(candidates) + 1)] + ["q"]
        try:
            answer = Prompt.ask(
                "Prompt file (q to cancel)",
                choices=choices,
                default="1",
                console=self.console,
                show_choices=False,
            )
        except (EOFError, KeyboardInterrupt):
            return None
        if answer == "q":
            return None
        return candidates[int(answer) - 1]
