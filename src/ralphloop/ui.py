"""Console construction and small rendering helpers for the ``ralph`` CLI."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping, Sequence
from typing import Literal

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

OUTPUT_CHOICES = ("auto", "plain", "rich")
OUTPUT_ENV = "RALPH_OUTPUT"
OutputMode = Literal["plain", "rich"]


def add_output_mode_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        choices=OUTPUT_CHOICES,
        help=f"Output mode: auto (default), plain, or rich. Also read from {OUTPUT_ENV}.",
    )


def _isatty(stream: object) -> bool:
    probe = getattr(stream, "isatty", None)
    if not callable(probe):
        return False
    try:
        return bool(probe())
    except (OSError, ValueError):
        return False


def resolve_output_mode(
    requested: str | None = None,
    *,
    is_tty: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> OutputMode:
    """Pick plain or rich output.

    An explicit ``--output`` wins over ``RALPH_OUTPUT``; ``auto`` follows
    whether stdout is a terminal.
    """
    env = os.environ if environ is None else environ
    raw = requested if requested is not None else env.get(OUTPUT_ENV)
    selected = (raw or "").strip().lower() or "auto"
    if selected not in OUTPUT_CHOICES:
        expected = ", ".join(OUTPUT_CHOICES)
        raise ValueError(f"invalid output mode {raw!r}; expected one of: {expected}")
    if selected == "auto":
        tty = _isatty(sys.stdout) if is_tty is None else bool(is_tty)
        return "rich" if tty else "plain"
    return selected  # type: ignore[return-value]


def make_console(mode: OutputMode) -> Console:
    rich_mode = mode == "rich"
    return Console(
        file=sys.stdout,
        force_terminal=rich_mode,
        no_color=not rich_mode,
        highlight=False,
    )


def render_table(
    console: Console,
    *,
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    title: str | None = None,
    no_wrap_columns: Sequence[int] = (),
) -> None:
    table = Table(title=title, title_justify="left", show_edge=False, pad_edge=False)
    for idx, header in enumerate(headers):
        table.add_column(header, no_wrap=idx in no_wrap_columns, style="bold cyan" if idx == 0 else None)
    for row in rows:
        table.add_row(*("" if value is None else str(value) for value in row))
    console.print(table)


def render_panel(console: Console, body: str, *, title: str | None = None, style: str = "") -> None:
    console.print(Panel(body, title=title, border_style=style or "none", expand=False))
