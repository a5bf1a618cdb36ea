"""CLI entry point for ralphloop."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace

from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .jsonl import read_jsonl
from .runner import LOGS_RELPATH, run_loop
from .runtime.config import CONFIG_RELPATH, load_config, render_default_config
from .runtime.control import ControlFile
from .runtime.session import IterationOutcome
from .status import StatusSnapshot, read_status, render_status
from .surfaces.git import find_repo_root
from .surfaces.workspace import WorkspaceFinder
from .ui import add_output_mode_argument, make_console, render_panel, render_table, resolve_output_mode
from .util import json_dumps_compact


def _run_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ralph run", add_help=False)
    p.add_argument("--pattern", default=None)
    p.add_argument("--target", default=None, help="tmux pane target, e.g. agent:0.1")
    p.add_argument("--max-iterations", type=int, default=None)
    p.add_argument("--abort-on-delivery-failure", action="store_true")
    add_output_mode_argument(p)
    return p


def _console_for(raw: list[str]) -> Console:
    mode = None
    if "--output" in raw:
        idx = raw.index("--output")
        if idx + 1 < len(raw):
            mode = raw[idx + 1]
    try:
        return make_console(resolve_output_mode(mode))
    except ValueError:
        return make_console("plain")


def cmd_init(console: Console) -> int:
    root = find_repo_root()
    path = root / CONFIG_RELPATH
    path.parent.mkdir(parents=True, exist_ok=True)
    (root / LOGS_RELPATH).mkdir(parents=True, exist_ok=True)
    if path.exists():
        console.print(Text(f"{CONFIG_RELPATH} already exists", style="yellow"))
        return 0
    path.write_text(render_default_config(), encoding="utf-8")
    render_panel(console, f"Initialized [bold].ralph/[/bold] in {root}", style="green")
    return 0


def cmd_run(argv: list[str], console: Console) -> int:
    args = _run_parser().parse_args(argv)
    root = find_repo_root()
    cfg = load_config(root)
    if cfg.error:
        console.print(Text(f"Config error: {cfg.error}", style="red"))
        return 2

    if args.pattern:
        cfg = replace(cfg, pattern=args.pattern)
    if args.target:
        cfg = replace(cfg, surface=replace(cfg.surface, target=args.target))
    if args.max_iterations is not None:
        cfg = replace(cfg, max_iterations=max(0, args.max_iterations))
    if args.abort_on_delivery_failure:
        cfg = replace(cfg, delivery=replace(cfg.delivery, abort_on_exhaustion=True))

    if not cfg.surface.target:
        console.print(
            Text(
                "No tmux target configured: pass --target or set [surface].target "
                f"in {CONFIG_RELPATH}",
                style="red",
            )
        )
        return 2

    report = run_loop(root, cfg, console=console)
    console.print(
        Text(
            f"session={report.session_id} iterations={report.iterations} "
            f"outcome={report.outcome.value if report.outcome else 'none'}",
            style="dim",
        )
    )
    if report.outcome in (IterationOutcome.COMPLETED, IterationOutcome.CANCELLED):
        return 0
    return 1


def _stale_note(snapshot: StatusSnapshot) -> Text:
    return Text(
        f"session {snapshot.session_id} (pid {snapshot.pid}) exited without recording idle",
        style="yellow",
    )


def cmd_stop(console: Console) -> int:
    root = find_repo_root()
    snapshot = read_status(root)
    if snapshot is None or not snapshot.running:
        console.print(Text("Ralph loop is not running", style="yellow"))
        if snapshot is not None and snapshot.stale:
            console.print(_stale_note(snapshot))
        return 1
    ControlFile.for_repo(root).request_stop(author="cli")
    console.print(Text(f"Stop requested for {snapshot.session_id}", style="cyan"))
    return 0


def cmd_status(argv: list[str], console: Console) -> int:
    root = find_repo_root()
    snapshot = read_status(root)
    if "--json" in argv:
        payload = snapshot.to_dict() if snapshot else {"running": False, "iteration_count": 0}
        json.dump(payload, sys.stdout, indent=2)
        print()
        return 0
    if snapshot is None:
        console.print(Text("■ Ralph: idle (no runs recorded)", style="dim"))
        return 0
    style = "bold green" if snapshot.running else "dim"
    console.print(Text(render_status(snapshot), style=style))
    if snapshot.stale:
        console.print(_stale_note(snapshot))
    elif snapshot.session_id:
        console.print(Text(f"session {snapshot.session_id}  updated {snapshot.timestamp}", style="dim"))
    return 0


def cmd_candidates(argv: list[str], console: Console) -> int:
    p = argparse.ArgumentParser(prog="ralph candidates", add_help=False)
    p.add_argument("--pattern", default=None)
    add_output_mode_argument(p)
    args = p.parse_args(argv)

    root = find_repo_root()
    cfg = load_config(root)
    pattern = args.pattern or cfg.pattern
    finder = WorkspaceFinder(root, max_candidates=cfg.max_candidates)
    candidates = finder.find_candidates(pattern)
    if not candidates:
        console.print(Text(f"No files found matching pattern {pattern}", style="red"))
        return 1
    render_table(
        console,
        title=f"Candidates for {pattern}",
        headers=("#", "File"),
        rows=[(idx, handle.display) for idx, handle in enumerate(candidates, start=1)],
        no_wrap_columns=(0,),
    )
    return 0


def cmd_log(argv: list[str], console: Console) -> int:
    p = argparse.ArgumentParser(prog="ralph log", add_help=False)
    p.add_argument("session", nargs="?")
    p.add_argument("--limit", type=int, default=30)
    add_output_mode_argument(p)
    args = p.parse_args(argv)

    logs_dir = find_repo_root() / LOGS_RELPATH
    logs = sorted(logs_dir.glob("*.jsonl"), key=lambda path: path.stat().st_mtime) if logs_dir.exists() else []
    if args.session:
        logs = [path for path in logs if path.stem.startswith(args.session)]
    if not logs:
        console.print(Text("No session logs found", style="red"))
        return 1

    path = logs[-1]
    rows = read_jsonl(path)[-max(1, args.limit):]
    render_table(
        console,
        title=path.stem,
        headers=("Time", "Iter", "Event", "Detail"),
        rows=[
            (
                row.get("timestamp", "")[11:19],
                row.get("iteration"),
                row.get("type", ""),
                json_dumps_compact(row.get("payload") or {})[:80],
            )
            for row in rows
        ],
        no_wrap_columns=(0, 2),
    )
    return 0


def _print_help(console: Console) -> None:
    help_text = Text()
    help_text.append("ralph", style="bold")
    help_text.append(f" {__version__}", style="dim")
    help_text.append(" - prompt / commit / cleanup loop for agent sessions")
    console.print(help_text)
    console.print()

    cmds = Table(show_header=False, expand=False, show_edge=False, pad_edge=False, box=None)
    cmds.add_column("Command", style="bold cyan")
    cmds.add_column("Description")
    cmds.add_row("ralph init", "Scaffold .ralph/ directory")
    cmds.add_row("ralph run", "Start the loop in this repository")
    cmds.add_row("ralph stop", "Ask a running loop to stop")
    cmds.add_row("ralph status", "Show loop state")
    cmds.add_row("ralph candidates", "List prompt files")
    cmds.add_row("ralph log [session]", "Show a session's diagnostic log")
    console.print(cmds)
    console.print()

    opts = Table(show_header=False, expand=False, show_edge=False, pad_edge=False, box=None)
    opts.add_column("Option", style="bold")
    opts.add_column("Description", style="dim")
    opts.add_row("--pattern GLOB", "Prompt file pattern (default: **/ralph-prompt.*)")
    opts.add_row("--target PANE", "tmux pane running the agent")
    opts.add_row("--max-iterations N", "Stop after N completed iterations")
    opts.add_row("--abort-on-delivery-failure", "Fail the iteration if Return cannot be sent")
    opts.add_row("--output auto|plain|rich", "Output mode")
    opts.add_row("--version", "Show version")
    console.print(opts)


def main(argv: list[str] | None = None) -> None:
    raw = argv if argv is not None else sys.argv[1:]
    console = _console_for(raw)

    if "--version" in raw:
        console.print(Text(f"ralph {__version__}", style="bold"))
        sys.exit(0)
    if not raw or raw == ["--help"] or raw == ["-h"]:
        _print_help(console)
        sys.exit(0)

    command, rest = raw[0], raw[1:]
    if command == "init":
        sys.exit(cmd_init(console))
    if command == "run":
        sys.exit(cmd_run(rest, console))
    if command == "stop":
        sys.exit(cmd_stop(console))
    if command == "status":
        sys.exit(cmd_status(rest, console))
    if command == "candidates":
        sys.exit(cmd_candidates(rest, console))
    if command == "log":
        sys.exit(cmd_log(rest, console))

    console.print(Text(f"Unknown command: {command}", style="red"))
    _print_help(console)
    sys.exit(2)


if __name__ == "__main__":
    main()
