from __future__ import annotations

import signal
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rich.console import Console

from .events import EventSink, RalphEvent
from .jsonl import JsonlEventLog
from .notify import ConsoleNotifier, Notifier
from .runtime.config import LoopConfig
from .runtime.content import ContentSource
from .runtime.control import ControlFile
from .runtime.controller import LoopController
from .runtime.delivery import DeliveryChain
from .runtime.executor import IterationExecutor
from .runtime.session import LoopReport
from .runtime.watcher import Clock, CommitWatcher
from .status import ConsoleStatusReporter, StatusFileReporter
from .surfaces.base import (
    CandidateFinder,
    FingerprintProvider,
    InputSurface,
    Keystroke,
    Picker,
)
from .surfaces.git import GitFingerprintProvider
from .surfaces.keystroke import build_keystroke
from .surfaces.picker import RichPicker
from .surfaces.tmux import TmuxSurface
from .surfaces.workspace import WorkspaceFinder
from .util import MonotonicClock, new_session_id


LOGS_RELPATH = Path(".ralph") / "logs"


@dataclass
class Collaborators:
    finder: CandidateFinder
    picker: Picker
    surface: InputSurface
    fingerprints: FingerprintProvider
    keystroke: Keystroke | None
    clock: Clock


def default_collaborators(repo_root: Path, cfg: LoopConfig, console: Console) -> Collaborators:
    return Collaborators(
        finder=WorkspaceFinder(repo_root, max_candidates=cfg.max_candidates),
        picker=RichPicker(console),
        surface=TmuxSurface(
            cfg.surface.target,
            processing_keys=cfg.surface.processing_keys,
            cleanup_keys=cfg.surface.cleanup_keys,
        ),
        fingerprints=GitFingerprintProvider(repo_root),
        keystroke=build_keystroke(cfg.delivery.keystroke),
        clock=MonotonicClock(),
    )


def build_controller(
    cfg: LoopConfig,
    parts: Collaborators,
    *,
    notifier: Notifier,
    event_sink: EventSink | None = None,
    control: ControlFile | None = None,
    session_id: str | None = None,
) -> LoopController:
    holder: dict[str, LoopController] = {}

    def emit(event_type: str, **kwargs: Any) -> None:
        holder["controller"].emit(event_type, **kwargs)

    timing = cfg.timing
    watcher = CommitWatcher(
        parts.fingerprints,
        poll_interval_ms=timing.poll_interval_ms,
        max_wait_ms=timing.max_wait_ms,
        tick_ms=timing.tick_ms,
        settle_delay_ms=timing.settle_delay_ms,
        clock=parts.clock,
        emit=emit,
    )
    delivery = DeliveryChain(
        surface=parts.surface,
        keystroke=parts.keystroke,
        abort_on_exhaustion=cfg.delivery.abort_on_exhaustion,
        emit=emit,
        warn=notifier.warning,
    )
    executor = IterationExecutor(
        cfg=cfg,
        finder=parts.finder,
        content=ContentSource(parts.picker, pattern=cfg.pattern, emit=emit),
        surface=parts.surface,
        delivery=delivery,
        watcher=watcher,
        clock=parts.clock,
        emit=emit,
    )
    controller = LoopController(
        executor,
        notifier=notifier,
        event_sink=event_sink,
        control=control,
        max_iterations=cfg.max_iterations,
        session_id_factory=(lambda: session_id) if session_id else new_session_id,
    )
    holder["controller"] = controller
    return controller


def _fan_out(*sinks: EventSink) -> EventSink:
    def sink(event: RalphEvent) -> None:
        for target in sinks:
            target(event)

    return sink


def run_loop(
    repo_root: Path,
    cfg: LoopConfig,
    *,
    console: Console | None = None,
    parts: Collaborators | None = None,
    event_sink: EventSink | None = None,
    session_id: str | None = None,
) -> LoopReport:
    console = console or Console()
    parts = parts or default_collaborators(repo_root, cfg, console)
    session_id = session_id or new_session_id()

    log = JsonlEventLog(repo_root / LOGS_RELPATH / f"{session_id}.jsonl")
    sink = _fan_out(log, event_sink) if event_sink else log

    controller = build_controller(
        cfg,
        parts,
        notifier=ConsoleNotifier(console),
        event_sink=sink,
        control=ControlFile.for_repo(repo_root),
        session_id=session_id,
    )
    controller.subscribe(ConsoleStatusReporter(console))
    controller.subscribe(StatusFileReporter.for_repo(repo_root))

    # Signal handlers can only be installed from the main thread.
    install = threading.current_thread() is threading.main_thread()
    previous = None
    if install:
        previous = signal.signal(signal.SIGTERM, lambda signum, frame: controller.stop())
    try:
        return controller.start()
    finally:
        if install:
            signal.signal(signal.SIGTERM, previous if previous is not None else signal.SIG_DFL)
