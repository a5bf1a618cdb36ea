from __future__ import annotations

from fakes import (
    FakeClock,
    FakeFinder,
    FakeKeystroke,
    FakePicker,
    FakeRepo,
    FakeSurface,
    ScriptedFingerprints,
    handle,
    recording_emit,
)
from ralphloop.errors import SurfaceError
from ralphloop.runtime.config import DeliveryConfig, LoopConfig, TimingConfig
from ralphloop.runtime.content import ContentSource
from ralphloop.runtime.delivery import DeliveryChain
from ralphloop.runtime.executor import IterationExecutor
from ralphloop.runtime.session import IterationOutcome, LoopSession
from ralphloop.runtime.watcher import CommitWatcher


TIMING = TimingConfig(
    poll_interval_ms=100,
    max_wait_ms=1_000,
    tick_ms=25,
    settle_delay_ms=50,
)


def _executor(
    *,
    finder: FakeFinder,
    surface: FakeSurface,
    fingerprints,
    keystroke: FakeKeystroke | None = None,
    picker: FakePicker | None = None,
    clock: FakeClock | None = None,
    abort: bool = False,
    log: list | None = None,
) -> IterationExecutor:
    cfg = LoopConfig(
        pattern="**/ralph-prompt.*",
        timing=TIMING,
        delivery=DeliveryConfig(abort_on_exhaustion=abort),
    )
    clock = clock or FakeClock()
    emit = recording_emit(log if log is not None else [])
    watcher = CommitWatcher(
        fingerprints,
        poll_interval_ms=TIMING.poll_interval_ms,
        max_wait_ms=TIMING.max_wait_ms,
        tick_ms=TIMING.tick_ms,
        settle_delay_ms=TIMING.settle_delay_ms,
        clock=clock,
        emit=emit,
    )
    return IterationExecutor(
        cfg=cfg,
        finder=finder,
        content=ContentSource(picker or FakePicker(), pattern=cfg.pattern, emit=emit),
        surface=surface,
        delivery=DeliveryChain(
            surface=surface, keystroke=keystroke, abort_on_exhaustion=abort, emit=emit
        ),
        watcher=watcher,
        clock=clock,
        emit=emit,
    )


def _running_session() -> LoopSession:
    session = LoopSession.begin("ralph-test", "2026-01-01T00:00:00Z")
    session.iteration_count = 1
    return session


def test_completed_iteration_runs_steps_in_order_and_cleans_up_once() -> None:
    prompt = handle("ralph-prompt.md")
    finder = FakeFinder([prompt], texts={prompt.path: "do the next task"})
    surface = FakeSurface()
    repo = FakeRepo()
    keystroke = FakeKeystroke(on_press=repo.submit)
    executor = _executor(finder=finder, surface=surface, fingerprints=repo, keystroke=keystroke)

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.COMPLETED
    assert result.handle == prompt
    assert surface.calls == ["focus", "publish", "processing", "paste", "cleanup"]
    assert surface.published == ["do the next task"]
    assert keystroke.presses == 1
    assert finder.patterns == ["**/ralph-prompt.*"]


def test_sticky_handle_skips_the_picker() -> None:
    a, b = handle("a/ralph-prompt.md"), handle("b/ralph-prompt.md")
    repo = FakeRepo()
    picker = FakePicker(choice=0)
    executor = _executor(
        finder=FakeFinder([a, b]),
        surface=FakeSurface(),
        fingerprints=repo,
        keystroke=FakeKeystroke(on_press=repo.submit),
        picker=picker,
    )
    session = _running_session()
    session.sticky = b

    result = executor.run_iteration(session, lambda: False)

    assert result.handle == b
    assert picker.calls == 0


def test_no_candidates_fails_the_iteration() -> None:
    surface = FakeSurface()
    log: list = []
    executor = _executor(
        finder=FakeFinder([]), surface=surface, fingerprints=ScriptedFingerprints(), log=log
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.FAILED
    assert "No files found matching pattern **/ralph-prompt.*" in result.reason
    assert surface.calls == []
    assert ("iteration.error", {"error_type": "NoCandidatesError", "message": result.reason}) in log


def test_unreadable_prompt_fails_before_delivery() -> None:
    prompt = handle("ralph-prompt.md")
    surface = FakeSurface()
    executor = _executor(
        finder=FakeFinder([prompt], read_error=PermissionError("denied")),
        surface=surface,
        fingerprints=ScriptedFingerprints(),
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.FAILED
    assert result.reason.startswith("Failed to read ralph-prompt.md")
    assert result.handle == prompt
    assert surface.calls == []


def test_surface_error_fails_the_iteration() -> None:
    surface = FakeSurface(fail={"focus": RuntimeError("no such pane")})
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=surface,
        fingerprints=ScriptedFingerprints(),
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.FAILED
    assert result.reason == "fake focus failed: no such pane"


def test_cancel_during_delivery_stops_at_next_checkpoint() -> None:
    cancelled = {"flag": False}
    surface = FakeSurface(hooks={"publish": lambda: cancelled.update(flag=True)})
    keystroke = FakeKeystroke()
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=surface,
        fingerprints=ScriptedFingerprints(),
        keystroke=keystroke,
    )

    result = executor.run_iteration(_running_session(), lambda: cancelled["flag"])

    assert result.outcome is IterationOutcome.CANCELLED
    assert result.reason == "cancelled before processing"
    assert surface.calls == ["focus", "publish"]
    assert keystroke.presses == 0


def test_cancel_before_start_touches_nothing() -> None:
    finder = FakeFinder([handle("ralph-prompt.md")])
    surface = FakeSurface()
    executor = _executor(finder=finder, surface=surface, fingerprints=ScriptedFingerprints())

    result = executor.run_iteration(_running_session(), lambda: True)

    assert result.outcome is IterationOutcome.CANCELLED
    assert finder.patterns == []
    assert surface.calls == []


def test_no_commit_within_window_skips_cleanup() -> None:
    surface = FakeSurface()
    clock = FakeClock()
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=surface,
        fingerprints=ScriptedFingerprints(default="same"),
        keystroke=FakeKeystroke(),
        clock=clock,
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.NO_SIGNAL
    assert "cleanup" not in surface.calls
    assert result.reason == "no commit within 1s"


def test_cancelled_selection_ends_iteration() -> None:
    surface = FakeSurface()
    executor = _executor(
        finder=FakeFinder([handle("a.md"), handle("b.md")]),
        surface=surface,
        fingerprints=ScriptedFingerprints(),
        picker=FakePicker(choice=None),
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.CANCELLED
    assert result.reason == "selection cancelled"
    assert surface.calls == []


def test_delivery_exhaustion_still_watches_by_default() -> None:
    surface = FakeSurface(
        fail={"type": SurfaceError("type"), "accept": SurfaceError("accept")}
    )
    fingerprints = ScriptedFingerprints(values=["c0"], default="c1")
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=surface,
        fingerprints=fingerprints,
        keystroke=FakeKeystroke(error=SurfaceError("os")),
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.COMPLETED
    assert surface.calls[-1] == "cleanup"


def test_delivery_exhaustion_fails_when_abort_is_set() -> None:
    surface = FakeSurface(
        fail={"type": SurfaceError("type"), "accept": SurfaceError("accept")}
    )
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=surface,
        fingerprints=ScriptedFingerprints(values=["c0"], default="c1"),
        keystroke=FakeKeystroke(error=SurfaceError("os")),
        abort=True,
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.FAILED
    assert "cleanup" not in surface.calls


def test_missing_baseline_is_recorded() -> None:
    log: list = []
    executor = _executor(
        finder=FakeFinder([handle("ralph-prompt.md")]),
        surface=FakeSurface(),
        fingerprints=ScriptedFingerprints(values=[None], default="c1"),
        log=log,
    )

    result = executor.run_iteration(_running_session(), lambda: False)

    assert result.outcome is IterationOutcome.COMPLETED
    assert ("watch.baseline_missing", {}) in log
