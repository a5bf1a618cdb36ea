from __future__ import annotations

from typing import Callable

from ..errors import ContentReadError, RalphError, SurfaceError
from ..events import EmitFn, null_emit
from ..surfaces.base import CandidateFinder, ContentHandle, InputSurface
from ..util import format_ms
from .config import LoopConfig
from .content import ContentSource
from .delivery import DeliveryChain
from .session import IterationOutcome, IterationResult, LoopSession
from .watcher import Clock, CommitWatcher


IsCancelledFn = Callable[[], bool]


class _Cancelled(Exception):
    pass


class IterationExecutor:
    """Runs one cycle: resolve, deliver, submit, wait for a commit, clean up.

    Cancellation is checked between every step; an error from any step
    other than the watcher ends the iteration as FAILED.
    """

    def __init__(
        self,
        *,
        cfg: LoopConfig,
        finder: CandidateFinder,
        content: ContentSource,
        surface: InputSurface,
        delivery: DeliveryChain,
        watcher: CommitWatcher,
        clock: Clock,
        emit: EmitFn = null_emit,
    ) -> None:
        self.cfg = cfg
        self.finder = finder
        self.content = content
        self.surface = surface
        self.delivery = delivery
        self.watcher = watcher
        self.clock = clock
        self.emit = emit

    def run_iteration(self, session: LoopSession, is_cancelled: IsCancelledFn) -> IterationResult:
        handle: ContentHandle | None = None
        try:
            self._checkpoint(is_cancelled, "resolve")
            handle = self._resolve(session)
            if handle is None:
                return IterationResult(IterationOutcome.CANCELLED, "selection cancelled")

            self._checkpoint(is_cancelled, "read")
            text = self._read(handle)

            self._checkpoint(is_cancelled, "deliver")
            self._deliver(text, is_cancelled)

            baseline = self.watcher.fetch()
            if baseline is None:
                self.emit("watch.baseline_missing")

            self._checkpoint(is_cancelled, "submit")
            self.delivery.deliver_line_submit()

            self._checkpoint(is_cancelled, "watch")
            outcome = self.watcher.watch(baseline, is_cancelled)
            if outcome is IterationOutcome.CANCELLED:
                return IterationResult(outcome, "cancelled while waiting for commit", handle)
            if outcome is IterationOutcome.NO_SIGNAL:
                waited = format_ms(self.cfg.timing.max_wait_ms)
                return IterationResult(outcome, f"no commit within {waited}", handle)

            self._step("cleanup", self.surface.trigger_cleanup)
            return IterationResult(IterationOutcome.COMPLETED, "commit detected", handle)
        except _Cancelled as exc:
            return IterationResult(IterationOutcome.CANCELLED, f"cancelled before {exc}", handle)
        except RalphError as exc:
            self.emit(
                "iteration.error",
                payload={"error_type": type(exc).__name__, "message": str(exc)},
            )
            return IterationResult(IterationOutcome.FAILED, str(exc), handle)

    def _checkpoint(self, is_cancelled: IsCancelledFn, step: str) -> None:
        if is_cancelled():
            self.emit("iteration.checkpoint_cancelled", payload={"step": step})
            raise _Cancelled(step)

    def _pause(self, ms: int, is_cancelled: IsCancelledFn, step: str) -> None:
        self.clock.sleep_ms(ms)
        self._checkpoint(is_cancelled, step)

    def _resolve(self, session: LoopSession) -> ContentHandle | None:
        candidates = self.finder.find_candidates(self.cfg.pattern)
        candidates = candidates[: self.cfg.max_candidates]
        handle = self.content.resolve(candidates, session.sticky)
        if handle is not None:
            self.emit(
                "content.resolved",
                payload={"path": str(handle.path), "label": handle.display},
            )
        return handle

    def _read(self, handle: ContentHandle) -> str:
        try:
            return self.finder.read_text(handle)
        except RalphError:
            raise
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadError(handle.display, exc) from exc

    def _step(self, name: str, action: Callable[[], None]) -> None:
        try:
            action()
        except RalphError:
            raise
        except Exception as exc:
            raise SurfaceError(f"{self.surface.name} {name} failed: {exc}") from exc
        self.emit("surface.step", payload={"step": name})

    def _deliver(self, text: str, is_cancelled: IsCancelledFn) -> None:
        timing = self.cfg.timing
        self._step("focus", self.surface.focus)
        self._pause(timing.focus_delay_ms, is_cancelled, "publish")

        self._step("publish", lambda: self.surface.publish(text))
        self._pause(timing.publish_delay_ms, is_cancelled, "processing")

        self._step("processing", self.surface.trigger_processing)
        self._pause(timing.processing_delay_ms, is_cancelled, "paste")

        self._step("paste", self.surface.paste)
        self._pause(timing.paste_delay_ms, is_cancelled, "submit")
        self._pause(timing.pre_submit_delay_ms, is_cancelled, "submit")
