from __future__ import annotations

import os
import traceback
from typing import Any, Callable, Protocol

from ..events import EventSink, RalphEvent
from ..notify import Notifier
from ..status import StatusListener, StatusSnapshot
from ..util import new_session_id, utc_now_iso
from .control import ControlFile
from .session import (
    CancelToken,
    IterationOutcome,
    IterationResult,
    LoopReport,
    LoopSession,
)


class IterationRunner(Protocol):
    def run_iteration(
        self, session: LoopSession, is_cancelled: Callable[[], bool]
    ) -> IterationResult:
        ...


class LoopController:
    """Runs iterations back to back until one does not complete.

    ``start`` runs on the caller's thread and returns once the loop has
    exited; ``stop`` only raises the cancellation flag and may be called
    from a collaborator, a signal handler or another thread.
    """

    def __init__(
        self,
        executor: IterationRunner,
        *,
        notifier: Notifier,
        event_sink: EventSink | None = None,
        control: ControlFile | None = None,
        max_iterations: int = 0,
        session_id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self.executor = executor
        self.notifier = notifier
        self.event_sink = event_sink
        self.control = control
        self.max_iterations = max(0, int(max_iterations))
        self.session_id_factory = session_id_factory
        self.session = LoopSession()
        self._listeners: list[StatusListener] = []
        self._control_signature = ""

    @property
    def running(self) -> bool:
        return self.session.running

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def emit(
        self,
        event_type: str,
        *,
        iteration: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        if not self.event_sink:
            return
        if iteration is None and self.session.running:
            iteration = self.session.iteration_count
        event = RalphEvent(
            type=event_type,
            timestamp=utc_now_iso(),
            session_id=self.session.session_id or None,
            iteration=iteration,
            payload=dict(payload or {}),
        )
        self.event_sink(event)

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(
            running=self.session.running,
            iteration_count=self.session.iteration_count,
            session_id=self.session.session_id or None,
            timestamp=utc_now_iso(),
            pid=os.getpid() if self.session.running else None,
        )

    def _publish_status(self) -> None:
        snapshot = self.snapshot()
        for listener in self._listeners:
            listener(snapshot)

    def _observe_control(self) -> None:
        if self.control is None or not self.session.running or self.session.cancel_requested:
            return
        requested, self._control_signature = self.control.stop_requested_since(
            self._control_signature
        )
        if requested:
            self.emit("session.control_stop", payload={"path": str(self.control.path)})
            self.stop()

    def stop(self) -> None:
        if not self.session.running:
            self.notifier.info("Ralph loop is not running")
            return
        if self.session.cancel_requested:
            return
        self.session.cancel_event.set()
        self.emit("session.stop_requested")
        self.notifier.info("Stopping Ralph loop after the current step...")

    def start(self) -> LoopReport:
        if self.session.running:
            self.emit("session.start_rejected", payload={"reason": "already running"})
            self.notifier.warning("Ralph loop is already running")
            return LoopReport(
                session_id=self.session.session_id,
                outcome=None,
                iterations=self.session.iteration_count,
                reason="already running",
                started=self.session.started,
                rejected=True,
            )

        self.session = LoopSession.begin(self.session_id_factory(), utc_now_iso())
        outcome: IterationOutcome | None = None
        reason = ""
        try:
            if self.control is not None:
                self._control_signature = self.control.signature()
            token = CancelToken(self.session, observe=self._observe_control)

            self.emit("session.start", payload={"started": self.session.started})
            self.notifier.info("Ralph loop started")
            self._publish_status()

            while True:
                if self.max_iterations and self.session.iteration_count >= self.max_iterations:
                    reason = "iteration limit reached"
                    break

                self.session.iteration_count += 1
                self._publish_status()
                self.emit("iteration.start")

                result = self.executor.run_iteration(self.session, token)
                if result.handle is not None:
                    self.session.sticky = result.handle
                outcome, reason = result.outcome, result.reason
                self.emit(
                    "iteration.end",
                    payload={"outcome": result.outcome.value, "reason": result.reason},
                )

                if result.should_continue:
                    self.notifier.info(
                        f"Commit detected; iteration {self.session.iteration_count} complete"
                    )
                    continue
                if result.outcome is IterationOutcome.FAILED:
                    self.notifier.error(f"Ralph iteration failed: {result.reason}")
                break
        except KeyboardInterrupt:
            outcome, reason = IterationOutcome.CANCELLED, "interrupted"
        except Exception as exc:
            outcome = IterationOutcome.FAILED
            reason = f"unexpected error: {type(exc).__name__}: {exc}"
            self.emit(
                "session.error",
                payload={
                    "error_type": type(exc).__name__,
                    "message": str(exc),
                    "traceback": "".join(
                        traceback.format_exception(type(exc), exc, exc.__traceback__)
                    )[-10_000:],
                },
            )
            self.notifier.error(f"Ralph loop error: {exc}")
        finally:
            report = self._finalize(outcome, reason)
        return report

    def _finalize(self, outcome: IterationOutcome | None, reason: str) -> LoopReport:
        ended = utc_now_iso()
        finished = self.session
        # Idle before any I/O: a failing sink or listener must not leave it running.
        self.session = LoopSession(session_id=finished.session_id)
        report = LoopReport(
            session_id=finished.session_id,
            outcome=outcome,
            iterations=finished.iteration_count,
            reason=reason,
            started=finished.started,
            ended=ended,
        )
        self.emit(
            "session.end",
            iteration=finished.iteration_count,
            payload={
                "outcome": outcome.value if outcome else None,
                "reason": reason,
                "iterations": finished.iteration_count,
                "ended": ended,
            },
        )
        self._publish_status()

        label = outcome.value if outcome else "stopped"
        message = f"Ralph loop stopped after {report.iterations} iteration(s): {label}"
        if reason:
            message += f" ({reason})"
        if outcome is IterationOutcome.FAILED:
            self.notifier.error(message)
        else:
            self.notifier.info(message)
        return report
