from __future__ import annotations

from typing import Callable, Protocol

from ..events import EmitFn, null_emit
from ..surfaces.base import FingerprintProvider
from ..util import MonotonicClock
from .session import IterationOutcome


IsCancelledFn = Callable[[], bool]


class Clock(Protocol):
    def now_ms(self) -> int:
        ...

    def sleep_ms(self, ms: int) -> None:
        ...


class CommitWatcher:
    """Polls a fingerprint provider until it diverges from a baseline.

    Sleeps in ``tick_ms`` increments so a stop request is seen within one
    tick, and fetches the fingerprint every ``poll_interval_ms``. Returns
    COMPLETED after the settle delay, NO_SIGNAL once ``max_wait_ms`` has
    elapsed, or CANCELLED as soon as a checkpoint observes cancellation.
    The cleanup action is left to the caller.
    """

    def __init__(
        self,
        provider: FingerprintProvider,
        *,
        poll_interval_ms: int,
        max_wait_ms: int,
        tick_ms: int,
        settle_delay_ms: int,
        clock: Clock | None = None,
        emit: EmitFn = null_emit,
    ) -> None:
        self.provider = provider
        self.poll_interval_ms = max(1, int(poll_interval_ms))
        self.max_wait_ms = max(1, int(max_wait_ms))
        self.tick_ms = max(1, int(tick_ms))
        self.settle_delay_ms = max(0, int(settle_delay_ms))
        self.clock = clock or MonotonicClock()
        self.emit = emit

    def fetch(self) -> str | None:
        try:
            value = self.provider.get_fingerprint()
        except Exception as exc:
            self.emit("watch.fetch_failed", payload={"error": f"{type(exc).__name__}: {exc}"})
            return None
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def watch(
        self,
        baseline: str | None,
        is_cancelled: IsCancelledFn,
        *,
        poll_interval_ms: int | None = None,
        max_wait_ms: int | None = None,
    ) -> IterationOutcome:
        poll_ms = max(1, int(poll_interval_ms or self.poll_interval_ms))
        limit_ms = max(1, int(max_wait_ms or self.max_wait_ms))
        tick_ms = min(self.tick_ms, poll_ms)

        start = self.clock.now_ms()
        since_poll = 0
        polls = 0
        self.emit(
            "watch.start",
            payload={
                "baseline": baseline,
                "poll_interval_ms": poll_ms,
                "max_wait_ms": limit_ms,
            },
        )

        while True:
            if is_cancelled():
                return self._cancelled(polls, "waiting")
            elapsed = self.clock.now_ms() - start
            if elapsed >= limit_ms:
                self.emit("watch.timeout", payload={"elapsed_ms": elapsed, "polls": polls})
                return IterationOutcome.NO_SIGNAL

            before = self.clock.now_ms()
            self.clock.sleep_ms(min(tick_ms, limit_ms - elapsed))
            since_poll += self.clock.now_ms() - before

            if is_cancelled():
                return self._cancelled(polls, "waiting")
            if since_poll < poll_ms:
                continue

            since_poll = 0
            polls += 1
            current = self.fetch()
            if is_cancelled():
                return self._cancelled(polls, "fetch")
            if current is None or current == baseline:
                continue

            self.emit(
                "watch.commit_detected",
                payload={
                    "baseline": baseline,
                    "current": current,
                    "polls": polls,
                    "elapsed_ms": self.clock.now_ms() - start,
                },
            )
            if not self._settle(is_cancelled):
                return self._cancelled(polls, "settle")
            return IterationOutcome.COMPLETED

    def _settle(self, is_cancelled: IsCancelledFn) -> bool:
        if is_cancelled():
            return False
        remaining = self.settle_delay_ms
        while remaining > 0:
            before = self.clock.now_ms()
            self.clock.sleep_ms(min(self.tick_ms, remaining))
            remaining -= max(1, self.clock.now_ms() - before)
            if is_cancelled():
                return False
        return not is_cancelled()

    def _cancelled(self, polls: int, stage: str) -> IterationOutcome:
        self.emit("watch.cancelled", payload={"polls": polls, "stage": stage})
        return IterationOutcome.CANCELLED
