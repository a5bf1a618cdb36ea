from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..surfaces.base import ContentHandle


class IterationOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SIGNAL = "no_signal"
    FAILED = "failed"


@dataclass(frozen=True)
class IterationResult:
    outcome: IterationOutcome
    reason: str = ""
    handle: ContentHandle | None = None

    @property
    def should_continue(self) -> bool:
        return self.outcome is IterationOutcome.COMPLETED


@dataclass
class LoopSession:
    """Mutable state of one loop run. Owned by the LoopController."""

    session_id: str = ""
    started: str = ""
    running: bool = False
    iteration_count: int = 0
    sticky: ContentHandle | None = None
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()

    @classmethod
    def begin(cls, session_id: str, started: str) -> "LoopSession":
        return cls(session_id=session_id, started=started, running=True)


class CancelToken:
    """Read-only view of a session's cancellation flag."""

    def __init__(
        self,
        session: LoopSession,
        *,
        observe: Callable[[], None] | None = None,
    ) -> None:
        self._session = session
        self._observe = observe

    def is_cancelled(self) -> bool:
        if self._observe is not None:
            self._observe()
        return self._session.cancel_requested

    __call__ = is_cancelled


@dataclass(frozen=True)
class LoopReport:
    session_id: str
    outcome: IterationOutcome | None
    iterations: int
    reason: str = ""
    started: str = ""
    ended: str = ""
    rejected: bool = False
