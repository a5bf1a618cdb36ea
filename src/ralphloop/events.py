from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class RalphEvent:
    type: str
    timestamp: str
    session_id: str | None
    iteration: int | None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "session_id": self.session_id,
            "iteration": self.iteration,
            "payload": dict(self.payload),
        }


EventSink = Callable[[RalphEvent], None]
EmitFn = Callable[..., None]


def null_emit(event_type: str, **_: Any) -> None:
    return None
