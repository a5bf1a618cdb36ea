from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from ..errors import DeliveryExhausted
from ..events import EmitFn, null_emit
from ..surfaces.base import InputSurface, Keystroke


Attempt = Callable[[], None]


@dataclass(frozen=True)
class FallbackResult:
    winner: str | None
    failures: tuple[tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return self.winner is not None


class FallbackChain:
    """Try ``(name, attempt)`` pairs left to right; the first that returns wins."""

    def __init__(self, attempts: Sequence[tuple[str, Attempt]]) -> None:
        self.attempts = tuple(attempts)

    def run(self, *, on_failure: Callable[[str, Exception], None] | None = None) -> FallbackResult:
        failures: list[tuple[str, str]] = []
        for name, attempt in self.attempts:
            try:
                attempt()
            except Exception as exc:
                failures.append((name, f"{type(exc).__name__}: {exc}"))
                if on_failure is not None:
                    on_failure(name, exc)
                continue
            return FallbackResult(winner=name, failures=tuple(failures))
        return FallbackResult(winner=None, failures=tuple(failures))


@dataclass
class DeliveryChain:
    """Delivers a line-submit (Return) to the surface.

    Mechanisms, in order: OS keystroke injection, the surface's type
    command, the surface's accept-selected command. Total exhaustion is a
    warning unless ``abort_on_exhaustion`` is set.
    """

    surface: InputSurface
    keystroke: Keystroke | None = None
    abort_on_exhaustion: bool = False
    emit: EmitFn = field(default=null_emit)
    warn: Callable[[str], None] | None = None

    def mechanisms(self) -> list[tuple[str, Attempt]]:
        out: list[tuple[str, Attempt]] = []
        if self.keystroke is not None:
            out.append((f"os-keystroke:{self.keystroke.name}", self.keystroke.press_return))
        out.append(("surface-type", lambda: self.surface.type_text("\n")))
        out.append(("surface-accept", self.surface.accept_selected))
        return out

    def deliver_line_submit(self) -> FallbackResult:
        def on_failure(name: str, exc: Exception) -> None:
            self.emit(
                "delivery.attempt_failed",
                payload={"mechanism": name, "error": f"{type(exc).__name__}: {exc}"},
            )

        result = FallbackChain(self.mechanisms()).run(on_failure=on_failure)
        if result.ok:
            self.emit(
                "delivery.submitted",
                payload={"mechanism": result.winner, "failed": [n for n, _ in result.failures]},
            )
            return result

        self.emit(
            "delivery.exhausted",
            payload={"failures": [{"mechanism": n, "error": e} for n, e in result.failures]},
        )
        if self.warn is not None:
            self.warn("All line-submit methods failed; the prompt may not have been sent")
        if self.abort_on_exhaustion:
            raise DeliveryExhausted(list(result.failures))
        return result
