from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "IterationOutcome",
    "LoopConfig",
    "LoopController",
    "LoopReport",
    "RalphEvent",
    "run_loop",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .events import RalphEvent
    from .runner import run_loop
    from .runtime import IterationOutcome, LoopConfig, LoopController, LoopReport


def __getattr__(name: str):
    if name == "RalphEvent":
        from .events import RalphEvent

        return RalphEvent
    if name == "run_loop":
        from .runner import run_loop

        return run_loop
    if name in {"IterationOutcome", "LoopConfig", "LoopController", "LoopReport"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(f"module 'ralphloop' has no attribute {name!r}")
