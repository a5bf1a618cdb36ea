from __future__ import annotations

from .config import LoopConfig, load_config
from .content import ContentSource
from .control import ControlFile
from .controller import LoopController
from .delivery import DeliveryChain, FallbackChain, FallbackResult
from .executor import IterationExecutor
from .session import CancelToken, IterationOutcome, IterationResult, LoopReport, LoopSession
from .watcher import CommitWatcher

__all__ = [
    "CancelToken",
    "CommitWatcher",
    "ContentSource",
    "ControlFile",
    "DeliveryChain",
    "FallbackChain",
    "FallbackResult",
    "IterationExecutor",
    "IterationOutcome",
    "IterationResult",
    "LoopConfig",
    "LoopController",
    "LoopReport",
    "LoopSession",
    "load_config",
]
