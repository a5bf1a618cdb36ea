from __future__ import annotations


class RalphError(Exception):
    """Base class for failures that end an iteration with a FAILED outcome."""


class NoCandidatesError(RalphError):
    def __init__(self, pattern: str) -> None:
        super().__init__(f"No files found matching pattern {pattern}")
        self.pattern = pattern


class ContentReadError(RalphError):
    def __init__(self, label: str, cause: BaseException) -> None:
        super().__init__(f"Failed to read {label}: {cause}")
        self.label = label
        self.cause = cause


class SurfaceError(RalphError):
    """An input surface action (focus, paste, keys) could not be performed."""


class DeliveryExhausted(RalphError):
    def __init__(self, failures: list[tuple[str, str]]) -> None:
        names = ", ".join(name for name, _ in failures) or "none"
        super().__init__(f"all line-submit mechanisms failed ({names})")
        self.failures = failures


class ConfigValidationError(ValueError):
    pass
