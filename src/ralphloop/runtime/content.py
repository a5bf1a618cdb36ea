from __future__ import annotations

from typing import Sequence

from ..errors import NoCandidatesError
from ..events import EmitFn, null_emit
from ..surfaces.base import ContentHandle, Picker


class ContentSource:
    """Chooses the prompt file for an iteration.

    A sticky handle still present in the candidates is reused silently; a
    sticky handle that disappeared falls back to the first candidate; with
    no sticky handle the operator is prompted. ``None`` means the prompt was
    cancelled.
    """

    def __init__(self, picker: Picker, *, pattern: str = "", emit: EmitFn = null_emit) -> None:
        self.picker = picker
        self.pattern = pattern
        self.emit = emit

    def resolve(
        self,
        candidates: Sequence[ContentHandle],
        sticky: ContentHandle | None,
    ) -> ContentHandle | None:
        if not candidates:
            raise NoCandidatesError(self.pattern or "<unset>")

        if sticky is not None:
            for candidate in candidates:
                if candidate == sticky:
                    self.emit("content.reused", payload={"path": str(candidate.path)})
                    return candidate
            fallback = candidates[0]
            self.emit(
                "content.fallback",
                payload={"missing": str(sticky.path), "path": str(fallback.path)},
            )
            return fallback

        self.emit("content.prompt", payload={"candidates": len(candidates)})
        selected = self.picker.prompt(list(candidates))
        if selected is None:
            self.emit("content.prompt_cancelled")
            return None
        self.emit("content.selected", payload={"path": str(selected.path)})
        return selected
