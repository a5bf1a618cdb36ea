"""Input surface backed by a tmux pane running an interactive agent CLI."""

from __future__ import annotations

from typing import Callable, Sequence

from ..errors import SurfaceError
from ..util import CommandError, run_capture


Runner = Callable[..., str]


def _default_runner(argv: list[str], *, input_text: str | None = None) -> str:
    return run_capture(argv, input_text=input_text, timeout=3.0)


class TmuxSurface:
    name = "tmux"

    def __init__(
        self,
        target: str,
        *,
        buffer_name: str = "ralph",
        processing_keys: Sequence[str] = (),
        cleanup_keys: Sequence[str] = ("/clear", "Enter"),
        runner: Runner | None = None,
    ) -> None:
        if not target.strip():
            raise SurfaceError("tmux target pane is not configured ([surface].target)")
        self.target = target.strip()
        self.buffer_name = buffer_name
        self.processing_keys = tuple(processing_keys)
        self.cleanup_keys = tuple(cleanup_keys)
        self._runner = runner or _default_runner

    def _run_tmux(self, args: list[str], *, input_text: str | None = None) -> str:
        argv = ["tmux", *args]
        try:
            return self._runner(argv, input_text=input_text)
        except CommandError as exc:
            detail = (exc.stderr or "").strip() or f"exit {exc.returncode}"
            raise SurfaceError(f"tmux {args[0]} failed: {detail}") from exc
        except OSError as exc:
            raise SurfaceError(f"tmux {args[0]} failed: {exc}") from exc

    def _send_keys(self, keys: Sequence[str], *, literal: bool = False) -> None:
        for key in keys:
            args = ["send-keys", "-t", self.target]
            if literal:
                args.append("-l")
            args.append(key)
            self._run_tmux(args)

    def focus(self) -> None:
        self._run_tmux(["select-window", "-t", self.target])
        self._run_tmux(["select-pane", "-t", self.target])

    def publish(self, text: str) -> None:
        self._run_tmux(["load-buffer", "-b", self.buffer_name, "-"], input_text=text)

    def trigger_processing(self) -> None:
        self._send_keys(self.processing_keys)

    def paste(self) -> None:
        self._run_tmux(["paste-buffer", "-p", "-b", self.buffer_name, "-t", self.target])

    def type_text(self, text: str) -> None:
        lines = text.split("\n")
        for idx, line in enumerate(lines):
            if line:
                self._send_keys([line], literal=True)
            if idx < len(lines) - 1:
                self._send_keys(["Enter"])

    def accept_selected(self) -> None:
        self._send_keys(["C-m"])

    def trigger_cleanup(self) -> None:
        self._send_keys(self.cleanup_keys)
