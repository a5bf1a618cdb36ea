"""OS-level synthetic Return keystroke.

macOS goes through System Events (needs Accessibility permission); Linux
under X11 uses xdotool.
"""

from __future__ import annotations

import sys
from typing import Callable

from ..errors import SurfaceError
from ..util import CommandError, run_capture, which


OSASCRIPT_RETURN = ["osascript", "-e", 'tell application "System Events" to keystroke return']
XDOTOOL_RETURN = ["xdotool", "key", "--clearmodifiers", "Return"]


def resolve_mechanism(requested: str, *, platform: str | None = None) -> str:
    requested = (requested or "auto").strip().lower()
    if requested != "auto":
        return requested
    platform = platform or sys.platform
    if platform == "darwin":
        return "osascript"
    if platform.startswith("linux"):
        return "xdotool"
    return "none"


def keystroke_argv(mechanism: str) -> list[str] | None:
    if mechanism == "osascript":
        return list(OSASCRIPT_RETURN)
    if mechanism == "xdotool":
        return list(XDOTOOL_RETURN)
    return None


class OsKeystroke:
    def __init__(
        self,
        mechanism: str = "auto",
        *,
        platform: str | None = None,
        runner: Callable[[list[str]], str] | None = None,
        locate: Callable[[str], str | None] = which,
    ) -> None:
        self.mechanism = resolve_mechanism(mechanism, platform=platform)
        self.name = self.mechanism
        self._runner = runner or (lambda argv: run_capture(argv, timeout=5.0))
        self._locate = locate

    def press_return(self) -> None:
        argv = keystroke_argv(self.mechanism)
        if argv is None:
            raise SurfaceError(f"no OS keystroke mechanism available ({self.mechanism})")
        if self._locate(argv[0]) is None:
            raise SurfaceError(f"{argv[0]} not found on PATH")
        try:
            self._runner(argv)
        except (CommandError, OSError) as exc:
            raise SurfaceError(f"{argv[0]} keystroke failed: {exc}") from exc


def build_keystroke(mechanism: str) -> OsKeystroke | None:
    keystroke = OsKeystroke(mechanism)
    if keystroke.mechanism == "none":
        return None
    return keystroke
