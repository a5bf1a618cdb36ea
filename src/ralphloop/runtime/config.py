from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import tomllib

from ..errors import ConfigValidationError
from ..util import env_flag, env_int


CONFIG_RELPATH = Path(".ralph") / "ralph.toml"
DEFAULT_PATTERN = "**/ralph-prompt.*"
KEYSTROKE_CHOICES = ("auto", "osascript", "xdotool", "none")


@dataclass(frozen=True)
class TimingConfig:
    poll_interval_ms: int = 5_000
    max_wait_ms: int = 30 * 60 * 1000
    tick_ms: int = 250
    settle_delay_ms: int = 2_000
    focus_delay_ms: int = 50
    publish_delay_ms: int = 50
    processing_delay_ms: int = 100
    paste_delay_ms: int = 200
    pre_submit_delay_ms: int = 100


@dataclass(frozen=True)
class DeliveryConfig:
    abort_on_exhaustion: bool = False
    keystroke: str = "none"


@dataclass(frozen=True)
class SurfaceConfig:
    target: str = ""
    processing_keys: tuple[str, ...] = ()
    cleanup_keys: tuple[str, ...] = ("/clear", "Enter")


@dataclass(frozen=True)
class LoopConfig:
    pattern: str = DEFAULT_PATTERN
    max_candidates: int = 100
    max_iterations: int = 0
    timing: TimingConfig = field(default_factory=TimingConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    surface: SurfaceConfig = field(default_factory=SurfaceConfig)
    path: Path | None = None
    error: str | None = None


def _as_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return stripped


def _as_int(value: object, *, field: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"{field} must be an integer")
    if value < minimum:
        raise ConfigValidationError(f"{field} must be >= {minimum}")
    return value


def _as_bool(value: object, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigValidationError(f"{field} must be true or false")
    return value


def _as_str_tuple(value: object, *, field: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigValidationError(f"{field} must be an array of strings")

    out: list[str] = []
    for idx, item in enumerate(value):
        text = _as_str(item)
        if text is None:
            raise ConfigValidationError(f"{field}[{idx}] must be a non-empty string")
        out.append(text)
    return tuple(out)


def _table(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"[{name}] must be a table")
    return value


def _parse_timing(raw: Mapping[str, Any]) -> TimingConfig:
    defaults = TimingConfig()
    values: dict[str, int] = {}
    for key in TimingConfig.__dataclass_fields__:
        if key in raw:
            minimum = 1 if key in {"poll_interval_ms", "max_wait_ms", "tick_ms"} else 0
            values[key] = _as_int(raw[key], field=f"[timing].{key}", minimum=minimum)
    unknown = sorted(set(raw) - set(TimingConfig.__dataclass_fields__))
    if unknown:
        raise ConfigValidationError(f"unknown [timing] key: {unknown[0]!r}")
    return replace(defaults, **values)


def _parse_delivery(raw: Mapping[str, Any]) -> DeliveryConfig:
    out = DeliveryConfig()
    if "abort_on_exhaustion" in raw:
        out = replace(
            out,
            abort_on_exhaustion=_as_bool(
                raw["abort_on_exhaustion"], field="[delivery].abort_on_exhaustion"
            ),
        )
    if "keystroke" in raw:
        keystroke = (_as_str(raw["keystroke"]) or "").lower()
        if keystroke not in KEYSTROKE_CHOICES:
            expected = ", ".join(KEYSTROKE_CHOICES)
            raise ConfigValidationError(
                f"invalid [delivery].keystroke: {raw['keystroke']!r}; expected one of: {expected}"
            )
        out = replace(out, keystroke=keystroke)
    return out


def _parse_surface(raw: Mapping[str, Any]) -> SurfaceConfig:
    out = SurfaceConfig()
    if "target" in raw:
        target = raw["target"]
        if not isinstance(target, str):
            raise ConfigValidationError("[surface].target must be a string")
        out = replace(out, target=target.strip())
    if "processing_keys" in raw:
        out = replace(
            out,
            processing_keys=_as_str_tuple(
                raw["processing_keys"], field="[surface].processing_keys"
            ),
        )
    if "cleanup_keys" in raw:
        out = replace(
            out,
            cleanup_keys=_as_str_tuple(raw["cleanup_keys"], field="[surface].cleanup_keys"),
        )
    return out


def validate_config(cfg: LoopConfig) -> LoopConfig:
    timing = cfg.timing
    if timing.tick_ms > timing.poll_interval_ms:
        raise ConfigValidationError(
            "[timing].tick_ms must not exceed [timing].poll_interval_ms"
        )
    if timing.poll_interval_ms > timing.max_wait_ms:
        raise ConfigValidationError(
            "[timing].poll_interval_ms must not exceed [timing].max_wait_ms"
        )
    if cfg.max_candidates < 1:
        raise ConfigValidationError("[loop].max_candidates must be >= 1")
    return cfg


def parse_config(raw: Mapping[str, Any], *, path: Path | None = None) -> LoopConfig:
    loop = _table(raw, "loop")
    pattern = DEFAULT_PATTERN
    if "pattern" in loop:
        pattern_value = _as_str(loop["pattern"])
        if pattern_value is None:
            raise ConfigValidationError("[loop].pattern must be a non-empty string")
        pattern = pattern_value

    cfg = LoopConfig(
        pattern=pattern,
        max_candidates=_as_int(
            loop.get("max_candidates", 100), field="[loop].max_candidates", minimum=1
        ),
        max_iterations=_as_int(
            loop.get("max_iterations", 0), field="[loop].max_iterations"
        ),
        timing=_parse_timing(_table(raw, "timing")),
        delivery=_parse_delivery(_table(raw, "delivery")),
        surface=_parse_surface(_table(raw, "surface")),
        path=path,
    )
    return validate_config(cfg)


def apply_env_overrides(
    cfg: LoopConfig, environ: Mapping[str, str] | None = None
) -> LoopConfig:
    timing = cfg.timing
    timing = replace(
        timing,
        poll_interval_ms=env_int(
            "RALPH_POLL_INTERVAL_MS", timing.poll_interval_ms, environ=environ
        ),
        max_wait_ms=env_int("RALPH_MAX_WAIT_MS", timing.max_wait_ms, environ=environ),
        settle_delay_ms=env_int(
            "RALPH_SETTLE_DELAY_MS", timing.settle_delay_ms, environ=environ
        ),
        tick_ms=env_int("RALPH_TICK_MS", timing.tick_ms, environ=environ),
    )
    delivery = replace(
        cfg.delivery,
        abort_on_exhaustion=env_flag(
            "RALPH_ABORT_ON_DELIVERY_FAILURE",
            cfg.delivery.abort_on_exhaustion,
            environ=environ,
        ),
    )
    env = os.environ if environ is None else environ
    target = env.get("RALPH_TMUX_TARGET", "")
    surface = cfg.surface
    if target and target.strip():
        surface = replace(surface, target=target.strip())
    return validate_config(replace(cfg, timing=timing, delivery=delivery, surface=surface))


def load_config(
    repo_root: Path, *, environ: Mapping[str, str] | None = None
) -> LoopConfig:
    path = repo_root / CONFIG_RELPATH
    if not path.exists():
        cfg = LoopConfig(path=path)
    else:
        try:
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as exc:
            return LoopConfig(path=path, error=f"invalid TOML in {CONFIG_RELPATH}: {exc}")
        try:
            cfg = parse_config(raw, path=path)
        except ConfigValidationError as exc:
            return LoopConfig(path=path, error=f"{CONFIG_RELPATH}: {exc}")

    try:
        return apply_env_overrides(cfg, environ)
    except ConfigValidationError as exc:
        return replace(cfg, error=f"environment: {exc}")


def render_default_config() -> str:
    timing = TimingConfig()
    surface = SurfaceConfig()
    cleanup = ", ".join(f'"{key}"' for key in surface.cleanup_keys)
    return (
        "[loop]\n"
        f'pattern = "{DEFAULT_PATTERN}"\n'
        "max_candidates = 100\n"
        "max_iterations = 0\n"
        "\n"
        "[timing]\n"
        f"poll_interval_ms = {timing.poll_interval_ms}\n"
        f"max_wait_ms = {timing.max_wait_ms}\n"
        f"tick_ms = {timing.tick_ms}\n"
        f"settle_delay_ms = {timing.settle_delay_ms}\n"
        "\n"
        "[delivery]\n"
        "abort_on_exhaustion = false\n"
        'keystroke = "none"\n'
        "\n"
        "[surface]\n"
        'target = ""\n'
        "processing_keys = []\n"
        f"cleanup_keys = [{cleanup}]\n"
    )
