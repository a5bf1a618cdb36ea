from __future__ import annotations

import json
from pathlib import Path

import pytest

from ralphloop import __version__, cli, status
from ralphloop.jsonl import append_jsonl, read_json
from ralphloop.runtime.session import IterationOutcome, LoopReport
from ralphloop.status import StatusFileReporter, StatusSnapshot
from ralphloop.ui import resolve_output_mode


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as raised:
        cli.main(argv)
    return int(raised.value.code or 0)


def test_help_lists_commands(capsys) -> None:
    assert _exit_code([]) == 0
    out = capsys.readouterr().out
    for command in ("ralph run", "ralph stop", "ralph status", "ralph init"):
        assert command in out


def test_version(capsys) -> None:
    assert _exit_code(["--version"]) == 0
    assert f"ralph {__version__}" in capsys.readouterr().out


def test_unknown_command_exits_2(capsys) -> None:
    assert _exit_code(["launch"]) == 2
    assert "Unknown command: launch" in capsys.readouterr().out


def test_init_scaffolds_config_once(repo: Path, capsys) -> None:
    assert _exit_code(["init"]) == 0
    config = repo / ".ralph" / "ralph.toml"
    assert config.exists()
    assert (repo / ".ralph" / "logs").is_dir()

    config.write_text("# custom\n", encoding="utf-8")
    assert _exit_code(["init"]) == 0
    assert config.read_text(encoding="utf-8") == "# custom\n"
    assert "already exists" in capsys.readouterr().out


def test_run_without_target_exits_2(repo: Path, capsys) -> None:
    assert _exit_code(["run"]) == 2
    assert "No tmux target configured" in capsys.readouterr().out


def test_run_reports_config_errors(repo: Path, capsys) -> None:
    (repo / ".ralph").mkdir()
    (repo / ".ralph" / "ralph.toml").write_text("[timing]\nbogus = 1\n", encoding="utf-8")

    assert _exit_code(["run", "--target", "agent:0"]) == 2
    assert "Config error" in capsys.readouterr().out


def test_run_applies_flags_and_maps_outcome(repo: Path, monkeypatch) -> None:
    seen = {}

    def fake_run_loop(root, cfg, *, console):
        seen["root"] = root
        seen["cfg"] = cfg
        return LoopReport(
            session_id="ralph-00000000",
            outcome=IterationOutcome.NO_SIGNAL,
            iterations=1,
        )

    monkeypatch.setattr(cli, "run_loop", fake_run_loop)

    code = _exit_code(
        [
            "run",
            "--target",
            "agent:0.1",
            "--pattern",
            "prompts/*.md",
            "--max-iterations",
            "3",
            "--abort-on-delivery-failure",
        ]
    )

    assert code == 1
    cfg = seen["cfg"]
    assert seen["root"] == repo.resolve()
    assert cfg.surface.target == "agent:0.1"
    assert cfg.pattern == "prompts/*.md"
    assert cfg.max_iterations == 3
    assert cfg.delivery.abort_on_exhaustion is True


def test_stop_when_idle(repo: Path, capsys) -> None:
    assert _exit_code(["stop"]) == 1
    assert "Ralph loop is not running" in capsys.readouterr().out


def test_stop_posts_control_request(repo: Path) -> None:
    StatusFileReporter.for_repo(repo)(
        StatusSnapshot(running=True, iteration_count=2, session_id="ralph-1234abcd")
    )

    assert _exit_code(["stop"]) == 0

    control = read_json(repo / ".ralph" / "control.json")
    assert control is not None
    assert control["command"] == "stop"
    assert control["author"] == "cli"
    assert control["nonce"]


def test_status_plain_and_json(repo: Path, capsys) -> None:
    assert _exit_code(["status"]) == 0
    assert "idle (no runs recorded)" in capsys.readouterr().out

    StatusFileReporter.for_repo(repo)(
        StatusSnapshot(running=True, iteration_count=3, session_id="ralph-1234abcd")
    )
    assert _exit_code(["status"]) == 0
    assert "▶ Ralph: iteration 3" in capsys.readouterr().out

    assert _exit_code(["status", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["running"] is True
    assert payload["iteration_count"] == 3


def test_candidates(repo: Path, capsys) -> None:
    assert _exit_code(["candidates"]) == 1
    assert "No files found matching pattern **/ralph-prompt.*" in capsys.readouterr().out

    (repo / "tasks").mkdir()
    (repo / "tasks" / "ralph-prompt.md").write_text("go", encoding="utf-8")
    assert _exit_code(["candidates"]) == 0
    assert "tasks/ralph-prompt.md" in capsys.readouterr().out


def test_log_shows_latest_session(repo: Path, capsys) -> None:
    assert _exit_code(["log"]) == 1

    append_jsonl(
        repo / ".ralph" / "logs" / "ralph-aaaa1111.jsonl",
        {
            "type": "watch.commit_detected",
            "timestamp": "2026-01-01T10:11:12Z",
            "session_id": "ralph-aaaa1111",
            "iteration": 1,
            "payload": {"polls": 2},
        },
    )
    assert _exit_code(["log", "ralph-aaaa"]) == 0
    out = capsys.readouterr().out
    assert "watch.commit_detected" in out
    assert "10:11:12" in out


def test_output_mode_resolution() -> None:
    assert resolve_output_mode("rich", is_tty=False, environ={}) == "rich"
    assert resolve_output_mode(None, is_tty=True, environ={}) == "rich"
    assert resolve_output_mode(None, is_tty=True, environ={"RALPH_OUTPUT": "plain"}) == "plain"
    assert resolve_output_mode("auto", is_tty=False, environ={"RALPH_OUTPUT": "rich"}) == "plain"
    with pytest.raises(ValueError, match="invalid output mode"):
        resolve_output_mode(None, environ={"RALPH_OUTPUT": "loud"})


def test_killed_loop_is_reported_as_stale(repo: Path, monkeypatch, capsys) -> None:
    StatusFileReporter.for_repo(repo)(
        StatusSnapshot(running=True, iteration_count=4, session_id="ralph-dead0001", pid=424242)
    )
    monkeypatch.setattr(status, "process_alive", lambda pid: False)

    assert _exit_code(["status"]) == 0
    out = capsys.readouterr().out
    assert "■ Ralph: idle" in out
    assert "ralph-dead0001 (pid 424242) exited without recording idle" in out

    assert _exit_code(["stop"]) == 1
    assert "Ralph loop is not running" in capsys.readouterr().out
    assert not (repo / ".ralph" / "control.json").exists()

    assert _exit_code(["status", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["running"] is False
    assert payload["stale"] is True
