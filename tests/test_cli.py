from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

from batch_cherrypick.cli import build_parser, run
from batch_cherrypick.config import CherryPickSettings
from batch_cherrypick.git.runner import FakeGitRunner, GitExecutionResult, conflict_result

HISTORY = {
    "a0000000000": "Base commit",
    "a1111111111": "Fix bidder, again (#42)",
    "a2222222222": "Add module",
}


def _settings(tmp_path: Path) -> CherryPickSettings:
    return CherryPickSettings(BATCH_CHERRY_PICK_OUTPUT=str(tmp_path))


def _answers(*answers: str):
    remaining = list(answers)
    return lambda _text: remaining.pop(0)


def test_parser_flags() -> None:
    args = build_parser().parse_args(["-c", "out.csv", "-f", "-s", "abc", "-e", "def", "-a"])

    assert args.ledger == "out.csv"
    assert args.resume and args.auto_continue
    assert (args.start, args.end) == ("abc", "def")


def test_run_auto_continue_writes_default_ledger(tmp_path: Path) -> None:
    output: list[str] = []
    runner = FakeGitRunner(HISTORY)

    exit_code = run(
        ["-s", "a0000000000", "-e", "a2222222222", "-a"],
        settings=_settings(tmp_path),
        runner=runner,
        echo=output.append,
    )

    assert exit_code == 0
    ledger_path = tmp_path / "cherrypick_a000000_a222222.md"
    text = ledger_path.read_text(encoding="utf-8")
    assert "[#42](https://github.com/prebid/Prebid.js/pull/42)" in text
    assert text.count("| success |") == 2
    assert runner.picked == ["a1111111111", "a2222222222"]


def test_run_prompts_for_missing_refs(tmp_path: Path) -> None:
    exit_code = run(
        ["-a", "-c", str(tmp_path / "progress.csv")],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        prompt=_answers("a0000000000", "a1111111111"),
        echo=lambda _line: None,
    )

    assert exit_code == 0
    lines = (tmp_path / "progress.csv").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "commit_hash,status,timestamp,commit_message"
    assert lines[1].startswith("a1111111111,success,")
    assert lines[1].endswith("Fix bidder; again (#42)")


def test_run_invalid_reference_exits_non_zero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run(
        ["-s", "deadbeef", "-e", "a2222222222", "-a"],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        echo=lambda _line: None,
    )

    assert exit_code == 1
    assert "Starting hash deadbeef is not a valid commit." in capsys.readouterr().err


def test_run_empty_range_exits_non_zero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run(
        ["-s", "a2222222222", "-e", "a2222222222", "-a"],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        echo=lambda _line: None,
    )

    assert exit_code == 1
    assert "No commits found" in capsys.readouterr().err


def test_run_failed_continue_exits_non_zero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    runner = FakeGitRunner(
        HISTORY,
        pick_results={"a1111111111": conflict_result("a1111111111")},
        responses=[
            GitExecutionResult(
                args=("cherry-pick", "--continue"),
                returncode=128,
                stdout="",
                stderr="error: no cherry-pick or revert in progress",
            )
        ],
    )

    exit_code = run(
        ["-s", "a0000000000", "-e", "a2222222222", "-a", "-c", str(tmp_path / "progress.csv")],
        settings=_settings(tmp_path),
        runner=runner,
        echo=lambda _line: None,
    )

    assert exit_code == 1
    assert "Could not continue cherry-picking a1111111111" in capsys.readouterr().err
    lines = (tmp_path / "progress.csv").read_text(encoding="utf-8").splitlines()
    assert lines[1].startswith("a1111111111,pending,")


def test_run_empty_prompted_ref_is_rejected(tmp_path: Path) -> None:
    exit_code = run(
        ["-a"],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        prompt=_answers("", "a1111111111"),
        echo=lambda _line: None,
    )

    assert exit_code == 1


def test_run_quit_exits_cleanly(tmp_path: Path) -> None:
    exit_code = run(
        ["-s", "a0000000000", "-e", "a2222222222"],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        prompt=_answers("q"),
        echo=lambda _line: None,
    )

    assert exit_code == 0


def test_run_report_prints_table(tmp_path: Path) -> None:
    output: list[str] = []

    run(
        ["-s", "a0000000000", "-e", "a1111111111", "-a", "--report"],
        settings=_settings(tmp_path),
        runner=FakeGitRunner(HISTORY),
        echo=output.append,
    )

    assert output[-1].startswith("| Commit Hash | Status | Timestamp | Commit Message |")


def test_run_rejects_unknown_flag(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run(["--bogus"], settings=_settings(tmp_path), runner=FakeGitRunner(HISTORY))

    assert excinfo.value.code == 2


def test_report_script_handles_missing_ledger(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    script = repo_root / "scripts" / "cherrypick_report.py"
    env = os.environ.copy()
    env["PYTHONPATH"] = f"{repo_root / 'src'}" + os.pathsep + env.get("PYTHONPATH", "")
    process = subprocess.run(
        [sys.executable, str(script), "summary", str(tmp_path / "missing.md")],
        cwd=str(tmp_path),
        capture_output=True,
        text=True,
        env=env,
    )

    assert process.returncode == 1
    assert "Ledger unavailable" in process.stderr
