"""Async runner for the git CLI."""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .utils import parse_unmerged_paths, sanitize_environment


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def is_empty_pick(self) -> bool:
        """True when a cherry-pick failed only because the change is already applied."""

        output = f"{self.stdout}\n{self.stderr}"
        return "previous cherry-pick is now empty" in output


class GitRunner:
    """Execute git commands asynchronously inside a repository."""

    def __init__(self, executable: Path | None = None, *, cwd: Path | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._cwd = Path(cwd) if cwd is not None else None

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def commit_exists(self, ref: str) -> bool:
        result = await self._invoke("cat-file", "-e", f"{ref}^{{commit}}")
        return result.ok

    async def rev_list(self, start: str, end: str) -> list[str]:
        """Return commits in ``start..end`` oldest first."""

        result = await self._invoke("rev-list", "--reverse", f"{start}..{end}")
        if not result.ok:
            raise GitRunnerError(
                f"git rev-list {start}..{end} failed: {result.stderr.strip() or result.returncode}"
            )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def subject(self, ref: str) -> str:
        result = await self._invoke("log", "--format=%s", "-n", "1", ref)
        if not result.ok:
            raise GitRunnerError(f"git log for {ref} failed: {result.stderr.strip() or result.returncode}")
        return result.stdout.strip()

    async def cherry_pick(self, sha: str) -> GitExecutionResult:
        return await self._invoke("cherry-pick", sha)

    async def cherry_pick_continue(self) -> GitExecutionResult:
        return await self._invoke("cherry-pick", "--continue")

    async def cherry_pick_skip(self) -> GitExecutionResult:
        return await self._invoke("cherry-pick", "--skip")

    async def unmerged_paths(self) -> list[str]:
        result = await self._invoke("status", "--porcelain")
        if not result.ok:
            raise GitRunnerError(f"git status failed: {result.stderr.strip() or result.returncode}")
        return parse_unmerged_paths(result.stdout)

    async def _invoke(self, *args: str) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self._cwd) if self._cwd is not None else None,
            env=sanitize_environment(),
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return GitExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeGitRunner(GitRunner):
    """Test double that simulates a repository's commit graph and cherry-pick outcomes.

    ``commits`` maps sha to subject in history order. ``pick_results`` maps sha
    to the result ``cherry_pick`` should return (success by default).
    ``conflict_polls`` is the number of ``unmerged_paths`` calls that report a
    conflict before the working tree is considered resolved.
    """

    def __init__(  # type: ignore[override]
        self,
        commits: dict[str, str] | None = None,
        *,
        pick_results: dict[str, GitExecutionResult] | None = None,
        conflict_polls: int = 0,
        responses: Iterable[GitExecutionResult] | None = None,
    ) -> None:
        self._commits = dict(commits or {})
        self._pick_results = dict(pick_results or {})
        self._conflict_polls = conflict_polls
        self._responses = list(responses or [])
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")
        self._cwd = None

    def _order(self) -> list[str]:
        return list(self._commits)

    async def commit_exists(self, ref: str) -> bool:  # type: ignore[override]
        self._invocations.append(("cat-file", "-e", f"{ref}^{{commit}}"))
        return ref in self._commits

    async def rev_list(self, start: str, end: str) -> list[str]:  # type: ignore[override]
        self._invocations.append(("rev-list", "--reverse", f"{start}..{end}"))
        order = self._order()
        first, last = order.index(start), order.index(end)
        return order[first + 1 : last + 1]

    async def subject(self, ref: str) -> str:  # type: ignore[override]
        self._invocations.append(("log", "--format=%s", "-n", "1", ref))
        return self._commits[ref]

    async def cherry_pick(self, sha: str) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(("cherry-pick", sha))
        return self._pick_results.get(
            sha, GitExecutionResult(args=("cherry-pick", sha), returncode=0, stdout="", stderr="")
        )

    async def unmerged_paths(self) -> list[str]:  # type: ignore[override]
        self._invocations.append(("status", "--porcelain"))
        if self._conflict_polls > 0:
            self._conflict_polls -= 1
            return ["conflicted.txt"]
        return []

    async def _invoke(self, *args: str) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def picked(self) -> list[str]:
        return [call[1] for call in self._invocations if call[0] == "cherry-pick" and not call[1].startswith("--")]


def conflict_result(sha: str, stderr: str = "CONFLICT (content): Merge conflict") -> GitExecutionResult:
    """Build the result of a cherry-pick that stopped on a conflict."""

    return GitExecutionResult(args=("cherry-pick", sha), returncode=1, stdout="", stderr=stderr)


def serialize_result(result: GitExecutionResult) -> str:
    """Serialize a command result for debug logging."""

    return json.dumps(
        {
            "args": list(result.args),
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
    )
