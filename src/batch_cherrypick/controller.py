"""Cherry-pick loop with ledger-backed resume."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from .config import RunConfig
from .git import GitExecutionResult, GitRunner
from .git.runner import serialize_result
from .ledger import CommitRecord, CommitStatus, Ledger, LedgerStore, find_resume_point

logger = logging.getLogger(__name__)


class CherryPickError(RuntimeError):
    """Base class for fatal cherry-pick campaign errors."""


class InvalidReferenceError(CherryPickError):
    """Raised when a start or end reference does not resolve to a commit."""


class NoCommitsInRangeError(CherryPickError):
    """Raised when the resolved range contains no commits."""


class ConflictTimeoutError(CherryPickError):
    """Raised when conflicts stay unresolved past the configured timeout."""


class ContinueFailedError(CherryPickError):
    """Raised when git refuses to continue a stopped cherry-pick."""


class Choice(str, Enum):
    YES = "y"
    NO = "n"
    QUIT = "q"


def parse_choice(answer: str) -> Choice:
    """Map operator input to a choice; empty means yes, anything unrecognised means no."""

    normalized = answer.strip().lower()
    if not normalized or normalized == "y":
        return Choice.YES
    if normalized == "q":
        return Choice.QUIT
    return Choice.NO


@dataclass(slots=True)
class RunSummary:
    """Outcome of a controller run."""

    ledger_path: str
    records: list[CommitRecord] = field(default_factory=list)
    aborted: bool = False
    resumed_from: str | None = None


class CherryPickController:
    """Drive one cherry-pick campaign described by a :class:`RunConfig`."""

    def __init__(
        self,
        config: RunConfig,
        *,
        runner: GitRunner,
        store: LedgerStore,
        prompt: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._runner = runner
        self._store = store
        self._prompt = prompt
        self._echo = echo
        self._sleep = sleep

    @property
    def config(self) -> RunConfig:
        return self._config

    async def resolve_range(self) -> list[str]:
        """Validate both references and list the commits after ``start`` up to ``end``."""

        for label, ref in (("Starting", self._config.start), ("Ending", self._config.end)):
            if not await self._runner.commit_exists(ref):
                raise InvalidReferenceError(f"{label} hash {ref} is not a valid commit.")

        commits: list[str] = []
        seen: set[str] = set()
        for sha in await self._runner.rev_list(self._config.start, self._config.end):
            if sha not in seen:
                seen.add(sha)
                commits.append(sha)
        if not commits:
            raise NoCommitsInRangeError(
                f"No commits found between {self._config.start} and {self._config.end}."
            )
        return commits

    async def prepare(self, commits: list[str]) -> tuple[Ledger, list[str], str | None]:
        """Load or seed the ledger and return the commits still to process."""

        ledger = self._store.load()
        if ledger is None:
            if self._config.resume:
                logger.warning(
                    "No ledger to resume from; starting a new one",
                    extra={"ledger_path": str(self._store.path)},
                )
            self._echo(f"Creating new progress file: {self._store.path}")
            ledger = Ledger()
            seeds = [(sha, await self._runner.subject(sha)) for sha in commits]
            self._store.seed(ledger, seeds)
            return ledger, list(commits), None

        self._echo("")
        self._echo(f"Found existing progress file: {self._store.path}")
        resume_point = find_resume_point(ledger)
        remaining = list(commits)
        if resume_point is not None:
            self._echo(f"Continuing from last processed commit: {resume_point}")
            if resume_point in remaining:
                remaining = remaining[remaining.index(resume_point) + 1 :]
            else:
                logger.warning(
                    "Resume point is outside the requested range",
                    extra={"resume_point": resume_point, "start": self._config.start, "end": self._config.end},
                )

        pending: list[str] = []
        for sha in remaining:
            record = ledger.get(sha)
            if record is not None and record.status.is_final:
                continue
            pending.append(sha)
        return ledger, pending, resume_point

    async def run(self) -> RunSummary:
        commits = await self.resolve_range()
        ledger, pending, resume_point = await self.prepare(commits)
        summary = RunSummary(ledger_path=str(self._store.path), resumed_from=resume_point)

        logger.info(
            "Processing commits",
            extra={"total": len(commits), "pending": len(pending), "resume_point": resume_point},
        )

        for sha in pending:
            record = await self._process_commit(ledger, sha)
            if record is None:
                summary.aborted = True
                return summary
            summary.records.append(record)

        if pending:
            self._echo(
                f"All commits between {self._config.start} and {self._config.end} have been "
                f"processed, and progress has been recorded in {self._store.path}."
            )
        else:
            self._echo(f"Nothing left to cherry-pick; {self._store.path} is up to date.")
        return summary

    async def _process_commit(self, ledger: Ledger, sha: str) -> CommitRecord | None:
        message = await self._runner.subject(sha)
        self._echo("")
        self._echo(f"Cherry-picking commit {sha}...")
        self._echo("Commit message:")
        self._echo(message)
        self._echo("")

        choice = self._ask()
        if choice is Choice.QUIT:
            self._echo("Exiting cherry-pick process...")
            logger.info("Operator quit", extra={"commit": sha})
            return None

        if choice is Choice.NO:
            self._echo(f"Skipping commit {sha}")
            status = CommitStatus.SKIPPED
        else:
            status = await self._apply(sha)

        record = self._store.upsert(ledger, sha, status, self._store.timestamp(), message)
        logger.debug("Recorded commit", extra={"commit": sha, "status": status.value})
        return record

    def _ask(self) -> Choice:
        if self._config.auto_continue:
            self._echo("Auto-continue is enabled. Automatically choosing 'y' to cherry-pick this commit.")
            return Choice.YES
        answer = self._prompt("Do you want to cherry-pick this commit? (y/n/q, default: y): ")
        choice = parse_choice(answer)
        if choice is Choice.NO and answer.strip().lower() != "n":
            self._echo("Invalid choice. Skipping commit.")
        return choice

    async def _apply(self, sha: str) -> CommitStatus:
        result = await self._runner.cherry_pick(sha)
        if result.ok:
            return CommitStatus.SUCCESS

        if result.is_empty_pick:
            self._echo(f"Commit {sha} is already applied; skipping the empty cherry-pick.")
            await self._runner.cherry_pick_skip()
            return CommitStatus.SKIPPED

        self._echo(f"Conflict detected while cherry-picking commit {sha}.")
        logger.warning(
            "Cherry-pick stopped",
            extra={"commit": sha, "returncode": result.returncode, "stderr": result.stderr.strip()[:400]},
        )
        logger.debug("git result", extra={"result": serialize_result(result)})
        if self._config.auto_continue:
            await self._wait_for_resolution(sha)
            continued = await self._runner.cherry_pick_continue()
            self._check_continue(sha, continued)
        else:
            self._echo("Please resolve the conflict manually, then press Enter to continue.")
            self._prompt("Press Enter to continue to the next commit...")
        return CommitStatus.CONFLICT_RESOLVED

    async def _wait_for_resolution(self, sha: str) -> None:
        self._echo("Waiting for conflict resolution...")
        interval = self._config.poll_interval
        waited = 0.0
        timeout = self._config.conflict_timeout
        while await self._runner.unmerged_paths():
            delay = interval
            if timeout is not None:
                if waited >= timeout:
                    raise ConflictTimeoutError(
                        f"Conflicts on {sha} were not resolved within {timeout:g} seconds."
                    )
                delay = min(interval, timeout - waited)
            await self._sleep(delay)
            waited += delay
            ceiling = max(self._config.max_poll_interval, self._config.poll_interval)
            interval = min(interval * self._config.poll_backoff, ceiling)
        self._echo("Conflict resolved. Continuing cherry-pick...")

    def _check_continue(self, sha: str, result: GitExecutionResult) -> None:
        if result.ok:
            return
        logger.error(
            "git cherry-pick --continue did not succeed",
            extra={"commit": sha, "returncode": result.returncode, "stderr": result.stderr.strip()[:400]},
        )
        # The record stays pending so a resumed run picks the commit again.
        detail = result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}"
        raise ContinueFailedError(f"Could not continue cherry-picking {sha}: {detail}")


__all__ = [
    "CherryPickController",
    "CherryPickError",
    "Choice",
    "ConflictTimeoutError",
    "ContinueFailedError",
    "InvalidReferenceError",
    "NoCommitsInRangeError",
    "RunSummary",
    "parse_choice",
]
