"""Command-line entry point for batch-cherrypick."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from . import __version__
from .config import CherryPickSettings, RunConfig, default_ledger_path, get_settings
from .controller import CherryPickController, CherryPickError
from .git import GitRunner, GitRunnerError
from .ledger import LedgerIOError, LedgerStore, codec_for

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the command."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-cherrypick",
        description="Batch cherry-pick commits between two git hashes",
    )
    parser.add_argument(
        "-c",
        "--ledger",
        metavar="FILE",
        help=(
            "Progress file (default: $BATCH_CHERRY_PICK_OUTPUT/cherrypick_<start>_<end>.md "
            "or the same name in the home directory)"
        ),
    )
    parser.add_argument(
        "-f",
        "--resume",
        action="store_true",
        help="Continue from the last processed commit in an existing progress file",
    )
    parser.add_argument("-s", "--start", metavar="HASH", help="Starting commit hash (exclusive)")
    parser.add_argument("-e", "--end", metavar="HASH", help="Ending commit hash (inclusive)")
    parser.add_argument(
        "-a",
        "--auto-continue",
        action="store_true",
        help=(
            "Cherry-pick without prompting; on conflict, wait until the working tree "
            "has no unmerged paths and continue automatically"
        ),
    )
    parser.add_argument(
        "--format",
        choices=["markdown", "csv"],
        default=None,
        help="Progress file format when the file name has no .md/.csv suffix",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between conflict checks in auto-continue mode",
    )
    parser.add_argument(
        "--conflict-timeout",
        type=float,
        default=None,
        help="Give up after waiting this many seconds for conflicts to be resolved (default: wait forever)",
    )
    parser.add_argument("--report", action="store_true", help="Print the progress table when finished")
    parser.add_argument("--repo", type=Path, default=None, help="Repository to operate in (default: cwd)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _ask_ref(value: str | None, label: str, prompt: Callable[[str], str]) -> str:
    if value:
        return value
    return prompt(f"Enter the {label} hash: ").strip()


def build_run_config(
    args: argparse.Namespace,
    settings: CherryPickSettings,
    *,
    prompt: Callable[[str], str] = input,
) -> RunConfig:
    start = _ask_ref(args.start, "starting", prompt)
    end = _ask_ref(args.end, "ending", prompt)
    ledger_path = (
        Path(args.ledger).expanduser()
        if args.ledger
        else default_ledger_path(settings, start, end, args.format)
    )
    return RunConfig(
        start=start,
        end=end,
        ledger_path=ledger_path,
        resume=args.resume,
        auto_continue=args.auto_continue,
        poll_interval=args.poll_interval if args.poll_interval is not None else settings.poll_interval,
        conflict_timeout=(
            args.conflict_timeout if args.conflict_timeout is not None else settings.conflict_timeout
        ),
    )


def run(
    argv: list[str] | None = None,
    *,
    settings: CherryPickSettings | None = None,
    runner: GitRunner | None = None,
    prompt: Callable[[str], str] = input,
    echo: Callable[[str], None] = print,
) -> int:
    """Parse arguments, run the campaign, and return a process exit code."""

    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings or get_settings()

    try:
        config = build_run_config(args, settings, prompt=prompt)
    except ValidationError as exc:
        logger.error("Invalid options", extra={"errors": exc.errors()})
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        if runner is None:
            runner = GitRunner(Path(settings.git_path) if settings.git_path else None, cwd=args.repo)
        codec = codec_for(
            config.ledger_path,
            args.format or settings.ledger_format,
            commit_url_template=settings.commit_url_template,
            pr_url_template=settings.pr_url_template,
        )
        store = LedgerStore(config.ledger_path, codec=codec)
        controller = CherryPickController(config, runner=runner, store=store, prompt=prompt, echo=echo)
        summary = asyncio.run(controller.run())
        if args.report and not summary.aborted:
            ledger = store.load()
            if ledger is not None:
                echo(store.render(ledger))
    except (CherryPickError, GitRunnerError, LedgerIOError) as exc:
        logger.error("Cherry-pick run failed", extra={"error_type": type(exc).__name__})
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.info(
        "Cherry-pick run finished",
        extra={"recorded": len(summary.records), "aborted": summary.aborted, "ledger_path": summary.ledger_path},
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``batch-cherrypick`` command."""

    settings = get_settings()
    configure_logging(settings.log_level)
    exit_code = run(argv, settings=settings)
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
