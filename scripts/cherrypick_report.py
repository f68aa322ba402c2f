"""Inspect and convert cherry-pick progress files."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from batch_cherrypick.config import CherryPickSettings
from batch_cherrypick.ledger import (
    CommitStatus,
    Ledger,
    LedgerIOError,
    LedgerStore,
    codec_for,
    codec_named,
    find_resume_point,
)


def load_store(path: Path, settings: CherryPickSettings, fmt: str | None = None) -> LedgerStore:
    codec = codec_for(
        path,
        fmt or settings.ledger_format,
        commit_url_template=settings.commit_url_template,
        pr_url_template=settings.pr_url_template,
    )
    return LedgerStore(path, codec=codec)


def load_ledger(store: LedgerStore) -> Ledger:
    try:
        ledger = store.load()
    except LedgerIOError as exc:
        print(f"Ledger unavailable: {exc}", file=sys.stderr)
        raise SystemExit(1)
    if ledger is None:
        print(f"Ledger unavailable: {store.path} does not exist", file=sys.stderr)
        raise SystemExit(1)
    return ledger


def cmd_summary(args: argparse.Namespace) -> None:
    settings = CherryPickSettings()
    store = load_store(Path(args.ledger), settings)
    ledger = load_ledger(store)

    status_counts = {status.value: 0 for status in CommitStatus}
    for record in ledger.records:
        status_counts[record.status.value] += 1

    payload = {
        "ledger": str(store.path),
        "format": store.codec.name,
        "commits_total": len(ledger),
        "status_counts": status_counts,
        "resume_point": find_resume_point(ledger),
    }
    print(json.dumps(payload, indent=2))


def cmd_render(args: argparse.Namespace) -> None:
    settings = CherryPickSettings()
    source = load_store(Path(args.ledger), settings)
    ledger = load_ledger(source)

    if args.format:
        codec = codec_named(
            args.format,
            commit_url_template=settings.commit_url_template,
            pr_url_template=settings.pr_url_template,
        )
        target = LedgerStore(source.path, codec=codec)
    elif args.output:
        target = load_store(Path(args.output), settings, source.codec.name)
    else:
        target = source
    output_text = target.render(ledger)

    if args.output:
        Path(args.output).write_text(output_text, encoding="utf-8")
    else:
        sys.stdout.write(output_text)


def cmd_resume_point(args: argparse.Namespace) -> None:
    settings = CherryPickSettings()
    ledger = load_ledger(load_store(Path(args.ledger), settings))
    resume_point = find_resume_point(ledger)
    if resume_point is None:
        print("No processed commits recorded", file=sys.stderr)
        raise SystemExit(1)
    print(resume_point)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cherry-pick progress file diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_summary = sub.add_parser("summary", help="Show status counts and the resume point as JSON")
    p_summary.add_argument("ledger", help="Path to a .md or .csv progress file")
    p_summary.set_defaults(func=cmd_summary)

    p_render = sub.add_parser("render", help="Re-render a progress file, optionally in another format")
    p_render.add_argument("ledger", help="Path to a .md or .csv progress file")
    p_render.add_argument(
        "--format",
        choices=["markdown", "csv"],
        default=None,
        help="Output format (default: inferred from --output, else the input format)",
    )
    p_render.add_argument("--output", help="Optional path to write the rendered ledger to")
    p_render.set_defaults(func=cmd_render)

    p_resume = sub.add_parser("resume-point", help="Print the commit a resumed run continues after")
    p_resume.add_argument("ledger", help="Path to a .md or .csv progress file")
    p_resume.set_defaults(func=cmd_resume_point)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
