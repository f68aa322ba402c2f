"""Row codecs for the CSV and Markdown ledger files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from ..config import DEFAULT_COMMIT_URL, DEFAULT_PR_URL, LedgerFormat
from .models import CommitRecord, CommitStatus


class MalformedRowError(ValueError):
    """Raised when a ledger line cannot be decoded into a record."""


class LedgerCodec(Protocol):
    """Protocol for the line-oriented ledger formats."""

    name: LedgerFormat
    suffix: str

    def header(self) -> list[str]:
        ...

    def is_header(self, line: str) -> bool:
        ...

    def encode(self, record: CommitRecord) -> str:
        ...

    def decode(self, line: str) -> CommitRecord:
        ...


def _single_line(text: str) -> str:
    return " ".join(text.splitlines()).strip()


def _parse_status(raw: str) -> CommitStatus:
    try:
        return CommitStatus(raw.strip())
    except ValueError as exc:
        raise MalformedRowError(f"Unknown status {raw.strip()!r}") from exc


class CsvCodec:
    """``commit_hash,status,timestamp,commit_message`` rows; commas become semicolons."""

    name: LedgerFormat = "csv"
    suffix = ".csv"
    columns = ("commit_hash", "status", "timestamp", "commit_message")

    @staticmethod
    def escape(text: str) -> str:
        return _single_line(text).replace(",", ";")

    def header(self) -> list[str]:
        return [",".join(self.columns)]

    def is_header(self, line: str) -> bool:
        return line.strip().startswith(self.columns[0] + ",")

    def encode(self, record: CommitRecord) -> str:
        return ",".join(
            [
                self.escape(record.commit_id),
                record.status.value,
                self.escape(record.timestamp),
                self.escape(record.message),
            ]
        )

    def decode(self, line: str) -> CommitRecord:
        fields = line.rstrip("\r\n").split(",")
        if len(fields) != 4:
            raise MalformedRowError(f"Expected 4 fields, found {len(fields)}")
        commit_id, status, timestamp, message = fields
        if not commit_id.strip():
            raise MalformedRowError("Empty commit hash")
        return CommitRecord(
            commit_id=commit_id.strip(),
            status=_parse_status(status),
            timestamp=timestamp.strip(),
            message=message,
        )


_PR_TOKEN = re.compile(r"#(\d+)")
_PR_LINK = re.compile(r"\[#(\d+)\]\([^)\s]*\)")
_COMMIT_LINK = re.compile(r"^\[([^\]]+)\]\([^)]*\)$")
_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR = re.compile(r"^\|?\s*:?-{3,}")


class MarkdownCodec:
    """Markdown table rows with commit and pull-request hyperlinks."""

    name: LedgerFormat = "markdown"
    suffix = ".md"
    titles = ("Commit Hash", "Status", "Timestamp", "Commit Message")

    def __init__(
        self,
        *,
        commit_url_template: str = DEFAULT_COMMIT_URL,
        pr_url_template: str = DEFAULT_PR_URL,
    ) -> None:
        self._commit_url = commit_url_template
        self._pr_url = pr_url_template

    @staticmethod
    def escape(text: str) -> str:
        return _single_line(text).replace("|", "\\|")

    @staticmethod
    def unescape(text: str) -> str:
        return text.replace("\\|", "|")

    def link_commit(self, commit_id: str) -> str:
        return f"[{commit_id}]({self._commit_url.format(sha=commit_id)})"

    def link_pull_requests(self, message: str) -> str:
        return _PR_TOKEN.sub(
            lambda match: f"[#{match.group(1)}]({self._pr_url.format(number=match.group(1))})",
            message,
        )

    def header(self) -> list[str]:
        return [
            "| " + " | ".join(self.titles) + " |",
            "|" + "|".join("-" * (len(title) + 2) for title in self.titles) + "|",
        ]

    def is_header(self, line: str) -> bool:
        stripped = line.strip()
        return stripped.startswith("| " + self.titles[0]) or bool(_SEPARATOR.match(stripped))

    def encode(self, record: CommitRecord) -> str:
        commit_cell = self.link_commit(self.escape(record.commit_id))
        message_cell = self.link_pull_requests(self.escape(record.message))
        return (
            f"| {commit_cell} | {record.status.value} | {self.escape(record.timestamp)} | {message_cell} |"
        )

    def decode(self, line: str) -> CommitRecord:
        stripped = line.strip()
        if not (stripped.startswith("|") and stripped.endswith("|")):
            raise MalformedRowError("Row is not a table row")
        cells = [cell.strip() for cell in _CELL_SPLIT.split(stripped[1:-1])]
        if len(cells) != 4:
            raise MalformedRowError(f"Expected 4 cells, found {len(cells)}")
        commit_cell, status, timestamp, message_cell = cells
        match = _COMMIT_LINK.match(commit_cell)
        commit_id = self.unescape(match.group(1) if match else commit_cell).strip()
        if not commit_id:
            raise MalformedRowError("Empty commit hash")
        message = self.unescape(_PR_LINK.sub(r"#\1", message_cell))
        return CommitRecord(
            commit_id=commit_id,
            status=_parse_status(status),
            timestamp=timestamp,
            message=message,
        )


def codec_named(
    fmt: LedgerFormat,
    *,
    commit_url_template: str = DEFAULT_COMMIT_URL,
    pr_url_template: str = DEFAULT_PR_URL,
) -> LedgerCodec:
    if fmt == "csv":
        return CsvCodec()
    return MarkdownCodec(commit_url_template=commit_url_template, pr_url_template=pr_url_template)


def codec_for(
    path: Path,
    default: LedgerFormat = "markdown",
    *,
    commit_url_template: str = DEFAULT_COMMIT_URL,
    pr_url_template: str = DEFAULT_PR_URL,
) -> LedgerCodec:
    """Pick a codec from the file suffix, falling back to ``default``."""

    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        fmt: LedgerFormat = "csv"
    elif suffix in {".md", ".markdown"}:
        fmt = "markdown"
    else:
        fmt = default
    return codec_named(fmt, commit_url_template=commit_url_template, pr_url_template=pr_url_template)


__all__ = [
    "CsvCodec",
    "LedgerCodec",
    "MalformedRowError",
    "MarkdownCodec",
    "codec_for",
    "codec_named",
]
