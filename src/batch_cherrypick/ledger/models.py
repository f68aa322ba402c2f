"""Data models for the cherry-pick progress ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CommitStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    SKIPPED = "skipped"
    CONFLICT_RESOLVED = "conflict-resolved"

    @property
    def is_final(self) -> bool:
        return self is not CommitStatus.PENDING


@dataclass(slots=True)
class CommitRecord:
    commit_id: str
    status: CommitStatus
    timestamp: str
    message: str


@dataclass(slots=True)
class Ledger:
    """Ordered, commit-keyed collection of records.

    Lines from the file that are not records are kept verbatim so a rewrite
    puts them back where they were: ``preamble`` holds lines above the table,
    ``passthrough`` maps the number of records preceding a line to the lines
    found at that point.
    """

    records: list[CommitRecord] = field(default_factory=list)
    preamble: list[str] = field(default_factory=list)
    passthrough: dict[int, list[str]] = field(default_factory=dict)

    def keep_line(self, line: str) -> None:
        self.passthrough.setdefault(len(self.records), []).append(line)

    def index_of(self, commit_id: str) -> int | None:
        for position, record in enumerate(self.records):
            if record.commit_id == commit_id:
                return position
        return None

    def get(self, commit_id: str) -> CommitRecord | None:
        position = self.index_of(commit_id)
        return self.records[position] if position is not None else None

    def __contains__(self, commit_id: object) -> bool:
        return isinstance(commit_id, str) and self.index_of(commit_id) is not None

    def __len__(self) -> int:
        return len(self.records)


def find_resume_point(ledger: Ledger) -> str | None:
    """Return the commit id of the last non-pending record in file order."""

    last: str | None = None
    for record in ledger.records:
        if record.status.is_final:
            last = record.commit_id
    return last


__all__ = ["CommitRecord", "CommitStatus", "Ledger", "find_resume_point"]
