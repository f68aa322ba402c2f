"""File-backed persistence for the cherry-pick ledger."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from .formats import LedgerCodec, MalformedRowError, MarkdownCodec
from .models import CommitRecord, CommitStatus, Ledger

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class LedgerIOError(RuntimeError):
    """Raised when the ledger file cannot be read or written."""


class LedgerStore:
    """Manage a ledger file in one of the supported row formats."""

    def __init__(
        self,
        path: Path,
        *,
        codec: LedgerCodec | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._codec = codec or MarkdownCodec()
        self._clock = clock or datetime.now

    @property
    def path(self) -> Path:
        return self._path

    @property
    def codec(self) -> LedgerCodec:
        return self._codec

    def timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> Ledger | None:
        """Parse the ledger file, or return ``None`` when it does not exist.

        Header lines are regenerated on write. Lines above the table and rows
        that cannot be decoded are not records, but they are kept on the
        ledger and written back in place. A repeated commit id keeps its first
        position and takes the values of the later row.
        """

        if not self.exists():
            return None
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise LedgerIOError(f"Failed to read ledger {self._path}: {exc}") from exc

        ledger = Ledger()
        in_table = False
        for line_number, line in enumerate(text.splitlines(), start=1):
            if self._codec.is_header(line):
                in_table = True
                continue
            if not line.strip():
                if not in_table:
                    ledger.preamble.append(line)
                continue
            try:
                record = self._codec.decode(line)
            except MalformedRowError as exc:
                if not in_table:
                    ledger.preamble.append(line)
                    continue
                logger.warning(
                    "Keeping malformed ledger row as-is",
                    extra={"path": str(self._path), "line": line_number, "reason": str(exc)},
                )
                ledger.keep_line(line)
                continue
            in_table = True
            self._apply(ledger, record)
        return ledger

    def seed(self, ledger: Ledger, commits: Iterable[tuple[str, str]]) -> list[CommitRecord]:
        """Append a pending record for each ``(commit_id, message)`` not yet in the ledger."""

        timestamp = self.timestamp()
        added: list[CommitRecord] = []
        for commit_id, message in commits:
            if commit_id in ledger:
                continue
            record = CommitRecord(
                commit_id=commit_id,
                status=CommitStatus.PENDING,
                timestamp=timestamp,
                message=message,
            )
            ledger.records.append(record)
            added.append(record)

        write_header = not self.exists() or self._path.stat().st_size == 0
        lines = (self._codec.header() if write_header else []) + [
            self._codec.encode(record) for record in added
        ]
        if not lines:
            return added
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write("".join(f"{line}\n" for line in lines))
        except OSError as exc:
            raise LedgerIOError(f"Failed to append to ledger {self._path}: {exc}") from exc
        return added

    def upsert(
        self,
        ledger: Ledger,
        commit_id: str,
        status: CommitStatus,
        timestamp: str | None = None,
        message: str = "",
    ) -> CommitRecord:
        """Insert or replace the record for ``commit_id`` and rewrite the file atomically."""

        record = CommitRecord(
            commit_id=commit_id,
            status=CommitStatus(status),
            timestamp=timestamp or self.timestamp(),
            message=message,
        )
        self._apply(ledger, record)
        self._write_atomic(self.render(ledger))
        return record

    def render(self, ledger: Ledger) -> str:
        lines = list(ledger.preamble) + self._codec.header()
        for position, record in enumerate(ledger.records):
            lines.extend(ledger.passthrough.get(position, []))
            lines.append(self._codec.encode(record))
        lines.extend(ledger.passthrough.get(len(ledger.records), []))
        return "".join(f"{line}\n" for line in lines)

    @staticmethod
    def _apply(ledger: Ledger, record: CommitRecord) -> None:
        position = ledger.index_of(record.commit_id)
        if position is None:
            ledger.records.append(record)
        else:
            ledger.records[position] = record

    def _write_atomic(self, content: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
        except OSError as exc:
            raise LedgerIOError(f"Failed to write ledger {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise LedgerIOError(f"Failed to write ledger {self._path}: {exc}") from exc


__all__ = ["LedgerIOError", "LedgerStore", "TIMESTAMP_FORMAT"]
