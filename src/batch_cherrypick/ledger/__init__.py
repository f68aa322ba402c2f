"""Ledger persistence for batch-cherrypick."""

from .formats import CsvCodec, LedgerCodec, MalformedRowError, MarkdownCodec, codec_for, codec_named
from .models import CommitRecord, CommitStatus, Ledger, find_resume_point
from .store import LedgerIOError, LedgerStore

__all__ = [
    "CommitRecord",
    "CommitStatus",
    "CsvCodec",
    "Ledger",
    "LedgerCodec",
    "LedgerIOError",
    "LedgerStore",
    "MalformedRowError",
    "MarkdownCodec",
    "codec_for",
    "codec_named",
    "find_resume_point",
]
