from __future__ import annotations

from pathlib import Path

import pytest

from batch_cherrypick.ledger import (
    CommitRecord,
    CommitStatus,
    CsvCodec,
    MalformedRowError,
    MarkdownCodec,
    codec_for,
)


def _record(message: str, status: CommitStatus = CommitStatus.SUCCESS) -> CommitRecord:
    return CommitRecord(
        commit_id="8f2c1d0a9b",
        status=status,
        timestamp="2025-01-01 12:00:00",
        message=message,
    )


def test_csv_substitutes_commas() -> None:
    codec = CsvCodec()

    line = codec.encode(_record("Add adapter, tests, and docs"))

    assert line == "8f2c1d0a9b,success,2025-01-01 12:00:00,Add adapter; tests; and docs"
    decoded = codec.decode(line)
    assert decoded.message == "Add adapter; tests; and docs"
    assert decoded.status is CommitStatus.SUCCESS


def test_csv_collapses_newlines() -> None:
    line = CsvCodec().encode(_record("first line\nsecond line"))

    assert "\n" not in line
    assert line.endswith("first line second line")


def test_csv_header_detection() -> None:
    codec = CsvCodec()

    assert codec.header() == ["commit_hash,status,timestamp,commit_message"]
    assert codec.is_header("commit_hash,status,timestamp,commit_message")
    assert not codec.is_header("8f2c1d0a9b,pending,2025-01-01 12:00:00,msg")


@pytest.mark.parametrize(
    "line",
    [
        "too,few,fields",
        "8f2c1d0a9b,finished,2025-01-01 12:00:00,msg",
        ",success,2025-01-01 12:00:00,msg",
    ],
)
def test_csv_rejects_malformed_rows(line: str) -> None:
    with pytest.raises(MalformedRowError):
        CsvCodec().decode(line)


def test_markdown_links_commit_and_pull_request() -> None:
    codec = MarkdownCodec()

    line = codec.encode(_record("Core: fix bidder timeout (#1234)"))

    assert line.startswith(
        "| [8f2c1d0a9b](https://github.com/prebid/Prebid.js/commit/8f2c1d0a9b) | success |"
    )
    assert "[#1234](https://github.com/prebid/Prebid.js/pull/1234)" in line
    decoded = codec.decode(line)
    assert decoded.commit_id == "8f2c1d0a9b"
    assert decoded.message == "Core: fix bidder timeout (#1234)"


def test_markdown_escapes_pipes() -> None:
    codec = MarkdownCodec()

    line = codec.encode(_record("a | b || c"))

    assert line.endswith("| a \\| b \\|\\| c |")
    assert line.count(" | ") == 3
    assert codec.decode(line).message == "a | b || c"


def test_markdown_custom_url_templates() -> None:
    codec = MarkdownCodec(
        commit_url_template="https://git.example.com/c/{sha}",
        pr_url_template="https://git.example.com/pr/{number}",
    )

    line = codec.encode(_record("Merge #5 and #6"))

    assert "(https://git.example.com/c/8f2c1d0a9b)" in line
    assert "[#5](https://git.example.com/pr/5) and [#6](https://git.example.com/pr/6)" in line
    assert codec.decode(line).message == "Merge #5 and #6"


def test_markdown_header_detection() -> None:
    codec = MarkdownCodec()
    title, separator = codec.header()

    assert title == "| Commit Hash | Status | Timestamp | Commit Message |"
    assert codec.is_header(title)
    assert codec.is_header(separator)
    assert codec.is_header("|-------------|--------|-----------|----------------|")


def test_markdown_accepts_unlinked_commit_cell() -> None:
    record = MarkdownCodec().decode("| abc123 | skipped | 2025-01-01 12:00:00 | plain |")

    assert record.commit_id == "abc123"
    assert record.status is CommitStatus.SKIPPED


@pytest.mark.parametrize(
    "line",
    [
        "not a table row",
        "| abc123 | success | 2025-01-01 12:00:00 |",
        "| abc123 | unknown | 2025-01-01 12:00:00 | msg |",
    ],
)
def test_markdown_rejects_malformed_rows(line: str) -> None:
    with pytest.raises(MalformedRowError):
        MarkdownCodec().decode(line)


def test_codec_for_uses_suffix_then_default() -> None:
    assert isinstance(codec_for(Path("progress.csv")), CsvCodec)
    assert isinstance(codec_for(Path("progress.MD"), "csv"), MarkdownCodec)
    assert isinstance(codec_for(Path("progress.log"), "csv"), CsvCodec)
    assert isinstance(codec_for(Path("progress")), MarkdownCodec)
