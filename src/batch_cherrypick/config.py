"""Configuration management for batch-cherrypick."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LedgerFormat = Literal["markdown", "csv"]

DEFAULT_COMMIT_URL = "https://github.com/prebid/Prebid.js/commit/{sha}"
DEFAULT_PR_URL = "https://github.com/prebid/Prebid.js/pull/{number}"


class CherryPickSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    git_path: str | None = Field(default=None, validation_alias="GIT_PATH")
    output_dir: Path = Field(default_factory=Path.home, validation_alias="BATCH_CHERRY_PICK_OUTPUT")
    ledger_format: LedgerFormat = Field(default="markdown", validation_alias="BATCH_CHERRY_PICK_FORMAT")
    log_level: str = Field(default="INFO", validation_alias="BATCH_CHERRY_PICK_LOG_LEVEL")
    poll_interval: float = Field(default=2.0, validation_alias="BATCH_CHERRY_PICK_POLL_INTERVAL")
    conflict_timeout: float | None = Field(
        default=None, validation_alias="BATCH_CHERRY_PICK_CONFLICT_TIMEOUT"
    )
    commit_url_template: str = Field(
        default=DEFAULT_COMMIT_URL, validation_alias="BATCH_CHERRY_PICK_COMMIT_URL"
    )
    pr_url_template: str = Field(default=DEFAULT_PR_URL, validation_alias="BATCH_CHERRY_PICK_PR_URL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "BATCH_CHERRY_PICK_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("ledger_format", mode="before")
    @classmethod
    def _normalize_format(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            return {"md": "markdown"}.get(normalized, normalized)
        return value

    @field_validator("output_dir", mode="before")
    @classmethod
    def _default_output_dir(cls, value):
        # An exported-but-empty variable behaves like an unset one.
        if value is None or (isinstance(value, str) and not value.strip()):
            return Path.home()
        return value

    @field_validator("poll_interval")
    @classmethod
    def _validate_poll_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("BATCH_CHERRY_PICK_POLL_INTERVAL must be > 0")
        return value

    @field_validator("conflict_timeout", mode="before")
    @classmethod
    def _parse_conflict_timeout(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    @field_validator("conflict_timeout")
    @classmethod
    def _validate_conflict_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("BATCH_CHERRY_PICK_CONFLICT_TIMEOUT must be > 0 when set")
        return value

    @field_validator("commit_url_template")
    @classmethod
    def _validate_commit_url(cls, value: str) -> str:
        if "{sha}" not in value:
            raise ValueError("BATCH_CHERRY_PICK_COMMIT_URL must contain a {sha} placeholder")
        return value

    @field_validator("pr_url_template")
    @classmethod
    def _validate_pr_url(cls, value: str) -> str:
        if "{number}" not in value:
            raise ValueError("BATCH_CHERRY_PICK_PR_URL must contain a {number} placeholder")
        return value


class RunConfig(BaseModel):
    """Immutable options for a single cherry-pick campaign."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    ledger_path: Path
    resume: bool = False
    auto_continue: bool = False
    poll_interval: float = Field(default=2.0, gt=0)
    poll_backoff: float = Field(default=1.0, ge=1.0)
    max_poll_interval: float = Field(default=30.0, gt=0)
    conflict_timeout: float | None = Field(default=None, gt=0)

    @field_validator("start", "end")
    @classmethod
    def _strip_ref(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Commit references must not be empty")
        return normalized


def _file_token(ref: str) -> str:
    # Refs such as origin/main must not introduce subdirectories.
    return re.sub(r"[\\/]", "-", ref)[:7]


def default_ledger_path(
    settings: CherryPickSettings, start: str, end: str, ledger_format: LedgerFormat | None = None
) -> Path:
    """Return ``<output_dir>/cherrypick_<start>_<end>.<ext>`` using abbreviated refs."""

    suffix = ".csv" if (ledger_format or settings.ledger_format) == "csv" else ".md"
    return settings.output_dir / f"cherrypick_{_file_token(start)}_{_file_token(end)}{suffix}"


@lru_cache(maxsize=1)
def get_settings() -> CherryPickSettings:
    """Return cached settings instance."""

    settings = CherryPickSettings()
    settings.output_dir = settings.output_dir.expanduser().resolve()
    return settings


__all__ = [
    "CherryPickSettings",
    "LedgerFormat",
    "RunConfig",
    "default_ledger_path",
    "get_settings",
]
