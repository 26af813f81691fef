"""Relocator configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AUDIO_EXTENSIONS, MAX_PATH_LENGTH, PolicyKind


class RelocatorConfig(BaseSettings):
    """All relocator configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Directories --
    source_dir: Path | None = None
    dest_dir: Path | None = None
    backup_dir: Path | None = None
    log_dir: Path = Path.home() / ".audio-relocator" / "logs"

    # -- Name rewriting --
    replace_terms_file: Path | None = None
    append_terms_file: Path | None = None
    rename_from_tags: bool = False

    # -- Duplicate detection --
    duplicate_check: bool = True
    similarity_mode: int = Field(default=80, ge=1, le=100)
    transitive_grouping: bool = False
    quality_selection: bool = False
    probe_bitrate: bool = False

    # -- Conflicts --
    conflict_policy: PolicyKind = PolicyKind.SKIP

    # -- Batching / memory --
    batch_size_mb: int = Field(default=300, ge=10, le=1000)
    memory_threshold_mb: int = Field(default=300, ge=1)
    flush_pause_ms: int = Field(default=100, ge=0)

    # -- Moves --
    move_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=500, ge=0)
    max_path_length: int = Field(default=MAX_PATH_LENGTH, ge=32)

    # -- Behavior --
    extensions: list[str] = sorted(AUDIO_EXTENSIONS)
    dry_run: bool = False
    verbose: bool = False
    log_level: str = "INFO"

    @property
    def batch_bytes(self) -> int:
        return self.batch_size_mb * 1024 * 1024

    @property
    def memory_threshold_bytes(self) -> int:
        return self.memory_threshold_mb * 1024 * 1024

    @property
    def normalized_extensions(self) -> frozenset[str]:
        """Extensions lowercased without a leading dot."""
        return frozenset(e.lower().lstrip(".") for e in self.extensions if e.strip())

    def setup_logging(self) -> None:
        """Configure loguru for the relocator. verbose forces DEBUG on stderr."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<12} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level="DEBUG" if self.verbose else self.log_level.upper(),
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "relocator.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            errors="backslashreplace",
            filter=_default_extra,
        )
