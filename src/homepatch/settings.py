"""Runtime settings sourced from ``HOMEPATCH_*`` environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .backup import DEFAULT_BACKUP_DIR_NAME
from .batch import DEFAULT_ARCHIVE_PATTERN, DEFAULT_EXCLUDED_DIRS


class Settings(BaseSettings):
    """Knobs that rarely change between runs.

    Lists are read as JSON, e.g. ``HOMEPATCH_EXCLUDED_DIRS='["build", ".git"]'``.
    """

    model_config = SettingsConfigDict(env_prefix="HOMEPATCH_", extra="ignore")

    target_root: str | None = Field(
        default=None,
        description="Installation directory used when --home is not passed",
    )
    backup_dir_name: str = Field(
        default=DEFAULT_BACKUP_DIR_NAME,
        description="Directory under the target root holding backups and manifests",
    )
    archive_pattern: str = Field(
        default=DEFAULT_ARCHIVE_PATTERN,
        description="Glob used when a directory of archives is given",
    )
    excluded_dirs: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_EXCLUDED_DIRS),
        description="Directory names skipped while searching for archives",
    )
    log_level: str = Field(default="WARNING", description="Level for homepatch loggers")


def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
