from __future__ import annotations

from datetime import datetime
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field


class ManifestEntry(BaseModel):
    """One file touched by an apply."""

    relative_path: str = Field(alias="relativePath")
    target_path: str = Field(alias="targetPath")
    existed_before: bool = Field(alias="existedBefore")
    sha256_before: str | None = Field(default=None, alias="sha256Before")
    sha256_patch: str = Field(alias="sha256Patch")
    sha256_after: str = Field(alias="sha256After")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Manifest(BaseModel):
    """Durable record of a single apply; never rewritten once persisted."""

    archive_file_name: str = Field(alias="archiveFileName")
    applied_at: datetime = Field(alias="appliedAt")
    target_root: str = Field(alias="targetRoot")
    entries: list[ManifestEntry] = Field(default_factory=list)
    created_directories: list[str] = Field(default_factory=list, alias="createdDirectories")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def archive_name(self) -> str:
        return PurePath(self.archive_file_name).stem

    def entry_for(self, relative_path: str) -> ManifestEntry | None:
        for entry in self.entries:
            if entry.relative_path == relative_path:
                return entry
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
