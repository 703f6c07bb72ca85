"""Pre-overwrite backups and manifest storage.

Every apply gets its own session directory beneath the backups directory::

    <target_root>/.homepatch-backups/<archive_name>_<YYYY-MM-DDTHH-MM-SS-mmmZ>/
        manifest.json
        <relative/path/of/each/overwritten/file>

The session directory is created before the first write; ``manifest.json`` is
only written once the whole archive has been processed, so a session without
it belongs to an interrupted apply and is never used for a revert.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from .archive.paths import resolve_target
from .errors import (
    BackupFailedError,
    BackupMissingError,
    ManifestInvalidError,
    ManifestNotFoundError,
    PathRejectedError,
)
from .hashing import digest_file
from .models.manifest import Manifest

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR_NAME = ".homepatch-backups"
MANIFEST_FILE_NAME = "manifest.json"
_MANIFEST_TMP_NAME = "manifest.tmp"
_RESERVED_NAMES = frozenset({MANIFEST_FILE_NAME, _MANIFEST_TMP_NAME})

_SESSION_RE = re.compile(r"^(?P<name>.+)_(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)$")


def normalize_timestamp(moment: datetime) -> datetime:
    """Return ``moment`` in UTC truncated to millisecond precision."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    moment = moment.astimezone(UTC)
    return moment.replace(microsecond=(moment.microsecond // 1000) * 1000)


def format_stamp(moment: datetime) -> str:
    moment = normalize_timestamp(moment)
    return f"{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z"


def parse_stamp(value: str) -> datetime:
    head, millis = value.rstrip("Z").rsplit("-", 1)
    parsed = datetime.strptime(head, "%Y-%m-%dT%H-%M-%S").replace(tzinfo=UTC)
    return parsed + timedelta(milliseconds=int(millis))


def parse_session_name(name: str) -> tuple[str, datetime] | None:
    """Split a session directory name into ``(archive_name, applied_at)``."""

    match = _SESSION_RE.match(name)
    if not match:
        return None
    try:
        return match.group("name"), parse_stamp(match.group("stamp"))
    except ValueError:
        return None


@dataclass(frozen=True)
class BackupSession:
    """Backup directory of one apply of one archive."""

    archive_name: str
    applied_at: datetime
    root: Path

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILE_NAME

    @property
    def is_complete(self) -> bool:
        return self.manifest_path.is_file()

    def backup_path(self, relative_path: str) -> Path:
        return resolve_target(self.root, relative_path)

    def save(
        self,
        relative_path: str,
        source_file: str | os.PathLike[str],
        *,
        expected_digest: str | None = None,
    ) -> Path:
        """Copy ``source_file`` into the session at ``relative_path``.

        When ``expected_digest`` is given the copy is re-hashed and must match,
        otherwise :class:`BackupFailedError` is raised.
        """

        if relative_path in _RESERVED_NAMES:
            raise BackupFailedError(relative_path, "path collides with the manifest file")
        try:
            destination = self.backup_path(relative_path)
        except PathRejectedError as exc:
            raise BackupFailedError(relative_path, str(exc)) from exc
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_file, destination)
            copied_digest = digest_file(destination) if expected_digest is not None else None
        except OSError as exc:
            raise BackupFailedError(relative_path, str(exc)) from exc
        if expected_digest is not None and copied_digest != expected_digest:
            raise BackupFailedError(relative_path, "backup copy does not match the original")
        return destination

    def restore(self, relative_path: str) -> bytes:
        """Return the saved pre-apply bytes for ``relative_path``."""

        try:
            source = self.backup_path(relative_path)
        except PathRejectedError as exc:
            raise BackupMissingError(relative_path, str(exc)) from exc
        if not source.is_file():
            raise BackupMissingError(relative_path)
        try:
            return source.read_bytes()
        except OSError as exc:
            raise BackupMissingError(relative_path, str(exc)) from exc

    def write_manifest(self, manifest: Manifest) -> Path:
        if self.is_complete:
            raise FileExistsError(f"Manifest already written: {self.manifest_path}")
        tmp = self.root / _MANIFEST_TMP_NAME
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(manifest.to_json())
        tmp.replace(self.manifest_path)
        logger.info("Wrote manifest %s (%d entries)", self.manifest_path, len(manifest.entries))
        return self.manifest_path

    def read_manifest(self) -> Manifest:
        try:
            raw = self.manifest_path.read_text(encoding="utf-8")
            return Manifest.model_validate_json(raw)
        except (OSError, ValidationError, ValueError) as exc:
            raise ManifestInvalidError(self.manifest_path, str(exc)) from exc

    def discard(self) -> bool:
        """Remove an unfinished session together with any backups saved into it."""

        if self.is_complete:
            raise FileExistsError(f"Refusing to discard completed session {self.root}")
        try:
            shutil.rmtree(self.root)
        except OSError as exc:
            logger.warning("Could not remove backup session %s: %s", self.root, exc)
            return False
        logger.debug("Discarded backup session %s", self.root)
        return True


class BackupStore:
    """All backup sessions stored under a single directory."""

    def __init__(self, backups_dir: str | os.PathLike[str]) -> None:
        self.backups_dir = Path(backups_dir)

    @classmethod
    def for_target_root(
        cls, target_root: str | os.PathLike[str], dir_name: str = DEFAULT_BACKUP_DIR_NAME
    ) -> "BackupStore":
        return cls(Path(target_root) / dir_name)

    def backup_root(self, archive_name: str, timestamp: datetime) -> Path:
        return self.backups_dir / f"{archive_name}_{format_stamp(timestamp)}"

    def create_session(self, archive_name: str, timestamp: datetime) -> BackupSession:
        """Create a fresh session directory.

        Session names must stay unique, so a clash with an existing directory
        moves the timestamp forward one millisecond at a time.
        """

        moment = normalize_timestamp(timestamp)
        self.backups_dir.mkdir(parents=True, exist_ok=True)
        while True:
            root = self.backup_root(archive_name, moment)
            try:
                root.mkdir()
            except FileExistsError:
                moment += timedelta(milliseconds=1)
                continue
            logger.debug("Created backup session %s", root)
            return BackupSession(archive_name=archive_name, applied_at=moment, root=root)

    def sessions(self, archive_name: str | None = None) -> list[BackupSession]:
        """Return sessions oldest first, optionally limited to ``archive_name``."""

        if not self.backups_dir.is_dir():
            return []
        found: list[tuple[tuple[datetime, int, str], BackupSession]] = []
        for child in self.backups_dir.iterdir():
            if not child.is_dir():
                continue
            parsed = parse_session_name(child.name)
            if parsed is None:
                continue
            name, applied_at = parsed
            if archive_name is not None and name != archive_name:
                continue
            session = BackupSession(archive_name=name, applied_at=applied_at, root=child)
            created_ns = session.manifest_path.stat().st_mtime_ns if session.is_complete else 0
            found.append(((applied_at, created_ns, child.name), session))
        found.sort(key=lambda item: item[0])
        return [session for _, session in found]

    def find_latest_session(self, archive_name: str) -> BackupSession:
        """Return the newest session for ``archive_name`` that has a manifest."""

        completed = [s for s in self.sessions(archive_name) if s.is_complete]
        if not completed:
            raise ManifestNotFoundError(archive_name, self.backups_dir)
        return completed[-1]


__all__ = [
    "DEFAULT_BACKUP_DIR_NAME",
    "MANIFEST_FILE_NAME",
    "BackupSession",
    "BackupStore",
    "format_stamp",
    "normalize_timestamp",
    "parse_session_name",
    "parse_stamp",
]
