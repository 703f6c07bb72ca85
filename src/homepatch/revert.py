"""Undo an apply using its most recent manifest and backup session."""

from __future__ import annotations

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .archive.paths import ensure_target_root, is_within, relative_posix, resolve_target
from .archive.reader import ArchiveReader
from .backup import DEFAULT_BACKUP_DIR_NAME, BackupSession, BackupStore
from .errors import BackupMissingError, ModifiedSinceApplyError, PathRejectedError
from .events import EventKind, ProgressCallback, ProgressEvent, ensure_callback
from .hashing import digest_bytes, digest_file
from .models.manifest import Manifest, ManifestEntry

logger = logging.getLogger(__name__)


class RevertOutcome(str, Enum):
    RESTORED = "restored"
    DELETED = "deleted"
    SKIPPED_MODIFIED = "skippedModified"
    SKIPPED_MISSING_BACKUP = "skippedMissingBackup"
    SKIPPED_NOT_RECORDED = "skippedNotRecorded"
    SKIPPED_REJECTED = "skippedRejected"
    FAILED = "failed"


_PROBLEM_OUTCOMES = frozenset(
    {
        RevertOutcome.SKIPPED_MODIFIED,
        RevertOutcome.SKIPPED_MISSING_BACKUP,
        RevertOutcome.FAILED,
    }
)


@dataclass(frozen=True)
class RevertEntryResult:
    relative_path: str
    outcome: RevertOutcome
    detail: str | None = None


@dataclass
class RevertReport:
    archive_path: Path
    manifest_path: Path
    entries: list[RevertEntryResult] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return dict(Counter(result.outcome.value for result in self.entries))

    def by_outcome(self, outcome: RevertOutcome) -> list[RevertEntryResult]:
        return [result for result in self.entries if result.outcome is outcome]

    @property
    def problems(self) -> list[str]:
        """Human readable lines for every entry that was left as is or failed."""

        return [
            result.detail or f"{result.relative_path}: {result.outcome.value}"
            for result in self.entries
            if result.outcome in _PROBLEM_OUTCOMES
        ]


class RevertEngine:
    """Restore the files touched by the latest apply of an archive.

    The archive, not the manifest, decides what the patch installed: each
    entry's digest is recomputed and a file whose current content differs is
    never touched.
    """

    def __init__(
        self,
        *,
        backup_dir_name: str = DEFAULT_BACKUP_DIR_NAME,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.backup_dir_name = backup_dir_name
        self._emit = ensure_callback(on_progress)

    def revert(
        self, archive_path: str | os.PathLike[str], target_root: str | os.PathLike[str]
    ) -> RevertReport:
        root = ensure_target_root(target_root)
        archive = Path(archive_path)
        store = BackupStore.for_target_root(root, self.backup_dir_name)

        with ArchiveReader.open(archive) as reader:
            entries = reader.list_replacement_entries()
            session = store.find_latest_session(reader.stem)
            manifest = session.read_manifest()
            logger.info("Reverting %s using %s", archive.name, session.manifest_path)

            # Last entry for a target wins, mirroring apply.
            planned: dict[str, tuple[str, Path]] = {}
            report = RevertReport(archive_path=archive, manifest_path=session.manifest_path)
            for entry in entries:
                try:
                    target = resolve_target(root, entry.relative_path)
                    if is_within(target, store.backups_dir):
                        raise PathRejectedError(entry.relative_path, "targets the backup directory")
                except PathRejectedError as exc:
                    self._record(
                        report,
                        archive.name,
                        entry.relative_path,
                        RevertOutcome.SKIPPED_REJECTED,
                        str(exc),
                    )
                    continue
                relative = relative_posix(root, target)
                planned.pop(relative, None)
                planned[relative] = (entry.entry_name, target)

            total = len(planned)
            for index, (relative, (entry_name, target)) in enumerate(planned.items(), start=1):
                patch_digest = digest_bytes(reader.read_entry(entry_name))
                recorded = manifest.entry_for(relative)
                if recorded is None:
                    self._record(
                        report,
                        archive.name,
                        relative,
                        RevertOutcome.SKIPPED_NOT_RECORDED,
                        f"{relative}: not installed by the recorded apply",
                        index,
                        total,
                    )
                    continue
                outcome, detail = self._revert_entry(target, session, recorded, patch_digest)
                self._record(report, archive.name, relative, outcome, detail, index, total)

        _remove_created_directories(root, manifest)
        return report

    def _revert_entry(
        self,
        target: Path,
        session: BackupSession,
        recorded: ManifestEntry,
        patch_digest: str,
    ) -> tuple[RevertOutcome, str | None]:
        relative = recorded.relative_path

        try:
            current = digest_file(target)
            if current is None:
                if not recorded.existed_before:
                    return RevertOutcome.DELETED, None
                return self._restore(session, recorded, target)

            if current != patch_digest:
                if recorded.existed_before and current == recorded.sha256_before:
                    return RevertOutcome.RESTORED, None
                raise ModifiedSinceApplyError(relative)

            if recorded.existed_before:
                return self._restore(session, recorded, target)

            target.unlink()
            return RevertOutcome.DELETED, None
        except ModifiedSinceApplyError as exc:
            logger.warning("%s", exc)
            return RevertOutcome.SKIPPED_MODIFIED, str(exc)
        except BackupMissingError as exc:
            logger.error("%s", exc)
            return RevertOutcome.SKIPPED_MISSING_BACKUP, str(exc)
        except OSError as exc:
            logger.error("Failed to revert %s: %s", relative, exc)
            return RevertOutcome.FAILED, f"{relative}: {exc}"

    @staticmethod
    def _restore(
        session: BackupSession, recorded: ManifestEntry, target: Path
    ) -> tuple[RevertOutcome, str | None]:
        data = session.restore(recorded.relative_path)
        if recorded.sha256_before and digest_bytes(data) != recorded.sha256_before:
            raise BackupMissingError(recorded.relative_path, "backup copy is corrupt")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return RevertOutcome.RESTORED, None

    def _record(
        self,
        report: RevertReport,
        archive_name: str,
        relative: str,
        outcome: RevertOutcome,
        detail: str | None,
        index: int | None = None,
        total: int | None = None,
    ) -> None:
        report.entries.append(
            RevertEntryResult(relative_path=relative, outcome=outcome, detail=detail)
        )
        if outcome in (RevertOutcome.RESTORED, RevertOutcome.DELETED):
            kind = EventKind.ENTRY_REVERTED
            message = f"{outcome.value.capitalize()} {relative}"
        elif outcome is RevertOutcome.FAILED:
            kind = EventKind.ENTRY_FAILED
            message = detail or relative
        else:
            kind = EventKind.ENTRY_SKIPPED
            message = detail or f"{relative}: {outcome.value}"
        self._emit(
            ProgressEvent(
                kind=kind,
                archive=archive_name,
                message=message,
                relative_path=relative,
                index=index,
                total=total,
            )
        )


def _remove_created_directories(root: Path, manifest: Manifest) -> None:
    """Remove directories the apply created, deepest first, once they are empty."""

    candidates = sorted(
        manifest.created_directories, key=lambda rel: rel.count("/"), reverse=True
    )
    for relative in candidates:
        try:
            directory = resolve_target(root, relative)
        except PathRejectedError:
            continue
        try:
            directory.rmdir()
        except OSError:
            continue
        logger.debug("Removed empty directory %s", directory)


__all__ = ["RevertEngine", "RevertEntryResult", "RevertOutcome", "RevertReport"]
