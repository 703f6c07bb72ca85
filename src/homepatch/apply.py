"""Install the replacement entries of one archive onto a target root."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .archive.paths import ensure_target_root, is_within, relative_posix, resolve_target
from .archive.reader import ArchiveReader, ReplacementEntry
from .backup import DEFAULT_BACKUP_DIR_NAME, BackupSession, BackupStore
from .errors import (
    BackupFailedError,
    NothingAppliedError,
    PathRejectedError,
)
from .events import EventKind, ProgressCallback, ProgressEvent, ensure_callback
from .hashing import digest_bytes, digest_file
from .models.manifest import Manifest, ManifestEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ApplyResult:
    archive_path: Path
    manifest: Manifest
    manifest_path: Path
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return len(self.manifest.entries)


@dataclass
class _ApplyState:
    entries: dict[str, ManifestEntry] = field(default_factory=dict)
    created_directories: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    keep_session: bool = False


class ApplyEngine:
    """Apply one archive at a time, backing up every file before it is overwritten."""

    def __init__(
        self,
        *,
        backup_dir_name: str = DEFAULT_BACKUP_DIR_NAME,
        on_progress: ProgressCallback | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.backup_dir_name = backup_dir_name
        self._emit = ensure_callback(on_progress)
        self._clock = clock or _utcnow

    def apply(
        self, archive_path: str | os.PathLike[str], target_root: str | os.PathLike[str]
    ) -> ApplyResult:
        """Install ``archive_path`` onto ``target_root`` and persist its manifest.

        Entries are processed in archive order. Rejected paths and failed
        backups skip only the affected entry. An archive that installs nothing
        raises :class:`NothingAppliedError` and leaves no backup session behind.
        If processing stops early, the entries already written are recorded in
        a manifest before the error propagates.

        Target-root files named ``manifest.json`` or ``manifest.tmp`` cannot be
        backed up (those names are reserved inside the session directory) and
        always fail with :class:`BackupFailedError`.
        """

        root = ensure_target_root(target_root)
        archive = Path(archive_path)
        store = BackupStore.for_target_root(root, self.backup_dir_name)
        state = _ApplyState()

        with ArchiveReader.open(archive) as reader:
            entries = reader.list_replacement_entries()
            session = store.create_session(reader.stem, self._clock())
            logger.info(
                "Applying %s to %s (%d entries, backups in %s)",
                archive.name,
                root,
                len(entries),
                session.root,
            )
            try:
                for index, entry in enumerate(entries, start=1):
                    self._apply_entry(
                        reader, entry, root, store, session, state, index, len(entries)
                    )
            except BaseException:
                # Keep what was already written revertible before giving up.
                if state.entries:
                    session.write_manifest(self._build_manifest(archive, root, session, state))
                else:
                    self._discard(session, state)
                raise

        if not state.entries:
            self._discard(session, state)
            raise NothingAppliedError(archive, state.errors or state.warnings)

        manifest = self._build_manifest(archive, root, session, state)
        manifest_path = session.write_manifest(manifest)
        return ApplyResult(
            archive_path=archive,
            manifest=manifest,
            manifest_path=manifest_path,
            warnings=state.warnings,
            errors=state.errors,
        )

    def _apply_entry(
        self,
        reader: ArchiveReader,
        entry: ReplacementEntry,
        root: Path,
        store: BackupStore,
        session: BackupSession,
        state: _ApplyState,
        index: int,
        total: int,
    ) -> None:
        archive_name = reader.path.name
        try:
            target = resolve_target(root, entry.relative_path)
            if is_within(target, store.backups_dir):
                raise PathRejectedError(entry.relative_path, "targets the backup directory")
        except PathRejectedError as exc:
            logger.warning("%s: %s", archive_name, exc)
            state.warnings.append(str(exc))
            self._event(
                EventKind.ENTRY_SKIPPED, archive_name, str(exc), entry.relative_path, index, total
            )
            return

        relative = relative_posix(root, target)
        if target.is_dir():
            message = f"Cannot overwrite directory {relative}"
            self._fail(state, archive_name, message, relative, index, total)
            return

        previous = state.entries.get(relative)
        if previous is not None:
            # Same target written twice: keep the state captured before the first write.
            existed_before = previous.existed_before
            prior_digest = previous.sha256_before
        else:
            try:
                existed_before = target.is_file()
                prior_digest = digest_file(target) if existed_before else None
                if existed_before:
                    session.save(relative, target, expected_digest=prior_digest)
            except OSError as exc:
                error = BackupFailedError(relative, str(exc))
                self._fail(state, archive_name, str(error), relative, index, total)
                return
            except BackupFailedError as exc:
                self._fail(state, archive_name, str(exc), relative, index, total)
                return

        data = reader.read_entry(entry.entry_name)
        patch_digest = digest_bytes(data)
        try:
            state.created_directories.extend(_make_parents(target.parent, root))
        except OSError as exc:
            message = f"Cannot create the parent directory of {relative}: {exc}"
            self._fail(state, archive_name, message, relative, index, total)
            return
        try:
            target.write_bytes(data)
        except OSError as exc:
            message = f"Failed to write {relative}: {exc}"
            if existed_before:
                # The target may be truncated; its backup is the only intact copy.
                state.keep_session = True
                message += f" (original saved in {session.root})"
            self._fail(state, archive_name, message, relative, index, total)
            return

        try:
            post_digest = digest_file(target) or ""
        except OSError as exc:
            post_digest = ""
            logger.warning("%s: cannot re-read %s: %s", archive_name, relative, exc)
        if post_digest != patch_digest:
            warning = f"{relative}: content on disk does not match the archive after writing"
            logger.warning("%s: %s", archive_name, warning)
            state.warnings.append(warning)

        state.entries.pop(relative, None)
        state.entries[relative] = ManifestEntry(
            relative_path=relative,
            target_path=str(target),
            existed_before=existed_before,
            sha256_before=prior_digest,
            sha256_patch=patch_digest,
            sha256_after=post_digest,
        )
        verb = "Replaced" if existed_before else "Created"
        self._event(
            EventKind.ENTRY_APPLIED, archive_name, f"{verb} {relative}", relative, index, total
        )

    @staticmethod
    def _discard(session: BackupSession, state: _ApplyState) -> None:
        if state.keep_session:
            logger.warning("Keeping backups in %s after a failed write", session.root)
            return
        session.discard()

    def _fail(
        self,
        state: _ApplyState,
        archive_name: str,
        message: str,
        relative: str,
        index: int,
        total: int,
    ) -> None:
        logger.error("%s: %s", archive_name, message)
        state.errors.append(message)
        self._event(EventKind.ENTRY_FAILED, archive_name, message, relative, index, total)

    def _event(
        self,
        kind: EventKind,
        archive_name: str,
        message: str,
        relative: str | None,
        index: int,
        total: int,
    ) -> None:
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

    @staticmethod
    def _build_manifest(
        archive: Path, root: Path, session: BackupSession, state: _ApplyState
    ) -> Manifest:
        return Manifest(
            archive_file_name=archive.name,
            applied_at=session.applied_at,
            target_root=str(root),
            entries=list(state.entries.values()),
            created_directories=list(dict.fromkeys(state.created_directories)),
        )


def _make_parents(directory: Path, root: Path) -> list[str]:
    """Create ``directory`` and return the root-relative paths it had to create."""

    missing: list[Path] = []
    current = directory
    while current != root and not current.exists() and is_within(current, root):
        missing.append(current)
        current = current.parent
    directory.mkdir(parents=True, exist_ok=True)
    return [relative_posix(root, path) for path in reversed(missing)]


__all__ = ["ApplyEngine", "ApplyResult"]
