from __future__ import annotations

from pathlib import Path


class HomepatchError(Exception):
    """Base error for homepatch."""

    code = "HomepatchError"


class InvalidTargetRootError(HomepatchError):
    code = "InvalidTargetRoot"

    def __init__(self, target_root: str | Path, reason: str) -> None:
        super().__init__(f"Target root {target_root} is invalid: {reason}")
        self.target_root = Path(target_root)


class ArchiveUnreadableError(HomepatchError):
    code = "ArchiveUnreadable"

    def __init__(self, archive_path: str | Path, reason: str) -> None:
        super().__init__(f"Archive {archive_path} is unreadable: {reason}")
        self.archive_path = Path(archive_path)


class NoReplacementContentError(HomepatchError):
    code = "NoReplacementContent"

    def __init__(self, archive_path: str | Path) -> None:
        super().__init__(f"Archive {archive_path} has no replacement/ content")
        self.archive_path = Path(archive_path)


class PathRejectedError(HomepatchError):
    code = "PathRejected"

    def __init__(self, relative_path: str, reason: str) -> None:
        super().__init__(f"Rejected path {relative_path!r}: {reason}")
        self.relative_path = relative_path


class BackupFailedError(HomepatchError):
    code = "BackupFailed"

    def __init__(self, relative_path: str, reason: str) -> None:
        super().__init__(f"Backup of {relative_path} failed: {reason}")
        self.relative_path = relative_path


class NothingAppliedError(HomepatchError):
    code = "NothingApplied"

    def __init__(self, archive_path: str | Path, details: list[str] | None = None) -> None:
        message = f"Archive {archive_path} installed no files"
        if details:
            message += ": " + "; ".join(details)
        super().__init__(message)
        self.archive_path = Path(archive_path)
        self.details = list(details or [])


class ManifestNotFoundError(HomepatchError):
    code = "ManifestNotFound"

    def __init__(self, archive_name: str, backups_dir: str | Path) -> None:
        super().__init__(f"No completed apply record for {archive_name!r} under {backups_dir}")
        self.archive_name = archive_name


class ManifestInvalidError(HomepatchError):
    code = "ManifestInvalid"

    def __init__(self, manifest_path: str | Path, reason: str) -> None:
        super().__init__(f"Manifest {manifest_path} cannot be read: {reason}")
        self.manifest_path = Path(manifest_path)


class ModifiedSinceApplyError(HomepatchError):
    code = "ModifiedSinceApply"

    def __init__(self, relative_path: str) -> None:
        super().__init__(f"{relative_path} was modified after the patch was applied")
        self.relative_path = relative_path


class BackupMissingError(HomepatchError):
    code = "BackupMissing"

    def __init__(self, relative_path: str, reason: str = "no backup copy found") -> None:
        super().__init__(f"Cannot restore {relative_path}: {reason}")
        self.relative_path = relative_path
