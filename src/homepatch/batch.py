from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from .apply import ApplyEngine, ApplyResult
from .backup import DEFAULT_BACKUP_DIR_NAME
from .errors import HomepatchError
from .events import EventKind, ProgressCallback, ProgressEvent, ensure_callback
from .revert import RevertEngine, RevertReport

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_PATTERN = "patch*.zip"
DEFAULT_EXCLUDED_DIRS = frozenset({"node_modules", ".git", "target"})

_Result = TypeVar("_Result", ApplyResult, RevertReport)


def collect_archives(
    paths: Iterable[str | os.PathLike[str]],
    *,
    pattern: str = DEFAULT_ARCHIVE_PATTERN,
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> list[Path]:
    """Expand ``paths`` into the archive files to process.

    Directories are searched recursively for file names matching ``pattern``
    (case-insensitive) while skipping ``excluded_dirs`` and returned in path
    order. Anything else is passed through untouched so a missing or invalid
    file surfaces as a per-archive failure instead of disappearing from the
    batch.
    """

    excluded = frozenset(excluded_dirs)
    lowered = pattern.lower()
    archives: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if not path.is_dir():
            archives.append(path)
            continue
        found: list[Path] = []
        for current, dirnames, filenames in os.walk(path):
            dirnames[:] = sorted(d for d in dirnames if d not in excluded)
            for name in sorted(filenames):
                if fnmatch.fnmatchcase(name.lower(), lowered):
                    found.append(Path(current) / name)
        found.sort()
        if not found:
            logger.info("No archives matching %s under %s", pattern, path)
        archives.extend(found)
    return list(dict.fromkeys(archives))


@dataclass
class ArchiveOutcome:
    """What happened to one archive within a batch."""

    archive: Path
    ok: bool
    error_code: str | None = None
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    apply_result: ApplyResult | None = None
    revert_report: RevertReport | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "archive": str(self.archive),
            "ok": self.ok,
            "message": self.message,
        }
        if self.error_code:
            payload["error_code"] = self.error_code
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        if self.errors:
            payload["errors"] = list(self.errors)
        if self.apply_result is not None:
            payload["manifest"] = str(self.apply_result.manifest_path)
            payload["applied"] = self.apply_result.applied_count
        if self.revert_report is not None:
            payload["manifest"] = str(self.revert_report.manifest_path)
            payload["outcomes"] = self.revert_report.counts()
        return payload


@dataclass
class BatchReport:
    operation: str
    target_root: Path
    outcomes: list[ArchiveOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def error_messages(self) -> list[str]:
        """One line per failed archive plus one per entry-level error."""

        messages: list[str] = []
        for outcome in self.outcomes:
            name = outcome.archive.name
            if not outcome.ok:
                messages.append(f"{name}: [{outcome.error_code}] {outcome.message}")
            messages.extend(f"{name}: {error}" for error in outcome.errors)
        return messages

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "target_root": str(self.target_root),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "archives": [outcome.to_dict() for outcome in self.outcomes],
        }


class BatchCoordinator:
    """Apply or revert many archives one after another, isolating failures."""

    def __init__(
        self,
        *,
        backup_dir_name: str = DEFAULT_BACKUP_DIR_NAME,
        pattern: str = DEFAULT_ARCHIVE_PATTERN,
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
        on_progress: ProgressCallback | None = None,
        apply_engine: ApplyEngine | None = None,
        revert_engine: RevertEngine | None = None,
    ) -> None:
        self.pattern = pattern
        self.excluded_dirs = frozenset(excluded_dirs)
        self._emit = ensure_callback(on_progress)
        self.apply_engine = apply_engine or ApplyEngine(
            backup_dir_name=backup_dir_name, on_progress=on_progress
        )
        self.revert_engine = revert_engine or RevertEngine(
            backup_dir_name=backup_dir_name, on_progress=on_progress
        )

    def apply_all(
        self, paths: Iterable[str | os.PathLike[str]], target_root: str | os.PathLike[str]
    ) -> BatchReport:
        archives = self._collect(paths)
        return self._run("apply", archives, target_root, self.apply_engine.apply, _apply_outcome)

    def revert_all(
        self, paths: Iterable[str | os.PathLike[str]], target_root: str | os.PathLike[str]
    ) -> BatchReport:
        """Revert archives in reverse order so stacked patches unwind newest first."""

        archives = list(reversed(self._collect(paths)))
        return self._run(
            "revert", archives, target_root, self.revert_engine.revert, _revert_outcome
        )

    def _collect(self, paths: Iterable[str | os.PathLike[str]]) -> list[Path]:
        return collect_archives(paths, pattern=self.pattern, excluded_dirs=self.excluded_dirs)

    def _run(
        self,
        operation: str,
        archives: list[Path],
        target_root: str | os.PathLike[str],
        action: Callable[[Path, str | os.PathLike[str]], _Result],
        to_outcome: Callable[[Path, _Result], ArchiveOutcome],
    ) -> BatchReport:
        report = BatchReport(operation=operation, target_root=Path(target_root))
        total = len(archives)
        for index, archive in enumerate(archives, start=1):
            self._emit(
                ProgressEvent(
                    kind=EventKind.ARCHIVE_STARTED,
                    archive=archive.name,
                    message=f"Processing {archive.name} ({index}/{total})",
                    index=index,
                    total=total,
                )
            )
            try:
                outcome = to_outcome(archive, action(archive, target_root))
            except HomepatchError as exc:
                logger.error("%s %s failed: %s", operation, archive, exc)
                outcome = ArchiveOutcome(
                    archive=archive, ok=False, error_code=exc.code, message=str(exc)
                )
            except OSError as exc:
                logger.error("%s %s failed: %s", operation, archive, exc)
                outcome = ArchiveOutcome(
                    archive=archive, ok=False, error_code="IOError", message=str(exc)
                )
            except Exception as exc:
                logger.exception("Unexpected failure during %s of %s", operation, archive)
                outcome = ArchiveOutcome(
                    archive=archive,
                    ok=False,
                    error_code=type(exc).__name__,
                    message=f"Unexpected failure: {exc}",
                )
            report.outcomes.append(outcome)
            self._emit(
                ProgressEvent(
                    kind=EventKind.ARCHIVE_FINISHED if outcome.ok else EventKind.ARCHIVE_FAILED,
                    archive=archive.name,
                    message=outcome.message,
                    index=index,
                    total=total,
                )
            )
        logger.info(
            "%s finished: %d succeeded, %d failed", operation, report.succeeded, report.failed
        )
        return report


def _apply_outcome(archive: Path, result: ApplyResult) -> ArchiveOutcome:
    return ArchiveOutcome(
        archive=archive,
        ok=True,
        message=f"Applied {result.applied_count} file(s)",
        warnings=list(result.warnings),
        errors=list(result.errors),
        apply_result=result,
    )


def _revert_outcome(archive: Path, report: RevertReport) -> ArchiveOutcome:
    counts = report.counts()
    summary = ", ".join(f"{key} {value}" for key, value in sorted(counts.items()))
    return ArchiveOutcome(
        archive=archive,
        ok=True,
        message=f"Reverted ({summary})" if summary else "Nothing to revert",
        errors=report.problems,
        revert_report=report,
    )


__all__ = [
    "DEFAULT_ARCHIVE_PATTERN",
    "DEFAULT_EXCLUDED_DIRS",
    "ArchiveOutcome",
    "BatchCoordinator",
    "BatchReport",
    "collect_archives",
]
