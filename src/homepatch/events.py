"""Progress events emitted while archives are applied or reverted.

Engines never print. Hosts pass an ``on_progress`` callable and render the
events however they like (the CLI prints them with rich).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class EventKind(str, Enum):
    ARCHIVE_STARTED = "archive-started"
    ARCHIVE_FINISHED = "archive-finished"
    ARCHIVE_FAILED = "archive-failed"
    ENTRY_APPLIED = "entry-applied"
    ENTRY_REVERTED = "entry-reverted"
    ENTRY_SKIPPED = "entry-skipped"
    ENTRY_FAILED = "entry-failed"


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    archive: str
    message: str
    relative_path: str | None = None
    index: int | None = None
    total: int | None = None


ProgressCallback = Callable[[ProgressEvent], None]


def _ignore(_: ProgressEvent) -> None:
    return None


def ensure_callback(callback: ProgressCallback | None) -> ProgressCallback:
    return callback if callback is not None else _ignore


__all__ = ["EventKind", "ProgressCallback", "ProgressEvent", "ensure_callback"]
