"""YAML export of batch reports.

Hosts that drive ``homepatch`` from another tool (an editor plugin, a CI
job) read the report file instead of scraping console output. The document
keeps a stable key order:

``operation``
    ``apply`` or ``revert``.
``generated_at``
    UTC timestamp, second precision, ``Z`` suffix.
``succeeded`` / ``failed``
    Archive counts.
``archives``
    One mapping per archive in processing order.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from ..batch import BatchReport


class ReportFormatError(ValueError):
    """Raised when a report file does not have the expected structure."""


def _now() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def write_batch_report(report: BatchReport, path: Path) -> Path:
    """Write ``report`` to ``path`` as YAML and return the path."""

    payload = report.to_dict()
    document: dict[str, Any] = {
        "operation": payload["operation"],
        "generated_at": _now(),
        "target_root": payload["target_root"],
        "succeeded": payload["succeeded"],
        "failed": payload["failed"],
        "archives": payload["archives"],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        yaml.safe_dump(document, stream, sort_keys=False)
    return path


def load_batch_report(path: Path) -> Mapping[str, Any]:
    """Load a report written by :func:`write_batch_report`."""

    with path.open("r", encoding="utf-8") as stream:
        payload = yaml.safe_load(stream)

    if not isinstance(payload, Mapping):
        raise ReportFormatError("Report root must be a mapping")
    archives = payload.get("archives")
    if not isinstance(archives, list):
        raise ReportFormatError("Report must include an 'archives' list")
    return payload


__all__ = ["ReportFormatError", "load_batch_report", "write_batch_report"]
