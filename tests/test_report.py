"""Tests for the YAML batch report export."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from homepatch.batch import BatchCoordinator
from homepatch.filesystem.report import ReportFormatError, load_batch_report, write_batch_report

from conftest import build_archive


def test_write_and_load_report(tmp_path: Path, target_root: Path):
    good = build_archive(tmp_path / "in" / "patch-1.zip", {"replacement/a.txt": "a"})
    bad = tmp_path / "in" / "patch-2.zip"
    bad.write_bytes(b"junk")
    report = BatchCoordinator().apply_all([good, bad], target_root)

    path = write_batch_report(report, tmp_path / "out" / "report.yaml")
    payload = load_batch_report(path)

    assert list(payload)[:2] == ["operation", "generated_at"]
    assert payload["operation"] == "apply"
    assert str(payload["generated_at"]).endswith("Z")
    assert (payload["succeeded"], payload["failed"]) == (1, 1)
    first, second = payload["archives"]
    assert first["ok"] is True and first["applied"] == 1
    assert second["error_code"] == "ArchiveUnreadable"


def test_load_rejects_unexpected_documents(tmp_path: Path):
    path = tmp_path / "report.yaml"
    path.write_text(yaml.safe_dump(["not", "a", "mapping"]), encoding="utf-8")
    with pytest.raises(ReportFormatError):
        load_batch_report(path)

    path.write_text(yaml.safe_dump({"operation": "apply"}), encoding="utf-8")
    with pytest.raises(ReportFormatError):
        load_batch_report(path)
