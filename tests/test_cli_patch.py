from __future__ import annotations

from pathlib import Path

import yaml

from homepatch.cli import app, patch

from conftest import build_archive, snapshot


def _archives(archives_dir: Path) -> tuple[Path, Path, Path]:
    first = build_archive(archives_dir / "patch-1.zip", {"replacement/one.txt": "1"})
    broken = archives_dir / "patch-2.zip"
    broken.write_bytes(b"corrupt")
    third = build_archive(archives_dir / "patch-3.zip", {"replacement/three.txt": "3"})
    return first, broken, third


def test_apply_and_revert_round_trip(cli_runner, target_root, archives_dir):
    before = snapshot(target_root)
    build_archive(archives_dir / "patch-1.zip", {"replacement/conf/a.ini": "a"})

    result = cli_runner.invoke(app, ["apply", str(archives_dir), "--home", str(target_root)])

    assert result.exit_code == 0, result.stdout
    assert "Applied: 1 succeeded, 0 failed" in result.stdout
    assert (target_root / "conf" / "a.ini").read_bytes() == b"a"

    result = cli_runner.invoke(app, ["revert", str(archives_dir), "--home", str(target_root)])

    assert result.exit_code == 0, result.stdout
    assert "Reverted: 1 succeeded, 0 failed" in result.stdout
    assert snapshot(target_root) == before


def test_apply_reports_failures_and_exits_non_zero(cli_runner, target_root, archives_dir, tmp_path):
    _archives(archives_dir)
    report_path = tmp_path / "report.yaml"

    result = cli_runner.invoke(
        app,
        ["apply", str(archives_dir), "--home", str(target_root), "--report", str(report_path)],
    )

    assert result.exit_code == 1
    assert "Applied: 2 succeeded, 1 failed" in result.stdout
    assert "- patch-2.zip: [ArchiveUnreadable]" in result.stdout
    assert (target_root / "one.txt").exists()
    assert (target_root / "three.txt").exists()
    payload = yaml.safe_load(report_path.read_text(encoding="utf-8"))
    assert payload["failed"] == 1


def test_home_from_environment(cli_runner, monkeypatch, target_root, archives_dir):
    build_archive(archives_dir / "patch-1.zip", {"replacement/x.txt": "x"})
    monkeypatch.setenv("HOMEPATCH_TARGET_ROOT", str(target_root))

    result = cli_runner.invoke(app, ["apply", str(archives_dir)])

    assert result.exit_code == 0, result.stdout
    assert (target_root / "x.txt").exists()


def test_missing_home_is_a_usage_error(cli_runner, archives_dir):
    build_archive(archives_dir / "patch-1.zip", {"replacement/x.txt": "x"})

    result = cli_runner.invoke(app, ["apply", str(archives_dir)])

    assert result.exit_code == 2


def test_no_matching_archives_is_a_usage_error(cli_runner, target_root, archives_dir):
    result = cli_runner.invoke(app, ["apply", str(archives_dir), "--home", str(target_root)])

    assert result.exit_code == 2


def test_pattern_option(cli_runner, target_root, archives_dir):
    build_archive(archives_dir / "hotfix-7.zip", {"replacement/h.txt": "h"})

    result = cli_runner.invoke(
        app,
        ["apply", str(archives_dir), "--home", str(target_root), "--pattern", "hotfix-*.zip"],
    )

    assert result.exit_code == 0, result.stdout
    assert (target_root / "h.txt").exists()


def test_history_lists_sessions(cli_runner, target_root, archives_dir):
    build_archive(archives_dir / "patch-1.zip", {"replacement/x.txt": "x"})
    cli_runner.invoke(app, ["apply", str(archives_dir), "--home", str(target_root)])

    result = cli_runner.invoke(app, ["history", "--home", str(target_root)])

    assert result.exit_code == 0, result.stdout
    assert "patch-1" in result.stdout
    assert "1 file(s)" in result.stdout

    result = cli_runner.invoke(
        app, ["history", "--home", str(target_root), "--archive", "patch-9"]
    )
    assert "No apply records found." in result.stdout


def test_invalid_home_prints_friendly_error(cli_runner, tmp_path, archives_dir):
    build_archive(archives_dir / "patch-1.zip", {"replacement/x.txt": "x"})

    result = cli_runner.invoke(
        app, ["apply", str(archives_dir), "--home", str(tmp_path / "missing")]
    )

    assert result.exit_code == 1
    assert "[InvalidTargetRoot]" in result.stdout


def test_unexpected_error_is_rendered(cli_runner, monkeypatch, target_root, archives_dir):
    build_archive(archives_dir / "patch-1.zip", {"replacement/x.txt": "x"})

    def boom(self, paths, root):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(patch.BatchCoordinator, "apply_all", boom)

    result = cli_runner.invoke(app, ["apply", str(archives_dir), "--home", str(target_root)])

    assert result.exit_code == 1
    assert "Unexpected failure: kaboom" in result.stdout
    assert "Traceback" not in result.stdout


def test_patch_module_exposes_register():
    assert callable(patch.register)
