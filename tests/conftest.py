from __future__ import annotations

import sys
import zipfile
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

# Ensure the repository-local ``src`` directory is importable when the project is
# not installed as a package.
SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

ArchiveContent = Mapping[str, bytes | str] | Iterable[tuple[str, bytes | str]]


def build_archive(path: Path, files: ArchiveContent) -> Path:
    """Write a stored (uncompressed) zip with ``files`` in the given order."""

    items = files.items() if isinstance(files, Mapping) else files
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, content in items:
            data = content.encode("utf-8") if isinstance(content, str) else content
            archive.writestr(name, data)
    return path


def corrupt_entry(path: Path, marker: bytes) -> None:
    """Overwrite the stored bytes of the entry containing ``marker`` so its CRC fails."""

    raw = path.read_bytes()
    assert raw.count(marker) == 1
    path.write_bytes(raw.replace(marker, b"X" * len(marker)))


def snapshot(root: Path, skip: str = ".homepatch-backups") -> dict[str, bytes]:
    """Map every file under ``root`` (outside ``skip``) to its bytes."""

    files: dict[str, bytes] = {}
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if relative.parts and relative.parts[0] == skip:
            continue
        if path.is_file():
            files[relative.as_posix()] = path.read_bytes()
    return files


@pytest.fixture
def target_root(tmp_path: Path) -> Path:
    root = tmp_path / "home"
    root.mkdir()
    return root


@pytest.fixture
def archives_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "archives"
    directory.mkdir()
    return directory


@pytest.fixture
def make_archive(archives_dir: Path):
    def _make(name: str, files: ArchiveContent) -> Path:
        return build_archive(archives_dir / name, files)

    return _make


@pytest.fixture
def ticking_clock():
    """Clock advancing one second per call so every apply gets its own session."""

    start = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
    calls = {"count": 0}

    def _clock() -> datetime:
        calls["count"] += 1
        return start + timedelta(seconds=calls["count"])

    return _clock


@pytest.fixture
def cli_runner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    """CLI runner with an isolated config home and no inherited HOMEPATCH_* settings."""

    monkeypatch.setenv("HOMEPATCH_CONFIG_HOME", str(tmp_path / "config-home"))
    for name in ("HOMEPATCH_TARGET_ROOT", "HOMEPATCH_BACKUP_DIR_NAME", "HOMEPATCH_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()
