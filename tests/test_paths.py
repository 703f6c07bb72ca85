from __future__ import annotations

import os
from pathlib import Path

import pytest

from homepatch.archive.paths import ensure_target_root, is_within, relative_posix, resolve_target
from homepatch.errors import InvalidTargetRootError, PathRejectedError


def test_resolve_target_joins_relative_path(tmp_path: Path):
    assert resolve_target(tmp_path, "bin/tool.sh") == tmp_path / "bin" / "tool.sh"


def test_resolve_target_allows_dotdot_that_stays_inside(tmp_path: Path):
    assert resolve_target(tmp_path, "lib/../conf/app.ini") == tmp_path / "conf" / "app.ini"


def test_resolve_target_normalizes_backslashes(tmp_path: Path):
    assert resolve_target(tmp_path, "conf\\app.ini") == tmp_path / "conf" / "app.ini"


@pytest.mark.parametrize(
    "relative",
    [
        "../outside.txt",
        "../../etc/passwd",
        "lib/../../outside.txt",
        "..\\..\\outside.txt",
        "/etc/passwd",
        "C:/Windows/system.ini",
        "",
        ".",
        "lib/..",
    ],
)
def test_resolve_target_rejects_escapes(tmp_path: Path, relative: str):
    with pytest.raises(PathRejectedError) as excinfo:
        resolve_target(tmp_path / "root", relative)
    assert excinfo.value.relative_path == relative
    assert excinfo.value.code == "PathRejected"


def test_resolve_target_rejects_symlink_escape(tmp_path: Path):
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    try:
        os.symlink(outside, root / "link", target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks are not available")

    with pytest.raises(PathRejectedError):
        resolve_target(root, "link/file.txt")


def test_ensure_target_root_requires_existing_directory(tmp_path: Path):
    assert ensure_target_root(tmp_path) == tmp_path.absolute()

    with pytest.raises(InvalidTargetRootError):
        ensure_target_root(tmp_path / "missing")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")
    with pytest.raises(InvalidTargetRootError):
        ensure_target_root(file_path)


def test_relative_posix_and_is_within(tmp_path: Path):
    target = tmp_path / "a" / "b.txt"

    assert relative_posix(tmp_path, target) == "a/b.txt"
    assert is_within(target, tmp_path)
    assert is_within(tmp_path, tmp_path)
    assert not is_within(tmp_path.parent, tmp_path)
