"""Zip-slip defence for archive-relative paths."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath, PureWindowsPath

from ..errors import InvalidTargetRootError, PathRejectedError


def ensure_target_root(target_root: str | os.PathLike[str]) -> Path:
    """Return ``target_root`` as an absolute path, requiring an existing directory."""

    root = Path(os.path.abspath(target_root))
    if not root.exists():
        raise InvalidTargetRootError(root, "directory does not exist")
    if not root.is_dir():
        raise InvalidTargetRootError(root, "not a directory")
    return root


def resolve_target(root: str | os.PathLike[str], relative_path: str) -> Path:
    """Join ``relative_path`` onto ``root`` and return the absolute target path.

    ``..`` segments are allowed only while the joined path stays inside
    ``root``. A path that escapes the root, is absolute, carries a drive letter,
    resolves to the root itself, or leaves the root through a symbolic link is
    rejected with :class:`PathRejectedError`.
    """

    normalized = relative_path.replace("\\", "/")
    if not normalized.strip("/"):
        raise PathRejectedError(relative_path, "empty path")
    if PureWindowsPath(normalized).drive:
        raise PathRejectedError(relative_path, "drive-qualified path")

    base = os.path.abspath(root)
    candidate = os.path.normpath(os.path.join(base, normalized))
    try:
        relative = os.path.relpath(candidate, base)
    except ValueError as exc:
        raise PathRejectedError(relative_path, "escapes the target root") from exc

    if relative == os.curdir:
        raise PathRejectedError(relative_path, "resolves to the target root itself")
    if (
        relative == os.pardir
        or relative.startswith(os.pardir + os.sep)
        or os.path.isabs(relative)
    ):
        raise PathRejectedError(relative_path, "escapes the target root")

    real_base = os.path.realpath(base)
    real_candidate = os.path.realpath(candidate)
    if not _is_strict_descendant(real_candidate, real_base):
        raise PathRejectedError(relative_path, "escapes the target root through a symbolic link")

    return Path(candidate)


def relative_posix(root: str | os.PathLike[str], target: str | os.PathLike[str]) -> str:
    """Return ``target`` relative to ``root`` with forward-slash separators."""

    relative = os.path.relpath(os.path.abspath(target), os.path.abspath(root))
    return PurePosixPath(*Path(relative).parts).as_posix()


def is_within(path: str | os.PathLike[str], directory: str | os.PathLike[str]) -> bool:
    """Return ``True`` when ``path`` is ``directory`` or lies beneath it."""

    candidate = os.path.normpath(os.path.abspath(path))
    parent = os.path.normpath(os.path.abspath(directory))
    return candidate == parent or _is_strict_descendant(candidate, parent)


def _is_strict_descendant(candidate: str, parent: str) -> bool:
    try:
        common = os.path.commonpath([candidate, parent])
    except ValueError:
        return False
    return common == parent and candidate != parent


__all__ = ["ensure_target_root", "is_within", "relative_posix", "resolve_target"]
