"""SHA-256 content digests used for backup bookkeeping and revert checks."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

CHUNK_SIZE = 1024 * 1024


def digest_bytes(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``data``."""

    return hashlib.sha256(data).hexdigest()


def digest_file(path: str | os.PathLike[str]) -> str | None:
    """Return the digest of the file at ``path`` or ``None`` when it does not exist.

    The file is read in ``CHUNK_SIZE`` blocks so large installation files never
    need to fit in memory.
    """

    target = Path(path)
    if not target.is_file():
        return None
    hasher = hashlib.sha256()
    with target.open("rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


__all__ = ["CHUNK_SIZE", "digest_bytes", "digest_file"]
