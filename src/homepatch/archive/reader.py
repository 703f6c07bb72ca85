"""Read the ``replacement/`` entries of a patch archive."""

from __future__ import annotations

import logging
import os
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from ..errors import ArchiveUnreadableError, NoReplacementContentError

logger = logging.getLogger(__name__)

REPLACEMENT_PREFIX = "replacement"
_PREFIXES = (f"{REPLACEMENT_PREFIX}/", f"{REPLACEMENT_PREFIX}\\")


@dataclass(frozen=True)
class ReplacementEntry:
    """A file entry under the replacement prefix."""

    entry_name: str
    relative_path: str


def strip_replacement_prefix(entry_name: str) -> str | None:
    """Return the entry name without the prefix, or ``None`` if it is out of scope."""

    for prefix in _PREFIXES:
        if entry_name.startswith(prefix):
            return entry_name[len(prefix) :].replace("\\", "/")
    return None


class ArchiveReader:
    """Thin wrapper over :class:`zipfile.ZipFile` that maps errors to homepatch errors."""

    def __init__(self, path: str | os.PathLike[str], zip_file: zipfile.ZipFile) -> None:
        self.path = Path(path)
        self._zip = zip_file

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "ArchiveReader":
        archive_path = Path(path)
        if not archive_path.is_file():
            raise ArchiveUnreadableError(archive_path, "file does not exist")
        try:
            zip_file = zipfile.ZipFile(archive_path, "r")
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveUnreadableError(archive_path, str(exc) or "not a zip archive") from exc
        return cls(archive_path, zip_file)

    @property
    def stem(self) -> str:
        return self.path.stem

    def list_replacement_entries(self) -> list[ReplacementEntry]:
        """Return file entries under ``replacement/`` in archive order.

        Raises :class:`NoReplacementContentError` when nothing matches, since an
        archive without replacement content is almost certainly the wrong file.
        """

        entries: list[ReplacementEntry] = []
        for info in self._zip.infolist():
            name = info.filename
            if info.is_dir() or name.endswith(("/", "\\")):
                continue
            relative = strip_replacement_prefix(name)
            if not relative:
                continue
            entries.append(ReplacementEntry(entry_name=name, relative_path=relative))
        if not entries:
            raise NoReplacementContentError(self.path)
        logger.debug("%s: %d replacement entries", self.path.name, len(entries))
        return entries

    def read_entry(self, entry_name: str) -> bytes:
        try:
            return self._zip.read(entry_name)
        except (zipfile.BadZipFile, zlib.error, KeyError, OSError, EOFError) as exc:
            raise ArchiveUnreadableError(
                self.path, f"entry {entry_name!r} cannot be read: {exc}"
            ) from exc

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = [
    "REPLACEMENT_PREFIX",
    "ArchiveReader",
    "ReplacementEntry",
    "strip_replacement_prefix",
]
