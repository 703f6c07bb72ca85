"""Archive access and path sanitisation helpers."""

from .paths import ensure_target_root, is_within, relative_posix, resolve_target
from .reader import REPLACEMENT_PREFIX, ArchiveReader, ReplacementEntry, strip_replacement_prefix

__all__ = [
    "REPLACEMENT_PREFIX",
    "ArchiveReader",
    "ReplacementEntry",
    "ensure_target_root",
    "is_within",
    "relative_posix",
    "resolve_target",
    "strip_replacement_prefix",
]
