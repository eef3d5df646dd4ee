"""Deterministic directory listing and change detection."""

from __future__ import annotations

import fnmatch
import hashlib
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from mdwiki.config import IndexConfig
from mdwiki.errors import ScanError, WikiError
from mdwiki.index.models import IndexDelta
from mdwiki.security import is_within_root


@dataclass(slots=True, frozen=True)
class DirEntryInfo:
    """One visible entry of a content directory."""

    name: str
    relative_path: str
    full_path: Path
    is_dir: bool
    size: int = 0
    mtime_ns: int = 0

    @property
    def stem(self) -> str:
        return self.name if self.is_dir else Path(self.name).stem


@dataclass(slots=True)
class ScanStats:
    """Deterministic counters for one scan of the content root."""

    directories: int = 0
    documents: int = 0
    reused: int = 0
    hidden: int = 0
    excluded_by_glob: int = 0
    excluded_by_extension: int = 0
    outside_root: int = 0
    pruned_sections: int = 0


def list_directory(
    content_root: Path,
    relative_dir: str,
    config: IndexConfig,
    stats: ScanStats,
    problems: list[WikiError],
) -> list[DirEntryInfo]:
    """List one directory in name order, keeping subdirectories and documents.

    Listing failures raise ScanError; per-entry stat failures are appended to
    ``problems`` so sibling entries keep being scanned.
    """
    current = content_root / relative_dir if relative_dir else content_root
    try:
        with os.scandir(current) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
    except OSError as exc:
        raise ScanError(relative_dir, f"cannot list directory ({exc.strerror or exc})") from exc

    stats.directories += 1
    output: list[DirEntryInfo] = []
    for entry in ordered_entries:
        if is_hidden(entry.name):
            stats.hidden += 1
            continue
        relative = f"{relative_dir}/{entry.name}" if relative_dir else entry.name
        if should_exclude(relative, config.exclude_globs):
            stats.excluded_by_glob += 1
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                output.append(
                    DirEntryInfo(
                        name=entry.name,
                        relative_path=relative,
                        full_path=Path(entry.path),
                        is_dir=True,
                    )
                )
                continue
            if not entry.is_file() or not has_extension(entry.name, config.extension):
                stats.excluded_by_extension += 1
                continue
            if entry.is_symlink() and not is_within_root(content_root, Path(entry.path)):
                stats.outside_root += 1
                continue
            stat = entry.stat()
        except OSError as exc:
            problems.append(ScanError(relative, f"cannot stat entry ({exc.strerror or exc})"))
            continue
        output.append(
            DirEntryInfo(
                name=entry.name,
                relative_path=relative,
                full_path=Path(entry.path),
                is_dir=False,
                size=stat.st_size,
                mtime_ns=stat.st_mtime_ns,
            )
        )
    return output


def is_hidden(name: str) -> bool:
    """Return True for dotfiles and dot-directories."""
    return name.startswith(".")


def should_exclude(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    """Return True when a path matches configured ignore globs."""
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern)
        or fnmatch.fnmatch(anchored, pattern)
        or fnmatch.fnmatch(f"{anchored}/", pattern)
        for pattern in exclude_globs
    )


def has_extension(name: str, extension: str) -> bool:
    """Return True when a file name carries the document extension."""
    lowered = name.lower()
    return lowered.endswith(extension) and len(lowered) > len(extension)


def sha256_bytes(payload: bytes) -> str:
    """Compute the SHA-256 hex digest of file content."""
    return hashlib.sha256(payload).hexdigest()


def detect_index_delta(previous: Mapping[str, str], current: Mapping[str, str]) -> IndexDelta:
    """Compute deterministic added/updated/unchanged/removed sets.

    Both mappings go from document path to content hash.
    """
    previous_paths = set(previous.keys())
    current_paths = set(current.keys())

    added = sorted(current_paths - previous_paths)
    removed = sorted(previous_paths - current_paths)

    updated: list[str] = []
    unchanged: list[str] = []
    for path in sorted(previous_paths & current_paths):
        if previous[path] == current[path]:
            unchanged.append(path)
            continue
        updated.append(path)

    return IndexDelta(
        added=tuple(added),
        updated=tuple(updated),
        unchanged=tuple(unchanged),
        removed=tuple(removed),
    )
