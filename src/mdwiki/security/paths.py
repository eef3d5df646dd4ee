"""Request path normalization for document lookups."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


class PathBlockedError(Exception):
    """Raised when a requested path tries to leave the content root."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def normalize_document_path(candidate: str) -> str:
    """Normalize a request path into wiki-relative POSIX form.

    Leading slashes, empty and ``.`` segments are dropped, so ``/guide/setup``,
    ``guide//./setup/`` and ``guide\\setup`` all become ``guide/setup``. The
    root is ``""``.
    """
    normalized = candidate.replace("\\", "/").strip()
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        raise PathBlockedError(
            reason="Absolute filesystem paths are not document paths.",
            hint="Use a wiki-relative path such as 'guide/setup'.",
        )

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a wiki-relative path.",
        )
    return "/".join(parts)


def is_within_root(content_root: Path, candidate: Path) -> bool:
    """Return True when candidate resolves to a location inside content_root."""
    return candidate.resolve().is_relative_to(content_root.resolve())
