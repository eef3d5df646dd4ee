"""Size and result limits for documents and responses."""

from __future__ import annotations

from dataclasses import dataclass

from mdwiki.errors import ParseError


@dataclass(slots=True, frozen=True)
class SecurityLimits:
    """Runtime limits for indexing and tool responses."""

    max_file_bytes: int = 2 * 1024 * 1024
    max_total_bytes_per_response: int = 1024 * 1024
    max_search_hits: int = 50


def enforce_document_size(source_path: str, size: int, limits: SecurityLimits) -> None:
    """Raise ParseError when a document exceeds max_file_bytes."""
    if size > limits.max_file_bytes:
        raise ParseError(
            source_path,
            f"file is {size} bytes, larger than max_file_bytes ({limits.max_file_bytes})",
        )
