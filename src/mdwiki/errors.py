"""Error taxonomy for scanning, parsing and querying wiki content."""

from __future__ import annotations

from collections.abc import Iterable


class WikiError(Exception):
    """Base class for all content index errors."""


class ScanError(WikiError):
    """Raised when the content tree cannot be read or a path is malformed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path or '.'}: {reason}")
        self.path = path
        self.reason = reason


class ParseError(WikiError):
    """Raised when a document cannot be decoded or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ConflictError(WikiError):
    """Raised when two sibling entries resolve to the same slug."""

    def __init__(self, first: str, second: str, slug: str) -> None:
        super().__init__(f"'{first}' and '{second}' both resolve to slug '{slug}'")
        self.first = first
        self.second = second
        self.slug = slug


class BuildError(WikiError):
    """Aggregates every problem found during one rebuild attempt."""

    def __init__(self, problems: Iterable[WikiError]) -> None:
        self.problems: tuple[WikiError, ...] = tuple(problems)
        lines = [f"index build failed with {len(self.problems)} problem(s)"]
        lines.extend(f"  - {problem}" for problem in self.problems)
        super().__init__("\n".join(lines))


class NotFoundError(WikiError):
    """Raised when a path is absent from the current snapshot."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No document at path '{path}'")
        self.path = path
