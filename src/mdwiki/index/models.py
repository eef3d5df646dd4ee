"""Typed models for documents, navigation and published snapshots."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdwiki.index.search import SearchIndex

SECTION = "section"
PAGE = "page"


@dataclass(slots=True, frozen=True)
class Block:
    """One top-level block of parsed Markdown, in document order."""

    kind: str
    text: str
    level: int = 0


@dataclass(slots=True, frozen=True)
class RenderResult:
    """Output of a Markdown renderer: HTML plus block structure."""

    html: str
    blocks: tuple[Block, ...]


@dataclass(slots=True, frozen=True)
class Heading:
    """Heading outline entry with a document-unique anchor slug."""

    level: int
    text: str
    slug: str


@dataclass(slots=True, frozen=True)
class Document:
    """Immutable in-memory representation of one content file."""

    path: str
    source_path: str
    title: str
    raw: str
    body: str
    html: str
    headings: tuple[Heading, ...]
    text: str
    title_terms: Mapping[str, int]
    body_terms: Mapping[str, int]
    meta: Mapping[str, object]
    order: int | None
    size: int
    mtime_ns: int
    content_hash: str

    @property
    def last_modified(self) -> str:
        """Return the file modification time as an RFC 3339 UTC timestamp."""
        moment = datetime.fromtimestamp(self.mtime_ns / 1_000_000_000, tz=UTC)
        return moment.isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(slots=True, frozen=True)
class NavNode:
    """Section (directory) or page (file) in the navigation tree."""

    kind: str
    name: str
    slug: str
    path: str
    children: tuple[NavNode, ...] = ()
    document: Document | None = None
    order: int | None = None

    @property
    def is_section(self) -> bool:
        return self.kind == SECTION

    def iter_nodes(self) -> Iterator[NavNode]:
        """Yield this node and all descendants in pre-order."""
        stack: list[NavNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass(slots=True, frozen=True)
class IndexDelta:
    """Deterministic change classification between two snapshots."""

    added: tuple[str, ...]
    updated: tuple[str, ...]
    unchanged: tuple[str, ...]
    removed: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class IndexSnapshot:
    """Atomic, immutable unit of published index state."""

    version: int
    content_root: Path | None
    built_at: str | None
    root: NavNode
    documents: Mapping[str, Document]
    search_index: SearchIndex
    aliases: Mapping[str, str]
    build_seconds: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.version == 0

    def resolve(self, path: str) -> Document | None:
        """Return the document at a canonical path or one of its aliases."""
        document = self.documents.get(path)
        if document is not None:
            return document
        target = self.aliases.get(path)
        if target is None:
            return None
        return self.documents.get(target)

    def paths(self) -> tuple[str, ...]:
        """Return every document path in sorted order."""
        return tuple(sorted(self.documents))
