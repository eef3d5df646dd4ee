"""Navigation tree construction from the content root."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from mdwiki.config import WikiConfig
from mdwiki.errors import BuildError, ConflictError, ParseError, ScanError, WikiError
from mdwiki.index.discovery import DirEntryInfo, ScanStats, list_directory
from mdwiki.index.documents import humanize, load_document
from mdwiki.index.headings import slugify
from mdwiki.index.models import PAGE, SECTION, Document, NavNode
from mdwiki.index.rendering import Renderer
from mdwiki.index.search import Tokenizer
from mdwiki.security import enforce_document_size

logger = logging.getLogger(__name__)

ROOT_TITLE = "Home"


@dataclass(slots=True, frozen=True)
class TreeBuildResult:
    """Everything one successful scan produced."""

    root: NavNode
    documents: Mapping[str, Document]
    aliases: Mapping[str, str]
    stats: ScanStats


def build_tree(
    content_root: Path,
    config: WikiConfig,
    renderer: Renderer,
    tokenizer: Tokenizer,
    previous: Mapping[str, Document] | None = None,
    force: bool = False,
) -> TreeBuildResult:
    """Scan ``content_root`` into a navigation tree and document map.

    ``previous`` maps source paths to documents of an earlier build; entries
    whose size and mtime are unchanged are reused unless ``force`` is set.

    Raises ScanError when the root cannot be listed and BuildError carrying
    every problem found anywhere below it otherwise.
    """
    builder = _TreeBuilder(content_root, config, renderer, tokenizer, previous or {}, force)
    return builder.build()


class _TreeBuilder:
    def __init__(
        self,
        content_root: Path,
        config: WikiConfig,
        renderer: Renderer,
        tokenizer: Tokenizer,
        previous: Mapping[str, Document],
        force: bool,
    ) -> None:
        self._root = content_root
        self._config = config
        self._renderer = renderer
        self._tokenizer = tokenizer
        self._previous = previous
        self._force = force
        self._stats = ScanStats()
        self._problems: list[WikiError] = []
        self._documents: dict[str, Document] = {}
        self._aliases: dict[str, str] = {}

    def build(self) -> TreeBuildResult:
        entries = list_directory(self._root, "", self._config.index, self._stats, self._problems)
        root = self._build_section("", "", entries, ROOT_TITLE)
        if root is None:
            root = NavNode(kind=SECTION, name=ROOT_TITLE, slug="", path="")
        if not self._root.is_dir():
            self._problems.append(ScanError("", "content root disappeared during scan"))
        if self._problems:
            raise BuildError(self._problems)
        aliases = {
            alias: target
            for alias, target in sorted(self._aliases.items())
            if alias not in self._documents
        }
        return TreeBuildResult(
            root=root,
            documents=MappingProxyType(dict(sorted(self._documents.items()))),
            aliases=MappingProxyType(aliases),
            stats=self._stats,
        )

    def _build_section(
        self,
        path: str,
        slug: str,
        entries: list[DirEntryInfo],
        display_fallback: str,
    ) -> NavNode | None:
        landing_entry = self._find_landing(entries)
        candidates = [entry for entry in entries if entry is not landing_entry]

        built: list[tuple[DirEntryInfo, NavNode]] = []
        for entry, child_slug in self._assign_slugs(candidates):
            child_path = f"{path}/{child_slug}" if path else child_slug
            if entry.is_dir:
                node = self._build_subsection(entry, child_path, child_slug)
            else:
                node = self._build_page(entry, child_path, child_slug)
            if node is not None:
                built.append((entry, node))

        landing: Document | None = None
        if landing_entry is not None:
            landing = self._load(landing_entry, path, display_fallback)
            if landing is not None:
                self._register_landing_aliases(path)

        if path and not built and landing is None:
            return None

        built.sort(key=lambda item: self._sort_key(*item))
        return NavNode(
            kind=SECTION,
            name=landing.title if landing is not None else display_fallback,
            slug=slug,
            path=path,
            children=tuple(node for _, node in built),
            document=landing,
            order=landing.order if landing is not None else None,
        )

    def _build_subsection(self, entry: DirEntryInfo, path: str, slug: str) -> NavNode | None:
        try:
            entries = list_directory(
                self._root, entry.relative_path, self._config.index, self._stats, self._problems
            )
        except ScanError as exc:
            self._problems.append(exc)
            return None
        node = self._build_section(path, slug, entries, humanize(entry.name))
        if node is None:
            self._stats.pruned_sections += 1
            logger.debug("pruned empty section %s", entry.relative_path)
        return node

    def _build_page(self, entry: DirEntryInfo, path: str, slug: str) -> NavNode | None:
        document = self._load(entry, path, humanize(entry.stem))
        if document is None:
            return None
        return NavNode(
            kind=PAGE,
            name=document.title,
            slug=slug,
            path=path,
            document=document,
            order=document.order,
        )

    def _find_landing(self, entries: list[DirEntryInfo]) -> DirEntryInfo | None:
        for index_name in self._config.index.index_names:
            for entry in entries:
                if not entry.is_dir and entry.stem.lower() == index_name:
                    return entry
        return None

    def _assign_slugs(self, entries: list[DirEntryInfo]) -> list[tuple[DirEntryInfo, str]]:
        """Give every sibling a unique path segment or record a conflict."""
        natural: list[tuple[DirEntryInfo, str]] = []
        for entry in entries:
            slug = slugify(entry.stem.replace("_", "-"))
            if not slug:
                self._problems.append(
                    ScanError(entry.relative_path, "name does not produce a usable path segment")
                )
                continue
            natural.append((entry, slug))

        taken = {slug for _, slug in natural}
        owners: dict[str, DirEntryInfo] = {}
        assigned: list[tuple[DirEntryInfo, str]] = []
        for entry, slug in natural:
            first = owners.get(slug)
            if first is None:
                owners[slug] = entry
                assigned.append((entry, slug))
                continue
            if self._config.tree.on_duplicate != "rename":
                self._problems.append(ConflictError(first.relative_path, entry.relative_path, slug))
                continue
            suffix = 1
            while f"{slug}-{suffix}" in taken:
                suffix += 1
            renamed = f"{slug}-{suffix}"
            taken.add(renamed)
            logger.info(
                "renamed %s to slug %s (collides with %s)",
                entry.relative_path,
                renamed,
                first.relative_path,
            )
            assigned.append((entry, renamed))
        return assigned

    def _sort_key(self, entry: DirEntryInfo, node: NavNode) -> tuple[object, ...]:
        group = 0 if node.is_section or not self._config.tree.sections_first else 1
        return (
            node.order is None,
            node.order if node.order is not None else 0,
            group,
            entry.name.lower(),
            entry.name,
        )

    def _load(self, entry: DirEntryInfo, path: str, fallback_title: str) -> Document | None:
        previous = self._previous.get(entry.relative_path)
        if (
            previous is not None
            and not self._force
            and previous.path == path
            and previous.size == entry.size
            and previous.mtime_ns == entry.mtime_ns
        ):
            self._stats.reused += 1
            self._register(previous)
            return previous

        try:
            enforce_document_size(entry.relative_path, entry.size, self._config.limits)
            payload = entry.full_path.read_bytes()
        except ParseError as exc:
            self._problems.append(exc)
            return None
        except OSError as exc:
            self._problems.append(
                ScanError(entry.relative_path, f"cannot read file ({exc.strerror or exc})")
            )
            return None

        try:
            document = load_document(
                path=path,
                source_path=entry.relative_path,
                payload=payload,
                mtime_ns=entry.mtime_ns,
                fallback_title=fallback_title,
                renderer=self._renderer,
                tokenizer=self._tokenizer,
                limits=self._config.limits,
            )
        except WikiError as exc:
            logger.warning("failed to load %s: %s", entry.relative_path, exc)
            self._problems.append(exc)
            return None
        self._stats.documents += 1
        self._register(document)
        return document

    def _register(self, document: Document) -> None:
        self._documents[document.path] = document
        self._aliases.setdefault(document.source_path, document.path)
        stem_path = document.source_path.rsplit(".", 1)[0]
        self._aliases.setdefault(stem_path, document.path)
        self._aliases.setdefault(stem_path.lower(), document.path)

    def _register_landing_aliases(self, path: str) -> None:
        for index_name in self._config.index.index_names:
            self._aliases.setdefault(f"{path}/{index_name}" if path else index_name, path)


def find_node(root: NavNode, path: str) -> NavNode | None:
    """Return the node whose canonical path is ``path``."""
    for node in root.iter_nodes():
        if node.path == path:
            return node
    return None


def breadcrumbs(root: NavNode, path: str) -> list[NavNode]:
    """Return the nodes from the root down to ``path``, or [] when absent."""
    trail = [root]
    node = root
    for segment in path.split("/") if path else []:
        child = next((item for item in node.children if item.slug == segment), None)
        if child is None:
            return []
        trail.append(child)
        node = child
    return trail


def nav_to_dict(node: NavNode, current_path: str | None = None) -> dict[str, object]:
    """Serialize a navigation subtree, marking the active node and open branch."""
    is_open = current_path is not None and (
        node.path == "" or current_path == node.path or current_path.startswith(f"{node.path}/")
    )
    return {
        "kind": node.kind,
        "name": node.name,
        "slug": node.slug,
        "path": node.path,
        "order": node.order,
        "has_page": node.document is not None,
        "active": current_path is not None and current_path == node.path,
        "open": node.is_section and is_open,
        "children": [nav_to_dict(child, current_path) for child in node.children],
    }
