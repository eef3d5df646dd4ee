"""Content indexing and search package."""

from .discovery import ScanStats, detect_index_delta, list_directory
from .documents import humanize, load_document
from .headings import extract_headings, slugify, toc_tree, unique_slugs
from .manager import (
    BUILDING,
    READY,
    UNINITIALIZED,
    BuildReport,
    IndexCoordinator,
    IndexStatus,
    empty_snapshot,
    lookup_document,
)
from .models import (
    PAGE,
    SECTION,
    Block,
    Document,
    Heading,
    IndexDelta,
    IndexSnapshot,
    NavNode,
    RenderResult,
)
from .rendering import MarkdownRenderer, Renderer, split_front_matter
from .search import (
    DEFAULT_STOPWORDS,
    RankingWeights,
    SearchHit,
    SearchIndex,
    Tokenizer,
    build_search_index,
    build_snippet,
    query_index,
    search,
)
from .tree import TreeBuildResult, breadcrumbs, build_tree, find_node, nav_to_dict

__all__ = [
    "BUILDING",
    "Block",
    "BuildReport",
    "DEFAULT_STOPWORDS",
    "Document",
    "Heading",
    "IndexCoordinator",
    "IndexDelta",
    "IndexSnapshot",
    "IndexStatus",
    "MarkdownRenderer",
    "NavNode",
    "PAGE",
    "READY",
    "RankingWeights",
    "RenderResult",
    "Renderer",
    "SECTION",
    "ScanStats",
    "SearchHit",
    "SearchIndex",
    "Tokenizer",
    "TreeBuildResult",
    "UNINITIALIZED",
    "breadcrumbs",
    "build_search_index",
    "build_snippet",
    "build_tree",
    "detect_index_delta",
    "empty_snapshot",
    "extract_headings",
    "find_node",
    "humanize",
    "list_directory",
    "load_document",
    "lookup_document",
    "nav_to_dict",
    "query_index",
    "search",
    "slugify",
    "split_front_matter",
    "toc_tree",
    "unique_slugs",
]
