from __future__ import annotations

from types import MappingProxyType

from mdwiki.index import (
    SECTION,
    Document,
    IndexSnapshot,
    MarkdownRenderer,
    NavNode,
    SearchIndex,
    Tokenizer,
    build_search_index,
    load_document,
    query_index,
    search,
)
from mdwiki.security import SecurityLimits

TOKENIZER = Tokenizer()


def document(path: str, text: str) -> Document:
    return load_document(
        path=path,
        source_path=f"{path or 'index'}.md",
        payload=text.encode("utf-8"),
        mtime_ns=0,
        fallback_title="Untitled",
        renderer=MarkdownRenderer(),
        tokenizer=TOKENIZER,
        limits=SecurityLimits(),
    )


def index_of(*documents: Document, max_results: int = 20) -> SearchIndex:
    return build_search_index(documents, TOKENIZER, max_results=max_results)


def test_title_match_ranks_above_body_match() -> None:
    index = index_of(
        document("a", "# Notes\n\nWe run kubernetes daily.\n"),
        document("deploy/kubernetes", "# Kubernetes\n\nCluster notes.\n"),
    )

    results = query_index(index, "kubernetes")

    assert [result.path for result in results] == ["deploy/kubernetes", "a"]
    assert results[0].score == 5.0
    assert results[1].score == 1.0


def test_multi_term_queries_are_anded() -> None:
    index = index_of(
        document("a", "# Notes\n\nWe run kubernetes daily.\n"),
        document("deploy/kubernetes", "# Kubernetes\n\nCluster notes.\n"),
    )

    results = query_index(index, "kubernetes cluster")

    assert [result.path for result in results] == ["deploy/kubernetes"]
    assert results[0].matched_terms == ("clust", "kubernet")


def test_and_miss_falls_back_to_or_ordered_by_matched_count() -> None:
    index = index_of(
        document("alpha-only", "# First\n\nalpha\n"),
        document("beta-only", "# Second\n\nbeta beta beta\n"),
        document("both", "# Third\n\nalpha gamma\n"),
    )

    results = query_index(index, "alpha beta gamma")

    assert [result.path for result in results] == ["both", "beta-only", "alpha-only"]
    assert [len(result.matched_terms) for result in results] == [2, 1, 1]


def test_two_term_or_fallback_orders_by_score_within_match_count() -> None:
    index = index_of(
        document("alpha-only", "# First\n\nalpha\n"),
        document("beta-only", "# Second\n\nbeta beta beta\n"),
        document("both", "# Third\n\nalpha gamma\n"),
    )

    results = query_index(index, "alpha beta")

    assert [result.path for result in results] == ["beta-only", "both", "alpha-only"]


def test_empty_and_stopword_only_queries_return_nothing() -> None:
    index = index_of(document("page", "# The Page\n\nthe and of it\n"))

    assert query_index(index, "") == []
    assert query_index(index, "   ") == []
    assert query_index(index, "the and of") == []
    assert query_index(index, "a") == []


def test_unknown_terms_return_nothing() -> None:
    index = index_of(document("page", "# Page\n\ncontent\n"))

    assert query_index(index, "missing") == []


def test_query_normalization_matches_build_normalization() -> None:
    index = index_of(document("ops", "# Ops\n\nWe keep deploying services.\n"))

    assert [result.path for result in query_index(index, "DEPLOYED")] == ["ops"]


def test_search_attaches_titles_and_snippets() -> None:
    first = document("a", "# Notes\n\nWe run kubernetes daily.\n")
    second = document("deploy/kubernetes", "# Kubernetes\n\nCluster notes.\n")
    snapshot = IndexSnapshot(
        version=1,
        content_root=None,
        built_at=None,
        root=NavNode(kind=SECTION, name="Home", slug="", path=""),
        documents=MappingProxyType({first.path: first, second.path: second}),
        search_index=index_of(first, second),
        aliases=MappingProxyType({}),
    )

    hits = search(snapshot, "kubernetes")

    assert [(hit.path, hit.title) for hit in hits] == [
        ("deploy/kubernetes", "Kubernetes"),
        ("a", "Notes"),
    ]
    assert hits[0].snippet == "Cluster notes."
    assert hits[1].snippet == "We run kubernetes daily."
    assert hits[1].matched_terms == ("kubernet",)
