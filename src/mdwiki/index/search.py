"""Inverted index over document titles and bodies with weighted ranking."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from mdwiki.config import SearchConfig
from mdwiki.index.models import Document

if TYPE_CHECKING:
    from mdwiki.index.models import IndexSnapshot

TOKEN_PATTERN = re.compile(r"[^\W_]+")
TITLE_FIELD = "title"
BODY_FIELD = "body"
ELLIPSIS = "..."

DEFAULT_STOPWORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "but",
        "by",
        "for",
        "from",
        "has",
        "have",
        "if",
        "in",
        "into",
        "is",
        "it",
        "its",
        "not",
        "of",
        "on",
        "or",
        "so",
        "such",
        "that",
        "the",
        "their",
        "then",
        "there",
        "these",
        "they",
        "this",
        "to",
        "was",
        "were",
        "will",
        "with",
    }
)


_VOWELS = frozenset("aeiouy")
_SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")
# (suffix, replacement, minimum stem length left behind)
_SUFFIX_RULES = (
    ("ation", "", 4),
    ("ment", "", 4),
    ("ness", "", 4),
    ("able", "", 4),
    ("ible", "", 4),
    ("tion", "t", 4),
    ("ing", "", 3),
    ("ed", "", 3),
    ("er", "", 4),
    ("ly", "", 4),
)


def _strip_plural(word: str) -> str:
    if len(word) > 4 and word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es") and word[:-2].endswith(_SIBILANT_ENDINGS) and len(word) > 4:
        return word[:-2]
    if len(word) > 3 and word.endswith("s") and not word.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def _undouble(word: str) -> str:
    if len(word) > 3 and word[-1] == word[-2] and word[-1] not in _VOWELS | {"l", "s", "z"}:
        return word[:-1]
    return word


def stem(word: str) -> str:
    """Reduce a lowercase word to the index term its inflections share.

    Plurals go first (``stories`` to ``story``, ``boxes`` to ``box``), then at
    most one derivational or verbal suffix, then a trailing ``e``. Stems must
    keep a vowel and a minimum length, so ``doing`` and ``string`` survive.
    """
    word = _strip_plural(word)
    for suffix, replacement, min_stem in _SUFFIX_RULES:
        if not word.endswith(suffix) or (suffix == "ed" and word.endswith("eed")):
            continue
        candidate = word[: -len(suffix)]
        if len(candidate) < min_stem or not _VOWELS.intersection(candidate):
            break
        word = candidate + replacement
        if suffix in ("ing", "ed"):
            word = _undouble(word)
        break
    if len(word) > 4 and word.endswith("e") and not word.endswith("ee"):
        word = word[:-1]
    return word


@dataclass(slots=True, frozen=True)
class Tokenizer:
    """Token normalization shared by index build and query time."""

    min_length: int = 2
    stopwords: frozenset[str] = DEFAULT_STOPWORDS
    stemming: bool = True

    @classmethod
    def from_config(cls, config: SearchConfig) -> Tokenizer:
        base = DEFAULT_STOPWORDS if config.stopwords is None else frozenset(config.stopwords)
        return cls(
            min_length=config.min_token_length,
            stopwords=base | frozenset(config.extra_stopwords),
            stemming=config.stemming,
        )

    def normalize(self, word: str) -> str | None:
        """Return the index term for one word, or None when it is dropped."""
        lowered = word.lower()
        if len(lowered) < self.min_length or lowered in self.stopwords:
            return None
        return stem(lowered) if self.stemming else lowered

    def spans(self, text: str) -> Iterator[tuple[str, int, int]]:
        """Yield (term, start, end) for every kept word in text order."""
        for match in TOKEN_PATTERN.finditer(text):
            term = self.normalize(match.group(0))
            if term is not None:
                yield term, match.start(), match.end()

    def tokenize(self, text: str) -> list[str]:
        return [term for term, _, _ in self.spans(text)]

    def term_frequencies(self, text: str) -> Mapping[str, int]:
        counts = Counter(self.tokenize(text))
        return MappingProxyType(dict(sorted(counts.items())))


@dataclass(slots=True, frozen=True)
class RankingWeights:
    """Per-field score multipliers; title hits must outweigh body hits."""

    title: float = 5.0
    body: float = 1.0

    def __post_init__(self) -> None:
        if self.title <= self.body:
            raise ValueError("title weight must be greater than body weight")


@dataclass(slots=True, frozen=True)
class Posting:
    """One (document, field) occurrence list entry for a term."""

    path: str
    field: str
    frequency: int


@dataclass(slots=True, frozen=True)
class SearchIndex:
    """Immutable inverted index: term -> postings sorted by path, title first."""

    postings: Mapping[str, tuple[Posting, ...]]
    tokenizer: Tokenizer = field(default_factory=Tokenizer)
    weights: RankingWeights = field(default_factory=RankingWeights)
    max_results: int = 20
    snippet_chars: int = 160
    document_count: int = 0

    def lookup(self, term: str) -> tuple[Posting, ...]:
        return self.postings.get(term, ())

    @property
    def term_count(self) -> int:
        return len(self.postings)


@dataclass(slots=True, frozen=True)
class ScoredPath:
    """Ranked query result before presentation."""

    path: str
    score: float
    matched_terms: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class SearchHit:
    """Rendering-ready search result."""

    path: str
    title: str
    snippet: str
    score: float
    matched_terms: tuple[str, ...]


def build_search_index(
    documents: Iterable[Document],
    tokenizer: Tokenizer,
    weights: RankingWeights | None = None,
    max_results: int = 20,
    snippet_chars: int = 160,
) -> SearchIndex:
    """Build the inverted index from each document's title and body terms."""
    accumulated: dict[str, list[Posting]] = {}
    count = 0
    for document in sorted(documents, key=lambda item: item.path):
        count += 1
        for field_name, terms in (
            (TITLE_FIELD, document.title_terms),
            (BODY_FIELD, document.body_terms),
        ):
            for term, frequency in terms.items():
                accumulated.setdefault(term, []).append(
                    Posting(path=document.path, field=field_name, frequency=frequency)
                )
    postings = {term: tuple(items) for term, items in sorted(accumulated.items())}
    return SearchIndex(
        postings=MappingProxyType(postings),
        tokenizer=tokenizer,
        weights=weights or RankingWeights(),
        max_results=max_results,
        snippet_chars=snippet_chars,
        document_count=count,
    )


def query_index(index: SearchIndex, text: str, limit: int | None = None) -> list[ScoredPath]:
    """Rank documents for a query.

    Terms are ANDed. When no document holds every term, results degrade to OR
    semantics ordered by matched term count, then score. Ties prefer shallower,
    then shorter, then lexically smaller paths.
    """
    terms = list(dict.fromkeys(index.tokenizer.tokenize(text)))
    max_results = index.max_results if limit is None else limit
    if not terms or max_results < 1:
        return []

    scores: dict[str, float] = {}
    matched: dict[str, set[str]] = {}
    for term in terms:
        for posting in index.lookup(term):
            weight = index.weights.title if posting.field == TITLE_FIELD else index.weights.body
            scores[posting.path] = scores.get(posting.path, 0.0) + weight * posting.frequency
            matched.setdefault(posting.path, set()).add(term)

    scored = [
        ScoredPath(path=path, score=score, matched_terms=tuple(sorted(matched[path])))
        for path, score in scores.items()
    ]
    complete = [item for item in scored if len(item.matched_terms) == len(terms)]
    if complete:
        complete.sort(key=lambda item: (-item.score, *_path_tie_break(item.path)))
        return complete[:max_results]

    scored.sort(
        key=lambda item: (-len(item.matched_terms), -item.score, *_path_tie_break(item.path))
    )
    return scored[:max_results]


def search(snapshot: IndexSnapshot, text: str, limit: int | None = None) -> list[SearchHit]:
    """Query one snapshot and attach titles and snippets to each hit.

    Hits are ordered by descending score. Equal scores are ordered by path
    depth first (the root page is 0, ``guide/setup`` is 2), then by path
    length, then lexically, so a shallow long path outranks a deep short one.
    """
    index = snapshot.search_index
    hits: list[SearchHit] = []
    for result in query_index(index, text, limit):
        document = snapshot.documents[result.path]
        hits.append(
            SearchHit(
                path=result.path,
                title=document.title,
                snippet=build_snippet(
                    document.text,
                    index.tokenizer,
                    result.matched_terms,
                    width=index.snippet_chars,
                ),
                score=result.score,
                matched_terms=result.matched_terms,
            )
        )
    return hits


def build_snippet(
    text: str,
    tokenizer: Tokenizer,
    terms: Iterable[str],
    width: int = 160,
) -> str:
    """Cut a window of whole words around the first body occurrence of a term."""
    if not text:
        return ""
    wanted = set(terms)
    anchor: tuple[int, int] | None = None
    for term, start, end in tokenizer.spans(text):
        if term in wanted:
            anchor = (start, end)
            break
    if anchor is None:
        return _leading_window(text, width)

    start, end = anchor
    half = max(0, (width - (end - start)) // 2)
    window_start = max(0, start - half)
    window_end = min(len(text), end + half)
    if window_start == 0:
        window_end = min(len(text), max(window_end, width))
    if window_end == len(text):
        window_start = max(0, min(window_start, len(text) - width))

    if window_start > 0 and not text[window_start - 1].isspace():
        space = text.find(" ", window_start, start)
        window_start = space + 1 if space != -1 else start
    if window_end < len(text) and not text[window_end].isspace():
        space = text.rfind(" ", end, window_end)
        window_end = space if space != -1 else end

    excerpt = text[window_start:window_end].strip()
    prefix = ELLIPSIS if window_start > 0 else ""
    suffix = ELLIPSIS if window_end < len(text) else ""
    return f"{prefix}{excerpt}{suffix}"


def _leading_window(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    cut = text.rfind(" ", 0, width + 1)
    if cut <= 0:
        cut = width
    return f"{text[:cut].rstrip()}{ELLIPSIS}"


def _path_tie_break(path: str) -> tuple[int, int, str]:
    depth = path.count("/") + 1 if path else 0
    return depth, len(path), path
