"""Snapshot ownership and rebuild orchestration."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType

from mdwiki.config import WikiConfig
from mdwiki.errors import BuildError, NotFoundError, ScanError
from mdwiki.index.discovery import ScanStats, detect_index_delta
from mdwiki.index.models import SECTION, Document, IndexDelta, IndexSnapshot, NavNode
from mdwiki.index.rendering import MarkdownRenderer, Renderer
from mdwiki.index.search import RankingWeights, Tokenizer, build_search_index
from mdwiki.index.tree import ROOT_TITLE, build_tree
from mdwiki.security import normalize_document_path

logger = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
BUILDING = "building"
READY = "ready"


@dataclass(slots=True, frozen=True)
class IndexStatus:
    """Current coordinator state."""

    state: str
    stale: bool
    version: int
    built_at: str | None
    document_count: int
    last_error: str | None


@dataclass(slots=True, frozen=True)
class BuildReport:
    """Outcome of one successful rebuild."""

    snapshot: IndexSnapshot
    delta: IndexDelta
    stats: ScanStats
    coalesced: bool = False


class _InflightBuild:
    """Result slot shared by the builder and every caller coalesced onto it."""

    def __init__(self, content_root: Path, force: bool) -> None:
        self.content_root = content_root
        self.force = force
        self.done = threading.Event()
        self.report: BuildReport | None = None
        self.error: BaseException | None = None


class IndexCoordinator:
    """Single owner of the published index snapshot.

    Readers call :meth:`current` without locking and always get one complete
    immutable snapshot. At most one rebuild runs at a time; a rebuild
    requested while another is in flight for the same content root waits for
    it and shares its result (or its error). A forced request never shares an
    unforced build: it waits for that build to finish and then runs its own.
    Scanning and parsing happen outside the lock, which only guards the
    reference swap and state fields.
    """

    def __init__(self, config: WikiConfig, renderer: Renderer | None = None) -> None:
        self._config = config
        self._renderer = renderer or MarkdownRenderer(config.markdown.extensions)
        self._tokenizer = Tokenizer.from_config(config.search)
        self._weights = RankingWeights(
            title=config.search.title_weight, body=config.search.body_weight
        )
        self._lock = threading.Lock()
        self._snapshot = empty_snapshot(
            tokenizer=self._tokenizer,
            weights=self._weights,
            max_results=config.search.max_results,
            snippet_chars=config.search.snippet_chars,
        )
        self._state = UNINITIALIZED
        self._last_error: str | None = None
        self._inflight: _InflightBuild | None = None

    @property
    def config(self) -> WikiConfig:
        return self._config

    def current(self) -> IndexSnapshot:
        """Return the last published snapshot, or the empty one before any build."""
        return self._snapshot

    def status(self) -> IndexStatus:
        with self._lock:
            snapshot = self._snapshot
            state = self._state
            last_error = self._last_error
        return IndexStatus(
            state=state,
            stale=last_error is not None and not snapshot.is_empty,
            version=snapshot.version,
            built_at=snapshot.built_at,
            document_count=len(snapshot.documents),
            last_error=last_error,
        )

    def rebuild(self, content_root: Path | None = None, force: bool = False) -> IndexSnapshot:
        """Rebuild and publish a new snapshot; raises BuildError on failure."""
        return self.rebuild_with_report(content_root, force).snapshot

    def rebuild_with_report(
        self, content_root: Path | None = None, force: bool = False
    ) -> BuildReport:
        """Rebuild like :meth:`rebuild` and also return the delta and scan stats."""
        root = (content_root or self._config.content_root).resolve()
        while True:
            with self._lock:
                inflight = self._inflight
                owner = inflight is None
                if inflight is None:
                    inflight = _InflightBuild(root, force)
                    self._inflight = inflight
                    self._state = BUILDING
            if owner:
                return self._run(inflight, force)

            logger.debug("waiting for in-flight build of %s", inflight.content_root)
            inflight.done.wait()
            if inflight.content_root != root or (force and not inflight.force):
                continue
            if inflight.error is not None:
                raise inflight.error
            if inflight.report is None:
                raise RuntimeError("in-flight build finished without a result")
            return replace(inflight.report, coalesced=True)

    def _run(self, inflight: _InflightBuild, force: bool) -> BuildReport:
        previous = self._snapshot
        try:
            try:
                report = self._build(inflight.content_root, previous, force)
            except ScanError as exc:
                raise BuildError([exc]) from exc
        except BaseException as exc:
            with self._lock:
                self._state = UNINITIALIZED if self._snapshot.is_empty else READY
                self._last_error = str(exc)
                self._inflight = None
            inflight.error = exc
            inflight.done.set()
            logger.error("index build of %s failed: %s", inflight.content_root, exc)
            raise

        with self._lock:
            self._snapshot = report.snapshot
            self._state = READY
            self._last_error = None
            self._inflight = None
        inflight.report = report
        inflight.done.set()
        return report

    def _build(self, content_root: Path, previous: IndexSnapshot, force: bool) -> BuildReport:
        started = time.perf_counter()
        logger.info("index build started for %s (force=%s)", content_root, force)
        reusable: dict[str, Document] = {}
        if not force and previous.content_root == content_root:
            reusable = {document.source_path: document for document in previous.documents.values()}

        result = build_tree(
            content_root,
            self._config,
            self._renderer,
            self._tokenizer,
            previous=reusable,
            force=force,
        )
        search_index = build_search_index(
            result.documents.values(),
            self._tokenizer,
            weights=self._weights,
            max_results=self._config.search.max_results,
            snippet_chars=self._config.search.snippet_chars,
        )
        delta = detect_index_delta(
            {path: document.content_hash for path, document in previous.documents.items()},
            {path: document.content_hash for path, document in result.documents.items()},
        )
        snapshot = IndexSnapshot(
            version=previous.version + 1,
            content_root=content_root,
            built_at=_utc_now_iso(),
            root=result.root,
            documents=result.documents,
            search_index=search_index,
            aliases=result.aliases,
            build_seconds=time.perf_counter() - started,
        )
        logger.info(
            "published index version %d: %d documents, %d added, %d updated, %d removed, "
            "%d reused in %.3fs",
            snapshot.version,
            len(snapshot.documents),
            len(delta.added),
            len(delta.updated),
            len(delta.removed),
            result.stats.reused,
            snapshot.build_seconds,
        )
        return BuildReport(snapshot=snapshot, delta=delta, stats=result.stats)


def empty_snapshot(
    tokenizer: Tokenizer | None = None,
    weights: RankingWeights | None = None,
    max_results: int = 20,
    snippet_chars: int = 160,
) -> IndexSnapshot:
    """Return the version-0 snapshot served before the first successful build."""
    return IndexSnapshot(
        version=0,
        content_root=None,
        built_at=None,
        root=NavNode(kind=SECTION, name=ROOT_TITLE, slug="", path=""),
        documents=MappingProxyType({}),
        search_index=build_search_index(
            [],
            tokenizer or Tokenizer(),
            weights=weights,
            max_results=max_results,
            snippet_chars=snippet_chars,
        ),
        aliases=MappingProxyType({}),
    )


def lookup_document(snapshot: IndexSnapshot, path: str) -> Document:
    """Return the document for a request path or raise NotFoundError.

    Accepts canonical paths as well as source-file forms such as
    ``guide/Setup.md`` or ``guide/index``. ``..`` segments raise
    PathBlockedError.
    """
    normalized = normalize_document_path(path)
    document = snapshot.resolve(normalized)
    if document is None:
        raise NotFoundError(normalized)
    return document


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
