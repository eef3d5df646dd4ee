"""Built-in wiki tools exposed to the serving layer."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict
from datetime import date

from mdwiki.index import (
    IndexCoordinator,
    breadcrumbs,
    lookup_document,
    nav_to_dict,
    search,
    toc_tree,
)
from mdwiki.security import SecurityLimits, normalize_document_path
from mdwiki.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

AuditReader = Callable[[str | None, int, str | None], list[dict[str, object]]]


def register_builtin_tools(
    registry: ToolRegistry,
    coordinator: IndexCoordinator,
    limits: SecurityLimits,
    read_audit_entries: AuditReader,
) -> None:
    """Register the wiki tool set."""
    registry.register(
        "wiki.status", _status_handler(coordinator), "Index state and effective configuration."
    )
    registry.register(
        "wiki.rebuild", _rebuild_handler(coordinator), "Rescan the content root and swap the index."
    )
    registry.register(
        "wiki.page", _page_handler(coordinator), "Rendered page with TOC and breadcrumbs."
    )
    registry.register(
        "wiki.nav", _nav_handler(coordinator), "Navigation tree, optionally marking a page."
    )
    registry.register(
        "wiki.search", _search_handler(coordinator, limits), "Ranked full-text page search."
    )
    registry.register(
        "wiki.audit_log",
        _audit_log_handler(limits, read_audit_entries),
        "Recent sanitized request events.",
    )


def _status_handler(coordinator: IndexCoordinator) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        status = coordinator.status()
        return {
            "content_root": str(coordinator.config.content_root),
            "state": status.state,
            "stale": status.stale,
            "version": status.version,
            "built_at": status.built_at,
            "document_count": status.document_count,
            "last_error": status.last_error,
            "effective_config": coordinator.config.to_public_dict(),
        }

    return handler


def _rebuild_handler(coordinator: IndexCoordinator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        force = arguments.get("force", False)
        if not isinstance(force, bool):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="wiki.rebuild force must be a boolean."
            )
        report = coordinator.rebuild_with_report(force=force)
        snapshot = report.snapshot
        return {
            "version": snapshot.version,
            "built_at": snapshot.built_at,
            "document_count": len(snapshot.documents),
            "build_seconds": snapshot.build_seconds,
            "coalesced": report.coalesced,
            "delta": {
                "added": list(report.delta.added),
                "updated": list(report.delta.updated),
                "unchanged": len(report.delta.unchanged),
                "removed": list(report.delta.removed),
            },
            "scan": asdict(report.stats),
        }

    return handler


def _page_handler(coordinator: IndexCoordinator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path_value = arguments.get("path", "")
        if not isinstance(path_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="wiki.page path must be a string."
            )
        snapshot = coordinator.current()
        document = lookup_document(snapshot, path_value)
        return {
            "version": snapshot.version,
            "path": document.path,
            "source_path": document.source_path,
            "title": document.title,
            "html": document.html,
            "toc": toc_tree(document.headings),
            "breadcrumbs": [
                {"name": node.name, "path": node.path}
                for node in breadcrumbs(snapshot.root, document.path)
            ],
            "meta": _json_safe(document.meta),
            "last_modified": document.last_modified,
        }

    return handler


def _nav_handler(coordinator: IndexCoordinator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        current_value = arguments.get("current")
        if current_value is not None and not isinstance(current_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="wiki.nav current must be a string."
            )
        snapshot = coordinator.current()
        current: str | None = None
        if current_value is not None:
            current = normalize_document_path(current_value)
            document = snapshot.resolve(current)
            if document is not None:
                current = document.path
        return {"version": snapshot.version, "tree": nav_to_dict(snapshot.root, current)}

    return handler


def _search_handler(coordinator: IndexCoordinator, limits: SecurityLimits) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        query_value = arguments.get("query")
        if not isinstance(query_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="wiki.search query must be a string."
            )
        limit_value = arguments.get("limit")
        if limit_value is not None:
            if isinstance(limit_value, bool) or not isinstance(limit_value, int):
                raise ToolDispatchError(
                    code="INVALID_PARAMS", message="wiki.search limit must be an integer."
                )
            if limit_value < 1:
                raise ToolDispatchError(
                    code="INVALID_PARAMS", message="wiki.search limit must be >= 1."
                )
            if limit_value > limits.max_search_hits:
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message=f"wiki.search limit must be <= {limits.max_search_hits}.",
                )
        snapshot = coordinator.current()
        hits = search(snapshot, query_value, limit_value)
        return {
            "version": snapshot.version,
            "hits": [
                {
                    "path": hit.path,
                    "title": hit.title,
                    "snippet": hit.snippet,
                    "score": hit.score,
                    "matched_terms": list(hit.matched_terms),
                }
                for hit in hits
            ],
        }

    return handler


def _audit_log_handler(limits: SecurityLimits, read_audit_entries: AuditReader) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", limits.max_search_hits)
        tool_value = arguments.get("tool")

        since = since_value if isinstance(since_value, str) else None
        tool = tool_value if isinstance(tool_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else limits.max_search_hits
        limit = min(max(limit, 1), limits.max_search_hits)

        return {"entries": read_audit_entries(since, limit, tool)}

    return handler


def _json_safe(value: object) -> object:
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [_json_safe(item) for item in items]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
