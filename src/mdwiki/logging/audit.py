"""Request and rebuild audit trail stored as JSON lines under the data dir."""

from __future__ import annotations

import json
import threading
from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path

AUDIT_FILENAME = "audit.jsonl"

# Argument names whose values identify wiki content rather than user prose.
_VERBATIM_STRINGS = frozenset({"path", "current", "since", "tool"})


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """One served request, reduced to what is safe to keep on disk.

    ``index_version`` is the snapshot version visible when the response was
    produced (0 before the first successful build). ``outcome`` carries a
    small per-tool summary of the result, never page bodies or snippets.
    """

    timestamp: str
    request_id: str
    tool: str
    ok: bool
    blocked: bool
    error_code: str | None
    metadata: dict[str, object]
    index_version: int = 0
    outcome: dict[str, object] = field(default_factory=dict)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_arguments(arguments: Mapping[str, object]) -> dict[str, object]:
    """Reduce request arguments to loggable metadata.

    Document paths, tool names and numeric or boolean knobs are kept
    verbatim; free text such as search queries is recorded only as presence
    and length, containers only by shape.
    """
    sanitized: dict[str, object] = {}
    for key in sorted(arguments):
        value = arguments[key]
        if value is None or isinstance(value, (bool, int, float)):
            sanitized[key] = value
        elif isinstance(value, str):
            if key in _VERBATIM_STRINGS:
                sanitized[key] = value
            else:
                sanitized[f"{key}_present"] = True
                sanitized[f"{key}_length"] = len(value)
        else:
            sanitized.update(_describe_container(key, value))
    return sanitized


def _describe_container(key: str, value: object) -> dict[str, object]:
    if isinstance(value, Mapping):
        return {f"{key}_type": "dict", f"{key}_keys": sorted(str(item) for item in value)}
    if isinstance(value, (list, tuple)):
        return {f"{key}_type": "list", f"{key}_length": len(value)}
    return {f"{key}_type": type(value).__name__}


def summarize_result(tool: str, result: Mapping[str, object]) -> dict[str, object]:
    """Pick the few result facts worth auditing for a successful tool call."""
    if tool == "wiki.search":
        hits = result.get("hits")
        return {"hit_count": len(hits) if isinstance(hits, list) else 0}
    if tool == "wiki.page":
        return {"resolved_path": result.get("path")}
    if tool == "wiki.rebuild":
        summary: dict[str, object] = {
            "document_count": result.get("document_count"),
            "coalesced": result.get("coalesced"),
        }
        delta = result.get("delta")
        if isinstance(delta, Mapping):
            for change in ("added", "updated", "removed"):
                entries = delta.get(change)
                summary[change] = len(entries) if isinstance(entries, list) else 0
        return summary
    return {}


class JsonlAuditLogger:
    """Append-only audit file with a bounded, filtered tail reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: AuditEvent) -> None:
        """Write one event as a single sorted-key JSON line."""
        line = json.dumps(asdict(event), sort_keys=True) + "\n"
        with self._write_lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)

    def read(
        self, since: str | None = None, limit: int = 50, tool: str | None = None
    ) -> list[dict[str, object]]:
        """Return up to ``limit`` most recent events, oldest first.

        ``since`` is compared lexically against the stored timestamps, which
        all share one fixed-width UTC format.
        """
        if limit < 1:
            return []
        tail: deque[dict[str, object]] = deque(maxlen=limit)
        for record in self._records():
            if since is not None and str(record.get("timestamp", "")) < since:
                continue
            if tool is not None and record.get("tool") != tool:
                continue
            tail.append(record)
        return list(tail)

    def _records(self) -> Iterator[dict[str, object]]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(record, dict):
                    yield record
