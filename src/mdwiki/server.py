"""JSON-lines STDIO front end for the wiki index.

Each input line is one request object ``{"id", "method", "params"}``. A method
is either a wiki tool name, ``tools/call`` wrapping one, or ``tools/list``.
Every request yields exactly one response envelope and one audit event.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import TextIO

from mdwiki.config import DUPLICATE_POLICIES, CliOverrides, WikiConfig, load_effective_config
from mdwiki.errors import BuildError, NotFoundError
from mdwiki.index import IndexCoordinator, Renderer
from mdwiki.logging import (
    AUDIT_FILENAME,
    AuditEvent,
    JsonlAuditLogger,
    sanitize_arguments,
    summarize_result,
    utc_timestamp,
)
from mdwiki.security import PathBlockedError
from mdwiki.tools import ToolDispatchError, ToolRegistry, register_builtin_tools

logger = logging.getLogger(__name__)

STALE_WARNING = "Serving the last good index; the most recent rebuild failed."
UNINITIALIZED_WARNING = "No index has been built yet."

CALL_METHOD = "tools/call"
LIST_METHOD = "tools/list"

Envelope = dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdwiki", description="Serve a Markdown wiki index.")
    parser.add_argument("--content-root", default=".")
    parser.add_argument("--data-dir", default=None)
    parser.add_argument("--max-file-bytes", type=int, default=None)
    parser.add_argument("--max-total-bytes-per-response", type=int, default=None)
    parser.add_argument("--max-search-hits", type=int, default=None)
    parser.add_argument("--max-results", type=int, default=None)
    parser.add_argument("--on-duplicate", choices=DUPLICATE_POLICIES, default=None)
    parser.add_argument(
        "--log-level", choices=("DEBUG", "INFO", "WARNING", "ERROR"), default="WARNING"
    )
    parser.add_argument(
        "--no-initial-build",
        action="store_true",
        help="Start serving before any index exists; callers must issue wiki.rebuild.",
    )
    return parser


def _envelope(
    request_id: str,
    *,
    ok: bool,
    result: dict[str, object] | None = None,
    warnings: list[str] | None = None,
    blocked: bool = False,
    error: dict[str, object] | None = None,
) -> Envelope:
    response: Envelope = {
        "request_id": request_id,
        "ok": ok,
        "result": result or {},
        "warnings": warnings or [],
        "blocked": blocked,
    }
    if error is not None:
        response["error"] = error
    return response


def error_envelope(
    request_id: str, code: str, message: str, details: list[str] | None = None
) -> Envelope:
    error: dict[str, object] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return _envelope(request_id, ok=False, error=error)


def blocked_envelope(request_id: str, reason: str, hint: str) -> Envelope:
    return _envelope(
        request_id,
        ok=False,
        result={"reason": reason, "hint": hint},
        blocked=True,
        error={"code": "PATH_BLOCKED", "message": reason},
    )


class StdioServer:
    """Routes requests to wiki tools over one IndexCoordinator."""

    def __init__(self, config: WikiConfig, renderer: Renderer | None = None) -> None:
        self._config = config
        self._coordinator = IndexCoordinator(config, renderer=renderer)
        self._audit = JsonlAuditLogger(path=config.data_dir / AUDIT_FILENAME)
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            coordinator=self._coordinator,
            limits=config.limits,
            read_audit_entries=self._audit.read,
        )
        self._generated_ids = 0

    @property
    def coordinator(self) -> IndexCoordinator:
        return self._coordinator

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Answer every non-blank input line with one JSON line."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            out_stream.write(json.dumps(self.handle_json_line(line), sort_keys=True) + "\n")
            out_stream.flush()

    def handle_json_line(self, raw_line: str) -> Envelope:
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            response = error_envelope(
                self._generate_id(), "INVALID_JSON", "Request must be valid JSON."
            )
            self._record(response, "invalid_json", {"raw_line_length": len(raw_line)})
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> Envelope:
        """Validate, execute and audit one decoded request."""
        request_id = self._request_id(payload)
        try:
            tool_name, arguments = self._unwrap(payload)
        except ToolDispatchError as error:
            response = error_envelope(request_id, error.code, error.message)
            self._record(response, "invalid_request", {})
            return response

        response = self._execute(request_id, tool_name, arguments)
        self._record(response, tool_name, arguments)
        return response

    def _request_id(self, payload: object) -> str:
        raw = payload.get("id") if isinstance(payload, dict) else None
        if isinstance(raw, str) and raw:
            return raw
        if isinstance(raw, int) and not isinstance(raw, bool):
            return str(raw)
        return self._generate_id()

    def _generate_id(self) -> str:
        self._generated_ids += 1
        return f"req-{self._generated_ids:06d}"

    @staticmethod
    def _unwrap(payload: object) -> tuple[str, dict[str, object]]:
        """Return the tool name and arguments a request addresses."""
        if not isinstance(payload, dict):
            raise ToolDispatchError("INVALID_REQUEST", "Request must be an object.")
        method = payload.get("method")
        params = payload.get("params", {})
        if not isinstance(method, str) or not method:
            raise ToolDispatchError("INVALID_REQUEST", "Request method must be a non-empty string.")
        if not isinstance(params, dict):
            raise ToolDispatchError("INVALID_PARAMS", "Request params must be an object.")
        if method != CALL_METHOD:
            return method, params

        name = params.get("name")
        arguments = params.get("arguments", {})
        if not isinstance(name, str) or not name:
            raise ToolDispatchError(
                "INVALID_PARAMS", f"{CALL_METHOD} params.name must be a non-empty string."
            )
        if not isinstance(arguments, dict):
            raise ToolDispatchError(
                "INVALID_PARAMS", f"{CALL_METHOD} params.arguments must be an object."
            )
        return name, arguments

    def _execute(self, request_id: str, tool_name: str, arguments: dict[str, object]) -> Envelope:
        try:
            if tool_name == LIST_METHOD:
                result: dict[str, object] = {"tools": self._registry.describe()}
            else:
                result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except PathBlockedError as error:
            return blocked_envelope(request_id, error.reason, error.hint)
        except ToolDispatchError as error:
            return error_envelope(request_id, error.code, error.message)
        except NotFoundError as error:
            return error_envelope(request_id, "NOT_FOUND", str(error))
        except BuildError as error:
            return error_envelope(
                request_id,
                "BUILD_FAILED",
                f"Index build failed with {len(error.problems)} problem(s).",
                details=[str(problem) for problem in error.problems],
            )
        except Exception:
            logger.exception("unhandled error in %s", tool_name)
            return error_envelope(
                request_id, "INTERNAL_ERROR", "Unhandled server error while executing tool."
            )

        response = _envelope(request_id, ok=True, result=result, warnings=self._index_warnings())
        return self._within_size_limit(response)

    def _index_warnings(self) -> list[str]:
        status = self._coordinator.status()
        if status.stale:
            return [STALE_WARNING]
        if status.version == 0:
            return [UNINITIALIZED_WARNING]
        return []

    def _within_size_limit(self, response: Envelope) -> Envelope:
        """Swap an oversized success for a blocked envelope."""
        encoded = json.dumps(response, sort_keys=True).encode("utf-8")
        if len(encoded) <= self._config.limits.max_total_bytes_per_response:
            return response
        return blocked_envelope(
            str(response["request_id"]),
            "Response exceeds max_total_bytes_per_response limit.",
            "Request fewer search hits or a smaller page.",
        )

    def _record(self, response: Envelope, tool_name: str, arguments: dict[str, object]) -> None:
        error = response.get("error")
        ok = response.get("ok") is True
        result = response.get("result")
        self._audit.append(
            AuditEvent(
                timestamp=utc_timestamp(),
                request_id=str(response["request_id"]),
                tool=tool_name,
                ok=ok,
                blocked=response.get("blocked") is True,
                error_code=str(error["code"]) if isinstance(error, dict) else None,
                metadata=sanitize_arguments(arguments),
                index_version=self._coordinator.status().version,
                outcome=summarize_result(tool_name, result)
                if ok and isinstance(result, dict)
                else {},
            )
        )


def create_server(
    content_root: str | Path,
    data_dir: str | Path | None = None,
    cli_overrides: CliOverrides | None = None,
    renderer: Renderer | None = None,
) -> StdioServer:
    """Create a configured server; no index is built yet."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None:
        overrides = replace(overrides, data_dir=Path(data_dir).resolve())
    config = load_effective_config(content_root=Path(content_root), overrides=overrides)
    return StdioServer(config=config, renderer=renderer)


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        max_file_bytes=args.max_file_bytes,
        max_total_bytes_per_response=args.max_total_bytes_per_response,
        max_search_hits=args.max_search_hits,
        max_results=args.max_results,
        on_duplicate=args.on_duplicate,
    )
    server = create_server(content_root=args.content_root, cli_overrides=overrides)
    if not args.no_initial_build:
        try:
            server.coordinator.rebuild()
        except BuildError as error:
            logger.error("initial index build failed:\n%s", error)
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
