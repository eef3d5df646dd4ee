from __future__ import annotations

import json
from pathlib import Path

from mdwiki.errors import BuildError, ParseError
from mdwiki.server import STALE_WARNING, UNINITIALIZED_WARNING, create_server


def test_malformed_json_returns_invalid_json_error(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))

    response = server.handle_json_line("{not-json")

    assert response["ok"] is False
    assert response["error"] == {
        "code": "INVALID_JSON",
        "message": "Request must be valid JSON.",
    }
    assert str(response["request_id"]).startswith("req-")


def test_unknown_tool_returns_explicit_error(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))

    response = server.handle_payload(
        {"id": "abc-123", "method": "wiki.unknown", "params": {"k": "v"}}
    )

    assert response["ok"] is False
    assert response["request_id"] == "abc-123"
    assert response["error"] == {
        "code": "UNKNOWN_TOOL",
        "message": "Unknown tool: wiki.unknown",
    }


def test_invalid_tools_call_params_returns_invalid_params_error(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))
    payload = {"id": 7, "method": "tools/call", "params": {"name": "wiki.status", "arguments": []}}

    response = server.handle_payload(json.loads(json.dumps(payload)))

    assert response["ok"] is False
    assert response["request_id"] == "7"
    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "tools/call params.arguments must be an object.",
    }


def test_boolean_request_id_is_replaced_with_fallback(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))

    response = server.handle_payload({"id": True, "method": "wiki.status", "params": {}})

    assert str(response["request_id"]).startswith("req-")


def test_missing_page_returns_not_found(tmp_path: Path) -> None:
    (tmp_path / "index.md").write_text("# Home\n", encoding="utf-8")
    server = create_server(content_root=str(tmp_path))
    server.coordinator.rebuild()

    response = server.handle_payload(
        {"id": "req-nf", "method": "wiki.page", "params": {"path": "nowhere"}}
    )

    assert response["ok"] is False
    assert response["blocked"] is False
    assert response["error"] == {"code": "NOT_FOUND", "message": "No document at path 'nowhere'"}


def test_build_failure_lists_every_problem(tmp_path: Path) -> None:
    (tmp_path / "a.md").write_text("---\norder: first\n---\n# A\n", encoding="utf-8")
    (tmp_path / "b.md").write_bytes(b"# B\n\xff\xfe\n")
    server = create_server(content_root=str(tmp_path))

    response = server.handle_payload({"id": "req-bf", "method": "wiki.rebuild", "params": {}})

    assert response["ok"] is False
    error = response["error"]
    assert error["code"] == "BUILD_FAILED"
    assert error["message"] == "Index build failed with 2 problem(s)."
    assert len(error["details"]) == 2
    assert error["details"][0].startswith("a.md:")
    assert error["details"][1].startswith("b.md:")


def test_unexpected_exception_becomes_internal_error(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))

    def explode(_: dict[str, object]) -> dict[str, object]:
        raise RuntimeError("boom")

    server.registry.register("wiki.explode", explode)
    response = server.handle_payload({"id": "req-ie", "method": "wiki.explode", "params": {}})

    assert response["ok"] is False
    assert response["error"]["code"] == "INTERNAL_ERROR"
    assert "boom" not in json.dumps(response)


def test_uninitialized_index_adds_warning(tmp_path: Path) -> None:
    server = create_server(content_root=str(tmp_path))

    response = server.handle_payload({"id": "req-w", "method": "wiki.nav", "params": {}})

    assert response["ok"] is True
    assert response["warnings"] == [UNINITIALIZED_WARNING]


def test_stale_index_adds_warning(tmp_path: Path) -> None:
    page = tmp_path / "index.md"
    page.write_text("# Home\n", encoding="utf-8")
    server = create_server(content_root=str(tmp_path))
    server.coordinator.rebuild()
    page.write_text("---\norder: [1]\n---\n# Home again\n", encoding="utf-8")

    rebuild = server.handle_payload({"id": "req-s1", "method": "wiki.rebuild", "params": {}})
    response = server.handle_payload({"id": "req-s2", "method": "wiki.page", "params": {}})

    assert rebuild["error"]["code"] == "BUILD_FAILED"
    assert response["ok"] is True
    assert response["result"]["title"] == "Home"
    assert response["warnings"] == [STALE_WARNING]


def test_build_error_message_lists_problems() -> None:
    error = BuildError([ParseError("a.md", "bad"), ParseError("b.md", "worse")])

    assert str(error).splitlines() == [
        "index build failed with 2 problem(s)",
        "  - a.md: bad",
        "  - b.md: worse",
    ]
