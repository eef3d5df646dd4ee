from __future__ import annotations

from pathlib import Path

from mdwiki.server import create_server


def rebuild(server, request_id: str, **params: object) -> dict[str, object]:  # type: ignore[no-untyped-def]
    return server.handle_payload({"id": request_id, "method": "wiki.rebuild", "params": params})


def test_rebuild_roundtrip_reports_deltas(wiki_root: Path) -> None:
    server = create_server(content_root=str(wiki_root))

    first = rebuild(server, "req-rb-1")
    assert first["ok"] is True
    assert first["warnings"] == []
    assert first["result"]["version"] == 1
    assert first["result"]["document_count"] == 5
    assert first["result"]["coalesced"] is False
    assert first["result"]["delta"] == {
        "added": ["", "faq", "guide", "guide/kubernetes", "guide/setup"],
        "updated": [],
        "unchanged": 0,
        "removed": [],
    }
    scan = first["result"]["scan"]
    assert scan["documents"] == 5
    assert scan["hidden"] == 2
    assert scan["pruned_sections"] == 1

    (wiki_root / "faq.md").write_text("# FAQ\n\nRewritten answers.\n", encoding="utf-8")
    (wiki_root / "guide" / "kubernetes.md").unlink()
    second = rebuild(server, "req-rb-2")
    assert second["result"]["version"] == 2
    assert second["result"]["delta"] == {
        "added": [],
        "updated": ["faq"],
        "unchanged": 3,
        "removed": ["guide/kubernetes"],
    }
    assert second["result"]["scan"]["reused"] == 3

    forced = rebuild(server, "req-rb-3", force=True)
    assert forced["result"]["version"] == 3
    assert forced["result"]["scan"]["reused"] == 0


def test_rebuild_rejects_non_boolean_force(wiki_root: Path) -> None:
    server = create_server(content_root=str(wiki_root))

    response = rebuild(server, "req-rb-4", force="yes")

    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "wiki.rebuild force must be a boolean.",
    }


def test_duplicate_slugs_fail_the_build_unless_renaming(wiki_root: Path) -> None:
    (wiki_root / "guide" / "Kubernetes_.md").write_text("# Copy\n", encoding="utf-8")
    strict = create_server(content_root=str(wiki_root))

    failed = rebuild(strict, "req-rb-5")

    assert failed["error"]["code"] == "BUILD_FAILED"
    assert any("kubernetes" in detail for detail in failed["error"]["details"])
    status = strict.handle_payload({"id": "req-rb-6", "method": "wiki.status", "params": {}})
    assert status["result"]["state"] == "uninitialized"
    assert status["result"]["last_error"] is not None

    (wiki_root / "mdwiki.toml").write_text('[tree]\non_duplicate = "rename"\n', encoding="utf-8")
    lenient = create_server(content_root=str(wiki_root))

    built = rebuild(lenient, "req-rb-7")

    assert built["ok"] is True
    assert "guide/kubernetes-1" in built["result"]["delta"]["added"]
