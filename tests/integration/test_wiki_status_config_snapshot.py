from __future__ import annotations

from pathlib import Path

from mdwiki.server import create_server


def test_status_includes_effective_config_snapshot(wiki_root: Path) -> None:
    (wiki_root / "mdwiki.toml").write_text(
        "\n".join(
            [
                "[limits]",
                "max_file_bytes = 2048",
                "max_total_bytes_per_response = 65536",
                "max_search_hits = 12",
                "",
                "[index]",
                'exclude_globs = ["drafts/**"]',
                "",
                "[tree]",
                "sections_first = true",
            ]
        ),
        encoding="utf-8",
    )

    server = create_server(content_root=str(wiki_root))
    response = server.handle_payload({"id": "req-status-1", "method": "wiki.status", "params": {}})

    assert response["ok"] is True
    assert response["warnings"] == ["No index has been built yet."]
    result = response["result"]
    assert result["content_root"] == str(wiki_root.resolve())
    assert result["state"] == "uninitialized"
    assert result["version"] == 0
    assert result["document_count"] == 0
    effective = result["effective_config"]
    assert effective["data_dir"] == str((wiki_root / ".mdwiki").resolve())
    assert effective["limits"] == {
        "max_file_bytes": 2048,
        "max_total_bytes_per_response": 65536,
        "max_search_hits": 12,
    }
    assert effective["index"]["exclude_globs"] == ["drafts/**"]
    assert effective["tree"]["sections_first"] is True


def test_status_after_build_reports_ready(wiki_root: Path) -> None:
    server = create_server(content_root=str(wiki_root))
    server.coordinator.rebuild()

    response = server.handle_payload({"id": "req-status-2", "method": "wiki.status", "params": {}})

    result = response["result"]
    assert result["state"] == "ready"
    assert result["stale"] is False
    assert result["version"] == 1
    assert result["document_count"] == 5
    assert result["built_at"] is not None
