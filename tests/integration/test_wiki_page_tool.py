from __future__ import annotations

from pathlib import Path

from mdwiki.server import StdioServer, create_server


def ready_server(root: Path) -> StdioServer:
    server = create_server(content_root=str(root))
    server.coordinator.rebuild()
    return server


def test_page_returns_rendered_document_with_toc_and_breadcrumbs(wiki_root: Path) -> None:
    server = ready_server(wiki_root)

    response = server.handle_payload(
        {"id": "req-page-1", "method": "wiki.page", "params": {"path": "/guide/setup/"}}
    )

    assert response["ok"] is True
    assert response["warnings"] == []
    result = response["result"]
    assert result["version"] == 1
    assert result["path"] == "guide/setup"
    assert result["source_path"] == "guide/Setup.md"
    assert result["title"] == "Setup Guide"
    assert 'id="install"' in result["html"]
    assert "title: Setup Guide" not in result["html"]
    assert result["toc"] == [
        {
            "level": 1,
            "text": "Setup",
            "slug": "setup",
            "children": [
                {
                    "level": 2,
                    "text": "Install",
                    "slug": "install",
                    "children": [
                        {"level": 3, "text": "Linux", "slug": "linux", "children": []},
                    ],
                },
                {"level": 2, "text": "Configure", "slug": "configure", "children": []},
            ],
        }
    ]
    assert result["breadcrumbs"] == [
        {"name": "Welcome", "path": ""},
        {"name": "Guide", "path": "guide"},
        {"name": "Setup Guide", "path": "guide/setup"},
    ]
    assert result["meta"] == {
        "title": "Setup Guide",
        "tags": ["ops", "deploy"],
        "date": "2024-05-01",
    }
    assert str(result["last_modified"]).endswith("Z")


def test_page_defaults_to_root_landing(wiki_root: Path) -> None:
    server = ready_server(wiki_root)

    response = server.handle_payload({"id": "req-page-2", "method": "wiki.page", "params": {}})

    assert response["result"]["path"] == ""
    assert response["result"]["title"] == "Welcome"
    assert response["result"]["breadcrumbs"] == [{"name": "Welcome", "path": ""}]


def test_section_landing_is_served_at_directory_path(wiki_root: Path) -> None:
    server = ready_server(wiki_root)

    canonical = server.handle_payload(
        {"id": "req-page-3", "method": "wiki.page", "params": {"path": "guide"}}
    )
    alias = server.handle_payload(
        {"id": "req-page-4", "method": "wiki.page", "params": {"path": "guide/index.md"}}
    )

    assert canonical["result"]["title"] == "Guide"
    assert alias["result"]["path"] == "guide"


def test_page_rejects_non_string_path(wiki_root: Path) -> None:
    server = ready_server(wiki_root)

    response = server.handle_payload(
        {"id": "req-page-5", "method": "wiki.page", "params": {"path": 3}}
    )

    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "wiki.page path must be a string.",
    }


def test_hidden_files_are_not_served(wiki_root: Path) -> None:
    server = ready_server(wiki_root)

    response = server.handle_payload(
        {"id": "req-page-6", "method": "wiki.page", "params": {"path": "notes/.draft"}}
    )

    assert response["error"]["code"] == "NOT_FOUND"
