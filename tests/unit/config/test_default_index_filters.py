from __future__ import annotations

from pathlib import Path

from mdwiki.config import default_config


def test_default_config_indexes_markdown_with_index_and_readme_landings(tmp_path: Path) -> None:
    config = default_config(tmp_path)

    assert config.index.extension == ".md"
    assert config.index.index_names == ("index", "readme")
    assert {"**/node_modules/**", "**/__pycache__/**"} <= set(config.index.exclude_globs)


def test_default_config_places_data_dir_under_content_root(tmp_path: Path) -> None:
    config = default_config(tmp_path)

    assert config.content_root == tmp_path.resolve()
    assert config.data_dir == tmp_path.resolve() / ".mdwiki"
    assert config.tree.on_duplicate == "error"
    assert config.search.max_results == 20
