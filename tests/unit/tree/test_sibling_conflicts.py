from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from mdwiki.config import TreeConfig, default_config
from mdwiki.errors import BuildError, ConflictError
from mdwiki.index import MarkdownRenderer, Tokenizer, TreeBuildResult, build_tree


def write(root: Path, relative: str, text: str) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def build(root: Path, on_duplicate: str = "error") -> TreeBuildResult:
    config = default_config(root)
    config = replace(config, tree=TreeConfig(on_duplicate=on_duplicate))
    return build_tree(config.content_root, config, MarkdownRenderer(), Tokenizer())


def test_page_and_directory_with_same_slug_conflict_by_default(tmp_path: Path) -> None:
    write(tmp_path, "guide.md", "# Guide page\n")
    write(tmp_path, "guide/intro.md", "# Intro\n")

    with pytest.raises(BuildError) as error:
        build(tmp_path)

    assert len(error.value.problems) == 1
    conflict = error.value.problems[0]
    assert isinstance(conflict, ConflictError)
    assert (conflict.first, conflict.second, conflict.slug) == ("guide", "guide.md", "guide")
    assert "'guide' and 'guide.md'" in str(conflict)


def test_separator_variants_conflict(tmp_path: Path) -> None:
    write(tmp_path, "my-page.md", "# One\n")
    write(tmp_path, "my_page.md", "# Two\n")

    with pytest.raises(BuildError) as error:
        build(tmp_path)

    conflict = error.value.problems[0]
    assert isinstance(conflict, ConflictError)
    assert conflict.first == "my-page.md"
    assert conflict.second == "my_page.md"


def test_rename_policy_suffixes_later_siblings(tmp_path: Path) -> None:
    write(tmp_path, "my-page.md", "# One\n")
    write(tmp_path, "my_page.md", "# Two\n")
    write(tmp_path, "my-page-1.md", "# Taken\n")

    result = build(tmp_path, on_duplicate="rename")

    titles = {path: document.title for path, document in result.documents.items()}
    assert titles == {"my-page": "One", "my-page-1": "Taken", "my-page-2": "Two"}


def test_duplicate_slugs_in_different_directories_are_fine(tmp_path: Path) -> None:
    write(tmp_path, "a/setup.md", "# A setup\n")
    write(tmp_path, "b/setup.md", "# B setup\n")

    result = build(tmp_path)

    assert sorted(result.documents) == ["a/setup", "b/setup"]
