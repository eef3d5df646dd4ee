from __future__ import annotations

from pathlib import Path

import pytest

WIKI_FILES = {
    "index.md": "# Welcome\n\nThe team wiki.\n",
    "faq.md": "# FAQ\n\nAnswers to common questions about deploying.\n",
    "guide/index.md": "# Guide\n\nEverything about the platform.\n",
    "guide/Setup.md": (
        "---\n"
        "title: Setup Guide\n"
        "tags: [ops, deploy]\n"
        "date: 2024-05-01\n"
        "---\n"
        "# Setup\n"
        "\n"
        "Prepare the workstation.\n"
        "\n"
        "## Install\n"
        "\n"
        "### Linux\n"
        "\n"
        "Use the package manager.\n"
        "\n"
        "## Configure\n"
        "\n"
        "Edit the settings file.\n"
    ),
    "guide/kubernetes.md": "# Kubernetes\n\nCluster operations and rollouts.\n",
    "notes/.draft.md": "# Draft\n",
}


@pytest.fixture
def wiki_root(tmp_path: Path) -> Path:
    root = tmp_path / "wiki"
    for relative, text in WIKI_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root
