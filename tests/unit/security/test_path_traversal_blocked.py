from __future__ import annotations

import pytest

from mdwiki.security import PathBlockedError, normalize_document_path


def test_path_traversal_is_blocked() -> None:
    with pytest.raises(PathBlockedError) as error:
        normalize_document_path("guide/../../outside")

    assert error.value.reason == "Path traversal is blocked."


def test_windows_absolute_path_is_blocked() -> None:
    with pytest.raises(PathBlockedError):
        normalize_document_path("C:\\wiki\\secret.md")
