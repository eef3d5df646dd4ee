"""Heading outline extraction and stable anchor slugs."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from mdwiki.index.models import Block, Heading

FALLBACK_SLUG = "section"

_STRIP_PATTERN = re.compile(r"[^\w\s-]|_")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def slugify(text: str) -> str:
    """Build a URL-safe slug; may return an empty string."""
    cleaned = _STRIP_PATTERN.sub("", text.lower()).strip()
    return _WHITESPACE_PATTERN.sub("-", cleaned).strip("-")


def unique_slugs(texts: Iterable[str], fallback: str = FALLBACK_SLUG) -> list[str]:
    """Slugify texts in order, suffixing repeats with -1, -2, ...

    A suffixed slug never reuses a slug that is already taken, so the output
    is unique even when a heading literally reads ``Setup-1``.
    """
    used: set[str] = set()
    next_suffix: dict[str, int] = {}
    output: list[str] = []
    for text in texts:
        base = slugify(text) or fallback
        slug = base
        if base in used:
            suffix = next_suffix.get(base, 1)
            while f"{base}-{suffix}" in used:
                suffix += 1
            next_suffix[base] = suffix + 1
            slug = f"{base}-{suffix}"
        used.add(slug)
        output.append(slug)
    return output


def extract_headings(blocks: Sequence[Block]) -> list[Heading]:
    """Return the heading outline of a parsed document in document order."""
    heading_blocks = [
        block for block in blocks if block.kind == "heading" and 1 <= block.level <= 6
    ]
    slugs = unique_slugs(block.text for block in heading_blocks)
    return [
        Heading(level=block.level, text=block.text, slug=slug)
        for block, slug in zip(heading_blocks, slugs, strict=True)
    ]


def toc_tree(headings: Sequence[Heading]) -> list[dict[str, object]]:
    """Nest a flat heading list by level for table-of-contents display."""
    roots: list[dict[str, object]] = []
    stack: list[tuple[int, list[dict[str, object]]]] = [(0, roots)]
    for heading in headings:
        children: list[dict[str, object]] = []
        entry: dict[str, object] = {
            "level": heading.level,
            "text": heading.text,
            "slug": heading.slug,
            "children": children,
        }
        while len(stack) > 1 and stack[-1][0] >= heading.level:
            stack.pop()
        stack[-1][1].append(entry)
        stack.append((heading.level, children))
    return roots
