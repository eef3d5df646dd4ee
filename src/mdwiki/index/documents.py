"""Load one content file into an immutable Document."""

from __future__ import annotations

import re
from types import MappingProxyType

from mdwiki.errors import ParseError, WikiError
from mdwiki.index.discovery import sha256_bytes
from mdwiki.index.headings import extract_headings
from mdwiki.index.models import Block, Document, RenderResult
from mdwiki.index.rendering import Renderer, split_front_matter
from mdwiki.index.search import Tokenizer
from mdwiki.security import SecurityLimits, enforce_document_size

_SEPARATOR_PATTERN = re.compile(r"[-_\s]+")


def humanize(name: str) -> str:
    """Turn a file or directory name into a display name.

    ``getting-started`` and ``getting_started`` both become ``Getting Started``.
    """
    words = [word for word in _SEPARATOR_PATTERN.split(name) if word]
    return " ".join(word[:1].upper() + word[1:] for word in words)


def load_document(
    *,
    path: str,
    source_path: str,
    payload: bytes,
    mtime_ns: int,
    fallback_title: str,
    renderer: Renderer,
    tokenizer: Tokenizer,
    limits: SecurityLimits,
) -> Document:
    """Decode, parse and tokenize one document.

    Raises ParseError for oversized files, undecodable bytes, malformed front
    matter, an invalid ``order`` value, or any renderer failure.
    """
    enforce_document_size(source_path, len(payload), limits)
    try:
        raw = payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        reason = f"not valid UTF-8 ({exc.reason} at byte {exc.start})"
        raise ParseError(source_path, reason) from exc

    meta, body = split_front_matter(raw, source_path)
    order = _read_order(meta, source_path)
    try:
        rendered = renderer(body)
    except WikiError:
        raise
    except Exception as exc:
        raise ParseError(source_path, f"markdown rendering failed: {exc}") from exc
    if not isinstance(rendered, RenderResult):
        raise ParseError(source_path, "renderer did not return a RenderResult")

    title, title_block = _resolve_title(meta, rendered.blocks, fallback_title)
    text = " ".join(
        block.text for block in rendered.blocks if block is not title_block and block.text
    )
    return Document(
        path=path,
        source_path=source_path,
        title=title,
        raw=raw,
        body=body,
        html=rendered.html,
        headings=tuple(extract_headings(rendered.blocks)),
        text=text,
        title_terms=tokenizer.term_frequencies(title),
        body_terms=tokenizer.term_frequencies(text),
        meta=MappingProxyType(dict(meta)),
        order=order,
        size=len(payload),
        mtime_ns=mtime_ns,
        content_hash=sha256_bytes(payload),
    )


def _resolve_title(
    meta: dict[str, object], blocks: tuple[Block, ...], fallback: str
) -> tuple[str, Block | None]:
    explicit = meta.get("title")
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip(), None
    for block in blocks:
        if block.kind == "heading" and block.level == 1 and block.text:
            return block.text, block
    return fallback, None


def _read_order(meta: dict[str, object], source_path: str) -> int | None:
    value = meta.get("order")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(source_path, "front matter 'order' must be an integer")
    return value
