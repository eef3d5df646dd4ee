"""Default Markdown renderer and front matter parsing."""

from __future__ import annotations

import re
import xml.etree.ElementTree as etree
from collections.abc import Callable, Iterator, Sequence

import markdown
import yaml
from markdown import util
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from mdwiki.config import DEFAULT_MARKDOWN_EXTENSIONS
from mdwiki.errors import ParseError
from mdwiki.index.headings import unique_slugs
from mdwiki.index.models import Block, RenderResult

Renderer = Callable[[str], RenderResult]

_FRONT_MATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^(?:---|\.\.\.)[ \t]*$\r?\n?",
    re.DOTALL | re.MULTILINE,
)
_ESCAPED_CHAR_PATTERN = re.compile(f"{util.STX}([0-9]+){util.ETX}")
_BLOCK_KINDS = {
    "p": "paragraph",
    "pre": "code",
    "ul": "list",
    "ol": "list",
    "dl": "list",
    "blockquote": "quote",
    "table": "table",
    "hr": "rule",
}
_HEADING_TAGS = {f"h{level}": level for level in range(1, 7)}
_CONTAINER_TAGS = {"div", "section", "article"}
# Blocks that keep their own text but may hold headings, e.g. "> ## Note".
_NESTING_TAGS = {"blockquote", "ul", "ol", "dl"}


def split_front_matter(text: str, source_path: str = "") -> tuple[dict[str, object], str]:
    """Split an optional leading YAML front matter block from the body."""
    match = _FRONT_MATTER_PATTERN.match(text)
    if match is None:
        return {}, text
    try:
        payload = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ParseError(source_path, f"invalid front matter: {exc}") from exc
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ParseError(source_path, "front matter must be a mapping")
    return {str(key): value for key, value in payload.items()}, text[match.end() :]


class MarkdownRenderer:
    """Render Markdown to HTML and report its top-level block structure.

    Heading elements in the produced HTML carry ``id`` attributes equal to the
    slugs :func:`mdwiki.index.headings.extract_headings` derives from the same
    blocks, so table-of-contents links always resolve.
    """

    def __init__(self, extensions: Sequence[str] = DEFAULT_MARKDOWN_EXTENSIONS) -> None:
        self._extensions = tuple(extensions)

    def __call__(self, text: str) -> RenderResult:
        blocks: list[Block] = []
        md = markdown.Markdown(extensions=[*self._extensions, _BlockStructureExtension(blocks)])
        html = md.convert(text)
        return RenderResult(html=html, blocks=tuple(blocks))


class _BlockStructureExtension(Extension):
    def __init__(self, sink: list[Block]) -> None:
        super().__init__()
        self._sink = sink

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        # Runs after inline processing (20) and the toc extension (5).
        md.treeprocessors.register(_BlockCollector(md, self._sink), "mdwiki_blocks", 4)


class _BlockCollector(Treeprocessor):
    def __init__(self, md: markdown.Markdown, sink: list[Block]) -> None:
        super().__init__(md)
        self._sink = sink

    def run(self, root: etree.Element) -> None:
        collected: list[tuple[etree.Element, Block]] = []
        self._collect(root, collected)
        heading_items = [
            (element, block) for element, block in collected if block.kind == "heading"
        ]
        slugs = unique_slugs(block.text for _, block in heading_items)
        for (element, _), slug in zip(heading_items, slugs, strict=True):
            element.set("id", slug)
        self._sink[:] = [block for _, block in collected]

    def _collect(
        self, parent: etree.Element, collected: list[tuple[etree.Element, Block]]
    ) -> None:
        for element in parent:
            tag = element.tag if isinstance(element.tag, str) else ""
            if tag in _CONTAINER_TAGS:
                self._collect(element, collected)
                continue
            if tag in _NESTING_TAGS and self._collect_nested_headings(element, collected):
                continue
            text = self._plain_text(element)
            level = _HEADING_TAGS.get(tag)
            if level is not None:
                collected.append((element, Block(kind="heading", text=text, level=level)))
                continue
            if not text and tag != "hr":
                continue
            collected.append((element, Block(kind=_BLOCK_KINDS.get(tag, "other"), text=text)))

    def _collect_nested_headings(
        self, element: etree.Element, collected: list[tuple[etree.Element, Block]]
    ) -> bool:
        nested = [
            node
            for node in element.iter()
            if node is not element and isinstance(node.tag, str) and node.tag in _HEADING_TAGS
        ]
        if not nested:
            return False
        skipped = {id(node) for node in nested}
        text = _clean_text("".join(_texts_outside(element, skipped)))
        if text:
            kind = _BLOCK_KINDS.get(str(element.tag), "other")
            collected.append((element, Block(kind=kind, text=text)))
        for node in nested:
            heading = Block(
                kind="heading", text=self._plain_text(node), level=_HEADING_TAGS[node.tag]
            )
            collected.append((node, heading))
        return True

    def _plain_text(self, element: etree.Element) -> str:
        return _clean_text("".join(element.itertext()))


def _texts_outside(element: etree.Element, skipped: set[int]) -> Iterator[str]:
    if element.text:
        yield element.text
    for child in element:
        if id(child) not in skipped:
            yield from _texts_outside(child, skipped)
        if child.tail:
            yield child.tail


def _clean_text(raw: str) -> str:
    raw = util.HTML_PLACEHOLDER_RE.sub("", raw)
    raw = _ESCAPED_CHAR_PATTERN.sub(lambda match: chr(int(match.group(1))), raw)
    return " ".join(raw.split())
