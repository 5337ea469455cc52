"""Markdown Extraction Pipeline — convert raw HTML into readable Markdown.

Drops inline style blocks, picks the main content region, renders it through
``MarkdownRenderer`` and normalises the result into blank-line separated
paragraphs. Any failure yields ``FAILURE_TEXT`` instead of an exception.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup
from loguru import logger

from pagelens.browser.dom_tree import Viewport
from pagelens.browser.types import ELISION, BoundingBox
from pagelens.content.formatter import FormatContext, TextFormatter, collapse_whitespace
from pagelens.content.renderers import MarkdownRenderer

FAILURE_TEXT = "Failed to process webpage content"
VISIBLE_FAILURE_TEXT = "Failed to extract visible content"

MAIN_CONTENT_SELECTORS = (
    "article",
    "main",
    '[role="main"]',
    "#main-content",
    ".main-content",
    "#content",
    ".content",
)
MIN_MAIN_CONTENT_CHARS = 100

_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)


@dataclass
class ParsedHTML:
    title: str = ""
    description: str = ""
    content: str = ""


class HTMLParser:
    """Parse one HTML document into title, description and Markdown body."""

    def __init__(self, html: str):
        self.soup = BeautifulSoup(_STYLE_BLOCK.sub("", html or ""), "html.parser")
        self.renderer = MarkdownRenderer(self.soup)

    def get_title(self) -> str:
        title = self.soup.find("title")
        return collapse_whitespace(title.get_text()) if title else ""

    def get_description(self) -> str:
        meta = self.soup.find("meta", attrs={"name": "description"})
        if meta is None:
            return ""
        return collapse_whitespace(meta.get("content") or "")

    def _find_main_region(self) -> Optional[str]:
        for selector in MAIN_CONTENT_SELECTORS:
            element = self.soup.select_one(selector)
            if element is None:
                continue
            content = self.renderer.render(element)
            if len(content.strip()) > MIN_MAIN_CONTENT_CHARS:
                logger.debug(f"[HTMLParser] Main content matched {selector}")
                return content
        return None

    def _render_body(self) -> str:
        # script and style render as nothing, so the tree is left as parsed
        return self.renderer.render(self.soup.body or self.soup)

    def extract_main_content(self) -> str:
        content = self._find_main_region()
        if content is None:
            content = self._render_body()
        return content

    def parse(self) -> ParsedHTML:
        return ParsedHTML(
            title=self.get_title(),
            description=self.get_description(),
            content=TextFormatter.format(self.extract_main_content()),
        )


def parse_html(html: str) -> ParsedHTML:
    """Parse ``html``; on any failure the content is ``FAILURE_TEXT``."""
    try:
        return HTMLParser(html).parse()
    except Exception as exc:
        logger.error(f"[HTMLParser] Failed to process HTML: {exc}")
        return ParsedHTML(content=FAILURE_TEXT)


def extract_text_from_html(html: str) -> str:
    """Full pipeline: HTML in, Markdown document out (title and description first)."""
    parsed = parse_html(html)
    return TextFormatter.generate_structured_content(
        parsed.title, parsed.description, parsed.content
    )



# ── Viewport-visible content ─────────────────────────────────────────────────


@dataclass
class VisibleBlock:
    """A text block of the live page with its viewport-relative box."""

    tag: str
    text: str
    rect: Optional[BoundingBox] = None
    href: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisibleBlock":
        return cls(
            tag=str(data.get("tag", "")).lower(),
            text=str(data.get("text") or ""),
            rect=BoundingBox.from_dict(data.get("rect")),
            href=data.get("href") or None,
        )


def visible_fraction(rect: Optional[BoundingBox], viewport: Viewport) -> float:
    """Share of the box area that lies inside the viewport (0.0 to 1.0)."""
    if rect is None or rect.width <= 0 or rect.height <= 0:
        return 0.0
    width = min(rect.x + rect.width, viewport.width) - max(rect.x, 0.0)
    height = min(rect.y + rect.height, viewport.height) - max(rect.y, 0.0)
    if width <= 0 or height <= 0:
        return 0.0
    return (width * height) / (rect.width * rect.height)


def _format_visible_block(block: VisibleBlock, text: str) -> str:
    if len(block.tag) == 2 and block.tag[0] == "h" and block.tag[1].isdigit():
        return TextFormatter.format_heading(int(block.tag[1]), text).strip()
    if block.tag == "li":
        return TextFormatter.format_list_item(text, FormatContext()).rstrip("\n")
    if block.tag == "a" and block.href:
        return TextFormatter.format_link(text, block.href)
    return text


def extract_visible_text(
    blocks: Sequence[VisibleBlock],
    viewport: Viewport,
    has_above: bool = False,
    has_below: bool = False,
    min_visible_percentage: float = 100.0,
) -> str:
    """Text of the blocks showing in the viewport, one per line.

    A block counts when at least ``min_visible_percentage`` of its box is
    inside the viewport (the default asks for the whole box). ``...`` lines
    mark that the document continues above or below.
    """
    lines: List[str] = []
    for block in blocks:
        text = collapse_whitespace(block.text)
        if not text:
            continue
        fraction = visible_fraction(block.rect, viewport)
        if fraction <= 0 or fraction * 100 < min_visible_percentage:
            continue
        lines.append(_format_visible_block(block, text))

    parts = []
    if has_above:
        parts.append(ELISION)
    parts.extend(lines)
    if has_below:
        parts.append(ELISION)
    return "\n".join(parts)
