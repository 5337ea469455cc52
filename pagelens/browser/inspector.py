"""Page Inspector — the live introspection components bound to one page."""

from typing import Optional

from loguru import logger

from pagelens.browser import scripts
from pagelens.browser.dom_tree import Viewport
from pagelens.browser.elements import ElementQuery
from pagelens.browser.observer import ChangeCallback, MutationBridge, ObserverSubscription
from pagelens.browser.structure import StructureSerializer
from pagelens.browser.types import ElementResult, ObserverOptions, SelectionCriterion
from pagelens.config import Settings
from pagelens.content.formatter import TextFormatter
from pagelens.content.html_parser import (
    FAILURE_TEXT,
    VISIBLE_FAILURE_TEXT,
    VisibleBlock,
    extract_visible_text,
    parse_html,
)


class PageInspector:
    """Structure, element lookups, mutation watches and Markdown for a page."""

    def __init__(self, page, settings: Optional[Settings] = None):
        self.page = page
        self.settings = settings or Settings()
        self.structure = StructureSerializer(page, self.settings)
        self.elements = ElementQuery(page, self.settings)
        self.observer = MutationBridge(page)

    async def get_structure(
        self, max_depth: Optional[int] = None, selector: Optional[str] = None
    ) -> ElementResult:
        return await self.structure.get_structure(max_depth=max_depth, selector=selector)

    async def get_element_info(self, selector: str) -> ElementResult:
        return await self.elements.get_element_info(selector)

    async def query(self, criterion: SelectionCriterion) -> ElementResult:
        return await self.elements.query(criterion)

    async def query_all(self, criterion: SelectionCriterion) -> ElementResult:
        return await self.elements.query_all(criterion)

    async def get_interactive_elements(self, include_hidden: bool = False) -> ElementResult:
        return await self.elements.get_interactive_elements(include_hidden=include_hidden)

    async def observe(
        self, options: Optional[ObserverOptions], callback: ChangeCallback
    ) -> ObserverSubscription:
        return await self.observer.observe(options, callback)

    async def get_page_content(self) -> str:
        """Current page as Markdown, headed by its title and meta description."""
        try:
            html = await self.page.content()
            title = await self.page.title()
            description = await self.page.evaluate(scripts.PAGE_DESCRIPTION)
        except Exception as exc:
            logger.error(f"[PageInspector] Failed to read page content: {exc}")
            return FAILURE_TEXT

        parsed = parse_html(html)
        return TextFormatter.generate_structured_content(
            (title or parsed.title).strip(),
            (description or parsed.description).strip(),
            parsed.content,
        )

    async def get_visible_content(self, min_visible_percentage: float = 100.0) -> str:
        """Text showing in the viewport, with ``...`` where the page continues."""
        try:
            payload = await self.page.evaluate(scripts.VISIBLE_CONTENT) or {}
        except Exception as exc:
            logger.error(f"[PageInspector] Failed to read visible content: {exc}")
            return VISIBLE_FAILURE_TEXT

        viewport = Viewport.from_dict(payload.get("viewport"))
        if viewport is None:
            logger.error("[PageInspector] Viewport size unavailable")
            return VISIBLE_FAILURE_TEXT
        return extract_visible_text(
            [VisibleBlock.from_dict(block) for block in payload.get("blocks") or []],
            viewport,
            has_above=bool(payload.get("hasAbove")),
            has_below=bool(payload.get("hasBelow")),
            min_visible_percentage=min_visible_percentage,
        )
