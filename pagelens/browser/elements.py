"""Query Engine — resolve elements on a live page into Element Snapshots.

Resolution order is selector, then accessible role (+ name), then visible
text; exactly one strategy runs per call. Every failure is returned as an
``ElementResult`` value and never escapes this module.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from pagelens.browser import scripts
from pagelens.browser.dom_tree import DomNode, Viewport
from pagelens.browser.types import (
    ElementOperationError,
    ElementResult,
    ElementSnapshot,
    ErrorCode,
    InteractiveElement,
    SelectionCriterion,
    classify_error,
)
from pagelens.browser.visibility import is_visible
from pagelens.config import Settings

_OPENERS = {"(": ")", "[": "]"}

INTERACTIVE_SELECTOR = (
    'button, input, textarea, select, [role="button"], [role="checkbox"], [role="radio"]'
)


def split_selector_list(selector: str) -> List[str]:
    """Split a selector list on top-level commas.

    Commas inside parentheses, attribute brackets or quoted strings belong
    to the sub-selector (``:is(a, b)``, ``[title="a,b"]``).
    """
    parts: List[str] = []
    closers: List[str] = []
    quote: Optional[str] = None
    current = ""
    for char in selector:
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char in _OPENERS:
            closers.append(_OPENERS[char])
        elif closers and char == closers[-1]:
            closers.pop()
        elif char == "," and not closers:
            parts.append(current.strip())
            current = ""
            continue
        current += char
    parts.append(current.strip())
    return [part for part in parts if part]


def snapshot_from_node(node: DomNode, viewport: Optional[Viewport] = None) -> ElementSnapshot:
    return ElementSnapshot(
        tag=node.tag,
        id=node.id or None,
        classes=node.classes,
        attributes=dict(node.attributes),
        text=(node.text or "").strip(),
        is_visible=is_visible(node, viewport),
        position=node.rect,
    )


def interactive_from_node(
    node: DomNode, control: Dict[str, Any], viewport: Optional[Viewport] = None
) -> InteractiveElement:
    snapshot = snapshot_from_node(node, viewport)
    return InteractiveElement(
        **vars(snapshot),
        type=str(control.get("type") or node.tag),
        label=control.get("label") or None,
        state=dict(control.get("state") or {}),
        enabled=bool(control.get("enabled", True)),
    )


class ElementQuery:
    """Element lookups against one Playwright page."""

    def __init__(self, page, settings: Optional[Settings] = None):
        self.page = page
        self.settings = settings or Settings()

    # ── Snapshots ────────────────────────────────────────────────────────

    async def get_info(self, handle) -> ElementSnapshot:
        """Read a fresh snapshot of ``handle``.

        Raises:
            ElementOperationError: if the element is gone or cannot be read.
        """
        try:
            payload = await handle.evaluate(scripts.SNAPSHOT_ELEMENT)
        except Exception as exc:
            raise ElementOperationError(
                "Failed to get element info", ErrorCode.ELEMENT_NOT_FOUND, exc
            ) from exc

        matches = DomNode.from_capture(payload or {})
        if not matches:
            raise ElementOperationError(
                "Failed to get element info", ErrorCode.ELEMENT_NOT_FOUND
            )
        node = matches[0]
        if not node.connected:
            raise ElementOperationError(
                "Element was removed from the document", ErrorCode.ELEMENT_NOT_FOUND
            )
        return snapshot_from_node(node, Viewport.from_dict(payload.get("viewport")))

    async def _is_element(self, handle) -> bool:
        try:
            return bool(await handle.evaluate(scripts.IS_ELEMENT))
        except Exception as exc:
            raise ElementOperationError(
                "Element handle is no longer valid", ErrorCode.ELEMENT_NOT_FOUND, exc
            ) from exc

    # ── Resolution ───────────────────────────────────────────────────────

    def _locator(self, criterion: SelectionCriterion):
        if criterion.role:
            if criterion.name:
                return self.page.get_by_role(criterion.role, name=criterion.name)
            return self.page.get_by_role(criterion.role)
        return self.page.get_by_text(criterion.text)

    async def _resolve_one(self, criterion: SelectionCriterion):
        if criterion.selector:
            return await self.page.wait_for_selector(
                criterion.selector,
                state="attached",
                timeout=self.settings.query_timeout_ms,
            )
        locator = self._locator(criterion)
        if await locator.count() == 0:
            return None
        return await locator.first.element_handle(timeout=self.settings.query_timeout_ms)

    async def _resolve_all(self, criterion: SelectionCriterion) -> list:
        if criterion.selector:
            handles = []
            for part in split_selector_list(criterion.selector):
                handles.extend(await self.page.query_selector_all(part))
            return handles
        return await self._locator(criterion).element_handles()

    # ── Public operations ────────────────────────────────────────────────

    async def query(self, criterion: SelectionCriterion) -> ElementResult:
        """Find a single element.

        Args:
            criterion: selector, role (+ name) or text, plus optional
                visibility requirement

        Returns:
            ElementResult with ``info`` set, or a failure value
        """
        if not criterion.has_locator:
            return ElementResult.fail(
                "No selector, role or text given", ErrorCode.ELEMENT_NOT_FOUND
            )
        try:
            handle = await self._resolve_one(criterion)
            if handle is None:
                return ElementResult.fail("Element not found", ErrorCode.ELEMENT_NOT_FOUND)
            if not await self._is_element(handle):
                return ElementResult.fail(
                    "Found node is not an element", ErrorCode.ELEMENT_NOT_FOUND
                )

            info = await self.get_info(handle)
            if criterion.visible and not info.is_visible:
                return ElementResult.fail("Element is not visible", ErrorCode.ELEMENT_NOT_VISIBLE)
            return ElementResult(success=True, info=info)
        except Exception as exc:
            error = classify_error(exc)
            logger.warning(f"[ElementQuery] query failed ({error.code.value}): {error}")
            return ElementResult.from_error(error)

    async def query_all(self, criterion: SelectionCriterion) -> ElementResult:
        """Find every matching element.

        Selector lists are evaluated part by part and concatenated; the same
        element matched by two parts appears twice.
        """
        if not criterion.has_locator:
            return ElementResult.fail(
                "No selector, role or text given", ErrorCode.ELEMENT_NOT_FOUND
            )
        try:
            handles = await self._resolve_all(criterion)
            infos: List[ElementSnapshot] = []
            for handle in handles:
                try:
                    if not await self._is_element(handle):
                        continue
                    infos.append(await self.get_info(handle))
                except ElementOperationError as exc:
                    logger.debug(f"[ElementQuery] Skipping vanished element: {exc}")

            if criterion.visible:
                infos = [info for info in infos if info.is_visible]
            return ElementResult(success=True, elements=infos)
        except Exception as exc:
            error = classify_error(exc)
            logger.warning(f"[ElementQuery] query_all failed ({error.code.value}): {error}")
            return ElementResult.from_error(error)

    async def get_element_info(self, selector: str) -> ElementResult:
        """Snapshot of the first element matching ``selector``."""
        return await self.query(SelectionCriterion(selector=selector))

    async def get_interactive_elements(self, include_hidden: bool = False) -> ElementResult:
        """Buttons, form controls and checkbox/radio/button roles on the page.

        Only visible controls are returned unless ``include_hidden`` is set.
        """
        try:
            payload = await self.page.evaluate(
                scripts.INTERACTIVE_ELEMENTS, INTERACTIVE_SELECTOR
            ) or {}
        except Exception as exc:
            error = classify_error(exc)
            logger.warning(f"[ElementQuery] Interactive scan failed ({error.code.value}): {error}")
            return ElementResult.from_error(error)

        viewport = Viewport.from_dict(payload.get("viewport"))
        controls = [
            interactive_from_node(node, control, viewport)
            for node, control in zip(DomNode.from_capture(payload), payload.get("controls") or [])
        ]
        if not include_hidden:
            controls = [control for control in controls if control.is_visible]
        logger.debug(f"[ElementQuery] Found {len(controls)} interactive element(s)")
        return ElementResult(success=True, elements=controls)
