"""Visibility Resolver — is a captured element effectively visible?

Works on ``DomNode`` values whose ``style``/``rect`` were captured in the
page. Every function here is total: odd shapes and detached nodes resolve to
"not visible" instead of raising.
"""

from typing import Optional

from loguru import logger

from pagelens.browser.dom_tree import ComputedStyle, DomNode, Viewport
from pagelens.browser.types import BoundingBox


def _is_transparent(opacity: str) -> bool:
    if opacity == "0":
        return True
    try:
        return float(opacity) == 0.0
    except ValueError:
        return False


def style_allows_display(style: Optional[ComputedStyle]) -> bool:
    """Own-style check: display, visibility and opacity."""
    if style is None:
        return True
    return (
        style.display != "none"
        and style.visibility != "hidden"
        and not _is_transparent(style.opacity)
    )


def intersects_viewport(rect: BoundingBox, viewport: Viewport) -> bool:
    """False when the box lies entirely outside the viewport on any side."""
    if rect.y + rect.height < 0:
        return False
    if rect.x + rect.width < 0:
        return False
    if rect.y > viewport.height:
        return False
    if rect.x > viewport.width:
        return False
    return True


def is_rendered(node: DomNode) -> bool:
    """Style-only visibility of ``node`` and all of its ancestors."""
    try:
        if not node.connected:
            return False
        if not style_allows_display(node.style):
            return False
        return all(style_allows_display(ancestor.style) for ancestor in node.ancestors())
    except Exception as exc:
        logger.debug(f"[Visibility] Treating unreadable node as hidden: {exc}")
        return False


def is_visible(node: DomNode, viewport: Optional[Viewport] = None) -> bool:
    """Full visibility check used for Element Snapshots.

    Requires a positive box, displayable own style, a box that intersects
    the viewport (when one is known) and displayable styles on every
    ancestor. A hidden ancestor hides the node whatever its own style says.
    """
    try:
        rect = node.rect
        if rect is None or rect.width <= 0 or rect.height <= 0:
            return False
        if viewport is not None and not intersects_viewport(rect, viewport):
            return False
        return is_rendered(node)
    except Exception as exc:
        logger.debug(f"[Visibility] Treating unreadable node as hidden: {exc}")
        return False
