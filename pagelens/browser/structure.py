"""Structured Serializer — depth-bounded pseudo-markup summaries of a DOM.

One algorithm serves both output shapes:

* whole-document mode renders the document element;
* scoped mode renders every top-level match of a selector as its own block,
  each with a fresh depth budget, inside a bracketed list.

A node with element children is expanded when it is the traversal root, is
significant, or sits above ``max_depth``; otherwise its subtree collapses to
``...``. Leaf elements print up to 50 characters of text.
"""

from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, Tag
from loguru import logger
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagelens.browser import scripts
from pagelens.browser.dom_tree import DomNode, parse_html_tree
from pagelens.browser.significance import SIGNIFICANT_TAGS, is_significant
from pagelens.browser.types import (
    ELISION,
    ElementOperationError,
    ElementResult,
    ErrorCode,
    classify_error,
)
from pagelens.browser.visibility import is_rendered, style_allows_display
from pagelens.config import Settings

INDENT = "    "
TEXT_BUDGET = 50
DEFAULT_MAX_DEPTH = 3


@dataclass(frozen=True)
class StructuredNode:
    tag: str
    id: Optional[str] = None
    classes: Tuple[str, ...] = ()
    role: Optional[str] = None
    text: Optional[str] = None
    children: Tuple[Union["StructuredNode", str], ...] = ()
    is_visible: bool = True

    @property
    def is_collapsed(self) -> bool:
        return self.children == (ELISION,)


def truncate_text(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > TEXT_BUDGET:
        return text[: TEXT_BUDGET - len(ELISION)] + ELISION
    return text


def _describe(node: DomNode, rendered: bool) -> Dict:
    return dict(
        tag=node.tag,
        id=node.id or None,
        classes=tuple(node.classes),
        role=node.role or None,
        is_visible=rendered,
    )


def build_structure(
    node: DomNode,
    max_depth: int,
    significant_tags: AbstractSet[str] = SIGNIFICANT_TAGS,
) -> StructuredNode:
    """Convert a DomNode subtree into StructuredNodes, ``node`` being the root.

    Walks with an explicit stack; children are assembled once all of them
    have been built.
    """
    built: Dict[int, StructuredNode] = {}
    # (node, depth, rendered, children_built)
    pending: List[Tuple[DomNode, int, bool, bool]] = [(node, 0, is_rendered(node), False)]
    while pending:
        current, depth, rendered, children_built = pending.pop()
        base = _describe(current, rendered)
        if children_built:
            children = tuple(built.pop(id(child)) for child in current.children)
            built[id(current)] = StructuredNode(children=children, **base)
        elif not current.children:
            built[id(current)] = StructuredNode(text=truncate_text(current.text or ""), **base)
        elif (
            current is not node
            and not is_significant(current, significant_tags)
            and depth >= max_depth
        ):
            built[id(current)] = StructuredNode(children=(ELISION,), **base)
        else:
            pending.append((current, depth, rendered, True))
            for child in current.children:
                child_rendered = (
                    rendered and child.connected and style_allows_display(child.style)
                )
                pending.append((child, depth + 1, child_rendered, False))
    return built[id(node)]


def format_attributes(node: StructuredNode) -> str:
    """Attributes in fixed order: id, class, role."""
    attributes = []
    if node.id:
        attributes.append(f'id="{node.id}"')
    if node.classes:
        attributes.append(f'class="{" ".join(node.classes)}"')
    if node.role:
        attributes.append(f'role="{node.role}"')
    return " " + " ".join(attributes) if attributes else ""


def render_structure(node: StructuredNode, depth: int = 0) -> str:
    lines: List[str] = []
    # Entries are nodes to open, or literal lines (close tags, elisions).
    pending: List[Tuple[Union[StructuredNode, str], int]] = [(node, depth)]
    while pending:
        item, level = pending.pop()
        indent = INDENT * level
        if isinstance(item, str):
            lines.append(indent + item)
            continue

        open_tag = f"<{item.tag}{format_attributes(item)}>"
        close_tag = f"</{item.tag}>"
        if not item.children:
            lines.append(f"{indent}{open_tag}{item.text or ''}{close_tag}")
        elif item.is_collapsed:
            lines.append(f"{indent}{open_tag}{ELISION}{close_tag}")
        else:
            lines.append(indent + open_tag)
            pending.append((close_tag, level))
            pending.extend((child, level + 1) for child in reversed(item.children))
    return "\n".join(lines)


def serialize_node(root: DomNode, max_depth: int) -> str:
    """Whole-document mode: render ``root`` as the traversal root."""
    return render_structure(build_structure(root, max_depth))


def render_match_list(nodes: Sequence[StructuredNode]) -> str:
    """Bracketed, comma-separated list of blocks indented one level."""
    blocks = [
        "\n".join(INDENT + line for line in render_structure(node).split("\n"))
        for node in nodes
    ]
    return "[\n" + ",\n".join(blocks) + "\n]"


def serialize_matches(matches: Sequence[DomNode], max_depth: int) -> str:
    """Scoped mode: one block per match, each depth-bounded from zero."""
    return render_match_list([build_structure(match, max_depth) for match in matches])


def top_level_matches(matches: Sequence[Tag]) -> List[Tag]:
    """Drop matches that sit inside another match."""
    found = {id(tag) for tag in matches}
    return [
        tag for tag in matches
        if not any(id(parent) in found for parent in tag.parents)
    ]


def serialize_html(
    html: str, max_depth: int = DEFAULT_MAX_DEPTH, selector: Optional[str] = None
) -> str:
    """Offline variant over a parsed HTML string.

    Raises:
        ElementOperationError: for malformed selectors or zero matches.
    """
    if not selector:
        return serialize_node(parse_html_tree(html), max_depth)

    soup = BeautifulSoup(html, "html.parser")
    try:
        found = soup.select(selector)
    except Exception as exc:
        raise ElementOperationError(
            f"Invalid selector: {selector}", ErrorCode.INVALID_SELECTOR, exc
        ) from exc

    top_level = top_level_matches(found)
    if not top_level:
        raise ElementOperationError(f"Elements not found: {selector}", ErrorCode.ELEMENT_NOT_FOUND)
    return serialize_matches([DomNode.from_soup(tag) for tag in top_level], max_depth)


class StructureSerializer:
    """Structure summaries of a live Playwright page."""

    def __init__(self, page, settings: Optional[Settings] = None):
        self.page = page
        self.settings = settings or Settings()

    async def _wait_for_document(self):
        try:
            await self.page.wait_for_load_state(
                "domcontentloaded", timeout=self.settings.load_timeout_ms
            )
        except PlaywrightTimeoutError:
            logger.warning("[StructureSerializer] Page load timeout, using available content")

    async def capture(
        self, max_depth: Optional[int] = None, selector: Optional[str] = None
    ) -> List[StructuredNode]:
        """Capture and build StructuredNodes (one per top-level match).

        Raises:
            ElementOperationError: when nothing matches or the capture fails.
        """
        depth = self.settings.default_max_depth if max_depth is None else max_depth
        await self._wait_for_document()
        try:
            payload = await self.page.evaluate(scripts.CAPTURE_TREE, {"selector": selector})
        except Exception as exc:
            raise classify_error(exc) from exc

        matches = DomNode.from_capture(payload or {})
        if not matches:
            target = selector or "document"
            raise ElementOperationError(f"Elements not found: {target}", ErrorCode.ELEMENT_NOT_FOUND)
        return [build_structure(node, depth) for node in matches]

    async def get_structure(
        self, max_depth: Optional[int] = None, selector: Optional[str] = None
    ) -> ElementResult:
        """Render the page structure; failures come back as values."""
        try:
            nodes = await self.capture(max_depth=max_depth, selector=selector)
        except ElementOperationError as exc:
            logger.warning(f"[StructureSerializer] {exc}")
            return ElementResult.from_error(exc)
        except Exception as exc:
            logger.error(f"[StructureSerializer] Capture failed: {exc}")
            return ElementResult.from_error(classify_error(exc))

        if selector:
            structure = render_match_list(nodes)
        else:
            structure = render_structure(nodes[0])
        return ElementResult(success=True, structure=structure)
