"""DOM-shaped tree shared by the live and offline paths.

A live page subtree is captured in one ``page.evaluate`` call and marshalled
back as a flat record list (see ``scripts``); an HTML string is parsed with
BeautifulSoup. Both end up as ``DomNode`` trees so the visibility,
significance and structure code walks a single shape.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from pagelens.browser.types import BoundingBox


@dataclass
class ComputedStyle:
    display: str = ""
    visibility: str = ""
    opacity: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["ComputedStyle"]:
        if data is None:
            return None
        return cls(
            display=str(data.get("display", "")),
            visibility=str(data.get("visibility", "")),
            opacity=str(data.get("opacity", "")),
        )


@dataclass
class Viewport:
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["Viewport"]:
        if not data:
            return None
        return cls(width=float(data.get("width", 0)), height=float(data.get("height", 0)))


@dataclass
class DomNode:
    """One element of a captured or parsed document.

    ``style`` and ``rect`` are only present for live captures. ``text`` is the
    trimmed textContent; live captures only fill it in for leaf elements.
    """

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: List["DomNode"] = field(default_factory=list)
    style: Optional[ComputedStyle] = None
    rect: Optional[BoundingBox] = None
    connected: bool = True
    parent: Optional["DomNode"] = field(default=None, repr=False, compare=False)

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def classes(self) -> List[str]:
        return self.attributes.get("class", "").split()

    @property
    def role(self) -> str:
        return self.attributes.get("role", "")

    def ancestors(self):
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    # ── Builders ─────────────────────────────────────────────────────────

    @classmethod
    def _from_record(cls, data: Dict[str, Any], parent: Optional["DomNode"] = None) -> "DomNode":
        """A childless node from one capture record."""
        return cls(
            tag=str(data.get("tag", "")).lower(),
            attributes={str(k): str(v) for k, v in (data.get("attributes") or {}).items()},
            text=data.get("text"),
            style=ComputedStyle.from_dict(data.get("style")),
            rect=BoundingBox.from_dict(data.get("rect")),
            connected=bool(data.get("connected", True)),
            parent=parent,
        )

    @classmethod
    def from_capture(cls, payload: Dict[str, Any]) -> List["DomNode"]:
        """Rebuild the trees of a flat capture and return its matches in order.

        Records list parents before children. Context records (ancestors
        captured for their styles only) become parents but never gain
        children.
        """
        records = payload.get("nodes") or []
        nodes: List[DomNode] = []
        for data in records:
            index = data.get("parent", -1)
            parent = nodes[index] if index is not None and 0 <= index < len(nodes) else None
            node = cls._from_record(data, parent)
            if parent is not None and not records[index].get("context"):
                parent.children.append(node)
            nodes.append(node)
        return [nodes[index] for index in payload.get("matches") or [] if 0 <= index < len(nodes)]

    @classmethod
    def from_soup(cls, element: Tag, parent: Optional["DomNode"] = None) -> "DomNode":
        """Build an offline node from a BeautifulSoup element (no style, no geometry)."""
        root = cls._from_tag(element, parent)
        pending = [(root, element)]
        while pending:
            node, tag = pending.pop()
            for child in tag.children:
                if isinstance(child, Tag):
                    child_node = cls._from_tag(child, node)
                    node.children.append(child_node)
                    pending.append((child_node, child))
        return root

    @classmethod
    def _from_tag(cls, element: Tag, parent: Optional["DomNode"]) -> "DomNode":
        return cls(
            tag=element.name.lower(),
            attributes=_soup_attributes(element),
            text=element.get_text().strip(),
            parent=parent,
        )


def _soup_attributes(element: Tag) -> Dict[str, str]:
    attrs = {}
    for key, value in element.attrs.items():
        # bs4 returns multi-valued attributes (class, rel, ...) as lists
        attrs[key] = " ".join(value) if isinstance(value, list) else str(value)
    return attrs


def parse_html_tree(html: str) -> DomNode:
    """Parse an HTML string and return its root element as a DomNode.

    Full documents yield ``<html>``. A fragment with a single top-level
    element yields that element; other fragments are wrapped in ``<html>``.
    """
    soup = BeautifulSoup(html, "html.parser")
    root = soup.find("html")
    if root is None:
        top_level = [child for child in soup.contents if isinstance(child, Tag)]
        if len(top_level) == 1:
            return DomNode.from_soup(top_level[0])
        wrapper = soup.new_tag("html")
        for child in list(soup.contents):
            wrapper.append(child.extract())
        root = wrapper
    return DomNode.from_soup(root)
