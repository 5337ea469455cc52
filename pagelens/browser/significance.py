"""Significance Classifier — which branches survive depth truncation."""

from typing import AbstractSet

from pagelens.browser.dom_tree import DomNode

SIGNIFICANT_TAGS = frozenset({
    "main", "nav", "header", "footer", "article", "section", "aside",
    "h1", "h2", "h3",
    "form", "button", "input", "select", "textarea", "a",
    "img", "video", "audio",
    "table", "dialog",
})


def is_significant(node: DomNode, significant_tags: AbstractSet[str] = SIGNIFICANT_TAGS) -> bool:
    """True for landmark/semantic tags and for nodes with an id, role or class."""
    try:
        return (
            node.tag.lower() in significant_tags
            or bool(node.id)
            or bool(node.role)
            or len(node.classes) > 0
        )
    except Exception:
        return False
