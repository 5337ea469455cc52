"""Tests for the Visibility Resolver."""

from pagelens.browser.dom_tree import ComputedStyle, DomNode, Viewport
from pagelens.browser.types import BoundingBox
from pagelens.browser.visibility import (
    intersects_viewport,
    is_rendered,
    is_visible,
    style_allows_display,
)


# ── Fixtures ─────────────────────────────────────────────────────────────────

VIEWPORT = Viewport(width=1280, height=720)


def _style(display="block", visibility="visible", opacity="1"):
    return ComputedStyle(display=display, visibility=visibility, opacity=opacity)


def _node(style=None, rect=BoundingBox(10, 10, 100, 20), parent=None, connected=True):
    return DomNode(
        tag="span",
        style=style or _style(),
        rect=rect,
        parent=parent,
        connected=connected,
    )


# ── Tests ────────────────────────────────────────────────────────────────────


class TestStyleAllowsDisplay:
    def test_plain_style_is_displayed(self):
        assert style_allows_display(_style()) is True

    def test_display_none(self):
        assert style_allows_display(_style(display="none")) is False

    def test_visibility_hidden(self):
        assert style_allows_display(_style(visibility="hidden")) is False

    def test_zero_opacity(self):
        assert style_allows_display(_style(opacity="0")) is False
        assert style_allows_display(_style(opacity="0.0")) is False

    def test_partial_opacity_is_displayed(self):
        assert style_allows_display(_style(opacity="0.5")) is True

    def test_missing_style_counts_as_displayed(self):
        assert style_allows_display(None) is True


class TestIntersectsViewport:
    def test_inside(self):
        assert intersects_viewport(BoundingBox(0, 0, 10, 10), VIEWPORT) is True

    def test_partially_above(self):
        assert intersects_viewport(BoundingBox(0, -5, 10, 10), VIEWPORT) is True

    def test_entirely_above(self):
        assert intersects_viewport(BoundingBox(0, -50, 10, 10), VIEWPORT) is False

    def test_entirely_below(self):
        assert intersects_viewport(BoundingBox(0, 800, 10, 10), VIEWPORT) is False

    def test_entirely_left(self):
        assert intersects_viewport(BoundingBox(-50, 0, 10, 10), VIEWPORT) is False

    def test_entirely_right(self):
        assert intersects_viewport(BoundingBox(1300, 0, 10, 10), VIEWPORT) is False


class TestIsVisible:
    def test_visible_element(self):
        assert is_visible(_node(), VIEWPORT) is True

    def test_zero_size_box(self):
        assert is_visible(_node(rect=BoundingBox(0, 0, 0, 10)), VIEWPORT) is False
        assert is_visible(_node(rect=BoundingBox(0, 0, 10, 0)), VIEWPORT) is False

    def test_missing_box(self):
        assert is_visible(_node(rect=None), VIEWPORT) is False

    def test_offscreen(self):
        assert is_visible(_node(rect=BoundingBox(0, 2000, 10, 10)), VIEWPORT) is False

    def test_no_viewport_skips_intersection(self):
        assert is_visible(_node(rect=BoundingBox(0, 2000, 10, 10))) is True

    def test_own_style_hidden(self):
        assert is_visible(_node(style=_style(visibility="hidden")), VIEWPORT) is False

    def test_hidden_ancestor_hides_visible_descendant(self):
        grandparent = DomNode(tag="div", style=_style(display="none"))
        parent = DomNode(tag="div", style=_style(), parent=grandparent)
        node = _node(parent=parent)
        assert is_visible(node, VIEWPORT) is False

    def test_transparent_ancestor(self):
        parent = DomNode(tag="div", style=_style(opacity="0"))
        assert is_visible(_node(parent=parent), VIEWPORT) is False

    def test_detached_element(self):
        assert is_visible(_node(connected=False), VIEWPORT) is False

    def test_captured_ancestor_chain(self):
        (node,) = DomNode.from_capture({
            "nodes": [
                {"tag": "body", "style": _style().__dict__, "parent": -1, "context": True},
                {
                    "tag": "section",
                    "style": {"display": "none", "visibility": "visible", "opacity": "1"},
                    "parent": 0,
                    "context": True,
                },
                {
                    "tag": "span",
                    "style": _style().__dict__,
                    "rect": {"x": 0, "y": 0, "width": 10, "height": 10},
                    "parent": 1,
                },
            ],
            "matches": [2],
        })
        assert [a.tag for a in node.ancestors()] == ["section", "body"]
        assert node.parent.children == []
        assert is_visible(node, VIEWPORT) is False

    def test_unreadable_node_is_hidden(self):
        node = _node()
        node.rect = "not a box"
        assert is_visible(node, VIEWPORT) is False


class TestIsRendered:
    def test_offline_node_without_style(self):
        parent = DomNode(tag="div")
        assert is_rendered(DomNode(tag="p", parent=parent)) is True

    def test_hidden_ancestor(self):
        parent = DomNode(tag="div", style=_style(display="none"))
        assert is_rendered(DomNode(tag="p", style=_style(), parent=parent)) is False
