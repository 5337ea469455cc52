"""Tag-family renderers turning a BeautifulSoup tree into Markdown text."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from pagelens.content.formatter import FormatContext, TextFormatter, collapse_whitespace

_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
_FORM_CONTROLS = ["input", "textarea", "select", "button"]


class TagFamily(str, Enum):
    IMAGE = "image"
    MEDIA = "media"
    LINK = "link"
    BLOCK = "block"
    LIST = "list"
    LIST_ITEM = "list_item"
    HEADING = "heading"
    LINE_BREAK = "line_break"
    PREFORMATTED = "preformatted"
    CODE = "code"
    TABLE = "table"
    FORM = "form"
    SKIP = "skip"
    CONTAINER = "container"


_FAMILY_BY_TAG = {
    "img": TagFamily.IMAGE,
    "video": TagFamily.MEDIA,
    "audio": TagFamily.MEDIA,
    "a": TagFamily.LINK,
    "ul": TagFamily.LIST,
    "ol": TagFamily.LIST,
    "menu": TagFamily.LIST,
    "li": TagFamily.LIST_ITEM,
    "br": TagFamily.LINE_BREAK,
    "pre": TagFamily.PREFORMATTED,
    "code": TagFamily.CODE,
    "table": TagFamily.TABLE,
    "form": TagFamily.FORM,
}
_FAMILY_BY_TAG.update({f"h{level}": TagFamily.HEADING for level in range(1, 7)})
_FAMILY_BY_TAG.update({
    tag: TagFamily.BLOCK
    for tag in (
        "p", "div", "section", "article", "main", "header", "footer", "nav",
        "aside", "blockquote", "figure", "figcaption", "details", "summary",
        "address", "dl", "dt", "dd",
    )
})
_FAMILY_BY_TAG.update({
    tag: TagFamily.SKIP
    for tag in ("script", "style", "noscript", "template", "head", "title", "svg", "iframe")
})

SKIP_TAGS = frozenset(tag for tag, family in _FAMILY_BY_TAG.items() if family is TagFamily.SKIP)


def classify_tag(name: Optional[str]) -> TagFamily:
    return _FAMILY_BY_TAG.get((name or "").lower(), TagFamily.CONTAINER)


@dataclass
class _Frame:
    """A tag whose children are being rendered."""

    element: Tag
    family: TagFamily
    ctx: FormatContext
    children: Iterator
    child_ctx: FormatContext
    out: List[str]
    parts: List[str] = field(default_factory=list)


class MarkdownRenderer:
    """Render nodes of one parsed document.

    Each ``TagFamily`` has exactly one ``_render_<family>`` method, called
    with the already rendered children (empty for families that read the
    element directly). Unknown tags fall into ``CONTAINER``. The walk keeps
    its own stack, so nesting depth is not bounded by the interpreter.
    """

    def __init__(self, document: BeautifulSoup):
        self.document = document

    def render(self, node, ctx: Optional[FormatContext] = None) -> str:
        result: List[str] = []
        stack: List[_Frame] = []
        self._enter(node, ctx or FormatContext(), result, stack)
        while stack:
            frame = stack[-1]
            child = next(frame.children, None)
            if child is not None:
                self._enter(child, frame.child_ctx, frame.parts, stack)
                continue
            stack.pop()
            handler = getattr(self, f"_render_{frame.family.value}")
            frame.out.append(handler(frame.element, frame.ctx, "".join(frame.parts)))
        return "".join(result)

    def _enter(self, node, ctx: FormatContext, out: List[str], stack: List[_Frame]):
        if isinstance(node, NavigableString):
            if not isinstance(node, _IGNORED_STRINGS):
                out.append(TextFormatter.format_text_node(str(node)))
            return
        if not isinstance(node, Tag):
            return
        family = classify_tag(node.name)
        child_ctx = self._child_context(node, family, ctx)
        if child_ctx is None:
            out.append(getattr(self, f"_render_{family.value}")(node, ctx, ""))
            return
        stack.append(_Frame(node, family, ctx, iter(list(node.children)), child_ctx, out))

    def _child_context(
        self, element: Tag, family: TagFamily, ctx: FormatContext
    ) -> Optional[FormatContext]:
        """Context for rendering the children, or None when they are not rendered."""
        if family is TagFamily.LIST:
            return ctx.enter_list()
        if family in (TagFamily.BLOCK, TagFamily.LIST_ITEM, TagFamily.HEADING, TagFamily.CONTAINER):
            return ctx
        if family is TagFamily.LINK:
            return None if self._link_target(element) else ctx
        if family is TagFamily.FORM:
            return None if self._form_controls(element) else ctx
        return None

    # ── Inline ───────────────────────────────────────────────────────────

    def _render_image(self, element: Tag, ctx: FormatContext, content: str) -> str:
        src = element.get("src")
        if not src:
            return ""
        return TextFormatter.format_image((element.get("alt") or "").strip(), src)

    def _render_media(self, element: Tag, ctx: FormatContext, content: str) -> str:
        sources: List[str] = []
        if element.get("src"):
            sources.append(element["src"])
        sources.extend(
            source["src"] for source in element.find_all("source") if source.get("src")
        )
        links = [TextFormatter.format_media(element.name, src) for src in sources]
        return f" {' '.join(links)} " if links else ""

    @staticmethod
    def _link_target(element: Tag) -> Optional[Tuple[str, str]]:
        href = element.get("href")
        text = collapse_whitespace(element.get_text())
        return (text, href) if href and text else None

    def _render_link(self, element: Tag, ctx: FormatContext, content: str) -> str:
        target = self._link_target(element)
        if target is None:
            return content
        return TextFormatter.format_link(*target)

    def _render_line_break(self, element: Tag, ctx: FormatContext, content: str) -> str:
        return "\n"

    def _render_code(self, element: Tag, ctx: FormatContext, content: str) -> str:
        code = element.get_text()
        if not code.strip():
            return ""
        if "\n" in code.strip():
            return TextFormatter.format_code_block(code.strip("\n"))
        return TextFormatter.format_inline_code(code.strip())

    # ── Blocks ───────────────────────────────────────────────────────────

    def _render_block(self, element: Tag, ctx: FormatContext, content: str) -> str:
        content = content.strip()
        return TextFormatter.format_paragraph(content) if content else ""

    def _render_heading(self, element: Tag, ctx: FormatContext, content: str) -> str:
        text = collapse_whitespace(content)
        if not text:
            return ""
        return TextFormatter.format_heading(int(element.name[1]), text)

    def _render_preformatted(self, element: Tag, ctx: FormatContext, content: str) -> str:
        code = element.get_text().strip("\n")
        return TextFormatter.format_code_block(code) if code.strip() else ""

    def _render_list(self, element: Tag, ctx: FormatContext, content: str) -> str:
        return f"\n{content}\n" if content.strip() else ""

    def _render_list_item(self, element: Tag, ctx: FormatContext, content: str) -> str:
        content = content.strip()
        return TextFormatter.format_list_item(content, ctx) if content else ""

    def _render_table(self, element: Tag, ctx: FormatContext, content: str) -> str:
        rows = []
        for row in element.find_all("tr"):
            cells = [collapse_whitespace(cell.get_text()) for cell in row.find_all(["th", "td"])]
            if cells:
                rows.append(TextFormatter.format_table_row(cells, ctx))
        return "\n\n" + "\n".join(rows) + "\n\n" if rows else ""

    # ── Forms ────────────────────────────────────────────────────────────

    def find_label(self, control: Tag) -> str:
        """Label text for a form control: ``label[for=id]`` first, then an enclosing label."""
        control_id = control.get("id")
        if control_id:
            label = self.document.find("label", attrs={"for": control_id})
            if label is not None:
                return collapse_whitespace(label.get_text())

        for parent in control.parents:
            if parent.name == "label":
                text = collapse_whitespace(parent.get_text())
                own = collapse_whitespace(control.get_text())
                if own:
                    text = text.replace(own, "")
                return text.strip()
        return ""

    @staticmethod
    def _form_controls(element: Tag) -> List[Tag]:
        return [
            control for control in element.find_all(_FORM_CONTROLS)
            if (control.get("type") or "").lower() != "hidden"
        ]

    def _render_form(self, element: Tag, ctx: FormatContext, content: str) -> str:
        controls = self._form_controls(element)
        if not controls:
            return content

        field_ctx = ctx.indented()
        lines = [f"{ctx.indent}Form:"]
        for control in controls:
            field_type = control.get("type") or control.name
            lines.append(TextFormatter.format_form_field(
                field_type, control.get("name") or "", self.find_label(control), field_ctx
            ))
        return "\n\n" + "\n".join(lines) + "\n\n"

    # ── Everything else ──────────────────────────────────────────────────

    def _render_skip(self, element: Tag, ctx: FormatContext, content: str) -> str:
        return ""

    def _render_container(self, element: Tag, ctx: FormatContext, content: str) -> str:
        return content
