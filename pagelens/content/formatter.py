"""Text formatting helpers for the Markdown extraction pipeline.

Indentation travels in an immutable ``FormatContext`` handed down the render
recursion, so sibling renderers never see each other's nesting level.
"""

import re
from dataclasses import dataclass, replace
from typing import List, Sequence

INDENT_UNIT = "  "
FENCE = "```"

_WHITESPACE = re.compile(r"\s+")
_BLANK_LINE = re.compile(r"^\s*$")


@dataclass(frozen=True)
class FormatContext:
    indent_level: int = 0
    list_depth: int = 0

    @property
    def indent(self) -> str:
        return INDENT_UNIT * self.indent_level

    def indented(self, levels: int = 1) -> "FormatContext":
        return replace(self, indent_level=self.indent_level + levels)

    def enter_list(self) -> "FormatContext":
        """Context for the items of a list; nested lists go one level deeper."""
        nested = self.indented() if self.list_depth > 0 else self
        return replace(nested, list_depth=self.list_depth + 1)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class TextFormatter:
    """Markdown fragments and final clean-up."""

    @staticmethod
    def format_text_node(text: str) -> str:
        return _WHITESPACE.sub(" ", text) if text.strip() else ""

    @staticmethod
    def format_heading(level: int, text: str) -> str:
        return f"\n\n{'#' * level} {text}\n\n"

    @staticmethod
    def format_link(text: str, href: str) -> str:
        return f"[{text}]({href})"

    @staticmethod
    def format_image(alt: str, src: str) -> str:
        return f"![{alt}]({src})"

    @staticmethod
    def format_media(kind: str, src: str) -> str:
        return f"[{kind}]({src})"

    @staticmethod
    def format_paragraph(text: str) -> str:
        return f"\n\n{text}\n\n"

    @staticmethod
    def format_list_item(text: str, ctx: FormatContext) -> str:
        return f"{ctx.indent}- {text}\n"

    @staticmethod
    def format_code_block(code: str) -> str:
        return f"\n\n{FENCE}\n{code}\n{FENCE}\n\n"

    @staticmethod
    def format_inline_code(code: str) -> str:
        return f"`{code}`"

    @staticmethod
    def format_table_row(cells: Sequence[str], ctx: FormatContext) -> str:
        return f"{ctx.indent}| {' | '.join(cells)} |"

    @staticmethod
    def format_form_field(field_type: str, name: str, label: str, ctx: FormatContext) -> str:
        line = f"{ctx.indent}{field_type}"
        if name:
            line += f" ({name})"
        if label:
            line += f": {label}"
        return line

    # ── Post-processing ──────────────────────────────────────────────────

    @staticmethod
    def _split_blocks(text: str) -> List[List[str]]:
        """Group lines into blank-line separated blocks; fences stay whole."""
        blocks: List[List[str]] = []
        current: List[str] = []
        in_fence = False
        for line in text.split("\n"):
            if line.strip().startswith(FENCE):
                in_fence = not in_fence
                current.append(line)
                continue
            if not in_fence and _BLANK_LINE.match(line):
                if current:
                    blocks.append(current)
                    current = []
                continue
            current.append(line)
        if current:
            blocks.append(current)
        return blocks

    @staticmethod
    def _normalize_line(line: str) -> str:
        # Renderers indent in whole INDENT_UNITs; odd leftovers are inline spacing.
        leading = len(line) - len(line.lstrip(" "))
        return INDENT_UNIT * (leading // len(INDENT_UNIT)) + collapse_whitespace(line)

    @classmethod
    def format(cls, text: str) -> str:
        """Normalise rendered text into blank-line separated paragraphs."""
        paragraphs = []
        for block in cls._split_blocks(text):
            if any(line.strip().startswith(FENCE) for line in block):
                paragraphs.append("\n".join(line.rstrip() for line in block))
                continue
            lines = [cls._normalize_line(line) for line in block]
            lines = [line for line in lines if line.strip()]
            if lines:
                paragraphs.append("\n".join(lines))
        return "\n\n".join(paragraphs)

    @staticmethod
    def generate_structured_content(title: str, description: str, content: str) -> str:
        parts = []
        if title:
            parts.append(f"# {title}")
        if description:
            parts.append(f"## Description\n{description}")
        if content:
            parts.append(content)
        return "\n\n".join(parts)
