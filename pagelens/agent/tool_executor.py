"""Tool Executor — dispatches named tool calls to a PageInspector.

Maps tool names to handler methods and returns structured ToolResult
objects a transport can serialise as-is.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger

from pagelens.browser.structure import DEFAULT_MAX_DEPTH, serialize_html
from pagelens.browser.types import (
    ElementOperationError,
    ElementResult,
    SelectionCriterion,
    parse_flag,
)
from pagelens.content.html_parser import extract_text_from_html

_CRITERION_SCHEMA = {
    "selector": {"type": "string", "description": "CSS selector (takes precedence)"},
    "role": {"type": "string", "description": "Accessible role, e.g. 'button'"},
    "name": {"type": "string", "description": "Accessible name, used with role"},
    "text": {"type": "string", "description": "Visible text to match"},
    "visible": {"type": "boolean", "description": "Only return visible elements"},
}

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "get_elements",
        "description": "Depth-bounded structural summary of the page or of each selector match.",
        "input_schema": {
            "type": "object",
            "properties": {
                "maxDepth": {"type": "integer", "minimum": 0},
                "selector": {"type": "string"},
            },
        },
    },
    {
        "name": "get_element_info",
        "description": "Snapshot of the first element matching a CSS selector.",
        "input_schema": {
            "type": "object",
            "properties": {"selector": {"type": "string"}},
            "required": ["selector"],
        },
    },
    {
        "name": "query_element",
        "description": "Find one element by selector, role + name, or text.",
        "input_schema": {"type": "object", "properties": _CRITERION_SCHEMA},
    },
    {
        "name": "query_elements",
        "description": "Find every element matching selector, role + name, or text.",
        "input_schema": {"type": "object", "properties": _CRITERION_SCHEMA},
    },
    {
        "name": "get_page_content",
        "description": "Current page converted to Markdown.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "html_to_markdown",
        "description": "Convert an HTML string to Markdown.",
        "input_schema": {
            "type": "object",
            "properties": {"html": {"type": "string"}},
            "required": ["html"],
        },
    },
    {
        "name": "html_structure",
        "description": "Depth-bounded structural summary of an HTML string.",
        "input_schema": {
            "type": "object",
            "properties": {
                "html": {"type": "string"},
                "maxDepth": {"type": "integer", "minimum": 0},
                "selector": {"type": "string"},
            },
            "required": ["html"],
        },
    },
    {
        "name": "get_interactive_elements",
        "description": "Buttons, inputs, selects and checkbox/radio controls with label, state and bounds.",
        "input_schema": {
            "type": "object",
            "properties": {
                "includeHidden": {"type": "boolean", "description": "Also list hidden controls"},
            },
        },
    },
    {
        "name": "get_visible_content",
        "description": "Text currently inside the viewport; '...' marks content above or below.",
        "input_schema": {
            "type": "object",
            "properties": {
                "minVisiblePercentage": {"type": "number", "minimum": 0, "maximum": 100},
            },
        },
    },
]


@dataclass
class ToolResult:
    """Result of a single tool call."""

    success: bool
    observation: str
    data: Any = None
    error: Optional[str] = None


def _from_element_result(result: ElementResult, observation: str) -> ToolResult:
    if not result.success:
        return ToolResult(
            success=False, observation="", data=result.to_dict(), error=result.error
        )
    return ToolResult(success=True, observation=observation, data=result.to_dict())


class ToolExecutor:
    """Execute introspection tools against one page.

    Each tool is a method named ``_tool_<name>`` that receives keyword
    arguments from the tool call parameters.
    """

    def __init__(self, inspector):
        self.inspector = inspector

    async def execute(self, tool_name: str, params: Optional[Dict] = None) -> ToolResult:
        """Dispatch a tool by name.

        Args:
            tool_name: Name of the tool (e.g. 'get_elements')
            params: Dict of parameters for the tool

        Returns:
            ToolResult with success status and observation text
        """
        handler = getattr(self, f"_tool_{tool_name}", None)
        if not handler:
            return ToolResult(
                success=False,
                observation="",
                error=f"Unknown tool: {tool_name}",
            )
        try:
            return await handler(**(params or {}))
        except Exception as exc:
            logger.error(f"[ToolExecutor] {tool_name} failed: {exc}")
            return ToolResult(success=False, observation="", error=str(exc))

    # ── Tool handlers ────────────────────────────────────────────────────

    async def _tool_get_elements(
        self,
        selector: Optional[str] = None,
        maxDepth: Optional[int] = None,
        max_depth: Optional[int] = None,
        **_,
    ) -> ToolResult:
        """Structural summary of the page or of each selector match."""
        depth = max_depth if max_depth is not None else maxDepth
        result = await self.inspector.get_structure(
            max_depth=int(depth) if depth is not None else None,
            selector=selector or None,
        )
        return _from_element_result(result, result.structure or "")

    async def _tool_get_element_info(self, selector: str, **_) -> ToolResult:
        result = await self.inspector.get_element_info(selector)
        return _from_element_result(result, f"Element info for {selector}")

    async def _tool_query_element(self, **params) -> ToolResult:
        result = await self.inspector.query(SelectionCriterion.from_params(params))
        observation = json.dumps(result.info.to_dict()) if result.info else ""
        return _from_element_result(result, observation)

    async def _tool_query_elements(self, **params) -> ToolResult:
        result = await self.inspector.query_all(SelectionCriterion.from_params(params))
        count = len(result.elements or [])
        return _from_element_result(result, f"Found {count} element(s)")

    async def _tool_get_page_content(self, **_) -> ToolResult:
        content = await self.inspector.get_page_content()
        return ToolResult(success=True, observation=content, data={"content": content})

    async def _tool_html_to_markdown(self, html: str, **_) -> ToolResult:
        content = extract_text_from_html(html)
        return ToolResult(success=True, observation=content, data={"content": content})

    async def _tool_html_structure(
        self,
        html: str,
        selector: Optional[str] = None,
        maxDepth: Optional[int] = None,
        max_depth: Optional[int] = None,
        **_,
    ) -> ToolResult:
        depth = max_depth if max_depth is not None else maxDepth
        depth = DEFAULT_MAX_DEPTH if depth is None else int(depth)
        try:
            structure = serialize_html(html, max_depth=depth, selector=selector or None)
        except ElementOperationError as exc:
            return _from_element_result(ElementResult.from_error(exc), "")
        return _from_element_result(ElementResult(success=True, structure=structure), structure)

    async def _tool_get_interactive_elements(
        self, includeHidden=None, include_hidden=None, **_
    ) -> ToolResult:
        flag = include_hidden if include_hidden is not None else includeHidden
        result = await self.inspector.get_interactive_elements(include_hidden=parse_flag(flag))
        count = len(result.elements or [])
        return _from_element_result(result, f"Found {count} interactive element(s)")

    async def _tool_get_visible_content(
        self,
        minVisiblePercentage: Optional[float] = None,
        min_visible_percentage: Optional[float] = None,
        **_,
    ) -> ToolResult:
        percentage = (
            min_visible_percentage if min_visible_percentage is not None else minVisiblePercentage
        )
        content = await self.inspector.get_visible_content(
            min_visible_percentage=100.0 if percentage is None else float(percentage)
        )
        return ToolResult(success=True, observation=content, data={"content": content})
