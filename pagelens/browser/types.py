"""Element records, query criteria and the error taxonomy shared by the
live-page components (structure, query engine, mutation bridge)."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

ELISION = "..."


class ErrorCode(str, Enum):
    """Failure categories reported by element operations."""
    ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"
    ELEMENT_NOT_VISIBLE = "ELEMENT_NOT_VISIBLE"
    OPERATION_TIMEOUT = "OPERATION_TIMEOUT"
    INVALID_SELECTOR = "INVALID_SELECTOR"
    OBSERVER_ERROR = "OBSERVER_ERROR"


class ElementOperationError(Exception):
    """Raised inside a component; converted to an ElementResult at its boundary."""

    def __init__(self, message: str, code: ErrorCode, details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ObserverError(ElementOperationError):
    """Mutation observer setup failed."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, ErrorCode.OBSERVER_ERROR, details)


_SELECTOR_SYNTAX_MARKERS = (
    "is not a valid selector",
    "Unexpected token",
    "SyntaxError",
    "Malformed selector",
    "Invalid character",
)


def classify_error(exc: Exception) -> ElementOperationError:
    """Map a Playwright/driver exception onto the error taxonomy."""
    if isinstance(exc, ElementOperationError):
        return exc
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, PlaywrightTimeoutError):
        return ElementOperationError(message, ErrorCode.OPERATION_TIMEOUT, exc)
    if any(marker in message for marker in _SELECTOR_SYNTAX_MARKERS):
        return ElementOperationError(message, ErrorCode.INVALID_SELECTOR, exc)
    return ElementOperationError(message, ErrorCode.ELEMENT_NOT_FOUND, exc)


@dataclass
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["BoundingBox"]:
        if not data:
            return None
        return cls(
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
        )


@dataclass
class ElementSnapshot:
    """Point-in-time description of one element, owned by the caller."""

    tag: str
    classes: List[str] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    is_visible: bool = False
    id: Optional[str] = None
    position: Optional[BoundingBox] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.position is None:
            data.pop("position")
        if self.id is None:
            data.pop("id")
        return data


@dataclass
class InteractiveElement(ElementSnapshot):
    """Snapshot of a control a user can operate.

    ``type`` is the control kind (``button``, ``checkbox``, ``select``, an
    input type or an ARIA role); ``state`` holds ``checked``, ``value`` or
    ``selected`` as the kind allows.
    """

    type: str = ""
    label: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True


_TRUE_FLAGS = frozenset({"true", "1", "yes", "on"})
_FALSE_FLAGS = frozenset({"false", "0", "no", "off", ""})


def parse_flag(value: Any, default: bool = False) -> bool:
    """Strict boolean for tool arguments; ``"false"`` is False.

    Raises:
        ValueError: for anything that is not a recognisable boolean.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        flag = value.strip().lower()
        if flag in _TRUE_FLAGS:
            return True
        if flag in _FALSE_FLAGS:
            return False
    raise ValueError(f"Expected a boolean, got {value!r}")


@dataclass
class SelectionCriterion:
    """How to locate elements: selector, then role + name, then text."""

    selector: Optional[str] = None
    role: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None
    visible: bool = False

    @property
    def has_locator(self) -> bool:
        return bool(self.selector or self.role or self.text)

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "SelectionCriterion":
        """Build a criterion from tool arguments.

        Raises:
            ValueError: if ``visible`` is not a boolean.
        """
        return cls(
            selector=params.get("selector") or None,
            role=params.get("role") or None,
            name=params.get("name") or None,
            text=params.get("text") or None,
            visible=parse_flag(params.get("visible")),
        )


@dataclass
class ObserverOptions:
    """Which mutations to watch and where."""

    attributes: bool = False
    child_list: bool = False
    subtree: bool = False
    attribute_filter: Optional[List[str]] = None
    root_selector: str = "body"

    def to_init(self) -> Dict[str, Any]:
        """MutationObserverInit dict for the in-page observer."""
        watch_attributes = self.attributes or bool(self.attribute_filter)
        init: Dict[str, Any] = {
            "attributes": watch_attributes,
            "childList": self.child_list,
            "subtree": self.subtree,
        }
        if watch_attributes:
            init["attributeOldValue"] = True
        if self.attribute_filter:
            init["attributeFilter"] = list(self.attribute_filter)
        return init


@dataclass
class AttributeChange:
    attribute: Optional[str]
    old_value: Optional[str]
    new_value: Optional[str]


@dataclass
class ChangeEvent:
    """A single relayed DOM mutation."""

    type: str  # "added" | "removed" | "modified"
    target: ElementSnapshot
    changes: Optional[AttributeChange] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "target": self.target.to_dict()}
        if self.changes is not None:
            data["changes"] = asdict(self.changes)
        return data


@dataclass
class ElementResult:
    """Outcome of an element operation; failures are values, not exceptions."""

    success: bool
    error: Optional[str] = None
    code: Optional[ErrorCode] = None
    info: Optional[ElementSnapshot] = None
    elements: Optional[List[ElementSnapshot]] = None
    structure: Optional[str] = None

    @classmethod
    def fail(cls, error: str, code: Optional[ErrorCode] = None) -> "ElementResult":
        return cls(success=False, error=error, code=code)

    @classmethod
    def from_error(cls, exc: ElementOperationError) -> "ElementResult":
        return cls(success=False, error=str(exc), code=exc.code)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            data: Dict[str, Any] = {"success": False, "error": self.error or "Unknown error"}
            if self.code is not None:
                data["code"] = self.code.value
            return data
        data = {"success": True}
        if self.info is not None:
            data["info"] = self.info.to_dict()
        if self.elements is not None:
            data["elements"] = [el.to_dict() for el in self.elements]
        if self.structure is not None:
            data["structure"] = self.structure
        return data
