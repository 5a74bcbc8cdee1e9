"""Resolve a click target to the element worth referencing.

All functions work on a BeautifulSoup snapshot of the live page. The viewer
marks the real click target with `data-pointer-pick` before taking the
snapshot, so the same climb runs here as it would in the page.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from .resources import PICK_MARKER_ATTR

HIGHLIGHT_CLASS = "pointing-highlight"
UNKNOWN_LINE = "?"

_HEADING_RE = re.compile(r"^h[1-6]$")
_ROOT_NAMES = ("body", "html", "[document]")


class PointableKind(enum.Enum):
    RENDER_ERROR = "render-error"
    TABLE_CELL = "table-cell"
    TABLE_ROW = "table-row"
    TABLE = "table"
    CODE_LINE = "code-line"
    LIST = "list"
    DIAGRAM_NODE = "diagram-node"
    DIAGRAM = "diagram"
    FORMULA = "formula"
    CODE_BLOCK = "code-block"
    HEADING = "heading"
    LIST_ITEM = "list-item"
    BLOCKQUOTE = "blockquote"
    THEMATIC_BREAK = "thematic-break"
    OTHER = "other"


@dataclass(frozen=True)
class Pointable:
    element: Tag
    line: str
    kind: PointableKind


def has_class(element: Tag, name: str) -> bool:
    return name in (element.get("class") or [])


def _as_tag(target: PageElement | None) -> Tag | None:
    if isinstance(target, NavigableString):
        return target.parent
    return target if isinstance(target, Tag) else None


def _climb(element: Tag | None):
    """Yield `element` and its ancestors, stopping below `<body>`."""
    while element is not None and element.name not in _ROOT_NAMES:
        yield element
        element = element.parent


def _nearest_lined(element: Tag) -> Tag:
    for ancestor in _climb(element):
        if ancestor.has_attr("data-line"):
            return ancestor
    return element


def get_pointable_element(target: PageElement | None) -> Tag | None:
    """Climb from `target` to the nearest pointable element, or None."""
    for element in _climb(_as_tag(target)):
        if element.name in ("td", "th"):
            return element
        if has_class(element, "code-line"):
            return element
        if element.has_attr("data-diagram-node"):
            return element
        if element.has_attr("data-line"):
            return element
        if has_class(element, "diagram"):
            return _nearest_lined(element)
        if has_class(element, "katex") or has_class(element, "math"):
            return _nearest_lined(element)
    return None


def element_line(element: Tag | None) -> str:
    """Exact diagram line if stamped, else the nearest enclosing `data-line`."""
    if element is not None and element.get("data-source-line"):
        return str(element["data-source-line"])
    for ancestor in _climb(element):
        if ancestor.has_attr("data-line"):
            return str(ancestor["data-line"])
    return UNKNOWN_LINE


def render_error_holder(element: Tag) -> Tag | None:
    for ancestor in _climb(element):
        if ancestor.has_attr("data-render-error"):
            return ancestor
    return None


def classify(element: Tag) -> PointableKind:
    name = (element.name or "").lower()
    if render_error_holder(element) is not None:
        return PointableKind.RENDER_ERROR
    if name in ("td", "th"):
        return PointableKind.TABLE_CELL
    if name == "tr":
        return PointableKind.TABLE_ROW
    if name == "table":
        return PointableKind.TABLE
    if has_class(element, "code-line"):
        return PointableKind.CODE_LINE
    if name in ("ul", "ol"):
        return PointableKind.LIST
    if element.has_attr("data-diagram-node"):
        return PointableKind.DIAGRAM_NODE
    if has_class(element, "diagram"):
        return PointableKind.DIAGRAM
    if has_class(element, "katex") or has_class(element, "math") or element.select_one(".katex") is not None:
        return PointableKind.FORMULA
    if name == "pre":
        return PointableKind.CODE_BLOCK
    if _HEADING_RE.match(name):
        return PointableKind.HEADING
    if name == "li":
        return PointableKind.LIST_ITEM
    if name == "blockquote":
        return PointableKind.BLOCKQUOTE
    if name == "hr":
        return PointableKind.THEMATIC_BREAK
    return PointableKind.OTHER


def resolve(target: PageElement | None) -> Pointable | None:
    element = get_pointable_element(target)
    if element is None:
        return None
    return Pointable(element=element, line=element_line(element), kind=classify(element))


def picked_element(snapshot_html: str) -> Tag | None:
    """Find the click target the page marked in a DOM snapshot."""
    if not snapshot_html:
        return None
    soup = BeautifulSoup(snapshot_html, "html.parser")
    return soup.find(attrs={PICK_MARKER_ATTR: True})


def _add_class(element: Tag, name: str) -> None:
    classes = list(element.get("class") or [])
    if name not in classes:
        element["class"] = classes + [name]


def _remove_class(element: Tag, name: str) -> None:
    classes = [value for value in (element.get("class") or []) if value != name]
    if classes:
        element["class"] = classes
    elif element.has_attr("class"):
        del element["class"]


@dataclass
class PointingContext:
    """Pointing state for one document view.

    `enabled` gates hover highlighting and click resolution; `highlight` is
    the element currently carrying the highlight class.
    """

    enabled: bool = True
    highlight: Tag | None = None

    def set_enabled(self, enabled: bool) -> bool:
        self.enabled = bool(enabled)
        if not self.enabled:
            self.leave()
        return self.enabled

    def toggle(self) -> bool:
        return self.set_enabled(not self.enabled)

    def hover(self, target: PageElement | None) -> Tag | None:
        if not self.enabled:
            return None
        pointable = get_pointable_element(target)
        if pointable is self.highlight:
            return pointable
        self.leave()
        if pointable is not None:
            _add_class(pointable, HIGHLIGHT_CLASS)
            self.highlight = pointable
        return pointable

    def leave(self, related: PageElement | None = None) -> None:
        if self.highlight is None:
            return
        if related is not None and get_pointable_element(related) is self.highlight:
            return
        _remove_class(self.highlight, HIGHLIGHT_CLASS)
        self.highlight = None

    def click(self, target: PageElement | None) -> Pointable | None:
        if not self.enabled:
            return None
        return resolve(target)
