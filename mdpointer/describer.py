"""Short, type-tagged descriptions of pointable elements."""

from __future__ import annotations

import re

from bs4 import NavigableString, Tag

from .pointing import (
    Pointable,
    PointableKind,
    classify,
    element_line,
    has_class,
    render_error_holder,
)

_LANGUAGE_RE = re.compile(r"language-(\w+)")
_FLOW_EDGE_ID_RE = re.compile(r"(?:^|[-_])L[-_]([^-_]+)[-_]([^-_]+)[-_]\d+$")

NODE_TEXT_LIMIT = 40
LIST_ENTRY_LIMIT = 20
FORMULA_LIMIT = 60
CODE_PREVIEW_LIMIT = 50
ITEM_LIMIT = 60
FALLBACK_LIMIT = 80

# Marker attribute -> diagram element type; checked in order.
_DIAGRAM_MARKERS = (
    ("data-class-name", "class"),
    ("data-class-relation", "relation"),
    ("data-state-node", "state"),
    ("data-state-transition", "transition"),
    ("data-er-attr", "attribute"),
    ("data-er-entity", "entity"),
    ("data-er-relation", "relationship"),
    ("data-gantt-task-name", "task"),
    ("data-gantt-task", "task"),
    ("data-gantt-section", "section"),
    ("data-gantt-title", "title"),
    ("data-pie-slice", "slice"),
    ("data-pie-legend", "legend"),
    ("data-pie-title", "title"),
    ("data-git-commit", "commit"),
    ("data-git-label", "commit"),
    ("data-git-branch", "branch"),
    ("data-mindmap-node", "node"),
    ("data-seq-note", "note"),
)


def truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _text(element: Tag) -> str:
    return element.get_text().strip()


def _collapsed(element: Tag) -> str:
    return " ".join(element.get_text().split())


def _code_language(element: Tag) -> str:
    pre = element if element.name == "pre" else element.find_parent("pre")
    code = pre.find("code") if pre is not None else None
    if code is None:
        return ""
    match = _LANGUAGE_RE.search(" ".join(code.get("class") or []))
    return match.group(1) if match else ""


def table_row_markdown(row: Tag) -> str:
    cells = [_text(cell) for cell in row.find_all(["td", "th"])]
    return "| " + " | ".join(cells) + " |"


def _row_index(row: Tag) -> int:
    table = row.find_parent("table")
    if table is None:
        return 0
    rows = table.find_all("tr")
    return next((index for index, candidate in enumerate(rows) if candidate is row), 0)


def _own_item_text(item: Tag) -> tuple[str, bool]:
    """Return a list item's own text (direct text and paragraphs) and whether it nests a list."""
    parts: list[str] = []
    nested = False
    for child in item.children:
        if isinstance(child, NavigableString):
            parts.append(str(child))
        elif isinstance(child, Tag):
            if child.name in ("ul", "ol"):
                nested = True
            elif child.name == "p":
                parts.append(child.get_text())
    return "".join(parts).strip(), nested


def _describe_list(element: Tag) -> str:
    ordered = element.name == "ol"
    entries = []
    for index, item in enumerate(element.find_all("li", recursive=False)):
        text, _direct = _own_item_text(item)
        has_nested = item.find(["ul", "ol"]) is not None
        prefix = f"{index + 1}." if ordered else "-"
        entries.append(f"{prefix} {truncate(text, LIST_ENTRY_LIMIT)}" + (" [+]" if has_nested else ""))
    return ", ".join(entries)


def _arrow_text(edge_id: str, element: Tag) -> str | None:
    match = _FLOW_EDGE_ID_RE.search(edge_id)
    if not match:
        return None
    arrow_type = element.get("data-arrow-type") or "-->"
    return f"{match.group(1)} {arrow_type} {match.group(2)}"


def _describe_diagram_node(element: Tag) -> str:
    node_type = "node"
    node_text = truncate(_collapsed(element), NODE_TEXT_LIMIT)
    classes = element.get("class") or []

    if "cluster" in classes:
        node_type = "subgraph"
    elif "edgeLabel" in classes:
        node_type = "edge"
    elif element.has_attr("data-class-member"):
        node_type = "method" if element["data-class-member"] == "method" else "member"
    elif element.has_attr("data-hit-area-for"):
        node_type = "arrow"
        node_text = _arrow_text(element["data-hit-area-for"], element) or node_text
    elif element.has_attr("data-seq-arrow-text"):
        node_type = "arrow"
        node_text = element["data-seq-arrow-text"]
    elif "messageText" in classes:
        node_type = "message"
    elif "flowchart-link" in classes:
        node_type = "arrow"
        node_text = _arrow_text(element.get("id", ""), element) or node_text
    else:
        for attribute, marker_type in _DIAGRAM_MARKERS:
            if element.has_attr(attribute):
                node_type = marker_type
                node_text = element[attribute]
                if attribute == "data-state-transition":
                    node_text = node_text.replace("->", " -> ", 1)
                elif attribute == "data-git-commit":
                    node_text = f"commit {node_text}"
                break
        else:
            if "transition" in classes:
                node_type = "transition"
    return f"mermaid {node_type}: {node_text}"


def _describe_diagram(element: Tag) -> str:
    container = element if has_class(element, "diagram") else element.select_one(".diagram")
    source = container.get("data-source", "") if container is not None else ""
    if source:
        return f"mermaid diagram: {source.splitlines()[0].strip()}"
    return "mermaid diagram"


def _describe_formula(element: Tag) -> str:
    holder = element if element.has_attr("data-math") else element.select_one("[data-math]")
    source = holder["data-math"] if holder is not None else _text(element)
    return f"$$ {truncate(' '.join(source.split()), FORMULA_LIMIT)} $$"


def _describe_code_block(element: Tag) -> str:
    language = _code_language(element)
    spans = element.select(".code-line")
    if spans:
        lines = [span.get_text() for span in spans]
    else:
        lines = _text(element).split("\n")
    code_text = "\n".join(lines).strip()
    preview = " ".join(lines[:2])[:CODE_PREVIEW_LIMIT]
    if len(lines) > 2 or len(code_text) > CODE_PREVIEW_LIMIT:
        preview += "..."
    return f"```{language} {preview} ```"


def _describe_list_item(element: Tag) -> str:
    text, nested = _own_item_text(element)
    parent = element.parent
    if parent is not None and parent.name == "ol":
        siblings = parent.find_all("li", recursive=False)
        position = next((index for index, item in enumerate(siblings) if item is element), 0)
        prefix = f"{position + 1}. "
    else:
        prefix = "- "
    return prefix + truncate(text, ITEM_LIMIT) + (" (has nested items)" if nested else "")


def describe(target: Pointable | Tag) -> str:
    """Describe a resolved pointable (or a bare element) for a prompt reference."""
    if isinstance(target, Pointable):
        element, kind = target.element, target.kind
    else:
        element, kind = target, classify(target)

    if kind is PointableKind.RENDER_ERROR:
        holder = render_error_holder(element)
        return holder["data-render-error"] if holder is not None else ""
    if kind is PointableKind.TABLE_CELL:
        row = element.parent
        cells = row.find_all(["td", "th"], recursive=False)
        column = next((index for index, cell in enumerate(cells) if cell is element), 0)
        return f"table[row {_row_index(row)}, col {column}] cell: {_text(element)} | row: {table_row_markdown(row)}"
    if kind is PointableKind.TABLE_ROW:
        return f"table[row {_row_index(element)}] {table_row_markdown(element)}"
    if kind is PointableKind.TABLE:
        header = element.find("tr")
        return f"table: {table_row_markdown(header)}" if header is not None else "(table)"
    if kind is PointableKind.CODE_LINE:
        return f"code[{_code_language(element) or 'text'} L{element_line(element)}]: {element.get_text()}"
    if kind is PointableKind.LIST:
        return _describe_list(element)
    if kind is PointableKind.DIAGRAM_NODE:
        return _describe_diagram_node(element)
    if kind is PointableKind.DIAGRAM:
        return _describe_diagram(element)
    if kind is PointableKind.FORMULA:
        return _describe_formula(element)
    if kind is PointableKind.CODE_BLOCK:
        return _describe_code_block(element)
    if kind is PointableKind.HEADING:
        return "#" * int(element.name[1]) + " " + _text(element)
    if kind is PointableKind.LIST_ITEM:
        return _describe_list_item(element)
    if kind is PointableKind.BLOCKQUOTE:
        return "> " + truncate(_text(element), ITEM_LIMIT)
    if kind is PointableKind.THEMATIC_BREAK:
        return "---"
    return truncate(_text(element), FALLBACK_LIMIT)
