"""Stamp rendered Mermaid SVG elements with the source line they came from.

`correlate` walks one rendered diagram, resolves each visual element's
identity from its id, text or position, and looks it up in the maps built by
`mdpointer.diagram_lines`. Matched elements get `data-diagram-node="true"`, a
kind-specific marker attribute used by the describer, and `data-source-line`.
Thin elements (edges, message arrows, relations, transitions) also get a
transparent `<rect>` sibling so they stay clickable.

Elements that cannot be resolved are flagged as diagram nodes but left without
`data-source-line`; pointing then falls back to the container's `data-line`.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from bs4 import BeautifulSoup, Tag

from .diagram_lines import (
    DiagramKind,
    DiagramLineMaps,
    build_line_maps,
    class_relation_text,
    squash,
)
from .svg_geometry import Box, element_box, relation_box

logger = logging.getLogger(__name__)

DIAGRAM_NODE_ATTR = "data-diagram-node"
SOURCE_LINE_ATTR = "data-source-line"
HIT_AREA_ATTR = "data-hit-area"

_FLOW_NODE_ID_RE = re.compile(r"flowchart-([^-]+)-\d+$")
_FLOW_EDGE_ID_RE = re.compile(r"(?:^|[-_])L[-_]([^-_]+)[-_]([^-_]+)[-_]\d+$")
_CLASS_NODE_ID_RE = re.compile(r"classId-(.+?)-\d+$")
_CLASS_RELATION_ID_RE = re.compile(r"id_([^_]+)_([^_]+)_\d+$")
_STATE_NODE_ID_RE = re.compile(r"state-(.+?)-\d+$")
_ER_RELATION_ID_RE = re.compile(r"entity-(.+?)-\d+_entity-(.+?)-")
_ER_ATTRIBUTE_ID_RE = re.compile(r"-attr-\d+-(type|name)$")

# Tag factory for hit-area rects inserted into any tree.
_TAG_FACTORY = BeautifulSoup("", "html.parser")


def element_text(element: Tag | None) -> str:
    if element is None:
        return ""
    return squash(element.get_text())


def has_class(element: Tag, name: str) -> bool:
    return name in (element.get("class") or [])


def _format_number(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


class _Stamper:
    """Applies markers and hit areas within one diagram, counting stamped lines."""

    def __init__(self, maps: DiagramLineMaps, svg: Tag) -> None:
        self.maps = maps
        self.svg = svg
        self.count = 0

    def stamp(self, element: Tag, line: int | None, markers: dict[str, str] | None = None) -> None:
        element[DIAGRAM_NODE_ATTR] = "true"
        for name, value in (markers or {}).items():
            element[name] = value
        if line is not None and self.maps.first_line <= line <= self.maps.last_line:
            element[SOURCE_LINE_ATTR] = str(line)
            self.count += 1

    def hit_area(
        self,
        element: Tag,
        box: Box | None,
        line: int | None,
        markers: dict[str, str] | None = None,
    ) -> Tag | None:
        if box is None:
            return None
        box = box.padded_to()
        rect = _TAG_FACTORY.new_tag(
            "rect",
            attrs={
                "x": _format_number(box.x),
                "y": _format_number(box.y),
                "width": _format_number(box.width),
                "height": _format_number(box.height),
                "fill": "transparent",
                "pointer-events": "all",
                "class": "hit-area",
                HIT_AREA_ATTR: "true",
            },
        )
        if element.get("transform"):
            rect["transform"] = element["transform"]
        self.stamp(rect, line, markers)
        element.insert_after(rect)
        return rect


def _indexed(lines: list[int], index: int) -> int | None:
    return lines[index] if index < len(lines) else None


def _stamp_edge_labels(stamper: _Stamper, *prefixes: str) -> None:
    for label in stamper.svg.select("g.edgeLabel"):
        text = element_text(label)
        if not text:
            continue
        keys = [f"{prefix}{text}" for prefix in prefixes]
        stamper.stamp(label, stamper.maps.label_line(*keys))


def _flowchart(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for node in svg.select("g.node"):
        match = _FLOW_NODE_ID_RE.search(node.get("id", ""))
        stamper.stamp(node, maps.node_line(match.group(1)) if match else None)

    for cluster in svg.select("g.cluster"):
        label = element_text(cluster.select_one(".nodeLabel") or cluster.select_one("text"))
        stamper.stamp(cluster, maps.node_line(f"subgraph:{cluster.get('id', '')}", f"subgraph:{label}"))

    _stamp_edge_labels(stamper, "")

    for path in svg.select("path.flowchart-link"):
        path_id = path.get("id", "")
        match = _FLOW_EDGE_ID_RE.search(path_id)
        line = None
        arrow_type = "-->"
        if match:
            key = f"{match.group(1)}-{match.group(2)}"
            value = maps.arrows.get(key)
            line = value if isinstance(value, int) else None
            arrow_type = maps.edge_operators.get(key, arrow_type)
        markers = {"data-arrow-type": arrow_type}
        stamper.hit_area(path, element_box(path), line, {"data-hit-area-for": path_id, **markers})
        stamper.stamp(path, line, markers)


def _sequence(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    seen: set[int] = set()
    for shape in svg.select("rect.actor, g.actor-man"):
        group = shape if shape.name == "g" else shape.parent
        if group is None or id(group) in seen:
            continue
        seen.add(id(group))
        name = shape.get("name") or ""
        text = element_text(group.select_one("text.actor") or group.select_one("text"))
        stamper.stamp(group, maps.node_line(*[key for key in (name, text) if key]))

    message_texts = svg.select("text.messageText")
    for index, message in enumerate(message_texts):
        stamper.stamp(message, _indexed(maps.message_lines, index))

    for index, arrow in enumerate(svg.select(".messageLine0, .messageLine1")):
        previous = arrow.find_previous_sibling()
        if previous is not None and has_class(previous, "messageText"):
            text = element_text(previous)
        elif index < len(message_texts):
            text = element_text(message_texts[index])
        else:
            text = ""
        line = maps.label_line(f"seq:{text}") if text else None
        if line is None:
            line = _indexed(maps.message_lines, index)
        markers = {"data-seq-arrow-text": text}
        stamper.hit_area(arrow, element_box(arrow), line, markers)
        stamper.stamp(arrow, line, markers)

    for note in svg.select("text.noteText"):
        text = element_text(note)
        line = maps.label_line(f"seq-note:{text}")
        stamper.stamp(note, line, {"data-seq-note": text})
        box = note.find_previous_sibling("rect")
        if box is not None and has_class(box, "note"):
            stamper.stamp(box, line, {"data-seq-note": text})


def _class_name_of(element: Tag) -> str:
    node = element.find_parent("g", class_="node")
    match = _CLASS_NODE_ID_RE.search(node.get("id", "")) if node is not None else None
    return match.group(1) if match else ""


def _class(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for node in svg.select("g.node"):
        match = _CLASS_NODE_ID_RE.search(node.get("id", ""))
        if match:
            stamper.stamp(node, maps.node_line(f"class:{match.group(1)}"))

    for label in svg.select("g.label-group g.label"):
        name = element_text(label)
        line = maps.node_line(f"class:{name}")
        if line is not None:
            stamper.stamp(label, line, {"data-class-name": name})

    unused = list(maps.class_members)
    labels = svg.select("g.members-group g.label, g.methods-group g.label")
    for index, label in enumerate(labels):
        text = element_text(label)
        owner = _class_name_of(label)
        wanted = "".join(text.split())
        line = None
        for candidate in unused:
            class_name, member_text, member_line = candidate
            if class_name == owner and "".join(member_text.split()) == wanted:
                line = member_line
                unused.remove(candidate)
                break
        if line is None:
            line = _indexed(maps.class_member_lines, index)
        kind = "method" if label.find_parent("g", class_="methods-group") is not None else "member"
        stamper.stamp(label, line, {"data-class-member": kind})

    for path in svg.select("path.relation"):
        match = _CLASS_RELATION_ID_RE.search(path.get("id", ""))
        value = None
        if match:
            first, second = match.groups()
            value = maps.arrows.get(f"class-rel:{first}_{second}") or maps.arrows.get(f"class-rel:{second}_{first}")
        line, text = class_relation_text(value) if value is not None else (None, "")
        markers = {"data-class-relation": text}
        stamper.hit_area(path, relation_box(path), line, markers)
        stamper.stamp(path, line, markers)

    _stamp_edge_labels(stamper, "", "class:")


def _state(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for node in svg.find_all("g", id=_STATE_NODE_ID_RE):
        name = _STATE_NODE_ID_RE.search(node["id"]).group(1)
        if name.endswith("_start"):
            stamper.stamp(node, None, {"data-state-node": "[*] (start)"})
        elif name.endswith("_end"):
            stamper.stamp(node, None, {"data-state-node": "[*] (end)"})
        else:
            stamper.stamp(node, maps.node_line(f"state:{name}"), {"data-state-node": name})

    for index, path in enumerate(svg.select("path.transition")):
        key, line = maps.state_transitions[index] if index < len(maps.state_transitions) else ("", None)
        markers = {"data-state-transition": key}
        stamper.hit_area(path, element_box(path), line, markers)
        stamper.stamp(path, line, markers)

    _stamp_edge_labels(stamper, "state:", "")


def _er_attribute_name(svg: Tag, label: Tag) -> str:
    element_id = label.get("id", "")
    match = _ER_ATTRIBUTE_ID_RE.search(element_id)
    if has_class(label, "attribute-name") or (match and match.group(1) == "name"):
        return element_text(label)
    if match:
        partner = svg.find(id=element_id[: match.start(1)] + "name")
    else:
        partner = label.find_next_sibling(class_="attribute-name")
    return element_text(partner)


def _er(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for label in svg.select(".entityLabel, g.label.name, .attribute-name, .attribute-type"):
        text = element_text(label)
        is_attribute = (
            has_class(label, "attribute-name")
            or has_class(label, "attribute-type")
            or _ER_ATTRIBUTE_ID_RE.search(label.get("id", "")) is not None
        )
        if is_attribute:
            name = _er_attribute_name(svg, label)
            line = maps.label_line(f"er-attr-name:{name}") if name else None
            stamper.stamp(label, line, {"data-er-attr": text})
        else:
            stamper.stamp(label, maps.node_line(f"entity:{text}", f"errel:{text}"), {"data-er-entity": text})

    relation_keys = [key for key in maps.arrows]
    for index, path in enumerate(svg.select("path.relationshipLine")):
        match = _ER_RELATION_ID_RE.search(path.get("id", ""))
        line = None
        text = ""
        if match:
            first, second = match.groups()
            text = f"{first} -- {second}"
            value = maps.arrows.get(f"{first}-{second}", maps.arrows.get(f"{second}-{first}"))
            line = value if isinstance(value, int) else None
        elif index < len(relation_keys):
            key = relation_keys[index]
            text = key.replace("-", " -- ", 1)
            value = maps.arrows[key]
            line = value if isinstance(value, int) else None
        markers = {"data-er-relation": text}
        stamper.hit_area(path, element_box(path), line, markers)
        stamper.stamp(path, line, markers)

    for label in svg.select(".relationshipLabel"):
        stamper.stamp(label, maps.label_line(f"er:{element_text(label)}"))
    _stamp_edge_labels(stamper, "er:")


def _gantt(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for index, task in enumerate(svg.select("rect.task")):
        stamper.stamp(task, _indexed(maps.gantt_task_lines, index), {"data-gantt-task": task.get("id", "")})

    task_texts = [
        text
        for text in svg.find_all("text")
        if any(name.startswith("taskText") for name in (text.get("class") or []))
    ]
    for index, text in enumerate(task_texts):
        stamper.stamp(text, _indexed(maps.gantt_task_lines, index), {"data-gantt-task-name": element_text(text)})

    for text in svg.select("text.sectionTitle"):
        name = element_text(text)
        stamper.stamp(text, maps.node_line(f"gantt-section:{name}"), {"data-gantt-section": name})

    for text in svg.select("text.titleText"):
        title = element_text(text)
        stamper.stamp(text, maps.node_line(f"gantt-title:{title}"), {"data-gantt-title": title})


def _pie(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    legends = svg.select("g.legend")
    for index, slice_path in enumerate(svg.select(".pieCircle")):
        legend_text = element_text(legends[index]) if index < len(legends) else ""
        stamper.stamp(slice_path, _indexed(maps.pie_slice_lines, index), {"data-pie-slice": legend_text})

    for index, legend in enumerate(legends):
        stamper.stamp(legend, _indexed(maps.pie_slice_lines, index), {"data-pie-legend": element_text(legend)})

    for text in svg.select("text.pieTitleText"):
        title = element_text(text)
        stamper.stamp(text, maps.node_line(f"pie-title:{title}"), {"data-pie-title": title})


def _git(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for index, commit in enumerate(svg.select("circle.commit:not(.commit-merge)")):
        stamper.stamp(commit, _indexed(maps.git_commit_lines, index), {"data-git-commit": str(index)})

    for merge in svg.select("circle.commit-merge"):
        previous = merge.find_previous_sibling()
        markers = {}
        line = None
        if previous is not None and previous.get(SOURCE_LINE_ATTR):
            line = int(previous[SOURCE_LINE_ATTR])
            markers["data-git-commit"] = previous.get("data-git-commit", "")
        stamper.stamp(merge, line, markers)

    for text in svg.select("text.commit-label, text.tag-label"):
        label = element_text(text)
        stamper.stamp(text, maps.node_line(f"git-label:{label}", f"git-tag:{label}"), {"data-git-label": label})

    for branch in svg.select("g.branchLabel"):
        name = element_text(branch)
        stamper.stamp(branch, maps.node_line(f"git-branch:{name}"), {"data-git-branch": name})


def _mindmap(stamper: _Stamper) -> None:
    maps, svg = stamper.maps, stamper.svg
    for index, node in enumerate(svg.select("g.mindmap-node")):
        text = element_text(node.select_one(".nodeLabel") or node)
        stamper.stamp(node, _indexed(maps.mindmap_lines, index), {"data-mindmap-node": text})


_STAMPERS: dict[DiagramKind, Callable[[_Stamper], None]] = {
    DiagramKind.FLOWCHART: _flowchart,
    DiagramKind.SEQUENCE: _sequence,
    DiagramKind.CLASS: _class,
    DiagramKind.STATE: _state,
    DiagramKind.ER: _er,
    DiagramKind.GANTT: _gantt,
    DiagramKind.PIE: _pie,
    DiagramKind.GIT: _git,
    DiagramKind.MINDMAP: _mindmap,
}


def correlate(source_text: str, base_line: int, root: Tag) -> int:
    """Stamp the diagram rendered under `root`; return how many lines were stamped."""
    svg = root if root.name == "svg" else root.find("svg")
    if svg is None:
        return 0
    maps = build_line_maps(source_text, base_line)
    handler = _STAMPERS.get(maps.kind)
    if handler is None:
        logger.debug("No correlation rules for diagram at line %s", base_line)
        return 0
    stamper = _Stamper(maps, svg)
    handler(stamper)
    logger.debug("Correlated %s diagram at line %s: %d element(s)", maps.kind.value, base_line, stamper.count)
    return stamper.count


def _container_base_line(container: Tag) -> int:
    try:
        return int(container.get("data-line", "0"))
    except ValueError:
        return 0


def correlate_document(soup: Tag) -> int:
    """Correlate every rendered `pre.diagram` container in `soup`."""
    total = 0
    for container in soup.select("pre.diagram"):
        if container.has_attr("data-render-error"):
            continue
        total += correlate(container.get("data-source", ""), _container_base_line(container), container)
    return total


def correlate_markup(source_text: str, base_line: int, markup: str) -> str:
    """Correlate a diagram's rendered inner markup and return the stamped markup."""
    if "<svg" not in markup.lower():
        return markup
    fragment = BeautifulSoup(markup, "html.parser")
    correlate(source_text, base_line, fragment)
    return str(fragment)
