"""Re-derive source lines from Mermaid diagram text.

The diagram library does not keep source positions in its SVG output, so this
module scans the diagram source line by line with a set of pattern rules per
diagram kind and records where each node, edge and label was declared.
`mdpointer.correlator` then matches rendered elements against these maps.

Source line `i` (0-based, within the fence content) maps to document line
`base_line + i + 1`, where `base_line` is the fence line itself.

Name-keyed maps keep the first occurrence. Elements whose identity cannot be
recovered from the SVG (sequence messages, Gantt tasks, pie slices, git
commits, mindmap nodes, state transitions) use ordered lists instead and rely
on the renderer emitting them in declaration order.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Callable


class DiagramKind(enum.Enum):
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    CLASS = "class"
    STATE = "state"
    ER = "er"
    GANTT = "gantt"
    PIE = "pie"
    GIT = "git"
    MINDMAP = "mindmap"
    UNKNOWN = "unknown"


_KIND_KEYWORDS = (
    ("flowchart", DiagramKind.FLOWCHART),
    ("graph", DiagramKind.FLOWCHART),
    ("sequencediagram", DiagramKind.SEQUENCE),
    ("classdiagram", DiagramKind.CLASS),
    ("statediagram", DiagramKind.STATE),
    ("erdiagram", DiagramKind.ER),
    ("gantt", DiagramKind.GANTT),
    ("pie", DiagramKind.PIE),
    ("gitgraph", DiagramKind.GIT),
    ("mindmap", DiagramKind.MINDMAP),
)

CLASS_RELATION_LABELS = {
    "extends": " extends ",
    "composition": " *-- ",
    "aggregation": " o-- ",
    "association": " --> ",
    "dependency": " ..> ",
    "realization": " implements ",
    "link": " -- ",
}


def squash(text: str) -> str:
    """Collapse runs of whitespace, matching how SVG text reads back."""
    return " ".join(str(text).split())


@dataclass
class DiagramLineMaps:
    """Lookup tables for one diagram instance."""

    kind: DiagramKind = DiagramKind.UNKNOWN
    base_line: int = 0
    line_count: int = 0
    nodes: dict[str, int] = field(default_factory=dict)
    arrows: dict[str, int | str] = field(default_factory=dict)
    edge_labels: dict[str, int] = field(default_factory=dict)
    message_lines: list[int] = field(default_factory=list)
    class_member_lines: list[int] = field(default_factory=list)
    # (class name, member text, line) in declaration order.
    class_members: list[tuple[str, str, int]] = field(default_factory=list)
    gantt_task_lines: list[int] = field(default_factory=list)
    pie_slice_lines: list[int] = field(default_factory=list)
    git_commit_lines: list[int] = field(default_factory=list)
    mindmap_lines: list[int] = field(default_factory=list)
    state_transitions: list[tuple[str, int]] = field(default_factory=list)
    # flowchart edge key -> link operator as written, e.g. `-.->`
    edge_operators: dict[str, str] = field(default_factory=dict)

    def add_node(self, key: str, line: int) -> None:
        self.nodes.setdefault(squash(key), line)

    def add_arrow(self, key: str, value: int | str) -> None:
        self.arrows.setdefault(key, value)

    def add_label(self, key: str, line: int) -> None:
        self.edge_labels.setdefault(squash(key), line)

    def node_line(self, *keys: str) -> int | None:
        """Return the line for the first key present in `nodes`."""
        for key in map(squash, keys):
            if key in self.nodes:
                return self.nodes[key]
        return None

    def label_line(self, *keys: str) -> int | None:
        for key in map(squash, keys):
            if key in self.edge_labels:
                return self.edge_labels[key]
        return None

    @property
    def first_line(self) -> int:
        return self.base_line + 1

    @property
    def last_line(self) -> int:
        return self.base_line + self.line_count


def _content_lines(source_text: str) -> list[tuple[int, str]]:
    """Yield `(index, line)` pairs, skipping front matter and `%%` comments."""
    lines = source_text.split("\n")
    result: list[tuple[int, str]] = []
    index = 0
    if lines and lines[0].strip() == "---":
        for closing in range(1, len(lines)):
            if lines[closing].strip() == "---":
                index = closing + 1
                break
    for offset in range(index, len(lines)):
        stripped = lines[offset].strip()
        if not stripped or stripped.startswith("%%"):
            continue
        result.append((offset, lines[offset]))
    return result


def detect_diagram_kind(source_text: str) -> DiagramKind:
    """Classify a diagram by the keyword on its first meaningful line."""
    content = _content_lines(source_text)
    if not content:
        return DiagramKind.UNKNOWN
    first = content[0][1].strip().lower()
    for keyword, kind in _KIND_KEYWORDS:
        if first.startswith(keyword):
            return kind
    return DiagramKind.UNKNOWN


# Flowchart

_FLOW_SKIP_RE = re.compile(
    r"^\s*(?:flowchart|graph|end|classDef|class|style|linkStyle|click|direction)\b",
    re.IGNORECASE,
)
_FLOW_SUBGRAPH_RE = re.compile(r"^\s*subgraph\s+([^\s\[]+)(?:\s*\[\s*\"?(.*?)\"?\s*\])?")
_FLOW_NODE_RE = re.compile(
    r"\s*([^\s\[\]\(\)\{\}<>|&;:\"=.-]+)(\s*[\[\(\{>]+(?:\"[^\"]*\"|[^\]\)\}])*[\]\)\}]+)?(?::::[\w-]+)?"
)
_FLOW_AMP_RE = re.compile(r"\s*&")
_FLOW_LINK_RE = re.compile(
    r"\s*(?:"
    r"--\s+([^|>]+?)\s+--+[>xo]?"
    r"|==\s+([^|>]+?)\s+==+[>xo]?"
    r"|-\.\s+([^|>]+?)\s+\.+-[>xo]?"
    r"|[<xo]?(?:-{2,}|={2,}|-\.+-)[>xo]?"
    r")"
    r"(?:\s*\|\s*\"?([^|]*?)\"?\s*\|)?"
)


def _scan_flow_nodes(text: str, pos: int) -> tuple[list[str], int]:
    ids: list[str] = []
    while True:
        match = _FLOW_NODE_RE.match(text, pos)
        if match is None:
            break
        ids.append(match.group(1))
        pos = match.end()
        amp = _FLOW_AMP_RE.match(text, pos)
        if amp is None:
            break
        pos = amp.end()
    return ids, pos


def parse_flow_statement(line: str) -> tuple[list[str], list[tuple[str, str, str | None, str]]]:
    """Split one flowchart statement into node ids and `(from, to, label, operator)` edges.

    Handles chains (`A --> B --> C`), `&` groups, pipe labels (`-->|yes|`)
    and text-on-link forms (`-- yes -->`).
    """
    nodes, pos = _scan_flow_nodes(line, 0)
    if not nodes:
        return [], []
    edges: list[tuple[str, str, str | None, str]] = []
    previous = list(nodes)
    while True:
        link = _FLOW_LINK_RE.match(line, pos)
        if link is None:
            break
        label = next((group.strip() for group in link.groups() if group and group.strip()), None)
        operator = link.group(0).split("|", 1)[0].split()[-1]
        targets, next_pos = _scan_flow_nodes(line, link.end())
        if not targets:
            break
        for source in previous:
            for target in targets:
                edges.append((source, target, label, operator))
        nodes.extend(targets)
        previous = targets
        pos = next_pos
    return nodes, edges


def _flowchart_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    subgraph = _FLOW_SUBGRAPH_RE.match(text)
    if subgraph:
        maps.add_node(f"subgraph:{subgraph.group(1)}", line)
        if subgraph.group(2):
            maps.add_node(f"subgraph:{subgraph.group(2)}", line)
        return
    if _FLOW_SKIP_RE.match(text):
        return
    for statement in text.split(";"):
        nodes, edges = parse_flow_statement(statement)
        for node in nodes:
            maps.add_node(node, line)
        for source, target, label, operator in edges:
            key = f"{source}-{target}"
            maps.add_arrow(key, line)
            maps.edge_operators.setdefault(key, operator)
            if label:
                maps.add_label(label, line)


# Sequence

_SEQ_PARTICIPANT_RE = re.compile(
    r"^\s*(?:create\s+)?(participant|actor)\s+(\S+?)(?:\s+as\s+(.+?))?\s*$", re.IGNORECASE
)
_SEQ_NOTE_RE = re.compile(
    r"^\s*note\s+(?:left\s+of|right\s+of|over)\s+[^:]+?\s*:\s*(.+?)\s*$", re.IGNORECASE
)
# Solid/dotted arrows with a head first, then the bare cross and open forms.
_SEQ_ARROW_RES = (
    re.compile(r"(?:<<)?-{1,2}>>?"),
    re.compile(r"-{1,2}[x)]"),
)


def _sequence_message(text: str) -> tuple[str, str, str] | None:
    """Split `From->>To: text` into `(from, to, text)`; None when it is not a message.

    Any line with an arrow operator before its colon counts as a message, so
    endpoints may contain characters such as hyphens.
    """
    head, colon, message_text = text.partition(":")
    if not colon:
        return None
    for arrow_re in _SEQ_ARROW_RES:
        arrow = arrow_re.search(head)
        if arrow is not None:
            source = head[: arrow.start()].strip()
            target = head[arrow.end() :].strip().lstrip("+-").strip()
            return source, target, message_text.strip()
    return None


def _sequence_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    participant = _SEQ_PARTICIPANT_RE.match(text)
    if participant:
        actor_id = participant.group(2)
        alias = (participant.group(3) or "").strip()
        maps.add_node(actor_id, line)
        if alias and alias != actor_id:
            maps.add_node(alias, line)
        return
    note = _SEQ_NOTE_RE.match(text)
    if note:
        maps.add_label(f"seq-note:{note.group(1)}", line)
        return
    message = _sequence_message(text)
    if message is None:
        return
    source, target, message_text = message
    maps.message_lines.append(line)
    for name in (source, target):
        if name:
            maps.add_node(name, line)
    if message_text:
        maps.add_label(f"seq:{message_text}", line)


# Class

_CLASS_DECL_RE = re.compile(r"^\s*class\s+([\w.$]+)(?:~[^~]*~)?(?:\s*\[[^\]]*\])?\s*(\{)?\s*$")
_CLASS_MEMBER_RE = re.compile(r"^\s*([\w.$]+)\s*:\s*(.+?)\s*$")
_CLASS_RELATION_RE = re.compile(
    r"^\s*([\w.$]+)\s*(?:\"[^\"]*\"\s*)?"
    r"(<\|--|--\|>|<\|\.\.|\.\.\|>|\*--|--\*|o--|--o|-->|<--|\.\.>|<\.\.|--|\.\.)"
    r"\s*(?:\"[^\"]*\"\s*)?([\w.$]+)(?:\s*:\s*(.+?))?\s*$"
)
# operator -> (relation kind, whether the arrow points from right to left)
_CLASS_OPERATORS = {
    "<|--": ("extends", True),
    "--|>": ("extends", False),
    "<|..": ("realization", True),
    "..|>": ("realization", False),
    "*--": ("composition", False),
    "--*": ("composition", True),
    "o--": ("aggregation", False),
    "--o": ("aggregation", True),
    "-->": ("association", False),
    "<--": ("association", True),
    "..>": ("dependency", False),
    "<..": ("dependency", True),
    "--": ("link", False),
    "..": ("link", False),
}


def _class_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    open_class = state.get("open_class")
    if open_class is not None:
        stripped = text.strip()
        if stripped == "}":
            state["open_class"] = None
            return
        maps.class_member_lines.append(line)
        maps.class_members.append((open_class, stripped, line))
        return

    declaration = _CLASS_DECL_RE.match(text)
    if declaration:
        maps.add_node(f"class:{declaration.group(1)}", line)
        if declaration.group(2):
            state["open_class"] = declaration.group(1)
        return

    relation = _CLASS_RELATION_RE.match(text)
    if relation:
        left, operator, right, label = relation.groups()
        kind, reversed_arrow = _CLASS_OPERATORS[operator]
        maps.add_node(f"class:{left}", line)
        maps.add_node(f"class:{right}", line)
        source, target = (right, left) if reversed_arrow else (left, right)
        maps.add_arrow(f"class-rel:{left}_{right}", f"{line}:{kind}:{source}:{target}")
        if label:
            maps.add_label(f"class:{label}", line)
        return

    member = _CLASS_MEMBER_RE.match(text)
    if member:
        maps.add_node(f"class:{member.group(1)}", line)
        maps.class_member_lines.append(line)
        maps.class_members.append((member.group(1), member.group(2), line))


def class_relation_text(value: int | str) -> tuple[int | None, str]:
    """Decode a `line:kind:from:to` relation entry into `(line, "A extends B")`."""
    parts = str(value).split(":", 3)
    try:
        line = int(parts[0])
    except ValueError:
        line = None
    if len(parts) < 4:
        return line, ""
    _line, kind, source, target = parts
    return line, f"{source}{CLASS_RELATION_LABELS.get(kind, ' -- ')}{target}"


# State

_STATE_TRANSITION_RE = re.compile(
    r"^\s*(\[\*\]|[\w.]+)\s*-->\s*(\[\*\]|[\w.]+)\s*(?::\s*(.+?))?\s*$"
)
_STATE_ALIAS_RE = re.compile(r"^\s*state\s+\"([^\"]*)\"\s+as\s+([\w.]+)")
_STATE_DECL_RE = re.compile(r"^\s*state\s+([\w.]+)")
_STATE_DESCRIPTION_RE = re.compile(r"^\s*([\w.]+)\s*:\s*(.+?)\s*$")


def _state_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    transition = _STATE_TRANSITION_RE.match(text)
    if transition:
        source, target, label = transition.groups()
        key = f"{source}->{target}"
        maps.add_arrow(key, line)
        maps.state_transitions.append((key, line))
        if label:
            maps.add_label(f"state:{label}", line)
        for name in (source, target):
            if name != "[*]":
                maps.add_node(f"state:{name}", line)
        return
    alias = _STATE_ALIAS_RE.match(text)
    if alias:
        maps.add_node(f"state:{alias.group(2)}", line)
        maps.add_node(f"state:{alias.group(1)}", line)
        return
    declaration = _STATE_DECL_RE.match(text)
    if declaration:
        maps.add_node(f"state:{declaration.group(1)}", line)
        return
    description = _STATE_DESCRIPTION_RE.match(text)
    if description:
        maps.add_node(f"state:{description.group(1)}", line)


# ER

_ER_RELATION_RE = re.compile(
    r"^\s*([\w-]+)\s*([|}o{]{2})(--|\.\.)([|}o{]{2})\s*([\w-]+)\s*:\s*\"?(.*?)\"?\s*$"
)
_ER_ENTITY_RE = re.compile(r"^\s*([\w-]+)\s*(?:\[[^\]]*\])?\s*\{\s*$")
_ER_ATTRIBUTE_RE = re.compile(r"^\s*([\w()\[\],.-]+)\s+([\w-]+)(?:\s+(?:PK|FK|UK)(?:\s*,\s*(?:PK|FK|UK))*)?(?:\s+\"[^\"]*\")?\s*$")


def _er_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    if state.get("in_entity"):
        if text.strip() == "}":
            state["in_entity"] = False
            return
        attribute = _ER_ATTRIBUTE_RE.match(text)
        if attribute:
            attr_type, attr_name = attribute.groups()
            maps.add_label(f"er-attr:{attr_type}:{attr_name}", line)
            maps.add_label(f"er-attr-name:{attr_name}", line)
        return

    relation = _ER_RELATION_RE.match(text)
    if relation:
        left, _left_card, _style, _right_card, right, label = relation.groups()
        maps.add_arrow(f"{left}-{right}", line)
        if label:
            maps.add_label(f"er:{label}", line)
        maps.add_node(f"errel:{left}", line)
        maps.add_node(f"errel:{right}", line)
        return

    entity = _ER_ENTITY_RE.match(text)
    if entity:
        maps.add_node(f"entity:{entity.group(1)}", line)
        state["in_entity"] = True


# Gantt

_GANTT_KEYWORDS = {
    "title",
    "section",
    "dateformat",
    "axisformat",
    "tickinterval",
    "excludes",
    "includes",
    "todaymarker",
    "weekday",
    "displaymode",
    "inclusiveenddates",
    "topaxis",
    "acctitle",
    "accdescr",
    "click",
}
_GANTT_TITLE_RE = re.compile(r"^\s*title\s+(.+?)\s*$")
_GANTT_SECTION_RE = re.compile(r"^\s*section\s+(.+?)\s*$")
_GANTT_TASK_RE = re.compile(r"^\s*([^:]+?)\s*:")


def _gantt_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    title = _GANTT_TITLE_RE.match(text)
    if title:
        maps.add_node(f"gantt-title:{title.group(1)}", line)
        return
    section = _GANTT_SECTION_RE.match(text)
    if section:
        maps.add_node(f"gantt-section:{section.group(1)}", line)
        return
    task = _GANTT_TASK_RE.match(text)
    if task:
        first_word = task.group(1).split(maxsplit=1)[0].lower()
        if first_word not in _GANTT_KEYWORDS:
            maps.gantt_task_lines.append(line)


# Pie

_PIE_TITLE_RE = re.compile(r"^\s*(?:pie(?:\s+showData)?\s+)?title\s+(.+?)\s*$")
_PIE_SLICE_RE = re.compile(r"^\s*\"([^\"]+)\"\s*:\s*[\d.]+")


def _pie_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    title = _PIE_TITLE_RE.match(text)
    if title:
        maps.add_node(f"pie-title:{title.group(1)}", line)
        return
    if _PIE_SLICE_RE.match(text):
        maps.pie_slice_lines.append(line)


# Git

_GIT_COMMIT_RE = re.compile(r"^\s*commit\b(.*)$")
_GIT_MERGE_RE = re.compile(r"^\s*(?:merge|cherry-pick)\b")
_GIT_BRANCH_RE = re.compile(r"^\s*branch\s+(\S+)")
_GIT_ID_RE = re.compile(r"\bid:\s*\"([^\"]+)\"")
_GIT_TAG_RE = re.compile(r"\btag:\s*\"([^\"]+)\"")


def _git_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    commit = _GIT_COMMIT_RE.match(text)
    if commit:
        maps.git_commit_lines.append(line)
        commit_id = _GIT_ID_RE.search(commit.group(1))
        if commit_id:
            maps.add_node(f"git-label:{commit_id.group(1)}", line)
        tag = _GIT_TAG_RE.search(commit.group(1))
        if tag:
            maps.add_node(f"git-tag:{tag.group(1)}", line)
        return
    if _GIT_MERGE_RE.match(text):
        maps.git_commit_lines.append(line)
        tag = _GIT_TAG_RE.search(text)
        if tag:
            maps.add_node(f"git-tag:{tag.group(1)}", line)
        return
    branch = _GIT_BRANCH_RE.match(text)
    if branch:
        maps.add_node(f"git-branch:{branch.group(1)}", line)


# Mindmap

_MINDMAP_DECORATION_RE = re.compile(r"^\s*(?:::icon\(|:::)")


def _mindmap_rule(maps: DiagramLineMaps, text: str, line: int, state: dict) -> None:
    if _MINDMAP_DECORATION_RE.match(text):
        return
    maps.mindmap_lines.append(line)


_Rule = Callable[[DiagramLineMaps, str, int, dict], None]

_RULES: dict[DiagramKind, _Rule] = {
    DiagramKind.FLOWCHART: _flowchart_rule,
    DiagramKind.SEQUENCE: _sequence_rule,
    DiagramKind.CLASS: _class_rule,
    DiagramKind.STATE: _state_rule,
    DiagramKind.ER: _er_rule,
    DiagramKind.GANTT: _gantt_rule,
    DiagramKind.PIE: _pie_rule,
    DiagramKind.GIT: _git_rule,
    DiagramKind.MINDMAP: _mindmap_rule,
}


def build_line_maps(source_text: str, base_line: int) -> DiagramLineMaps:
    """Scan `source_text` and return fresh line maps for one diagram."""
    source_text = source_text.replace("\r\n", "\n")
    kind = detect_diagram_kind(source_text)
    maps = DiagramLineMaps(kind=kind, base_line=base_line, line_count=len(source_text.split("\n")))
    rule = _RULES.get(kind)
    if rule is None:
        return maps

    content = _content_lines(source_text)
    state: dict = {}
    # The header line carries the kind keyword; pie titles may share it.
    header_index, header_text = content[0]
    if kind is DiagramKind.PIE:
        rule(maps, header_text, base_line + header_index + 1, state)
    elif kind is DiagramKind.FLOWCHART and ";" in header_text:
        rule(maps, header_text.split(";", 1)[1], base_line + header_index + 1, state)
    for index, text in content[1:]:
        rule(maps, text, base_line + index + 1, state)
    return maps
