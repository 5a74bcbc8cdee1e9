"""Tests for re-deriving source lines from Mermaid diagram text."""

from __future__ import annotations

import pytest

from mdpointer.diagram_lines import (
    DiagramKind,
    build_line_maps,
    class_relation_text,
    detect_diagram_kind,
    parse_flow_statement,
)


@pytest.mark.parametrize(
    "source,kind",
    [
        ("graph TD\nA-->B", DiagramKind.FLOWCHART),
        ("flowchart LR\nA-->B", DiagramKind.FLOWCHART),
        ("sequenceDiagram\nA->>B: hi", DiagramKind.SEQUENCE),
        ("classDiagram\nclass A", DiagramKind.CLASS),
        ("stateDiagram-v2\n[*] --> A", DiagramKind.STATE),
        ("erDiagram\nA ||--o{ B : has", DiagramKind.ER),
        ("gantt\ntitle T", DiagramKind.GANTT),
        ("pie title Pets", DiagramKind.PIE),
        ("gitGraph\ncommit", DiagramKind.GIT),
        ("mindmap\n  root", DiagramKind.MINDMAP),
        ("journey\ntitle x", DiagramKind.UNKNOWN),
        ("", DiagramKind.UNKNOWN),
    ],
)
def test_detect_diagram_kind(source, kind):
    assert detect_diagram_kind(source) is kind


def test_front_matter_and_comments_are_skipped():
    source = "---\ntitle: Flow\n---\n%% comment\nsequenceDiagram\n    A->>B: hi"
    assert detect_diagram_kind(source) is DiagramKind.SEQUENCE
    maps = build_line_maps(source, 10)
    assert maps.message_lines == [16]


class TestFlowStatements:
    def test_chain_with_groups_and_text_labels(self):
        nodes, edges = parse_flow_statement("A & B --> C -- yes --> D")
        assert nodes == ["A", "B", "C", "D"]
        assert edges == [
            ("A", "C", None, "-->"),
            ("B", "C", None, "-->"),
            ("C", "D", "yes", "-->"),
        ]

    def test_pipe_label_and_shapes(self):
        nodes, edges = parse_flow_statement('start[Begin] -.->|"maybe"| stop((End))')
        assert nodes == ["start", "stop"]
        assert edges == [("start", "stop", "maybe", "-.->")]

    def test_lone_node(self):
        assert parse_flow_statement("A[Only]") == (["A"], [])

    def test_quoted_label_with_brackets_and_parentheses(self):
        nodes, edges = parse_flow_statement('A["call f(x)"] --> B["list[0]"] --> C{"ok?"}')
        assert nodes == ["A", "B", "C"]
        assert edges == [("A", "B", None, "-->"), ("B", "C", None, "-->")]

    def test_flowchart_maps(self):
        source = "graph TD\nA-->B\nsubgraph one [First group]\nB -->|go| C; C --> D\nend"
        maps = build_line_maps(source, 0)
        assert maps.kind is DiagramKind.FLOWCHART
        assert maps.nodes["A"] == 2
        assert maps.nodes["B"] == 2
        assert maps.nodes["C"] == 4
        assert maps.nodes["D"] == 4
        assert maps.arrows["A-B"] == 2
        assert maps.arrows["C-D"] == 4
        assert maps.edge_labels["go"] == 4
        assert maps.node_line("subgraph:one") == 3
        assert maps.node_line("subgraph:First group") == 3
        assert "end" not in maps.nodes

    def test_first_declaration_wins(self):
        maps = build_line_maps("graph TD\nA-->B\nA-->C", 5)
        assert maps.nodes["A"] == 7
        assert maps.first_line == 6
        assert maps.last_line == 8


def test_sequence_maps_participants_aliases_and_messages():
    source = "sequenceDiagram\n    participant A as Alice\n    A->>B: Hello there\n    Note over A,B: thinking\n    B-->>A: Reply"
    maps = build_line_maps(source, 0)
    assert maps.node_line("A") == 2
    assert maps.node_line("Alice") == 2
    assert maps.node_line("B") == 3
    assert maps.message_lines == [3, 5]
    assert maps.label_line("seq:Hello there") == 3
    assert maps.label_line("seq-note:thinking") == 4


def test_class_maps_blocks_members_and_relations():
    source = "classDiagram\n    Animal <|-- Duck\n    class Duck {\n        +swim()\n    }\n    Duck : +int age"
    maps = build_line_maps(source, 0)
    assert maps.node_line("class:Animal") == 2
    assert maps.class_members == [("Duck", "+swim()", 4), ("Duck", "+int age", 6)]
    assert maps.class_member_lines == [4, 6]
    assert class_relation_text(maps.arrows["class-rel:Animal_Duck"]) == (2, "Duck extends Animal")


def test_class_relation_text_tolerates_bare_line():
    assert class_relation_text(7) == (7, "")


def test_state_maps_transitions_in_order():
    source = "stateDiagram-v2\n    [*] --> Idle\n    Idle --> Busy : start\n    state \"Waiting room\" as Wait\n    Busy --> [*]"
    maps = build_line_maps(source, 0)
    assert maps.state_transitions == [("[*]->Idle", 2), ("Idle->Busy", 3), ("Busy->[*]", 5)]
    assert maps.node_line("state:Idle") == 2
    assert maps.node_line("state:Wait") == 4
    assert maps.node_line("state:Waiting room") == 4
    assert maps.label_line("state:start") == 3


def test_er_maps_relations_entities_and_attributes():
    source = "erDiagram\n    CUSTOMER ||--o{ ORDER : places\n    CUSTOMER {\n        string name PK\n    }"
    maps = build_line_maps(source, 0)
    assert maps.arrows["CUSTOMER-ORDER"] == 2
    assert maps.label_line("er:places") == 2
    assert maps.node_line("entity:CUSTOMER") == 3
    assert maps.label_line("er-attr-name:name") == 4
    assert maps.label_line("er-attr:string:name") == 4


def test_gantt_maps_tasks_by_position():
    source = "gantt\n    title Plan\n    dateFormat YYYY-MM-DD\n    section Build\n    Task : a1, 2024-01-01, 1d\n    Task : a2, after a1, 1d"
    maps = build_line_maps(source, 0)
    assert maps.gantt_task_lines == [5, 6]
    assert maps.node_line("gantt-title:Plan") == 2
    assert maps.node_line("gantt-section:Build") == 4


def test_pie_title_on_header_line():
    maps = build_line_maps('pie title Pets\n    "Dogs" : 3\n    "Cats" : 2', 0)
    assert maps.node_line("pie-title:Pets") == 1
    assert maps.pie_slice_lines == [2, 3]


def test_git_commits_merges_and_branches():
    source = 'gitGraph\n    commit id: "init"\n    branch dev\n    commit tag: "v1"\n    checkout main\n    merge dev'
    maps = build_line_maps(source, 0)
    assert maps.git_commit_lines == [2, 4, 6]
    assert maps.node_line("git-label:init") == 2
    assert maps.node_line("git-tag:v1") == 4
    assert maps.node_line("git-branch:dev") == 3


def test_mindmap_skips_decorations():
    maps = build_line_maps("mindmap\n  root((Root))\n    A\n    ::icon(fa fa-book)\n    B", 0)
    assert maps.mindmap_lines == [2, 3, 5]


def test_unknown_kind_yields_empty_maps():
    maps = build_line_maps("journey\n  title x", 3)
    assert maps.kind is DiagramKind.UNKNOWN
    assert maps.nodes == {}
    assert maps.arrows == {}
    assert maps.mindmap_lines == []


def test_sequence_message_endpoints_may_contain_hyphens():
    source = "sequenceDiagram\n    Alice->>Web-Server: hi\n    Web-Server-->>Alice: ok\n    Alice-)Bob: async"
    maps = build_line_maps(source, 0)
    assert maps.message_lines == [2, 3, 4]
    assert maps.node_line("Web-Server") == 2
    assert maps.node_line("Bob") == 4
    assert maps.label_line("seq:ok") == 3


def test_sequence_activation_markers_are_not_part_of_names():
    maps = build_line_maps("sequenceDiagram\n    A->>+B: start\n    B-->>-A: done\n    loop Every: minute", 0)
    assert maps.message_lines == [2, 3]
    assert maps.node_line("B") == 2
    assert "+B" not in maps.nodes
