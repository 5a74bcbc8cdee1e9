"""Tests for line-tracked markdown rendering."""

from __future__ import annotations

from mdpointer.renderer import LineTrackingRenderer, RenderRuleRegistry, code_lines

BLOCK_TAGS = ["p", "h1", "h2", "ul", "ol", "li", "blockquote", "pre", "table", "hr"]

SAMPLE = """\
# Title

Intro paragraph.

- one
  - nested
- two

1. first

> quoted

---

## Section
"""


def test_heading_and_paragraph_lines(rendered):
    doc = rendered("# Hi\n\nSee [text](http://example.com).\n")
    assert doc.h1["data-line"] == "1"
    assert doc.p["data-line"] == "3"
    assert doc.a["href"] == "http://example.com"


def test_every_block_element_carries_data_line(rendered):
    doc = rendered(SAMPLE)
    blocks = doc.find_all(BLOCK_TAGS)
    assert blocks
    for element in blocks:
        assert element.has_attr("data-line"), element.name


def test_nested_list_lines(rendered):
    doc = rendered(SAMPLE)
    outer = doc.find("ul")
    assert outer["data-line"] == "5"
    nested = outer.find("ul")
    assert nested["data-line"] == "6"
    assert nested.li["data-line"] == "6"
    assert doc.find("hr")["data-line"] == "13"
    assert doc.find("h2")["data-line"] == "15"


def test_fenced_code_lines_start_after_fence(rendered):
    doc = rendered("text\n\n```python\nx = 1\ny = 2\n```\n")
    pre = doc.find("pre")
    assert pre["data-line"] == "3"
    assert doc.find("code")["class"] == ["language-python"]
    spans = pre.select("span.code-line")
    assert [span["data-line"] for span in spans] == ["4", "5"]
    assert [span.get_text() for span in spans] == ["x = 1", "y = 2"]


def test_indented_code_lines(rendered):
    doc = rendered("    a < b\n    c\n")
    spans = doc.select("span.code-line")
    assert [span["data-line"] for span in spans] == ["1", "2"]
    assert spans[0].get_text() == "a < b"


def test_mermaid_fence_becomes_diagram_placeholder(rendered):
    doc = rendered("intro\n\n```mermaid\ngraph TD\nA-->B\n```\n")
    diagram = doc.select_one("pre.diagram")
    assert diagram["data-line"] == "3"
    assert diagram["data-source"] == "graph TD\nA-->B"
    assert diagram.select("span.code-line") == []


def test_diagram_language_is_configurable():
    html = LineTrackingRenderer(diagram_language="graph").render("```graph\nA-->B\n```\n")
    assert 'class="diagram"' in html


def test_render_counts_diagrams(renderer):
    env: dict = {}
    renderer.render("```mermaid\npie\n```\n\n```mermaid\npie\n```\n", env)
    assert env["diagram_count"] == 2


def test_math_block_and_inline(rendered):
    doc = rendered("Euler $e^{i\\pi}$ here.\n\n$$\nx^2\n$$\n")
    inline = doc.select_one("span.math-inline")
    assert inline["data-math"] == "e^{i\\pi}"
    block = doc.select_one("div.math-display")
    assert block["data-line"] == "3"
    assert block["data-math"] == "x^2"


def test_callout_container(rendered):
    doc = rendered("::: warning Heads up\nCareful.\n:::\n")
    callout = doc.select_one("div.callout-warning")
    assert callout["data-line"] == "1"
    assert "callout" in callout["class"]
    assert callout.select_one("p.callout-title").get_text() == "Heads up"
    assert callout.find("p", class_=False)["data-line"] == "2"


def test_html_block_gets_line_on_leading_tag(rendered):
    doc = rendered("para\n\n<div class=\"box\">\nraw\n</div>\n")
    box = doc.select_one("div.box")
    assert box["data-line"] == "3"


def test_html_block_existing_line_is_kept(renderer):
    html = renderer.render('<div data-line="9">x</div>\n')
    assert html.count("data-line") == 1


def test_table_rows_carry_lines(rendered):
    doc = rendered("| a | b |\n|---|---|\n| 1 | 2 |\n| 3 | 4 |\n")
    assert doc.find("table")["data-line"] == "1"
    body_rows = doc.find("tbody").find_all("tr")
    assert [row["data-line"] for row in body_rows] == ["3", "4"]


def test_same_input_renders_identically(renderer):
    assert renderer.render(SAMPLE) == renderer.render(SAMPLE)


def test_code_lines_drops_single_trailing_newline():
    assert code_lines("a\nb\n") == ["a", "b"]
    assert code_lines("a\n\n") == ["a", ""]
    assert code_lines("") == []


class TestRenderRuleRegistry:
    def test_replace_moves_rule_to_front(self):
        registry = RenderRuleRegistry()

        def first(*args):
            return "first"

        def second(*args):
            return "second"

        registry.replace("fence", first)
        registry.replace("hr", first)
        registry.replace("fence", second)
        assert registry.token_types() == ["fence", "hr"]
        assert registry.lookup("fence") is second
        assert len(registry) == 2

    def test_lookup_missing(self):
        assert RenderRuleRegistry().lookup("fence") is None

    def test_renderer_registry_covers_extensions(self, renderer):
        types = renderer.registry.token_types()
        for token_type in ("fence", "code_block", "math_block", "math_inline", "container_note_open"):
            assert token_type in types
