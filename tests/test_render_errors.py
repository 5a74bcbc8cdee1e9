"""Tests for render error parsing and the status indicator."""

from __future__ import annotations

from mdpointer.render_errors import (
    RenderError,
    collect_render_errors,
    error_indicator,
    error_tooltip,
    parse_errors,
    parse_render_complete,
)


def test_parse_error_entry():
    error = RenderError.parse("[KaTeX Line 4] Undefined control sequence: \\foo")
    assert error.engine == "KaTeX"
    assert error.source_line == 4
    assert error.message == "Undefined control sequence: \\foo"
    assert str(error) == "[KaTeX Line 4] Undefined control sequence: \\foo"


def test_parse_unknown_line_and_free_text():
    assert RenderError.parse("[Mermaid Line ?] Parse error").source_line is None
    loose = RenderError.parse("something odd")
    assert loose.engine == ""
    assert loose.message == "something odd"


def test_render_complete_payload():
    payload = '["[KaTeX Line 2] bad", "[Mermaid Line 9] Parse error on line 2"]'
    assert parse_render_complete(payload) == ["[KaTeX Line 2] bad", "[Mermaid Line 9] Parse error on line 2"]
    assert [error.source_line for error in parse_errors(payload)] == [2, 9]


def test_malformed_payload_yields_no_errors():
    assert parse_render_complete("not json") == []
    assert parse_render_complete('{"a": 1}') == []
    assert parse_render_complete("") == []


def test_collect_from_document(soup):
    doc = soup(
        '<div class="math" data-render-error="[KaTeX Line 3] oops"></div>'
        '<pre class="diagram" data-render-error="[Mermaid Line 7] nope"></pre>'
    )
    errors = collect_render_errors(doc)
    assert [(error.engine, error.source_line) for error in errors] == [("KaTeX", 3), ("Mermaid", 7)]


def test_indicator_and_tooltip():
    assert error_indicator([]) == ""
    assert error_indicator(["x"]) == "⚠ 1 error"
    assert error_indicator(["x", "y"]) == "⚠ 2 errors"
    assert error_tooltip(["[KaTeX Line 1] a", "[Mermaid Line 2] b"]) == "[KaTeX Line 1] a\n[Mermaid Line 2] b"
