"""Tests for host message routing, link handling, and document reads."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdpointer.errors import DocumentReadError, MessageFormatError
from mdpointer.host import (
    HostBridge,
    LinkAction,
    classify_link,
    display_link,
    parse_message,
    parse_point_payload,
    pointer_reference,
    read_markdown,
    scroll_target_line,
)
from mdpointer.pointing import PointingContext
from mdpointer.render_errors import RenderError


@pytest.fixture
def bridge(actions) -> HostBridge:
    return HostBridge(actions)


class TestParseMessage:
    def test_splits_on_first_colon(self):
        message = parse_message("click:http://example.com:8080/x")
        assert message.tag == "click"
        assert message.payload == "http://example.com:8080/x"

    def test_empty_payload(self):
        assert parse_message("leave:").payload == ""

    @pytest.mark.parametrize("raw", ["no-colon", ":payload"])
    def test_malformed(self, raw):
        with pytest.raises(MessageFormatError):
            parse_message(raw)


class TestClassifyLink:
    def test_remote_links_open_externally(self):
        assert classify_link("http://example.com").action is LinkAction.OPEN_EXTERNAL
        assert classify_link("mailto:a@b.c").action is LinkAction.OPEN_EXTERNAL

    def test_local_markdown_opens_in_viewer(self, tmp_path):
        target = tmp_path / "other notes.md"
        target.write_text("# x", encoding="utf-8")
        link = classify_link(target.as_uri())
        assert link.action is LinkAction.OPEN_DOCUMENT
        assert Path(link.target) == target

    def test_other_local_files_open_externally(self, tmp_path):
        target = tmp_path / "data.csv"
        target.write_text("a,b", encoding="utf-8")
        assert classify_link(target.as_uri()).action is LinkAction.OPEN_EXTERNAL

    def test_missing_local_file(self, tmp_path):
        link = classify_link((tmp_path / "gone.md").as_uri())
        assert link.action is LinkAction.MISSING_FILE

    def test_other_schemes_are_ignored(self):
        assert classify_link("javascript:alert(1)").action is LinkAction.IGNORE


def test_display_link_strips_file_scheme(tmp_path):
    target = tmp_path / "a b.md"
    assert display_link(target.as_uri()) == str(target)
    assert display_link("https://example.com") == "https://example.com"


def test_point_payload_keeps_pipes_in_description():
    assert parse_point_payload("7|table[row 1] | a | b |") == ("7", "table[row 1] | a | b |")
    assert parse_point_payload("?") == ("?", "")


def test_pointer_reference_format():
    assert pointer_reference(Path("/docs/readme.md"), "12", "## Install") == "[/docs/readme.md:12] ## Install"


class TestDispatch:
    def test_link_click_opens_external(self, bridge, actions):
        assert bridge.dispatch("click:http://example.com") is True
        assert actions.calls == [("open_external", "http://example.com")]

    def test_missing_local_link_warns(self, bridge, actions, tmp_path):
        bridge.dispatch("click:" + (tmp_path / "gone.md").as_uri())
        assert actions.names() == ["warn"]
        assert "gone.md" in actions.calls[0][1]

    def test_hover_and_leave(self, bridge, actions):
        bridge.dispatch("hover:file:///tmp/notes.md")
        bridge.dispatch("leave:")
        assert actions.calls == [("show_link", "/tmp/notes.md"), ("clear_link",)]

    def test_zoom(self, bridge, actions):
        bridge.dispatch("zoom:in")
        bridge.dispatch("zoom:sideways")
        assert actions.calls == [("zoom", "in")]

    def test_point_copies_reference(self, bridge, actions):
        bridge.dispatch("point:3|See | text")
        assert actions.calls == [("copy_reference", "3", "See | text")]

    def test_render_complete(self, bridge, actions):
        bridge.dispatch('render-complete:["[KaTeX Line 2] bad"]')
        bridge.dispatch("render-complete:{broken")
        assert actions.calls == [("render_complete", [RenderError("KaTeX", 2, "bad")]), ("render_complete", [])]

    def test_pick_respects_pointing_mode(self, actions):
        pointing = PointingContext()
        bridge = HostBridge(actions, pointing)
        bridge.dispatch("pick:")
        pointing.set_enabled(False)
        bridge.dispatch("pick:")
        assert actions.names() == ["request_pick"]

    def test_unknown_and_malformed_messages(self, bridge, actions):
        assert bridge.dispatch("teleport:now") is False
        assert bridge.dispatch("garbage") is False
        assert actions.calls == []


def test_end_to_end_point_at_paragraph(renderer, bridge, actions):
    body = renderer.render("# Hi\n\nSee [text](http://example.com).\n")
    snapshot = "<body>" + body.replace("<a ", '<a data-pointer-pick="1" ', 1) + "</body>"
    message = bridge.handle_pick_snapshot(snapshot)
    assert message == "point:3|See text."
    assert actions.calls == [("copy_reference", "3", "See text.")]

    bridge.dispatch("click:http://example.com")
    assert actions.calls[-1] == ("open_external", "http://example.com")


def test_pick_snapshot_without_marker(bridge, actions):
    assert bridge.handle_pick_snapshot("<body><p data-line='1'>x</p></body>") is None
    assert actions.calls == []


class TestReadMarkdown:
    def test_reads_with_replacement_for_bad_bytes(self, tmp_path):
        path = tmp_path / "doc.md"
        path.write_bytes(b"# Title \xff\n")
        assert read_markdown(path) == "# Title �\n"

    def test_retries_then_raises(self, tmp_path):
        sleeps: list[float] = []
        with pytest.raises(DocumentReadError) as excinfo:
            read_markdown(tmp_path, attempts=3, delay=0.25, sleep=sleeps.append)
        assert excinfo.value.attempts == 3
        assert excinfo.value.path == tmp_path
        assert isinstance(excinfo.value.__cause__, OSError)
        assert sleeps == [0.25, 0.25]

    def test_succeeds_after_transient_failure(self, tmp_path, monkeypatch):
        path = tmp_path / "doc.md"
        path.write_text("hello", encoding="utf-8")
        original = Path.read_text
        failures = iter([OSError("locked")])

        def flaky(self, *args, **kwargs):
            error = next(failures, None)
            if error is not None:
                raise error
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "read_text", flaky)
        assert read_markdown(path, sleep=lambda _delay: None) == "hello"


def test_scroll_target_line():
    html = '<h1 data-line="1">a</h1><p data-line="3">b</p><pre data-line="7"></pre>'
    assert scroll_target_line(html, 5) == 3
    assert scroll_target_line(html, 7) == 7
    assert scroll_target_line(html, 100) == 7
    assert scroll_target_line(html, 0) is None
