"""Shared fixtures: renderer, assembler, soup parsing, and a recording host."""

from __future__ import annotations

from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from mdpointer.assembler import DocumentAssembler
from mdpointer.config import ViewerConfig
from mdpointer.renderer import LineTrackingRenderer


class RecordingActions:
    """HostActions fake that records every call as `(name, *args)`."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def show_link(self, text: str) -> None:
        self.calls.append(("show_link", text))

    def clear_link(self) -> None:
        self.calls.append(("clear_link",))

    def open_external(self, target: str) -> None:
        self.calls.append(("open_external", target))

    def open_document(self, path: Path) -> None:
        self.calls.append(("open_document", path))

    def warn(self, message: str) -> None:
        self.calls.append(("warn", message))

    def zoom(self, direction: str) -> None:
        self.calls.append(("zoom", direction))

    def copy_reference(self, line: str, description: str) -> None:
        self.calls.append(("copy_reference", line, description))

    def render_complete(self, errors: list) -> None:
        self.calls.append(("render_complete", errors))

    def request_pick(self) -> None:
        self.calls.append(("request_pick",))


@pytest.fixture
def renderer() -> LineTrackingRenderer:
    return LineTrackingRenderer()


@pytest.fixture
def assembler(renderer) -> DocumentAssembler:
    """Assembler pinned to CDN sources so output does not depend on the host."""
    return DocumentAssembler(renderer=renderer, config=ViewerConfig())


@pytest.fixture
def soup():
    def parse(markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    return parse


@pytest.fixture
def rendered(renderer, soup):
    """Render markdown and return the parsed body."""

    def render(markdown_text: str) -> BeautifulSoup:
        return soup(renderer.render(markdown_text))

    return render


@pytest.fixture
def actions() -> RecordingActions:
    return RecordingActions()
