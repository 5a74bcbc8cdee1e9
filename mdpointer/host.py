"""Host side of the page channel: message parsing, routing, and document I/O.

The page posts `<tag>:<payload>` strings. `HostBridge.dispatch` splits them on
the first colon and routes each tag to a `HostActions` implementation; the Qt
viewer provides the real one and tests provide a recording fake.
"""

from __future__ import annotations

import enum
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import unquote, urlparse

from .config import MARKDOWN_SUFFIXES, READ_ATTEMPTS, READ_RETRY_DELAY_SECONDS
from .describer import describe
from .errors import DocumentReadError, MessageFormatError
from .pointing import Pointable, PointingContext, picked_element
from .render_errors import RenderError, parse_errors

logger = logging.getLogger(__name__)

_DATA_LINE_RE = re.compile(r"""\bdata-line\s*=\s*["'](\d+)["']""")


@dataclass(frozen=True)
class HostMessage:
    tag: str
    payload: str


def parse_message(raw: str) -> HostMessage:
    """Split a channel message on its first colon."""
    tag, separator, payload = raw.partition(":")
    if not separator or not tag:
        raise MessageFormatError(f"Malformed host message: {raw[:80]!r}")
    return HostMessage(tag=tag, payload=payload)


class LinkAction(enum.Enum):
    OPEN_EXTERNAL = "open-external"
    OPEN_DOCUMENT = "open-document"
    MISSING_FILE = "missing-file"
    IGNORE = "ignore"


@dataclass(frozen=True)
class LinkTarget:
    action: LinkAction
    target: str


def _local_path(url: str) -> Path | None:
    if not url.lower().startswith("file:"):
        return None
    return Path(unquote(urlparse(url).path))


def classify_link(url: str) -> LinkTarget:
    """Decide what a clicked link should do."""
    lowered = url.strip().lower()
    if lowered.startswith(("http://", "https://", "mailto:")):
        return LinkTarget(LinkAction.OPEN_EXTERNAL, url.strip())
    path = _local_path(url.strip())
    if path is None:
        return LinkTarget(LinkAction.IGNORE, url)
    if not path.exists():
        return LinkTarget(LinkAction.MISSING_FILE, str(path))
    if path.suffix.lower() in MARKDOWN_SUFFIXES:
        return LinkTarget(LinkAction.OPEN_DOCUMENT, str(path))
    return LinkTarget(LinkAction.OPEN_EXTERNAL, str(path))


def display_link(url: str) -> str:
    """Status-bar form of a hovered link; local files show as plain paths."""
    path = _local_path(url)
    return str(path) if path is not None else url


def format_point_payload(pointable: Pointable) -> str:
    return f"{pointable.line}|{describe(pointable)}"


def parse_point_payload(payload: str) -> tuple[str, str]:
    # Descriptions may contain pipes (table rows); only the first one separates.
    line, _separator, description = payload.partition("|")
    return line, description


def pointer_reference(path: Path | str, line: str, description: str) -> str:
    return f"[{path}:{line}] {description}"


def read_markdown(
    path: Path,
    attempts: int = READ_ATTEMPTS,
    delay: float = READ_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Read a markdown file, retrying briefly when it is locked or mid-write."""
    attempts = max(1, attempts)
    last_error: OSError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            last_error = exc
            logger.debug("Read attempt %d/%d for %s failed: %s", attempt, attempts, path, exc)
            if attempt < attempts:
                sleep(delay)
    logger.warning("Giving up reading %s after %d attempt(s)", path, attempts)
    raise DocumentReadError(path, attempts, last_error) from last_error


def scroll_target_line(document_html: str, line: int) -> int | None:
    """Return the greatest `data-line` value not after `line`, if any."""
    best: int | None = None
    for match in _DATA_LINE_RE.finditer(document_html):
        value = int(match.group(1))
        if value <= line and (best is None or value > best):
            best = value
    return best


class HostActions(Protocol):
    def show_link(self, text: str) -> None: ...

    def clear_link(self) -> None: ...

    def open_external(self, target: str) -> None: ...

    def open_document(self, path: Path) -> None: ...

    def warn(self, message: str) -> None: ...

    def zoom(self, direction: str) -> None: ...

    def copy_reference(self, line: str, description: str) -> None: ...

    def render_complete(self, errors: list[RenderError]) -> None: ...

    def request_pick(self) -> None: ...


class HostBridge:
    """Routes page messages for one document view."""

    def __init__(self, actions: HostActions, pointing: PointingContext | None = None) -> None:
        self.actions = actions
        self.pointing = pointing if pointing is not None else PointingContext()
        self._handlers: dict[str, Callable[[str], None]] = {
            "hover": self._on_hover,
            "leave": self._on_leave,
            "click": self._on_click,
            "zoom": self._on_zoom,
            "point": self._on_point,
            "render-complete": self._on_render_complete,
            "pick": self._on_pick,
        }

    def dispatch(self, raw: str) -> bool:
        """Route one message; return False when it was malformed or unknown."""
        try:
            message = parse_message(raw)
        except MessageFormatError as exc:
            logger.debug("%s", exc)
            return False
        handler = self._handlers.get(message.tag)
        if handler is None:
            logger.debug("Ignoring unknown host message tag %r", message.tag)
            return False
        handler(message.payload)
        return True

    def handle_pick_snapshot(self, snapshot_html: str) -> str | None:
        """Resolve the marked click target in a DOM snapshot and emit `point:`."""
        pointable = self.pointing.click(picked_element(snapshot_html))
        if pointable is None:
            return None
        message = f"point:{format_point_payload(pointable)}"
        self.dispatch(message)
        return message

    def _on_hover(self, payload: str) -> None:
        self.actions.show_link(display_link(payload))

    def _on_leave(self, payload: str) -> None:
        self.actions.clear_link()

    def _on_click(self, payload: str) -> None:
        link = classify_link(payload)
        if link.action is LinkAction.OPEN_EXTERNAL:
            self.actions.open_external(link.target)
        elif link.action is LinkAction.OPEN_DOCUMENT:
            self.actions.open_document(Path(link.target))
        elif link.action is LinkAction.MISSING_FILE:
            self.actions.warn(f"File not found: {link.target}")
        else:
            logger.debug("Ignoring link %r", payload)

    def _on_zoom(self, payload: str) -> None:
        if payload in ("in", "out"):
            self.actions.zoom(payload)

    def _on_point(self, payload: str) -> None:
        line, description = parse_point_payload(payload)
        self.actions.copy_reference(line, description)

    def _on_render_complete(self, payload: str) -> None:
        self.actions.render_complete(parse_errors(payload))

    def _on_pick(self, payload: str) -> None:
        if self.pointing.enabled:
            self.actions.request_pick()
