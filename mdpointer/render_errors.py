"""Formula and diagram render errors reported by the page."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from bs4 import Tag

logger = logging.getLogger(__name__)

FORMULA_ENGINE = "KaTeX"
DIAGRAM_ENGINE = "Mermaid"

_ERROR_RE = re.compile(r"^\[(?P<engine>\S+) Line (?P<line>\d+|\?)\] ?(?P<message>.*)$", re.DOTALL)


@dataclass(frozen=True)
class RenderError:
    engine: str
    source_line: int | None
    message: str

    def __str__(self) -> str:
        line = "?" if self.source_line is None else str(self.source_line)
        return f"[{self.engine} Line {line}] {self.message}"

    @classmethod
    def parse(cls, text: str) -> "RenderError":
        """Parse `[Engine Line N] message`; unrecognised text keeps the whole string as message."""
        match = _ERROR_RE.match(text.strip())
        if match is None:
            return cls(engine="", source_line=None, message=text.strip())
        line = match.group("line")
        return cls(
            engine=match.group("engine"),
            source_line=None if line == "?" else int(line),
            message=match.group("message"),
        )


def parse_render_complete(payload: str) -> list[str]:
    """Decode the `render-complete:` JSON payload; malformed input yields no errors."""
    try:
        decoded = json.loads(payload) if payload.strip() else []
    except ValueError:
        logger.debug("Ignoring malformed render-complete payload: %r", payload[:200])
        return []
    if not isinstance(decoded, list):
        return []
    return [str(item) for item in decoded]


def parse_errors(payload: str) -> list[RenderError]:
    return [RenderError.parse(item) for item in parse_render_complete(payload)]


def collect_render_errors(soup: Tag) -> list[RenderError]:
    """Read the errors the page stamped on failed formulas and diagrams."""
    return [RenderError.parse(element["data-render-error"]) for element in soup.select("[data-render-error]")]


def error_indicator(errors: list) -> str:
    """Status-bar text such as `⚠ 2 errors`; empty when there are none."""
    count = len(errors)
    if count == 0:
        return ""
    return f"⚠ {count} error{'s' if count > 1 else ''}"


def error_tooltip(errors: list) -> str:
    return "\n".join(str(error) for error in errors)
