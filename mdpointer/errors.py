"""Exception types raised by mdpointer."""

from __future__ import annotations

from pathlib import Path


class MdPointerError(Exception):
    """Base class for mdpointer failures that reach the host."""


class DocumentReadError(MdPointerError):
    """The markdown source could not be read, even after retrying."""

    def __init__(self, path: Path, attempts: int, cause: BaseException | None = None):
        self.path = path
        self.attempts = attempts
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Could not read {path} after {attempts} attempt(s){detail}")


class MessageFormatError(MdPointerError):
    """A host channel message did not have the `<tag>:<payload>` shape."""
