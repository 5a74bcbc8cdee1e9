"""Markdown viewer that turns clicks into line-accurate source references."""

from .assembler import DocumentAssembler, assemble
from .correlator import correlate, correlate_document, correlate_markup
from .describer import describe
from .diagram_lines import DiagramKind, DiagramLineMaps, build_line_maps
from .errors import DocumentReadError, MdPointerError, MessageFormatError
from .host import HostBridge, classify_link, read_markdown
from .pointing import Pointable, PointableKind, PointingContext, get_pointable_element, resolve
from .render_errors import RenderError, collect_render_errors, parse_render_complete
from .renderer import LineTrackingRenderer

__version__ = "0.1.0"

__all__ = [
    "DiagramKind",
    "DiagramLineMaps",
    "DocumentAssembler",
    "DocumentReadError",
    "HostBridge",
    "LineTrackingRenderer",
    "MdPointerError",
    "MessageFormatError",
    "Pointable",
    "PointableKind",
    "PointingContext",
    "RenderError",
    "assemble",
    "build_line_maps",
    "classify_link",
    "collect_render_errors",
    "correlate",
    "correlate_document",
    "correlate_markup",
    "describe",
    "get_pointable_element",
    "parse_render_complete",
    "read_markdown",
    "resolve",
]
