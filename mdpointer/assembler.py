"""Wrap line-tracked body HTML into a complete, CSP-constrained document."""

from __future__ import annotations

import base64
import html
import json
import logging
import re
import secrets
from pathlib import Path
from urllib.parse import unquote, urlparse

from .config import LIBRARY_ORIGIN, ViewerConfig
from .render_errors import DIAGRAM_ENGINE, FORMULA_ENGINE
from .renderer import LineTrackingRenderer
from .resources import (
    CHANNEL_PREFIX,
    CORE_INTERACTION_JS,
    PICK_MARKER_ATTR,
    POINTING_JS,
    POST_LOAD_JS,
    STYLESHEET,
)

logger = logging.getLogger(__name__)

_SVG_IMG_RE = re.compile(
    r"""<img\s+([^>]*?)src\s*=\s*["']([^"']+\.svg)(?:\?[^"']*)?["']([^>]*?)/?>""",
    re.IGNORECASE,
)
_ALT_RE = re.compile(r"""\balt\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
_XML_PROLOG_RE = re.compile(r"<\?xml[^?]*\?>\s*", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>\s*", re.IGNORECASE)
_SVG_OPEN_RE = re.compile(r"<svg\b([^>]*)>", re.IGNORECASE)
_CLASS_ATTR_RE = re.compile(r"""\bclass\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_REMOTE_PREFIXES = ("http://", "https://", "//", "data:", "blob:", "mailto:")


def _local_svg_path(src: str, base_directory: Path) -> Path | None:
    lowered = src.strip().lower()
    if lowered.startswith("file:"):
        parsed = urlparse(src.strip())
        return Path(unquote(parsed.path))
    if lowered.startswith(_REMOTE_PREFIXES):
        return None
    candidate = Path(unquote(src.strip()))
    if candidate.is_absolute():
        return candidate
    return (base_directory / candidate).resolve()


def _decorate_svg(svg_text: str, alt_text: str, src: str) -> str | None:
    opening = _SVG_OPEN_RE.search(svg_text)
    if opening is None:
        return None
    attrs = opening.group(1)
    additions = []
    if alt_text:
        additions.append(f'aria-label="{html.escape(alt_text)}" role="img"')
    class_match = _CLASS_ATTR_RE.search(attrs)
    if class_match:
        merged = f'class="{class_match.group(2)} inlined-svg"'
        attrs = attrs[: class_match.start()] + merged + attrs[class_match.end() :]
    else:
        additions.append('class="inlined-svg"')
    additions.append(f'data-original-src="{html.escape(src)}"')
    if not re.search(r"\bstyle\s*=", attrs, re.IGNORECASE):
        additions.append('style="max-width:100%;height:auto"')
    tag = f"<svg {' '.join(additions)}{attrs}>"
    return svg_text[: opening.start()] + tag + svg_text[opening.end() :]


def inline_svg_images(body_html: str, base_directory: Path | str) -> str:
    """Replace `<img>` tags pointing at local `.svg` files with the SVG markup.

    Remote, missing, unreadable or non-SVG references keep the original tag.
    """
    base = Path(base_directory).expanduser()

    def replace(match: re.Match) -> str:
        original = match.group(0)
        src = html.unescape(match.group(2))
        path = _local_svg_path(src, base)
        if path is None:
            return original
        try:
            svg_text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Keeping <img> for %s: %s", path, exc)
            return original
        svg_text = _DOCTYPE_RE.sub("", _XML_PROLOG_RE.sub("", svg_text, count=1), count=1)
        alt_match = _ALT_RE.search(match.group(1) + " " + match.group(3))
        alt_text = html.unescape(alt_match.group(1)) if alt_match else ""
        decorated = _decorate_svg(svg_text.strip(), alt_text, src)
        if decorated is None:
            logger.debug("Keeping <img> for %s: no <svg> root", path)
            return original
        return decorated

    return _SVG_IMG_RE.sub(replace, body_html)


def content_security_policy(nonce: str, config: ViewerConfig) -> str:
    script_sources = [f"'nonce-{nonce}'", "'unsafe-eval'", LIBRARY_ORIGIN]
    style_sources = ["'unsafe-inline'", LIBRARY_ORIGIN]
    font_sources = [LIBRARY_ORIGIN, "data:"]
    # Local library bundles load through nonce-tagged elements; `file:` stays out of script-src.
    if config.uses_local_scripts:
        style_sources.append("file:")
        font_sources.append("file:")
    directives = [
        "default-src 'none'",
        f"script-src {' '.join(script_sources)}",
        f"style-src {' '.join(style_sources)}",
        "img-src file: data: blob: https:",
        f"font-src {' '.join(font_sources)}",
    ]
    return "; ".join(directives) + ";"


class DocumentAssembler:
    """Build full HTML documents from markdown, one fresh nonce per render."""

    def __init__(self, renderer: LineTrackingRenderer | None = None, config: ViewerConfig | None = None) -> None:
        self.renderer = renderer or LineTrackingRenderer()
        self.config = config or ViewerConfig()
        self._previous_nonce: str | None = None

    def new_nonce(self) -> str:
        nonce = base64.b64encode(secrets.token_bytes(16)).decode("ascii")
        while nonce == self._previous_nonce:
            nonce = base64.b64encode(secrets.token_bytes(16)).decode("ascii")
        self._previous_nonce = nonce
        return nonce

    def render_body(self, markdown_text: str, base_directory: Path | str) -> str:
        return inline_svg_images(self.renderer.render(markdown_text), base_directory)

    def _scripts(self) -> tuple[str, str, str]:
        core = CORE_INTERACTION_JS.replace("__MDPOINTER_CHANNEL__", CHANNEL_PREFIX)
        pointing = POINTING_JS.replace(
            "__MDPOINTER_POINTING_ENABLED__", "true" if self.config.pointing_enabled else "false"
        ).replace("__MDPOINTER_PICK_ATTR__", PICK_MARKER_ATTR)
        post_load = POST_LOAD_JS.replace(
            "__MDPOINTER_MERMAID_SOURCES__", json.dumps(self.config.mermaid_script_sources())
        ).replace("__MDPOINTER_MERMAID_THEME__", self.config.mermaid_theme).replace(
            "__MDPOINTER_FORMULA_ENGINE__", FORMULA_ENGINE
        ).replace("__MDPOINTER_DIAGRAM_ENGINE__", DIAGRAM_ENGINE)
        return core, pointing, post_load

    def assemble(self, markdown_text: str, base_directory: Path | str, *, title: str = "mdpointer") -> str:
        """Return a complete HTML document for `markdown_text`.

        Apart from the nonce, the output depends only on the inputs and the
        configuration, so two renders of the same text differ only there.
        """
        base = Path(base_directory).expanduser().resolve()
        body = self.render_body(markdown_text, base)
        nonce = self.new_nonce()
        csp = content_security_policy(nonce, self.config)
        base_href = base.as_uri().rstrip("/") + "/"
        core_js, pointing_js, post_load_js = self._scripts()
        return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta http-equiv="Content-Security-Policy" content="{html.escape(csp)}"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <base href="{html.escape(base_href)}"/>
  <title>{html.escape(title)}</title>
  <style>{STYLESHEET}</style>
  <link rel="stylesheet" href="{html.escape(self.config.katex_stylesheet_url())}"/>
  <script defer nonce="{nonce}" src="{html.escape(self.config.katex_script_url())}"></script>
  <script nonce="{nonce}">{core_js}</script>
  <script nonce="{nonce}">{pointing_js}</script>
  <script nonce="{nonce}">{post_load_js}</script>
</head>
<body>
{body}
</body>
</html>
"""


def assemble(markdown_text: str, base_directory: Path | str) -> str:
    """Assemble a document with default renderer and configuration."""
    return DocumentAssembler().assemble(markdown_text, base_directory)
