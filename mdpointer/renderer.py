"""Markdown to HTML rendering with per-block source-line tracking.

Every block element emitted by :class:`LineTrackingRenderer` carries a
`data-line` attribute holding the 1-based line its markdown token started on
(`token.map[0] + 1`). Code blocks additionally wrap each physical line in a
`span.code-line` with its own absolute `data-line`, and Mermaid fences are
emitted as `pre.diagram` placeholders that keep the raw source in
`data-source` for the client-side diagram renderer.

Rendering rules live in a :class:`RenderRuleRegistry`. The core rules are
installed before markdown-it plugins are attached; a second phase installs the
overrides for plugin-contributed token types (math, callout containers) and
re-applies the whole registry, so plugin defaults never replace a line-tracking
rule and plugin rules for other token types are left alone.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.token import Token
from mdit_py_plugins.container import container_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin

from .config import DIAGRAM_LANGUAGE

RenderRule = Callable[..., str]

CALLOUT_NAMES = ("note", "tip", "important", "warning", "caution")

# Token types tagged with `data-line` and otherwise rendered by markdown-it.
_TAGGED_OPEN_TYPES = (
    "paragraph_open",
    "heading_open",
    "bullet_list_open",
    "ordered_list_open",
    "list_item_open",
    "blockquote_open",
    "hr",
    "table_open",
    "tr_open",
)

_HTML_START_TAG_RE = re.compile(r"^(\s*<[A-Za-z][A-Za-z0-9-]*)(?=[\s/>])")


def source_line(token: Token) -> int | None:
    """Return the 1-based source line of a block token, if it has one."""
    if token.map and len(token.map) == 2:
        return int(token.map[0]) + 1
    return None


def _stamp_line(token: Token) -> None:
    line = source_line(token)
    if line is None:
        return
    # Keep data-line first so it reads before any plugin-provided attrs.
    others = {key: value for key, value in token.attrs.items() if key != "data-line"}
    token.attrs = {"data-line": str(line), **others}


def _line_attr(token: Token) -> str:
    line = source_line(token)
    return f' data-line="{line}"' if line is not None else ""


def _info_language(token: Token) -> str:
    info = (token.info or "").strip()
    return info.split(maxsplit=1)[0] if info else ""


def code_lines(content: str) -> list[str]:
    """Split code token content into its physical source lines."""
    if not content:
        return []
    if content.endswith("\n"):
        content = content[:-1]
    return content.split("\n")


class RenderRuleRegistry:
    """Ordered `(token_type, rule)` pairs; the first entry for a type wins.

    `replace` drops every existing entry for the token type and inserts the
    new rule at the front, so the most recently installed rule for a kind has
    the highest priority.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[str, RenderRule]] = []

    def replace(self, token_type: str, rule: RenderRule) -> None:
        self._entries = [entry for entry in self._entries if entry[0] != token_type]
        self._entries.insert(0, (token_type, rule))

    def lookup(self, token_type: str) -> RenderRule | None:
        for entry_type, rule in self._entries:
            if entry_type == token_type:
                return rule
        return None

    def token_types(self) -> list[str]:
        return [entry_type for entry_type, _rule in self._entries]

    def apply(self, md: MarkdownIt) -> None:
        """Write every registered rule into the markdown-it renderer."""
        # Lowest priority first so a higher-priority duplicate would win.
        for token_type, rule in reversed(self._entries):
            md.add_render_rule(token_type, rule)

    def __iter__(self) -> Iterator[tuple[str, RenderRule]]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


# Rule functions are bound to the markdown-it renderer by `add_render_rule`,
# so they receive it as their first argument.


def render_tagged_block(self, tokens: list[Token], idx: int, options, env) -> str:
    _stamp_line(tokens[idx])
    return self.renderToken(tokens, idx, options, env)


def render_code_block(self, tokens: list[Token], idx: int, options, env) -> str:
    """Indented code: one `code-line` span per physical line."""
    token = tokens[idx]
    return _code_block_html(token, fenced=False)


def _code_block_html(token: Token, *, fenced: bool) -> str:
    line = source_line(token)
    language = _info_language(token) if fenced else ""
    class_attr = f' class="language-{escapeHtml(language)}"' if language else ""
    spans = []
    if line is not None:
        # Fenced content starts one line after the opening fence.
        first = line + (1 if fenced else 0)
        for offset, text in enumerate(code_lines(token.content)):
            spans.append(f'<span class="code-line" data-line="{first + offset}">{escapeHtml(text)}</span>')
    else:
        spans.append(escapeHtml(token.content))
    return f"<pre{_line_attr(token)}><code{class_attr}>{''.join(spans)}</code></pre>\n"


def _make_fence_rule(diagram_language: str) -> RenderRule:
    wanted = diagram_language.casefold()

    def render_fence(self, tokens: list[Token], idx: int, options, env) -> str:
        token = tokens[idx]
        if _info_language(token).casefold() == wanted:
            diagram_source = token.content.rstrip()
            escaped = escapeHtml(diagram_source)
            if isinstance(env, dict):
                env["diagram_count"] = int(env.get("diagram_count", 0)) + 1
            return f'<pre class="diagram"{_line_attr(token)} data-source="{escaped}">{escaped}</pre>\n'
        return _code_block_html(token, fenced=True)

    return render_fence


def render_html_block(self, tokens: list[Token], idx: int, options, env) -> str:
    """Raw HTML: add data-line to the leading start tag, leave the rest as-is."""
    token = tokens[idx]
    content = token.content
    line = source_line(token)
    head = _HTML_START_TAG_RE.match(content)
    if line is None or head is None:
        return content
    tag_end = content.find(">", head.end())
    if tag_end != -1 and "data-line" in content[head.end() : tag_end]:
        return content
    return f'{head.group(1)} data-line="{line}"{content[head.end():]}'


def render_math_block(self, tokens: list[Token], idx: int, options, env) -> str:
    token = tokens[idx]
    math_source = (token.content or "").strip("\n")
    escaped = escapeHtml(math_source)
    label_attr = ""
    if token.type == "math_block_label" and token.info:
        label_attr = f' id="{escapeHtml(token.info)}"'
    return f'<div class="math math-display"{_line_attr(token)}{label_attr} data-math="{escaped}">{escaped}</div>\n'


def render_math_inline(self, tokens: list[Token], idx: int, options, env) -> str:
    token = tokens[idx]
    escaped = escapeHtml(token.content or "")
    display = ' data-display="true"' if token.type == "math_inline_double" else ""
    return f'<span class="math math-inline"{display} data-math="{escaped}">{escaped}</span>'


def render_container_open(self, tokens: list[Token], idx: int, options, env) -> str:
    token = tokens[idx]
    name = token.type[len("container_") : -len("_open")]
    token.attrJoin("class", f"callout callout-{name}")
    _stamp_line(token)
    opened = self.renderToken(tokens, idx, options, env)
    title = (token.info or "").strip()[len(name) :].strip()
    if title:
        opened += f'<p class="callout-title">{escapeHtml(title)}</p>\n'
    return opened


class LineTrackingRenderer:
    """Markdown renderer that tags every block element with its source line."""

    def __init__(self, diagram_language: str = DIAGRAM_LANGUAGE) -> None:
        self.diagram_language = diagram_language
        self.registry = RenderRuleRegistry()
        self._md = MarkdownIt(
            "commonmark",
            {"html": True, "typographer": True},
        ).enable("table").enable("strikethrough")

        self.install_core_rules()
        self.registry.apply(self._md)

        # Extensions attach their own default renderers here.
        self._md.use(dollarmath_plugin, double_inline=True)
        for name in CALLOUT_NAMES:
            self._md.use(container_plugin, name=name)

        self.install_extension_rules()
        self.registry.apply(self._md)

    @property
    def md(self) -> MarkdownIt:
        return self._md

    def install_core_rules(self) -> None:
        """Install line-tracking overrides for the built-in block kinds."""
        for token_type in _TAGGED_OPEN_TYPES:
            self.registry.replace(token_type, render_tagged_block)
        self.registry.replace("code_block", render_code_block)
        self.registry.replace("fence", _make_fence_rule(self.diagram_language))
        self.registry.replace("html_block", render_html_block)

    def install_extension_rules(self) -> None:
        """Install overrides for token kinds contributed by extensions."""
        self.registry.replace("math_block", render_math_block)
        self.registry.replace("math_block_label", render_math_block)
        self.registry.replace("math_inline", render_math_inline)
        self.registry.replace("math_inline_double", render_math_inline)
        for name in CALLOUT_NAMES:
            self.registry.replace(f"container_{name}_open", render_container_open)

    def parse(self, markdown_text: str) -> list[Token]:
        return self._md.parse(markdown_text, {})

    def render(self, markdown_text: str, env: dict[str, Any] | None = None) -> str:
        """Render markdown to line-tracked body HTML."""
        render_env: dict[str, Any] = {} if env is None else env
        render_env.setdefault("diagram_count", 0)
        return self._md.render(markdown_text, render_env)
