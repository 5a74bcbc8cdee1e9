"""Viewer configuration: constants, `~/.mdpointer.cfg`, and env overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = ".mdpointer.cfg"

DIAGRAM_LANGUAGE = "mermaid"
MERMAID_CDN_URL = "https://cdn.jsdelivr.net/npm/mermaid@11.4.1/dist/mermaid.min.js"
KATEX_CDN_BASE = "https://cdn.jsdelivr.net/npm/katex@0.16.9/dist"
LIBRARY_ORIGIN = "https://cdn.jsdelivr.net"

READ_ATTEMPTS = 3
READ_RETRY_DELAY_SECONDS = 0.1
ZOOM_STEP = 0.1
ZOOM_MIN = 0.3
ZOOM_MAX = 4.0
MARKDOWN_SUFFIXES = (".md", ".markdown", ".mdown", ".mkd")


def _config_file_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def _resolve_local_mermaid_script(override: str | None = None) -> Path | None:
    """Locate a local Mermaid bundle to use before CDN fallback."""
    env_value = (override or os.environ.get("MDPOINTER_MERMAID_JS", "")).strip()
    candidates: list[Path] = []
    if env_value:
        candidates.append(Path(env_value).expanduser())

    app_dir = Path(__file__).resolve().parent
    candidates.extend(
        [
            app_dir / "vendor" / "mermaid" / "mermaid.min.js",
            app_dir / "vendor" / "mermaid" / "dist" / "mermaid.min.js",
            Path("/usr/share/javascript/mermaid/mermaid.min.js"),
            Path("/usr/share/nodejs/mermaid/dist/mermaid.min.js"),
        ]
    )

    for candidate in candidates:
        try:
            if candidate.is_file():
                return candidate.resolve()
        except OSError:
            continue
    return None


def _resolve_local_katex_dir(override: str | None = None) -> Path | None:
    """Locate a local KaTeX `dist` directory holding katex.min.js and katex.min.css."""
    env_value = (override or os.environ.get("MDPOINTER_KATEX_DIR", "")).strip()
    candidates: list[Path] = []
    if env_value:
        candidates.append(Path(env_value).expanduser())

    app_dir = Path(__file__).resolve().parent
    candidates.extend(
        [
            app_dir / "vendor" / "katex" / "dist",
            app_dir / "vendor" / "katex",
            Path("/usr/share/javascript/katex"),
        ]
    )

    for candidate in candidates:
        try:
            if (candidate / "katex.min.js").is_file() and (candidate / "katex.min.css").is_file():
                return candidate.resolve()
        except OSError:
            continue
    return None


@dataclass
class ViewerConfig:
    """Settings shared by the assembler and the viewer window."""

    mermaid_local_script: Path | None = None
    katex_local_dir: Path | None = None
    pointing_enabled: bool = True
    read_attempts: int = READ_ATTEMPTS
    read_retry_delay: float = READ_RETRY_DELAY_SECONDS
    mermaid_theme: str = "default"

    def mermaid_script_sources(self) -> list[str]:
        """Return local-first Mermaid script URLs with the pinned CDN fallback."""
        sources: list[str] = []
        if self.mermaid_local_script is not None:
            sources.append(self.mermaid_local_script.as_uri())
        sources.append(MERMAID_CDN_URL)
        # Keep order while dropping duplicates.
        return list(dict.fromkeys(sources))

    def katex_script_url(self) -> str:
        if self.katex_local_dir is not None:
            return (self.katex_local_dir / "katex.min.js").as_uri()
        return f"{KATEX_CDN_BASE}/katex.min.js"

    def katex_stylesheet_url(self) -> str:
        if self.katex_local_dir is not None:
            return (self.katex_local_dir / "katex.min.css").as_uri()
        return f"{KATEX_CDN_BASE}/katex.min.css"

    @property
    def uses_local_scripts(self) -> bool:
        return self.mermaid_local_script is not None or self.katex_local_dir is not None


def _parse_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


def load_config(cfg_path: Path | None = None) -> ViewerConfig:
    """Build the viewer configuration from the config file and environment.

    The config file is optional JSON; a missing, unreadable or malformed file
    falls back to defaults. Environment variables win over the file.
    """
    path = cfg_path if cfg_path is not None else _config_file_path()
    payload: dict[str, object] = {}
    try:
        if path.is_file():
            raw = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(raw, dict):
                payload = raw
    except (OSError, ValueError):
        # Any read/parse/access issue should fall back to defaults.
        payload = {}

    mermaid_override = payload.get("mermaid_js")
    katex_override = payload.get("katex_dir")
    config = ViewerConfig(
        mermaid_local_script=_resolve_local_mermaid_script(
            os.environ.get("MDPOINTER_MERMAID_JS") or (mermaid_override if isinstance(mermaid_override, str) else None)
        ),
        katex_local_dir=_resolve_local_katex_dir(
            os.environ.get("MDPOINTER_KATEX_DIR") or (katex_override if isinstance(katex_override, str) else None)
        ),
        pointing_enabled=_parse_bool(payload.get("pointing", True), True),
    )

    theme = payload.get("mermaid_theme")
    if isinstance(theme, str) and theme.strip():
        config.mermaid_theme = theme.strip()
    attempts = payload.get("read_attempts")
    if isinstance(attempts, int) and attempts > 0:
        config.read_attempts = attempts

    env_pointing = os.environ.get("MDPOINTER_POINTING")
    if env_pointing is not None:
        config.pointing_enabled = _parse_bool(env_pointing, config.pointing_enabled)
    return config
