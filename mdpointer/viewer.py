"""Qt window hosting the rendered document and the pointing workflow."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from PySide6.QtCore import QUrl
from PySide6.QtGui import QAction, QDesktopServices
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QApplication, QFileDialog, QLabel, QMainWindow, QMessageBox

from .assembler import DocumentAssembler
from .config import ZOOM_MAX, ZOOM_MIN, ZOOM_STEP, ViewerConfig
from .correlator import correlate_markup
from .errors import DocumentReadError
from .host import HostBridge, pointer_reference, read_markdown, scroll_target_line
from .pointing import PointingContext
from .render_errors import RenderError, error_indicator, error_tooltip
from .resources import CHANNEL_PREFIX

logger = logging.getLogger(__name__)

COPIED_STATUS = "✓ Copied. Paste into prompt to point AI here."


class ChannelPage(QWebEnginePage):
    """Page that forwards prefixed console messages to a host bridge."""

    def __init__(self, bridge: HostBridge, parent=None) -> None:
        super().__init__(parent)
        self.bridge = bridge

    def javaScriptConsoleMessage(self, level, message, line_number, source_id) -> None:  # noqa: N802
        if message.startswith(CHANNEL_PREFIX):
            self.bridge.dispatch(message[len(CHANNEL_PREFIX) :])
            return
        logger.debug("js console [%s:%s] %s", source_id, line_number, message)


class DocumentWindow(QMainWindow):
    """Single-document viewer; implements the host actions the bridge calls."""

    def __init__(self, config: ViewerConfig, path: Path | None = None, initial_line: int | None = None):
        super().__init__()
        self.config = config
        self.assembler = DocumentAssembler(config=config)
        self.pointing = PointingContext(enabled=config.pointing_enabled)
        self.bridge = HostBridge(self, self.pointing)
        self.current_file: Path | None = None
        self._current_html = ""
        self._pending_line = initial_line
        self._render_errors: list[RenderError] = []

        self.preview = QWebEngineView()
        self.preview.setPage(ChannelPage(self.bridge, self.preview))
        settings = self.preview.settings()
        settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessRemoteUrls, True)
        settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessFileUrls, True)
        self.setCentralWidget(self.preview)

        self.link_label = QLabel("")
        self.error_label = QLabel("")
        self.error_label.setStyleSheet("color: #b45309; font-weight: 600;")
        self.statusBar().addWidget(self.link_label, 1)
        self.statusBar().addPermanentWidget(self.error_label)

        self._add_shortcuts()
        self.resize(1000, 800)
        if path is not None:
            self.open_document(path)
        else:
            self._update_title()

    def _add_shortcuts(self) -> None:
        """Register window-level keyboard shortcuts."""
        shortcuts = (
            ("Open", "Ctrl+O", self._choose_document),
            ("Reload", "F5", self.reload),
            ("Toggle pointing", "Ctrl+P", self.toggle_pointing),
            ("Zoom in", "Ctrl++", lambda: self.zoom("in")),
            ("Zoom out", "Ctrl+-", lambda: self.zoom("out")),
            ("Reset zoom", "Ctrl+0", lambda: self.preview.setZoomFactor(1.0)),
        )
        for text, shortcut, slot in shortcuts:
            action = QAction(text, self)
            action.setShortcut(shortcut)
            action.triggered.connect(slot)
            self.addAction(action)

    def _update_title(self) -> None:
        mode = "pointing" if self.pointing.enabled else "reading"
        name = self.current_file.name if self.current_file is not None else "no document"
        self.setWindowTitle(f"mdpointer - {name} [{mode}]")

    def _choose_document(self) -> None:
        start = str(self.current_file.parent) if self.current_file is not None else str(Path.home())
        selected, _filter = QFileDialog.getOpenFileName(
            self, "Open markdown", start, "Markdown (*.md *.markdown *.mdown *.mkd);;All files (*)"
        )
        if selected:
            self.open_document(Path(selected))

    def load_document(self, path: Path) -> bool:
        path = path.expanduser().resolve()
        if not path.is_file():
            QMessageBox.warning(self, "File not found", f"File not found: {path}")
            return False
        try:
            markdown_text = read_markdown(
                path, attempts=self.config.read_attempts, delay=self.config.read_retry_delay
            )
        except DocumentReadError as exc:
            self.statusBar().showMessage(f"Could not read {path.name}", 5000)
            QMessageBox.critical(self, "Could not open document", str(exc))
            return False

        self.current_file = path
        self._current_html = self.assembler.assemble(markdown_text, path.parent, title=path.name)
        self._set_render_errors([])
        self.preview.setHtml(self._current_html, QUrl.fromLocalFile(f"{path.parent}/"))
        self._update_title()
        logger.info("Loaded %s", path)
        return True

    def reload(self) -> None:
        if self.current_file is not None:
            self.load_document(self.current_file)

    def scroll_to_line(self, line: int) -> None:
        target = scroll_target_line(self._current_html, line)
        if target is None:
            return
        self.preview.page().runJavaScript(f"window.__mdpointerScrollToDataLine({target});")

    def toggle_pointing(self) -> None:
        enabled = self.pointing.toggle()
        self.preview.page().runJavaScript(f"window.__mdpointerSetPointingMode({'true' if enabled else 'false'});")
        self._update_title()
        self.statusBar().showMessage("Pointing mode on" if enabled else "Pointing mode off", 2000)

    def _set_render_errors(self, errors: list[RenderError]) -> None:
        self._render_errors = list(errors)
        self.error_label.setText(error_indicator(self._render_errors))
        self.error_label.setToolTip(error_tooltip(self._render_errors))

    def _on_diagrams_collected(self, result) -> None:
        if not isinstance(result, list):
            return
        for entry in result:
            if not isinstance(entry, dict) or not entry.get("markup"):
                continue
            try:
                base_line = int(entry.get("line") or 0)
            except (TypeError, ValueError):
                base_line = 0
            markup = correlate_markup(str(entry.get("source", "")), base_line, str(entry["markup"]))
            index = int(entry.get("index", 0))
            self.preview.page().runJavaScript(f"window.__mdpointerApplyDiagram({index}, {json.dumps(markup)});")

    def _on_pick_snapshot(self, result) -> None:
        if isinstance(result, str) and result:
            self.bridge.handle_pick_snapshot(result)

    # Host actions called by the bridge.

    def show_link(self, text: str) -> None:
        self.link_label.setText(text)

    def clear_link(self) -> None:
        self.link_label.setText("")

    def open_external(self, target: str) -> None:
        url = QUrl(target) if "://" in target or target.startswith("mailto:") else QUrl.fromLocalFile(target)
        QDesktopServices.openUrl(url)

    def open_document(self, path: Path) -> None:
        self.load_document(path)

    def warn(self, message: str) -> None:
        QMessageBox.warning(self, "mdpointer", message)

    def zoom(self, direction: str) -> None:
        step = ZOOM_STEP if direction == "in" else -ZOOM_STEP
        factor = min(ZOOM_MAX, max(ZOOM_MIN, self.preview.zoomFactor() + step))
        self.preview.setZoomFactor(round(factor, 2))

    def copy_reference(self, line: str, description: str) -> None:
        path = self.current_file if self.current_file is not None else "untitled"
        QApplication.clipboard().setText(pointer_reference(path, line, description))
        self.statusBar().showMessage(COPIED_STATUS, 3000)

    def render_complete(self, errors: list[RenderError]) -> None:
        self._set_render_errors(errors)
        self.preview.page().runJavaScript("window.__mdpointerCollectDiagrams();", self._on_diagrams_collected)
        if self._pending_line is not None:
            self.scroll_to_line(self._pending_line)
            self._pending_line = None

    def request_pick(self) -> None:
        self.preview.page().runJavaScript("window.__mdpointerTakePickSnapshot();", self._on_pick_snapshot)
