"""Command-line entry point for the mdpointer viewer."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from .config import load_config
from .viewer import DocumentWindow


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdpointer",
        description="View a markdown file and copy line-accurate references to what you click.",
    )
    parser.add_argument("path", nargs="?", default=None, help="Markdown file to open.")
    parser.add_argument("--line", type=int, default=None, help="Scroll to this source line after rendering.")
    parser.add_argument(
        "--no-pointing",
        action="store_true",
        help="Start in reading mode; toggle pointing later with Ctrl+P.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug details to stderr.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else os.environ.get("MDPOINTER_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    path = Path(args.path).expanduser() if args.path is not None else None
    if path is not None:
        if not path.exists():
            print(f"Path does not exist: {path}", file=sys.stderr)
            return 2
        if not path.is_file():
            print(f"Path is not a file: {path}", file=sys.stderr)
            return 2

    config = load_config()
    if args.no_pointing:
        config.pointing_enabled = False

    app = QApplication(sys.argv[:1] if argv is not None else sys.argv)
    app.setApplicationName("mdpointer")
    app.setDesktopFileName("mdpointer")

    window = DocumentWindow(config, path, initial_line=args.line)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
