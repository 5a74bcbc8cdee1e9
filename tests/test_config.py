"""Tests for viewer configuration loading."""

from __future__ import annotations

import json

import pytest

from mdpointer.config import MERMAID_CDN_URL, READ_ATTEMPTS, ViewerConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MDPOINTER_POINTING", "MDPOINTER_MERMAID_JS", "MDPOINTER_KATEX_DIR"):
        monkeypatch.delenv(name, raising=False)


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.cfg")
    assert config.pointing_enabled is True
    assert config.read_attempts == READ_ATTEMPTS
    assert config.mermaid_theme == "default"


def test_values_from_file(tmp_path):
    cfg = tmp_path / "mdpointer.cfg"
    cfg.write_text(json.dumps({"pointing": "off", "mermaid_theme": "dark", "read_attempts": 5}), encoding="utf-8")
    config = load_config(cfg)
    assert config.pointing_enabled is False
    assert config.mermaid_theme == "dark"
    assert config.read_attempts == 5


def test_malformed_file_falls_back(tmp_path):
    cfg = tmp_path / "mdpointer.cfg"
    cfg.write_text("{not json", encoding="utf-8")
    assert load_config(cfg).pointing_enabled is True


def test_environment_wins_over_file(tmp_path, monkeypatch):
    cfg = tmp_path / "mdpointer.cfg"
    cfg.write_text(json.dumps({"pointing": False}), encoding="utf-8")
    monkeypatch.setenv("MDPOINTER_POINTING", "yes")
    assert load_config(cfg).pointing_enabled is True


def test_local_mermaid_script_is_preferred(tmp_path, monkeypatch):
    script = tmp_path / "mermaid.min.js"
    script.write_text("// stub", encoding="utf-8")
    monkeypatch.setenv("MDPOINTER_MERMAID_JS", str(script))
    config = load_config(tmp_path / "absent.cfg")
    assert config.mermaid_script_sources() == [script.resolve().as_uri(), MERMAID_CDN_URL]
    assert config.uses_local_scripts is True


def test_katex_urls(tmp_path):
    assert ViewerConfig().katex_script_url().endswith("/katex.min.js")
    config = ViewerConfig(katex_local_dir=tmp_path)
    assert config.katex_stylesheet_url() == (tmp_path / "katex.min.css").as_uri()
