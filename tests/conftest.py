"""Shared fixtures for ai_context tests."""

from __future__ import annotations

import argparse
import importlib.util
import shutil
import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Load the script as a module (not in a package).
# Register in sys.modules so all test files share the SAME instance.
# ---------------------------------------------------------------------------

_SCRIPT = Path(__file__).parent.parent / "scripts" / "ai_context.py"

if "ai_context" not in sys.modules:
    _spec = importlib.util.spec_from_file_location("ai_context", _SCRIPT)
    _mod = importlib.util.module_from_spec(_spec)
    sys.modules["ai_context"] = _mod
    _spec.loader.exec_module(_mod)

mod = sys.modules["ai_context"]

_BUNDLED_TEMPLATES = mod.TEMPLATES_DIR


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project(tmp_path):
    """An empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def templates(tmp_path, monkeypatch):
    """A private copy of the bundled templates that tests may damage."""
    dest = tmp_path / "templates"
    shutil.copytree(_BUNDLED_TEMPLATES, dest)
    monkeypatch.setattr(mod, "TEMPLATES_DIR", dest)
    return dest


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def seed_kb(root: Path, files: dict[str, str] | None = None) -> Path:
    """Create .ai/ (and any given files, keyed by relative path) under root."""
    (root / mod.GENERAL_DIR).mkdir(parents=True, exist_ok=True)
    for rel, content in (files or {}).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def snapshot(root: Path) -> dict[str, bytes]:
    """Map of every file and directory under root to its content."""
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else b"<dir>")
        for p in sorted(root.rglob("*"))
    }


def make_record(name: str = "file.md", **overrides: Any) -> Any:
    fields: dict[str, Any] = {"path": f".ai/{name}", "name": name}
    fields.update(overrides)
    return mod.FileRecord(**fields)


def make_args(**overrides: Any) -> argparse.Namespace:
    """Create an argparse.Namespace with sensible test defaults."""
    defaults: dict[str, Any] = {
        "dir": ".",
        "dry_run": False,
        "verbose": False,
        "force": False,
        "git": True,
        "template": "default",
        "all": False,
        "query": "",
        "case_sensitive": False,
        "command": "stats",
    }
    defaults.update(overrides)
    return argparse.Namespace(**defaults)
