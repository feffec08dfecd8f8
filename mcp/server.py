#!/usr/bin/env python3
"""MCP server exposing knowledge base operations as structured tools."""

from __future__ import annotations

import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

SCRIPT_DIR = Path(__file__).resolve().parent.parent / "scripts"
sys.path.insert(0, str(SCRIPT_DIR))

import ai_context as kb  # noqa: E402
from mcp.server.fastmcp import FastMCP  # noqa: E402

mcp = FastMCP(
    "ai-chat-context",
    instructions="Create, migrate and measure the .ai/ and .aicf/ knowledge base of a project.",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _run(fn: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    try:
        data = fn()
    except kb.KnowledgeBaseError as e:
        return {"success": False, "error": str(e), "code": e.code}
    return {"success": True, **_jsonable(data)}


def _reconciliation(result: kb.ReconciliationResult) -> dict[str, Any]:
    return {
        "files_added": result.files_added,
        "files_skipped": result.files_skipped,
        "added": result.added_paths,
        "skipped": result.skipped_paths,
        "warnings": result.warnings,
        "dry_run": result.dry_run,
    }


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def kb_init(
    directory: str,
    force: bool = False,
    template: str = kb.DEFAULT_TEMPLATE,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Create the .ai/ and .aicf/ knowledge base in a project directory.

    Args:
        directory: Project root to initialize.
        force: Overwrite an existing knowledge base.
        template: Project template (default, nextjs, python, rust, api).
        dry_run: Report what would be created without writing.
    """
    return _run(lambda: _reconciliation(
        kb.initialize(directory, force=force, dry_run=dry_run, template=template)
    ))


@mcp.tool()
def kb_migrate(directory: str, dry_run: bool = False) -> dict[str, Any]:
    """Add missing knowledge base files. Existing files are never modified.

    Args:
        directory: Project root containing .ai/.
        dry_run: Report what would be added without writing.
    """
    return _run(lambda: _reconciliation(kb.migrate(directory, dry_run=dry_run)))


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


@mcp.tool()
def kb_check(directory: str) -> dict[str, Any]:
    """Report which knowledge base files are present and which are missing."""
    def check() -> dict[str, Any]:
        status = kb.check_manifest(directory)
        return {**asdict(status), "needs_migration": status.needs_migration}
    return _run(check)


@mcp.tool()
def kb_tokens(directory: str, all_models: bool = False) -> dict[str, Any]:
    """Estimate token usage of the knowledge base, by category and by file.

    Args:
        directory: Project root containing .ai/.
        all_models: Include every known model in the context window table.
    """
    def tokens() -> dict[str, Any]:
        records = kb.analyze(directory)
        usage = kb.summarize(records)
        return {
            "total_tokens": usage.total_tokens,
            "total_words": usage.total_words,
            "total_lines": usage.total_lines,
            "by_category": usage.by_category,
            "files": [{"path": r.path, "tokens": r.tokens, "category": r.category} for r in records],
            "context_windows": [
                {"model": label, "window": window, "percent": round(pct, 2)}
                for label, window, pct in kb.context_window_usage(usage.total_tokens, all_models)
            ],
            "recommendations": usage.recommendations,
        }
    return _run(tokens)


@mcp.tool()
def kb_stats(directory: str) -> dict[str, Any]:
    """Return knowledge base statistics, including conversation entry count."""
    def stats() -> dict[str, Any]:
        records = kb.analyze(directory)
        usage = kb.summarize(records)
        return {
            "total_files": usage.total_files,
            "total_words": usage.total_words,
            "total_lines": usage.total_lines,
            "total_tokens": usage.total_tokens,
            "conversation_entries": kb.count_conversation_entries(directory),
            "most_active_file": {"name": usage.most_active.name, "words": usage.most_active.words},
            "last_modified": usage.last_modified,
            "files": [asdict(r) for r in records],
        }
    return _run(stats)


@mcp.tool()
def kb_search(directory: str, query: str, case_sensitive: bool = False) -> dict[str, Any]:
    """Find lines in the knowledge base that contain a string.

    Args:
        directory: Project root containing .ai/.
        query: Text to look for.
        case_sensitive: Match case exactly.
    """
    def find() -> dict[str, Any]:
        hits = kb.search(directory, query, case_sensitive=case_sensitive)
        return {
            "query": query,
            "count": len(hits),
            "hits": [asdict(h) for h in hits],
        }
    return _run(find)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run(transport="stdio")
