#!/usr/bin/env python3
"""Scaffold, migrate and measure an AI chat context knowledge base."""

from __future__ import annotations

import argparse
import math
import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# ---------------------------------------------------------------------------
# Terminal colors (respects NO_COLOR and non-TTY)
# ---------------------------------------------------------------------------

_USE_COLOR = (
    sys.stdout.isatty()
    and os.environ.get("NO_COLOR") is None
    and os.environ.get("TERM") != "dumb"
)


def _ansi(code: str) -> str:
    return f"\033[{code}m" if _USE_COLOR else ""


class C:
    """ANSI escape sequences, empty strings when color is disabled."""
    RESET = _ansi("0")
    BOLD = _ansi("1")
    DIM = _ansi("2")
    RED = _ansi("31")
    GREEN = _ansi("32")
    YELLOW = _ansi("33")
    BLUE = _ansi("34")
    MAGENTA = _ansi("35")
    BOLD_RED = _ansi("1;31")
    BOLD_GREEN = _ansi("1;32")
    BOLD_YELLOW = _ansi("1;33")
    BOLD_CYAN = _ansi("1;36")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEMPLATES_DIR = Path(
    os.environ.get("AIC_TEMPLATES_DIR")
    or Path(__file__).resolve().parent.parent / "templates"
)
VARIANTS_DIRNAME = "variants"
DEFAULT_TEMPLATE = "default"

GENERAL_DIR = ".ai"
STRUCTURED_DIR = ".aicf"
STRUCTURED_EXT = ".aicf"
INSTRUCTIONS_FILE = ".ai-instructions"
PROMPT_FILE = "NEW_CHAT_PROMPT.md"
CONVERSATION_LOG = "conversation-log.md"

TOKENS_PER_WORD = 1.33
ARCHIVE_THRESHOLD = 50_000
SPLIT_THRESHOLD = 100_000
LARGE_FILE_THRESHOLD = 10_000

# Entry-delimiter heuristic for the conversation log, not a markdown parse.
ENTRY_HEADING_RE = re.compile(r"^##\s+", re.MULTILINE)

FILE_CATEGORIES: dict[str, str] = {
    "README.md": "entry",
    "project-overview.md": "entry",
    CONVERSATION_LOG: "history",
    "next-steps.md": "planning",
}

# Context windows in tokens, most commonly used first.
AI_MODELS: list[tuple[str, int]] = [
    ("Claude Sonnet 4", 200_000),
    ("GPT-4o", 128_000),
    ("Gemini 1.5 Pro", 2_000_000),
    ("GPT-4o mini", 128_000),
    ("Claude 3.5 Haiku", 200_000),
    ("Gemini 1.5 Flash", 1_000_000),
    ("Llama 3.1 70B", 128_000),
    ("Mistral Large", 128_000),
    ("GPT-3.5 Turbo", 16_385),
]
DEFAULT_MODEL_COUNT = 4


@dataclass(frozen=True)
class Manifest:
    """Fixed set of files a knowledge base is expected to contain."""
    general: tuple[str, ...]
    structured: tuple[str, ...]
    # (target name at the project root, template file name)
    root_files: tuple[tuple[str, str], ...]

    def __len__(self) -> int:
        return len(self.general) + len(self.structured) + len(self.root_files)

    def paths(self) -> list[str]:
        """All target paths relative to the project root, in declaration order."""
        return (
            [f"{GENERAL_DIR}/{name}" for name in self.general]
            + [f"{STRUCTURED_DIR}/{name}" for name in self.structured]
            + [target for target, _ in self.root_files]
        )


MANIFEST = Manifest(
    general=(
        "README.md",
        "conversation-log.md",
        "technical-decisions.md",
        "next-steps.md",
        "code-style.md",
        "design-system.md",
        "project-overview.md",
    ),
    structured=(
        "README.md",
        "conversations.aicf",
        "decisions.aicf",
        "tasks.aicf",
        "issues.aicf",
        "technical-context.aicf",
    ),
    root_files=(
        (INSTRUCTIONS_FILE, "ai-instructions.md"),
        (PROMPT_FILE, "NEW_CHAT_PROMPT.md"),
    ),
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class KnowledgeBaseError(Exception):
    """Base class for every failure reported to the user."""
    code = "KNOWLEDGE_BASE_ERROR"


class AlreadyInitializedError(KnowledgeBaseError):
    code = "ALREADY_INITIALIZED"

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"{path} already exists. Use --force to overwrite.")


class NotInitializedError(KnowledgeBaseError):
    code = "NOT_INITIALIZED"

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"No {GENERAL_DIR}/ directory found at {path}. Run 'init' first.")


class TemplateNotFoundError(KnowledgeBaseError):
    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(
            f"Template '{name}' not found. Options: {', '.join(available)}"
        )


class FileOperationError(KnowledgeBaseError):
    """An OS-level failure, tagged with the operation and offending path."""
    code = "FILE_OPERATION_ERROR"
    operation = "access"

    def __init__(self, path: Union[str, Path], cause: Optional[BaseException] = None):
        self.path = str(path)
        self.cause = cause
        detail = f" ({cause.strerror or cause})" if isinstance(cause, OSError) else ""
        super().__init__(f"Failed to {self.operation}: {self.path}{detail}")


class ReadError(FileOperationError):
    operation = "read file"


class WriteError(FileOperationError):
    operation = "write file"


class CopyError(FileOperationError):
    operation = "copy file"


class CreateError(FileOperationError):
    operation = "create directory"


class ReadDirError(FileOperationError):
    operation = "read directory"


class RemoveError(FileOperationError):
    operation = "remove"


# ---------------------------------------------------------------------------
# Filesystem adapter
# ---------------------------------------------------------------------------


def path_exists(path: Union[str, Path]) -> bool:
    if not str(path).strip():
        return False
    try:
        return Path(path).exists()
    except OSError:
        return False


def read_text(path: Union[str, Path]) -> str:
    # Undecodable bytes become U+FFFD so stray binary files still count.
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ReadError(path, e) from e


def write_text(path: Union[str, Path], content: str) -> None:
    try:
        Path(path).write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteError(path, e) from e


def copy_file(src: Union[str, Path], dest: Union[str, Path]) -> None:
    """Copy a single file. The destination directory must already exist."""
    try:
        shutil.copyfile(src, dest)
    except OSError as e:
        raise CopyError(src, e) from e


def ensure_dir(path: Union[str, Path]) -> None:
    if not str(path).strip():
        raise CreateError(path)
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CreateError(path, e) from e


def list_dir(path: Union[str, Path]) -> list[str]:
    try:
        return sorted(os.listdir(path))
    except OSError as e:
        raise ReadDirError(path, e) from e


def remove_path(path: Union[str, Path]) -> None:
    """Remove a file or directory tree. A missing path is not an error."""
    p = Path(path)
    try:
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        else:
            p.unlink(missing_ok=True)
    except OSError as e:
        raise RemoveError(path, e) from e


def modified_time(path: Union[str, Path]) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(Path(path).stat().st_mtime, tz=timezone.utc)
    except OSError:
        return None


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def section_header(title: str) -> None:
    width = 50
    rule = "─" * max(1, width - len(title) - 5)
    print(f"\n{C.BOLD_CYAN}─── {title} {rule}{C.RESET}")


def summary_line(label: str, count: int, detail: str = "") -> None:
    extra = f"  {C.DIM}({detail}){C.RESET}" if detail else ""
    print(f"  {label:22s} {C.BOLD}{count:,}{C.RESET}{extra}")


def log(msg: str) -> None:
    print(f"  {msg}")


def log_verbose(msg: str, args: argparse.Namespace) -> None:
    if args.verbose:
        print(f"  {C.DIM}[verbose] {msg}{C.RESET}")


def confirm(prompt: str, default: bool = True) -> bool:
    suffix = f"{C.BOLD}[Y/n]{C.RESET}" if default else f"{C.BOLD}[y/N]{C.RESET}"
    try:
        answer = input(f"{prompt} {suffix} ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        print()
        return False
    if not answer:
        return default
    return answer in ("y", "yes")


class Reporter:
    """Receives progress from the reconciler and analyzer. Silent by default."""

    def on_progress(self, msg: str) -> None:
        pass

    def on_warning(self, msg: str) -> None:
        pass

    def on_error(self, msg: str) -> None:
        pass


class ConsoleReporter(Reporter):
    def __init__(self, args: argparse.Namespace):
        self.args = args

    def on_progress(self, msg: str) -> None:
        log_verbose(msg, self.args)

    def on_warning(self, msg: str) -> None:
        log(f"{C.BOLD_YELLOW}Warning:{C.RESET} {msg}")

    def on_error(self, msg: str) -> None:
        print(f"{C.BOLD_RED}Error:{C.RESET} {msg}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Manifest reconciliation
# ---------------------------------------------------------------------------


@dataclass
class ReconciliationResult:
    added_paths: list[str] = field(default_factory=list)
    skipped_paths: list[str] = field(default_factory=list)
    dry_run: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def files_added(self) -> int:
        return len([p for p in self.added_paths if not p.endswith("/")])

    @property
    def files_skipped(self) -> int:
        return len(self.skipped_paths)


@dataclass
class ReconciliationStatus:
    has_general_dir: bool
    has_structured_dir: bool
    missing_paths: list[str] = field(default_factory=list)
    existing_paths: list[str] = field(default_factory=list)

    @property
    def needs_migration(self) -> bool:
        return bool(self.missing_paths) or not self.has_structured_dir


def available_templates() -> list[str]:
    """Template names accepted by init: the default plus every variant directory."""
    names = [DEFAULT_TEMPLATE]
    variants = TEMPLATES_DIR / VARIANTS_DIRNAME
    if variants.is_dir():
        names += [d.name for d in sorted(variants.iterdir()) if d.is_dir()]
    return names


def _check_template(template: str) -> None:
    names = available_templates()
    if template not in names:
        raise TemplateNotFoundError(template, names)


def _template_source(group: str, name: str, template: str = DEFAULT_TEMPLATE) -> Path:
    """Locate the template for a manifest entry, preferring the variant's copy."""
    if template != DEFAULT_TEMPLATE:
        override = TEMPLATES_DIR / VARIANTS_DIRNAME / template / group / name
        if override.exists():
            return override
    return TEMPLATES_DIR / group / name


def _manifest_entries(target: Path, template: str = DEFAULT_TEMPLATE) -> list[tuple[str, Path, Path]]:
    """(display path, template source, destination) for every manifest file, in order."""
    entries = []
    for name in MANIFEST.general:
        entries.append((f"{GENERAL_DIR}/{name}", _template_source("ai", name, template),
                        target / GENERAL_DIR / name))
    for name in MANIFEST.structured:
        entries.append((f"{STRUCTURED_DIR}/{name}", _template_source("aicf", name, template),
                        target / STRUCTURED_DIR / name))
    for dest_name, template_name in MANIFEST.root_files:
        entries.append((dest_name, TEMPLATES_DIR / template_name, target / dest_name))
    return entries


def initialize(
    target_dir: Union[str, Path],
    force: bool = False,
    dry_run: bool = False,
    template: str = DEFAULT_TEMPLATE,
    reporter: Optional[Reporter] = None,
) -> ReconciliationResult:
    """Create the knowledge base in target_dir from the bundled templates.

    Without ``force`` an existing ``.ai/`` directory or ``.ai-instructions``
    file aborts with AlreadyInitializedError. Every manifest file is written;
    with ``force`` that includes overwriting a previous installation.
    A dry run reports what would be written and touches nothing.
    """
    reporter = reporter or Reporter()
    target = Path(target_dir)
    general_dir = target / GENERAL_DIR
    structured_dir = target / STRUCTURED_DIR

    if not force:
        for guard in (general_dir, target / INSTRUCTIONS_FILE):
            if path_exists(guard):
                raise AlreadyInitializedError(guard)

    _check_template(template)
    reporter.on_progress(f"Initializing in {target} (template: {template})")

    result = ReconciliationResult(dry_run=dry_run)
    entries = _manifest_entries(target, template)
    if dry_run:
        for display, _, _ in entries:
            reporter.on_progress(f"{C.MAGENTA}[dry-run]{C.RESET} Would create {display}")
            result.added_paths.append(display)
        return result

    ensure_dir(general_dir)
    ensure_dir(structured_dir)
    reporter.on_progress(f"Created {GENERAL_DIR}/ and {STRUCTURED_DIR}/")

    for display, src, dest in entries:
        copy_file(src, dest)
        reporter.on_progress(f"{C.GREEN}Created{C.RESET} {display}")
        result.added_paths.append(display)
    return result


def migrate(
    target_dir: Union[str, Path],
    dry_run: bool = False,
    reporter: Optional[Reporter] = None,
) -> ReconciliationResult:
    """Add manifest files missing from an existing knowledge base.

    Files that already exist are skipped, whatever their content. A missing
    template only skips that one file with a warning; any other failure
    aborts the migration.
    """
    reporter = reporter or Reporter()
    target = Path(target_dir)
    general_dir = target / GENERAL_DIR
    structured_dir = target / STRUCTURED_DIR

    if not path_exists(general_dir):
        raise NotInitializedError(general_dir)

    result = ReconciliationResult(dry_run=dry_run)

    if not path_exists(structured_dir):
        if not dry_run:
            ensure_dir(structured_dir)
        reporter.on_progress(f"{C.GREEN}Added{C.RESET} {STRUCTURED_DIR}/")
        result.added_paths.append(f"{STRUCTURED_DIR}/")

    for display, src, dest in _manifest_entries(target):
        if path_exists(dest):
            reporter.on_progress(f"{display} {C.DIM}(exists, skipped){C.RESET}")
            result.skipped_paths.append(display)
            continue
        if not path_exists(src):
            msg = f"Template not found for {display}, skipping"
            reporter.on_warning(msg)
            result.warnings.append(msg)
            result.skipped_paths.append(display)
            continue
        if dry_run:
            reporter.on_progress(f"{C.MAGENTA}[dry-run]{C.RESET} Would add {display}")
        else:
            copy_file(src, dest)
            reporter.on_progress(f"{C.GREEN}Added{C.RESET} {display}")
        result.added_paths.append(display)
    return result


def check_manifest(target_dir: Union[str, Path]) -> ReconciliationStatus:
    """Read-only comparison of the manifest against target_dir."""
    target = Path(target_dir)
    status = ReconciliationStatus(
        has_general_dir=path_exists(target / GENERAL_DIR),
        has_structured_dir=path_exists(target / STRUCTURED_DIR),
    )
    for display, _, dest in _manifest_entries(target):
        if path_exists(dest):
            status.existing_paths.append(display)
        else:
            status.missing_paths.append(display)
    return status


# ---------------------------------------------------------------------------
# Corpus analysis
# ---------------------------------------------------------------------------


@dataclass
class FileRecord:
    path: str
    name: str
    words: int = 0
    lines: int = 0
    tokens: int = 0
    category: str = "core"
    last_modified: Optional[datetime] = None


@dataclass
class UsageSummary:
    total_files: int
    total_words: int
    total_lines: int
    total_tokens: int
    by_category: dict[str, int]
    most_active: FileRecord
    last_modified: Optional[datetime]
    recommendations: list[str]


@dataclass
class SearchHit:
    path: str
    line_no: int
    line: str


def count_words(text: str) -> int:
    return len(text.split())


def count_lines(text: str) -> int:
    # An empty file counts as one line; downstream totals rely on that.
    return len(text.split("\n"))


def estimate_tokens(words: int) -> int:
    return math.ceil(words * TOKENS_PER_WORD)


def categorize(name: str) -> str:
    if name in FILE_CATEGORIES:
        return FILE_CATEGORIES[name]
    if name.endswith(STRUCTURED_EXT):
        return "structured"
    return "core"


def analyze_file(path: Path, rel: str) -> FileRecord:
    content = read_text(path)
    words = count_words(content)
    return FileRecord(
        path=rel,
        name=path.name,
        words=words,
        lines=count_lines(content),
        tokens=estimate_tokens(words),
        category=categorize(path.name),
        last_modified=modified_time(path),
    )


def corpus_files(target_dir: Union[str, Path], reporter: Optional[Reporter] = None) -> list[tuple[str, Path]]:
    """(relative path, path) of every file in .ai/ and, when present, .aicf/."""
    reporter = reporter or Reporter()
    target = Path(target_dir)
    general_dir = target / GENERAL_DIR
    if not path_exists(general_dir):
        raise NotInitializedError(general_dir)

    dirs = [GENERAL_DIR]
    if path_exists(target / STRUCTURED_DIR):
        dirs.append(STRUCTURED_DIR)

    files = []
    for dirname in dirs:
        for entry in list_dir(target / dirname):
            path = target / dirname / entry
            if path.is_dir():
                reporter.on_progress(f"Skipping directory {dirname}/{entry}")
                continue
            files.append((f"{dirname}/{entry}", path))
    return files


def analyze(target_dir: Union[str, Path], reporter: Optional[Reporter] = None) -> list[FileRecord]:
    """Measure every file in .ai/ and, when present, .aicf/."""
    reporter = reporter or Reporter()
    records: list[FileRecord] = []
    for rel, path in corpus_files(target_dir, reporter):
        record = analyze_file(path, rel)
        reporter.on_progress(f"{record.path}: {record.words} words, {record.tokens} tokens")
        records.append(record)
    return records


def recommend(total_tokens: int, records: list[FileRecord]) -> list[str]:
    recs = []
    if total_tokens > ARCHIVE_THRESHOLD:
        recs.append("Consider archiving old conversation logs to reduce token usage")
    if total_tokens > SPLIT_THRESHOLD:
        recs.append("Token usage is very high - consider splitting into multiple knowledge bases")
    large = [r.name for r in records if r.tokens > LARGE_FILE_THRESHOLD]
    if large:
        recs.append(f"Large files detected: {', '.join(large)}")
    if not recs:
        recs.append("Token usage is within normal range")
    return recs


def summarize(records: list[FileRecord]) -> UsageSummary:
    by_category: dict[str, int] = {}
    most_active = FileRecord(path="", name="")
    last_modified: Optional[datetime] = None
    for i, r in enumerate(records):
        by_category[r.category] = by_category.get(r.category, 0) + r.tokens
        if i == 0 or r.words > most_active.words:
            most_active = r
        if r.last_modified and (last_modified is None or r.last_modified > last_modified):
            last_modified = r.last_modified

    total_tokens = sum(r.tokens for r in records)
    return UsageSummary(
        total_files=len(records),
        total_words=sum(r.words for r in records),
        total_lines=sum(r.lines for r in records),
        total_tokens=total_tokens,
        by_category=by_category,
        most_active=FileRecord(**vars(most_active)),
        last_modified=last_modified,
        recommendations=recommend(total_tokens, records),
    )


def count_conversation_entries(target_dir: Union[str, Path]) -> int:
    log_path = Path(target_dir) / GENERAL_DIR / CONVERSATION_LOG
    if not path_exists(log_path):
        return 0
    return len(ENTRY_HEADING_RE.findall(read_text(log_path)))


def context_window_usage(total_tokens: int, show_all: bool = False) -> list[tuple[str, int, float]]:
    """(model, context window, percent used) for the listed models."""
    models = AI_MODELS if show_all else AI_MODELS[:DEFAULT_MODEL_COUNT]
    return [(label, window, total_tokens / window * 100) for label, window in models]


def search(
    target_dir: Union[str, Path],
    query: str,
    case_sensitive: bool = False,
    reporter: Optional[Reporter] = None,
) -> list[SearchHit]:
    """Lines containing `query`, file by file in listing order."""
    reporter = reporter or Reporter()
    needle = query if case_sensitive else query.lower()
    hits: list[SearchHit] = []
    for rel, path in corpus_files(target_dir, reporter):
        found = 0
        for line_no, line in enumerate(read_text(path).split("\n"), start=1):
            haystack = line if case_sensitive else line.lower()
            if needle in haystack:
                hits.append(SearchHit(rel, line_no, line.rstrip("\r")))
                found += 1
        if found:
            reporter.on_progress(f"{rel}: {found} matching lines")
    return hits


# ---------------------------------------------------------------------------
# CLI setup
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aic",
        description="Create and manage AI chat context knowledge bases.",
    )
    parser.add_argument("--dir", default=".", metavar="PATH",
                        help="Project directory (default: current directory)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", action="store_true", help="Detailed output")

    sub = parser.add_subparsers(dest="command")

    init_p = sub.add_parser("init", parents=[common], help="Initialize a new AI knowledge base")
    init_p.add_argument("--force", action="store_true", help="Overwrite existing files")
    init_p.add_argument("--no-git", dest="git", action="store_false", help="Skip Git integration")
    init_p.add_argument("--template", default=DEFAULT_TEMPLATE, metavar="NAME",
                        help="Project template (default, nextjs, python, rust, api)")
    init_p.add_argument("--dry-run", action="store_true", help="Preview without writing")

    mig_p = sub.add_parser("migrate", parents=[common], help="Add missing files to an existing knowledge base")
    mig_p.add_argument("--force", action="store_true", help="Skip confirmation prompt")
    mig_p.add_argument("--dry-run", action="store_true", help="Preview without writing")

    tok_p = sub.add_parser("tokens", parents=[common], help="Show token usage breakdown")
    tok_p.add_argument("--all", action="store_true", help="Show all AI models (default: top 4)")

    sub.add_parser("stats", parents=[common], help="Show knowledge base statistics")
    sub.add_parser("check", parents=[common], help="Quick health check of the knowledge base")

    search_p = sub.add_parser("search", parents=[common], help="Search the knowledge base for a string")
    search_p.add_argument("query", help="Text to look for")
    search_p.add_argument("-c", "--case-sensitive", action="store_true", help="Match case exactly")

    return parser


def _format_date(value: Optional[datetime]) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M") if value else "unknown"


def _print_paths(paths: list[str], marker: str, color: str) -> None:
    for p in paths:
        print(f"    {color}{marker}{C.RESET} {p}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> None:
    print(f"\n{C.BOLD_CYAN}=== AI Knowledge Base - Init ==={C.RESET}\n")
    target = Path(args.dir)
    result = initialize(
        target,
        force=args.force,
        dry_run=args.dry_run,
        template=args.template,
        reporter=ConsoleReporter(args),
    )

    section_header("Summary")
    dry = f" {C.MAGENTA}(dry-run){C.RESET}" if args.dry_run else ""
    print(f"  {C.BOLD}{result.files_added}{C.RESET} files created in {target.resolve()}{dry}")
    if args.dry_run:
        _print_paths(result.added_paths, "+", C.GREEN)
        print()
        return

    if args.git and (target / ".git").exists():
        log(f"{C.BLUE}Git:{C.RESET} commit {GENERAL_DIR}/, {STRUCTURED_DIR}/ and "
            f"{INSTRUCTIONS_FILE} so the context travels with the repository")

    section_header("Next steps")
    log(f"1. Review {GENERAL_DIR}/README.md for instructions")
    log(f"2. Customize files in {GENERAL_DIR}/ for your project")
    log(f"3. Read {INSTRUCTIONS_FILE} for AI assistant guidelines")
    print(f"\n{C.BOLD_GREEN}Done!{C.RESET} Paste {PROMPT_FILE} into a new chat to load the context.\n")


def cmd_migrate(args: argparse.Namespace) -> None:
    print(f"\n{C.BOLD_CYAN}=== AI Knowledge Base - Migrate ==={C.RESET}\n")
    target = Path(args.dir)
    reporter = ConsoleReporter(args)

    plan = migrate(target, dry_run=True)
    if not plan.added_paths:
        plan.dry_run = args.dry_run
        _print_migration(plan, args)
        return

    if not args.dry_run and not args.force and sys.stdin.isatty():
        log("The following will be added (existing files are never modified):")
        _print_paths(plan.added_paths, "+", C.GREEN)
        if not confirm("  Proceed?"):
            print(f"  {C.DIM}Aborted.{C.RESET}")
            return

    result = migrate(target, dry_run=args.dry_run, reporter=reporter)
    _print_migration(result, args)


def _print_migration(result: ReconciliationResult, args: argparse.Namespace) -> None:
    section_header("Migration Results")
    if result.dry_run:
        log(f"{C.MAGENTA}[dry-run]{C.RESET} no files were modified")

    verb = "would be added" if result.dry_run else "added"
    summary_line(f"Files {verb}", result.files_added)
    _print_paths(result.added_paths, "+", C.GREEN)
    summary_line("Already present", result.files_skipped, "skipped")
    if args.verbose:
        _print_paths(result.skipped_paths, "✓", C.DIM)
    for w in result.warnings:
        log(f"{C.YELLOW}!{C.RESET} {w}")

    if not result.added_paths:
        print(f"\n{C.BOLD_GREEN}Knowledge base is up to date!{C.RESET}\n")
    elif not result.dry_run:
        print(f"\n{C.BOLD_GREEN}Migration completed successfully!{C.RESET}\n")
    else:
        print()


def cmd_tokens(args: argparse.Namespace) -> None:
    records = analyze(args.dir, reporter=ConsoleReporter(args))
    usage = summarize(records)

    section_header("Token Usage Analysis")
    summary_line("Total tokens", usage.total_tokens)
    summary_line("Total words", usage.total_words)
    summary_line("Total lines", usage.total_lines)

    if args.verbose:
        section_header("By Category")
        for category, tokens in usage.by_category.items():
            summary_line(category, tokens, "tokens")
        section_header(f"Files ({usage.total_files})")
        for r in records:
            print(f"  {C.DIM}{r.path:40s}{C.RESET} {r.tokens:>8,} tokens")

    section_header("Context Windows")
    for label, window, pct in context_window_usage(usage.total_tokens, show_all=args.all):
        color = C.RED if pct > 50 else C.YELLOW if pct > 25 else C.GREEN
        print(f"  {label:22s} {color}{pct:6.2f}%{C.RESET} {C.DIM}of {window:,}{C.RESET}")
    if not args.all and len(AI_MODELS) > DEFAULT_MODEL_COUNT:
        print(f"  {C.DIM}(use --all to list {len(AI_MODELS)} models){C.RESET}")

    section_header("Recommendations")
    for rec in usage.recommendations:
        log(f"• {rec}")
    print()


def cmd_stats(args: argparse.Namespace) -> None:
    records = analyze(args.dir, reporter=ConsoleReporter(args))
    usage = summarize(records)
    entries = count_conversation_entries(args.dir)

    section_header("Knowledge Base Statistics")
    summary_line("Total files", usage.total_files)
    summary_line("Total words", usage.total_words)
    summary_line("Total lines", usage.total_lines)
    summary_line("Total tokens", usage.total_tokens)
    summary_line("Conversation entries", entries)
    print()
    log(f"Most active file: {C.BOLD}{usage.most_active.name or '(none)'}{C.RESET} "
        f"{C.DIM}({usage.most_active.words} words){C.RESET}")
    if usage.last_modified:
        log(f"Last modified:    {_format_date(usage.last_modified)}")

    if args.verbose and records:
        section_header("Files")
        for r in records:
            print(f"  {r.path:40s} {r.words:>6,} words {r.tokens:>7,} tokens  "
                  f"{C.DIM}{_format_date(r.last_modified)}{C.RESET}")
    print()


def cmd_check(args: argparse.Namespace) -> None:
    status = check_manifest(args.dir)
    if not status.has_general_dir:
        raise NotInitializedError(Path(args.dir) / GENERAL_DIR)

    section_header("Knowledge Base Check")
    summary_line("Files present", len(status.existing_paths), f"of {len(MANIFEST)}")
    if args.verbose:
        _print_paths(status.existing_paths, "✓", C.GREEN)
    if not status.has_structured_dir:
        log(f"{C.YELLOW}!{C.RESET} {STRUCTURED_DIR}/ directory is missing")
    if status.missing_paths:
        summary_line("Files missing", len(status.missing_paths))
        _print_paths(status.missing_paths, "-", C.RED)
    if status.needs_migration:
        print(f"\n  Run {C.BOLD}aic migrate{C.RESET} to add the missing files.\n")
    else:
        print(f"\n{C.BOLD_GREEN}Knowledge base is complete.{C.RESET}\n")


def cmd_search(args: argparse.Namespace) -> None:
    hits = search(args.dir, args.query, case_sensitive=args.case_sensitive,
                  reporter=ConsoleReporter(args))

    section_header(f"Search: \"{args.query}\"")
    if not hits:
        log(f"{C.DIM}No matches found.{C.RESET}")
        print()
        return

    current = None
    for hit in hits:
        if hit.path != current:
            current = hit.path
            print(f"\n  {C.BOLD}{hit.path}{C.RESET}")
        print(f"    {C.DIM}{hit.line_no:>5}:{C.RESET} {hit.line.strip()}")

    files = len({hit.path for hit in hits})
    print()
    summary_line("Matches", len(hits), f"in {files} file{'s' if files != 1 else ''}")
    print()


COMMANDS = {
    "init": cmd_init,
    "migrate": cmd_migrate,
    "tokens": cmd_tokens,
    "stats": cmd_stats,
    "check": cmd_check,
    "search": cmd_search,
}

# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        COMMANDS[args.command](args)
    except KnowledgeBaseError as e:
        ConsoleReporter(args).on_error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
