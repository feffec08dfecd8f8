"""Tests for initialize, migrate and the manifest check."""

import sys

import pytest

from tests.conftest import seed_kb, snapshot

mod = sys.modules["ai_context"]

ALL_PATHS = mod.MANIFEST.paths()


class RecordingReporter(mod.Reporter):
    def __init__(self):
        self.progress = []
        self.warnings = []

    def on_progress(self, msg):
        self.progress.append(msg)

    def on_warning(self, msg):
        self.warnings.append(msg)


class TestManifest:
    def test_size(self):
        assert len(mod.MANIFEST) == 15
        assert len(ALL_PATHS) == 15

    def test_paths_unique(self):
        assert len(set(ALL_PATHS)) == len(ALL_PATHS)

    def test_every_entry_has_template(self):
        for _, src, _ in mod._manifest_entries(mod.Path("/unused")):
            assert src.is_file(), src


class TestInitialize:
    def test_creates_every_file(self, project):
        result = mod.initialize(project)

        assert result.added_paths == ALL_PATHS
        assert result.skipped_paths == []
        assert result.files_added == len(mod.MANIFEST)
        for rel in ALL_PATHS:
            assert (project / rel).is_file()

    def test_copies_template_content(self, project):
        mod.initialize(project)
        expected = (mod.TEMPLATES_DIR / "ai" / "README.md").read_text()
        assert (project / ".ai" / "README.md").read_text() == expected
        expected = (mod.TEMPLATES_DIR / "ai-instructions.md").read_text()
        assert (project / ".ai-instructions").read_text() == expected

    def test_refuses_existing_ai_dir(self, project):
        (project / ".ai").mkdir()
        with pytest.raises(mod.AlreadyInitializedError):
            mod.initialize(project)

    def test_refuses_existing_instructions(self, project):
        (project / ".ai-instructions").write_text("mine")
        with pytest.raises(mod.AlreadyInitializedError):
            mod.initialize(project)
        assert not (project / ".ai").exists()

    def test_force_overwrites(self, project):
        mod.initialize(project)
        (project / ".ai" / "next-steps.md").write_text("edited")

        result = mod.initialize(project, force=True)

        assert result.files_added == len(mod.MANIFEST)
        assert (project / ".ai" / "next-steps.md").read_text() != "edited"

    def test_dry_run_writes_nothing(self, project):
        before = snapshot(project)
        result = mod.initialize(project, dry_run=True)

        assert snapshot(project) == before
        assert result.dry_run is True
        assert result.added_paths == ALL_PATHS

    def test_dry_run_still_checks_existing(self, project):
        (project / ".ai").mkdir()
        with pytest.raises(mod.AlreadyInitializedError):
            mod.initialize(project, dry_run=True)

    def test_template_variant(self, project):
        mod.initialize(project, template="python")
        overview = (project / ".ai" / "project-overview.md").read_text()
        assert "Python" in overview
        # Files the variant does not override come from the default set.
        default = (mod.TEMPLATES_DIR / "ai" / "next-steps.md").read_text()
        assert (project / ".ai" / "next-steps.md").read_text() == default

    def test_unknown_template(self, project):
        with pytest.raises(mod.TemplateNotFoundError) as exc:
            mod.initialize(project, template="cobol")
        assert "default" in exc.value.available
        assert not (project / ".ai").exists()

    def test_missing_template_aborts(self, project, templates):
        (templates / "aicf" / "tasks.aicf").unlink()
        with pytest.raises(mod.CopyError):
            mod.initialize(project)

    def test_reports_progress(self, project):
        reporter = RecordingReporter()
        mod.initialize(project, reporter=reporter)
        assert any(".ai/README.md" in m for m in reporter.progress)

    def test_then_analyze_sees_knowledge_files(self, project):
        mod.initialize(project)
        records = mod.analyze(project)
        assert len(records) == len(mod.MANIFEST.general) + len(mod.MANIFEST.structured)


class TestMigrate:
    def test_requires_ai_dir(self, project):
        with pytest.raises(mod.NotInitializedError):
            mod.migrate(project)
        assert not (project / ".aicf").exists()

    def test_adds_missing_files(self, project):
        seed_kb(project, {".ai/README.md": "existing"})

        result = mod.migrate(project)

        assert ".aicf/" in result.added_paths
        assert result.skipped_paths == [".ai/README.md"]
        assert result.files_added == len(mod.MANIFEST) - 1
        for rel in ALL_PATHS:
            assert (project / rel).is_file()

    def test_never_overwrites(self, project):
        seed_kb(project, {
            ".ai/README.md": "custom readme",
            ".aicf/tasks.aicf": "@TASK|high|open|mine\n",
            "NEW_CHAT_PROMPT.md": "my prompt",
        })

        mod.migrate(project)

        assert (project / ".ai" / "README.md").read_text() == "custom readme"
        assert (project / ".aicf" / "tasks.aicf").read_text() == "@TASK|high|open|mine\n"
        assert (project / "NEW_CHAT_PROMPT.md").read_text() == "my prompt"

    def test_idempotent(self, project):
        seed_kb(project)

        first = mod.migrate(project)
        second = mod.migrate(project)

        assert first.files_added == len(mod.MANIFEST)
        assert second.files_added == 0
        assert second.added_paths == []
        assert second.skipped_paths == ALL_PATHS

    def test_preserves_manifest_order(self, project):
        seed_kb(project, {".ai/next-steps.md": "x", ".aicf/README.md": "y"})

        result = mod.migrate(project)

        added_files = [p for p in result.added_paths if not p.endswith("/")]
        assert added_files == [p for p in ALL_PATHS if p in added_files]
        assert result.skipped_paths == [".ai/next-steps.md", ".aicf/README.md"]

    def test_partitions_are_exhaustive(self, project):
        seed_kb(project, {".ai/code-style.md": "x", ".ai-instructions": "y"})

        result = mod.migrate(project)

        files = [p for p in result.added_paths if not p.endswith("/")]
        assert not set(files) & set(result.skipped_paths)
        assert sorted(files + result.skipped_paths) == sorted(ALL_PATHS)

    def test_existing_aicf_dir_not_reported(self, project):
        seed_kb(project)
        (project / ".aicf").mkdir()

        result = mod.migrate(project)

        assert ".aicf/" not in result.added_paths

    def test_dry_run_writes_nothing(self, project):
        seed_kb(project, {".ai/README.md": "existing"})
        before = snapshot(project)

        result = mod.migrate(project, dry_run=True)

        assert snapshot(project) == before
        assert result.dry_run is True
        assert ".aicf/" in result.added_paths
        assert result.files_added == len(mod.MANIFEST) - 1
        assert result.skipped_paths == [".ai/README.md"]

    def test_missing_template_warns_and_skips(self, project, templates):
        (templates / "ai" / "design-system.md").unlink()
        seed_kb(project)
        reporter = RecordingReporter()

        result = mod.migrate(project, reporter=reporter)

        assert not (project / ".ai" / "design-system.md").exists()
        assert ".ai/design-system.md" in result.skipped_paths
        assert ".ai/design-system.md" not in result.added_paths
        assert len(result.warnings) == 1
        assert reporter.warnings == result.warnings
        assert (project / ".ai" / "code-style.md").exists()

    def test_copy_failure_aborts(self, project, monkeypatch):
        seed_kb(project)

        def failing_copy(src, dest):
            raise mod.CopyError(src)

        monkeypatch.setattr(mod, "copy_file", failing_copy)
        with pytest.raises(mod.CopyError):
            mod.migrate(project)


class TestCheckManifest:
    def test_fresh_project(self, project):
        status = mod.check_manifest(project)
        assert status.has_general_dir is False
        assert status.missing_paths == ALL_PATHS
        assert status.needs_migration is True

    def test_complete(self, project):
        mod.initialize(project)
        status = mod.check_manifest(project)
        assert status.missing_paths == []
        assert status.existing_paths == ALL_PATHS
        assert status.needs_migration is False

    def test_partial(self, project):
        mod.initialize(project)
        (project / ".aicf" / "issues.aicf").unlink()
        status = mod.check_manifest(project)
        assert status.missing_paths == [".aicf/issues.aicf"]
        assert status.needs_migration is True

    def test_read_only(self, project):
        seed_kb(project, {".ai/README.md": "x"})
        before = snapshot(project)
        mod.check_manifest(project)
        assert snapshot(project) == before
