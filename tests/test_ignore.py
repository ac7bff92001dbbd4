"""
Tests for the managed .gitignore block.
"""

from pathlib import Path

from reposync.core.ignore import (
    BEGIN_MARKER,
    DEFAULT_IGNORE_PATTERNS,
    END_MARKER,
    UpsertAction,
    read_managed_patterns,
    write_ignore_rules,
)
from reposync.core.sync.detector import ChangeDetector
from reposync.core.vcs.git import GitAdapter


class TestWriteIgnoreRules:
    """Tests for write_ignore_rules."""

    def test_creates_gitignore(self, tmp_path: Path) -> None:
        update = write_ignore_rules(tmp_path)

        assert update.action == UpsertAction.CREATED
        assert read_managed_patterns(tmp_path / ".gitignore") == DEFAULT_IGNORE_PATTERNS

    def test_appends_after_existing_rules(self, tmp_path: Path) -> None:
        gitignore = tmp_path / ".gitignore"
        gitignore.write_text("build/\n")

        update = write_ignore_rules(tmp_path)

        lines = gitignore.read_text().splitlines()
        assert update.action == UpsertAction.APPENDED
        assert lines[0] == "build/"
        assert BEGIN_MARKER in lines
        assert lines[-1] == END_MARKER

    def test_idempotent(self, tmp_path: Path) -> None:
        write_ignore_rules(tmp_path)
        before = (tmp_path / ".gitignore").read_text()

        update = write_ignore_rules(tmp_path)

        assert update.action == UpsertAction.UNCHANGED
        assert (tmp_path / ".gitignore").read_text() == before

    def test_replaces_block_and_keeps_surroundings(self, tmp_path: Path) -> None:
        gitignore = tmp_path / ".gitignore"
        gitignore.write_text(f"build/\n{BEGIN_MARKER}\n*.old\n{END_MARKER}\ndist/\n")

        update = write_ignore_rules(tmp_path, ["*.new"])

        assert update.action == UpsertAction.REPLACED
        assert gitignore.read_text() == f"build/\n{BEGIN_MARKER}\n*.new\n{END_MARKER}\ndist/\n"

    def test_default_rules_ignore_local_settings(self, local_clone: Path, git) -> None:
        write_ignore_rules(local_clone)

        assert git(local_clone, "check-ignore", ".reposync.env") == ".reposync.env"

    def test_missing_end_marker(self, tmp_path: Path) -> None:
        gitignore = tmp_path / ".gitignore"
        gitignore.write_text(f"build/\n{BEGIN_MARKER}\n*.old\n")

        assert read_managed_patterns(gitignore) == ["*.old"]

        write_ignore_rules(tmp_path, ["*.new"])

        assert gitignore.read_text() == f"build/\n{BEGIN_MARKER}\n*.new\n{END_MARKER}\n"


def test_default_rules_keep_editor_files_out_of_commits(local_clone: Path) -> None:
    write_ignore_rules(local_clone)
    detector = ChangeDetector(GitAdapter(local_clone))
    assert detector.has_local_changes()  # the .gitignore itself

    GitAdapter(local_clone).commit("add ignore rules")
    for name in (".notes.md.swp", "notes.md~", ".DS_Store", "movie.mp4.part", "x.crdownload"):
        (local_clone / name).write_text("scratch")

    assert not detector.has_local_changes()
