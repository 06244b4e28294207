"""Tests for the per-vault git wrapper."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import git, requires_git
from obsync.errors import CommitFailure, DependencyMissing, GitCommandError, PullFailure
from obsync.sync.git import GitRepo


@requires_git
class TestGitRepo:
    """Tests against real repositories in tmp_path."""

    def test_clean_after_commit(self, make_vault):
        vault = make_vault()
        assert GitRepo(vault.path).is_dirty() is False

    def test_untracked_file_is_dirty(self, make_vault):
        vault = make_vault()
        (vault.path / "new.md").write_text("idea\n")
        assert GitRepo(vault.path).is_dirty() is True

    def test_has_remote(self, make_vault):
        assert GitRepo(make_vault("a", remote=True).path).has_remote() is True
        assert GitRepo(make_vault("b").path).has_remote() is False

    def test_error_class_chosen_by_caller(self, make_vault):
        repo = GitRepo(make_vault().path)
        with pytest.raises(PullFailure) as info:
            repo.pull_rebase(error=PullFailure)
        assert info.value.command == ["pull", "--rebase", "--quiet"]
        assert info.value.vault_path == repo.path

    def test_default_error_class(self, make_vault):
        repo = GitRepo(make_vault().path)
        with pytest.raises(GitCommandError):
            repo.run("checkout", "no-such-branch")

    def test_commit_with_nothing_staged_fails(self, make_vault):
        repo = GitRepo(make_vault().path)
        with pytest.raises(CommitFailure):
            repo.commit("empty", error=CommitFailure)

    def test_find_stash_by_message(self, make_vault):
        vault = make_vault()
        repo = GitRepo(vault.path)

        (vault.path / "note.md").write_text("one\n")
        repo.stash_push("obsync-preflight-A")
        (vault.path / "note.md").write_text("two\n")
        repo.stash_push("obsync-preflight-B")

        assert repo.find_stash("obsync-preflight-A") == "stash@{1}"
        assert repo.find_stash("obsync-preflight-B") == "stash@{0}"
        assert repo.find_stash("obsync-preflight-C") is None

    def test_stash_includes_untracked(self, make_vault):
        vault = make_vault()
        repo = GitRepo(vault.path)
        (vault.path / "draft.md").write_text("draft\n")

        repo.stash_push("tag")
        assert not (vault.path / "draft.md").exists()
        repo.stash_pop(repo.find_stash("tag"))
        assert (vault.path / "draft.md").read_text() == "draft\n"

    def test_cwd_untouched(self, make_vault, monkeypatch, tmp_path: Path):
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)

        GitRepo(make_vault().path).status()
        assert Path.cwd() == elsewhere


class TestMissingGit:
    """Tests for a git binary that does not exist."""

    def test_dependency_missing(self, tmp_path: Path):
        repo = GitRepo(tmp_path, git="obsync-no-such-git-binary")
        with pytest.raises(DependencyMissing) as info:
            repo.status()
        assert info.value.tools == ["obsync-no-such-git-binary"]
