"""Shared test fixtures for obsync."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional

import pytest

from obsync.models import Vault

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(cwd: Path, *args: str) -> str:
    """Run a git command for test setup, failing loudly."""
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True,
    )
    return result.stdout


def commit_count(path: Path) -> int:
    return int(git(path, "rev-list", "--count", "HEAD").strip())


class FakeObserver:
    """Stand-in for a watchdog Observer; records what was scheduled."""

    def __init__(self):
        self.scheduled: list[tuple] = []
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def is_alive(self):
        return self.started and not self.stopped

    def join(self, timeout=None):
        pass


@pytest.fixture(autouse=True)
def isolated_git(monkeypatch, tmp_path_factory):
    """Keep the developer's git config out of the tests."""
    config_dir = tmp_path_factory.mktemp("gitconfig")
    gitconfig = config_dir / ".gitconfig"
    gitconfig.write_text(
        "[user]\n\tname = obsync test\n\temail = test@obsync.local\n"
        "[commit]\n\tgpgsign = false\n"
        "[init]\n\tdefaultBranch = main\n"
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "obsync test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@obsync.local")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "obsync test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@obsync.local")


@pytest.fixture
def make_vault(tmp_path: Path) -> Callable[..., Vault]:
    """Factory for vault directories.

    ``repo=False`` gives a plain directory; ``remote=True`` adds a bare
    origin with the initial commit pushed and upstream tracking set.
    """

    def _make(name: str = "notes", repo: bool = True, remote: bool = False) -> Vault:
        path = tmp_path / name
        if remote:
            origin = tmp_path / f"{name}-origin.git"
            git(tmp_path, "init", "--bare", "--quiet", str(origin))
            git(tmp_path, "clone", "--quiet", str(origin), str(path))
        else:
            path.mkdir()
            if repo:
                git(path, "init", "--quiet")

        (path / "note.md").write_text("first line\n")
        if repo or remote:
            git(path, "add", "-A")
            git(path, "commit", "--quiet", "-m", "initial")
        if remote:
            git(path, "push", "--quiet", "-u", "origin", "HEAD")
        return Vault(path=path)

    return _make


@pytest.fixture
def upstream_clone(tmp_path: Path) -> Callable[[Vault], Path]:
    """Second working copy of a vault's origin, for simulating remote edits."""

    def _clone(vault: Vault, name: Optional[str] = None) -> Path:
        origin = git(vault.path, "remote", "get-url", "origin").strip()
        target = tmp_path / (name or f"{vault.name}-elsewhere")
        git(tmp_path, "clone", "--quiet", origin, str(target))
        return target

    return _clone


@pytest.fixture
def obsidian_config(tmp_path: Path) -> Callable[..., Path]:
    """Write an obsidian.json listing the given vault directories."""

    def _write(*paths: Path, legacy: bool = False) -> Path:
        vaults = {}
        for i, p in enumerate(paths):
            vaults[f"id{i}"] = str(p) if legacy else {"path": str(p), "ts": 0, "open": i == 0}
        config = tmp_path / "obsidian.json"
        config.write_text(json.dumps({"vaults": vaults}))
        return config

    return _write


@pytest.fixture(autouse=True)
def restore_obsync_logging():
    """Drop handlers setup_logging() attached during a test."""
    logger = logging.getLogger("obsync")
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved_handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved_level)
