"""
Thin git wrapper bound to one working tree.

Every command runs as a subprocess with ``cwd`` set to the vault, so the
caller's working directory never changes and two vaults can be driven
from different threads at once. Only exit status and the porcelain
status output are relied on.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Type

from ..errors import DependencyMissing, GitCommandError, VaultOperationError

logger = logging.getLogger("obsync.sync.git")

GIT_TIMEOUT = 300


class GitRepo:
    """Git operations for a single vault working tree."""

    def __init__(self, path: Path, git: str = "git"):
        self.path = Path(path)
        self.git = git

    def run(
        self,
        *args: str,
        error: Type[VaultOperationError] = GitCommandError,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run ``git <args>`` inside the vault.

        Args:
            *args: git arguments.
            error: Exception class raised on a non-zero exit.
            check: Raise on non-zero exit when True.

        Raises:
            DependencyMissing: If the git binary cannot be executed.
            VaultOperationError: The ``error`` subclass on failure.
        """
        cmd = [self.git, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.path),
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
                check=False,
            )
        except FileNotFoundError as exc:
            raise DependencyMissing([self.git]) from exc
        except subprocess.TimeoutExpired as exc:
            raise error(self.path, list(args), f"timed out after {GIT_TIMEOUT}s") from exc

        if check and result.returncode != 0:
            logger.debug(
                "git %s failed in %s -> %s",
                " ".join(args), self.path, result.stderr.strip(),
            )
            raise error(self.path, list(args), result.stderr or result.stdout)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self) -> str:
        """Porcelain status output (empty when the tree is clean)."""
        return self.run("status", "--porcelain").stdout

    def is_dirty(self) -> bool:
        """True if there are modified, staged, or untracked files."""
        return bool(self.status().strip())

    def remotes(self) -> list[str]:
        return [r for r in self.run("remote").stdout.split() if r]

    def has_remote(self) -> bool:
        return bool(self.remotes())

    def find_stash(self, message: str) -> Optional[str]:
        """Locate a stash entry by its exact message.

        Returns:
            A ``stash@{n}`` reference, or None.
        """
        listing = self.run("stash", "list", "--format=%gd%x09%gs").stdout
        for line in listing.splitlines():
            ref, _, subject = line.partition("\t")
            # "On <branch>: <message>" for stash push -m
            if subject == message or subject.endswith(f": {message}"):
                return ref
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_all(self, error: Type[VaultOperationError] = GitCommandError) -> None:
        self.run("add", "-A", error=error)

    def commit(self, message: str, error: Type[VaultOperationError] = GitCommandError) -> None:
        self.run("commit", "--quiet", "-m", message, error=error)

    def push(self, error: Type[VaultOperationError] = GitCommandError) -> None:
        self.run("push", "--quiet", error=error)

    def pull_rebase(self, error: Type[VaultOperationError] = GitCommandError) -> None:
        self.run("pull", "--rebase", "--quiet", error=error)

    def stash_push(self, message: str) -> None:
        self.run("stash", "push", "--include-untracked", "--quiet", "-m", message)

    def stash_pop(
        self,
        ref: Optional[str] = None,
        error: Type[VaultOperationError] = GitCommandError,
    ) -> None:
        args = ["stash", "pop", "--quiet"]
        if ref:
            args.append(ref)
        self.run(*args, error=error)
