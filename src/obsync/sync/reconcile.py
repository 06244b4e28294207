"""
Preflight reconciliation -- run once per vault before the app opens.

    dirty?  -> stash (tagged, untracked files included)
    pull --rebase   (failure is a warning; keep local files)
    stashed? -> pop the tagged entry (conflict is left for the user)

Rebasing onto a clean tree and replaying local edits afterwards avoids
most of the conflicts a pull onto a dirty tree would hit.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..errors import DependencyMissing, PullFailure, ReconcileConflict, VaultOperationError
from ..models import ReconcileOutcome, Vault
from .git import GitRepo

logger = logging.getLogger("obsync.sync.reconcile")


def make_stash_tag(prefix: str, now: Optional[datetime] = None) -> str:
    """Unique stash message for this process run."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}-{stamp}-{os.getpid()}"


class PreflightReconciler:
    """Protects uncommitted edits across a startup pull.

    Args:
        stash_prefix: Leading part of the stash message.
        repo_factory: Builds a :class:`GitRepo` for a vault path.
    """

    def __init__(
        self,
        stash_prefix: str = "obsync-preflight",
        repo_factory: Callable[..., GitRepo] = GitRepo,
    ):
        self.stash_prefix = stash_prefix
        self._repo_factory = repo_factory

    def reconcile(self, vault: Vault) -> ReconcileOutcome:
        """Stash, pull, and restore one vault.

        Raises:
            DependencyMissing: If git itself cannot be run.
        """
        if not vault.has_repository:
            logger.warning("Skipping non-git vault: %s", vault.path)
            return ReconcileOutcome.SKIPPED

        logger.info("Pre-flight check: %s", vault.name)
        repo = self._repo_factory(vault.path)

        tag: Optional[str] = None
        try:
            if repo.is_dirty():
                logger.info("  Unstaged changes detected. Stashing...")
                tag = make_stash_tag(self.stash_prefix)
                repo.stash_push(tag)
        except DependencyMissing:
            raise
        except VaultOperationError as exc:
            logger.warning("  Could not stash local changes, skipping pull: %s", exc)
            return ReconcileOutcome.PULL_FAILED

        pulled = self._pull(repo)

        if tag is None:
            return ReconcileOutcome.ALREADY_CLEAN if pulled else ReconcileOutcome.PULL_FAILED

        if not self._restore(repo, tag):
            return ReconcileOutcome.STASHED_AND_CONFLICTED
        return ReconcileOutcome.STASHED_AND_RESTORED if pulled else ReconcileOutcome.PULL_FAILED

    def reconcile_all(self, vaults: Iterable[Vault]) -> dict[Vault, ReconcileOutcome]:
        """Reconcile each vault independently, in order."""
        return {vault: self.reconcile(vault) for vault in vaults}

    def _pull(self, repo: GitRepo) -> bool:
        logger.info("  Pulling remote changes...")
        try:
            repo.pull_rebase(error=PullFailure)
        except DependencyMissing:
            raise
        except VaultOperationError as exc:
            logger.warning(
                "  Pull failed (Network or Conflict). Continuing with local files. %s",
                exc.stderr,
            )
            return False
        return True

    def _restore(self, repo: GitRepo, tag: str) -> bool:
        logger.info("  Restoring local changes...")
        try:
            ref = repo.find_stash(tag)
            if ref is None:
                raise ReconcileConflict(repo.path, ["stash", "pop"], f"stash '{tag}' not found")
            repo.stash_pop(ref, error=ReconcileConflict)
        except DependencyMissing:
            raise
        except VaultOperationError as exc:
            logger.warning(
                "  Conflict during stash pop in %s. Please check git status. %s",
                repo.path, exc.stderr,
            )
            return False
        return True
