"""
Sync Engine -- stage, commit, and (maybe) push one vault.

    status clean?        -> CLEAN, nothing runs
    add -A + commit      -> COMMITTED (or COMMIT_FAILED)
    remote configured?   -> push -> COMMITTED_AND_PUSHED (or PUSH_FAILED)

A failed push is only a warning: the next settled window or the next
session retries it for free. Vaults without a repository are skipped
silently everywhere.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from ..errors import CommitFailure, DependencyMissing, PushFailure, VaultOperationError
from ..models import SyncResult, Vault
from .git import GitRepo

logger = logging.getLogger("obsync.sync.engine")


class SyncEngine:
    """Stateless per-vault commit-and-push.

    Holds no per-vault state, so one instance can serve every vault from
    any thread.

    Args:
        repo_factory: Builds a :class:`GitRepo` for a vault path.
    """

    def __init__(self, repo_factory: Callable[..., GitRepo] = GitRepo):
        self._repo_factory = repo_factory

    def sync(self, vault: Vault, message: str) -> SyncResult:
        """Commit and push a single vault.

        Args:
            vault: Vault to sync.
            message: Commit message.

        Returns:
            SyncResult describing how far the pass got.

        Raises:
            DependencyMissing: If git itself cannot be run.
        """
        if not vault.has_repository:
            return SyncResult.CLEAN

        repo = self._repo_factory(vault.path)

        try:
            if not repo.is_dirty():
                return SyncResult.CLEAN

            logger.info("Syncing %s...", vault.name)
            repo.add_all(error=CommitFailure)
            repo.commit(message, error=CommitFailure)
        except DependencyMissing:
            raise
        except VaultOperationError as exc:
            logger.warning("Commit failed for %s: %s", vault.name, exc)
            return SyncResult.COMMIT_FAILED

        try:
            if not repo.has_remote():
                return SyncResult.COMMITTED
            repo.push(error=PushFailure)
        except DependencyMissing:
            raise
        except VaultOperationError as exc:
            logger.warning("Push failed for %s (Offline?): %s", vault.name, exc)
            return SyncResult.PUSH_FAILED

        return SyncResult.COMMITTED_AND_PUSHED

    def sync_all(
        self,
        vaults: Iterable[Vault],
        message: str,
    ) -> dict[Vault, SyncResult]:
        """Sync every vault in order; one vault's failure never stops the rest.

        Returns:
            Mapping of vault to its SyncResult.
        """
        results: dict[Vault, SyncResult] = {}
        for vault in vaults:
            results[vault] = self.sync(vault, message)
            logger.debug("%s -> %s", vault.name, results[vault].value)
        return results


def summarize(results: dict[Vault, SyncResult]) -> dict[str, int]:
    """Count results by kind, for log lines and the CLI."""
    counts: dict[str, int] = {}
    for result in results.values():
        counts[result.value] = counts.get(result.value, 0) + 1
    return counts


def failed_vaults(
    results: dict[Vault, SyncResult],
    kinds: Optional[Iterable[SyncResult]] = None,
) -> list[Vault]:
    """Vaults whose result is one of ``kinds`` (default: any failure)."""
    wanted = set(kinds or (SyncResult.COMMIT_FAILED, SyncResult.PUSH_FAILED))
    return [v for v, r in results.items() if r in wanted]
