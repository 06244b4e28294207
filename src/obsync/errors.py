"""
Error taxonomy for obsync.

Two families:

    Abort-class    -- continuing makes no sense; raised before the app
                      is launched (missing config, missing tools, no
                      vaults, watcher that cannot start).
    Per-vault      -- affect one vault only; raised by the git layer and
                      downgraded to a logged warning by the caller so the
                      remaining vaults and the session carry on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class ObsyncError(Exception):
    """Base class for every obsync error."""


class ConfigurationMissing(ObsyncError):
    """A required configuration file or entry does not exist."""


class NoVaultsFound(ConfigurationMissing):
    """Discovery produced zero usable vaults."""


class DependencyMissing(ObsyncError):
    """A required external tool is not installed.

    Attributes:
        tools: Names of the missing tools.
    """

    def __init__(self, tools: list[str], hint: str = ""):
        self.tools = list(tools)
        self.hint = hint
        message = f"Missing: {', '.join(self.tools)}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class WatchStartFailure(ObsyncError):
    """The file watcher could not be started."""


class VaultOperationError(ObsyncError):
    """A git operation failed for a single vault.

    Attributes:
        vault_path: Vault the operation ran against.
        command: The git arguments that failed.
        stderr: Captured error output, if any.
    """

    def __init__(
        self,
        vault_path: Path,
        command: Optional[list[str]] = None,
        stderr: str = "",
    ):
        self.vault_path = vault_path
        self.command = list(command or [])
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"{type(self).__name__} in {vault_path.name} "
            f"({' '.join(self.command) or 'git'}){detail}"
        )


class GitCommandError(VaultOperationError):
    """Generic non-zero exit from a git command."""


class PullFailure(VaultOperationError):
    """git pull --rebase failed (offline, no remote, no upstream)."""


class CommitFailure(VaultOperationError):
    """git commit (or the add before it) failed, e.g. a hook rejected it."""


class PushFailure(VaultOperationError):
    """git push failed; the next sync pass retries implicitly."""


class ReconcileConflict(VaultOperationError):
    """git stash pop hit a conflict; the user has to resolve it."""
