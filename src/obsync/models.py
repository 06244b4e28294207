"""
Pydantic models describing vaults, configuration, and per-vault outcomes.

A vault is only ever read here: obsync never creates or deletes one,
it just asks whether a git repository lives inside it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncResult(str, Enum):
    """What a single-vault sync pass did."""

    CLEAN = "clean"
    COMMITTED = "committed"
    COMMITTED_AND_PUSHED = "committed_and_pushed"
    COMMIT_FAILED = "commit_failed"
    PUSH_FAILED = "push_failed"

    @property
    def ok(self) -> bool:
        """False only when nothing got committed because commit failed."""
        return self != SyncResult.COMMIT_FAILED


class ReconcileOutcome(str, Enum):
    """What the startup stash -> pull -> restore sequence did."""

    ALREADY_CLEAN = "already_clean"
    STASHED_AND_RESTORED = "stashed_and_restored"
    STASHED_AND_CONFLICTED = "stashed_and_conflicted"
    PULL_FAILED = "pull_failed"
    SKIPPED = "skipped"

    @property
    def needs_attention(self) -> bool:
        """Only a stash-pop conflict requires the user to step in."""
        return self == ReconcileOutcome.STASHED_AND_CONFLICTED


class WatchState(str, Enum):
    """Debounce state machine states."""

    IDLE = "idle"
    ARMED = "armed"
    COOLDOWN = "cooldown"
    TERMINATED = "terminated"


class Vault(BaseModel):
    """A directory tree kept under version control.

    Immutable for the process lifetime. ``has_repository`` is checked on
    every access so a vault that gains or loses ``.git`` mid-session is
    handled correctly by the next operation.
    """

    model_config = ConfigDict(frozen=True)

    path: Path

    @field_validator("path")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        return Path(value).expanduser().absolute()

    @property
    def name(self) -> str:
        """Directory name, used in log lines and commit output."""
        return self.path.name

    @property
    def git_dir(self) -> Path:
        return self.path / ".git"

    @property
    def has_repository(self) -> bool:
        """True when the vault root holds a git repository."""
        return self.git_dir.exists()


class VaultStore:
    """Ordered, de-duplicated set of vaults.

    Supplied by discovery and handed to every component explicitly.
    """

    def __init__(self, vaults: Optional[Iterable[Union[Vault, Path, str]]] = None):
        self._vaults: list[Vault] = []
        for item in vaults or []:
            self.add(item)

    def add(self, item: Union[Vault, Path, str]) -> bool:
        """Add a vault unless its path is already present.

        Returns:
            True if the vault was added.
        """
        vault = item if isinstance(item, Vault) else Vault(path=Path(item))
        if vault in self._vaults:
            return False
        self._vaults.append(vault)
        return True

    @property
    def paths(self) -> list[Path]:
        return [v.path for v in self._vaults]

    def __iter__(self) -> Iterator[Vault]:
        return iter(list(self._vaults))

    def __len__(self) -> int:
        return len(self._vaults)

    def __bool__(self) -> bool:
        return bool(self._vaults)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, (str, Path)):
            item = Vault(path=Path(item))
        return item in self._vaults

    def __repr__(self) -> str:
        return f"VaultStore({[str(p) for p in self.paths]})"


class ObsyncConfig(BaseModel):
    """User configuration, loaded from ``<OBSYNC_HOME>/config.yaml``."""

    obsidian_config: Path = Path("~/.config/obsidian/obsidian.json")
    debounce_seconds: float = Field(default=60.0, gt=0)
    app_command: list[str] = Field(default_factory=lambda: ["obsidian"])
    notify: bool = True
    notify_icon: str = "obsidian"
    commit_message: str = "Obsync {time:%H:%M}"
    session_end_message: str = "Obsync Obsend: {time:%Y-%m-%d %H:%M}"
    stash_prefix: str = "obsync-preflight"
    extra_vaults: list[Path] = Field(default_factory=list)
    log_level: str = "INFO"

    @field_validator("app_command")
    @classmethod
    def _non_empty_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("app_command must name an executable")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("commit_message", "session_end_message")
    @classmethod
    def _renderable(cls, value: str) -> str:
        """Only ``{time}`` (with an optional strftime spec) may appear."""
        try:
            value.format(time=datetime.now())
        except (KeyError, IndexError, AttributeError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid message template {value!r}: {exc!r}") from exc
        return value
