"""Shared utilities for all CLI command modules.

Provides the Rich console instance, result formatting helpers, and the
config/vault loading every command starts with.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .. import OBSYNC_HOME
from ..config import load_config
from ..discovery import discover_from_config
from ..errors import ConfigurationMissing
from ..models import ObsyncConfig, ReconcileOutcome, SyncResult, Vault, VaultStore

console = Console()
logger = logging.getLogger("obsync.cli")

home_option = click.option(
    "--home", default=OBSYNC_HOME, type=click.Path(),
    help="obsync home directory (config + logs).",
)


def result_icon(result: SyncResult) -> str:
    """Map a sync result to Rich markup."""
    return {
        SyncResult.CLEAN: "[dim]clean[/]",
        SyncResult.COMMITTED: "[green]committed[/]",
        SyncResult.COMMITTED_AND_PUSHED: "[bold green]pushed[/]",
        SyncResult.COMMIT_FAILED: "[bold red]commit failed[/]",
        SyncResult.PUSH_FAILED: "[yellow]push failed (offline?)[/]",
    }.get(result, "[dim]unknown[/]")


def outcome_icon(outcome: ReconcileOutcome) -> str:
    """Map a reconcile outcome to Rich markup."""
    return {
        ReconcileOutcome.ALREADY_CLEAN: "[green]up to date[/]",
        ReconcileOutcome.STASHED_AND_RESTORED: "[green]pulled, local edits restored[/]",
        ReconcileOutcome.STASHED_AND_CONFLICTED: "[bold red]STASH CONFLICT, check git status[/]",
        ReconcileOutcome.PULL_FAILED: "[yellow]pull failed, using local files[/]",
        ReconcileOutcome.SKIPPED: "[dim]no repository[/]",
    }.get(outcome, "[dim]unknown[/]")


def results_table(title: str, rows: dict[Vault, str]) -> Table:
    """Two-column vault -> status table."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Vault", style="cyan")
    table.add_column("Status")
    for vault, status in rows.items():
        table.add_row(vault.name, status)
    return table


def load_session(home: str) -> tuple[Path, ObsyncConfig, VaultStore]:
    """Load config and discover vaults, exiting with 1 if there are none."""
    home_path = Path(home).expanduser()
    config = load_config(home_path)
    try:
        vaults = discover_from_config(config)
    except ConfigurationMissing as exc:
        console.print(f"[bold red]{exc}[/]")
        sys.exit(1)
    return home_path, config, vaults


def vault_by_name(vaults: VaultStore, name: Optional[str]) -> list[Vault]:
    """All vaults, or the ones whose directory name matches ``name``."""
    if not name:
        return list(vaults)
    return [v for v in vaults if v.name == name]
