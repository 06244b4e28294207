"""Sync commands: one-off sync and reconcile outside a session."""

from __future__ import annotations

import sys
from typing import Optional

import click

from ._common import (
    console,
    home_option,
    load_session,
    outcome_icon,
    result_icon,
    results_table,
    vault_by_name,
)
from ..config import render_message, setup_logging
from ..errors import DependencyMissing
from ..sync.engine import SyncEngine, failed_vaults
from ..sync.reconcile import PreflightReconciler


def register_sync_commands(main: click.Group) -> None:
    """Register the sync and reconcile commands."""

    @main.command("sync")
    @home_option
    @click.option("--message", "-m", default=None, help="Commit message (default from config).")
    @click.option("--vault", "vault_name", default=None, help="Only sync the vault with this name.")
    def sync_cmd(home: str, message: Optional[str], vault_name: Optional[str]):
        """Commit and push every vault right now."""
        home_path, config, vaults = load_session(home)
        setup_logging(home_path, config.log_level, console=False)

        targets = vault_by_name(vaults, vault_name)
        if not targets:
            console.print(f"[bold red]No vault named {vault_name}.[/]")
            sys.exit(1)

        try:
            results = SyncEngine().sync_all(
                targets, message or render_message(config.commit_message),
            )
        except DependencyMissing as exc:
            console.print(f"[bold red]{exc}[/]")
            sys.exit(1)

        console.print(results_table("Sync", {v: result_icon(r) for v, r in results.items()}))
        if failed_vaults(results):
            sys.exit(2)

    @main.command("reconcile")
    @home_option
    @click.option("--vault", "vault_name", default=None, help="Only reconcile this vault.")
    def reconcile_cmd(home: str, vault_name: Optional[str]):
        """Stash local edits, pull --rebase, and restore them.

        The same pass `obsync run` does before Obsidian opens. Don't
        run it while Obsidian is writing to the vault.
        """
        home_path, config, vaults = load_session(home)
        setup_logging(home_path, config.log_level, console=False)

        targets = vault_by_name(vaults, vault_name)
        if not targets:
            console.print(f"[bold red]No vault named {vault_name}.[/]")
            sys.exit(1)

        try:
            outcomes = PreflightReconciler(config.stash_prefix).reconcile_all(targets)
        except DependencyMissing as exc:
            console.print(f"[bold red]{exc}[/]")
            sys.exit(1)

        console.print(results_table(
            "Pre-flight", {v: outcome_icon(o) for v, o in outcomes.items()},
        ))
        if any(o.needs_attention for o in outcomes.values()):
            sys.exit(2)
