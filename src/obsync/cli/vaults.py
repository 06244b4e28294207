"""Vault listing: what obsync found and the state of each repository."""

from __future__ import annotations

import json

import click
from rich.table import Table

from ._common import console, home_option, load_session, logger
from ..errors import ObsyncError
from ..sync.git import GitRepo


def register_vault_commands(main: click.Group) -> None:
    """Register the vaults command."""

    @main.command("vaults")
    @home_option
    @click.option("--json-out", is_flag=True, help="Output as JSON.")
    def vaults_cmd(home: str, json_out: bool):
        """List discovered vaults and whether they have pending changes."""
        _, _, vaults = load_session(home)

        rows = []
        for vault in vaults:
            dirty = None
            remote = None
            if vault.has_repository:
                repo = GitRepo(vault.path)
                try:
                    dirty = repo.is_dirty()
                    remote = repo.has_remote()
                except ObsyncError as exc:
                    logger.warning("Cannot read git state of %s: %s", vault.name, exc)
            rows.append({
                "name": vault.name,
                "path": str(vault.path),
                "repository": vault.has_repository,
                "dirty": dirty,
                "remote": remote,
            })

        if json_out:
            click.echo(json.dumps(rows, indent=2))
            return

        table = Table(title=f"{len(rows)} vault(s)", show_header=True, header_style="bold")
        table.add_column("Vault", style="cyan")
        table.add_column("Path", style="dim")
        table.add_column("Git")
        table.add_column("Changes")
        table.add_column("Remote")
        for row in rows:
            if not row["repository"]:
                table.add_row(row["name"], row["path"], "[yellow]none[/]", "-", "-")
                continue
            table.add_row(
                row["name"],
                row["path"],
                "[green]yes[/]",
                "[yellow]pending[/]" if row["dirty"] else "[dim]clean[/]",
                "[green]yes[/]" if row["remote"] else "[dim]none[/]",
            )
        console.print(table)
