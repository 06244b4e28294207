"""
obsync CLI: supervised Obsidian sessions from the command line.

Each command group lives in its own module and is attached to the
main Click group through a register function.

Entry point: obsync.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="obsync")
def main():
    """obsync: git-backed Obsidian vaults, hands off.

    Pulls before Obsidian opens, commits while you write, pushes when it closes.
    """


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .run import register_run_commands
from .vaults import register_vault_commands
from .sync_cmd import register_sync_commands
from .setup import register_setup_commands

register_run_commands(main)
register_vault_commands(main)
register_sync_commands(main)
register_setup_commands(main)
