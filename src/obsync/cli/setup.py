"""Setup commands: doctor, install-desktop, config."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.panel import Panel

from ._common import console, home_option
from ..config import CONFIG_FILE, load_config, save_config
from ..desktop import SYSTEM_DESKTOP_ENTRY, install_desktop_entry
from ..errors import ConfigurationMissing
from ..models import ObsyncConfig
from ..prereqs import run_preflight


def register_setup_commands(main: click.Group) -> None:
    """Register doctor, install-desktop, and the config group."""

    @main.command("doctor")
    @home_option
    def doctor(home: str):
        """Check that git, Obsidian, and notify-send are installed."""
        config = load_config(Path(home).expanduser())
        result = run_preflight(config.app_command[0])

        console.print()
        for check in result.checks:
            if check.installed:
                version = f" [dim]{check.version}[/]" if check.version else ""
                console.print(f"  [green]OK[/]       {check.name} ({check.binary}){version}")
                continue
            label = "[bold red]MISSING[/]" if check.required else "[yellow]OPTIONAL[/]"
            console.print(f"  {label}  {check.name} ({check.binary}): {check.install_note}")
            if check.install_cmd:
                console.print(f"           [dim]{check.install_cmd}[/]")

        config_path = config.obsidian_config.expanduser()
        if config_path.exists():
            console.print(f"  [green]OK[/]       Obsidian config {config_path}")
        else:
            console.print(f"  [bold red]MISSING[/]  Obsidian config {config_path}")
        console.print()

        if not result.all_ok or not config_path.exists():
            sys.exit(1)

    @main.command("install-desktop")
    @click.option("--exec", "exec_command", default=None,
                  help="Command for the launcher (default: the installed 'obsync run').")
    @click.option("--source", default=str(SYSTEM_DESKTOP_ENTRY), type=click.Path(),
                  help="System desktop entry to copy.")
    def install_desktop(exec_command: Optional[str], source: str):
        """Make the Obsidian launcher start obsync instead."""
        try:
            target = install_desktop_entry(exec_command, source=Path(source))
        except ConfigurationMissing as exc:
            console.print(f"[bold red]{exc}[/]")
            sys.exit(1)

        console.print(f"\n  [green]Desktop entry installed:[/] {target}")
        console.print("  [dim]The local entry overrides the system one.[/]\n")

    @main.group()
    def config():
        """Show or initialize the obsync config file."""

    @config.command("show")
    @home_option
    def config_show(home: str):
        """Print the effective configuration."""
        home_path = Path(home).expanduser()
        cfg = load_config(home_path)
        body = yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
        console.print(Panel(body.rstrip(), title=str(home_path / CONFIG_FILE), border_style="cyan"))

    @config.command("init")
    @home_option
    @click.option("--force", is_flag=True, help="Overwrite an existing config file.")
    def config_init(home: str, force: bool):
        """Write a config file with the defaults."""
        home_path = Path(home).expanduser()
        if (home_path / CONFIG_FILE).exists() and not force:
            console.print("[yellow]Config already exists.[/] Use --force to overwrite.")
            sys.exit(1)
        path = save_config(ObsyncConfig(), home_path)
        console.print(f"\n  [green]Wrote[/] {path}\n")
