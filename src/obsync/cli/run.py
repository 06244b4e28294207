"""Run command: the full supervised session the desktop launcher starts."""

from __future__ import annotations

import sys
from typing import Optional

import click

from ._common import console, home_option, load_session, outcome_icon, result_icon, results_table
from ..config import setup_logging
from ..errors import DependencyMissing
from ..lifecycle import LifecycleCoordinator, SessionInterrupted
from ..prereqs import run_preflight


def register_run_commands(main: click.Group) -> None:
    """Register the run command."""

    @main.command("run")
    @home_option
    @click.option("--debounce", type=float, default=None,
                  help="Seconds of silence before a sync (overrides config).")
    @click.option("--no-notify", is_flag=True, help="Skip the end-of-session notification.")
    @click.option("--skip-checks", is_flag=True, help="Don't verify git/app are installed.")
    def run(home: str, debounce: Optional[float], no_notify: bool, skip_checks: bool):
        """Pull every vault, launch Obsidian, sync while it runs.

        Blocks until Obsidian exits, then commits and pushes every
        vault one last time.
        """
        home_path, config, vaults = load_session(home)
        setup_logging(home_path, config.log_level)

        updates = {}
        if debounce is not None:
            if debounce <= 0:
                raise click.BadParameter("must be positive", param_hint="--debounce")
            updates["debounce_seconds"] = debounce
        if no_notify:
            updates["notify"] = False
        if updates:
            config = config.model_copy(update=updates)

        if not skip_checks:
            try:
                run_preflight(config.app_command[0]).raise_for_missing()
            except DependencyMissing as exc:
                console.print(f"[bold red]{exc}[/]")
                sys.exit(1)

        console.print(
            f"\n  [green]obsync[/] watching [bold]{len(vaults)}[/] vault(s) "
            f"[dim](debounce {config.debounce_seconds:g}s)[/]"
        )

        coordinator = LifecycleCoordinator(vaults, config)
        try:
            report = coordinator.run()
        except DependencyMissing as exc:
            console.print(f"[bold red]{exc}[/]")
            sys.exit(1)
        except SessionInterrupted as exc:
            console.print(f"\n  [yellow]{exc}. Watcher stopped.[/]\n")
            sys.exit(128 + exc.signum)

        console.print(results_table(
            "Pre-flight",
            {v: outcome_icon(o) for v, o in report.reconcile.items()},
        ))
        console.print(results_table(
            "Final sync",
            {v: result_icon(r) for v, r in report.final.items()},
        ))
        last = ""
        if report.last_watcher_sync is not None:
            last = f", last at {report.last_watcher_sync.astimezone():%H:%M}"
        console.print(f"  [dim]Sync passes while open: {report.watcher_passes}{last}[/]")
        if report.conflicts:
            names = ", ".join(v.name for v in report.conflicts)
            console.print(f"  [bold red]Resolve stash conflicts in: {names}[/]\n")
