"""
Desktop launcher integration.

Copies the system ``obsidian.desktop`` into the user's applications
directory and points every ``Exec=`` line at obsync, so clicking the
normal Obsidian icon starts a supervised session. The user-level entry
shadows the system one; nothing outside ``$HOME`` is modified.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .errors import ConfigurationMissing

logger = logging.getLogger("obsync.desktop")

SYSTEM_DESKTOP_ENTRY = Path("/usr/share/applications/obsidian.desktop")
USER_APPLICATIONS_DIR = Path.home() / ".local" / "share" / "applications"
DESKTOP_FILE_NAME = "obsidian.desktop"

_EXEC_LINE = re.compile(r"^Exec=.*$", re.MULTILINE)


def default_exec_command() -> str:
    """Command the launcher should run: the installed ``obsync run``."""
    binary = shutil.which("obsync")
    return f"{binary} run" if binary else "obsync run"


def rewrite_exec(content: str, exec_command: str) -> str:
    """Replace every ``Exec=`` line (main entry and actions)."""
    return _EXEC_LINE.sub(lambda _: f"Exec={exec_command}", content)


def install_desktop_entry(
    exec_command: Optional[str] = None,
    source: Path = SYSTEM_DESKTOP_ENTRY,
    target_dir: Optional[Path] = None,
) -> Path:
    """Install a user-level desktop entry that launches obsync.

    Args:
        exec_command: Command for the ``Exec=`` lines.
        source: System desktop entry to copy.
        target_dir: User applications directory (default ``~/.local/share/applications``).

    Returns:
        Path to the installed entry.

    Raises:
        ConfigurationMissing: If the system entry does not exist.
    """
    if not source.is_file():
        raise ConfigurationMissing(
            f"System Obsidian desktop entry not found at {source}. "
            "Please install Obsidian first."
        )

    exec_command = exec_command or default_exec_command()
    target_dir = target_dir or USER_APPLICATIONS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / DESKTOP_FILE_NAME

    content = source.read_text(encoding="utf-8")
    target.write_text(rewrite_exec(content, exec_command), encoding="utf-8")
    logger.info("Desktop entry installed at %s", target)

    _update_desktop_database(target_dir)
    return target


def _update_desktop_database(target_dir: Path) -> None:
    if shutil.which("update-desktop-database") is None:
        return
    try:
        subprocess.run(
            ["update-desktop-database", str(target_dir)],
            capture_output=True, text=True, timeout=30, check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("update-desktop-database failed: %s", exc)
