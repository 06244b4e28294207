"""
Prerequisite checks -- make sure the tools obsync drives are installed.

Checks for:
  - Git (required: every sync and reconcile shells out to it)
  - The supervised application binary (required: we launch it)
  - notify-send (optional: only used for the end-of-session popup)

Each check reports whether the tool is present, its version where one
is cheap to read, and a distro-specific install command.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import DependencyMissing


class ToolStatus(str, Enum):
    """Status of a system tool."""
    INSTALLED = "installed"
    MISSING = "missing"


@dataclass
class ToolCheck:
    """Result of checking a single system tool."""

    name: str
    binary: str
    status: ToolStatus
    required: bool
    version: str = ""
    install_cmd: str = ""
    install_note: str = ""

    @property
    def installed(self) -> bool:
        """Whether the tool is installed."""
        return self.status == ToolStatus.INSTALLED

    @property
    def ok(self) -> bool:
        """Whether this check passes (installed, or optional and missing)."""
        return self.installed or not self.required


@dataclass
class PreflightResult:
    """Combined result of all prerequisite checks."""

    checks: list[ToolCheck] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        """True if all required tools pass."""
        return all(c.ok for c in self.checks)

    @property
    def required_missing(self) -> list[ToolCheck]:
        """List of required tools that are missing."""
        return [c for c in self.checks if c.required and not c.installed]

    @property
    def optional_missing(self) -> list[ToolCheck]:
        """List of optional tools that are missing."""
        return [c for c in self.checks if not c.required and not c.installed]

    def raise_for_missing(self) -> None:
        """Raise DependencyMissing if any required tool is absent."""
        missing = self.required_missing
        if not missing:
            return
        hints = [c.install_cmd for c in missing if c.install_cmd]
        hint = f"Install: {'; '.join(hints)}" if hints else ""
        raise DependencyMissing([c.binary for c in missing], hint)


# ---------------------------------------------------------------------------
# Platform detection
# ---------------------------------------------------------------------------

INSTALL_COMMANDS = {
    "git": {
        "apt": "sudo apt install -y git",
        "dnf": "sudo dnf install -y git",
        "pacman": "sudo pacman -S --noconfirm git",
        "zypper": "sudo zypper install -y git",
    },
    "notify-send": {
        "apt": "sudo apt install -y libnotify-bin",
        "dnf": "sudo dnf install -y libnotify",
        "pacman": "sudo pacman -S --noconfirm libnotify",
        "zypper": "sudo zypper install -y libnotify-tools",
    },
    "obsidian": {
        "apt": "sudo snap install obsidian --classic",
        "dnf": "flatpak install -y flathub md.obsidian.Obsidian",
        "pacman": "sudo pacman -S --noconfirm obsidian",
    },
}


def _detect_linux_pkg_manager() -> Optional[str]:
    """Detect the Linux package manager."""
    for mgr in ("apt", "dnf", "pacman", "zypper"):
        if shutil.which(mgr) is not None:
            return mgr
    return None


def _read_version(binary: str) -> str:
    try:
        result = subprocess.run(
            [binary, "--version"],
            capture_output=True, text=True, timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip().split("\n")[0][:60]


# ---------------------------------------------------------------------------
# Individual tool checks
# ---------------------------------------------------------------------------

def check_tool(
    name: str,
    binary: str,
    required: bool,
    install_note: str = "",
    read_version: bool = True,
) -> ToolCheck:
    """Check whether ``binary`` is on PATH.

    Args:
        name: Display name.
        binary: Executable to look up.
        required: Whether a missing tool should block startup.
        install_note: Why the tool is needed.
        read_version: Run ``<binary> --version`` when installed.

    Returns:
        ToolCheck for the tool.
    """
    if shutil.which(binary):
        return ToolCheck(
            name=name,
            binary=binary,
            status=ToolStatus.INSTALLED,
            required=required,
            version=_read_version(binary) if read_version else "",
        )

    mgr = _detect_linux_pkg_manager()
    install_cmd = INSTALL_COMMANDS.get(binary, {}).get(mgr or "apt", "")
    return ToolCheck(
        name=name,
        binary=binary,
        status=ToolStatus.MISSING,
        required=required,
        install_cmd=install_cmd,
        install_note=install_note,
    )


def check_git() -> ToolCheck:
    """Check if Git is installed."""
    return check_tool(
        "Git", "git", required=True,
        install_note="Git commits and pushes your vaults.",
    )


def check_application(binary: str = "obsidian") -> ToolCheck:
    """Check if the supervised application is installed.

    The app is not asked for its version: Electron apps open a window.
    """
    return check_tool(
        "Application", binary, required=True,
        install_note="obsync launches this app and watches its vaults.",
        read_version=False,
    )


def check_notify() -> ToolCheck:
    """Check if notify-send is installed."""
    return check_tool(
        "notify-send", "notify-send", required=False,
        install_note="Used for the 'All vaults synced' popup only.",
        read_version=False,
    )


# ---------------------------------------------------------------------------
# Full preflight
# ---------------------------------------------------------------------------

def run_preflight(app_binary: str = "obsidian") -> PreflightResult:
    """Run all prerequisite checks.

    Args:
        app_binary: Executable of the supervised application.

    Returns:
        PreflightResult with all tool checks.
    """
    return PreflightResult(checks=[
        check_git(),
        check_application(app_binary),
        check_notify(),
    ])
