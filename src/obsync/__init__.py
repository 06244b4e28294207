"""
obsync: version-controlled note vaults without thinking about it.

Wraps the Obsidian desktop app: pulls every vault before launch,
commits and pushes once editing settles, and runs a final sync
when the app closes.
"""

import os

__version__ = "0.1.0"
__author__ = "obsync"

OBSYNC_HOME = os.environ.get("OBSYNC_HOME", "~/.config/obsync")
