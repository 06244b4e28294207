"""
Vault discovery from Obsidian's own config file.

``obsidian.json`` keeps a ``vaults`` mapping keyed by an opaque id.
Values are usually objects with a ``path`` key, but older versions wrote
the bare path string, so both shapes are accepted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConfigurationMissing, NoVaultsFound
from .models import ObsyncConfig, VaultStore

logger = logging.getLogger("obsync.discovery")


def read_vault_paths(obsidian_config: Path) -> list[Path]:
    """Extract the raw vault paths listed in ``obsidian.json``.

    Args:
        obsidian_config: Path to Obsidian's config file.

    Returns:
        Paths in file order; existence is not checked here.

    Raises:
        ConfigurationMissing: If the file is absent or unreadable.
    """
    config_path = Path(obsidian_config).expanduser()
    if not config_path.is_file():
        raise ConfigurationMissing(f"Config not found: {config_path}")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigurationMissing(f"Cannot read {config_path}: {exc}") from exc

    vaults = data.get("vaults") if isinstance(data, dict) else None
    if not isinstance(vaults, dict):
        return []

    paths = []
    for entry in vaults.values():
        raw = entry.get("path") if isinstance(entry, dict) else entry
        if isinstance(raw, str) and raw:
            paths.append(Path(raw).expanduser())
    return paths


def discover_vaults(
    obsidian_config: Path,
    extra: Optional[Iterable[Path]] = None,
) -> VaultStore:
    """Build the vault set for this session.

    Only existing directories are kept. Order is preserved and duplicates
    are dropped.

    Raises:
        ConfigurationMissing: If ``obsidian.json`` is missing.
        NoVaultsFound: If nothing usable remains.
    """
    logger.info("Discovering vaults...")
    candidates = read_vault_paths(obsidian_config)
    candidates.extend(Path(p).expanduser() for p in extra or [])

    store = VaultStore()
    for path in candidates:
        if not path.is_dir():
            logger.debug("Skipping missing vault directory %s", path)
            continue
        store.add(path)

    if not store:
        raise NoVaultsFound("No vaults found.")

    logger.info("Found %d vault(s).", len(store))
    return store


def discover_from_config(config: ObsyncConfig) -> VaultStore:
    """Shortcut: discover using the paths named in an ObsyncConfig."""
    return discover_vaults(config.obsidian_config, extra=config.extra_vaults)
