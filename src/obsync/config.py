"""
Configuration and logging setup.

Config lives in ``<OBSYNC_HOME>/config.yaml``; anything missing falls
back to the defaults in :class:`~obsync.models.ObsyncConfig`. A broken
file is logged and ignored rather than blocking the app from opening.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import OBSYNC_HOME
from .models import ObsyncConfig

logger = logging.getLogger("obsync.config")

CONFIG_FILE = "config.yaml"
LOG_DIR = "logs"
LOG_FILE = "obsync.log"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def resolve_home(home: Optional[Path] = None) -> Path:
    """Expand the obsync home directory (``OBSYNC_HOME`` by default)."""
    return Path(home or OBSYNC_HOME).expanduser()


def load_config(home: Optional[Path] = None) -> ObsyncConfig:
    """Load configuration from disk.

    Args:
        home: obsync home directory. Defaults to ``OBSYNC_HOME``.

    Returns:
        ObsyncConfig, with defaults for anything absent or invalid.
    """
    config_file = resolve_home(home) / CONFIG_FILE
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return ObsyncConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s", config_file, exc)
    return ObsyncConfig()


def save_config(config: ObsyncConfig, home: Optional[Path] = None) -> Path:
    """Write configuration to ``<home>/config.yaml``.

    Returns:
        Path of the written file.
    """
    home_path = resolve_home(home)
    home_path.mkdir(parents=True, exist_ok=True)
    config_file = home_path / CONFIG_FILE
    data = config.model_dump(mode="json")
    config_file.write_text(
        yaml.dump(data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return config_file


def render_message(template: str, now: Optional[datetime] = None) -> str:
    """Fill a commit message template's ``{time}`` placeholder."""
    return template.format(time=now or datetime.now())


def setup_logging(
    home: Optional[Path] = None,
    level: str = "INFO",
    console: bool = True,
) -> Path:
    """Configure file and console logging for the ``obsync`` logger tree.

    Calling it again replaces the handlers it added before.

    Returns:
        Path of the log file.
    """
    log_dir = resolve_home(home) / LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE

    root = logging.getLogger("obsync")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in [h for h in root.handlers if getattr(h, "_obsync", False)]:
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler._obsync = True
    root.addHandler(file_handler)

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("[%(name)s] %(levelname)s: %(message)s"))
        stream._obsync = True
        root.addHandler(stream)

    return log_file
