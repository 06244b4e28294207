"""Desktop notifications via ``notify-send``. Fire-and-forget."""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger("obsync.notify")

NOTIFY_BINARY = "notify-send"


def send_notification(title: str, body: str, icon: Optional[str] = None) -> bool:
    """Show a desktop notification.

    Returns:
        True if notify-send ran successfully. Failures are only logged.
    """
    if shutil.which(NOTIFY_BINARY) is None:
        logger.debug("%s not installed, skipping notification", NOTIFY_BINARY)
        return False

    cmd = [NOTIFY_BINARY, title, body]
    if icon:
        cmd.append(f"--icon={icon}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=10, check=False)
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Notification failed: %s", exc)
        return False

    if result.returncode != 0:
        logger.debug("Notification failed: %s", result.stderr.strip())
        return False
    return True
