"""
Liveness handles for the supervised application.

A handle answers "is it still running?" and lets a thread block until
it is not. It never owns the process's stdio.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Optional, Protocol, Sequence

from .errors import DependencyMissing

logger = logging.getLogger("obsync.process")


class LivenessHandle(Protocol):
    """What the watcher and coordinator need from the supervised process."""

    def is_alive(self) -> bool: ...

    def wait(self, timeout: Optional[float] = None) -> Optional[int]: ...


class ProcessHandle:
    """Liveness handle wrapping a launched :class:`subprocess.Popen`.

    ``wait`` may be called from several threads at once; Popen serializes
    the underlying waitpid.
    """

    def __init__(self, process: subprocess.Popen):
        self.process = process

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Block until the process exits.

        Returns:
            Exit code, or None if ``timeout`` elapsed first.
        """
        try:
            return self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None


class EventHandle:
    """Liveness handle backed by a :class:`threading.Event`.

    Stands in for a process the caller does not launch itself. Call
    :meth:`finish` to mark it exited.
    """

    def __init__(self) -> None:
        self._done = threading.Event()
        self.returncode: Optional[int] = None

    def finish(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self._done.set()

    def is_alive(self) -> bool:
        return not self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        if self._done.wait(timeout):
            return self.returncode
        return None


def launch_application(command: Sequence[str]) -> ProcessHandle:
    """Start the supervised application without capturing its output.

    Raises:
        DependencyMissing: If the executable does not exist.
    """
    logger.info("Launching %s...", command[0])
    try:
        process = subprocess.Popen(list(command), stdin=subprocess.DEVNULL)
    except FileNotFoundError as exc:
        raise DependencyMissing([command[0]]) from exc
    handle = ProcessHandle(process)
    logger.debug("%s running as pid %d", command[0], handle.pid)
    return handle
