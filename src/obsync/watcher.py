"""
Change watcher -- trailing-edge debounce over every vault.

    ARMED     block until the first file event
    COOLDOWN  block until silence: each new event restarts the window,
              a full window with no event fires the sync callback
    (fire)    back to ARMED
    any       -> TERMINATED when the app exits or stop() is called

All waiting happens on a single queue. File events, stop requests, and
"the app exited" all arrive as signals on it, so the watcher uses no CPU
while idle and a multi-hour gap costs nothing. One shared timer covers
every vault; when it fires, every vault is synced in the same pass.

watchdog's recursive inotify watch cannot exclude a subtree, so
``.git`` directories are watched too and git's own writes still wake
the observer thread. They are dropped in VaultEventHandler before they
reach the queue and never restart the debounce window. On very large
repositories the extra watches count against
``fs.inotify.max_user_watches``; hitting that limit surfaces as a
WatchStartFailure.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import WatchStartFailure
from .models import Vault, WatchState
from .process import LivenessHandle

logger = logging.getLogger("obsync.watcher")

ACTIVITY = "activity"
STOP = "stop"
EXITED = "exited"

RELEVANT_EVENTS = frozenset({
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
})

REPO_DIR = ".git"


def is_repository_path(path: str) -> bool:
    """True if ``path`` lies inside a vault's git metadata directory."""
    return REPO_DIR in Path(os.fsdecode(path)).parts


class VaultEventHandler(FileSystemEventHandler):
    """Turns watchdog events into bare activity signals.

    Directory events, open/read-only events, and anything under ``.git``
    are dropped so the sync engine's own writes never retrigger a sync.
    """

    def __init__(self, on_activity: Callable[[], None]):
        super().__init__()
        self._on_activity = on_activity

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in RELEVANT_EVENTS:
            return
        path = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
        if is_repository_path(path):
            return
        self._on_activity()


class ChangeWatcher:
    """Debounce engine driving the sync callback.

    Args:
        vaults: Vault directories to observe recursively.
        on_settle: Called once per settled window; syncs every vault.
        liveness: Handle of the supervised application.
        debounce_seconds: Silence required after the last event.
        observer_factory: Builds the watchdog observer.
    """

    def __init__(
        self,
        vaults: Iterable[Vault],
        on_settle: Callable[[], object],
        liveness: LivenessHandle,
        debounce_seconds: float = 60.0,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        if debounce_seconds <= 0:
            raise ValueError("debounce_seconds must be positive")
        self.vaults = list(vaults)
        self.on_settle = on_settle
        self.liveness = liveness
        self.debounce_seconds = debounce_seconds
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._observer_stopped = False
        self._signals: queue.Queue[str] = queue.Queue()
        self._stop_requested = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._liveness_thread: Optional[threading.Thread] = None
        self.state = WatchState.IDLE
        self.fire_count = 0
        self.last_fired_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start observing and run the state machine on a background thread.

        Raises:
            WatchStartFailure: If the observer cannot watch the vaults.
        """
        if self._thread is not None:
            return
        self._start_observer()
        self._thread = threading.Thread(target=self.run, name="obsync-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the watcher to terminate. Idempotent, never blocks.

        The request sits in the signal queue, so it is seen even if the
        watcher is mid-cooldown or has not reached its next wait yet.
        """
        self._stop_requested.set()
        self._signals.put(STOP)
        self._stop_observer()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the watcher thread and observer to finish.

        Returns:
            True if everything has terminated.
        """
        if self._thread is not None:
            self._thread.join(timeout)
        observer = self._observer
        if observer is not None and observer.is_alive():
            observer.join(timeout)
        return not self.is_running

    @property
    def is_running(self) -> bool:
        thread_alive = self._thread is not None and self._thread.is_alive()
        observer_alive = self._observer is not None and self._observer.is_alive()
        return thread_alive or observer_alive

    def notify_activity(self) -> None:
        """Record that something under a vault changed."""
        self._signals.put(ACTIVITY)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Block until the app exits or stop() is called, syncing on silence."""
        logger.info("Watcher active (Timeout Mode: %gs)", self.debounce_seconds)
        self._start_liveness_thread()
        try:
            while self._should_continue():
                self.state = WatchState.ARMED
                if self._signals.get() != ACTIVITY:
                    break
                self.state = WatchState.COOLDOWN
                if not self._cooldown():
                    break
        finally:
            self.state = WatchState.TERMINATED
            self._stop_observer()
            logger.debug("Watcher terminated after %d sync pass(es)", self.fire_count)

    def _cooldown(self) -> bool:
        """Wait for a full window of silence.

        Returns:
            True after firing, False if the watcher must terminate.
        """
        while True:
            if not self._should_continue():
                return False
            try:
                signal = self._signals.get(timeout=self.debounce_seconds)
            except queue.Empty:
                self._fire()
                return True
            if signal != ACTIVITY:
                return False

    def _fire(self) -> None:
        self.fire_count += 1
        self.last_fired_at = datetime.now(timezone.utc)
        logger.debug("Silence for %gs, syncing all vaults", self.debounce_seconds)
        try:
            self.on_settle()
        except Exception as exc:
            logger.error("Sync pass failed: %s", exc)

    def _should_continue(self) -> bool:
        return not self._stop_requested.is_set() and self.liveness.is_alive()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_liveness_thread(self) -> None:
        if self._liveness_thread is not None:
            return
        self._liveness_thread = threading.Thread(
            target=self._await_exit, name="obsync-liveness", daemon=True,
        )
        self._liveness_thread.start()

    def _await_exit(self) -> None:
        try:
            self.liveness.wait()
        finally:
            self._signals.put(EXITED)

    def _start_observer(self) -> None:
        handler = VaultEventHandler(self.notify_activity)
        observer = self._observer_factory()
        try:
            for vault in self.vaults:
                observer.schedule(handler, str(vault.path), recursive=True)
            observer.start()
        except (OSError, RuntimeError) as exc:
            raise WatchStartFailure(f"Cannot watch vaults: {exc}") from exc
        self._observer = observer

    def _stop_observer(self) -> None:
        with self._lock:
            if self._observer is None or self._observer_stopped:
                return
            self._observer_stopped = True
            self._observer.stop()
