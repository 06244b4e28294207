"""
Lifecycle coordinator -- one supervised Obsidian session, start to end.

    reconcile every vault
    launch the app            (liveness handle)
    start the watcher         (same handle)
    wait for the app to exit
    stop + join the watcher   (idempotent)
    final sync, once per vault
    notify

The watcher is torn down on every exit path: normal return, exceptions,
SIGTERM/SIGINT/SIGHUP, and interpreter exit. The final sync only starts
after the watcher thread is gone, so two passes never stage the same
vault at once.
"""

from __future__ import annotations

import atexit
import logging
import signal
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from .config import render_message
from .errors import WatchStartFailure
from .models import ObsyncConfig, ReconcileOutcome, SyncResult, Vault, VaultStore
from .notify import send_notification
from .process import LivenessHandle, launch_application
from .sync.engine import SyncEngine, failed_vaults, summarize
from .sync.reconcile import PreflightReconciler
from .watcher import ChangeWatcher

logger = logging.getLogger("obsync.lifecycle")

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGHUP)
WATCHER_JOIN_TIMEOUT = 30.0


class SessionInterrupted(Exception):
    """The coordinator received a termination signal."""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"Interrupted by {signal.Signals(signum).name}")


@dataclass
class WatchSession:
    """Everything the watcher needs for one run of the app."""

    vaults: VaultStore
    debounce_seconds: float
    handle: LivenessHandle


@dataclass
class SessionReport:
    """Outcome of a supervised session, for logging and the CLI."""

    reconcile: dict[Vault, ReconcileOutcome] = field(default_factory=dict)
    final: dict[Vault, SyncResult] = field(default_factory=dict)
    watcher_passes: int = 0
    last_watcher_sync: Optional[datetime] = None
    watcher_started: bool = False
    app_exit_code: Optional[int] = None

    @property
    def conflicts(self) -> list[Vault]:
        """Vaults left with a stash-pop conflict."""
        return [v for v, o in self.reconcile.items() if o.needs_attention]

    @property
    def sync_failures(self) -> list[Vault]:
        return failed_vaults(self.final)


class LifecycleCoordinator:
    """Owns the app handle and the watcher for one session.

    Args:
        vaults: Vaults discovered for this session.
        config: User configuration.
        engine: Sync engine (shared by watcher and final pass).
        reconciler: Startup reconciler.
        launcher: Starts the app and returns a liveness handle.
        notifier: Sends the end-of-session notification.
        watcher_factory: Builds the ChangeWatcher.
        install_signals: Register signal handlers (main thread only).
    """

    def __init__(
        self,
        vaults: VaultStore,
        config: Optional[ObsyncConfig] = None,
        engine: Optional[SyncEngine] = None,
        reconciler: Optional[PreflightReconciler] = None,
        launcher: Callable[[Sequence[str]], LivenessHandle] = launch_application,
        notifier: Callable[..., bool] = send_notification,
        watcher_factory: Callable[..., ChangeWatcher] = ChangeWatcher,
        install_signals: bool = True,
    ):
        self.vaults = vaults
        self.config = config or ObsyncConfig()
        self.engine = engine or SyncEngine()
        self.reconciler = reconciler or PreflightReconciler(self.config.stash_prefix)
        self._launcher = launcher
        self._notifier = notifier
        self._watcher_factory = watcher_factory
        self._install_signals = install_signals
        self._previous_handlers: dict[int, object] = {}
        self._final_sync_done = False
        self.session: Optional[WatchSession] = None
        self.watcher: Optional[ChangeWatcher] = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def run(self) -> SessionReport:
        """Run one full supervised session.

        Raises:
            DependencyMissing: If the app binary cannot be launched.
            SessionInterrupted: If a termination signal arrived. The
                watcher is already stopped; no final sync ran.
        """
        report = SessionReport()
        report.reconcile = self.reconcile_all()

        handle = self._launcher(self.config.app_command)
        self.session = WatchSession(
            vaults=self.vaults,
            debounce_seconds=self.config.debounce_seconds,
            handle=handle,
        )

        self._setup_cleanup()
        try:
            report.watcher_started = self._start_watcher(self.session)
            report.app_exit_code = handle.wait()
            logger.info("Obsidian closed. Final sync...")
            # an in-flight pass must finish before the final one starts
            self.stop_watcher(bounded=False)
        finally:
            self.stop_watcher()
            self._teardown_cleanup()

        if self.watcher is not None:
            report.watcher_passes = self.watcher.fire_count
            report.last_watcher_sync = self.watcher.last_fired_at

        report.final = self.final_sync()
        self._notify(report)
        logger.info("Done.")
        return report

    def reconcile_all(self) -> dict[Vault, ReconcileOutcome]:
        """Reconcile every vault before anything else touches them."""
        outcomes = self.reconciler.reconcile_all(self.vaults)
        for vault, outcome in outcomes.items():
            if outcome.needs_attention:
                logger.warning(
                    "Vault %s has a stash conflict and needs manual resolution", vault.name,
                )
        return outcomes

    def sync_pass(self) -> dict[Vault, SyncResult]:
        """One debounce-triggered pass over every vault."""
        results = self.engine.sync_all(self.vaults, render_message(self.config.commit_message))
        logger.debug("Sync pass: %s", summarize(results))
        return results

    def final_sync(self) -> dict[Vault, SyncResult]:
        """Session-end sync. Runs at most once per coordinator."""
        if self._final_sync_done:
            logger.debug("Final sync already ran, skipping")
            return {}
        self._final_sync_done = True
        return self.engine.sync_all(
            self.vaults, render_message(self.config.session_end_message),
        )

    # ------------------------------------------------------------------
    # Watcher
    # ------------------------------------------------------------------

    def _start_watcher(self, session: WatchSession) -> bool:
        self.watcher = self._watcher_factory(
            session.vaults,
            self.sync_pass,
            session.handle,
            debounce_seconds=session.debounce_seconds,
        )
        try:
            self.watcher.start()
        except WatchStartFailure as exc:
            logger.error("%s. Changes will only be synced when Obsidian closes.", exc)
            return False
        return True

    def stop_watcher(self, bounded: bool = True) -> None:
        """Stop the watcher and wait for it. Safe to call repeatedly.

        Args:
            bounded: Give up after ``WATCHER_JOIN_TIMEOUT``. Signal and
                atexit paths use this; the normal session end waits for
                a running sync pass, which git timeouts already bound.
        """
        watcher = self.watcher
        if watcher is None:
            return
        watcher.stop()
        timeout = WATCHER_JOIN_TIMEOUT if bounded else None
        if not bounded and watcher.is_running:
            logger.debug("Waiting for the watcher to finish its current pass")
        if not watcher.join(timeout):
            logger.warning("Watcher did not stop within %gs", WATCHER_JOIN_TIMEOUT)

    # ------------------------------------------------------------------
    # Cleanup hooks
    # ------------------------------------------------------------------

    def _setup_cleanup(self) -> None:
        atexit.register(self.stop_watcher)
        if not self._install_signals:
            return
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in HANDLED_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _teardown_cleanup(self) -> None:
        atexit.unregister(self.stop_watcher)
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame):
        """Stop the watcher, then unwind out of the wait on the app."""
        logger.info("Received signal %s, stopping watcher", signal.Signals(signum).name)
        self.stop_watcher()
        raise SessionInterrupted(signum)

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _notify(self, report: SessionReport) -> None:
        if not self.config.notify:
            return
        if report.conflicts:
            names = ", ".join(v.name for v in report.conflicts)
            body = f"Stash conflict in {names}. Check git status."
        elif report.sync_failures:
            names = ", ".join(v.name for v in report.sync_failures)
            body = f"Synced with warnings: {names}."
        else:
            body = "All vaults synced."
        self._notifier("Obsidian Sync", body, icon=self.config.notify_icon)
