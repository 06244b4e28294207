"""Tests for the lifecycle coordinator."""

from __future__ import annotations

import functools
import signal
import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import FakeObserver, git, requires_git
from obsync.lifecycle import LifecycleCoordinator, SessionInterrupted
from obsync.models import ObsyncConfig, ReconcileOutcome, SyncResult, VaultStore, WatchState
from obsync.process import EventHandle
from obsync.watcher import ChangeWatcher

fake_watcher = functools.partial(ChangeWatcher, observer_factory=FakeObserver)


class Harness:
    """Wires a coordinator to recording fakes.

    ``calls`` logs every collaborator call in order, so tests can assert on
    the exact session sequence.
    """

    def __init__(self, vaults, app_lifetime=0.2, config=None, watcher_factory=fake_watcher,
                 handle=None):
        self.calls: list = []
        self.handle = handle or EventHandle()
        self.app_lifetime = app_lifetime
        self.notifications: list = []

        self.reconciler = MagicMock()
        self.reconciler.reconcile_all.side_effect = self._reconcile

        self.engine = MagicMock()
        self.engine.sync_all.side_effect = self._sync_all

        self.coordinator = LifecycleCoordinator(
            vaults,
            config or ObsyncConfig(debounce_seconds=0.1),
            engine=self.engine,
            reconciler=self.reconciler,
            launcher=self._launch,
            notifier=self._notify,
            watcher_factory=watcher_factory,
            install_signals=False,
        )

    def _reconcile(self, vaults):
        self.calls.append("reconcile")
        return {v: ReconcileOutcome.ALREADY_CLEAN for v in vaults}

    def _launch(self, command):
        self.calls.append(("launch", tuple(command)))
        if self.app_lifetime is not None:
            threading.Timer(self.app_lifetime, self.handle.finish).start()
        return self.handle

    def _sync_all(self, vaults, message):
        watcher = self.coordinator.watcher
        running = watcher is not None and watcher.is_running
        self.calls.append(("sync", message, running))
        return {v: SyncResult.CLEAN for v in vaults}

    def _notify(self, title, body, icon=None):
        self.calls.append("notify")
        self.notifications.append((title, body, icon))
        return True

    @property
    def syncs(self):
        return [c for c in self.calls if isinstance(c, tuple) and c[0] == "sync"]


@pytest.fixture
def vaults(tmp_path):
    for name in ("Personal", "Work"):
        (tmp_path / name).mkdir()
    return VaultStore([tmp_path / "Personal", tmp_path / "Work"])


class TestSessionSequence:
    """The coordinator's fixed ordering."""

    def test_order(self, vaults):
        h = Harness(vaults)
        h.coordinator.run()

        assert h.calls[0] == "reconcile"
        assert h.calls[1] == ("launch", ("obsidian",))
        assert h.calls[-1] == "notify"
        assert h.calls[-2][0] == "sync"
        assert h.calls[-2][1].startswith("Obsync Obsend: ")

    def test_no_activity_means_exactly_one_final_sync(self, vaults):
        h = Harness(vaults)
        report = h.coordinator.run()

        assert len(h.syncs) == 1
        assert report.watcher_passes == 0
        h.engine.sync_all.assert_called_once()
        assert list(h.engine.sync_all.call_args.args[0]) == list(vaults)

    def test_final_sync_after_watcher_stopped(self, vaults):
        h = Harness(vaults)
        h.coordinator.run()
        _, _, watcher_running = h.syncs[-1]
        assert watcher_running is False

    def test_activity_syncs_while_running(self, vaults):
        h = Harness(vaults, app_lifetime=None)

        def drive():
            while h.coordinator.watcher is None:
                time.sleep(0.01)
            h.coordinator.watcher.notify_activity()
            deadline = time.monotonic() + 5
            while len(h.syncs) < 1 and time.monotonic() < deadline:
                time.sleep(0.01)
            h.handle.finish()

        driver = threading.Thread(target=drive, daemon=True)
        driver.start()
        report = h.coordinator.run()
        driver.join(5)

        assert report.watcher_passes == 1
        assert len(h.syncs) == 2
        assert h.syncs[0][1].startswith("Obsync ")
        assert not h.syncs[0][1].startswith("Obsync Obsend")
        assert h.syncs[1][1].startswith("Obsync Obsend: ")

    def test_final_sync_runs_once(self, vaults):
        h = Harness(vaults)
        h.coordinator.run()
        assert h.coordinator.final_sync() == {}
        assert len(h.syncs) == 1

    def test_uses_configured_command(self, vaults):
        config = ObsyncConfig(app_command=["flatpak", "run", "md.obsidian.Obsidian"])
        h = Harness(vaults, config=config)
        h.coordinator.run()
        assert h.calls[1] == ("launch", ("flatpak", "run", "md.obsidian.Obsidian"))


class TestFailures:
    """Degraded paths still finish the session."""

    def test_watch_start_failure_still_final_syncs(self, vaults):
        class BrokenObserver(FakeObserver):
            def start(self):
                raise OSError("no inotify")

        factory = functools.partial(ChangeWatcher, observer_factory=BrokenObserver)
        h = Harness(vaults, watcher_factory=factory)
        report = h.coordinator.run()

        assert report.watcher_started is False
        assert len(h.syncs) == 1

    def test_interrupt_stops_watcher_and_skips_final_sync(self, vaults):
        class SignalledHandle(EventHandle):
            """Delivers SIGTERM to the coordinator while it waits on the app."""

            coordinator = None

            def wait(self, timeout=None):
                if threading.current_thread() is threading.main_thread():
                    watcher = self.coordinator.watcher
                    while watcher.state != WatchState.ARMED:
                        time.sleep(0.01)
                    self.coordinator._handle_signal(signal.SIGTERM, None)
                return super().wait(timeout)

        handle = SignalledHandle()
        h = Harness(vaults, app_lifetime=None, handle=handle)
        handle.coordinator = h.coordinator

        with pytest.raises(SessionInterrupted) as info:
            h.coordinator.run()

        assert info.value.signum == signal.SIGTERM
        assert not h.coordinator.watcher.is_running
        assert h.syncs == []
        h.handle.finish()

    def test_stop_watcher_without_watcher(self, vaults):
        LifecycleCoordinator(vaults, install_signals=False).stop_watcher()


class SlowPassEngine:
    """Engine whose watcher pass closes the app, then keeps syncing a while."""

    def __init__(self, handle, delay):
        self.handle = handle
        self.delay = delay
        self.in_pass = threading.Event()
        self.messages: list[str] = []
        self.overlapping: list[str] = []

    def sync_all(self, vaults, message):
        if self.in_pass.is_set():
            self.overlapping.append(message)
        self.messages.append(message)
        if not message.startswith("Obsync Obsend"):
            self.in_pass.set()
            self.handle.finish()
            time.sleep(self.delay)
            self.in_pass.clear()
        return {v: SyncResult.CLEAN for v in vaults}


class TestWatcherDrain:
    """The final sync never overlaps a running watcher pass."""

    def test_final_sync_waits_past_join_timeout(self, vaults, monkeypatch):
        monkeypatch.setattr("obsync.lifecycle.WATCHER_JOIN_TIMEOUT", 0.2)
        handle = EventHandle()
        engine = SlowPassEngine(handle, delay=1.0)
        reconciler = MagicMock()
        reconciler.reconcile_all.return_value = {}
        coordinator = LifecycleCoordinator(
            vaults,
            ObsyncConfig(debounce_seconds=0.1, notify=False),
            engine=engine,
            reconciler=reconciler,
            launcher=lambda cmd: handle,
            watcher_factory=fake_watcher,
            install_signals=False,
        )

        def poke():
            while coordinator.watcher is None:
                time.sleep(0.01)
            coordinator.watcher.notify_activity()

        threading.Thread(target=poke, daemon=True).start()
        report = coordinator.run()

        assert engine.overlapping == []
        assert len(engine.messages) == 2
        assert engine.messages[1].startswith("Obsync Obsend: ")
        assert report.watcher_passes == 1
        assert report.last_watcher_sync is not None
        assert not coordinator.watcher.is_running


class TestNotification:
    """End-of-session notification text."""

    def test_all_synced(self, vaults):
        h = Harness(vaults)
        h.coordinator.run()
        assert h.notifications == [("Obsidian Sync", "All vaults synced.", "obsidian")]

    def test_conflict_mentioned(self, vaults):
        h = Harness(vaults)
        first = list(vaults)[0]
        h.reconciler.reconcile_all.side_effect = lambda vs: {
            v: ReconcileOutcome.STASHED_AND_CONFLICTED if v == first else ReconcileOutcome.ALREADY_CLEAN
            for v in vs
        }
        report = h.coordinator.run()

        assert report.conflicts == [first]
        assert "Stash conflict in Personal" in h.notifications[0][1]

    def test_disabled(self, vaults):
        h = Harness(vaults, config=ObsyncConfig(debounce_seconds=0.1, notify=False))
        h.coordinator.run()
        assert h.notifications == []


@requires_git
class TestRealSession:
    """Full session over real repositories with a fake app process."""

    def test_dirty_and_clean_vault(self, make_vault):
        dirty = make_vault("dirty")
        clean = make_vault("clean")
        handle = EventHandle()
        coordinator = LifecycleCoordinator(
            VaultStore([dirty, clean]),
            ObsyncConfig(debounce_seconds=0.2),
            launcher=lambda cmd: handle,
            notifier=lambda *a, **k: True,
            watcher_factory=fake_watcher,
            install_signals=False,
        )

        passes = []
        original = coordinator.sync_pass

        def recording_pass():
            passes.append(original())
            handle.finish()

        coordinator.sync_pass = recording_pass

        def edit():
            while coordinator.watcher is None:
                time.sleep(0.01)
            (dirty.path / "note.md").write_text("written in obsidian\n")
            coordinator.watcher.notify_activity()

        threading.Thread(target=edit, daemon=True).start()
        report = coordinator.run()

        assert passes == [{dirty: SyncResult.COMMITTED, clean: SyncResult.CLEAN}]
        assert report.final == {dirty: SyncResult.CLEAN, clean: SyncResult.CLEAN}
        assert git(dirty.path, "status", "--porcelain") == ""
        assert report.reconcile[dirty] == ReconcileOutcome.PULL_FAILED
