"""
Git side of obsync: the per-vault sync engine and the startup reconciler.

Both drive git as a subprocess inside each vault and never touch the
caller's working directory.
"""

from .engine import SyncEngine
from .git import GitRepo
from .reconcile import PreflightReconciler

__all__ = ["GitRepo", "PreflightReconciler", "SyncEngine"]
