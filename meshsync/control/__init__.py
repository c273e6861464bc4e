"""Reconciliation loop, controller wiring and sync observability."""

from __future__ import annotations

from .controller import Controller, build_watchers
from .observability import (
    ErrorCategory,
    SyncEventLogger,
    SyncEventType,
    categorize_error,
)
from .synchronizer import SyncAction, SyncResult, Synchronizer, spec_matches

__all__ = [
    "Controller",
    "ErrorCategory",
    "SyncAction",
    "SyncEventLogger",
    "SyncEventType",
    "SyncResult",
    "Synchronizer",
    "build_watchers",
    "categorize_error",
    "spec_matches",
]
