"""Reconciliation of external snapshots into the task list."""

from floatingtasks.reconcile.calendar import sync_calendar_events
from floatingtasks.reconcile.goals import sync_external_goals
from floatingtasks.reconcile.overrides import LocalOverrideCache

__all__ = [
    "sync_calendar_events",
    "sync_external_goals",
    "LocalOverrideCache",
]
