"""Data models for floating-tasks."""

from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.models.recurrence import (
    IntervalUnit,
    RecurringSubTask,
    RecurringTaskTemplate,
    ResetState,
)
from floatingtasks.models.external import CalendarEvent, ExternalGoal

__all__ = [
    "Task",
    "TaskStatus",
    "IntervalUnit",
    "RecurringSubTask",
    "RecurringTaskTemplate",
    "ResetState",
    "CalendarEvent",
    "ExternalGoal",
]
