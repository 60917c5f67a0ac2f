"""Task creation factory for floating-tasks.

This module centralizes task creation so every origin (user, recurring generator,
reconciler) stamps the same defaults.
"""

import uuid
from datetime import datetime
from typing import Optional

from floatingtasks.models.task import Task, TaskStatus


def new_task_id() -> str:
    """Return a fresh opaque task id (UUID v4)."""
    return str(uuid.uuid4())


def create_task_base(
    text: str,
    parent_id: Optional[str] = None,
    task_id: Optional[str] = None,
    status: TaskStatus = TaskStatus.PENDING,
    created_at: Optional[datetime] = None,
    calendar_event_id: Optional[str] = None,
    recurring_template_id: Optional[str] = None,
    external_goal_id: Optional[str] = None,
) -> Task:
    """Create a task with defaults, allowing overrides.

    Args:
        text: Task label (trimmed by the model; must not be empty)
        parent_id: Parent task id, or None for a root
        task_id: Explicit id (synthetic ids for reconciled tasks); a UUID when None
        status: Initial status (defaults to pending)
        created_at: Creation timestamp (defaults to now)
        calendar_event_id: Calendar origin tag
        recurring_template_id: Recurring template origin tag
        external_goal_id: External goal origin tag

    Returns:
        Task object with defaults applied

    Raises:
        pydantic.ValidationError: If text is empty or more than one origin is given
    """
    return Task(
        id=task_id or new_task_id(),
        text=text,
        status=status,
        created_at=created_at or datetime.now(),
        parent_id=parent_id,
        calendar_event_id=calendar_event_id,
        recurring_template_id=recurring_template_id,
        external_goal_id=external_goal_id,
    )
