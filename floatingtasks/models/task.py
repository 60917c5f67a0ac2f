"""Task data model for floating-tasks."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from floatingtasks.models.constants import (
    CALENDAR_EVENT_PREFIX,
    GOAL_PREFIX,
    GOALS_SECTION_MARKER,
)


class TaskStatus(str, Enum):
    """Task status enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


class Task(BaseModel):
    """Canonical Task model.

    Tasks form a forest stored as a flat list with parent pointers. The list order
    is the sibling order.
    """

    id: str = Field(..., description="Unique task identifier")
    text: str = Field(..., description="Display label (trimmed, non-empty)")
    status: TaskStatus = Field(TaskStatus.PENDING, description="Task status")
    created_at: datetime = Field(..., description="Task creation timestamp")
    parent_id: Optional[str] = Field(None, description="Parent task id (null for roots)")

    # Origin tag (at most one)
    calendar_event_id: Optional[str] = Field(
        None, description="Synthetic calendar id (today section or event)"
    )
    recurring_template_id: Optional[str] = Field(
        None, description="If generated from a recurring template, the template id"
    )
    external_goal_id: Optional[str] = Field(
        None, description="Synthetic external goal id, or the goals section marker"
    )

    class Config:
        """Pydantic configuration."""
        use_enum_values = True

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("text must not be empty")
        return trimmed

    @model_validator(mode="after")
    def _validate_single_origin(self):
        origins = [self.calendar_event_id, self.recurring_template_id, self.external_goal_id]
        if sum(1 for o in origins if o is not None) > 1:
            raise ValueError("a task carries at most one origin tag")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_calendar_task(self) -> bool:
        """True for the today section and the event tasks under it."""
        return self.calendar_event_id is not None

    @property
    def is_calendar_event(self) -> bool:
        return bool(self.calendar_event_id and self.calendar_event_id.startswith(CALENDAR_EVENT_PREFIX))

    @property
    def is_goal_section(self) -> bool:
        return self.external_goal_id == GOALS_SECTION_MARKER

    @property
    def is_goal_task(self) -> bool:
        return bool(self.external_goal_id and self.external_goal_id.startswith(GOAL_PREFIX))

    @property
    def is_recurring(self) -> bool:
        return self.recurring_template_id is not None

    @property
    def is_external(self) -> bool:
        """True for anything the reconciler owns (calendar or goal origin)."""
        return self.is_calendar_task or self.external_goal_id is not None

    @property
    def is_read_only(self) -> bool:
        """Calendar tasks and the goals section never accept direct text/status edits.

        Goal tasks are not read-only for status: their status changes go through the
        override cache and the remote toggle.
        """
        return self.is_calendar_task or self.is_goal_section
