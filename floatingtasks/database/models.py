"""SQLAlchemy database models for floating-tasks."""

from datetime import datetime
from typing import Type, TypeVar, Union

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String

from floatingtasks.database.database import Base
from floatingtasks.models.recurrence import IntervalUnit, RecurringTaskTemplate, ResetState
from floatingtasks.models.task import Task, TaskStatus

T = TypeVar("T")


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, "value"):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


class TaskDB(Base):
    """Database model for Task.

    `position` stores the list index; sibling order is derived from it on load.
    """

    __tablename__ = "tasks"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)

    text = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TaskStatus.PENDING.value)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    parent_id = Column(String, nullable=True, index=True)

    # Origin tags
    calendar_event_id = Column(String, nullable=True)
    recurring_template_id = Column(String, nullable=True, index=True)
    external_goal_id = Column(String, nullable=True)

    def to_pydantic(self) -> Task:
        """Convert database model to Pydantic model."""
        return Task(
            id=self.id,
            text=self.text,
            status=value_to_enum(self.status, TaskStatus, TaskStatus.PENDING),
            created_at=self.created_at,
            parent_id=self.parent_id,
            calendar_event_id=self.calendar_event_id,
            recurring_template_id=self.recurring_template_id,
            external_goal_id=self.external_goal_id,
        )

    @classmethod
    def from_pydantic(cls, task: Task, position: int) -> "TaskDB":
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            position=position,
            text=task.text,
            status=enum_to_value(task.status),
            created_at=task.created_at,
            parent_id=task.parent_id,
            calendar_event_id=task.calendar_event_id,
            recurring_template_id=task.recurring_template_id,
            external_goal_id=task.external_goal_id,
        )


class RecurringTemplateDB(Base):
    """Database model for RecurringTaskTemplate. Sub-tasks are stored as a JSON tree."""

    __tablename__ = "recurring_templates"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)

    text = Column(String, nullable=False)
    interval_value = Column(Integer, nullable=False, default=1)
    interval_unit = Column(String, nullable=False, default=IntervalUnit.DAYS.value)
    start_date = Column(Date, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    children = Column(JSON, nullable=False, default=list)

    def to_record(self) -> dict:
        """Raw record, fed through template migration on load."""
        return {
            "id": self.id,
            "text": self.text,
            "interval_value": self.interval_value,
            "interval_unit": self.interval_unit,
            "start_date": self.start_date,
            "enabled": self.enabled,
            "created_at": self.created_at,
            "children": self.children or [],
        }

    @classmethod
    def from_pydantic(cls, template: RecurringTaskTemplate, position: int) -> "RecurringTemplateDB":
        return cls(
            id=template.id,
            position=position,
            text=template.text,
            interval_value=template.interval_value,
            interval_unit=enum_to_value(template.interval_unit),
            start_date=template.start_date,
            enabled=template.enabled,
            created_at=template.created_at,
            children=[c.model_dump(mode="json") for c in template.children],
        )


class ResetStateDB(Base):
    """Singleton row holding the last logical reset date."""

    __tablename__ = "reset_state"

    id = Column(Integer, primary_key=True, default=1)
    last_reset_date = Column(Date, nullable=False)

    def to_pydantic(self) -> ResetState:
        return ResetState(last_reset_date=self.last_reset_date)


class AppStateDB(Base):
    """Small key/value store (automation script cache and similar)."""

    __tablename__ = "app_state"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
