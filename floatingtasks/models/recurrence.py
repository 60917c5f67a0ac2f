"""Recurring task template models for floating-tasks.

Templates are user-authored recipes. Their sub-task trees are stored nested since they are
immutable recipes, not trees edited in place like the task list.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator


class IntervalUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"


class RecurringSubTask(BaseModel):
    """Static sub-template expanded under a generated root task."""

    id: str
    text: str
    children: List[RecurringSubTask] = Field(default_factory=list)


class RecurringTaskTemplate(BaseModel):
    """Recipe for a task subtree that regenerates every N days/weeks from start_date."""

    id: str
    text: str
    interval_value: int = Field(1, ge=1, description="Every N units (days/weeks)")
    interval_unit: IntervalUnit = IntervalUnit.DAYS
    start_date: date = Field(..., description="Logical date the recurrence is anchored to")
    enabled: bool = True
    created_at: datetime
    children: List[RecurringSubTask] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("text must not be empty")
        return trimmed

    @property
    def period_in_days(self) -> int:
        if self.interval_unit == IntervalUnit.WEEKS:
            return self.interval_value * 7
        return self.interval_value


class ResetState(BaseModel):
    """Singleton guarding the once-per-logical-day recurring reset."""

    last_reset_date: date
