"""Transient models for snapshots delivered by external feeds."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExternalGoal(BaseModel):
    """One goal from the goal-tracking feed. A snapshot is a full list of these."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    completed: bool = False
    parent_id: Optional[str] = Field(None, alias="parentId")

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str) -> str:
        # Becomes the goal task's text, which must be non-empty.
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("title must not be empty")
        return trimmed


class CalendarEvent(BaseModel):
    """One event from today's calendar window."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    summary: str
    start: str = Field(..., description="ISO timestamp (or date for all-day events)")
    end: str = Field(..., description="ISO timestamp (or date for all-day events)")
    is_all_day: bool = Field(False, alias="isAllDay")
    html_link: Optional[str] = Field(None, alias="htmlLink")
