"""Merge today's calendar events into a date-stamped section of the task list."""

import logging
from datetime import date, datetime
from typing import List, Optional, Sequence

from floatingtasks.engine.tree import get_descendant_ids
from floatingtasks.models.constants import (
    ALL_DAY_LABEL,
    CALENDAR_EVENT_PREFIX,
    TODAY_SECTION_PREFIX,
    TODAY_SECTION_TEXT,
)
from floatingtasks.models.external import CalendarEvent
from floatingtasks.models.task import Task
from floatingtasks.models.task_factory import create_task_base

logger = logging.getLogger(__name__)


def today_section_id(today: date) -> str:
    return f"{TODAY_SECTION_PREFIX}{today.isoformat()}"


def event_task_id(event_id: str) -> str:
    return f"{CALENDAR_EVENT_PREFIX}{event_id}"


def _format_event_time(iso_string: str) -> str:
    dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime("%H:%M")


def build_event_text(event: CalendarEvent) -> str:
    if event.is_all_day:
        label = ALL_DAY_LABEL
    else:
        label = f"{_format_event_time(event.start)} – {_format_event_time(event.end)}"
    return f"{label}  {event.summary}"


def sort_events(events: Sequence[CalendarEvent]) -> List[CalendarEvent]:
    """All-day events first, then chronological by start."""
    return sorted(events, key=lambda e: (0 if e.is_all_day else 1, e.start))


def sync_calendar_events(
    tasks: Sequence[Task],
    events: Sequence[CalendarEvent],
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[Task]:
    """Reconcile the today section with a full snapshot of today's events.

    - Sections from previous days are removed with their whole subtrees.
    - The today section is created at the top when missing.
    - Event tasks are keyed by synthetic id: new ones are added, changed text is
      replaced, vanished events are deleted.
    - Event tasks end up as one block right after the section, in snapshot order.

    Re-running with the same snapshot returns an equal list.
    """
    today = today or date.today()
    now = now or datetime.now()
    section_id = today_section_id(today)
    sorted_events = sort_events(events)
    sort_order = {event_task_id(e.id): i for i, e in enumerate(sorted_events)}

    stale_sections = {
        t.id for t in tasks
        if t.calendar_event_id
        and t.calendar_event_id.startswith(TODAY_SECTION_PREFIX)
        and t.calendar_event_id != section_id
    }
    doomed = set(stale_sections)
    for sid in stale_sections:
        doomed.update(get_descendant_ids(tasks, sid))
    if doomed:
        logger.debug(f"Pruning {len(stale_sections)} stale calendar sections ({len(doomed)} tasks)")
    current = [t for t in tasks if t.id not in doomed]

    if not any(t.calendar_event_id == section_id for t in current):
        section = create_task_base(
            TODAY_SECTION_TEXT,
            task_id=section_id,
            created_at=now,
            calendar_event_id=section_id,
        )
        current = [section] + current

    def is_event_task(t: Task) -> bool:
        return t.parent_id == section_id and t.is_calendar_event

    incoming_ids = set(sort_order)
    vanished = {t.id for t in current if is_event_task(t) and t.calendar_event_id not in incoming_ids}
    for vid in list(vanished):
        vanished.update(get_descendant_ids(current, vid))
    current = [t for t in current if t.id not in vanished]
    existing = {t.calendar_event_id: t for t in current if is_event_task(t)}

    for event in sorted_events:
        synthetic_id = event_task_id(event.id)
        text = build_event_text(event)
        found = existing.get(synthetic_id)
        if found is None:
            current.append(
                create_task_base(
                    text,
                    parent_id=section_id,
                    task_id=synthetic_id,
                    created_at=now,
                    calendar_event_id=synthetic_id,
                )
            )
        elif found.text != text:
            current = [t.model_copy(update={"text": text}) if t.id == found.id else t for t in current]

    calendar_tasks = sorted(
        (t for t in current if is_event_task(t)),
        key=lambda t: sort_order.get(t.calendar_event_id, len(sort_order)),
    )
    others = [t for t in current if not is_event_task(t)]
    section_idx = next(i for i, t in enumerate(others) if t.id == section_id)
    return others[: section_idx + 1] + calendar_tasks + others[section_idx + 1:]
