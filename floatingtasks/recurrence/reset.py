"""Daily reset: carry over unfinished tasks and materialize recurring templates."""

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from floatingtasks.models.recurrence import RecurringSubTask, RecurringTaskTemplate
from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.models.task_factory import create_task_base

load_dotenv()

logger = logging.getLogger(__name__)

# Hour (local time) at which a new logical day starts. 0 means literal midnight.
RESET_HOUR = int(os.getenv("RESET_HOUR", "0"))


def get_logical_date(now: Optional[datetime] = None, reset_hour: Optional[int] = None) -> date:
    """Calendar date adjusted by the reset hour.

    Before reset_hour the logical day is still the previous calendar day.
    """
    now = now or datetime.now()
    hour = RESET_HOUR if reset_hour is None else reset_hour
    if now.hour < hour:
        return (now - timedelta(days=1)).date()
    return now.date()


def is_reset_needed(last_reset_date: Optional[date], now: Optional[datetime] = None,
                    reset_hour: Optional[int] = None) -> bool:
    return last_reset_date != get_logical_date(now, reset_hour)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def should_generate_today(template: RecurringTaskTemplate, today: date) -> bool:
    """True when an enabled template fires on the given logical date."""
    if not template.enabled:
        return False
    diff = days_between(template.start_date, today)
    if diff < 0:
        return False
    return diff % template.period_in_days == 0


def _expand_subtasks(
    subs: Sequence[RecurringSubTask],
    parent_id: str,
    template_id: str,
    now: datetime,
) -> List[Task]:
    out: List[Task] = []
    for sub in subs:
        task = create_task_base(
            sub.text,
            parent_id=parent_id,
            created_at=now,
            recurring_template_id=template_id,
        )
        out.append(task)
        out.extend(_expand_subtasks(sub.children, task.id, template_id, now))
    return out


def materialize_template(template: RecurringTaskTemplate, now: datetime) -> List[Task]:
    """Fresh pending subtree for one template, root first, descendants contiguous."""
    root = create_task_base(
        template.text,
        created_at=now,
        recurring_template_id=template.id,
    )
    return [root] + _expand_subtasks(template.children, root.id, template.id, now)


def perform_reset(
    tasks: Sequence[Task],
    templates: Sequence[RecurringTaskTemplate],
    now: Optional[datetime] = None,
    reset_hour: Optional[int] = None,
) -> List[Task]:
    """Compute the task list for a new logical day.

    1. Keep every non-recurring task that is not completed.
    2. Promote kept tasks whose parent was dropped to root.
    3. Materialize every template that fires today.
    4. Return generated tasks followed by the carried-over tasks.

    The caller records the reset (ResetState) only after applying the result.
    """
    now = now or datetime.now()
    today = get_logical_date(now, reset_hour)

    carry_over = [
        t for t in tasks
        if not t.recurring_template_id and t.status != TaskStatus.COMPLETED
    ]
    carry_over_ids = {t.id for t in carry_over}
    promoted = [
        t.model_copy(update={"parent_id": None})
        if t.parent_id and t.parent_id not in carry_over_ids
        else t
        for t in carry_over
    ]

    active = [tpl for tpl in templates if should_generate_today(tpl, today)]
    generated: List[Task] = []
    for tpl in active:
        generated.extend(materialize_template(tpl, now))

    logger.info(
        f"Daily reset for {today.isoformat()}: generated {len(generated)} tasks from "
        f"{len(active)} templates, carried over {len(promoted)} of {len(tasks)}"
    )
    return generated + promoted
