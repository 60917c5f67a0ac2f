"""Merge external goal snapshots into the durable goals section."""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from floatingtasks.models.constants import (
    GOAL_PREFIX,
    GOALS_SECTION_ID,
    GOALS_SECTION_MARKER,
    GOALS_SECTION_TEXT,
)
from floatingtasks.models.external import ExternalGoal
from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.models.task_factory import create_task_base

logger = logging.getLogger(__name__)


def goal_task_id(goal_id: str) -> str:
    return f"{GOAL_PREFIX}{goal_id}"


def find_goals_section(tasks: Sequence[Task]) -> Optional[Task]:
    for t in tasks:
        if t.external_goal_id == GOALS_SECTION_MARKER:
            return t
    return None


def ensure_goals_section(tasks: Sequence[Task], now: Optional[datetime] = None) -> List[Task]:
    """Find the section by marker, or append it as a new root."""
    if find_goals_section(tasks) is not None:
        return list(tasks)
    section = create_task_base(
        GOALS_SECTION_TEXT,
        task_id=GOALS_SECTION_ID,
        created_at=now or datetime.now(),
        external_goal_id=GOALS_SECTION_MARKER,
    )
    return list(tasks) + [section]


def _resolve_parents(goals: Sequence[ExternalGoal], section_id: str) -> Dict[str, str]:
    """Map each goal's synthetic id to its target parent task id.

    A goal hangs under its external parent when that parent is in the same snapshot and
    the external chain does not loop; otherwise it hangs under the section.
    """
    by_id = {g.id: g for g in goals}
    parents: Dict[str, str] = {}
    for goal in goals:
        target = section_id
        if goal.parent_id and goal.parent_id in by_id:
            seen = {goal.id}
            cursor: Optional[str] = goal.parent_id
            looped = False
            while cursor is not None and cursor in by_id:
                if cursor in seen:
                    looped = True
                    break
                seen.add(cursor)
                cursor = by_id[cursor].parent_id
            if not looped:
                target = goal_task_id(goal.parent_id)
            else:
                logger.warning(f"External goal {goal.id} is part of a parent cycle; attaching to section")
        parents[goal_task_id(goal.id)] = target
    return parents


def _goal_status(goal: ExternalGoal, existing: Optional[Task]) -> TaskStatus:
    if goal.completed:
        return TaskStatus.COMPLETED
    if existing is not None and existing.status != TaskStatus.COMPLETED:
        # Keep local in_progress / interrupted; the feed only knows done / not done.
        return TaskStatus(existing.status)
    return TaskStatus.PENDING


def sync_external_goals(
    tasks: Sequence[Task],
    goals: Sequence[ExternalGoal],
    now: Optional[datetime] = None,
) -> List[Task]:
    """Reconcile the goals section with a full snapshot of external goals.

    - The section is created once and never removed.
    - Goals are upserted by synthetic id; text/status/parent change only when they differ.
    - Goal tasks missing from the snapshot are soft-deleted (forced to completed).
    - The section is completed iff it has direct goal children and all are completed.
    """
    now = now or datetime.now()
    current = ensure_goals_section(tasks, now)
    section = find_goals_section(current)
    section_id = section.id

    incoming_ids = {goal_task_id(g.id) for g in goals}
    parents = _resolve_parents(goals, section_id)

    soft_deleted = 0
    next_tasks: List[Task] = []
    for t in current:
        if t.is_goal_task and t.external_goal_id not in incoming_ids and t.status != TaskStatus.COMPLETED:
            next_tasks.append(t.model_copy(update={"status": TaskStatus.COMPLETED}))
            soft_deleted += 1
        else:
            next_tasks.append(t)
    current = next_tasks

    existing = {t.external_goal_id: t for t in current if t.is_goal_task}
    created = updated = 0
    for goal in goals:
        synthetic_id = goal_task_id(goal.id)
        parent_id = parents[synthetic_id]
        found = existing.get(synthetic_id)
        status = _goal_status(goal, found)
        if found is None:
            current.append(
                create_task_base(
                    goal.title,
                    parent_id=parent_id,
                    task_id=synthetic_id,
                    status=status,
                    created_at=now,
                    external_goal_id=synthetic_id,
                )
            )
            created += 1
        elif found.text != goal.title or found.status != status or found.parent_id != parent_id:
            current = [
                t.model_copy(update={"text": goal.title, "status": status, "parent_id": parent_id})
                if t.id == found.id
                else t
                for t in current
            ]
            updated += 1

    direct = [t for t in current if t.parent_id == section_id and t.is_goal_task]
    section_status = (
        TaskStatus.COMPLETED
        if direct and all(t.status == TaskStatus.COMPLETED for t in direct)
        else TaskStatus.PENDING
    )
    current = [
        t.model_copy(update={"status": section_status}) if t.id == section_id and t.status != section_status else t
        for t in current
    ]

    logger.debug(
        f"Goal sync: {len(goals)} goals, {created} created, {updated} updated, {soft_deleted} soft-deleted"
    )
    return current
