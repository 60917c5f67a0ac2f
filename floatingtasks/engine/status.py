"""Status state machine for floating-tasks.

Lifecycle: pending -> in_progress -> {completed, interrupted}; completed -> pending;
interrupted -> completed.

Cascade rules:
- To completed: every descendant is forced to completed, then each ancestor whose direct
  children are all completed is completed too (climbing stops at the first ancestor that
  fails the test).
- To pending: no downward cascade. Every completed ancestor is reopened, stopping at the
  first ancestor that is not completed. This can leave completed descendants under a
  pending task; that asymmetry is intentional and pinned by tests.
- To in_progress / interrupted: the target only.
"""

from typing import Dict, List, Optional, Sequence, Set

from floatingtasks.engine.tree import find_task, get_descendant_ids
from floatingtasks.models.task import Task, TaskStatus


# Deterministic single-step transitions. in_progress has no single next state.
_NEXT_STATUS: Dict[TaskStatus, TaskStatus] = {
    TaskStatus.PENDING: TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED: TaskStatus.PENDING,
    TaskStatus.INTERRUPTED: TaskStatus.COMPLETED,
}


def next_status(status: TaskStatus) -> Optional[TaskStatus]:
    """Return the deterministic next status, or None for in_progress."""
    return _NEXT_STATUS.get(TaskStatus(status))


def advance_status(tasks: Sequence[Task], task_id: str) -> List[Task]:
    """Apply the single-step transition for a task.

    Returns the input unchanged for unknown ids and for in_progress tasks (the caller
    must choose between completed and interrupted via set_status).
    """
    target = find_task(tasks, task_id)
    if target is None:
        return list(tasks)
    nxt = next_status(target.status)
    if nxt is None:
        return list(tasks)
    return set_status(tasks, task_id, nxt)


def set_status(tasks: Sequence[Task], task_id: str, status: TaskStatus) -> List[Task]:
    """Explicitly move a task to a status, applying the cascade rules."""
    target = find_task(tasks, task_id)
    if target is None:
        return list(tasks)

    status = TaskStatus(status)
    if status == TaskStatus.COMPLETED:
        updates = _complete_updates(tasks, target)
    elif status == TaskStatus.PENDING:
        updates = _reopen_updates(tasks, target)
    else:
        updates = {target.id: status}

    return [
        t.model_copy(update={"status": updates[t.id]}) if t.id in updates else t
        for t in tasks
    ]


def _complete_updates(tasks: Sequence[Task], target: Task) -> Dict[str, TaskStatus]:
    by_id = {t.id: t for t in tasks}
    updates: Dict[str, TaskStatus] = {target.id: TaskStatus.COMPLETED}
    for did in get_descendant_ids(tasks, target.id):
        updates[did] = TaskStatus.COMPLETED

    def effective(t: Task) -> TaskStatus:
        return updates.get(t.id, TaskStatus(t.status))

    visited: Set[str] = {target.id}
    current_id = target.parent_id
    while current_id and current_id not in visited:
        parent = by_id.get(current_id)
        if parent is None:
            break
        visited.add(current_id)
        children = [t for t in tasks if t.parent_id == current_id]
        if not all(effective(c) == TaskStatus.COMPLETED for c in children):
            break
        updates[current_id] = TaskStatus.COMPLETED
        current_id = parent.parent_id
    return updates


def _reopen_updates(tasks: Sequence[Task], target: Task) -> Dict[str, TaskStatus]:
    by_id = {t.id: t for t in tasks}
    updates: Dict[str, TaskStatus] = {target.id: TaskStatus.PENDING}

    visited: Set[str] = {target.id}
    current_id = target.parent_id
    while current_id and current_id not in visited:
        parent = by_id.get(current_id)
        if parent is None or parent.status != TaskStatus.COMPLETED:
            break
        visited.add(current_id)
        updates[current_id] = TaskStatus.PENDING
        current_id = parent.parent_id
    return updates
