"""Task tree operations for floating-tasks.

The tree is a flat list of tasks with parent pointers. The list order is the persisted
sibling order, and every descendant block stays contiguous after its root.

All functions are pure: they take the current list and return a new list (or the input
list unchanged when the operation is not valid). Nothing here raises for invalid
edits; callers compare identity/equality to detect a no-op.
"""

from typing import AbstractSet, Dict, List, Optional, Sequence

from floatingtasks.models.constants import MAX_DEPTH
from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.models.task_factory import create_task_base


def _index_by_id(tasks: Sequence[Task]) -> Dict[str, Task]:
    return {t.id: t for t in tasks}


def find_task(tasks: Sequence[Task], task_id: str) -> Optional[Task]:
    for t in tasks:
        if t.id == task_id:
            return t
    return None


def get_siblings(tasks: Sequence[Task], parent_id: Optional[str]) -> List[Task]:
    """Direct children of parent_id (roots when None) in persisted order."""
    return [t for t in tasks if t.parent_id == parent_id]


def get_descendant_ids(tasks: Sequence[Task], task_id: str) -> List[str]:
    """Return all transitive children of a task in depth-first order.

    Never contains task_id itself, even if the input holds a parent cycle.
    """
    children_by_parent: Dict[Optional[str], List[str]] = {}
    for t in tasks:
        children_by_parent.setdefault(t.parent_id, []).append(t.id)

    result: List[str] = []
    seen = {task_id}
    stack = list(reversed(children_by_parent.get(task_id, [])))
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        result.append(current)
        stack.extend(reversed(children_by_parent.get(current, [])))
    return result


def get_task_depth(tasks: Sequence[Task], task_id: str) -> int:
    """Number of ancestors of a task (0 for roots and unknown ids)."""
    by_id = _index_by_id(tasks)
    depth = 0
    current = by_id.get(task_id)
    seen = set()
    while current is not None and current.parent_id and current.id not in seen:
        seen.add(current.id)
        depth += 1
        current = by_id.get(current.parent_id)
    return depth


def is_subtree_completed(tasks: Sequence[Task], task_id: str) -> bool:
    """True when the task and every descendant are completed."""
    task = find_task(tasks, task_id)
    if task is None or task.status != TaskStatus.COMPLETED:
        return False
    by_id = _index_by_id(tasks)
    return all(by_id[d].status == TaskStatus.COMPLETED for d in get_descendant_ids(tasks, task_id))


def sort_by_completion(siblings: Sequence[Task], tasks: Sequence[Task]) -> List[Task]:
    """Stable-sort siblings so that fully-completed subtrees sink to the bottom.

    Presentation only: the persisted order is not touched.
    """
    incomplete: List[Task] = []
    complete: List[Task] = []
    for task in siblings:
        if is_subtree_completed(tasks, task.id):
            complete.append(task)
        else:
            incomplete.append(task)
    return incomplete + complete


def children_of(tasks: Sequence[Task], parent_id: str) -> List[Task]:
    """Direct children in presentation order."""
    return sort_by_completion(get_siblings(tasks, parent_id), tasks)


def root_tasks(tasks: Sequence[Task]) -> List[Task]:
    """Roots in presentation order."""
    return sort_by_completion(get_siblings(tasks, None), tasks)


def visible_task_ids(tasks: Sequence[Task], collapsed_ids: AbstractSet[str]) -> List[str]:
    """Depth-first pre-order ids, skipping subtrees under collapsed ids.

    Follows the same presentation order the tree is rendered in, so the result can drive
    linear keyboard navigation.
    """
    result: List[str] = []

    def walk(parent_id: Optional[str], visited: set) -> None:
        for child in sort_by_completion(get_siblings(tasks, parent_id), tasks):
            if child.id in visited:
                continue
            visited.add(child.id)
            result.append(child.id)
            if child.id not in collapsed_ids:
                walk(child.id, visited)

    walk(None, set())
    return result


def add_task(tasks: Sequence[Task], text: str, parent_id: Optional[str] = None) -> List[Task]:
    """Append a new pending task under parent_id (root when None).

    Returns the input unchanged for empty text, unknown parent or depth overflow.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return list(tasks)
    if parent_id is not None:
        if find_task(tasks, parent_id) is None:
            return list(tasks)
        if get_task_depth(tasks, parent_id) + 1 >= MAX_DEPTH:
            return list(tasks)
    return list(tasks) + [create_task_base(trimmed, parent_id=parent_id)]


def update_task_text(tasks: Sequence[Task], task_id: str, text: str) -> List[Task]:
    trimmed = (text or "").strip()
    if not trimmed:
        return list(tasks)
    return [t.model_copy(update={"text": trimmed}) if t.id == task_id else t for t in tasks]


def delete_task(tasks: Sequence[Task], task_id: str) -> List[Task]:
    """Remove a task and all its descendants."""
    doomed = set(get_descendant_ids(tasks, task_id))
    doomed.add(task_id)
    return [t for t in tasks if t.id not in doomed]


def indent_task(tasks: Sequence[Task], task_id: str) -> List[Task]:
    """Make a task the last child of its immediately preceding sibling.

    No-op for the first sibling, or when the new depth would reach MAX_DEPTH.
    """
    target = find_task(tasks, task_id)
    if target is None:
        return list(tasks)

    siblings = get_siblings(tasks, target.parent_id)
    idx = next(i for i, s in enumerate(siblings) if s.id == task_id)
    if idx <= 0:
        return list(tasks)

    new_parent_id = siblings[idx - 1].id
    if get_task_depth(tasks, new_parent_id) + 1 >= MAX_DEPTH:
        return list(tasks)

    # Only the pointer changes; relative list order is kept.
    return [t.model_copy(update={"parent_id": new_parent_id}) if t.id == task_id else t for t in tasks]


def outdent_task(tasks: Sequence[Task], task_id: str) -> List[Task]:
    """Move a task to its parent's level, as the sibling right after the former parent.

    The task's descendants travel with it. No-op for roots.
    """
    target = find_task(tasks, task_id)
    if target is None or target.parent_id is None:
        return list(tasks)

    parent = find_task(tasks, target.parent_id)
    if parent is None:
        return list(tasks)

    block_ids = {task_id, *get_descendant_ids(tasks, task_id)}
    block = [
        t.model_copy(update={"parent_id": parent.parent_id}) if t.id == task_id else t
        for t in tasks
        if t.id in block_ids
    ]
    rest = [t for t in tasks if t.id not in block_ids]

    # Insert after the parent's remaining descendants so both blocks stay contiguous.
    parent_block = {parent.id, *get_descendant_ids(rest, parent.id)}
    insert_at = max(i for i, t in enumerate(rest) if t.id in parent_block) + 1
    return rest[:insert_at] + block + rest[insert_at:]


def move_task(tasks: Sequence[Task], task_id: str, target_sibling_index: int) -> List[Task]:
    """Move a task (and its descendants as a block) to a new index among its siblings.

    The index counts siblings other than the moved task and is clamped to
    [0, sibling_count]. Moving past the end places the block after the last sibling's
    whole descendant block.
    """
    target = find_task(tasks, task_id)
    if target is None:
        return list(tasks)

    block_ids = {task_id, *get_descendant_ids(tasks, task_id)}
    block = [t for t in tasks if t.id in block_ids]
    rest = [t for t in tasks if t.id not in block_ids]

    siblings = [t for t in rest if t.parent_id == target.parent_id]
    if not siblings:
        return list(tasks)
    clamped = max(0, min(target_sibling_index, len(siblings)))

    if clamped >= len(siblings):
        last_sibling = siblings[-1]
        last_descendants = set(get_descendant_ids(rest, last_sibling.id))
        last_idx = next(i for i, t in enumerate(rest) if t.id == last_sibling.id)
        while last_idx + 1 < len(rest) and rest[last_idx + 1].id in last_descendants:
            last_idx += 1
        insert_at = last_idx + 1
    else:
        insert_at = next(i for i, t in enumerate(rest) if t.id == siblings[clamped].id)

    return rest[:insert_at] + block + rest[insert_at:]


def validate_tree(tasks: Sequence[Task]) -> List[str]:
    """Return human-readable invariant problems (empty when the tree is sound)."""
    problems: List[str] = []
    seen_ids = set()
    for t in tasks:
        if t.id in seen_ids:
            problems.append(f"duplicate id {t.id}")
        seen_ids.add(t.id)

    by_id = _index_by_id(tasks)
    for t in tasks:
        if t.parent_id is not None and t.parent_id not in by_id:
            problems.append(f"task {t.id} references missing parent {t.parent_id}")
            continue
        chain = set()
        current = t
        while current is not None and current.parent_id is not None:
            if current.id in chain:
                problems.append(f"task {t.id} is part of a parent cycle")
                break
            chain.add(current.id)
            current = by_id.get(current.parent_id)
        else:
            if len(chain) > MAX_DEPTH:
                problems.append(f"task {t.id} exceeds max depth {MAX_DEPTH}")
    return problems
