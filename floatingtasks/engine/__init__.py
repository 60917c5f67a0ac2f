"""Task tree and status engine for floating-tasks."""

from floatingtasks.engine.tree import (
    MAX_DEPTH,
    add_task,
    children_of,
    delete_task,
    get_descendant_ids,
    get_task_depth,
    indent_task,
    move_task,
    outdent_task,
    root_tasks,
    sort_by_completion,
    update_task_text,
    validate_tree,
    visible_task_ids,
)
from floatingtasks.engine.status import advance_status, next_status, set_status

__all__ = [
    "MAX_DEPTH",
    "add_task",
    "children_of",
    "delete_task",
    "get_descendant_ids",
    "get_task_depth",
    "indent_task",
    "move_task",
    "outdent_task",
    "root_tasks",
    "sort_by_completion",
    "update_task_text",
    "validate_tree",
    "visible_task_ids",
    "advance_status",
    "next_status",
    "set_status",
]
