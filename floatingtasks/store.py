"""Task store: the single owner of the task list, templates and override cache.

Every user edit and every reconciliation computes the next list from the current one
and swaps it in as a whole, then persists it. Invalid edits are no-ops that return
False. Sync and persistence failures never raise out of the store; they are logged and
kept in `last_error` for display. When a save fails the in-memory list is rolled back so
memory and disk agree.

The store is not thread-safe. Drive it from one event loop (see SyncPoller.run).
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Set

from floatingtasks.engine import status as status_engine
from floatingtasks.engine import tree
from floatingtasks.integrations.goal_feed import ToggleOutcome
from floatingtasks.models.external import CalendarEvent, ExternalGoal
from floatingtasks.models.recurrence import IntervalUnit, RecurringTaskTemplate, ResetState
from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.recurrence import templates as template_ops
from floatingtasks.recurrence.reset import get_logical_date, is_reset_needed, perform_reset
from floatingtasks.reconcile.calendar import sync_calendar_events
from floatingtasks.reconcile.goals import sync_external_goals
from floatingtasks.reconcile.overrides import LocalOverrideCache

logger = logging.getLogger(__name__)

# Called with (title, desired_completed); returns a ToggleOutcome (or None when the
# toggle is purely fire-and-forget).
GoalToggler = Callable[[str, bool], Optional[ToggleOutcome]]


class TaskStore:
    """In-memory task list with optional persistence through repositories."""

    def __init__(
        self,
        task_repo=None,
        template_repo=None,
        reset_repo=None,
        override_cache: Optional[LocalOverrideCache] = None,
        goal_toggler: Optional[GoalToggler] = None,
    ):
        self.task_repo = task_repo
        self.template_repo = template_repo
        self.reset_repo = reset_repo
        self.overrides = override_cache or LocalOverrideCache()
        self.goal_toggler = goal_toggler

        self.tasks: List[Task] = task_repo.load_tasks() if task_repo else []
        self.templates: List[RecurringTaskTemplate] = template_repo.load_templates() if template_repo else []
        self.reset_state: Optional[ResetState] = reset_repo.load() if reset_repo else None

        self.last_error: Optional[str] = None
        # title -> desired completion, for toggles the remote side has not yet reflected
        self.unconfirmed_toggles: Dict[str, bool] = {}

    # ==================== Internals ====================

    def _get(self, task_id: str) -> Optional[Task]:
        return tree.find_task(self.tasks, task_id)

    def _commit(self, new_tasks: Sequence[Task]) -> bool:
        """Swap in a new list and persist it.

        Returns False when nothing changed or when the save failed (the previous list is
        restored and the error reported).
        """
        new_tasks = list(new_tasks)
        if new_tasks == self.tasks:
            return False
        previous = self.tasks
        self.tasks = new_tasks
        if self.task_repo is not None:
            try:
                self.task_repo.save_tasks(self.tasks)
            except Exception as e:
                self.tasks = previous
                self._fail("Failed to save tasks", e)
                return False
        return True

    def _commit_templates(self, new_templates: Sequence[RecurringTaskTemplate]) -> bool:
        new_templates = list(new_templates)
        if new_templates == self.templates:
            return False
        previous = self.templates
        self.templates = new_templates
        if self.template_repo is not None:
            try:
                self.template_repo.save_templates(self.templates)
            except Exception as e:
                self.templates = previous
                self._fail("Failed to save recurring templates", e)
                return False
        return True

    def _reconcile(self, message: str, compute: Callable[[], List[Task]]) -> bool:
        """Compute the next list from external data and commit it; report failures."""
        try:
            new_tasks = compute()
        except Exception as e:
            self._fail(message, e)
            return False
        return self._commit(new_tasks)

    def _fail(self, message: str, error: Exception) -> None:
        self.last_error = message
        logger.error(f"{message}: {type(error).__name__}: {str(error)}")

    # ==================== Queries ====================

    def root_tasks(self) -> List[Task]:
        return tree.root_tasks(self.tasks)

    def children_of(self, parent_id: str) -> List[Task]:
        return tree.children_of(self.tasks, parent_id)

    def visible_ids(self, collapsed_ids: Set[str]) -> List[str]:
        return tree.visible_task_ids(self.tasks, collapsed_ids)

    # ==================== User edits ====================

    def add_task(self, text: str, parent_id: Optional[str] = None) -> bool:
        if parent_id is not None:
            parent = self._get(parent_id)
            if parent is None or parent.is_external:
                return False
        return self._commit(tree.add_task(self.tasks, text, parent_id))

    def update_task(self, task_id: str, text: str) -> bool:
        task = self._get(task_id)
        if task is None or task.is_external:
            return False
        return self._commit(tree.update_task_text(self.tasks, task_id, text))

    def delete_task(self, task_id: str) -> bool:
        return self._commit(tree.delete_task(self.tasks, task_id))

    def indent_task(self, task_id: str) -> bool:
        task = self._get(task_id)
        if task is None or task.is_external:
            return False
        return self._commit(tree.indent_task(self.tasks, task_id))

    def outdent_task(self, task_id: str) -> bool:
        task = self._get(task_id)
        if task is None or task.is_external:
            return False
        return self._commit(tree.outdent_task(self.tasks, task_id))

    def move_task(self, task_id: str, target_index: int) -> bool:
        return self._commit(tree.move_task(self.tasks, task_id, target_index))

    # ==================== Status ====================

    def advance_status(self, task_id: str) -> bool:
        task = self._get(task_id)
        if task is None:
            return False
        nxt = status_engine.next_status(task.status)
        if nxt is None:
            return False
        return self.set_status(task_id, nxt)

    def set_status(self, task_id: str, status: TaskStatus) -> bool:
        """Apply a status transition with cascade.

        Calendar tasks and the goals section are read-only. Every goal task whose
        completion flips (the target and any goal reached by the cascade) gets an
        override recorded before its remote toggle is issued.
        """
        task = self._get(task_id)
        if task is None or task.is_read_only:
            return False

        before = {t.id: t.is_completed for t in self.tasks if t.is_goal_task}
        changed = self._commit(status_engine.set_status(self.tasks, task_id, TaskStatus(status)))
        if not changed:
            return False

        flipped = [t for t in self.tasks if t.id in before and t.is_completed != before[t.id]]
        for goal_task in flipped:
            self.overrides.record(goal_task.text, goal_task.is_completed)
        for goal_task in flipped:
            self.request_goal_toggle(goal_task.text, goal_task.is_completed)
        return True

    def request_goal_toggle(self, title: str, desired_completed: bool) -> None:
        if self.goal_toggler is None:
            return
        try:
            outcome = self.goal_toggler(title, desired_completed)
        except Exception as e:
            self._fail(f"Failed to toggle goal '{title[:50]}'", e)
            self.unconfirmed_toggles[title] = desired_completed
            return
        if outcome in (ToggleOutcome.UNCONFIRMED, ToggleOutcome.FAILED):
            self.unconfirmed_toggles[title] = desired_completed
        else:
            self.unconfirmed_toggles.pop(title, None)

    # ==================== Reconciliation ====================

    def apply_calendar_events(self, events: Sequence[CalendarEvent], now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return self._reconcile(
            "Failed to merge calendar events",
            lambda: sync_calendar_events(self.tasks, events, today=now.date(), now=now),
        )

    def sync_calendar(self, fetch: Callable[[], Sequence[CalendarEvent]], now: Optional[datetime] = None) -> bool:
        """Fetch today's events and merge them. Never raises."""
        try:
            events = fetch()
        except Exception as e:
            self._fail("Failed to fetch calendar events", e)
            return False
        self.last_error = None
        return self.apply_calendar_events(events, now)

    def apply_goal_snapshot(self, goals: Sequence[ExternalGoal], now: Optional[datetime] = None) -> bool:
        """Merge a goal snapshot after masking stale echoes with local overrides.

        An unconfirmed toggle stops being reported only once the snapshot itself shows
        the desired state.
        """
        for goal in goals:
            if self.unconfirmed_toggles.get(goal.title) == goal.completed:
                del self.unconfirmed_toggles[goal.title]
        return self._reconcile(
            "Failed to merge external goals",
            lambda: sync_external_goals(self.tasks, self.overrides.apply(goals), now),
        )

    def sync_goals(self, fetch: Callable[[], Sequence[ExternalGoal]], now: Optional[datetime] = None) -> bool:
        """Fetch a goal snapshot and merge it. Never raises."""
        try:
            goals = fetch()
        except Exception as e:
            self._fail("Failed to fetch external goals", e)
            return False
        self.last_error = None
        return self.apply_goal_snapshot(goals, now)

    # ==================== Recurring ====================

    def check_recurring_reset(self, now: Optional[datetime] = None) -> bool:
        """Run the daily reset at most once per logical day.

        The reset state is saved only after the new list has been applied, so a reset
        whose save failed is retried on the next check.
        """
        now = now or datetime.now()
        last = self.reset_state.last_reset_date if self.reset_state else None
        if not is_reset_needed(last, now):
            return False

        try:
            new_tasks = perform_reset(self.tasks, self.templates, now)
        except Exception as e:
            self._fail("Failed to run daily reset", e)
            return False
        if new_tasks != self.tasks and not self._commit(new_tasks):
            return False

        reset_state = ResetState(last_reset_date=get_logical_date(now))
        if self.reset_repo is not None:
            try:
                self.reset_repo.save(reset_state)
            except Exception as e:
                self._fail("Failed to save reset state", e)
        self.reset_state = reset_state
        return True

    def add_template(self, text: str, interval_value: int = 1,
                     interval_unit: IntervalUnit = IntervalUnit.DAYS) -> bool:
        return self._commit_templates(
            template_ops.add_template(self.templates, text, interval_value, interval_unit)
        )

    def update_template(self, template_id: str, **updates) -> bool:
        return self._commit_templates(template_ops.update_template(self.templates, template_id, **updates))

    def delete_template(self, template_id: str) -> bool:
        return self._commit_templates(template_ops.delete_template(self.templates, template_id))

    def move_template(self, template_id: str, direction: str) -> bool:
        return self._commit_templates(template_ops.move_template(self.templates, template_id, direction))

    def add_subtask(self, template_id: str, parent_sub_id: Optional[str], text: str) -> bool:
        return self._commit_templates(template_ops.add_subtask(self.templates, template_id, parent_sub_id, text))

    def update_subtask(self, template_id: str, sub_id: str, text: str) -> bool:
        return self._commit_templates(template_ops.update_subtask(self.templates, template_id, sub_id, text))

    def delete_subtask(self, template_id: str, sub_id: str) -> bool:
        return self._commit_templates(template_ops.delete_subtask(self.templates, template_id, sub_id))
