"""Tests for TaskStore: edits, guards, reconciliation and persistence."""

from datetime import date, datetime
from unittest.mock import MagicMock, call

import pytest

from floatingtasks.integrations.goal_feed import GoalSnapshotParseError, ToggleOutcome, parse_goal_snapshot
from floatingtasks.integrations.google_calendar import CalendarFetchError
from floatingtasks.models.external import CalendarEvent, ExternalGoal
from floatingtasks.models.recurrence import IntervalUnit
from floatingtasks.models.task import TaskStatus
from floatingtasks.reconcile.overrides import LocalOverrideCache
from floatingtasks.store import TaskStore

NOW = datetime(2024, 1, 3, 9, 0)
GOAL_ID = "addness-goal-g1"


def goals(completed=False):
    return [ExternalGoal(id="g1", title="Write book", completed=completed)]


def events():
    return [CalendarEvent(id="e1", summary="Standup", start="2024-01-03T09:00:00", end="2024-01-03T09:15:00")]


def status_of(store, task_id):
    return TaskStatus(next(t.status for t in store.tasks if t.id == task_id))


@pytest.fixture
def toggler():
    return MagicMock(return_value=ToggleOutcome.CONFIRMED)


@pytest.fixture
def goal_store(task_repository, fake_clock, toggler):
    store = TaskStore(
        task_repo=task_repository,
        override_cache=LocalOverrideCache(clock=fake_clock),
        goal_toggler=toggler,
    )
    store.apply_goal_snapshot(goals(), NOW)
    return store


class TestUserEdits:
    """Test user edits through the store."""

    def test_edits_are_persisted(self, store, task_repository):
        assert store.add_task("Buy milk") is True
        task_id = store.tasks[0].id
        assert store.add_task("Whole milk", parent_id=task_id) is True
        assert store.update_task(task_id, "Buy groceries") is True

        reloaded = TaskStore(task_repo=task_repository)
        assert [t.text for t in reloaded.tasks] == ["Buy groceries", "Whole milk"]
        assert reloaded.tasks[1].parent_id == task_id

    def test_invalid_edits_return_false(self, store):
        assert store.add_task("  ") is False
        assert store.update_task("missing", "x") is False
        assert store.indent_task("missing") is False
        assert store.move_task("missing", 0) is False

    def test_indent_outdent_move(self, store):
        store.add_task("A")
        store.add_task("B")
        a_id, b_id = (t.id for t in store.tasks)

        assert store.indent_task(b_id) is True
        assert store.children_of(a_id)[0].id == b_id
        assert store.outdent_task(b_id) is True
        assert [t.id for t in store.root_tasks()] == [a_id, b_id]
        assert store.move_task(b_id, 0) is True
        assert store.visible_ids(set()) == [b_id, a_id]

    def test_delete_task(self, store):
        store.add_task("A")
        a_id = store.tasks[0].id
        store.add_task("A child", parent_id=a_id)
        assert store.delete_task(a_id) is True
        assert store.tasks == []


class TestExternalGuards:
    """Test read-only handling of reconciled tasks."""

    def test_calendar_tasks_are_read_only(self, store):
        store.apply_calendar_events(events(), NOW)
        section_id = "gcal-today-2024-01-03"
        assert store.set_status("gcal-evt-e1", TaskStatus.COMPLETED) is False
        assert store.update_task("gcal-evt-e1", "Renamed") is False
        assert store.add_task("Note", parent_id=section_id) is False
        assert store.indent_task("gcal-evt-e1") is False

    def test_goal_section_is_read_only(self, goal_store):
        assert goal_store.set_status("addness-section", TaskStatus.COMPLETED) is False
        assert goal_store.update_task("addness-section", "Goals") is False

    def test_goal_text_and_structure_are_refused(self, goal_store):
        assert goal_store.update_task(GOAL_ID, "Write two books") is False
        assert goal_store.outdent_task(GOAL_ID) is False

    def test_user_can_delete_external_tasks(self, goal_store):
        assert goal_store.delete_task(GOAL_ID) is True


class TestGoalToggle:
    """Test local goal status changes and the override cache."""

    def test_completing_goal_records_override_and_toggles(self, goal_store, toggler):
        assert goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED) is True
        toggler.assert_called_once_with("Write book", True)
        assert goal_store.overrides.get("Write book").desired_completed is True

    def test_stale_echo_is_masked(self, goal_store, fake_clock):
        goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED)
        fake_clock.advance(5)
        goal_store.apply_goal_snapshot(goals(completed=False), NOW)
        assert status_of(goal_store, GOAL_ID) == TaskStatus.COMPLETED

    def test_remote_wins_after_ttl(self, goal_store, fake_clock):
        goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED)
        fake_clock.advance(35)
        goal_store.apply_goal_snapshot(goals(completed=False), NOW)
        assert status_of(goal_store, GOAL_ID) == TaskStatus.PENDING

    def test_in_progress_does_not_toggle(self, goal_store, toggler):
        goal_store.set_status(GOAL_ID, TaskStatus.IN_PROGRESS)
        toggler.assert_not_called()

    def test_unconfirmed_toggle_is_tracked_until_agreement(self, goal_store, toggler):
        toggler.return_value = ToggleOutcome.UNCONFIRMED
        goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED)
        assert goal_store.unconfirmed_toggles == {"Write book": True}

        goal_store.apply_goal_snapshot(goals(completed=True), NOW)
        assert goal_store.unconfirmed_toggles == {}

    def test_toggler_exception_is_reported(self, goal_store, toggler):
        toggler.side_effect = RuntimeError("window crashed")
        goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED)
        assert status_of(goal_store, GOAL_ID) == TaskStatus.COMPLETED
        assert goal_store.last_error is not None
        assert "Write book" in goal_store.unconfirmed_toggles

    def test_cascaded_goals_get_overrides_and_toggles(self, task_repository, fake_clock, toggler):
        nested = [
            ExternalGoal(id="p", title="Write book"),
            ExternalGoal(id="c", title="Chapter 1", parent_id="p"),
        ]
        store = TaskStore(task_repo=task_repository, override_cache=LocalOverrideCache(clock=fake_clock),
                          goal_toggler=toggler)
        store.apply_goal_snapshot(nested, NOW)

        store.set_status("addness-goal-p", TaskStatus.COMPLETED)
        assert toggler.call_args_list == [call("Write book", True), call("Chapter 1", True)]

        fake_clock.advance(5)
        store.apply_goal_snapshot(nested, NOW)
        assert status_of(store, "addness-goal-p") == TaskStatus.COMPLETED
        assert status_of(store, "addness-goal-c") == TaskStatus.COMPLETED

    def test_expired_unconfirmed_toggle_stays_reported(self, goal_store, toggler, fake_clock):
        toggler.return_value = ToggleOutcome.UNCONFIRMED
        goal_store.set_status(GOAL_ID, TaskStatus.COMPLETED)
        fake_clock.advance(35)

        goal_store.apply_goal_snapshot(goals(completed=False), NOW)
        assert status_of(goal_store, GOAL_ID) == TaskStatus.PENDING
        assert goal_store.unconfirmed_toggles == {"Write book": True}

        goal_store.apply_goal_snapshot(goals(completed=True), NOW)
        assert goal_store.unconfirmed_toggles == {}


class TestSyncBoundary:
    """Test that feed failures leave the tree untouched."""

    def test_calendar_failure(self, store):
        store.add_task("Mine")
        before = list(store.tasks)
        fetch = MagicMock(side_effect=CalendarFetchError("401"))
        assert store.sync_calendar(fetch, NOW) is False
        assert store.tasks == before
        assert store.last_error == "Failed to fetch calendar events"

    def test_calendar_success_clears_error(self, store):
        store.last_error = "previous"
        assert store.sync_calendar(lambda: events(), NOW) is True
        assert store.last_error is None
        assert [t.id for t in store.tasks] == ["gcal-today-2024-01-03", "gcal-evt-e1"]

    def test_goal_parse_failure(self, store):
        fetch = MagicMock(side_effect=GoalSnapshotParseError("bad json"))
        assert store.sync_goals(fetch, NOW) is False
        assert store.tasks == []
        assert store.last_error == "Failed to fetch external goals"

    def test_unchanged_snapshot_reports_no_change(self, store):
        assert store.sync_goals(goals, NOW) is True
        assert store.sync_goals(goals, NOW) is False

    def test_blank_goal_title_is_rejected(self, store):
        store.add_task("Mine")
        before = list(store.tasks)
        assert store.sync_goals(lambda: parse_goal_snapshot('[{"id": "a", "title": "  "}]'), NOW) is False
        assert store.tasks == before
        assert store.last_error == "Failed to fetch external goals"

    def test_goal_merge_failure_is_reported(self, store, monkeypatch):
        store.add_task("Mine")
        before = list(store.tasks)
        monkeypatch.setattr("floatingtasks.store.sync_external_goals", MagicMock(side_effect=ValueError("bad goal")))
        assert store.sync_goals(goals, NOW) is False
        assert store.tasks == before
        assert store.last_error == "Failed to merge external goals"

    def test_calendar_merge_failure_is_reported(self, store, monkeypatch):
        monkeypatch.setattr("floatingtasks.store.sync_calendar_events", MagicMock(side_effect=ValueError("bad event")))
        assert store.sync_calendar(events, NOW) is False
        assert store.tasks == []
        assert store.last_error == "Failed to merge calendar events"


class TestPersistenceFailures:
    """Test that failed saves roll back and are reported."""

    @pytest.fixture
    def failing_repo(self, make_task):
        repo = MagicMock()
        repo.load_tasks.return_value = [make_task("done", "Done", status=TaskStatus.COMPLETED)]
        repo.save_tasks.side_effect = RuntimeError("disk full")
        return repo

    def test_sync_rolls_back_when_save_fails(self, failing_repo):
        store = TaskStore(task_repo=failing_repo)
        before = list(store.tasks)
        assert store.sync_calendar(events, NOW) is False
        assert store.tasks == before
        assert store.last_error == "Failed to save tasks"

    def test_user_edit_rolls_back_when_save_fails(self, failing_repo):
        store = TaskStore(task_repo=failing_repo)
        assert store.add_task("Buy milk") is False
        assert [t.id for t in store.tasks] == ["done"]

    def test_reset_is_retried_after_failed_save(self, failing_repo):
        reset_repo = MagicMock()
        reset_repo.load.return_value = None
        store = TaskStore(task_repo=failing_repo, reset_repo=reset_repo)

        assert store.check_recurring_reset(NOW) is False
        assert [t.id for t in store.tasks] == ["done"]
        assert store.reset_state is None
        reset_repo.save.assert_not_called()

        failing_repo.save_tasks.side_effect = None
        assert store.check_recurring_reset(NOW) is True
        assert store.tasks == []
        assert store.reset_state.last_reset_date == date(2024, 1, 3)

    def test_template_save_failure_rolls_back(self):
        template_repo = MagicMock()
        template_repo.load_templates.return_value = []
        template_repo.save_templates.side_effect = RuntimeError("disk full")
        store = TaskStore(template_repo=template_repo)
        assert store.add_template("Water plants") is False
        assert store.templates == []
        assert store.last_error == "Failed to save recurring templates"


class TestRecurringThroughStore:
    """Test the daily reset and template editing via the store."""

    def test_reset_runs_once_per_logical_day(self, store, reset_repository):
        store.add_template("Water plants", 2, IntervalUnit.DAYS)
        template_id = store.templates[0].id
        # anchor the template to a known date
        store.templates = [store.templates[0].model_copy(update={"start_date": date(2024, 1, 1)})]

        assert store.check_recurring_reset(datetime(2024, 1, 3, 9, 0)) is True
        generated = [t for t in store.tasks if t.recurring_template_id == template_id]
        assert len(generated) == 1
        assert reset_repository.load().last_reset_date == date(2024, 1, 3)

        assert store.check_recurring_reset(datetime(2024, 1, 3, 18, 0)) is False
        assert len([t for t in store.tasks if t.recurring_template_id == template_id]) == 1

    def test_reset_drops_completed_and_yesterdays_recurring(self, store):
        store.add_task("Done")
        store.add_task("Open")
        store.set_status(store.tasks[0].id, TaskStatus.COMPLETED)
        store.check_recurring_reset(datetime(2024, 1, 3, 9, 0))
        assert [t.text for t in store.tasks] == ["Open"]

    def test_reset_state_is_loaded(self, task_repository, template_repository, reset_repository):
        first = TaskStore(task_repository, template_repository, reset_repository)
        first.check_recurring_reset(datetime(2024, 1, 3, 9, 0))
        second = TaskStore(task_repository, template_repository, reset_repository)
        assert second.check_recurring_reset(datetime(2024, 1, 3, 10, 0)) is False

    def test_template_edits_are_persisted(self, store, template_repository):
        assert store.add_template("Water plants") is True
        template_id = store.templates[0].id
        assert store.add_subtask(template_id, None, "Kitchen") is True
        sub_id = store.templates[0].children[0].id
        assert store.update_subtask(template_id, sub_id, "Kitchen window") is True
        assert store.update_template(template_id, enabled=False) is True
        assert store.add_template("Review") is True
        assert store.move_template(store.templates[1].id, "up") is True

        loaded = template_repository.load_templates()
        assert [t.text for t in loaded] == ["Review", "Water plants"]
        assert loaded[1].children[0].text == "Kitchen window"
        assert loaded[1].enabled is False

        assert store.delete_subtask(template_id, sub_id) is True
        assert store.delete_template(template_id) is True
        assert [t.text for t in template_repository.load_templates()] == ["Review"]

    def test_invalid_template_edits_return_false(self, store):
        assert store.add_template("Water plants", 0) is False
        assert store.update_template("missing", text="x") is False
