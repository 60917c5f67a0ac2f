"""Tests for the sync poller timers."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

from floatingtasks.integrations.google_calendar import CalendarFetchError
from floatingtasks.poller import SyncPoller
from floatingtasks.store import TaskStore


def make_poller(clock_value=0.0):
    store = MagicMock(spec=TaskStore)
    fetch_calendar = MagicMock(return_value=[])
    fetch_goals = MagicMock(return_value=[])
    poller = SyncPoller(store, fetch_calendar, fetch_goals, clock=lambda: clock_value)
    return poller, store


class TestSyncPoller:
    """Test which passes run on each tick."""

    def test_first_tick_runs_calendar_and_reset(self):
        poller, store = make_poller()
        assert poller.tick(0.0) == ["reset", "calendar"]
        store.check_recurring_reset.assert_called_once()
        store.sync_calendar.assert_called_once()
        store.sync_goals.assert_not_called()

    def test_goals_wait_for_initial_delay(self):
        poller, store = make_poller()
        poller.tick(0.0)
        assert poller.tick(4.0) == []
        assert poller.tick(5.0) == ["goals"]
        assert poller.tick(64.0) == ["reset"]
        assert poller.tick(65.0) == ["goals"]

    def test_calendar_every_thirty_minutes(self):
        poller, store = make_poller()
        poller.tick(0.0)
        poller.tick(1799.0)
        assert store.sync_calendar.call_count == 1
        poller.tick(1800.0)
        assert store.sync_calendar.call_count == 2

    def test_missing_sources_are_skipped(self):
        store = MagicMock(spec=TaskStore)
        poller = SyncPoller(store, clock=lambda: 0.0)
        assert poller.tick(10.0) == ["reset"]
        assert poller.seconds_until_next(10.0) == 60.0

    def test_seconds_until_next(self):
        poller, _ = make_poller()
        poller.tick(0.0)
        assert poller.seconds_until_next(0.0) == 5.0


class TestCooperativeRun:
    """Test the event-loop driven poller."""

    def test_fetch_runs_off_loop_and_merge_on_loop(self):
        loop_thread = threading.get_ident()
        fetch_threads, merge_threads = [], []

        def fetch():
            fetch_threads.append(threading.get_ident())
            return ["event"]

        def sync_calendar(fetch, wall_now):
            merge_threads.append(threading.get_ident())
            return fetch() == ["event"]

        store = MagicMock(spec=TaskStore)
        store.sync_calendar.side_effect = sync_calendar
        poller = SyncPoller(store, fetch_calendar=fetch, clock=lambda: 0.0)

        assert asyncio.run(poller.tick_async(0.0)) == ["reset", "calendar"]
        assert len(fetch_threads) == 1
        assert fetch_threads[0] != loop_thread
        assert merge_threads == [loop_thread]
        store.check_recurring_reset.assert_called_once()

    def test_fetch_error_reaches_store(self):
        store = TaskStore()
        fetch = MagicMock(side_effect=CalendarFetchError("401"))
        poller = SyncPoller(store, fetch_calendar=fetch, clock=lambda: 0.0)

        asyncio.run(poller.tick_async(0.0))
        assert store.last_error == "Failed to fetch calendar events"
        assert all(not t.is_calendar_task for t in store.tasks)

    def test_run_stops(self):
        poller, store = make_poller()
        sleep = AsyncMock()
        asyncio.run(poller.run(sleep=sleep, should_stop=MagicMock(side_effect=[False, False, True])))
        assert sleep.await_count == 2
        store.sync_calendar.assert_called_once()
