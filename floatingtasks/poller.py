"""Cooperative timers that drive calendar sync, goal sync and the daily reset.

The store is only ever touched from the event loop that runs the poller (the same loop
that serves the callback endpoint). Blocking fetches run in a worker thread; their
results are merged back on the loop.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence

from floatingtasks.models.constants import (
    CALENDAR_POLL_INTERVAL_SEC,
    GOAL_INITIAL_FETCH_DELAY_SEC,
    GOAL_POLL_INTERVAL_SEC,
    RESET_CHECK_INTERVAL_SEC,
)
from floatingtasks.models.external import CalendarEvent, ExternalGoal
from floatingtasks.store import TaskStore

logger = logging.getLogger(__name__)


async def _prefetch(fetch: Callable[[], Sequence]) -> Callable[[], Sequence]:
    """Run a blocking fetch off the loop and return a fetch that replays its result."""
    try:
        result = await asyncio.to_thread(fetch)
    except Exception as e:
        error = e

        def replay_error():
            raise error
        return replay_error
    return lambda: result


class SyncPoller:
    """Run each sync when its interval has elapsed.

    `tick(now)` is monotonic-clock driven and never overlaps passes; a pass that is slow
    simply delays the next tick. Sources left as None are skipped.
    """

    def __init__(
        self,
        store: TaskStore,
        fetch_calendar: Optional[Callable[[], Sequence[CalendarEvent]]] = None,
        fetch_goals: Optional[Callable[[], Sequence[ExternalGoal]]] = None,
        clock: Callable[[], float] = time.monotonic,
        calendar_interval: float = CALENDAR_POLL_INTERVAL_SEC,
        goal_interval: float = GOAL_POLL_INTERVAL_SEC,
        goal_initial_delay: float = GOAL_INITIAL_FETCH_DELAY_SEC,
        reset_interval: float = RESET_CHECK_INTERVAL_SEC,
    ):
        self.store = store
        self.fetch_calendar = fetch_calendar
        self.fetch_goals = fetch_goals
        self._clock = clock
        self.calendar_interval = calendar_interval
        self.goal_interval = goal_interval
        self.reset_interval = reset_interval

        started = clock()
        # Calendar and reset run on the first tick; goals wait for the page to load.
        self._next_calendar = started
        self._next_goals = started + goal_initial_delay
        self._next_reset = started

    def _due(self, now: float) -> List[str]:
        """Names of the passes due at `now`, in run order. Reschedules them."""
        due = []
        if now >= self._next_reset:
            self._next_reset = now + self.reset_interval
            due.append("reset")
        if self.fetch_calendar is not None and now >= self._next_calendar:
            self._next_calendar = now + self.calendar_interval
            due.append("calendar")
        if self.fetch_goals is not None and now >= self._next_goals:
            self._next_goals = now + self.goal_interval
            due.append("goals")
        return due

    def _run_pass(self, name: str, fetch: Optional[Callable[[], Sequence]], wall_now: Optional[datetime]) -> None:
        if name == "reset":
            self.store.check_recurring_reset(wall_now)
        elif name == "calendar":
            self.store.sync_calendar(fetch, wall_now)
        else:
            self.store.sync_goals(fetch, wall_now)

    def _fetcher(self, name: str) -> Optional[Callable[[], Sequence]]:
        return {"calendar": self.fetch_calendar, "goals": self.fetch_goals}.get(name)

    def tick(self, now: Optional[float] = None, wall_now: Optional[datetime] = None) -> List[str]:
        """Run every pass that is due. Returns the names of the passes that ran."""
        now = self._clock() if now is None else now
        ran = self._due(now)
        for name in ran:
            self._run_pass(name, self._fetcher(name), wall_now)
        if ran:
            logger.debug(f"Poller ran: {', '.join(ran)}")
        return ran

    async def tick_async(self, now: Optional[float] = None, wall_now: Optional[datetime] = None) -> List[str]:
        """Like tick, but fetches run in a worker thread so the loop keeps serving."""
        now = self._clock() if now is None else now
        ran = self._due(now)
        for name in ran:
            fetch = self._fetcher(name)
            if fetch is not None:
                fetch = await _prefetch(fetch)
            self._run_pass(name, fetch, wall_now)
        if ran:
            logger.debug(f"Poller ran: {', '.join(ran)}")
        return ran

    def seconds_until_next(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        due = [self._next_reset]
        if self.fetch_calendar is not None:
            due.append(self._next_calendar)
        if self.fetch_goals is not None:
            due.append(self._next_goals)
        return max(0.0, min(due) - now)

    async def run(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                  should_stop: Callable[[], bool] = lambda: False) -> None:
        """Tick until `should_stop()` is true. Run it as a task on the serving loop."""
        logger.info("Sync poller started")
        try:
            while not should_stop():
                await self.tick_async()
                await sleep(self.seconds_until_next())
        finally:
            logger.info("Sync poller stopped")
