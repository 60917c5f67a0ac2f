"""Short-lived local-wins overrides for external goal completion.

The goal feed reflects a remote UI with several seconds of interaction latency, so the
first poll after a local status change usually still reports the old remote state. The
cache remembers what the user asked for and masks that stale echo until the remote side
agrees or the entry expires.

Entries are keyed by goal title because the remote source has no stable id contract.
Two goals with identical titles share one entry; this is a known limitation.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from floatingtasks.models.constants import OVERRIDE_TTL_SECONDS
from floatingtasks.models.external import ExternalGoal

logger = logging.getLogger(__name__)


class OverrideEntry(BaseModel):
    desired_completed: bool
    recorded_at: float


class LocalOverrideCache:
    """Title-keyed record of locally requested goal completion states."""

    def __init__(self, ttl_seconds: float = OVERRIDE_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, OverrideEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, title: str) -> bool:
        return title in self._entries

    def get(self, title: str) -> Optional[OverrideEntry]:
        return self._entries.get(title)

    def record(self, title: str, desired_completed: bool, at: Optional[float] = None) -> None:
        """Remember the desired state. Call before issuing the remote toggle."""
        self._entries[title] = OverrideEntry(
            desired_completed=desired_completed,
            recorded_at=self._clock() if at is None else at,
        )
        logger.debug(f"Recorded override for '{title[:50]}': completed={desired_completed}")

    def clear(self, title: str) -> None:
        self._entries.pop(title, None)

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired entries; return how many were dropped."""
        now = self._clock() if now is None else now
        expired = [k for k, e in self._entries.items() if now - e.recorded_at > self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Expired {len(expired)} goal overrides")
        return len(expired)

    def apply(self, goals: Sequence[ExternalGoal], now: Optional[float] = None) -> List[ExternalGoal]:
        """Return the snapshot with still-pending local changes substituted in.

        Expired entries are dropped first regardless of agreement. An entry the snapshot
        already agrees with is cleared and the real value is used.
        """
        self.prune(now)
        out: List[ExternalGoal] = []
        for goal in goals:
            entry = self._entries.get(goal.title)
            if entry is None:
                out.append(goal)
            elif goal.completed == entry.desired_completed:
                self.clear(goal.title)
                out.append(goal)
            else:
                out.append(goal.model_copy(update={"completed": entry.desired_completed}))
        return out
