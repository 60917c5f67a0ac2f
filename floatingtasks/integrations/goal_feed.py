"""External goal feed: snapshot decoding, automation scripts and remote toggles.

The goal-tracking web app has no API. A hidden automation window runs an extract
script that scrapes the page and navigates to a local callback URL carrying the goals
as URL-encoded JSON (`http://localhost:<port>?data=...`). Toggling a goal runs a second
script that clicks the goal's status control. The window itself is a transport detail
behind GoalFeedTransport.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests
from dotenv import load_dotenv
from pydantic import ValidationError

from floatingtasks.models.constants import (
    GOAL_INITIAL_FETCH_DELAY_SEC,
    SCRIPT_CACHE_TTL_SEC,
    TOGGLE_CONFIRM_POLL_SEC,
    TOGGLE_CONFIRM_TIMEOUT_SEC,
    TOGGLE_TARGET_GLOBAL,
)
from floatingtasks.models.external import ExternalGoal

load_dotenv()

logger = logging.getLogger(__name__)

GOAL_EXTRACT_JS_URL = os.getenv(
    "GOAL_EXTRACT_JS_URL",
    "https://raw.githubusercontent.com/Miyabi03/floating-tasks/main/scripts/addness/extract.js",
)
GOAL_TOGGLE_JS_URL = os.getenv(
    "GOAL_TOGGLE_JS_URL",
    "https://raw.githubusercontent.com/Miyabi03/floating-tasks/main/scripts/addness/toggle.js",
)


class GoalFeedError(Exception):
    """Raised when the automation channel fails (window gone, script error)."""


class GoalSnapshotParseError(GoalFeedError):
    """Raised when a snapshot payload cannot be decoded into goals."""


class ToggleOutcome(str, Enum):
    """Result of a confirmed toggle attempt."""
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    FAILED = "failed"


def parse_goal_snapshot(payload: str) -> List[ExternalGoal]:
    """Decode a JSON array of {id, title, completed, parentId}.

    Raises:
        GoalSnapshotParseError: If the payload is not a JSON array of valid goals
    """
    try:
        raw = json.loads(payload)
    except (TypeError, json.JSONDecodeError) as e:
        raise GoalSnapshotParseError(f"Failed to parse goal snapshot: {e}") from e
    if not isinstance(raw, list):
        raise GoalSnapshotParseError(f"Goal snapshot must be a JSON array, got {type(raw).__name__}")
    try:
        return [ExternalGoal.model_validate(item) for item in raw]
    except ValidationError as e:
        raise GoalSnapshotParseError(f"Invalid goal in snapshot: {e}") from e


def decode_callback_url(url: str) -> str:
    """Extract the `data` payload from a callback navigation URL.

    Raises:
        GoalSnapshotParseError: If the URL carries no data parameter
    """
    values = parse_qs(urlparse(url).query).get("data")
    if not values:
        raise GoalSnapshotParseError("Callback URL has no data parameter")
    return values[0]


def build_toggle_script(title: str, toggle_js: str) -> str:
    """Prefix the toggle script with the target title it reads from window."""
    return f"window.{TOGGLE_TARGET_GLOBAL}={json.dumps(title)};\n{toggle_js}"


class ScriptCache:
    """Download an automation script and keep it for SCRIPT_CACHE_TTL_SEC.

    Falls back to the stale cached copy when the download fails. `storage` is any object
    with get(key) / set(key, value) (e.g. AppStateRepository); an in-memory dict is used
    when None.
    """

    def __init__(
        self,
        name: str,
        url: str,
        storage: Optional[Any] = None,
        ttl_seconds: float = SCRIPT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.time,
        timeout: float = 10,
    ):
        self.name = name
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._storage = storage
        self._memory: Dict[str, Any] = {}
        self._clock = clock

    def _get(self, key: str) -> Any:
        if self._storage is not None:
            return self._storage.get(key)
        return self._memory.get(key)

    def _set(self, key: str, value: Any) -> None:
        if self._storage is not None:
            self._storage.set(key, value)
        else:
            self._memory[key] = value

    def get(self) -> Optional[str]:
        code_key = f"script:{self.name}:code"
        fetched_key = f"script:{self.name}:fetched_at"
        cached = self._get(code_key)
        fetched_at = self._get(fetched_key) or 0
        if cached and self._clock() - fetched_at < self.ttl_seconds:
            return cached

        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Failed to download {self.name} script, using cached copy: {type(e).__name__}: {str(e)}")
            return cached

        code = response.text
        self._set(code_key, code)
        self._set(fetched_key, self._clock())
        logger.debug(f"Downloaded {self.name} script ({len(code)} bytes)")
        return code


class GoalFeedTransport(ABC):
    """Automation channel to the goal-tracking page.

    Implementations raise GoalFeedError on failure.
    """

    @abstractmethod
    def ensure_window(self) -> None:
        """Create the hidden automation window if it does not exist."""

    @abstractmethod
    def reset_window(self) -> None:
        """Drop and re-create the automation window."""

    @abstractmethod
    def run_script(self, js_code: str) -> None:
        """Evaluate a script in the page without waiting for a result."""

    @abstractmethod
    def fetch_snapshot(self, js_code: str) -> str:
        """Run the extract script and return the raw JSON payload it called back with."""


class GoalFeedClient:
    """Fetch goal snapshots and toggle goals through a GoalFeedTransport."""

    def __init__(
        self,
        transport: GoalFeedTransport,
        extract_script: ScriptCache,
        toggle_script: ScriptCache,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.extract_script = extract_script
        self.toggle_script = toggle_script
        self._sleep = sleep
        self._clock = clock

    def fetch_goals(self) -> List[ExternalGoal]:
        """Fetch a full goal snapshot.

        Raises:
            GoalFeedError: If the transport fails
            GoalSnapshotParseError: If the payload is malformed
        """
        js_code = self.extract_script.get() or ""
        self.transport.ensure_window()
        payload = self.transport.fetch_snapshot(js_code)
        goals = parse_goal_snapshot(payload)
        logger.info(f"Fetched {len(goals)} external goals")
        return goals

    def toggle_goal(self, title: str) -> bool:
        """Fire-and-forget toggle of the goal with this title.

        Retries once after re-creating the automation window. Returns False when the
        toggle could not be issued at all.
        """
        toggle_js = self.toggle_script.get()
        if not toggle_js:
            logger.error(f"No toggle script available; cannot toggle '{title[:50]}'")
            return False
        js_code = build_toggle_script(title, toggle_js)
        try:
            self.transport.run_script(js_code)
            return True
        except GoalFeedError as e:
            logger.warning(f"Toggle failed, re-creating automation window: {type(e).__name__}: {str(e)}")

        try:
            self.transport.reset_window()
            self._sleep(GOAL_INITIAL_FETCH_DELAY_SEC)
            self.transport.run_script(js_code)
            return True
        except GoalFeedError as e:
            logger.error(f"Failed to toggle goal '{title[:50]}': {type(e).__name__}: {str(e)}")
            return False

    def toggle_and_confirm(
        self,
        title: str,
        desired_completed: bool,
        timeout: float = TOGGLE_CONFIRM_TIMEOUT_SEC,
        poll_interval: float = TOGGLE_CONFIRM_POLL_SEC,
    ) -> ToggleOutcome:
        """Toggle a goal, then poll snapshots until it reports the desired state.

        Returns UNCONFIRMED when the timeout passes without convergence.
        """
        if not self.toggle_goal(title):
            return ToggleOutcome.FAILED

        deadline = self._clock() + timeout
        while self._clock() < deadline:
            self._sleep(poll_interval)
            try:
                goals = self.fetch_goals()
            except GoalFeedError as e:
                logger.warning(f"Confirmation poll failed: {type(e).__name__}: {str(e)}")
                continue
            match = next((g for g in goals if g.title == title), None)
            if match is not None and match.completed == desired_completed:
                logger.debug(f"Toggle of '{title[:50]}' confirmed")
                return ToggleOutcome.CONFIRMED

        logger.warning(f"Toggle of '{title[:50]}' unconfirmed after {timeout}s")
        return ToggleOutcome.UNCONFIRMED
