"""Constants for floating-tasks.

This module centralizes all magic numbers and well-known identifiers used throughout the application.
"""

# Task tree
MAX_DEPTH = 10

# Calendar section / event synthetic ids
TODAY_SECTION_PREFIX = "gcal-today-"
CALENDAR_EVENT_PREFIX = "gcal-evt-"
TODAY_SECTION_TEXT = "Today"
ALL_DAY_LABEL = "All day"

# External goals section / goal synthetic ids
GOALS_SECTION_MARKER = "addness-section"
GOALS_SECTION_ID = "addness-section"
GOALS_SECTION_TEXT = "Addness"
GOAL_PREFIX = "addness-goal-"

# Local-override cache
OVERRIDE_TTL_SECONDS = 30

# Polling intervals (seconds)
CALENDAR_POLL_INTERVAL_SEC = 30 * 60
GOAL_POLL_INTERVAL_SEC = 60
GOAL_INITIAL_FETCH_DELAY_SEC = 5
RESET_CHECK_INTERVAL_SEC = 60

# Remote automation scripts
SCRIPT_CACHE_TTL_SEC = 60 * 60
TOGGLE_TARGET_GLOBAL = "__ADDNESS_TOGGLE_TARGET__"

# Toggle confirmation (poll-until-converged)
TOGGLE_CONFIRM_TIMEOUT_SEC = 15
TOGGLE_CONFIRM_POLL_SEC = 3

# Calendar fetch
CALENDAR_MAX_RESULTS = 50
UNTITLED_EVENT_SUMMARY = "(No title)"
