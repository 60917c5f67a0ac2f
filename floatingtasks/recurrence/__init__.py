"""Recurring templates and the daily reset for floating-tasks."""
