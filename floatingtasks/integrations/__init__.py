"""External sources for floating-tasks."""
