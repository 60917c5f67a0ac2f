"""floatingtasks - hierarchical personal task list with calendar and goal sync."""

__version__ = "0.1.0"
