"""Repository layer for database operations."""

import logging
from typing import List, Sequence

from sqlalchemy.orm import Session

from floatingtasks.database.models import TaskDB
from floatingtasks.engine.tree import validate_tree
from floatingtasks.models.task import Task

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for the task list.

    The list is saved as a whole; positions preserve the exact list order.
    """

    def __init__(self, db: Session):
        self.db = db

    def load_tasks(self) -> List[Task]:
        """Load all tasks in persisted order."""
        tasks = [row.to_pydantic() for row in self.db.query(TaskDB).order_by(TaskDB.position).all()]
        for problem in validate_tree(tasks):
            logger.warning(f"Loaded task list has a problem: {problem}")
        return tasks

    def save_tasks(self, tasks: Sequence[Task]) -> None:
        """Replace the stored list with `tasks`, in one transaction."""
        try:
            self.db.query(TaskDB).delete()
            self.db.add_all([TaskDB.from_pydantic(t, i) for i, t in enumerate(tasks)])
            self.db.commit()
            logger.debug(f"Saved {len(tasks)} tasks")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save tasks: {type(e).__name__}: {str(e)}")
            raise
