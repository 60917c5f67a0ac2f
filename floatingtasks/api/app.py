"""FastAPI callback surface for floatingtasks.

The goal extract script finishes by navigating to `http://localhost:<port>?data=<json>`;
the root endpoint receives that snapshot and merges it into the store.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from floatingtasks.database.database import SessionLocal, init_db
from floatingtasks.database.recurring_template_repository import RecurringTemplateRepository
from floatingtasks.database.repository import TaskRepository
from floatingtasks.database.state_repository import ResetStateRepository
from floatingtasks.integrations.goal_feed import GoalSnapshotParseError, parse_goal_snapshot
from floatingtasks.models.task import Task
from floatingtasks.store import TaskStore

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="floatingtasks",
    description="Hierarchical task list with calendar and goal sync",
    version="0.1.0"
)

_store: Optional[TaskStore] = None


def get_store() -> TaskStore:
    """Process-wide store backed by the configured database."""
    global _store
    if _store is None:
        init_db()
        db = SessionLocal()
        _store = TaskStore(
            task_repo=TaskRepository(db),
            template_repo=RecurringTemplateRepository(db),
            reset_repo=ResetStateRepository(db),
        )
        # Goal snapshots arrive through the callback; no automation window is wired here.
        logger.warning("No goal toggler configured; goal status changes stay local until overrides expire")
    return _store


# Response models
class SnapshotResponse(BaseModel):
    """Response for a pushed goal snapshot."""
    received: int
    changed: bool


class StatusResponse(BaseModel):
    """Sync state for display."""
    task_count: int
    last_error: Optional[str] = None
    unconfirmed_toggles: List[str] = Field(default_factory=list)
    last_reset_date: Optional[date] = None


@app.get("/", response_model=SnapshotResponse)
async def receive_snapshot(data: Optional[str] = None, store: TaskStore = Depends(get_store)):
    """Receive a goal snapshot from the extract script."""
    if data is None:
        raise HTTPException(status_code=400, detail="Missing data parameter")
    try:
        goals = parse_goal_snapshot(data)
    except GoalSnapshotParseError as e:
        store.last_error = "Failed to parse goal snapshot"
        logger.error(f"Failed to parse goal snapshot: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Invalid goal snapshot: {str(e)}")

    store.last_error = None
    changed = store.apply_goal_snapshot(goals)
    if store.last_error is not None:
        raise HTTPException(status_code=500, detail=store.last_error)
    return SnapshotResponse(received=len(goals), changed=changed)


@app.get("/tasks", response_model=List[Task])
async def list_tasks(store: TaskStore = Depends(get_store)):
    """Flat task list in stored order."""
    return store.tasks


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/status", response_model=StatusResponse)
async def status(store: TaskStore = Depends(get_store)):
    return StatusResponse(
        task_count=len(store.tasks),
        last_error=store.last_error,
        unconfirmed_toggles=sorted(store.unconfirmed_toggles),
        last_reset_date=store.reset_state.last_reset_date if store.reset_state else None,
    )
