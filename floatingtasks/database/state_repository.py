"""Repositories for singleton reset state and key/value app state."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from floatingtasks.database.models import AppStateDB, ResetStateDB
from floatingtasks.models.recurrence import ResetState

logger = logging.getLogger(__name__)


class ResetStateRepository:
    def __init__(self, db: Session):
        self.db = db

    def load(self) -> Optional[ResetState]:
        row = self.db.query(ResetStateDB).filter(ResetStateDB.id == 1).first()
        return row.to_pydantic() if row else None

    def save(self, state: ResetState) -> None:
        row = self.db.query(ResetStateDB).filter(ResetStateDB.id == 1).first()
        if row is None:
            row = ResetStateDB(id=1, last_reset_date=state.last_reset_date)
            self.db.add(row)
        else:
            row.last_reset_date = state.last_reset_date
        try:
            self.db.commit()
            logger.debug(f"Saved reset state {state.last_reset_date.isoformat()}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save reset state: {type(e).__name__}: {str(e)}")
            raise


class AppStateRepository:
    """JSON values by key. Used as ScriptCache storage."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str, default: Any = None) -> Any:
        row = self.db.query(AppStateDB).filter(AppStateDB.key == key).first()
        return row.value if row is not None else default

    def set(self, key: str, value: Any) -> None:
        row = self.db.query(AppStateDB).filter(AppStateDB.key == key).first()
        if row is None:
            self.db.add(AppStateDB(key=key, value=value, updated_at=datetime.now()))
        else:
            row.value = value
            row.updated_at = datetime.now()
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save app state {key}: {type(e).__name__}: {str(e)}")
            raise
