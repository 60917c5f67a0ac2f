"""Repository for RecurringTaskTemplate database operations."""

import logging
from typing import List, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from floatingtasks.database.models import RecurringTemplateDB
from floatingtasks.models.recurrence import RecurringTaskTemplate
from floatingtasks.recurrence.templates import migrate_template

logger = logging.getLogger(__name__)


class RecurringTemplateRepository:
    def __init__(self, db: Session):
        self.db = db

    def load_templates(self) -> List[RecurringTaskTemplate]:
        rows = self.db.query(RecurringTemplateDB).order_by(RecurringTemplateDB.position).all()
        templates: List[RecurringTaskTemplate] = []
        for row in rows:
            try:
                templates.append(migrate_template(row.to_record()))
            except (KeyError, ValidationError) as e:
                logger.error(f"Skipping unreadable recurring template {row.id}: {type(e).__name__}: {str(e)}")
        return templates

    def save_templates(self, templates: Sequence[RecurringTaskTemplate]) -> None:
        try:
            self.db.query(RecurringTemplateDB).delete()
            self.db.add_all([RecurringTemplateDB.from_pydantic(t, i) for i, t in enumerate(templates)])
            self.db.commit()
            logger.debug(f"Saved {len(templates)} recurring templates")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to save recurring templates: {type(e).__name__}: {str(e)}")
            raise
