"""Editing operations for recurring task templates.

Pure functions over the template list. Invalid edits (empty text, interval below 1,
unknown ids) return the input unchanged.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from floatingtasks.models.recurrence import IntervalUnit, RecurringSubTask, RecurringTaskTemplate
from floatingtasks.recurrence.reset import get_logical_date


def add_template(
    templates: Sequence[RecurringTaskTemplate],
    text: str,
    interval_value: int = 1,
    interval_unit: IntervalUnit = IntervalUnit.DAYS,
    now: Optional[datetime] = None,
) -> List[RecurringTaskTemplate]:
    trimmed = (text or "").strip()
    if not trimmed or interval_value < 1:
        return list(templates)
    now = now or datetime.now()
    template = RecurringTaskTemplate(
        id=str(uuid.uuid4()),
        text=trimmed,
        interval_value=interval_value,
        interval_unit=interval_unit,
        start_date=get_logical_date(now),
        enabled=True,
        created_at=now,
        children=[],
    )
    return list(templates) + [template]


def update_template(
    templates: Sequence[RecurringTaskTemplate],
    template_id: str,
    *,
    text: Optional[str] = None,
    interval_value: Optional[int] = None,
    interval_unit: Optional[IntervalUnit] = None,
    enabled: Optional[bool] = None,
) -> List[RecurringTaskTemplate]:
    if interval_value is not None and interval_value < 1:
        return list(templates)
    if text is not None and not text.strip():
        return list(templates)

    update: Dict[str, Any] = {}
    if text is not None:
        update["text"] = text.strip()
    if interval_value is not None:
        update["interval_value"] = interval_value
    if interval_unit is not None:
        update["interval_unit"] = IntervalUnit(interval_unit)
    if enabled is not None:
        update["enabled"] = enabled
    return [t.model_copy(update=update) if t.id == template_id else t for t in templates]


def delete_template(templates: Sequence[RecurringTaskTemplate], template_id: str) -> List[RecurringTaskTemplate]:
    return [t for t in templates if t.id != template_id]


def move_template(
    templates: Sequence[RecurringTaskTemplate],
    template_id: str,
    direction: str,
) -> List[RecurringTaskTemplate]:
    """Swap a template with its neighbour ("up" or "down")."""
    out = list(templates)
    idx = next((i for i, t in enumerate(out) if t.id == template_id), -1)
    if idx < 0:
        return out
    target = idx - 1 if direction == "up" else idx + 1
    if target < 0 or target >= len(out):
        return out
    out[idx], out[target] = out[target], out[idx]
    return out


def _add_child(nodes: Sequence[RecurringSubTask], parent_id: str, child: RecurringSubTask) -> List[RecurringSubTask]:
    return [
        n.model_copy(update={"children": list(n.children) + [child]})
        if n.id == parent_id
        else n.model_copy(update={"children": _add_child(n.children, parent_id, child)})
        for n in nodes
    ]


def _remove(nodes: Sequence[RecurringSubTask], target_id: str) -> List[RecurringSubTask]:
    return [
        n.model_copy(update={"children": _remove(n.children, target_id)})
        for n in nodes
        if n.id != target_id
    ]


def _rename(nodes: Sequence[RecurringSubTask], target_id: str, text: str) -> List[RecurringSubTask]:
    return [
        n.model_copy(update={"text": text})
        if n.id == target_id
        else n.model_copy(update={"children": _rename(n.children, target_id, text)})
        for n in nodes
    ]


def add_subtask(
    templates: Sequence[RecurringTaskTemplate],
    template_id: str,
    parent_sub_id: Optional[str],
    text: str,
) -> List[RecurringTaskTemplate]:
    """Add a sub-task under the template root (parent_sub_id None) or a nested sub-task."""
    trimmed = (text or "").strip()
    if not trimmed:
        return list(templates)
    new_sub = RecurringSubTask(id=str(uuid.uuid4()), text=trimmed, children=[])

    out: List[RecurringTaskTemplate] = []
    for t in templates:
        if t.id != template_id:
            out.append(t)
        elif parent_sub_id is None:
            out.append(t.model_copy(update={"children": list(t.children) + [new_sub]}))
        else:
            out.append(t.model_copy(update={"children": _add_child(t.children, parent_sub_id, new_sub)}))
    return out


def update_subtask(
    templates: Sequence[RecurringTaskTemplate],
    template_id: str,
    sub_id: str,
    text: str,
) -> List[RecurringTaskTemplate]:
    trimmed = (text or "").strip()
    if not trimmed:
        return list(templates)
    return [
        t.model_copy(update={"children": _rename(t.children, sub_id, trimmed)}) if t.id == template_id else t
        for t in templates
    ]


def delete_subtask(
    templates: Sequence[RecurringTaskTemplate],
    template_id: str,
    sub_id: str,
) -> List[RecurringTaskTemplate]:
    return [
        t.model_copy(update={"children": _remove(t.children, sub_id)}) if t.id == template_id else t
        for t in templates
    ]


def migrate_subtask(raw: Dict[str, Any]) -> RecurringSubTask:
    children = raw.get("children")
    return RecurringSubTask(
        id=raw["id"],
        text=raw["text"],
        children=[migrate_subtask(c) for c in children] if isinstance(children, list) else [],
    )


def migrate_template(raw: Dict[str, Any]) -> RecurringTaskTemplate:
    """Build a template from a stored record, upgrading legacy daily-only records.

    Legacy records have no interval fields; they become daily templates anchored to the
    date they were created.
    """
    children_raw = raw.get("children")
    children = [migrate_subtask(c) for c in children_raw] if isinstance(children_raw, list) else []

    if "interval_value" in raw or "intervalValue" in raw:
        return RecurringTaskTemplate(
            id=raw["id"],
            text=raw["text"],
            interval_value=raw.get("interval_value", raw.get("intervalValue")),
            interval_unit=raw.get("interval_unit", raw.get("intervalUnit", IntervalUnit.DAYS)),
            start_date=raw.get("start_date", raw.get("startDate")),
            enabled=raw.get("enabled", True),
            created_at=raw.get("created_at", raw.get("createdAt")),
            children=children,
        )

    created_raw = raw.get("created_at") or raw.get("createdAt")
    created_at = datetime.fromisoformat(created_raw.replace("Z", "+00:00")) if isinstance(created_raw, str) else (created_raw or datetime.now())
    start: date = created_at.date()
    return RecurringTaskTemplate(
        id=raw["id"],
        text=raw["text"],
        interval_value=1,
        interval_unit=IntervalUnit.DAYS,
        start_date=start,
        enabled=raw.get("enabled", True),
        created_at=created_at,
        children=children,
    )
