"""
Task Service — IT specialist tasks, subtasks and the derived progress value.

Progress rule:
    progress = 0                                   if the task has no subtasks
    progress = round_half_up(100 * done / total)   otherwise  (1 of 3 -> 33, 1 of 8 -> 13)

Every subtask create/update/delete recomputes progress and commits the
mutation and the new progress together. The parent task row is locked
(SELECT ... FOR UPDATE) for the duration, so two concurrent subtask
changes on the same task cannot interleave their recompute.

Ownership:
  - Task update/delete by a non-owner raises ForbiddenError.
  - Subtask operations on a task the caller does not own raise
    NotFoundError, identical to a missing task.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func, select

from app.core.exceptions import ForbiddenError, InvalidStatusError, NotFoundError, ValidationError
from app.models import db
from app.models.task import (
    DEFAULT_TASK_COLOR,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Subtask,
    Task,
)
from app.utils.helpers import parse_bool, parse_datetime, round_half_up, utcnow

logger = logging.getLogger(__name__)

# Fields a caller may write on a task; ``progress`` is deliberately absent.
_UPDATABLE_FIELDS = ("title", "description", "status", "priority", "startDate", "endDate", "color")


def compute_progress(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * completed / total)


def _recompute_progress(task: Task) -> int:
    total, done = db.session.execute(
        select(
            func.count(Subtask.id),
            func.coalesce(func.sum(case((Subtask.completed.is_(True), 1), else_=0)), 0),
        ).where(Subtask.task_id == task.id)
    ).one()
    task.progress = compute_progress(int(done), int(total))
    return task.progress


def _lock_task(task_id: int) -> Task | None:
    return db.session.execute(
        select(Task).where(Task.id == task_id).with_for_update()
    ).scalar_one_or_none()


def _owned_task_or_404(task_id: int, requester_id: int) -> Task:
    task = _lock_task(task_id)
    if task is None or task.user_id != requester_id:
        raise NotFoundError("Task", task_id)
    return task


def _subtask_for_owner(subtask_id: int, requester_id: int) -> tuple[Subtask, Task]:
    subtask = db.session.get(Subtask, subtask_id)
    if subtask is None:
        raise NotFoundError("Subtask", subtask_id)
    task = _lock_task(subtask.task_id)
    if task is None or task.user_id != requester_id:
        raise NotFoundError("Subtask", subtask_id)
    return subtask, task


def _validated_fields(data: dict, *, creating: bool) -> dict:
    values: dict = {}
    if "title" in data or creating:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required", details={"title": "required"})
        values["title"] = title
    if "description" in data:
        values["description"] = data.get("description")
    for key, attr in (("startDate", "start_date"), ("endDate", "end_date")):
        if key in data or creating:
            parsed = parse_datetime(data.get(key))
            if parsed is None:
                raise ValidationError(f"{key} is required and must be an ISO date",
                                      details={key: "invalid"})
            values[attr] = parsed
    if data.get("status") is not None:
        if data["status"] not in TASK_STATUSES:
            raise InvalidStatusError(data["status"], TASK_STATUSES)
        values["status"] = data["status"]
    if data.get("priority") is not None:
        if data["priority"] not in TASK_PRIORITIES:
            raise ValidationError(
                f"priority must be one of: {', '.join(TASK_PRIORITIES)}",
                details={"priority": "invalid"},
            )
        values["priority"] = data["priority"]
    if data.get("color"):
        values["color"] = str(data["color"])
    return values


# ── Tasks ─────────────────────────────────────────────────────────────────────


def list_tasks(owner_id: int) -> list[Task]:
    """Owner's tasks ordered by start date; subtasks come ordered by ``order``."""
    return list(db.session.execute(
        select(Task).where(Task.user_id == owner_id).order_by(Task.start_date.asc(), Task.id.asc())
    ).scalars())


def list_all_tasks() -> list[Task]:
    """Every task in the system, for the quality evaluator's read-only view."""
    return list(db.session.execute(
        select(Task).order_by(Task.start_date.asc(), Task.id.asc())
    ).scalars())


def create_task(owner_id: int, data: dict) -> Task:
    """Create a task. Any ``progress`` in ``data`` is ignored; new tasks start at 0.

    Raises:
        ValidationError: title, startDate or endDate missing/invalid.
    """
    values = _validated_fields(data, creating=True)
    values.setdefault("status", "TODO")
    values.setdefault("priority", "MEDIUM")
    values.setdefault("color", DEFAULT_TASK_COLOR)
    task = Task(user_id=owner_id, progress=0, **values)
    db.session.add(task)
    db.session.commit()
    logger.info("Task created id=%s owner=%s", task.id, owner_id)
    return task


def update_task(task_id: int, requester_id: int, data: dict) -> Task:
    """Partial update of the writable fields. ``progress`` is never taken from input."""
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    if task.user_id != requester_id:
        raise ForbiddenError("You can only modify your own tasks")
    payload = {k: data[k] for k in _UPDATABLE_FIELDS if k in data}
    for attr, value in _validated_fields(payload, creating=False).items():
        setattr(task, attr, value)
    db.session.commit()
    return task


def delete_task(task_id: int, requester_id: int) -> None:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    if task.user_id != requester_id:
        raise ForbiddenError("You can only delete your own tasks")
    db.session.delete(task)
    db.session.commit()
    logger.info("Task deleted id=%s owner=%s", task_id, requester_id)


# ── Subtasks ──────────────────────────────────────────────────────────────────


def create_subtask(task_id: int, requester_id: int, title: str | None) -> Subtask:
    """Append a subtask with order = max(order) + 1 (0 for the first)."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", details={"title": "required"})
    task = _owned_task_or_404(task_id, requester_id)

    max_order = db.session.execute(
        select(func.max(Subtask.order)).where(Subtask.task_id == task.id)
    ).scalar_one_or_none()
    subtask = Subtask(
        task_id=task.id,
        title=title,
        completed=False,
        order=0 if max_order is None else max_order + 1,
    )
    db.session.add(subtask)
    db.session.flush()
    _recompute_progress(task)
    db.session.commit()
    return subtask


def update_subtask(
    subtask_id: int,
    requester_id: int,
    completed: bool | None = None,
    title: str | None = None,
) -> Subtask:
    """Toggle completion and/or rename.

    ``completed_at`` is stamped when the flag flips to True and cleared
    when it flips back to False.
    """
    completed = parse_bool(completed, "completed")
    subtask, task = _subtask_for_owner(subtask_id, requester_id)
    if title is not None:
        title = title.strip()
        if not title:
            raise ValidationError("Title cannot be empty", details={"title": "required"})
        subtask.title = title
    if completed is not None:
        if completed and not subtask.completed:
            subtask.completed_at = utcnow()
        elif not completed:
            subtask.completed_at = None
        subtask.completed = completed
    db.session.flush()
    _recompute_progress(task)
    db.session.commit()
    return subtask


def delete_subtask(subtask_id: int, requester_id: int) -> Task:
    """Remove a subtask; returns the parent task with its new progress."""
    subtask, task = _subtask_for_owner(subtask_id, requester_id)
    db.session.delete(subtask)
    db.session.flush()
    _recompute_progress(task)
    db.session.commit()
    return task

