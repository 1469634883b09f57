from typing import Any, Mapping, Optional

from loguru import logger
from sqlalchemy.orm import Session

import ordering
from assignees import describe_assignee
from column_actions import find_column
from errors import NotFoundError, board_action
from models import Column, Task, utcnow
from schemas import ColumnOut, MoveInput, Priority, TaskInput, TaskOut, TaskStatus, TaskUpdate, validate


def find_task(db: Session, task_id: str) -> Optional[Task]:
    return db.scalars(Task.visible(Task.id == task_id)).first()


def _append_to(db: Session, task: Task, column_id: str) -> None:
    # Caller holds the scope lock for column_id and commits before releasing it
    task.order = ordering.next_task_order(db, column_id)
    task.column_id = column_id


@board_action("Failed to create task")
def create_task(db: Session, data: Mapping[str, Any]) -> TaskOut:
    payload = validate(TaskInput, data)
    if not find_column(db, payload.column_id):
        raise NotFoundError("Column not found")
    with ordering.locked_scope(db, ordering.task_scope(payload.column_id)):
        task = Task(
            title=payload.title,
            description=payload.description,
            priority=(payload.priority or Priority.MEDIUM).value,
            status=(payload.status or TaskStatus.TODO).value,
            assignee_id=payload.assignee_id,
            due_date=payload.due_date,
        )
        _append_to(db, task, payload.column_id)
        db.add(task); db.commit(); db.refresh(task)
    logger.info("Created task {} in column {} at order {}", task.id, task.column_id, task.order)
    return TaskOut.model_validate(task)


@board_action("Failed to fetch task")
def get_task(db: Session, task_id: str) -> TaskOut:
    task = find_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return TaskOut.model_validate(task)


@board_action("Failed to fetch tasks")
def list_tasks(db: Session) -> list[TaskOut]:
    return [TaskOut.model_validate(t) for t in db.scalars(Task.visible()).all()]


@board_action("Failed to fetch tasks by column")
def list_tasks_by_column(db: Session, column_id: str) -> list[TaskOut]:
    rows = db.scalars(Task.visible(Task.column_id == column_id)).all()
    return [TaskOut.model_validate(t) for t in rows]


def _move(db: Session, task: Task, target_column_id: str) -> None:
    if not find_column(db, target_column_id):
        raise NotFoundError("Target column not found")
    with ordering.locked_scope(db, ordering.task_scope(target_column_id)):
        _append_to(db, task, target_column_id)
        task.updated_at = utcnow()
        db.commit()


@board_action("Failed to update task")
def update_task(db: Session, task_id: str, data: Mapping[str, Any]) -> TaskOut:
    payload = validate(TaskUpdate, data)
    changes = payload.model_dump(exclude_unset=True)
    task = find_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found")

    target = changes.pop("column_id", None)
    for field, value in changes.items():
        setattr(task, field, value.value if isinstance(value, (Priority, TaskStatus)) else value)
    task.updated_at = utcnow()

    if target is not None and target != task.column_id:
        # Changing columns is a move: the task goes to the end of the target
        _move(db, task, target)
    else:
        db.commit()
    db.refresh(task)
    logger.info("Updated task {} ({})", task.id, ", ".join(sorted(changes)) or "no fields")
    return TaskOut.model_validate(task)


@board_action("Failed to delete task")
def delete_task(db: Session, task_id: str) -> dict[str, str]:
    task = find_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found")
    task.deleted_at = utcnow()
    task.updated_at = task.deleted_at
    db.commit()
    logger.info("Deleted task {}", task_id)
    return {"id": task_id}


@board_action("Failed to move task")
def move_task(db: Session, task_id: str, target_column_id: Any) -> TaskOut:
    """Append a task to the end of another column.

    The new order is the count of visible tasks already in the target; the
    source column keeps its gap.
    """
    target = validate(MoveInput, {"target_column_id": target_column_id}).target_column_id
    task = find_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found")
    source = task.column_id
    _move(db, task, target)
    db.refresh(task)
    logger.info("Moved task {} from {} to {} at order {}", task.id, source, task.column_id, task.order)
    return TaskOut.model_validate(task)


@board_action("Failed to load board")
def load_board(db: Session) -> list[dict[str, Any]]:
    """Visible columns in order, each with its visible tasks and assignee."""
    columns = db.scalars(Column.visible()).all()
    by_column: dict[str, list[dict[str, Any]]] = {c.id: [] for c in columns}
    for task in db.scalars(Task.visible(Task.column_id.in_(list(by_column)))).all():
        entry = TaskOut.model_validate(task).model_dump(mode="json")
        entry["assignee"] = describe_assignee(task.assignee_id)
        by_column[task.column_id].append(entry)
    return [
        {**ColumnOut.model_validate(c).model_dump(mode="json"), "tasks": by_column[c.id]}
        for c in columns
    ]
