from typing import Any, Mapping, Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.orm import Session

import ordering
from errors import NotFoundError, board_action
from models import Column, Task, utcnow
from schemas import ColumnInput, ColumnOut, validate


DEFAULT_COLUMNS = ("Todo", "In Progress", "Done")


def find_column(db: Session, column_id: str) -> Optional[Column]:
    return db.scalars(Column.visible(Column.id == column_id)).first()


@board_action("Failed to create column")
def create_column(db: Session, data: Mapping[str, Any]) -> ColumnOut:
    payload = validate(ColumnInput, data)
    with ordering.locked_scope(db, ordering.COLUMNS_SCOPE):
        col = Column(
            title=payload.title,
            description=payload.description,
            order=ordering.next_column_order(db),
        )
        db.add(col); db.commit(); db.refresh(col)
    logger.info("Created column {} at order {}", col.id, col.order)
    return ColumnOut.model_validate(col)


@board_action("Failed to fetch column")
def get_column(db: Session, column_id: str) -> ColumnOut:
    col = find_column(db, column_id)
    if not col:
        raise NotFoundError("Column not found")
    return ColumnOut.model_validate(col)


@board_action("Failed to fetch columns")
def list_columns(db: Session) -> list[ColumnOut]:
    return [ColumnOut.model_validate(c) for c in db.scalars(Column.visible()).all()]


@board_action("Failed to update column")
def update_column(db: Session, column_id: str, data: Mapping[str, Any]) -> ColumnOut:
    payload = validate(ColumnInput, data)
    col = find_column(db, column_id)
    if not col:
        raise NotFoundError("Column not found")
    col.title = payload.title
    if "description" in payload.model_fields_set:
        col.description = payload.description
    col.updated_at = utcnow()
    db.commit(); db.refresh(col)
    logger.info("Updated column {}", col.id)
    return ColumnOut.model_validate(col)


@board_action("Failed to delete column")
def delete_column(db: Session, column_id: str) -> dict[str, str]:
    """Soft-delete a column and every visible task in it, in one transaction."""
    col = find_column(db, column_id)
    if not col:
        raise NotFoundError("Column not found")
    now = utcnow()
    hidden = db.execute(
        update(Task)
        .where(Task.column_id == column_id, Task.not_deleted())
        .values(deleted_at=now, updated_at=now)
    ).rowcount
    col.deleted_at = now
    col.updated_at = now
    db.commit()
    logger.info("Deleted column {} and {} task(s)", column_id, hidden)
    return {"id": column_id}


@board_action("Failed to create default columns")
def ensure_default_columns(db: Session) -> list[ColumnOut]:
    """Give an empty board its default columns; a non-empty board is untouched."""
    with ordering.locked_scope(db, ordering.COLUMNS_SCOPE):
        if ordering.next_column_order(db):
            return []
        cols = [Column(title=title, order=i) for i, title in enumerate(DEFAULT_COLUMNS)]
        db.add_all(cols); db.commit()
    created = [ColumnOut.model_validate(c) for c in cols]
    logger.info("Seeded {} default column(s)", len(created))
    return created
