import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, Text, DateTime, Index, select, func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class SoftDeleteMixin:
    """Rows are hidden by stamping ``deleted_at``; nothing is ever removed.

    Every read goes through :meth:`visible` or :meth:`count_visible` so the
    ``deleted_at IS NULL`` filter lives in exactly one place.
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @classmethod
    def not_deleted(cls):
        return cls.deleted_at.is_(None)

    @classmethod
    def visible(cls, *criteria):
        return select(cls).where(cls.not_deleted(), *criteria).order_by(cls.order, cls.created_at)

    @classmethod
    def count_visible(cls, *criteria):
        return select(func.count()).select_from(cls).where(cls.not_deleted(), *criteria)


class Column(SoftDeleteMixin, Base):
    __tablename__ = "columns"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False, default=0)
    tasks: Mapped[list["Task"]] = relationship(back_populates="column", order_by="Task.order")


class Task(SoftDeleteMixin, Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_column_order", "column_id", "order"),)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    column_id: Mapped[str] = mapped_column(ForeignKey("columns.id"), nullable=False)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False, default=0)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="todo")
    # Points into the static roster in assignees.py, not a foreign key
    assignee_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    column: Mapped[Column] = relationship(back_populates="tasks")
