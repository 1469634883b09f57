"""Payload validation shared by the HTTP layer and the board operations.

Each rule raises a ``PydanticCustomError`` so the message a caller sees is
exactly the rule text, e.g. ``"Title is required"``. ``validate`` reports only
the first violated rule; fields are declared in the order they are checked.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from errors import ValidationError

COLUMN_TITLE_MAX = 50
TASK_TITLE_MAX = 100

M = TypeVar("M", bound=BaseModel)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


def check_title(value: Any, limit: int) -> str:
    if value is None:
        raise PydanticCustomError("title_required", "Title is required")
    if not isinstance(value, str):
        raise PydanticCustomError("title_type", "Title must be a string")
    value = value.strip()
    if not value:
        raise PydanticCustomError("title_required", "Title is required")
    if len(value) > limit:
        raise PydanticCustomError("title_too_long", "Title must be less than {limit} characters", {"limit": limit})
    return value


def check_column_ref(value: Any) -> str:
    if value is None or not str(value).strip():
        raise PydanticCustomError("column_required", "Column ID is required")
    return str(value).strip()


def check_choice(value: Any, enum: Type[Enum], field: str) -> Any:
    if value is None or isinstance(value, enum):
        return value
    allowed = [member.value for member in enum]
    if value not in allowed:
        raise PydanticCustomError(
            "invalid_choice",
            "{field} must be one of: {allowed}",
            {"field": field, "allowed": ", ".join(allowed)},
        )
    return value


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ColumnInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        return check_title(value, COLUMN_TITLE_MAX)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> Any:
        return blank_to_none(value)


class TaskInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    column_id: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        return check_title(value, TASK_TITLE_MAX)

    @field_validator("description", "assignee_id", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return blank_to_none(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: Any) -> Any:
        return check_choice(value, Priority, "Priority")

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> Any:
        return check_choice(value, TaskStatus, "Status")

    @field_validator("column_id", mode="before")
    @classmethod
    def _column_id(cls, value: Any) -> str:
        return check_column_ref(value)


class TaskUpdate(BaseModel):
    """Partial update: only the fields present in the payload are applied."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    column_id: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> str:
        return check_title(value, TASK_TITLE_MAX)

    @field_validator("description", "assignee_id", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return blank_to_none(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("invalid_choice", "Priority must be one of: low, medium, high")
        return check_choice(value, Priority, "Priority")

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("invalid_choice", "Status must be one of: todo, in_progress, done")
        return check_choice(value, TaskStatus, "Status")

    @field_validator("column_id", mode="before")
    @classmethod
    def _column_id(cls, value: Any) -> str:
        return check_column_ref(value)


class MoveInput(BaseModel):
    target_column_id: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("target_column_id", mode="before")
    @classmethod
    def _target(cls, value: Any) -> str:
        return check_column_ref(value)


class ColumnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    order: int
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    column_id: str
    order: int
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


def first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    return errors[0]["msg"]


def validate(schema: Type[M], payload: Union[BaseModel, Mapping[str, Any], None]) -> M:
    """Validate ``payload`` against ``schema``, raising the first violation.

    Models built at the HTTP boundary are checked again here, so a write never
    relies on the caller having validated.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(dict(payload or {}))
    except PydanticValidationError as exc:
        raise ValidationError(first_error(exc)) from exc
