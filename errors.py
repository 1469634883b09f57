"""Error taxonomy and the tagged result every board operation returns."""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from loguru import logger
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")


class BoardError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BoardError):
    kind = "validation"


class NotFoundError(BoardError):
    kind = "not_found"


class StoreError(BoardError):
    kind = "store"


@dataclass
class ActionResult(Generic[T]):
    """``{success: true, data}`` or ``{success: false, error}``."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ActionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: BoardError) -> "ActionResult[T]":
        return cls(success=False, error=exc.message, kind=exc.kind)

    def unwrap(self) -> T:
        if not self.success:
            raise ActionFailed(self)
        return self.data  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "data": _dump(self.data)}


class ActionFailed(Exception):
    """Raised by callers that need data and got a failed result."""

    def __init__(self, result: ActionResult):
        super().__init__(result.error)
        self.result = result


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def board_action(fallback: str) -> Callable:
    """Run an operation against a session and report it as an ActionResult.

    The wrapped function receives the session first, returns its payload and
    raises ``BoardError`` for expected failures. Any failure rolls the session
    back, so a failed mutation leaves the store unchanged.
    """

    def decorator(fn: Callable[..., T]) -> Callable[..., ActionResult[T]]:
        @wraps(fn)
        def wrapper(db, *args, **kwargs) -> ActionResult[T]:
            try:
                data = fn(db, *args, **kwargs)
            except BoardError as exc:
                db.rollback()
                logger.warning("{} failed: {}", fn.__name__, exc.message)
                return ActionResult.fail(exc)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("{} hit a store error", fn.__name__)
                message = str(getattr(exc, "orig", None) or exc) or fallback
                return ActionResult.fail(StoreError(message))
            return ActionResult.ok(data)

        return wrapper

    return decorator
