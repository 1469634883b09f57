"""Append-to-end ordering for columns and tasks.

A new row's ``order`` is the number of visible siblings in its scope. The
count and the insert that uses it must happen while the scope is locked and
inside one transaction, otherwise two writers can read the same count.
Gaps left behind by deletes and moves are never compacted.
"""

import threading
import weakref
import zlib
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Column, Task

COLUMNS_SCOPE = "columns"


def task_scope(column_id: str) -> str:
    return f"tasks:{column_id}"


class ScopeLocks:
    """One lock per ordering scope, created on first use.

    Entries are weak: a scope's lock lives only while some caller holds or
    waits on it, so scopes of deleted columns do not pile up.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def get(self, scope: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(scope)
            if lock is None:
                lock = self._locks[scope] = threading.Lock()
            return lock


_locks = ScopeLocks()


def advisory_key(scope: str) -> int:
    # pg_advisory_xact_lock takes a signed bigint
    return zlib.crc32(scope.encode("utf-8"))


@contextmanager
def locked_scope(db: Session, scope: str) -> Iterator[None]:
    """Serialise writers of ``scope`` until the caller commits or rolls back.

    The caller must finish its transaction inside the ``with`` block. On
    PostgreSQL a transaction-level advisory lock covers writers in other
    processes as well; it is released by the commit.
    """
    with _locks.get(scope):
        if db.get_bind().dialect.name == "postgresql":
            db.execute(select(func.pg_advisory_xact_lock(advisory_key(scope))))
        yield


def next_column_order(db: Session) -> int:
    return db.scalar(Column.count_visible()) or 0


def next_task_order(db: Session, column_id: str) -> int:
    return db.scalar(Task.count_visible(Task.column_id == column_id)) or 0
