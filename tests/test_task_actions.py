import gc
import threading
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

import column_actions
import ordering
import task_actions
from database import make_engine
from models import Base, Task


def _task(db, column_id, title="Task", **extra):
    result = task_actions.create_task(db, {"title": title, "column_id": column_id, **extra})
    assert result.success, result.error
    return result.data


def test_create_round_trip(db, board):
    result = task_actions.create_task(db, {
        "title": "Write docs",
        "description": "API reference",
        "priority": "high",
        "assignee_id": "3",
        "due_date": "2026-11-01T12:00:00",
        "column_id": board[0].id,
    })
    assert result.success
    fetched = task_actions.get_task(db, result.data.id).data
    assert fetched.title == "Write docs"
    assert fetched.description == "API reference"
    assert fetched.priority == "high"
    assert fetched.status == "todo"
    assert fetched.assignee_id == "3"
    assert fetched.due_date.replace(tzinfo=None) == datetime(2026, 11, 1, 12, 0)
    assert fetched.column_id == board[0].id
    assert fetched.deleted_at is None


def test_create_defaults(db, board):
    task = _task(db, board[0].id)
    assert task.priority == "medium"
    assert task.status == "todo"
    assert task.assignee_id is None


def test_create_appends_per_column(db, board):
    todo, doing, _ = board
    assert [_task(db, todo.id).order for _ in range(3)] == [0, 1, 2]
    assert _task(db, doing.id).order == 0


def test_create_with_empty_title_inserts_nothing(db, board):
    result = task_actions.create_task(db, {"title": "", "column_id": board[0].id})
    assert result.error == "Title is required"
    assert db.scalar(select(func.count()).select_from(Task)) == 0


def test_create_in_missing_or_deleted_column(db, board):
    assert task_actions.create_task(db, {"title": "x", "column_id": "nope"}).error == "Column not found"
    column_actions.delete_column(db, board[0].id)
    result = task_actions.create_task(db, {"title": "x", "column_id": board[0].id})
    assert result.kind == "not_found"
    assert db.scalar(select(func.count()).select_from(Task)) == 0


def test_list_orders_by_order(db, board):
    todo, doing, _ = board
    a = _task(db, todo.id, "a")
    b = _task(db, doing.id, "b")
    c = _task(db, todo.id, "c")
    listed = task_actions.list_tasks(db).data
    assert [t.order for t in listed] == sorted(t.order for t in listed)
    assert [t.id for t in task_actions.list_tasks_by_column(db, todo.id).data] == [a.id, c.id]
    assert [t.id for t in task_actions.list_tasks_by_column(db, doing.id).data] == [b.id]


def test_update_partial_fields(db, board):
    task = _task(db, board[0].id, "Draft", priority="low")
    result = task_actions.update_task(db, task.id, {"status": "in_progress", "assignee_id": "2"})
    assert result.success
    assert result.data.title == "Draft"
    assert result.data.priority == "low"
    assert result.data.status == "in_progress"
    assert result.data.assignee_id == "2"


def test_update_rejects_bad_priority_and_keeps_row(db, board):
    task = _task(db, board[0].id, priority="low")
    result = task_actions.update_task(db, task.id, {"priority": "urgent"})
    assert result.kind == "validation"
    assert task_actions.get_task(db, task.id).data.priority == "low"


def test_update_column_change_moves_to_end(db, board):
    todo, doing, _ = board
    _task(db, doing.id)
    task = _task(db, todo.id)
    result = task_actions.update_task(db, task.id, {"column_id": doing.id, "title": "Moved"})
    assert result.success
    assert result.data.column_id == doing.id
    assert result.data.order == 1
    assert result.data.title == "Moved"


def test_update_to_deleted_column_changes_nothing(db, board):
    todo, doing, _ = board
    task = _task(db, todo.id, "Keep")
    column_actions.delete_column(db, doing.id)
    result = task_actions.update_task(db, task.id, {"column_id": doing.id, "title": "Changed"})
    assert result.error == "Target column not found"
    fetched = task_actions.get_task(db, task.id).data
    assert fetched.title == "Keep"
    assert fetched.column_id == todo.id


def test_update_missing_task(db):
    assert task_actions.update_task(db, "missing", {"title": "x"}).error == "Task not found"


def test_delete_task(db, board):
    task = _task(db, board[0].id)
    result = task_actions.delete_task(db, task.id)
    assert result.data == {"id": task.id}
    assert task_actions.list_tasks(db).data == []
    assert task_actions.delete_task(db, task.id).kind == "not_found"


def test_move_appends_to_target_and_leaves_gap(db, board):
    todo, doing, _ = board
    first = _task(db, todo.id, "first")
    second = _task(db, todo.id, "second")
    third = _task(db, todo.id, "third")
    _task(db, doing.id, "already there")

    result = task_actions.move_task(db, second.id, doing.id)
    assert result.success
    assert result.data.column_id == doing.id
    assert result.data.order == 1

    assert second.id not in [t.id for t in task_actions.list_tasks_by_column(db, todo.id).data]
    assert second.id in [t.id for t in task_actions.list_tasks_by_column(db, doing.id).data]
    # source column is not renumbered
    remaining = task_actions.list_tasks_by_column(db, todo.id).data
    assert [(t.id, t.order) for t in remaining] == [(first.id, 0), (third.id, 2)]


def test_move_missing_task_mutates_nothing(db, board):
    task = _task(db, board[0].id)
    before = task_actions.get_task(db, task.id).data

    assert task_actions.move_task(db, "nope", board[1].id).error == "Task not found"

    task_actions.delete_task(db, task.id)
    result = task_actions.move_task(db, task.id, board[1].id)
    assert result.kind == "not_found"
    assert result.error == "Task not found"
    row = db.get(Task, task.id)
    assert row.column_id == before.column_id
    assert row.order == before.order


def test_move_to_missing_column_mutates_nothing(db, board):
    task = _task(db, board[0].id)
    column_actions.delete_column(db, board[1].id)
    result = task_actions.move_task(db, task.id, board[1].id)
    assert result.error == "Target column not found"
    fetched = task_actions.get_task(db, task.id).data
    assert fetched.column_id == board[0].id
    assert fetched.order == 0


def test_board_scenario(db, board):
    todo, doing, _ = board
    t = _task(db, todo.id, "T")
    assert t.order == 0

    t = task_actions.move_task(db, t.id, doing.id).data
    assert t.order == 0

    u = _task(db, doing.id, "U")
    assert u.order == 1

    remaining_in_todo = len(task_actions.list_tasks_by_column(db, todo.id).data)
    t = task_actions.move_task(db, t.id, todo.id).data
    assert t.column_id == todo.id
    assert t.order == remaining_in_todo


def test_load_board_nests_tasks_and_assignees(db, board):
    todo, doing, done = board
    _task(db, doing.id, "Known", assignee_id="1")
    _task(db, doing.id, "Ghost", assignee_id="99")
    _task(db, todo.id, "Nobody")

    columns = task_actions.load_board(db).data
    assert [c["title"] for c in columns] == ["Todo", "Doing", "Done"]
    assert [t["title"] for t in columns[1]["tasks"]] == ["Known", "Ghost"]
    assert columns[1]["tasks"][0]["assignee"]["name"] == "John Doe"
    assert columns[1]["tasks"][1]["assignee"]["name"] == "Unknown"
    assert columns[0]["tasks"][0]["assignee"]["name"] == "Unassigned"
    assert columns[2]["tasks"] == []


def test_scope_locks_are_shared_per_scope():
    locks = ordering.ScopeLocks()
    a = locks.get("tasks:a")
    b = locks.get("tasks:b")
    assert locks.get("tasks:a") is a
    assert a is not b


def test_scope_locks_drop_unused_scopes():
    locks = ordering.ScopeLocks()
    held = locks.get("tasks:kept")
    locks.get("tasks:gone")
    gc.collect()
    assert set(locks._locks.keys()) == {"tasks:kept"}
    assert locks.get("tasks:kept") is held


def test_concurrent_creates_get_distinct_orders(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'board.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with factory() as db:
        column_id = column_actions.create_column(db, {"title": "Busy"}).data.id

    errors = []

    def worker(n):
        with factory() as db:
            for i in range(5):
                result = task_actions.create_task(db, {"title": f"w{n}-{i}", "column_id": column_id})
                if not result.success:
                    errors.append(result.error)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with factory() as db:
        orders = [t.order for t in task_actions.list_tasks_by_column(db, column_id).data]
    assert sorted(orders) == list(range(20))
    engine.dispose()
